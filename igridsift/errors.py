from __future__ import annotations


class DescriptorExtractionError(RuntimeError):
    """The compute backend failed while extracting descriptors for an octave.

    Results for that octave are unsafe to use; the pass is aborted.
    """

    def __init__(self, octave_index: int, reason: str):
        super().__init__(f"descriptor extraction failed on octave {octave_index}: {reason}")
        self.octave_index = octave_index
        self.reason = reason


class ExtremumFormatError(ValueError):
    def __init__(self, path, line_no: int, message: str):
        super().__init__(f"{path}:{line_no}: {message}")
        self.path = path
        self.line_no = line_no
