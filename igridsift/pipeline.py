from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Sequence

import numpy as np

from .config import DescriptorParams
from .dispatch import extract_descriptors
from .errors import DescriptorExtractionError
from .extrema import ExtremumTable
from .octave import OctaveStore
from .writer import DescriptorWriter

logger = logging.getLogger(__name__)


@dataclass
class ExtractionStats:
    launched: list[int] = field(default_factory=list)
    skipped: list[int] = field(default_factory=list)
    descriptors: int = 0


class DescriptorExtractor:
    """Runs the descriptor stage over every octave of a pyramid.

    Each octave's launch goes to that octave's stream; ``join`` is the point
    where the caller waits for all of them.
    """

    def __init__(self, params: DescriptorParams | None = None):
        self.params = params or DescriptorParams()
        self.stats = ExtractionStats()

    def submit(self, store: OctaveStore) -> dict[int, bool]:
        launched = {}
        for octave in store:
            launched[octave.index] = extract_descriptors(octave.index, octave, self.params)
        self.stats.launched = [o for o, ok in launched.items() if ok]
        self.stats.skipped = [o for o, ok in launched.items() if not ok]
        return launched

    def join(self, store: OctaveStore) -> None:
        for octave in store:
            try:
                octave.stream.synchronize()
            except Exception as e:
                logger.error("octave %d: stream synchronization failed: %s", octave.index, e)
                raise DescriptorExtractionError(octave.index, str(e)) from e

    def compute(self, store: OctaveStore) -> DescriptorWriter:
        writer = DescriptorWriter(self.params.desc_len)
        launched = self.submit(store)
        self.join(store)
        for octave in store:
            writer.record(octave, launched[octave.index])
        self.stats.descriptors = len(writer)
        logger.info(
            "descriptor stage: %d octaves launched, %d skipped, %d descriptors",
            len(self.stats.launched),
            len(self.stats.skipped),
            self.stats.descriptors,
        )
        return writer

    def compute_from_levels(
        self, levels_per_octave: Sequence[np.ndarray], table: ExtremumTable
    ) -> DescriptorWriter:
        store = OctaveStore.build(levels_per_octave, table, self.params)
        return self.compute(store)
