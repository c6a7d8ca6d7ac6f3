"""SIFT descriptor extraction over a Gaussian octave pyramid with numba CUDA kernels."""

from .config import DescriptorParams, LogConfig, NormMode, TileShape
from .dispatch import extract_descriptors
from .errors import DescriptorExtractionError, ExtremumFormatError
from .extrema import Extremum, ExtremumTable, load_extrema
from .octave import Octave, OctaveStore, build_octave_levels, create_octave, read_gray_bt709
from .pipeline import DescriptorExtractor
from .reference import compute_descriptor
from .writer import DescriptorWriter

__all__ = [
    "DescriptorParams",
    "LogConfig",
    "NormMode",
    "TileShape",
    "extract_descriptors",
    "DescriptorExtractionError",
    "ExtremumFormatError",
    "Extremum",
    "ExtremumTable",
    "load_extrema",
    "Octave",
    "OctaveStore",
    "build_octave_levels",
    "create_octave",
    "read_gray_bt709",
    "DescriptorExtractor",
    "compute_descriptor",
    "DescriptorWriter",
]
