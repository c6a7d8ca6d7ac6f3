from __future__ import annotations

import math
from dataclasses import dataclass
from typing import TYPE_CHECKING, Sequence

import cv2
import numpy as np
from numba import cuda

if TYPE_CHECKING:
    from numba.cuda.cudadrv.devicearray import DeviceNDArray

from .config import DescriptorParams
from .extrema import ExtremumTable, OrientationPairs

W709_BGR = np.array(
    [0.072192315360734, 0.715168678767756, 0.212639005871510], dtype=np.float32
)


def read_gray_bt709(path: str) -> np.ndarray:
    im = cv2.imdecode(np.fromfile(path, np.uint8), cv2.IMREAD_COLOR)
    if im is None:
        raise ValueError(f"could not decode image: {path}")
    return (im.astype(np.float32) * W709_BGR).sum(axis=2) / 256.0


def build_octave_levels(
    img: np.ndarray,
    n_oct: int = -1,
    n_spo: int = 3,
    sigma_min: float = 0.8,
    sigma_in: float = 0.5,
    delta_min: float = 1.0,
    min_size: int = 12,
) -> list[np.ndarray]:
    """Gaussian scale space, one (n_spo + 3, h, w) float32 stack per octave.

    Level s of every octave carries a blur of sigma_min / delta_min * 2**(s / n_spo)
    in that octave's own pixel units.
    """
    img = np.asarray(img, dtype=np.float32)
    if delta_min != 1.0:
        h, w = img.shape
        size = (int(round(w / delta_min)), int(round(h / delta_min)))
        img = cv2.resize(img, size, interpolation=cv2.INTER_LINEAR)

    max_oct = max(1, int(math.floor(math.log2(min(img.shape) / min_size))) + 1)
    n_oct = max_oct if n_oct == -1 else min(n_oct, max_oct)
    n_levels = n_spo + 3
    sig = [sigma_min / delta_min * 2.0 ** (s / n_spo) for s in range(n_levels)]

    octaves = []
    base = _blur(img, math.sqrt(max(sig[0] ** 2 - (sigma_in / delta_min) ** 2, 0.0)))
    for _ in range(n_oct):
        stack = np.empty((n_levels,) + base.shape, dtype=np.float32)
        stack[0] = base
        for s in range(1, n_levels):
            stack[s] = _blur(stack[s - 1], math.sqrt(sig[s] ** 2 - sig[s - 1] ** 2))
        octaves.append(stack)
        base = np.ascontiguousarray(stack[n_spo, ::2, ::2])
    return octaves


def _blur(img: np.ndarray, sigma: float) -> np.ndarray:
    if sigma <= 0.0:
        return img.copy()
    return cv2.GaussianBlur(img, (0, 0), sigmaX=sigma, sigmaY=sigma, borderType=cv2.BORDER_REFLECT)


@dataclass
class Octave:
    index: int
    levels: DeviceNDArray  # (n_levels, h, w) float32
    stream: object
    orientation_count_total: int
    pairs: DeviceNDArray  # (n, 5) float32
    pair_index: np.ndarray  # (n, 2) int64, host side
    descriptors: DeviceNDArray  # (n, desc_len) float32

    def __post_init__(self) -> None:
        n = self.orientation_count_total
        if n != self.pairs.shape[0] or n != self.pair_index.shape[0]:
            raise ValueError(
                f"octave {self.index}: pending count {n} does not match "
                f"{self.pairs.shape[0]} enumerated pairs"
            )


def create_octave(
    index: int,
    levels: np.ndarray,
    pairs: OrientationPairs,
    params: DescriptorParams,
    stream=None,
) -> Octave:
    levels = np.asarray(levels, dtype=np.float32)
    if levels.ndim == 2:
        levels = levels[None]
    if levels.ndim != 3:
        raise ValueError(f"octave {index}: expected (levels, h, w), got shape {levels.shape}")
    n = len(pairs)
    if n and (pairs.pairs[:, 4].max() >= levels.shape[0] or pairs.pairs[:, 4].min() < 0):
        raise ValueError(f"octave {index}: extremum level outside 0..{levels.shape[0] - 1}")

    stream = cuda.stream() if stream is None else stream
    return Octave(
        index=index,
        levels=cuda.to_device(np.ascontiguousarray(levels), stream=stream),
        stream=stream,
        orientation_count_total=n,
        pairs=cuda.to_device(np.ascontiguousarray(pairs.pairs), stream=stream),
        pair_index=pairs.index,
        descriptors=cuda.device_array((n, params.desc_len), np.float32, stream=stream),
    )


class OctaveStore:
    """Per-octave device data keyed by octave index."""

    def __init__(self, octaves: Sequence[Octave]):
        self._octaves = {o.index: o for o in octaves}

    @classmethod
    def build(
        cls,
        levels_per_octave: Sequence[np.ndarray],
        table: ExtremumTable,
        params: DescriptorParams,
    ) -> "OctaveStore":
        missing = [o for o in table.octaves() if o >= len(levels_per_octave)]
        if missing:
            raise ValueError(f"extrema reference octaves {missing} beyond the pyramid")
        return cls(
            create_octave(o, levels, table.enumerate_pairs(o), params)
            for o, levels in enumerate(levels_per_octave)
        )

    def __len__(self) -> int:
        return len(self._octaves)

    def __iter__(self):
        return iter(self._octaves[i] for i in sorted(self._octaves))

    def __getitem__(self, octave_index: int) -> Octave:
        return self._octaves[octave_index]

    def image(self, octave_index: int) -> DeviceNDArray:
        return self._octaves[octave_index].levels

    def stream(self, octave_index: int):
        return self._octaves[octave_index].stream

    def orientation_count(self, octave_index: int) -> int:
        return self._octaves[octave_index].orientation_count_total

    def pairs(self, octave_index: int) -> np.ndarray:
        return self._octaves[octave_index].pair_index
