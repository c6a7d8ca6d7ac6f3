from __future__ import annotations

import enum
import logging
import math
from dataclasses import dataclass, field

MAX_DESC_LEN = 512
TWO_PI = 2.0 * math.pi


class NormMode(enum.IntEnum):
    L2 = 0
    ROOT_SIFT = 1

    @classmethod
    def parse(cls, name: str) -> "NormMode":
        key = name.strip().lower().replace("-", "_")
        aliases = {"l2": cls.L2, "classic": cls.L2, "root_sift": cls.ROOT_SIFT, "rootsift": cls.ROOT_SIFT}
        if key not in aliases:
            raise ValueError(f"unknown norm mode: {name!r}")
        return aliases[key]


@dataclass(frozen=True)
class TileShape:
    """Threads per block cooperating on one descriptor.

    16x16 keeps one thread per sample of the default 16x16 sampling grid.
    32x4x4 doubles the block (512 threads), which pays off on devices with
    many resident warps but leaves half the threads idle for small grids.
    """

    x: int = 16
    y: int = 16
    z: int = 1

    def __post_init__(self) -> None:
        if min(self.x, self.y, self.z) < 1:
            raise ValueError(f"tile dimensions must be positive, got {self.as_tuple()}")
        if self.threads > 1024:
            raise ValueError(f"tile of {self.threads} threads exceeds 1024 per block")

    @classmethod
    def parse(cls, text: str) -> "TileShape":
        parts = [int(p) for p in text.lower().split("x")]
        if not 1 <= len(parts) <= 3:
            raise ValueError(f"bad tile shape: {text!r}")
        parts += [1] * (3 - len(parts))
        return cls(*parts)

    @property
    def threads(self) -> int:
        return self.x * self.y * self.z

    def as_tuple(self) -> tuple[int, int, int]:
        return (self.x, self.y, self.z)


@dataclass
class DescriptorParams:
    tile: TileShape = field(default_factory=TileShape)
    n_hist: int = 4
    n_ori: int = 8
    samples_per_cell: int = 4
    magnify: float = 3.0
    gauss_window: float = 0.5
    clip: float = 0.2
    min_norm: float = 1e-12
    norm_mode: NormMode = NormMode.L2
    max_orientations: int = 4
    delta_min: float = 1.0
    sync_check: bool = True

    def __post_init__(self) -> None:
        if isinstance(self.tile, str):
            self.tile = TileShape.parse(self.tile)
        if isinstance(self.norm_mode, str):
            self.norm_mode = NormMode.parse(self.norm_mode)
        if self.n_hist < 1 or self.n_ori < 2 or self.samples_per_cell < 1:
            raise ValueError("n_hist, n_ori and samples_per_cell must be positive")
        if self.desc_len > MAX_DESC_LEN:
            raise ValueError(
                f"descriptor length {self.desc_len} exceeds shared histogram size {MAX_DESC_LEN}"
            )
        if self.magnify <= 0.0:
            raise ValueError("magnify must be positive")
        if self.gauss_window < 0.0:
            raise ValueError("gauss_window must be >= 0 (0 disables weighting)")
        if not 0.0 < self.clip <= 1.0:
            raise ValueError("clip must be in (0, 1]")
        if self.max_orientations < 1:
            raise ValueError("max_orientations must be >= 1")
        if self.delta_min <= 0.0:
            raise ValueError("delta_min must be positive")

    @property
    def desc_len(self) -> int:
        return self.n_hist * self.n_hist * self.n_ori

    @property
    def samples_per_side(self) -> int:
        return self.n_hist * self.samples_per_cell

    @property
    def gauss_inv_2sig2(self) -> float:
        # sigma in cell units
        if self.gauss_window == 0.0:
            return 0.0
        sig = self.gauss_window * self.n_hist
        return 1.0 / (2.0 * sig * sig)

    def octave_scale(self, octave_index: int) -> float:
        return self.delta_min * float(1 << octave_index)


@dataclass
class LogConfig:
    """Logging configuration settings."""

    level: int = logging.INFO
    format: str = "[%(asctime)s][%(name)s][%(levelname)s] %(message)s"
    datefmt: str = "%H:%M:%S"

    def apply(self):
        logging.basicConfig(
            level=self.level,
            format=self.format,
            datefmt=self.datefmt,
            force=True,
        )
