from __future__ import annotations

import math
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Sequence

import numpy as np

from .config import TWO_PI
from .errors import ExtremumFormatError

PAIR_COLS = 5  # x, y, sigma, theta, level


@dataclass(frozen=True)
class Extremum:
    # octave pixel frame: x = column, y = row, pixel centers on integers
    x: float
    y: float
    sigma: float
    octave: int
    orientations: tuple[float, ...] = ()
    level: int = 0

    def __post_init__(self) -> None:
        object.__setattr__(self, "orientations", tuple(float(t) for t in self.orientations))
        if not (math.isfinite(self.x) and math.isfinite(self.y)):
            raise ValueError(f"non-finite extremum position ({self.x}, {self.y})")
        if not self.sigma > 0.0:
            raise ValueError(f"extremum sigma must be positive, got {self.sigma}")
        if self.octave < 0 or self.level < 0:
            raise ValueError("octave and level must be non-negative")

    @property
    def orientation_count(self) -> int:
        return len(self.orientations)


@dataclass
class OrientationPairs:
    pairs: np.ndarray  # (n, 5) float32: x, y, sigma, theta, level
    index: np.ndarray  # (n, 2) int64: extremum id, orientation slot

    def __len__(self) -> int:
        return int(self.pairs.shape[0])


def wrap_angle(theta: float) -> float:
    t = math.fmod(math.fmod(theta, TWO_PI) + TWO_PI, TWO_PI)
    return 0.0 if t >= TWO_PI else t


class ExtremumTable:
    """Ordered keypoints with their assigned orientations.

    Extremum ids are positions in the table; per-octave enumeration walks
    keypoints in table order, then orientations in assignment order.
    """

    def __init__(self, extrema: Iterable[Extremum] = (), max_orientations: int | None = None):
        self._extrema: list[Extremum] = list(extrema)
        if max_orientations is not None:
            for i, ext in enumerate(self._extrema):
                if ext.orientation_count > max_orientations:
                    raise ValueError(
                        f"extremum {i} has {ext.orientation_count} orientations "
                        f"(max {max_orientations})"
                    )

    def __len__(self) -> int:
        return len(self._extrema)

    def __getitem__(self, idx: int) -> Extremum:
        return self._extrema[idx]

    def __iter__(self):
        return iter(self._extrema)

    def octaves(self) -> list[int]:
        return sorted({e.octave for e in self._extrema})

    def orientation_count(self, octave: int) -> int:
        return sum(e.orientation_count for e in self._extrema if e.octave == octave)

    def counts_by_octave(self) -> dict[int, int]:
        counts: dict[int, int] = {}
        for e in self._extrema:
            counts[e.octave] = counts.get(e.octave, 0) + e.orientation_count
        return counts

    def enumerate_pairs(self, octave: int) -> OrientationPairs:
        rows: list[tuple[float, float, float, float, float]] = []
        index: list[tuple[int, int]] = []
        for ext_id, e in enumerate(self._extrema):
            if e.octave != octave:
                continue
            for slot, theta in enumerate(e.orientations):
                rows.append((e.x, e.y, e.sigma, wrap_angle(theta), float(e.level)))
                index.append((ext_id, slot))
        pairs = np.asarray(rows, dtype=np.float32).reshape(-1, PAIR_COLS)
        idx = np.asarray(index, dtype=np.int64).reshape(-1, 2)
        return OrientationPairs(pairs=pairs, index=idx)


def parse_extremum(fields: Sequence[str]) -> Extremum:
    if len(fields) < 5:
        raise ValueError("expected 'octave level x y sigma [theta ...]'")
    octave, level = int(fields[0]), int(fields[1])
    x, y, sigma = (float(f) for f in fields[2:5])
    return Extremum(
        x=x, y=y, sigma=sigma, octave=octave, level=level,
        orientations=tuple(float(f) for f in fields[5:]),
    )


def load_extrema(path: str | Path, max_orientations: int | None = None) -> ExtremumTable:
    path = Path(path)
    extrema = []
    with open(path) as f:
        for line_no, line in enumerate(f, start=1):
            line = line.split("#", 1)[0].strip()
            if not line:
                continue
            try:
                extrema.append(parse_extremum(line.split()))
            except ValueError as e:
                raise ExtremumFormatError(path, line_no, str(e)) from e
    return ExtremumTable(extrema, max_orientations=max_orientations)
