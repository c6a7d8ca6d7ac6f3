from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

import numpy as np

from .config import DescriptorParams
from .extrema import ExtremumTable
from .octave import Octave

logger = logging.getLogger(__name__)


def to_uint8(desc: np.ndarray) -> np.ndarray:
    q = np.floor(np.asarray(desc, dtype=np.float32) * 512.0)
    return np.clip(q, 0, 255).astype(np.uint8)


@dataclass
class OctaveDescriptors:
    octave: int
    index: np.ndarray  # (n, 2) extremum id, orientation slot
    descriptors: np.ndarray  # (n, desc_len) float32

    def __len__(self) -> int:
        return int(self.index.shape[0])


class DescriptorWriter:
    """Host-side collection of descriptors, one entry per enumerated pair."""

    def __init__(self, desc_len: int = 128):
        self.desc_len = desc_len
        self._by_octave: dict[int, OctaveDescriptors] = {}

    def record(self, octave: Octave, launched: bool = True) -> OctaveDescriptors:
        """Copy an octave's results to the host.

        Call after the octave's stream has been synchronized. Octaves that were
        skipped record zero entries.
        """
        n = octave.orientation_count_total if launched else 0
        if n:
            desc = octave.descriptors.copy_to_host(stream=octave.stream)
            octave.stream.synchronize()
            index = np.asarray(octave.pair_index)
        else:
            desc = np.empty((0, self.desc_len), np.float32)
            index = np.empty((0, 2), np.int64)
        entry = OctaveDescriptors(octave.index, index, desc)
        self._by_octave[octave.index] = entry
        return entry

    def count(self, octave_index: int) -> int:
        entry = self._by_octave.get(octave_index)
        return 0 if entry is None else len(entry)

    def __len__(self) -> int:
        return sum(len(e) for e in self._by_octave.values())

    def __getitem__(self, octave_index: int) -> OctaveDescriptors:
        return self._by_octave[octave_index]

    def octaves(self) -> list[int]:
        return sorted(self._by_octave)

    def descriptors(self) -> np.ndarray:
        """All descriptors, octave by octave in enumeration order."""
        parts = [self._by_octave[o].descriptors for o in self.octaves()]
        if not parts:
            return np.empty((0, self.desc_len), np.float32)
        return np.concatenate(parts, axis=0)

    def index(self) -> np.ndarray:
        parts = [self._by_octave[o].index for o in self.octaves()]
        if not parts:
            return np.empty((0, 2), np.int64)
        return np.concatenate(parts, axis=0)

    def keypoints(self, table: ExtremumTable, params: DescriptorParams) -> np.ndarray:
        """(n, 4) rows of x, y, sigma, theta in input image coordinates."""
        rows = []
        for ext_id, slot in self.index():
            e = table[int(ext_id)]
            scale = params.octave_scale(e.octave)
            rows.append((e.x * scale, e.y * scale, e.sigma * scale, e.orientations[int(slot)]))
        return np.asarray(rows, dtype=np.float32).reshape(-1, 4)

    def save_npz(self, path: str | Path, table: ExtremumTable, params: DescriptorParams) -> None:
        np.savez(
            path,
            keypoints=self.keypoints(table, params),
            descriptors=self.descriptors(),
            index=self.index(),
        )
        logger.info("wrote %d descriptors to %s", len(self), path)

    def write_text(
        self,
        path: str | Path,
        table: ExtremumTable,
        params: DescriptorParams,
        as_uint8: bool = False,
    ) -> None:
        keypoints = self.keypoints(table, params)
        desc = self.descriptors()
        with open(path, "w") as f:
            for kp, d in zip(keypoints, desc):
                head = " ".join(f"{v:.6g}" for v in kp)
                if as_uint8:
                    body = " ".join(str(int(v)) for v in to_uint8(d))
                else:
                    body = " ".join(f"{v:.6g}" for v in d)
                f.write(f"{head} {body}\n")
        logger.info("wrote %d descriptors to %s", len(desc), path)
