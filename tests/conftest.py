from __future__ import annotations

import os

# kernels run on numba's CUDA simulator unless the caller asked for a device
os.environ.setdefault("NUMBA_ENABLE_CUDASIM", "1")

import cv2  # noqa: E402
import numpy as np  # noqa: E402
import pytest  # noqa: E402


def smooth_texture(h: int = 64, w: int = 64, sigma: float = 2.0, seed: int = 0) -> np.ndarray:
    rng = np.random.default_rng(seed)
    noise = rng.random((h, w)).astype(np.float32)
    img = cv2.GaussianBlur(noise, (0, 0), sigmaX=sigma, sigmaY=sigma, borderType=cv2.BORDER_REFLECT)
    return (img - img.min()) / (img.max() - img.min())


@pytest.fixture
def texture() -> np.ndarray:
    return smooth_texture()


@pytest.fixture
def small_tile_params():
    from igridsift.config import DescriptorParams, TileShape

    return DescriptorParams(tile=TileShape(4, 4, 1))
