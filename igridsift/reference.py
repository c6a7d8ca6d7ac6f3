"""Host-side descriptor computation.

A plain numpy rendition of the work one kernel block does for a single
(keypoint, orientation) pair. It needs no device and no launch machinery, and
the kernel output is checked against it.
"""

from __future__ import annotations

import math

import numpy as np

from .config import TWO_PI, DescriptorParams, NormMode
from .extrema import wrap_angle


def sample_bilinear(img: np.ndarray, x, y):
    """Bilinear lookup into a 2-D image at real (x, y), clamped to the edge."""
    h, w = img.shape
    x = np.clip(np.asarray(x, dtype=np.float64), 0.0, w - 1)
    y = np.clip(np.asarray(y, dtype=np.float64), 0.0, h - 1)
    x0 = np.floor(x).astype(np.int64)
    y0 = np.floor(y).astype(np.int64)
    x1 = np.minimum(x0 + 1, w - 1)
    y1 = np.minimum(y0 + 1, h - 1)
    fx = x - x0
    fy = y - y0
    top = (1.0 - fx) * img[y0, x0] + fx * img[y0, x1]
    bottom = (1.0 - fx) * img[y1, x0] + fx * img[y1, x1]
    return (1.0 - fy) * top + fy * bottom


def orientation_bin_weights(angle, n_ori: int = 8):
    """Split an angle between its two neighbouring orientation bins.

    Returns (bin0, w0, bin1, w1); bin n_ori-1 wraps onto bin 0.
    """
    a = np.mod(np.asarray(angle, dtype=np.float64), TWO_PI)
    b = a * (n_ori / TWO_PI)
    o0 = np.floor(b).astype(np.int64)
    frac = b - o0
    o0 = np.mod(o0, n_ori)
    return o0, 1.0 - frac, np.mod(o0 + 1, n_ori), frac


def normalize_descriptor(hist: np.ndarray, params: DescriptorParams | None = None) -> np.ndarray:
    params = params or DescriptorParams()
    v = np.asarray(hist, dtype=np.float64).copy()
    norm = math.sqrt(float(np.dot(v, v)))
    if norm <= params.min_norm:
        return v
    v /= norm
    np.minimum(v, params.clip, out=v)
    norm = math.sqrt(float(np.dot(v, v)))
    if norm > params.min_norm:
        v /= norm
    if params.norm_mode == NormMode.ROOT_SIFT:
        l1 = float(np.abs(v).sum())
        if l1 > params.min_norm:
            v = np.sqrt(v / l1)
    return v


def _frame(params: DescriptorParams):
    side = params.samples_per_side
    coords = (np.arange(side, dtype=np.float64) + 0.5) / params.samples_per_cell - 0.5 * params.n_hist
    v, u = np.meshgrid(coords, coords, indexing="ij")
    return u.ravel(), v.ravel()


def accumulate_histogram(
    img: np.ndarray,
    x: float,
    y: float,
    sigma: float,
    theta: float,
    params: DescriptorParams | None = None,
) -> np.ndarray:
    params = params or DescriptorParams()
    n_hist, n_ori = params.n_hist, params.n_ori
    theta = wrap_angle(theta)
    c, s = math.cos(theta), math.sin(theta)
    cell = params.magnify * sigma

    u, v = _frame(params)
    px = x + cell * (u * c - v * s)
    py = y + cell * (u * s + v * c)

    gu = 0.5 * (sample_bilinear(img, px + c, py + s) - sample_bilinear(img, px - c, py - s))
    gv = 0.5 * (sample_bilinear(img, px - s, py + c) - sample_bilinear(img, px + s, py - c))
    mag = np.hypot(gu, gv)
    weight = mag * np.exp(-(u * u + v * v) * params.gauss_inv_2sig2)
    o0, wo0, o1, wo1 = orientation_bin_weights(np.arctan2(gv, gu), n_ori)

    bu = u + 0.5 * n_hist - 0.5
    bv = v + 0.5 * n_hist - 0.5
    c0 = np.floor(bu).astype(np.int64)
    r0 = np.floor(bv).astype(np.int64)
    fc = bu - c0
    fr = bv - r0

    hist = np.zeros(params.desc_len, dtype=np.float64)
    keep = mag > 0.0
    for dr, wr in ((0, 1.0 - fr), (1, fr)):
        row = r0 + dr
        for dc, wc in ((0, 1.0 - fc), (1, fc)):
            col = c0 + dc
            inside = keep & (row >= 0) & (row < n_hist) & (col >= 0) & (col < n_hist)
            base = (row * n_hist + col) * n_ori
            for ob, wo in ((o0, wo0), (o1, wo1)):
                np.add.at(hist, (base + ob)[inside], (weight * wr * wc * wo)[inside])
    return hist


def compute_descriptor(
    img: np.ndarray,
    x: float,
    y: float,
    sigma: float,
    theta: float,
    params: DescriptorParams | None = None,
) -> np.ndarray:
    """Descriptor of one (keypoint, orientation) pair on a single image level."""
    params = params or DescriptorParams()
    img = np.asarray(img, dtype=np.float64)
    hist = accumulate_histogram(img, x, y, sigma, theta, params)
    return normalize_descriptor(hist, params).astype(np.float32)


def compute_descriptors(levels: np.ndarray, pairs: np.ndarray, params: DescriptorParams | None = None):
    """Host counterpart of one octave launch: one row per pair row."""
    params = params or DescriptorParams()
    levels = np.asarray(levels)
    if levels.ndim == 2:
        levels = levels[None]
    out = np.zeros((pairs.shape[0], params.desc_len), dtype=np.float32)
    for g, (x, y, sigma, theta, level) in enumerate(np.asarray(pairs, dtype=np.float64)):
        out[g] = compute_descriptor(levels[int(level)], x, y, sigma, theta, params)
    return out
