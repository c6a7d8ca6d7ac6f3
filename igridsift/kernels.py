from __future__ import annotations

import math
import warnings

import numba
from numba import cuda
from numba.core.errors import NumbaPerformanceWarning

from .config import MAX_DESC_LEN, DescriptorParams

warnings.filterwarnings("ignore", category=NumbaPerformanceWarning)

TWO_PI = numba.float32(6.28318530718)


@cuda.jit(device=True)
def wrap_angle(theta):
    t = math.fmod(math.fmod(theta, TWO_PI) + TWO_PI, TWO_PI)
    if t >= TWO_PI:
        t = 0.0
    return t


@cuda.jit(device=True)
def sample_clamped(levels, level, x, y):
    h = levels.shape[1]
    w = levels.shape[2]
    if x < 0.0:
        x = 0.0
    elif x > w - 1:
        x = float(w - 1)
    if y < 0.0:
        y = 0.0
    elif y > h - 1:
        y = float(h - 1)

    x0 = int(math.floor(x))
    y0 = int(math.floor(y))
    x1 = x0 + 1 if x0 + 1 < w else w - 1
    y1 = y0 + 1 if y0 + 1 < h else h - 1
    fx = x - x0
    fy = y - y0

    top = (1.0 - fx) * levels[level, y0, x0] + fx * levels[level, y0, x1]
    bottom = (1.0 - fx) * levels[level, y1, x0] + fx * levels[level, y1, x1]
    return (1.0 - fy) * top + fy * bottom


NORM_L2 = 0
NORM_ROOT_SIFT = 1


@cuda.jit(fastmath=True)
def descriptor_kernel(
    levels,
    pairs,
    desc,
    n_hist,
    n_ori,
    spc,
    magnify,
    inv_2sig2,
    clip,
    min_norm,
    norm_mode,
):
    """One block per (keypoint, orientation) row of ``pairs``."""
    hist = cuda.shared.array(MAX_DESC_LEN, numba.float32)

    g = cuda.blockIdx.x
    if g >= pairs.shape[0]:
        return

    bdx = cuda.blockDim.x
    bdy = cuda.blockDim.y
    tid = cuda.threadIdx.x + bdx * (cuda.threadIdx.y + bdy * cuda.threadIdx.z)
    nthreads = bdx * bdy * cuda.blockDim.z
    desc_len = n_hist * n_hist * n_ori

    for i in range(tid, desc_len, nthreads):
        hist[i] = 0.0
    cuda.syncthreads()

    x = pairs[g, 0]
    y = pairs[g, 1]
    sigma = pairs[g, 2]
    theta = wrap_angle(pairs[g, 3])
    level = int(pairs[g, 4])

    c = math.cos(theta)
    sn = math.sin(theta)
    cell = magnify * sigma
    side = n_hist * spc
    half = 0.5 * n_hist
    inv_spc = 1.0 / spc
    bin_scale = n_ori / TWO_PI

    for k in range(tid, side * side, nthreads):
        si = k // side
        sj = k - si * side
        u = (sj + 0.5) * inv_spc - half
        v = (si + 0.5) * inv_spc - half
        px = x + cell * (u * c - v * sn)
        py = y + cell * (u * sn + v * c)

        # derivatives along the rotated axes
        gu = 0.5 * (
            sample_clamped(levels, level, px + c, py + sn)
            - sample_clamped(levels, level, px - c, py - sn)
        )
        gv = 0.5 * (
            sample_clamped(levels, level, px - sn, py + c)
            - sample_clamped(levels, level, px + sn, py - c)
        )
        m = math.sqrt(gu * gu + gv * gv)
        if m == 0.0:
            continue

        wbase = m * math.exp(-(u * u + v * v) * inv_2sig2)

        ob = wrap_angle(math.atan2(gv, gu)) * bin_scale
        o0 = int(math.floor(ob))
        do = ob - o0
        if o0 >= n_ori:
            o0 -= n_ori

        bc = u + half - 0.5
        c0 = int(math.floor(bc))
        dc = bc - c0
        br = v + half - 0.5
        r0 = int(math.floor(br))
        dr = br - r0

        for ir in (0, 1):
            rr = r0 + ir
            if 0 <= rr < n_hist:
                wr = (1.0 - dr) if ir == 0 else dr
                for ic in (0, 1):
                    cc = c0 + ic
                    if 0 <= cc < n_hist:
                        wc = (1.0 - dc) if ic == 0 else dc
                        for io in (0, 1):
                            oo = o0 + io
                            if oo >= n_ori:
                                oo -= n_ori
                            wo = (1.0 - do) if io == 0 else do
                            hidx = (rr * n_hist + cc) * n_ori + oo
                            cuda.atomic.add(hist, hidx, wbase * wr * wc * wo)

    cuda.syncthreads()

    if tid == 0:
        l2 = 0.0
        for i in range(desc_len):
            l2 += hist[i] * hist[i]
        norm = math.sqrt(l2)
        # degenerate vectors are written as accumulated
        if norm > min_norm:
            inv = 1.0 / norm
            l2 = 0.0
            for i in range(desc_len):
                val = hist[i] * inv
                if val > clip:
                    val = clip
                hist[i] = val
                l2 += val * val
            norm = math.sqrt(l2)
            if norm > min_norm:
                inv = 1.0 / norm
                for i in range(desc_len):
                    hist[i] = hist[i] * inv
            if norm_mode == NORM_ROOT_SIFT:
                l1 = 0.0
                for i in range(desc_len):
                    l1 += abs(hist[i])
                if l1 > min_norm:
                    for i in range(desc_len):
                        hist[i] = math.sqrt(hist[i] / l1)

    cuda.syncthreads()

    for i in range(tid, desc_len, nthreads):
        desc[g, i] = hist[i]


def launch_descriptor_kernel(levels, pairs, desc, n_groups: int, params: DescriptorParams, stream):
    descriptor_kernel[(n_groups,), params.tile.as_tuple(), stream](
        levels,
        pairs,
        desc,
        params.n_hist,
        params.n_ori,
        params.samples_per_cell,
        numba.float32(params.magnify),
        numba.float32(params.gauss_inv_2sig2),
        numba.float32(params.clip),
        numba.float32(params.min_norm),
        int(params.norm_mode),
    )
