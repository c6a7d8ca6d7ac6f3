import math

import numpy as np
import pytest

from igridsift.config import DescriptorParams, NormMode
from igridsift.extrema import wrap_angle
from igridsift.reference import (
    accumulate_histogram,
    compute_descriptor,
    normalize_descriptor,
    orientation_bin_weights,
    sample_bilinear,
)

TWO_PI = 2.0 * math.pi


def test_bilinear_interpolates_between_pixels():
    img = np.arange(12, dtype=np.float64).reshape(3, 4)
    assert sample_bilinear(img, 1.5, 0.0) == pytest.approx(1.5)
    assert sample_bilinear(img, 1.0, 1.5) == pytest.approx(7.0)
    assert sample_bilinear(img, 2.25, 1.75) == pytest.approx(9.25)


def test_bilinear_clamps_to_edge():
    img = np.arange(12, dtype=np.float64).reshape(3, 4)
    assert sample_bilinear(img, -5.0, -2.0) == img[0, 0]
    assert sample_bilinear(img, 10.0, 10.0) == img[2, 3]
    assert sample_bilinear(img, 1.0, 7.5) == img[2, 1]


def test_orientation_boundary_between_last_and_first_bin():
    b0, w0, b1, w1 = orientation_bin_weights(7.5 * TWO_PI / 8, 8)
    assert (int(b0), int(b1)) == (7, 0)
    assert float(w0) == pytest.approx(0.5)
    assert float(w1) == pytest.approx(0.5)


@pytest.mark.parametrize("angle", [TWO_PI - 0.1, -0.1, 2 * TWO_PI - 0.1])
def test_orientation_weights_wrap_circularly(angle):
    b0, w0, b1, w1 = orientation_bin_weights(angle, 8)
    assert (int(b0), int(b1)) == (7, 0)
    assert float(w0 + w1) == pytest.approx(1.0)
    assert float(w1) == pytest.approx(1.0 - 0.1 * 8 / TWO_PI)


def test_descriptor_is_unit_norm_and_clipped(texture):
    params = DescriptorParams()
    hist = accumulate_histogram(texture.astype(np.float64), 31.3, 29.7, 2.0, 0.4, params)
    d = compute_descriptor(texture, 31.3, 29.7, 2.0, 0.4, params)

    assert d.shape == (128,)
    assert np.linalg.norm(d) == pytest.approx(1.0, abs=1e-4)
    clipped = np.minimum(hist / np.linalg.norm(hist), params.clip)
    ceiling = params.clip / np.linalg.norm(clipped)
    assert d.max() <= ceiling + 1e-6
    assert d.min() >= 0.0


def test_flat_patch_gives_zero_vector():
    img = np.full((32, 32), 0.7, dtype=np.float32)
    d = compute_descriptor(img, 16.0, 16.0, 1.5, 1.0)
    assert not d.any()


def test_degenerate_norm_is_left_unchanged():
    v = np.zeros(128)
    v[3] = 1e-14
    out = normalize_descriptor(v)
    np.testing.assert_array_equal(out, v)


def test_clip_then_renormalize():
    v = np.zeros(128)
    v[0] = 10.0
    v[1:5] = 5.0
    out = normalize_descriptor(v, DescriptorParams(clip=0.2))
    assert np.linalg.norm(out) == pytest.approx(1.0)
    # all five survivors are clipped to the same value
    np.testing.assert_allclose(out[:5], 1 / math.sqrt(5))


def test_root_sift_mode_stays_on_unit_sphere(texture):
    d = compute_descriptor(texture, 30.0, 33.0, 1.8, 2.5, DescriptorParams(norm_mode=NormMode.ROOT_SIFT))
    assert np.linalg.norm(d) == pytest.approx(1.0, abs=1e-4)


@pytest.mark.parametrize("k", [1, 2, 3])
def test_rotation_invariance(texture, k):
    h, w = texture.shape
    x, y, sigma, theta = 31.3, 29.7, 2.0, 0.4
    ref = compute_descriptor(texture, x, y, sigma, theta)

    img = texture
    for _ in range(k):
        # np.rot90 moves (x, y) to (y, w - 1 - x) and turns directions by -pi/2
        img = np.rot90(img)
        x, y = y, w - 1 - x
        theta -= math.pi / 2
        h, w = w, h
    rotated = compute_descriptor(np.ascontiguousarray(img), x, y, sigma, theta)

    np.testing.assert_allclose(rotated, ref, atol=1e-4)


def test_orientation_measured_relative_to_keypoint():
    # horizontal ramp: every gradient points along +x
    img = np.tile(np.arange(64, dtype=np.float32), (64, 1))
    params = DescriptorParams()

    for theta, expected_bin in ((0.0, 0), (math.pi / 2, 6), (math.pi, 4)):
        d = compute_descriptor(img, 32.0, 32.0, 1.0, theta, params).reshape(16, 8)
        mass = d.sum(axis=0)
        assert mass[expected_bin] / mass.sum() > 0.999, (theta, mass)


def test_orientation_outside_range_is_wrapped(texture):
    a = compute_descriptor(texture, 32.0, 30.0, 1.6, 0.3)
    b = compute_descriptor(texture, 32.0, 30.0, 1.6, 0.3 + 2 * TWO_PI)
    c = compute_descriptor(texture, 32.0, 30.0, 1.6, 0.3 - TWO_PI)
    np.testing.assert_allclose(a, b, atol=1e-5)
    np.testing.assert_allclose(a, c, atol=1e-5)


@pytest.mark.parametrize("theta", [-0.3, -TWO_PI, TWO_PI, 3 * TWO_PI + 1.1])
def test_histogram_uses_the_table_angle_wrap(texture, theta):
    img = texture.astype(np.float64)
    a = accumulate_histogram(img, 30.0, 31.0, 1.7, theta)
    b = accumulate_histogram(img, 30.0, 31.0, 1.7, wrap_angle(theta))
    np.testing.assert_array_equal(a, b)


def test_window_past_the_border_stays_finite(texture):
    d = compute_descriptor(texture, 0.5, 1.0, 4.0, 2.0)
    assert np.all(np.isfinite(d))
    assert np.linalg.norm(d) == pytest.approx(1.0, abs=1e-4)


def test_repeated_computation_is_identical(texture):
    a = compute_descriptor(texture, 20.5, 40.25, 1.3, 5.9)
    b = compute_descriptor(texture, 20.5, 40.25, 1.3, 5.9)
    np.testing.assert_array_equal(a, b)


def test_gaussian_weighting_can_be_disabled(texture):
    weighted = compute_descriptor(texture, 32.0, 32.0, 1.5, 0.0)
    flat = compute_descriptor(texture, 32.0, 32.0, 1.5, 0.0, DescriptorParams(gauss_window=0.0))
    assert not np.allclose(weighted, flat)
    assert np.linalg.norm(flat) == pytest.approx(1.0, abs=1e-4)
