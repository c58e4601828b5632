import math

import numpy as np
import pytest

from kcf_tracking.helpers import (
    blend,
    extract_patch,
    gaussian_label_1d,
    gaussian_peak_2d,
    hann_1d,
    hann_2d,
    rearrange,
    sub_pixel_peak,
    subwindow,
)


@pytest.mark.parametrize("v, c", [(0.0, 1.0), (0.3, 0.9), (-1.0, 2.0)])
def test_sub_pixel_peak_symmetric_neighbours_give_zero(v, c):
    assert sub_pixel_peak(v, c, v) == 0.0


def test_sub_pixel_peak_leans_to_larger_neighbour():
    assert sub_pixel_peak(0.0, 1.0, 0.5) > 0.0
    assert sub_pixel_peak(0.5, 1.0, 0.0) < 0.0


def test_sub_pixel_peak_zero_divisor_means_no_refinement():
    assert sub_pixel_peak(1.0, 1.0, 1.0) == 0.0


@pytest.mark.parametrize("rate", [0.0, 0.012, 0.5, 1.0])
def test_blend_is_exact_ema(rate):
    rng = np.random.default_rng(1)
    old = rng.normal(size=(4, 5)) + 1j * rng.normal(size=(4, 5))
    new = rng.normal(size=(4, 5)) + 1j * rng.normal(size=(4, 5))
    np.testing.assert_array_equal(blend(old, new, rate), (1 - rate) * old + rate * new)


def test_blend_extremes():
    old, new = np.array([1.0, 2.0]), np.array([5.0, -3.0])
    np.testing.assert_array_equal(blend(old, new, 0.0), old)
    np.testing.assert_array_equal(blend(old, new, 1.0), new)


def test_hann_1d_tapers_to_zero_at_both_ends():
    w = hann_1d(33)
    assert w[0] == pytest.approx(0.0)
    assert w[-1] == pytest.approx(0.0)
    assert w[16] == pytest.approx(1.0)
    np.testing.assert_allclose(w, w[::-1])
    np.testing.assert_array_equal(hann_1d(1), [1.0])


def test_hann_2d_is_separable():
    w = hann_2d(6, 8)
    assert w.shape == (6, 8)
    np.testing.assert_allclose(w, np.outer(hann_1d(6), hann_1d(8)))


def test_gaussian_peak_2d_peaks_at_template_midpoint():
    label = np.real(np.fft.ifft2(gaussian_peak_2d(24, 30, 2.5, 0.125)))
    py, px = np.unravel_index(np.argmax(label), label.shape)
    assert (py, px) == (12, 15)
    assert label[12, 15] == pytest.approx(1.0)


def test_gaussian_label_1d_peaks_at_unit_scale_level():
    n = 33
    label = np.real(np.fft.ifft(gaussian_label_1d(n, 0.25)))
    assert int(np.argmax(label)) == math.ceil(n / 2) - 1
    assert label.max() == pytest.approx(1.0)


def test_rearrange_moves_origin_to_center():
    a = np.zeros((6, 8))
    a[0, 0] = 1.0
    assert rearrange(a)[3, 4] == 1.0


def test_subwindow_replicates_border():
    img = np.arange(25, dtype=np.uint8).reshape(5, 5)
    out = subwindow(img, (-2, 3, 4, 4))
    assert out.shape == (4, 4)
    # left padding repeats column 0, bottom padding repeats row 4
    np.testing.assert_array_equal(out[0], [15, 15, 15, 16])
    np.testing.assert_array_equal(out[-1], [20, 20, 20, 21])


def test_subwindow_keeps_colour_channels():
    img = np.zeros((10, 10, 3), np.uint8)
    assert subwindow(img, (5, 5, 8, 7)).shape == (7, 8, 3)


def test_extract_patch_inside_and_outside():
    img = np.zeros((100, 100, 3), np.uint8)
    assert extract_patch(img, 50, 50, 20, 10).shape == (9, 19, 3)
    assert extract_patch(img, -500, -500, 20, 20).size == 0
