# helpers.py
"""Small numeric utilities shared by the appearance and scale filters."""
from __future__ import annotations

import math
from typing import Sequence, TypeVar

import numpy as np

ArrayT = TypeVar("ArrayT", np.ndarray, float)


# --------------------------------------------------------------------------- #
#   W I N D O W S   +   L A B E L S
# --------------------------------------------------------------------------- #
def hann_1d(n: int) -> np.ndarray:
    """Symmetric Hann taper ``0.5 * (1 - cos(2*pi*i / (n-1)))``."""
    if n == 1:
        return np.ones(1)
    i = np.arange(n)
    return 0.5 * (1.0 - np.cos(2.0 * np.pi * i / (n - 1)))


def hann_2d(height: int, width: int) -> np.ndarray:
    """Separable Hann window of shape (height, width)."""
    return np.outer(hann_1d(height), hann_1d(width))


def gaussian_peak_2d(
    height: int, width: int, padding: float, output_sigma_factor: float
) -> np.ndarray:
    """
    Regression target for the appearance filter, already transformed.

    The peak sits at ``(height // 2, width // 2)``, the same place the
    recentred correlation puts the zero shift.
    """
    output_sigma = math.sqrt(width * height) / padding * output_sigma_factor
    mult = -0.5 / (output_sigma * output_sigma)
    y, x = np.ogrid[0:height, 0:width]
    res = np.exp(mult * ((y - height // 2) ** 2 + (x - width // 2) ** 2))
    return np.fft.fft2(res)


def gaussian_label_1d(n: int, sigma_factor: float) -> np.ndarray:
    """Transformed 1-D regression target over the scale axis."""
    scale_sigma = n / math.sqrt(n) * sigma_factor
    center = math.ceil(n / 2.0)
    i = np.arange(n)
    res = np.exp(-0.5 * (i + 1 - center) ** 2 / (scale_sigma * scale_sigma))
    return np.fft.fft(res)


# --------------------------------------------------------------------------- #
#   P E A K S   +   B L E N D I N G
# --------------------------------------------------------------------------- #
def sub_pixel_peak(left: float, center: float, right: float) -> float:
    """Parabolic vertex offset through three equally spaced samples."""
    divisor = 2.0 * center - right - left
    if divisor == 0:
        return 0.0
    return 0.5 * (right - left) / divisor


def blend(old: ArrayT, new: ArrayT, rate: float) -> ArrayT:
    """Exponential forgetting: ``(1 - rate) * old + rate * new``."""
    return (1.0 - rate) * old + rate * new


def rearrange(img: np.ndarray) -> np.ndarray:
    """Move the zero-shift term of a correlation to the array center."""
    return np.fft.fftshift(img, axes=(0, 1))


# --------------------------------------------------------------------------- #
#   P A T C H   E X T R A C T I O N
# --------------------------------------------------------------------------- #
def subwindow(img: np.ndarray, rect: Sequence[int]) -> np.ndarray:
    """
    Crop ``rect = (x, y, w, h)`` out of ``img``; pixels that fall outside
    the image replicate the nearest border pixel.
    """
    x, y, w, h = (int(v) for v in rect)
    ys = np.clip(np.arange(y, y + h), 0, img.shape[0] - 1)
    xs = np.clip(np.arange(x, x + w), 0, img.shape[1] - 1)
    return img[np.ix_(ys, xs)]


def extract_patch(
    img: np.ndarray, cx: float, cy: float, patch_w: float, patch_h: float
) -> np.ndarray:
    """
    Crop a ``patch_w`` x ``patch_h`` region centered on (cx, cy), clipped to
    the image. May return an empty array when the region misses the frame.
    """
    def _span(c: float, size: float, limit: int) -> slice:
        start = math.floor(c) - math.floor(size / 2)
        stop = math.floor(c + size - 1) - math.floor(size / 2)
        start = int(min(max(start, 0), limit - 1))
        stop = int(min(max(stop, 0), limit - 1))
        return slice(start, stop)

    return img[_span(cy, patch_h, img.shape[0]), _span(cx, patch_w, img.shape[1])]
