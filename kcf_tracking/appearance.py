# appearance.py
"""
Kernelized correlation filter that localises the target.

The filter is a kernel ridge regression over every cyclic shift of the
search window. With a Gaussian kernel the circulant structure makes both
training and detection elementwise operations in the Fourier domain::

    alpha_hat = y_hat / (k_hat(x, x) + lambda)
    response  = ifft2(alpha_hat * k_hat(z, x_template))

Template and coefficients are blended with an exponential moving average
every frame.
"""
from __future__ import annotations

from typing import Optional, Tuple

import cv2
import numpy as np

from kcf_tracking.common import BoundingBox
from kcf_tracking.config import TrackerConfig
from kcf_tracking.features import FeatureExtractor
from kcf_tracking.helpers import (
    blend,
    gaussian_peak_2d,
    hann_2d,
    rearrange,
    sub_pixel_peak,
    subwindow,
)


class AppearanceFilter:
    def __init__(self, cfg: TrackerConfig, extractor: FeatureExtractor):
        self.cfg = cfg
        self.extractor = extractor

        # Template geometry, fixed at init
        self.template_size: Tuple[int, int] = (0, 0)   # (w, h) of resampled patch
        self.patch_scale = 1.0                          # image px per template px

        # Model
        self.template: Optional[np.ndarray] = None      # (H, W, C) real
        self.alphaf: Optional[np.ndarray] = None        # (H, W) complex
        self.label: Optional[np.ndarray] = None         # (H, W) complex
        self.window: Optional[np.ndarray] = None        # (H, W, 1) real

    # ------------------------------------------------------------------ #
    #   I N I T
    # ------------------------------------------------------------------ #
    def init(self, image: np.ndarray, box: BoundingBox) -> None:
        """Fix the template geometry on ``box`` and fully train on ``image``."""
        self._fit_template(box)
        self.window = None
        x = self.get_features(image, box.center, 1.0)
        rows, cols = x.shape[:2]
        self.label = gaussian_peak_2d(rows, cols, self.cfg.padding, self.cfg.output_sigma_factor)
        self.template = np.zeros_like(x)
        self.alphaf = np.zeros((rows, cols), np.complex128)
        self.train(x, 1.0)

    def _fit_template(self, box: BoundingBox) -> None:
        cfg = self.cfg
        # sub-pixel boxes still get a one pixel search area
        padded_w = max(int(box.width * cfg.padding), 1)
        padded_h = max(int(box.height * cfg.padding), 1)

        if cfg.template_size > 1:
            # Fit largest dimension to the given template size
            self.patch_scale = max(padded_w, padded_h) / float(cfg.template_size)
            tmpl_w = int(padded_w / self.patch_scale)
            tmpl_h = int(padded_h / self.patch_scale)
        else:
            self.patch_scale = 1.0
            tmpl_w, tmpl_h = padded_w, padded_h

        if cfg.hog:
            # Whole number of cells, even, plus the ring FHOG normalisation drops
            step = 2 * cfg.cell_size
            tmpl_w = (tmpl_w // step) * step + step
            tmpl_h = (tmpl_h // step) * step + step
        else:
            tmpl_w = max((tmpl_w // 2) * 2, 2)
            tmpl_h = max((tmpl_h // 2) * 2, 2)
        self.template_size = (tmpl_w, tmpl_h)

    # ------------------------------------------------------------------ #
    #   F E A T U R E S
    # ------------------------------------------------------------------ #
    def get_features(
        self, image: np.ndarray, center: Tuple[float, float], scale_factor: float
    ) -> np.ndarray:
        """
        Windowed features of the search area around ``center``, resampled to
        the template geometry. The first call after init builds the window.
        """
        tmpl_w, tmpl_h = self.template_size
        roi_w = int(self.patch_scale * tmpl_w * scale_factor)
        roi_h = int(self.patch_scale * tmpl_h * scale_factor)
        cx, cy = center
        z = subwindow(image, (int(cx - roi_w / 2), int(cy - roi_h / 2), roi_w, roi_h))
        if z.shape[1] != tmpl_w or z.shape[0] != tmpl_h:
            z = cv2.resize(z, (tmpl_w, tmpl_h))

        feats = self.extractor.extract(z)
        if self.window is None:
            self.window = hann_2d(feats.shape[0], feats.shape[1])[:, :, None]
        _check_shape(feats, self.window.shape[:2], "feature map")
        return feats * self.window

    # ------------------------------------------------------------------ #
    #   K E R N E L
    # ------------------------------------------------------------------ #
    def gaussian_correlation(self, x1: np.ndarray, x2: np.ndarray) -> np.ndarray:
        """
        Gaussian kernel between ``x1`` and every cyclic shift of ``x2``,
        recentred so the zero shift sits at ``(H // 2, W // 2)``.
        """
        if x1.shape != x2.shape:
            raise ValueError(f"kernel inputs differ in shape: {x1.shape} vs {x2.shape}")
        rows, cols, chans = x1.shape
        xf = np.fft.fft2(x1, axes=(0, 1))
        zf = np.fft.fft2(x2, axes=(0, 1))
        c = rearrange(np.real(np.fft.ifft2((xf * np.conj(zf)).sum(axis=2))))

        d = (np.sum(x1 * x1) + np.sum(x2 * x2) - 2.0 * c) / (rows * cols * chans)
        d = np.maximum(d, 0.0)
        return np.exp(-d / (self.cfg.sigma * self.cfg.sigma))

    # ------------------------------------------------------------------ #
    #   T R A I N   +   D E T E C T
    # ------------------------------------------------------------------ #
    def train(self, x: np.ndarray, rate: float) -> None:
        """Blend the model towards the closed-form solution for ``x``."""
        _check_shape(x, self.template.shape, "training sample")
        k = self.gaussian_correlation(x, x)
        alphaf = self.label / (np.fft.fft2(k) + self.cfg.lambda_)

        self.template = blend(self.template, x, rate)
        self.alphaf = blend(self.alphaf, alphaf, rate)

    def detect(self, x: np.ndarray) -> Tuple[Tuple[float, float], float]:
        """
        Locate the template in the candidate features ``x``.

        Returns the (dx, dy) offset in feature cells relative to the window
        center and the raw response peak.
        """
        _check_shape(x, self.template.shape, "candidate")
        k = self.gaussian_correlation(x, self.template)
        res = np.real(np.fft.ifft2(self.alphaf * np.fft.fft2(k)))

        py, px = np.unravel_index(int(np.argmax(res)), res.shape)
        peak_value = float(res[py, px])
        rows, cols = res.shape

        dx, dy = float(px), float(py)
        if 0 < px < cols - 1:
            dx += sub_pixel_peak(res[py, px - 1], peak_value, res[py, px + 1])
        if 0 < py < rows - 1:
            dy += sub_pixel_peak(res[py - 1, px], peak_value, res[py + 1, px])

        return (dx - cols // 2, dy - rows // 2), peak_value


def _check_shape(x: np.ndarray, shape: Tuple[int, ...], what: str) -> None:
    if tuple(x.shape[: len(shape)]) != tuple(shape):
        raise ValueError(f"{what} has shape {x.shape}, expected {tuple(shape)}")
