# scale.py
"""
Discriminative scale-space filter (DSST style).

A 1-D correlation filter over a geometric pyramid of patches around the
target. Each pyramid level is resized to a fixed model size, turned into a
FHOG vector and weighted by a Hann taper along the scale axis; the filter
keeps separate numerator/denominator accumulators so the response is::

    response = ifft(sum_rows(num * z_hat) / (den + lambda_scale))
"""
from __future__ import annotations

import math
from typing import Optional, Tuple

import cv2
import numpy as np
from loguru import logger

from kcf_tracking.common import BoundingBox
from kcf_tracking.config import TrackerConfig
from kcf_tracking.features import FeatureExtractor
from kcf_tracking.helpers import blend, extract_patch, gaussian_label_1d, hann_1d

MIN_TARGET_PX = 5.0


class ScaleFilter:
    def __init__(self, cfg: TrackerConfig, extractor: FeatureExtractor):
        self.cfg = cfg
        self.extractor = extractor

        self.base_width = 0.0
        self.base_height = 0.0
        self.factors: Optional[np.ndarray] = None
        self.window: Optional[np.ndarray] = None
        self.label: Optional[np.ndarray] = None
        self.model_size: Tuple[int, int] = (0, 0)

        self.num: Optional[np.ndarray] = None        # (features, n_scales) complex
        self.den: Optional[np.ndarray] = None        # (n_scales,) real

        self.current_scale = 1.0
        self.min_scale = 1.0
        self.max_scale = 1.0

    @property
    def center_index(self) -> int:
        """Pyramid level whose factor is exactly 1."""
        return math.ceil(self.cfg.n_scales / 2.0) - 1

    # ------------------------------------------------------------------ #
    #   I N I T
    # ------------------------------------------------------------------ #
    def init(self, image: np.ndarray, box: BoundingBox) -> None:
        cfg = self.cfg
        n = cfg.n_scales
        self.base_width, self.base_height = float(box.width), float(box.height)
        self.current_scale = 1.0

        self.label = gaussian_label_1d(n, cfg.scale_sigma_factor)
        self.window = hann_1d(n)
        self.factors = cfg.scale_step ** (math.ceil(n / 2.0) - np.arange(n) - 1.0)

        # Shrink the model patch so its area stays under the cap
        area = self.base_width * self.base_height
        model_factor = math.sqrt(cfg.scale_max_area / area) if area > cfg.scale_max_area else 1.0
        min_side = 3 * cfg.cell_size                  # at least one FHOG cell survives
        self.model_size = (
            max(int(self.base_width * model_factor), min_side),
            max(int(self.base_height * model_factor), min_side),
        )

        self.min_scale, self.max_scale = self._scale_bounds(image.shape[0], image.shape[1])
        self.num = None
        self.den = None
        self.train(self.sample(image, box.center), init=True)

    def _scale_bounds(self, img_h: int, img_w: int) -> Tuple[float, float]:
        """Smallest/largest multiplier keeping the target >= 5 px and inside the frame."""
        step = self.cfg.scale_step
        if step == 1.0:
            return 1.0, 1.0
        log_step = math.log(step)
        smallest = max(MIN_TARGET_PX / self.base_width, MIN_TARGET_PX / self.base_height)
        largest = min(img_h / self.base_height, img_w / self.base_width)
        min_scale = step ** math.ceil(
            math.log(smallest * (1.0 + self.cfg.scale_padding)) / log_step
        )
        max_scale = step ** math.floor(math.log(largest) / log_step)
        return min_scale, max_scale

    # ------------------------------------------------------------------ #
    #   P Y R A M I D
    # ------------------------------------------------------------------ #
    def sample(self, image: np.ndarray, center: Tuple[float, float]) -> Optional[np.ndarray]:
        """
        Transformed scale pyramid, one column per level. Levels whose patch
        misses the frame stay zero; returns None when every level does.
        """
        cx, cy = center
        model_w, model_h = self.model_size
        xs: Optional[np.ndarray] = None

        for i, factor in enumerate(self.factors):
            patch_w = self.base_width * factor * self.current_scale
            patch_h = self.base_height * factor * self.current_scale
            patch = extract_patch(image, cx, cy, patch_w, patch_h)
            if patch.shape[0] <= 0 or patch.shape[1] <= 0:
                continue

            interp = cv2.INTER_LINEAR if model_w > patch.shape[1] else cv2.INTER_AREA
            resized = cv2.resize(patch, (model_w, model_h), interpolation=interp)
            feats = self.extractor.hog(resized).ravel()
            if xs is None:
                xs = np.zeros((feats.size, len(self.factors)))
            xs[:, i] = feats * self.window[i]

        if xs is None:
            return None
        return np.fft.fft(xs, axis=1)

    # ------------------------------------------------------------------ #
    #   T R A I N   +   D E T E C T
    # ------------------------------------------------------------------ #
    def train(
        self, pyramid: Optional[np.ndarray], rate: Optional[float] = None, init: bool = False
    ) -> None:
        """Assign (init) or blend the accumulators towards ``pyramid``."""
        if pyramid is None:
            logger.warning("Scale pyramid empty (target outside frame); scale model unchanged")
            return
        new_num = self.label[None, :] * np.conj(pyramid)
        new_den = np.real(pyramid * np.conj(pyramid)).sum(axis=0)

        if init or self.num is None:
            self.num, self.den = new_num, new_den
            return

        if new_num.shape != self.num.shape:
            raise ValueError(f"scale pyramid has shape {pyramid.shape}, expected {self.num.shape}")
        rate = self.cfg.scale_lr if rate is None else rate
        self.num = blend(self.num, new_num, rate)
        self.den = blend(self.den, new_den, rate)

    def detect(self, image: np.ndarray, center: Tuple[float, float]) -> int:
        """Index of the pyramid level that best matches the model."""
        zs = self.sample(image, center)
        if zs is None:
            logger.warning("Scale pyramid empty (target outside frame); keeping scale")
            return self.center_index
        if self.num is None:
            logger.warning("Scale model not trained yet; keeping scale")
            return self.center_index
        if zs.shape != self.num.shape:
            raise ValueError(f"scale pyramid has shape {zs.shape}, expected {self.num.shape}")

        summed = (self.num * zs).sum(axis=0)
        response = np.real(np.fft.ifft(summed / (self.den + self.cfg.scale_lambda)))
        return int(np.argmax(response))

    def apply(self, index: int) -> float:
        """Multiply the running scale by level ``index`` and clamp it to bounds."""
        scaled = self.current_scale * float(self.factors[index])
        self.current_scale = float(min(max(scaled, self.min_scale), self.max_scale))
        return self.current_scale
