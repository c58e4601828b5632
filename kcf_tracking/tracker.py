# tracker.py
"""KCF tracker with optional DSST scale estimation."""
from __future__ import annotations

from typing import Any, Optional, Tuple

import numpy as np
from loguru import logger as _default_logger

from kcf_tracking.appearance import AppearanceFilter
from kcf_tracking.common import BoundingBox, TrackerState, TrackReport
from kcf_tracking.config import TrackerConfig, resolve_config
from kcf_tracking.features import FeatureExtractor
from kcf_tracking.scale import ScaleFilter


class TrackerInitError(ValueError):
    """The initial box cannot be tracked (non-positive size)."""


class TrackerStateError(RuntimeError):
    """Operation not allowed in the tracker's current state."""


class KCFTracker:
    # ------------------------------------------------------------------ #
    #   I N I T
    # ------------------------------------------------------------------ #
    def __init__(
        self,
        cfg: Optional[TrackerConfig] = None,
        extractor: Optional[FeatureExtractor] = None,
        logger: Any = None,
    ):
        """
        cfg       : resolved tunables, defaults to ``resolve_config()``
        extractor : feature collaborator; built from ``cfg`` when omitted
        logger    : loguru-compatible logger, defaults to the global one
        """
        self._log = (logger if logger is not None else _default_logger).bind(component="kcf")
        self._extractor = extractor
        self._build(cfg if cfg is not None else resolve_config())

        self.state = TrackerState.UNINITIALIZED
        self.box: Optional[BoundingBox] = None
        self.last_peak: Optional[float] = None
        self.frame_index = 0

    def _build(self, cfg: TrackerConfig) -> None:
        extractor = self._extractor
        if extractor is None:
            extractor = FeatureExtractor(hog=cfg.hog, lab=cfg.lab, cell_size=cfg.cell_size)
        elif extractor.cell_size != cfg.cell_size:
            raise ValueError(
                f"extractor cell size {extractor.cell_size} != config cell size {cfg.cell_size}"
            )
        self.cfg = cfg
        self.extractor = extractor
        self.appearance = AppearanceFilter(cfg, extractor)
        self.scale: Optional[ScaleFilter] = ScaleFilter(cfg, extractor) if cfg.multiscale else None

    # ------------------------------------------------------------------ #
    #   C O N F I G   O V E R R I D E S   (before init only)
    # ------------------------------------------------------------------ #
    def configure(self, **overrides: Any) -> TrackerConfig:
        if self.state is not TrackerState.UNINITIALIZED:
            raise TrackerStateError("tunables can only be changed before init()")
        self._build(self.cfg.with_overrides(**overrides))
        return self.cfg

    @property
    def current_scale(self) -> float:
        return self.scale.current_scale if self.scale is not None else 1.0

    # ------------------------------------------------------------------ #
    #   S T A R T
    # ------------------------------------------------------------------ #
    def init(self, box: BoundingBox, frame: np.ndarray) -> None:
        """Build every model from ``box`` on the first frame."""
        _check_frame(frame)
        if not (box.width > 0 and box.height > 0):
            raise TrackerInitError(f"initial box must have a positive size, got {box}")

        self.box = box.copy()
        self.appearance.init(frame, self.box)
        if self.scale is not None:
            self.scale.init(frame, self.box)

        self.state = TrackerState.TRACKING
        self.last_peak = None
        self.frame_index = 0
        self._log.info(
            "init box={} template={} features={}",
            self.box.as_tuple(),
            self.appearance.template_size,
            self.appearance.template.shape,
        )

    def init_from_points(
        self, pt1: Tuple[float, float], pt2: Tuple[float, float], frame: np.ndarray
    ) -> None:
        """Initialise from two opposite corners, cropped to the frame."""
        _check_frame(frame)
        box = BoundingBox.from_corners(pt1, pt2).intersect(frame.shape[1], frame.shape[0])
        self.init(box, frame)

    # ------------------------------------------------------------------ #
    #   P E R - F R A M E
    # ------------------------------------------------------------------ #
    def update(self, frame: np.ndarray) -> BoundingBox:
        if self.state is not TrackerState.TRACKING:
            raise TrackerStateError("update() called before init()")
        _check_frame(frame)
        img_h, img_w = frame.shape[:2]
        box = self.box

        # ----- translation -----
        box.keep_overlap(img_w, img_h)
        cx, cy = box.center
        x = self.appearance.get_features(frame, (cx, cy), self.current_scale)
        (dx, dy), peak = self.appearance.detect(x)
        step = self.cfg.cell_size * self.appearance.patch_scale * self.current_scale
        box.recenter(cx + dx * step, cy + dy * step)
        box.keep_overlap(img_w, img_h)

        # ----- scale -----
        if self.scale is not None:
            index = self.scale.detect(frame, box.center)
            self.scale.apply(index)
            self.scale.train(self.scale.sample(frame, box.center))
            box.resize(
                self.scale.base_width * self.scale.current_scale,
                self.scale.base_height * self.scale.current_scale,
            )
            box.keep_overlap(img_w, img_h)

        # ----- adapt -----
        x = self.appearance.get_features(frame, box.center, self.current_scale)
        self.appearance.train(x, self.cfg.interp_factor)

        self.last_peak = peak
        self.frame_index += 1
        self._log.debug(
            "frame={} offset=({:.2f}, {:.2f}) peak={:.3f} scale={:.3f}",
            self.frame_index, dx, dy, peak, self.current_scale,
        )
        return box.copy()

    # ------------------------------------------------------------------ #
    #   R E P O R T   +   T E A R D O W N
    # ------------------------------------------------------------------ #
    def report(self) -> TrackReport:
        return TrackReport(
            bbox=self.box.copy() if self.box is not None else None,
            peak_value=self.last_peak,
            scale_factor=self.current_scale,
            frame_index=self.frame_index,
            state=self.state,
        )

    def release(self) -> None:
        """Drop all model state; ``init`` must be called again before ``update``."""
        self._log.info("release after {} frames", self.frame_index)
        self._build(self.cfg)
        self.state = TrackerState.UNINITIALIZED
        self.box = None
        self.last_peak = None
        self.frame_index = 0


def _check_frame(frame: np.ndarray) -> None:
    if frame.ndim not in (2, 3) or frame.shape[0] < 2 or frame.shape[1] < 2:
        raise ValueError(f"expected a gray or BGR frame, got shape {frame.shape}")
