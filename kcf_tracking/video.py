# video.py
"""Thin VideoCapture wrapper for camera devices and video files."""

from __future__ import annotations

import time
from typing import Optional, Tuple

import cv2
import numpy as np
from loguru import logger

from kcf_tracking.config import SourceConfig


class VideoSource:
    def __init__(self, config: SourceConfig) -> None:
        self.config = config
        self.cap: Optional[cv2.VideoCapture] = None

        # Exposed runtime-queryable values
        self.actual_width: int = 0
        self.actual_height: int = 0
        self.actual_fps: float = 0.0
        self.frames_read: int = 0

    @property
    def is_file(self) -> bool:
        return isinstance(self.config.source, str) and not self.config.source.isdigit()

    # ------------------------------------------------------------------ #
    #   P U B L I C   A P I
    # ------------------------------------------------------------------ #
    def open(self) -> bool:
        src = self.config.source
        if isinstance(src, str) and src.isdigit():
            src = int(src)
        self.cap = cv2.VideoCapture(src)
        if not self.cap or not self.cap.isOpened():
            logger.error("Could not open video source {}", self.config.source)
            self.cap = None
            return False

        if not self.is_file:
            if self.config.width:
                self.cap.set(cv2.CAP_PROP_FRAME_WIDTH, self.config.width)
            if self.config.height:
                self.cap.set(cv2.CAP_PROP_FRAME_HEIGHT, self.config.height)

        # -------- query what we actually got --------------------------
        self.actual_width = int(self.cap.get(cv2.CAP_PROP_FRAME_WIDTH))
        self.actual_height = int(self.cap.get(cv2.CAP_PROP_FRAME_HEIGHT))
        self.actual_fps = self.cap.get(cv2.CAP_PROP_FPS)
        logger.info(
            "Opened {} ({}x{} @ {:.1f} FPS)",
            self.config.source, self.actual_width, self.actual_height, self.actual_fps,
        )
        if self.actual_width == 0 or self.actual_height == 0:
            logger.error("Video source returned zero resolution")
            self.release()
            return False
        return True

    def read(self) -> Tuple[float, Optional[np.ndarray]]:
        """Return (timestamp, frame); frame is None when the source is exhausted."""
        if not self.is_opened():
            return time.time(), None
        ts = time.time()
        ret, frame = self.cap.read()
        if (not ret or frame is None) and self.is_file and self.config.loop:
            self.cap.set(cv2.CAP_PROP_POS_FRAMES, 0)
            ret, frame = self.cap.read()
        if not ret or frame is None:
            return ts, None
        self.frames_read += 1
        return ts, frame

    def is_opened(self) -> bool:
        return bool(self.cap and self.cap.isOpened())

    def release(self) -> None:
        if self.cap:
            logger.info("Releasing video source after {} frames", self.frames_read)
            self.cap.release()
            self.cap = None
