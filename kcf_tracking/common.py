# common.py
"""Objects that are shared across multiple modules."""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple


class TrackerState(Enum):
    UNINITIALIZED = "uninitialized"
    TRACKING = "tracking"


@dataclass
class BoundingBox:
    """Axis-aligned box in image pixels: top-left corner plus size."""
    x: float
    y: float
    width: float
    height: float

    @classmethod
    def from_corners(
        cls, pt1: Tuple[float, float], pt2: Tuple[float, float]
    ) -> "BoundingBox":
        x = min(pt1[0], pt2[0])
        y = min(pt1[1], pt2[1])
        return cls(x, y, abs(pt2[0] - pt1[0]), abs(pt2[1] - pt1[1]))

    @property
    def center(self) -> Tuple[float, float]:
        return self.x + self.width / 2.0, self.y + self.height / 2.0

    def recenter(self, cx: float, cy: float) -> None:
        self.x = cx - self.width / 2.0
        self.y = cy - self.height / 2.0

    def resize(self, width: float, height: float) -> None:
        """Change the size while keeping the current center."""
        cx, cy = self.center
        self.width = width
        self.height = height
        self.recenter(cx, cy)

    def intersect(self, width: int, height: int) -> "BoundingBox":
        """Intersection with the frame ``[0, width) x [0, height)``."""
        x0 = max(self.x, 0.0)
        y0 = max(self.y, 0.0)
        x1 = min(self.x + self.width, float(width))
        y1 = min(self.y + self.height, float(height))
        return BoundingBox(x0, y0, max(0.0, x1 - x0), max(0.0, y1 - y0))

    def keep_overlap(self, width: int, height: int) -> None:
        """
        Shift the box so at least one pixel of it overlaps a ``width`` x
        ``height`` frame: the right and bottom edges stay past 0 and the
        left and top edges stay before ``size - 1``. The center itself may
        remain outside the frame and the size is never changed.
        """
        if self.x + self.width <= 0:
            self.x = -self.width + 1
        if self.y + self.height <= 0:
            self.y = -self.height + 1
        if self.x >= width - 1:
            self.x = width - 2
        if self.y >= height - 1:
            self.y = height - 2

    def as_tuple(self) -> Tuple[float, float, float, float]:
        return (self.x, self.y, self.width, self.height)

    def as_int_tuple(self) -> Tuple[int, int, int, int]:
        return tuple(int(round(v)) for v in self.as_tuple())  # type: ignore[return-value]

    def copy(self) -> "BoundingBox":
        return BoundingBox(self.x, self.y, self.width, self.height)


@dataclass(frozen=True)
class TrackReport:
    """
    A single-frame snapshot of tracker state.
    The box is a copy; mutating it does not affect the tracker.
    """
    bbox: Optional[BoundingBox]
    peak_value: Optional[float]
    scale_factor: float
    frame_index: int
    state: TrackerState
