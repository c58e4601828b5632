# conftest.py
"""Synthetic frames shared by the test modules."""
from typing import Tuple

import cv2
import numpy as np
import pytest


def square_frame(
    x: int = 40, y: int = 40, side: int = 20, shape: Tuple[int, int] = (100, 100)
) -> np.ndarray:
    """Black BGR frame with a filled white ``side`` x ``side`` square at (x, y)."""
    frame = np.zeros(shape + (3,), dtype=np.uint8)
    cv2.rectangle(frame, (x, y), (x + side - 1, y + side - 1), (255, 255, 255), -1)
    return frame


@pytest.fixture
def frame0() -> np.ndarray:
    return square_frame()
