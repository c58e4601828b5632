# features.py
"""
Dense feature maps for the correlation filters.

* ``fhog``          – Felzenszwalb HOG: 18 signed + 9 unsigned orientation
                      bins and 4 texture energies per cell (31 channels),
                      block-normalised and truncated at 0.2.
* ``gray_features`` – single channel ``gray/255 - 0.5`` (CSK mode).
* ``lab_histogram`` – per-cell histogram of nearest Lab colour cluster.

All maps are returned as float32 arrays shaped (rows, cols, channels).
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional, Sequence, Tuple

import cv2
import numpy as np

NUM_SECTOR = 9
TRUNCATE_ALPHA = 0.2
_EPS = float(np.finfo(np.float32).eps)

# Default palette (BGR) for the colour-cluster table.
_DEFAULT_PALETTE_BGR: Tuple[Tuple[int, int, int], ...] = (
    (0, 0, 0), (64, 64, 64), (128, 128, 128), (192, 192, 192), (255, 255, 255),
    (0, 0, 255), (0, 128, 255), (0, 255, 255), (0, 255, 0), (255, 255, 0),
    (255, 0, 0), (255, 0, 255), (128, 0, 128), (42, 42, 165), (180, 200, 230),
)


# --------------------------------------------------------------------------- #
#   C O L O U R   C L U S T E R S
# --------------------------------------------------------------------------- #
@dataclass(frozen=True, eq=False)
class ColorClusterTable:
    """Immutable set of colour centroids in OpenCV 8-bit Lab coordinates."""
    centroids: np.ndarray = field(repr=False)

    def __post_init__(self) -> None:
        c = np.array(self.centroids, dtype=np.float32)
        if c.ndim != 2 or c.shape[1] != 3 or c.shape[0] == 0:
            raise ValueError(f"centroids must be shaped (K, 3), got {c.shape}")
        c.setflags(write=False)
        object.__setattr__(self, "centroids", c)

    @property
    def n_clusters(self) -> int:
        return int(self.centroids.shape[0])

    @classmethod
    def from_bgr(cls, palette: Sequence[Tuple[int, int, int]]) -> "ColorClusterTable":
        bgr = np.asarray(palette, dtype=np.uint8).reshape(-1, 1, 3)
        lab = cv2.cvtColor(bgr, cv2.COLOR_BGR2Lab).reshape(-1, 3)
        return cls(lab.astype(np.float32))

    @classmethod
    def default(cls) -> "ColorClusterTable":
        return cls.from_bgr(_DEFAULT_PALETTE_BGR)


def lab_histogram(
    patch: np.ndarray, cell_size: int, table: ColorClusterTable
) -> np.ndarray:
    """
    Fraction of pixels per cell assigned to each colour cluster. The outer
    ring of cells is skipped so the grid lines up with :func:`fhog`.
    """
    if patch.ndim == 3 and patch.shape[2] == 1:
        patch = patch[:, :, 0]
    if patch.ndim == 2:
        patch = cv2.cvtColor(patch, cv2.COLOR_GRAY2BGR)
    k = cell_size
    ny, nx = patch.shape[0] // k - 2, patch.shape[1] // k - 2
    if ny <= 0 or nx <= 0:
        return np.zeros((max(ny, 0), max(nx, 0), table.n_clusters), np.float32)

    lab = cv2.cvtColor(np.ascontiguousarray(patch), cv2.COLOR_BGR2Lab).astype(np.float32)
    region = lab[k:k + ny * k, k:k + nx * k]
    dist = ((region[:, :, None, :] - table.centroids[None, None, :, :]) ** 2).sum(-1)
    nearest = np.argmin(dist, axis=-1)
    onehot = np.eye(table.n_clusters, dtype=np.float32)[nearest]
    hist = onehot.reshape(ny, k, nx, k, table.n_clusters).sum(axis=(1, 3))
    return hist / float(k * k)


# --------------------------------------------------------------------------- #
#   G R A Y
# --------------------------------------------------------------------------- #
def gray_features(patch: np.ndarray) -> np.ndarray:
    if patch.ndim == 3 and patch.shape[2] == 3:
        patch = cv2.cvtColor(patch, cv2.COLOR_BGR2GRAY)
    elif patch.ndim == 3:
        patch = patch[:, :, 0]
    return (patch.astype(np.float32) / 255.0 - 0.5)[:, :, None]


# --------------------------------------------------------------------------- #
#   F H O G
# --------------------------------------------------------------------------- #
def _gradients(img: np.ndarray) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """Per-pixel gradient of the colour channel with the largest magnitude."""
    img = img.astype(np.float32)
    kernel = np.array([[-1.0, 0.0, 1.0]], np.float32)
    dx = cv2.filter2D(img, -1, kernel)
    dy = cv2.filter2D(img, -1, kernel.T)
    if dx.ndim == 2:
        dx, dy = dx[:, :, None], dy[:, :, None]

    mag2 = dx * dx + dy * dy
    best = np.argmax(mag2, axis=2)[:, :, None]
    gx = np.take_along_axis(dx, best, axis=2)[:, :, 0]
    gy = np.take_along_axis(dy, best, axis=2)[:, :, 0]
    r = np.sqrt(np.take_along_axis(mag2, best, axis=2)[:, :, 0])

    r[0, :] = r[-1, :] = 0.0
    r[:, 0] = r[:, -1] = 0.0
    return gx, gy, r


def _orientation_bins(gx: np.ndarray, gy: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    """Return (unsigned bin in [0, 9), signed bin in [0, 18)) per pixel."""
    angles = np.arange(NUM_SECTOR) * np.pi / NUM_SECTOR
    dots = gx[:, :, None] * np.cos(angles) + gy[:, :, None] * np.sin(angles)
    # interleave +dot/-dot so argmax keeps the first strict maximum
    both = np.stack([dots, -dots], axis=-1).reshape(gx.shape + (2 * NUM_SECTOR,))
    m = np.argmax(both, axis=-1)
    return m // 2, m // 2 + NUM_SECTOR * (m % 2)


def _bilinear_weights(k: int) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """Own-cell weight, neighbour weight and neighbour direction per offset."""
    j = np.arange(k, dtype=np.float64)
    h = k // 2
    a = np.where(j < h, h - j - 0.5, j - h + 0.5)
    b = np.where(j < h, h + j + 0.5, -j + h - 0.5 + k)
    nearest = np.where(j < h, -1, 1)
    return b / (a + b), a / (a + b), nearest


def _cell_histograms(img: np.ndarray, k: int) -> np.ndarray:
    """Soft-binned orientation histograms: (rows, cols, 9 unsigned + 18 signed)."""
    size_y, size_x = img.shape[0] // k, img.shape[1] // k
    hist = np.zeros((size_y, size_x, 3 * NUM_SECTOR), np.float64)
    if size_y == 0 or size_x == 0:
        return hist

    gx, gy, r = _gradients(img)
    unsigned, signed = _orientation_bins(gx, gy)
    ny, nx = size_y * k, size_x * k
    r, unsigned, signed = r[:ny, :nx], unsigned[:ny, :nx], signed[:ny, :nx] + NUM_SECTOR

    flat = np.zeros(hist.size, np.float64)
    w_own, w_nb, nearest = _bilinear_weights(k)
    pos_y, pos_x = np.arange(ny), np.arange(nx)
    cell_y, cell_x = pos_y // k, pos_x // k
    off_y, off_x = pos_y % k, pos_x % k

    for sel_y, wy in ((0, w_own[off_y]), (nearest[off_y], w_nb[off_y])):
        for sel_x, wx in ((0, w_own[off_x]), (nearest[off_x], w_nb[off_x])):
            ty, tx = np.broadcast_arrays(
                (cell_y + sel_y)[:, None], (cell_x + sel_x)[None, :]
            )
            valid = (ty >= 0) & (ty < size_y) & (tx >= 0) & (tx < size_x)
            val = (r * wy[:, None] * wx[None, :])[valid]
            cell = (ty[valid] * size_x + tx[valid]) * hist.shape[2]
            for bins in (unsigned, signed):
                flat += np.bincount(cell + bins[valid], weights=val, minlength=flat.size)
    return flat.reshape(hist.shape)


def _normalize_and_truncate(hist: np.ndarray, alpha: float) -> Tuple[np.ndarray, np.ndarray]:
    """
    Normalise every interior cell by the energy of its four 2x2 blocks.
    Returns (unsigned, signed) shaped (4, rows-2, cols-2, 9|18).
    """
    unsigned, signed = hist[:, :, :NUM_SECTOR], hist[:, :, NUM_SECTOR:]
    part = (unsigned ** 2).sum(axis=2)
    blocks = part[:-1, :-1] + part[1:, :-1] + part[:-1, 1:] + part[1:, 1:]
    norms = np.stack(
        [blocks[1:, 1:], blocks[1:, :-1], blocks[:-1, 1:], blocks[:-1, :-1]]
    )
    norms = np.sqrt(norms)[..., None] + _EPS
    inner_u = unsigned[1:-1, 1:-1][None]
    inner_s = signed[1:-1, 1:-1][None]
    return (
        np.minimum(inner_u / norms, alpha),
        np.minimum(inner_s / norms, alpha),
    )


def fhog(img: np.ndarray, cell_size: int) -> np.ndarray:
    """31-channel FHOG map of ``img`` (gray or BGR) with ``cell_size`` cells."""
    hist = _cell_histograms(img, cell_size)
    if hist.shape[0] < 3 or hist.shape[1] < 3:
        rows, cols = max(hist.shape[0] - 2, 0), max(hist.shape[1] - 2, 0)
        return np.zeros((rows, cols, 3 * NUM_SECTOR + 4), np.float32)

    unsigned, signed = _normalize_and_truncate(hist, TRUNCATE_ALPHA)
    ny = 0.5                                    # 1 / sqrt(4 norms)
    nx = 1.0 / np.sqrt(2 * NUM_SECTOR)
    out = np.concatenate(
        [
            signed.sum(axis=0) * ny,
            unsigned.sum(axis=0) * ny,
            np.moveaxis(signed.sum(axis=3), 0, -1) * nx,
        ],
        axis=2,
    )
    return out.astype(np.float32)


# --------------------------------------------------------------------------- #
#   E X T R A C T O R
# --------------------------------------------------------------------------- #
class FeatureExtractor:
    """
    Stateless feature collaborator used by both filters.

    ``extract`` produces the appearance features for the configured mode;
    ``hog`` is always FHOG and feeds the scale pyramid.
    """

    def __init__(
        self,
        hog: bool = True,
        lab: bool = False,
        cell_size: int = 4,
        color_table: Optional[ColorClusterTable] = None,
    ) -> None:
        if lab and not hog:
            raise ValueError("lab features require hog features")
        self.use_hog = hog
        self.use_lab = lab
        self.cell_size = cell_size
        self.color_table = color_table if color_table is not None else (
            ColorClusterTable.default() if lab else None
        )

    def extract(self, patch: np.ndarray) -> np.ndarray:
        _check_image(patch)
        if not self.use_hog:
            return gray_features(patch)
        feats = fhog(patch, self.cell_size)
        if self.use_lab:
            colour = lab_histogram(patch, self.cell_size, self.color_table)
            feats = np.concatenate([feats, colour], axis=2)
        return feats

    def hog(self, patch: np.ndarray) -> np.ndarray:
        _check_image(patch)
        return fhog(patch, self.cell_size)


def _check_image(img: np.ndarray) -> None:
    if img.ndim not in (2, 3) or (img.ndim == 3 and img.shape[2] not in (1, 3)):
        raise ValueError(f"expected a gray or BGR image, got shape {img.shape}")
