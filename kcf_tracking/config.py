# config.py
"""Typed configuration blobs for the tracker and the capture wrapper."""
from __future__ import annotations

from dataclasses import dataclass, fields, replace
from typing import Any, Dict, Optional, Union

from loguru import logger


@dataclass(frozen=True)
class TrackerConfig:
    """
    Fully resolved tracker tunables.

    Build it with :func:`resolve_config` rather than directly so that the
    mode coupling (multiscale forces a fixed window, Lab needs HOG, ...) is
    applied in one place.
    """
    # Mode flags (after coupling)
    hog: bool = True
    fixed_window: bool = True
    multiscale: bool = False
    lab: bool = False

    # Appearance filter
    interp_factor: float = 0.012      # EMA rate for template + alpha
    sigma: float = 0.6                # Gaussian kernel bandwidth
    lambda_: float = 1e-4             # ridge regularization
    cell_size: int = 4                # HOG cell (px); 1 for raw pixels
    padding: float = 2.5              # search area relative to target size
    output_sigma_factor: float = 0.125
    template_size: int = 96           # largest template side (px); 1 = ROI size

    # Scale filter
    scale_step: float = 1.0
    n_scales: int = 33
    scale_lr: float = 0.025
    scale_lambda: float = 0.01
    scale_max_area: float = 512.0     # px² cap on the scale model patch
    scale_padding: float = 1.0
    scale_sigma_factor: float = 0.25

    def __post_init__(self) -> None:
        _validate(self)

    def with_overrides(self, **overrides: Any) -> "TrackerConfig":
        """Return a validated copy with some tunables replaced."""
        _check_names(overrides)
        return replace(self, **overrides)


@dataclass
class SourceConfig:
    source: Union[int, str] = 0       # device index or file path / URL
    width: Optional[int] = None       # request only, devices may ignore it
    height: Optional[int] = None
    loop: bool = False                # rewind files when exhausted


# --------------------------------------------------------------------------- #
#   M O D E   D E R I V A T I O N
# --------------------------------------------------------------------------- #
def resolve_config(
    hog: bool = True,
    fixed_window: bool = True,
    multiscale: bool = False,
    lab: bool = False,
    **overrides: Any,
) -> TrackerConfig:
    """
    Turn the four mode flags into a complete :class:`TrackerConfig`.

    Overrides are applied after the mode defaults, so e.g.
    ``resolve_config(multiscale=True, scale_step=1.02)`` keeps every other
    multiscale default.
    """
    _check_names(overrides)
    params: Dict[str, Any] = dict(lambda_=1e-4, padding=2.5, output_sigma_factor=0.125)

    if hog:
        params.update(interp_factor=0.012, sigma=0.6, cell_size=4)
        if lab:
            params.update(interp_factor=0.005, sigma=0.4, output_sigma_factor=0.1)
    else:
        params.update(interp_factor=0.075, sigma=0.2, cell_size=1)
        if lab:
            logger.warning("Lab features are only used with HOG features; disabling them")
            lab = False

    if multiscale:
        params.update(
            template_size=96,
            scale_padding=1.0,
            scale_step=1.05,
            scale_sigma_factor=0.25,
            n_scales=33,
            scale_lr=0.025,
            scale_max_area=512.0,
            scale_lambda=0.01,
        )
        if not fixed_window:
            logger.debug("Multiscale tracking needs a fixed window; forcing fixed_window=True")
            fixed_window = True
    elif fixed_window:
        params.update(template_size=96, scale_step=1.0)
    else:
        params.update(template_size=1, scale_step=1.0)

    params.update(overrides)
    return TrackerConfig(
        hog=hog, fixed_window=fixed_window, multiscale=multiscale, lab=lab, **params
    )


# --------------------------------------------------------------------------- #
#   V A L I D A T I O N
# --------------------------------------------------------------------------- #
_MODE_FLAGS = ("hog", "fixed_window", "multiscale", "lab")
_TUNABLES = tuple(f.name for f in fields(TrackerConfig) if f.name not in _MODE_FLAGS)


def _check_names(overrides: Dict[str, Any]) -> None:
    unknown = sorted(set(overrides) - set(_TUNABLES))
    if unknown:
        raise ValueError(f"Unknown tracker tunable(s): {', '.join(unknown)}")


def _validate(cfg: TrackerConfig) -> None:
    if cfg.multiscale and not cfg.fixed_window:
        raise ValueError("multiscale requires fixed_window")
    if cfg.lab and not cfg.hog:
        raise ValueError("lab features require hog features")
    for name in (
        "sigma", "padding", "output_sigma_factor",
        "scale_step", "scale_max_area", "scale_sigma_factor",
    ):
        if getattr(cfg, name) <= 0:
            raise ValueError(f"{name} must be positive, got {getattr(cfg, name)}")
    for name in ("lambda_", "scale_lambda", "scale_padding"):
        if getattr(cfg, name) < 0:
            raise ValueError(f"{name} must be non-negative, got {getattr(cfg, name)}")
    for name in ("interp_factor", "scale_lr"):
        if not 0.0 <= getattr(cfg, name) <= 1.0:
            raise ValueError(f"{name} must lie in [0, 1], got {getattr(cfg, name)}")
    if cfg.cell_size < 1:
        raise ValueError(f"cell_size must be >= 1, got {cfg.cell_size}")
    if cfg.template_size < 1:
        raise ValueError(f"template_size must be >= 1, got {cfg.template_size}")
    if cfg.n_scales < 1:
        raise ValueError(f"n_scales must be >= 1, got {cfg.n_scales}")
