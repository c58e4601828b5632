# kcf_tracking/__init__.py
"""KCF + DSST single-object tracker – re-export high-level API."""
from .appearance import AppearanceFilter                # noqa: F401
from .common import BoundingBox, TrackerState, TrackReport  # noqa: F401
from .config import SourceConfig, TrackerConfig, resolve_config  # noqa: F401
from .features import ColorClusterTable, FeatureExtractor  # noqa: F401
from .scale import ScaleFilter                          # noqa: F401
from .tracker import KCFTracker, TrackerInitError, TrackerStateError  # noqa: F401
