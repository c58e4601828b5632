# param_file.py
from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, Tuple

from loguru import logger

from kcf_tracking.config import TrackerConfig


class ParamFileError(ValueError):
    """The parameter file exists but does not hold a JSON object."""


def load_overrides(path: str | Path) -> Dict[str, Any]:
    """
    Read tracker tunables from a JSON object, e.g. ``{"sigma": 0.5}``.
    A missing file yields no overrides.
    """
    path = Path(path).expanduser()
    try:
        with path.open("r", encoding="utf-8") as fp:
            params = json.load(fp)
    except FileNotFoundError:
        return {}
    except json.JSONDecodeError as exc:
        raise ParamFileError(f"JSON error in {path}: {exc}") from exc
    if not isinstance(params, dict):
        raise ParamFileError(f"{path} must contain a JSON object, got {type(params).__name__}")
    return params


class ParamFile:
    """Watch a JSON file of tunables and reload it when it changes."""

    def __init__(self, path: str | Path = "tracker_params.json") -> None:
        self.path = Path(path).expanduser().resolve()
        self._stamp: Tuple[float, int] = (0.0, -1)  # (mtime, size)
        self.params: Dict[str, Any] = {}

        logger.info("Watching tracker parameters in {}", self.path)
        self._load()

    # ------------------------------------------------------------------
    #   Internal helpers
    # ------------------------------------------------------------------
    def _load(self) -> None:
        self.params = load_overrides(self.path)
        try:
            stat = self.path.stat()
        except FileNotFoundError:
            self._stamp = (0.0, -1)
            return
        self._stamp = (stat.st_mtime, stat.st_size)

    # ------------------------------------------------------------------
    #   Public API
    # ------------------------------------------------------------------
    def maybe_reload(self) -> bool:
        """Reload the overrides when the file changed; True if it did."""
        try:
            stat = self.path.stat()
        except FileNotFoundError:
            return False

        mtime, fsize = self._stamp
        # mtime granularity can be coarse; a size change also counts
        if stat.st_size != fsize or stat.st_mtime - mtime >= 1.0:
            self._load()
            logger.info("Reloaded tracker parameters from {}", self.path)
            return True
        return False

    def apply(self, cfg: TrackerConfig) -> TrackerConfig:
        """Return ``cfg`` with the current file contents applied."""
        return cfg.with_overrides(**self.params) if self.params else cfg
