import json
import os

import pytest

from kcf_tracking.config import resolve_config
from kcf_tracking.param_file import ParamFile, ParamFileError, load_overrides


def test_missing_file_means_no_overrides(tmp_path):
    assert load_overrides(tmp_path / "absent.json") == {}
    pf = ParamFile(tmp_path / "absent.json")
    assert pf.params == {}
    assert pf.maybe_reload() is False
    cfg = resolve_config()
    assert pf.apply(cfg) is cfg


def test_valid_file_is_applied(tmp_path):
    path = tmp_path / "params.json"
    path.write_text(json.dumps({"sigma": 0.5, "interp_factor": 0.02}))
    cfg = ParamFile(path).apply(resolve_config())
    assert cfg.sigma == 0.5
    assert cfg.interp_factor == 0.02
    assert cfg.cell_size == 4


@pytest.mark.parametrize("content", ["{not json", "[1, 2, 3]", '"sigma"'])
def test_bad_content_raises(tmp_path, content):
    path = tmp_path / "params.json"
    path.write_text(content)
    with pytest.raises(ParamFileError):
        load_overrides(path)


def test_unknown_tunable_rejected_on_apply(tmp_path):
    path = tmp_path / "params.json"
    path.write_text(json.dumps({"hog": False}))
    with pytest.raises(ValueError, match="Unknown"):
        ParamFile(path).apply(resolve_config())


def test_maybe_reload_picks_up_changes(tmp_path):
    path = tmp_path / "params.json"
    path.write_text(json.dumps({"sigma": 0.5}))
    pf = ParamFile(path)
    assert pf.maybe_reload() is False

    path.write_text(json.dumps({"sigma": 0.45, "padding": 2.0}))
    stat = path.stat()
    os.utime(path, (stat.st_atime, stat.st_mtime + 5))
    assert pf.maybe_reload() is True
    assert pf.params == {"sigma": 0.45, "padding": 2.0}
    assert pf.maybe_reload() is False
