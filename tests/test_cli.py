import cv2
import numpy as np
import pytest
from loguru import logger

from cli.main import main
from conftest import square_frame


@pytest.fixture(autouse=True)
def _reset_logger():
    yield
    # main() points loguru at the captured stderr
    logger.remove()


def test_unreadable_source_exits_with_error(tmp_path, capsys):
    assert main([str(tmp_path / "missing.avi"), "--no-display", "--box", "1,1,5,5"]) == 1


def test_bad_box_is_a_usage_error(tmp_path):
    with pytest.raises(SystemExit):
        main([str(tmp_path / "clip.avi"), "--box", "1,2,3"])


def test_headless_run_prints_one_line_per_frame(tmp_path, capsys):
    path = tmp_path / "clip.avi"
    writer = cv2.VideoWriter(str(path), cv2.VideoWriter_fourcc(*"MJPG"), 10.0, (100, 100))
    if not writer.isOpened():
        pytest.skip("no MJPG writer available")
    for i in range(6):
        writer.write(square_frame(40 + i, 40))
    writer.release()

    code = main([str(path), "--no-display", "--box", "40,40,20,20"])
    if code == 1:
        pytest.skip("clip could not be decoded")
    assert code == 0

    rows = [line for line in capsys.readouterr().out.splitlines() if line[:1].isdigit()]
    assert len(rows) == 5
    last = [float(v) for v in rows[-1].split(",")]
    assert last[0] == 5
    assert last[1] == pytest.approx(45, abs=2.0)
    assert np.allclose(last[3:], [20.0, 20.0])
