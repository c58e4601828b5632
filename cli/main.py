# main.py
"""
Entry-point for the KCF tracking demo.

Usage
-----
    python cli/main.py video.mp4 --box 120,80,40,60 --multiscale
    python cli/main.py 0                      # webcam, box picked with the mouse

Tunables can be overridden from a JSON file (``--params``). The file is
re-read whenever it changes and applied on the next ``r`` (re-select) press,
since a running tracker keeps its configuration until it is re-initialised.
"""
from __future__ import annotations

import argparse
import sys
import time
from typing import Optional, Sequence

import cv2
from loguru import logger

from kcf_tracking.common import BoundingBox, TrackReport
from kcf_tracking.config import SourceConfig, resolve_config
from kcf_tracking.param_file import ParamFile
from kcf_tracking.tracker import KCFTracker
from kcf_tracking.video import VideoSource

WINDOW = "KCF Tracking"


def _parse_box(text: str) -> BoundingBox:
    try:
        x, y, w, h = (float(v) for v in text.split(","))
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"expected x,y,w,h, got {text!r}") from exc
    return BoundingBox(x, y, w, h)


def _build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(description=__doc__.split("\n\n")[0].strip())
    p.add_argument("source", help="video file or camera index")
    p.add_argument("--box", type=_parse_box, help="initial box x,y,w,h (else select with mouse)")
    p.add_argument("--raw", action="store_true", help="raw gray-level features instead of HOG")
    p.add_argument("--roi-window", action="store_true", help="window follows ROI size")
    p.add_argument("--multiscale", action="store_true", help="enable scale estimation")
    p.add_argument("--lab", action="store_true", help="add Lab colour-cluster features")
    p.add_argument("--params", default=None, help="JSON file with tunable overrides")
    p.add_argument("--no-display", action="store_true", help="print boxes only")
    p.add_argument("--verbose", action="store_true", help="per-frame debug logging")
    return p


# ────────────────────────────────────────────────────────────────────────────
#   D R A W I N G
# ────────────────────────────────────────────────────────────────────────────
def _draw_overlay(img, rpt: TrackReport, fps: float) -> None:
    cv2.putText(img, f"FPS:{fps:.1f}", (10, 30), cv2.FONT_HERSHEY_SIMPLEX, 0.7, (0, 255, 0), 2)
    if rpt.bbox is None:
        return
    x, y, w, h = rpt.bbox.as_int_tuple()
    cv2.rectangle(img, (x, y), (x + w, y + h), (0, 255, 255), 2)
    label = f"Pk:{rpt.peak_value:.2f} Sc:{rpt.scale_factor:.2f}" if rpt.peak_value is not None else "Init"
    cv2.putText(img, label, (x, y - 10 if y > 10 else y + h + 15), cv2.FONT_HERSHEY_SIMPLEX, 0.5, (0, 255, 255), 1)


def _select_box(frame) -> Optional[BoundingBox]:
    x, y, w, h = cv2.selectROI(WINDOW, frame, showCrosshair=True, fromCenter=False)
    if w <= 0 or h <= 0:
        return None
    return BoundingBox(float(x), float(y), float(w), float(h))


# ────────────────────────────────────────────────────────────────────────────
#   M A I N
# ────────────────────────────────────────────────────────────────────────────
def main(argv: Optional[Sequence[str]] = None) -> int:
    args = _build_parser().parse_args(argv)
    logger.remove()
    logger.add(sys.stderr, level="DEBUG" if args.verbose else "INFO")

    print("Initializing KCF Tracking…")

    # -------------------- Config blobs --------------------
    src_cfg = SourceConfig(source=args.source)
    trk_cfg = resolve_config(
        hog=not args.raw,
        fixed_window=not args.roi_window,
        multiscale=args.multiscale,
        lab=args.lab,
    )
    params = ParamFile(args.params) if args.params else None
    if params is not None:
        trk_cfg = params.apply(trk_cfg)

    # ------------------------ Banner ----------------------
    print(
        f"Tracker: hog={trk_cfg.hog}, fixed_window={trk_cfg.fixed_window}, "
        f"multiscale={trk_cfg.multiscale}, lab={trk_cfg.lab}, "
        f"sigma={trk_cfg.sigma}, interp={trk_cfg.interp_factor}, cell={trk_cfg.cell_size}px"
    )

    # ------------------------ Run -------------------------
    video = VideoSource(src_cfg)
    if not video.open():
        return 1

    display = not args.no_display
    _, frame = video.read()
    if frame is None:
        print("[Main] Source produced no frames.")
        video.release()
        return 1

    if display:
        cv2.namedWindow(WINDOW, cv2.WINDOW_NORMAL)
    box = args.box or (_select_box(frame) if display else None)
    if box is None:
        print("[Main] No initial box given – nothing to track.")
        video.release()
        return 1

    tracker = KCFTracker(trk_cfg)
    tracker.init(box, frame)

    fps, t_prev = 0.0, time.time()
    try:
        while True:
            _, frame = video.read()
            if frame is None:
                break
            bbox = tracker.update(frame)

            now = time.time()
            dt = now - t_prev
            t_prev = now
            if dt > 0:
                fps = 0.9 * fps + 0.1 * (1.0 / dt) if fps else 1.0 / dt

            if not display:
                print(f"{tracker.frame_index},{bbox.x:.1f},{bbox.y:.1f},{bbox.width:.1f},{bbox.height:.1f}")
                continue

            _draw_overlay(frame, tracker.report(), fps)
            cv2.imshow(WINDOW, frame)
            key = cv2.waitKey(1) & 0xFF
            if key == ord("q"):
                break
            if key == ord("r"):
                picked = _select_box(frame)
                if picked is not None:
                    if params is not None and params.maybe_reload():
                        trk_cfg = params.apply(resolve_config(
                            hog=trk_cfg.hog, fixed_window=trk_cfg.fixed_window,
                            multiscale=trk_cfg.multiscale, lab=trk_cfg.lab,
                        ))
                        tracker = KCFTracker(trk_cfg)
                    tracker.init(picked, frame)
    except KeyboardInterrupt:
        print("\n[Main] Interrupted.")
    finally:
        tracked = tracker.frame_index
        tracker.release()
        video.release()
        if display:
            cv2.destroyAllWindows()

    print(f"[Main] Finished after {tracked} tracked frames.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
