import argparse
import logging
import signal
import sys

from .config import TrackerConfig, load_config
from .errors import CalibrationDataMissing, CalibrationLoadFailure
from .logging_utils import setup_logger
from .worker import TrackerWorker


def _build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(description="Run the ArUco size/pose tracker on one camera")
    ap.add_argument("--config", help="Path to JSON/YAML config")

    ap.add_argument("--camera-name")
    ap.add_argument("--device")
    ap.add_argument("--fps", type=int)
    ap.add_argument("--width", type=int)
    ap.add_argument("--height", type=int)
    ap.add_argument("--calib")
    ap.add_argument("--out")
    ap.add_argument("--duration", type=float)
    ap.add_argument("--max-frames", type=int)
    ap.add_argument("--dict")
    ap.add_argument("--default-ground-distance-m", type=float)
    ap.add_argument("--size-mode", choices=["first_edge", "mean_edges"])
    ap.add_argument("--mavlink", help="MAVLink connection string for DISTANCE_SENSOR")
    ap.add_argument("--static-range-m", type=float, help="Use a fixed ground distance")
    ap.add_argument("--dry-run", action="store_true")
    ap.add_argument("--save-frames", action="store_true")
    ap.add_argument("--no-save-annotated", action="store_true")
    ap.add_argument("--verbose", "-v", action="store_true")

    return ap


def _apply_args(cfg: TrackerConfig, args: argparse.Namespace) -> TrackerConfig:
    device = args.device
    if isinstance(device, str) and device.isdigit():
        device = int(device)

    cfg.apply_overrides(
        camera_name=args.camera_name,
        device=device,
        fps=args.fps,
        width=args.width,
        height=args.height,
        calibration_path=args.calib,
        session_root=args.out,
        duration_sec=args.duration,
        max_frames=args.max_frames,
        aruco_dict=args.dict,
        default_ground_distance_m=args.default_ground_distance_m,
        size_mode=args.size_mode,
        dry_run=True if args.dry_run else None,
        save_frames=True if args.save_frames else None,
        save_annotated=False if args.no_save_annotated else None,
    )
    if args.mavlink:
        cfg.range.type = "mavlink"
        cfg.range.connection = args.mavlink
    if args.static_range_m is not None:
        cfg.range.type = "static"
        cfg.range.distance_m = args.static_range_m
    return cfg


def main(argv=None) -> int:
    ap = _build_parser()
    args = ap.parse_args(argv)

    cfg = load_config(args.config) if args.config else TrackerConfig()
    cfg = _apply_args(cfg, args)

    logger = setup_logger(cfg.camera_name, logging.DEBUG if args.verbose else logging.INFO)
    worker = TrackerWorker(cfg, logger=logger)

    def _handle_signal(_sig, _frame):
        worker.stop()

    signal.signal(signal.SIGINT, _handle_signal)
    if hasattr(signal, "SIGTERM"):
        signal.signal(signal.SIGTERM, _handle_signal)

    try:
        summary = worker.run()
    except (CalibrationLoadFailure, CalibrationDataMissing) as e:
        logger.error("startup aborted: %s", e)
        return 2
    print(summary)
    return 0


if __name__ == "__main__":
    sys.exit(main())
