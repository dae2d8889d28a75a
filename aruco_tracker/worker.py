from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import cv2

from .config import TrackerConfig
from .frame_source import FrameSource, build_frame_source
from .logging_utils import add_file_handler, setup_logger
from .output import CsvOutput, OutputSink
from .pipeline import ArucoTracker
from .range_source import RangeSource, build_range_source
from .services.calib import load_calib
from .services.range_cache import RangeCache
from .services.storage import SessionStorage
from .strategies.detect_aruco import ArucoDetect


@dataclass
class SessionSummary:
    session_path: str
    frames_processed: int
    markers_detected: int
    poses_solved: int
    provisional_frames: int
    csv_path: str
    log_path: str
    avg_fps: float
    errors: int


class TrackerWorker:
    def __init__(
        self,
        config: TrackerConfig,
        logger=None,
        outputs: Optional[list[OutputSink]] = None,
        source: Optional[FrameSource] = None,
        range_source: Optional[RangeSource] = None,
    ):
        self.config = config
        self.logger = logger or setup_logger(config.camera_name)
        self.outputs = outputs if outputs is not None else [CsvOutput()]
        self.source = source
        self.range_source = range_source
        self.tracker: Optional[ArucoTracker] = None
        self._stop_event = threading.Event()

    def stop(self) -> None:
        self._stop_event.set()

    def _build_range_source(self) -> Optional[RangeSource]:
        if self.range_source is not None:
            return self.range_source
        if self.config.dry_run and self.config.range.type == "mavlink":
            return None
        return build_range_source(self.config)

    def _should_stop(self, t0: float, frames: int) -> bool:
        if self._stop_event.is_set():
            return True
        if self.config.duration_sec and (time.time() - t0) >= self.config.duration_sec:
            return True
        if self.config.max_frames and frames >= self.config.max_frames:
            return True
        return False

    def run(self) -> SessionSummary:
        # startup failures abort before a session directory exists
        calib = load_calib(self.config.calibration_path)
        detector = ArucoDetect(self.config.aruco_dict)

        storage = SessionStorage(self.config.session_root, name=f"{self.config.camera_name}_session")
        session_path = storage.begin()
        storage.write_manifest(self.config.as_dict())

        log_file = str(Path(storage.logs_dir) / "session.log")
        file_handler = add_file_handler(self.logger, self.config.camera_name, log_file)

        t0 = time.time()
        frames = 0
        errors = 0
        markers = 0
        poses = 0
        provisional = 0
        src: Optional[FrameSource] = None
        rng: Optional[RangeSource] = None

        try:
            range_cache = RangeCache(self.config.default_ground_distance_m)
            self.tracker = ArucoTracker(
                calib,
                range_cache,
                detector,
                size_mode=self.config.size_mode,
                logger=self.logger,
            )

            for out in self.outputs:
                out.open(Path(storage.session_dir))

            src = self.source or build_frame_source(self.config)
            rng = self._build_range_source()

            self.logger.info("session started: %s", session_path)
            self.logger.info("config: %s", self.config.as_dict())
            self.logger.info(
                "calibration: fx=%.2f fy=%.2f cx=%.2f cy=%.2f",
                calib.fx, calib.fy, calib.cx, calib.cy,
            )
            if rng is None:
                self.logger.warning(
                    "no range source; all sizes use the default ground distance %.3fm",
                    range_cache.default,
                )

            if rng is not None:
                rng.start(self.tracker.on_range)
            src.start()
            t0 = time.time()

            while not self._should_stop(t0, frames):
                f = src.read()
                if f is None:
                    errors += 1
                    continue

                result = self.tracker.process(f)
                image_path = None
                if result.passthrough:
                    errors += 1
                else:
                    try:
                        if self.config.save_frames:
                            storage.save_frame(f)
                        if self.config.save_annotated:
                            image_path = storage.save_annotated(result.frame)
                    except cv2.error as e:
                        self.logger.warning("frame=%d not saved: %s", f.idx, e)
                        errors += 1

                for out in self.outputs:
                    out.write_result(result, image_path)

                markers += len(result.estimates)
                poses += result.poses_solved
                if result.provisional and result.estimates:
                    provisional += 1

                self.logger.info(
                    "frame=%d markers=%d poses=%d provisional=%s",
                    f.idx,
                    len(result.estimates),
                    result.poses_solved,
                    result.provisional,
                )
                frames += 1

        finally:
            for closer in (src, rng):
                if closer is None:
                    continue
                try:
                    closer.stop()
                except Exception as e:
                    self.logger.warning("shutdown error: %s", e)

            for out in self.outputs:
                out.close()

            avg = frames / max(1e-6, (time.time() - t0))
            self.logger.info(
                "summary frames=%d markers=%d poses=%d provisional=%d avg_fps=%.2f errors=%d",
                frames, markers, poses, provisional, avg, errors,
            )
            self.logger.removeHandler(file_handler)
            file_handler.close()

        return SessionSummary(
            str(session_path),
            frames,
            markers,
            poses,
            provisional,
            str(Path(storage.session_dir) / "detections.csv"),
            log_file,
            avg,
            errors,
        )
