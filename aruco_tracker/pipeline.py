"""Per-frame ArUco size and pose estimation.

One call to ``ArucoTracker.process`` handles one frame end to end:
convert to BGR8, detect markers, infer each marker's size from the cached
ground distance, solve its pose, and draw the overlay. Range samples arrive
independently through ``on_range`` and only ever update the cache.

Failures stay inside their scope: a bad frame is passed through, a bad marker
is outlined without a pose. Nothing here raises past ``process``.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Optional

from .errors import DegenerateGeometry, FrameDecodeError
from .ip_types import Frame, MarkerEstimate
from .services.calib import CalibrationParameters
from .services.range_cache import RangeCache
from .strategies.annotate import annotate
from .strategies.detect_aruco import ArucoDetect
from .strategies.estimate_size import FIRST_EDGE, SIZE_MODES, estimate_size, is_valid_size
from .strategies.localize_pnp import solve_pose
from .strategies.preprocess import ColorFrame
from .transforms import fronto_parallel_deviation


@dataclass
class FrameResult:
    frame: Frame  # annotated output, same header as the input
    estimates: list[MarkerEstimate] = field(default_factory=list)
    provisional: bool = False
    passthrough: bool = False

    @property
    def poses_solved(self) -> int:
        return sum(1 for e in self.estimates if e.pose is not None)


class ArucoTracker:
    def __init__(
        self,
        calib: CalibrationParameters,
        range_cache: RangeCache,
        detector: Optional[ArucoDetect] = None,
        size_mode: str = FIRST_EDGE,
        logger: Optional[logging.Logger] = None,
    ):
        if size_mode not in SIZE_MODES:
            raise ValueError(f"size_mode must be one of {SIZE_MODES}, got {size_mode!r}")
        self.calib = calib
        self.range_cache = range_cache
        self.detector = detector or ArucoDetect()
        self.size_mode = size_mode
        self.log = logger or logging.getLogger(__name__)
        self.pre = ColorFrame()
        self._warned_provisional = False

    def on_range(self, distance: float) -> None:
        self.range_cache.update(distance)

    def process(self, frame: Frame) -> FrameResult:
        try:
            f = self.pre.apply(frame)
        except FrameDecodeError as exc:
            self.log.warning("skipping frame: %s", exc)
            return FrameResult(frame, passthrough=True)

        markers = self.detector.detect(f.image)
        ground_distance, provisional = self.range_cache.snapshot()

        if markers and provisional and not self._warned_provisional:
            self.log.warning(
                "no range sample yet; sizes use default ground distance %.3fm and are provisional",
                ground_distance,
            )
            self._warned_provisional = True

        estimates: list[MarkerEstimate] = []
        poses = []
        for marker in markers:
            size = estimate_size(marker.corners, self.calib.fx, ground_distance, self.size_mode)
            pose = None
            if not is_valid_size(size):
                self.log.debug("marker %d: invalid size %s, no pose", marker.marker_id, size)
            else:
                try:
                    pose = solve_pose(marker.corners, size, self.calib)
                except DegenerateGeometry as exc:
                    self.log.debug("marker %d: %s", marker.marker_id, exc)
            if pose is not None:
                poses.append((marker, pose))
                self.log.debug(
                    "marker %d size=%.4fm depth=%.3fm tilt=%.1fdeg rmse=%.3fpx",
                    marker.marker_id, size, pose.depth,
                    math.degrees(fronto_parallel_deviation(pose.rotation_matrix)),
                    pose.reproj_rmse_px,
                )
            estimates.append(MarkerEstimate(marker, size, pose, provisional))

        draw = annotate(f.image, markers, poses, self.calib)
        return FrameResult(f.with_image(draw), estimates, provisional)
