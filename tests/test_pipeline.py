import logging
from unittest.mock import patch

import numpy as np
import pytest

from aruco_tracker.errors import DegenerateGeometry
from aruco_tracker.ip_types import Frame
from aruco_tracker.pipeline import ArucoTracker
from aruco_tracker.services.calib import CalibrationParameters
from aruco_tracker.services.range_cache import RangeCache
from aruco_tracker.strategies.localize_pnp import solve_pose
from aruco_tracker.transforms import fronto_parallel_deviation

from conftest import K_800, marker_scene


def _frame(image, encoding="bgr8"):
    return Frame(12, "2024-01-01T00:00:00", image, 1_700_000_000_000, encoding)


def test_process_single_marker_uses_cached_range(calib):
    cache = RangeCache()
    tracker = ArucoTracker(calib, cache)
    tracker.on_range(2.0)
    frame = _frame(marker_scene([(9, 220, 140, 200)]))

    result = tracker.process(frame)

    assert not result.passthrough
    assert not result.provisional
    assert len(result.estimates) == 1
    est = result.estimates[0]
    assert est.marker_id == 9
    assert est.size_m == pytest.approx(0.5, rel=0.02)
    assert est.pose is not None
    assert est.pose.depth == pytest.approx(2.0, rel=0.02)
    assert fronto_parallel_deviation(est.pose.rotation_matrix) < 0.05
    assert result.poses_solved == 1


def test_output_frame_keeps_header_and_does_not_touch_input(calib):
    tracker = ArucoTracker(calib, RangeCache())
    image = marker_scene([(1, 220, 140, 200)])
    original = image.copy()

    result = tracker.process(_frame(image))

    out = result.frame
    assert (out.idx, out.ts_iso, out.timestamp_ns, out.encoding) == (
        12, "2024-01-01T00:00:00", 1_700_000_000_000, "bgr8"
    )
    assert out.image.shape == image.shape
    assert not np.array_equal(out.image, image)
    assert np.array_equal(image, original)


def test_no_markers_emits_unchanged_frame(calib):
    tracker = ArucoTracker(calib, RangeCache())
    image = marker_scene([])

    result = tracker.process(_frame(image))

    assert result.estimates == []
    assert np.array_equal(result.frame.image, image)


def test_default_range_marks_estimates_provisional(calib, caplog):
    tracker = ArucoTracker(calib, RangeCache(default=1.0))
    frame = _frame(marker_scene([(2, 220, 140, 200)]))

    with caplog.at_level(logging.WARNING):
        first = tracker.process(frame)
        tracker.process(frame)

    assert first.provisional
    assert first.estimates[0].provisional
    assert first.estimates[0].size_m == pytest.approx(0.25, rel=0.02)
    assert sum("provisional" in r.message for r in caplog.records) == 1


def test_zero_focal_length_skips_pose_but_still_outlines():
    K = K_800.copy()
    K[0, 0] = 0.0
    tracker = ArucoTracker(CalibrationParameters(K, np.zeros(5)), RangeCache())
    tracker.on_range(2.0)
    image = marker_scene([(3, 220, 140, 200)])

    with patch("aruco_tracker.pipeline.solve_pose") as solver, \
            patch("aruco_tracker.strategies.annotate.cv2.drawFrameAxes") as axes:
        result = tracker.process(_frame(image))

    solver.assert_not_called()
    axes.assert_not_called()
    assert len(result.estimates) == 1
    assert result.estimates[0].pose is None
    assert not np.isfinite(result.estimates[0].size_m)
    assert not np.array_equal(result.frame.image, image)


def test_degenerate_marker_does_not_stop_others(calib):
    tracker = ArucoTracker(calib, RangeCache())
    tracker.on_range(1.5)
    image = marker_scene([(3, 40, 40, 120), (11, 400, 250, 150)])
    calls = []

    def flaky(corners, size, cal):
        calls.append(size)
        if len(calls) == 1:
            raise DegenerateGeometry("quasi-collinear")
        return solve_pose(corners, size, cal)

    with patch("aruco_tracker.pipeline.solve_pose", side_effect=flaky):
        result = tracker.process(_frame(image))

    assert len(calls) == 2
    assert len(result.estimates) == 2
    assert [e.pose is None for e in result.estimates].count(True) == 1
    assert result.poses_solved == 1


def test_zero_range_yields_no_pose(calib):
    tracker = ArucoTracker(calib, RangeCache())
    tracker.on_range(0.0)

    result = tracker.process(_frame(marker_scene([(5, 220, 140, 200)])))

    assert result.estimates[0].size_m == 0.0
    assert result.estimates[0].pose is None


def test_bad_frame_is_passed_through(calib, caplog):
    tracker = ArucoTracker(calib, RangeCache())
    frame = _frame(np.zeros((4, 4, 3), dtype=np.uint8), encoding="yuv422")

    with caplog.at_level(logging.WARNING):
        result = tracker.process(frame)

    assert result.passthrough
    assert result.frame is frame
    assert result.estimates == []
    assert any("skipping frame" in r.message for r in caplog.records)


def test_mono_frame_is_converted_before_detection(calib):
    tracker = ArucoTracker(calib, RangeCache())
    gray = marker_scene([(6, 220, 140, 200)])[..., 0].copy()

    result = tracker.process(_frame(gray, encoding="mono8"))

    assert result.frame.image.ndim == 3
    assert [e.marker_id for e in result.estimates] == [6]


def test_invalid_size_mode_rejected(calib):
    with pytest.raises(ValueError):
        ArucoTracker(calib, RangeCache(), size_mode="diagonal")
