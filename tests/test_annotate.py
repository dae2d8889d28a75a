from unittest.mock import patch

import numpy as np

from aruco_tracker.ip_types import DetectedMarker
from aruco_tracker.strategies.annotate import annotate
from aruco_tracker.strategies.localize_pnp import solve_pose

from conftest import marker_scene

SQUARE = np.array([[280, 200], [360, 200], [360, 280], [280, 280]], dtype=np.float32)


def test_no_markers_returns_identical_copy(calib):
    image = marker_scene([])
    out = annotate(image, [], [], calib)
    assert out is not image
    assert out.shape == image.shape and out.dtype == image.dtype
    assert np.array_equal(out, image)


def test_marker_without_pose_gets_outline_only(calib):
    image = np.full((480, 640, 3), 255, dtype=np.uint8)
    marker = DetectedMarker(4, SQUARE)

    with patch("aruco_tracker.strategies.annotate.cv2.drawFrameAxes") as axes:
        out = annotate(image, [marker], [], calib)

    axes.assert_not_called()
    assert not np.array_equal(out, image)
    assert np.array_equal(image, np.full((480, 640, 3), 255, dtype=np.uint8))
    # far corner of the frame is untouched
    assert np.array_equal(out[:50, :50], image[:50, :50])


def test_marker_with_pose_gets_axes_scaled_to_size(calib):
    image = np.full((480, 640, 3), 255, dtype=np.uint8)
    marker = DetectedMarker(4, SQUARE)
    pose = solve_pose(SQUARE, 0.2, calib)

    with patch("aruco_tracker.strategies.annotate.cv2.drawFrameAxes") as axes:
        annotate(image, [marker], [(marker, pose)], calib)

    axes.assert_called_once()
    assert axes.call_args.args[5] == 0.2


def test_axes_change_pixels_beyond_outline(calib):
    image = np.full((480, 640, 3), 255, dtype=np.uint8)
    marker = DetectedMarker(4, SQUARE)
    pose = solve_pose(SQUARE, 0.2, calib)

    outline = annotate(image, [marker], [], calib)
    with_axes = annotate(image, [marker], [(marker, pose)], calib)

    assert not np.array_equal(outline, with_axes)
