from pathlib import Path

import cv2
import numpy as np
import pytest

from aruco_tracker.services.calib import CalibrationParameters
from aruco_tracker.strategies.detect_aruco import render_marker


K_800 = np.array([[800.0, 0.0, 320.0], [0.0, 800.0, 240.0], [0.0, 0.0, 1.0]])


def write_calib(path: Path, K=K_800, dist=None, dist_key="distortion_coefficients") -> Path:
    fs = cv2.FileStorage(str(path), cv2.FILE_STORAGE_WRITE)
    fs.write("image_width", 640)
    fs.write("image_height", 480)
    if K is not None:
        fs.write("camera_matrix", np.asarray(K, dtype=np.float64))
    if dist is None:
        dist = np.zeros((1, 5))
    if dist_key is not None:
        fs.write(dist_key, np.asarray(dist, dtype=np.float64))
    fs.release()
    return path


def marker_scene(markers, width=640, height=480) -> np.ndarray:
    """BGR white canvas with markers given as (marker_id, x0, y0, side_px)."""
    canvas = np.full((height, width), 255, dtype=np.uint8)
    for marker_id, x0, y0, side in markers:
        canvas[y0:y0 + side, x0:x0 + side] = render_marker(marker_id, side)
    return cv2.cvtColor(canvas, cv2.COLOR_GRAY2BGR)


@pytest.fixture
def calib() -> CalibrationParameters:
    return CalibrationParameters(K_800, np.zeros(5), (640, 480))


@pytest.fixture
def calib_file(tmp_path: Path) -> Path:
    return write_calib(tmp_path / "usb_cam_calib.yml")
