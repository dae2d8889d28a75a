from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Tuple

import cv2
import numpy as np

from ..errors import CalibrationDataMissing, CalibrationLoadFailure

logger = logging.getLogger(__name__)

CAMERA_MATRIX_KEY = "camera_matrix"
# First key is what the camera calibrator writes, the rest are accepted aliases.
DIST_KEYS = ("distortion_coefficients", "dist_coeffs")


@dataclass(frozen=True)
class CalibrationParameters:
    """Camera intrinsics (OpenCV convention), read-only after load.

    Attributes:
        camera_matrix: (3,3) float64 intrinsic matrix.
        dist_coeffs: (N,) float64 distortion coefficients.
        image_size: (width, height) if the calibration file records it.
    """

    camera_matrix: np.ndarray
    dist_coeffs: np.ndarray
    image_size: Optional[Tuple[int, int]] = None

    def __post_init__(self):
        K = np.array(self.camera_matrix, dtype=np.float64).reshape(3, 3)
        dist = np.array(self.dist_coeffs, dtype=np.float64).reshape(-1)
        K.setflags(write=False)
        dist.setflags(write=False)
        object.__setattr__(self, "camera_matrix", K)
        object.__setattr__(self, "dist_coeffs", dist)

    @property
    def fx(self) -> float:
        return float(self.camera_matrix[0, 0])

    @property
    def fy(self) -> float:
        return float(self.camera_matrix[1, 1])

    @property
    def cx(self) -> float:
        return float(self.camera_matrix[0, 2])

    @property
    def cy(self) -> float:
        return float(self.camera_matrix[1, 2])


def _read_matrix(fs, key: str) -> Optional[np.ndarray]:
    node = fs.getNode(key)
    if node is None or node.empty():
        return None
    if node.isSeq():
        # plain YAML list instead of !!opencv-matrix
        return np.array([node.at(i).real() for i in range(node.size())], dtype=np.float64)
    mat = node.mat()
    if mat is None or mat.size == 0:
        return None
    return np.asarray(mat, dtype=np.float64)


def _read_int(fs, key: str) -> Optional[int]:
    node = fs.getNode(key)
    if node is None or node.empty():
        return None
    return int(node.real())


def load_calib(path: str | Path) -> CalibrationParameters:
    """Load camera matrix and distortion coefficients from an OpenCV FileStorage file.

    Raises:
        CalibrationLoadFailure: file missing or unreadable.
        CalibrationDataMissing: camera matrix or distortion coefficients absent/empty.
    """
    p = Path(path)
    if not p.exists():
        raise CalibrationLoadFailure(f"Calibration file not found: {p}")

    try:
        fs = cv2.FileStorage(str(p), cv2.FILE_STORAGE_READ)
    except cv2.error as exc:
        raise CalibrationLoadFailure(f"Failed to open calibration file: {p}") from exc
    if not fs.isOpened():
        raise CalibrationLoadFailure(f"Failed to open calibration file: {p}")

    try:
        K = _read_matrix(fs, CAMERA_MATRIX_KEY)
        dist = None
        for key in DIST_KEYS:
            dist = _read_matrix(fs, key)
            if dist is not None:
                break
        w = _read_int(fs, "image_width")
        h = _read_int(fs, "image_height")
    finally:
        fs.release()

    if K is None or dist is None:
        raise CalibrationDataMissing(
            f"Failed to load camera parameters correctly from {p}: "
            f"camera_matrix={'ok' if K is not None else 'missing'}, "
            f"distortion_coefficients={'ok' if dist is not None else 'missing'}"
        )
    if K.size != 9:
        raise CalibrationDataMissing(f"camera_matrix must be 3x3, got shape {K.shape}")
    K3 = np.asarray(K, dtype=np.float64).reshape(3, 3)
    if not (np.allclose(np.tril(K3, -1), 0.0) and np.isclose(K3[2, 2], 1.0)):
        raise CalibrationDataMissing(
            f"camera_matrix must be upper triangular with [2,2] == 1, got {K3.tolist()}"
        )

    size = (w, h) if w is not None and h is not None else None
    calib = CalibrationParameters(K, dist, size)
    logger.info(
        "calibration loaded: %s fx=%.2f fy=%.2f cx=%.2f cy=%.2f dist=%d",
        p, calib.fx, calib.fy, calib.cx, calib.cy, calib.dist_coeffs.size,
    )
    return calib
