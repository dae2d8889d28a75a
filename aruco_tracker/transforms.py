"""SE(3) and rotation helpers for ArUco pose handling."""

import math

import cv2
import numpy as np

# Rotation of a marker seen head-on and upright: marker y up = camera -y,
# marker z toward the camera = camera -z.
FRONTO_PARALLEL = np.diag([1.0, -1.0, -1.0])


def rvec_tvec_to_matrix(rvec: np.ndarray, tvec: np.ndarray) -> np.ndarray:
    """
    Convert rotation vector and translation vector to 4x4 transformation matrix.

    Args:
        rvec: Rotation vector (3,) or (3,1)
        tvec: Translation vector (3,) or (3,1)

    Returns:
        4x4 homogeneous transformation matrix
    """
    rvec = np.array(rvec, dtype=np.float64).reshape(3)
    tvec = np.array(tvec, dtype=np.float64).reshape(3)

    R, _ = cv2.Rodrigues(rvec)

    T = np.eye(4)
    T[:3, :3] = R
    T[:3, 3] = tvec

    return T


def rotation_angle(R: np.ndarray) -> float:
    """Angle (radians) of the rotation represented by a 3x3 matrix."""
    R = np.asarray(R, dtype=np.float64).reshape(3, 3)
    c = (float(np.trace(R)) - 1.0) * 0.5
    return math.acos(min(1.0, max(-1.0, c)))


def fronto_parallel_deviation(R: np.ndarray) -> float:
    """
    Angle (radians) between a marker rotation and the head-on, upright pose.

    Zero means the marker faces the camera squarely with its top edge up in
    the image; it grows with tilt and with in-plane roll.
    """
    R = np.asarray(R, dtype=np.float64).reshape(3, 3)
    return rotation_angle(R @ FRONTO_PARALLEL.T)
