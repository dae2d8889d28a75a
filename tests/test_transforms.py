import cv2
import numpy as np
import pytest

from aruco_tracker.transforms import (
    FRONTO_PARALLEL,
    fronto_parallel_deviation,
    rotation_angle,
    rvec_tvec_to_matrix,
)


def test_rvec_tvec_to_matrix():
    """Test conversion from rvec/tvec to 4x4 matrix."""
    rvec = np.array([0.1, 0.2, 0.3])
    tvec = np.array([1.0, 2.0, 3.0])

    T = rvec_tvec_to_matrix(rvec, tvec)

    assert T.shape == (4, 4)
    assert np.allclose(T[3, :], [0, 0, 0, 1])
    assert np.allclose(T[:3, 3], tvec)

    R = T[:3, :3]
    assert np.allclose(R @ R.T, np.eye(3), atol=1e-6)
    assert np.allclose(np.linalg.det(R), 1.0, atol=1e-6)


def test_rotation_angle_of_known_rotations():
    assert rotation_angle(np.eye(3)) == pytest.approx(0.0, abs=1e-7)
    R, _ = cv2.Rodrigues(np.array([0.0, 0.0, np.pi / 3]))
    assert rotation_angle(R) == pytest.approx(np.pi / 3)


def test_fronto_parallel_reference_has_zero_deviation():
    assert fronto_parallel_deviation(FRONTO_PARALLEL) == pytest.approx(0.0, abs=1e-7)
    # identity means the marker faces away from the camera
    assert fronto_parallel_deviation(np.eye(3)) == pytest.approx(np.pi)


def test_fronto_parallel_deviation_measures_tilt():
    tilt, _ = cv2.Rodrigues(np.array([0.25, 0.0, 0.0]))
    assert fronto_parallel_deviation(tilt @ FRONTO_PARALLEL) == pytest.approx(0.25)
