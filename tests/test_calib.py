from pathlib import Path

import numpy as np
import pytest

from aruco_tracker.errors import CalibrationDataMissing, CalibrationLoadFailure
from aruco_tracker.services.calib import CalibrationParameters, load_calib

from conftest import K_800, write_calib


def test_load_calib_reads_matrix_and_distortion(calib_file: Path):
    calib = load_calib(calib_file)

    assert calib.camera_matrix.shape == (3, 3)
    assert calib.camera_matrix.dtype == np.float64
    assert calib.dist_coeffs.dtype == np.float64
    assert calib.dist_coeffs.shape == (5,)
    assert (calib.fx, calib.fy, calib.cx, calib.cy) == (800.0, 800.0, 320.0, 240.0)
    assert calib.image_size == (640, 480)


def test_load_calib_accepts_dist_coeffs_alias(tmp_path: Path):
    p = write_calib(tmp_path / "c.yml", dist=[[0.1, -0.05, 0.0, 0.0, 0.01]], dist_key="dist_coeffs")
    calib = load_calib(p)
    assert np.allclose(calib.dist_coeffs, [0.1, -0.05, 0.0, 0.0, 0.01])


def test_load_calib_converts_single_precision_matrix(tmp_path: Path):
    p = write_calib(tmp_path / "c.yml", K=K_800.astype(np.float32))
    assert load_calib(p).camera_matrix.dtype == np.float64


def test_load_calib_reads_plain_yaml_list(tmp_path: Path):
    p = tmp_path / "list.yml"
    p.write_text(
        "%YAML:1.0\n"
        "---\n"
        "camera_matrix: !!opencv-matrix\n"
        "   rows: 3\n"
        "   cols: 3\n"
        "   dt: d\n"
        "   data: [ 600., 0., 320., 0., 610., 240., 0., 0., 1. ]\n"
        "distortion_coefficients: [ 0.1, 0.0, 0.0, 0.0 ]\n",
        encoding="utf-8",
    )
    calib = load_calib(p)
    assert calib.fy == 610.0
    assert calib.dist_coeffs.shape == (4,)
    assert calib.image_size is None


def test_load_calib_missing_file_fails(tmp_path: Path):
    with pytest.raises(CalibrationLoadFailure):
        load_calib(tmp_path / "nope.yml")


def test_load_calib_missing_distortion_fails(tmp_path: Path):
    p = write_calib(tmp_path / "c.yml", dist_key=None)
    with pytest.raises(CalibrationDataMissing):
        load_calib(p)


def test_load_calib_missing_camera_matrix_fails(tmp_path: Path):
    p = write_calib(tmp_path / "c.yml", K=None)
    with pytest.raises(CalibrationDataMissing):
        load_calib(p)


def test_load_calib_rejects_non_3x3_matrix(tmp_path: Path):
    p = write_calib(tmp_path / "c.yml", K=np.eye(2))
    with pytest.raises(CalibrationDataMissing):
        load_calib(p)


@pytest.mark.parametrize(
    "K",
    [
        np.array([[800.0, 0.0, 320.0], [5.0, 800.0, 240.0], [0.0, 0.0, 1.0]]),
        np.array([[800.0, 0.0, 320.0], [0.0, 800.0, 240.0], [0.0, 0.0, 2.0]]),
    ],
)
def test_load_calib_rejects_non_pinhole_matrix(tmp_path: Path, K):
    p = write_calib(tmp_path / "c.yml", K=K)
    with pytest.raises(CalibrationDataMissing):
        load_calib(p)


def test_calibration_parameters_are_read_only():
    calib = CalibrationParameters(K_800, np.zeros(5))
    with pytest.raises(ValueError):
        calib.camera_matrix[0, 0] = 1.0
    with pytest.raises(AttributeError):
        calib.dist_coeffs = np.ones(5)
