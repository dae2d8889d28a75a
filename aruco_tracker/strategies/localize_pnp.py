"""Marker pose from four corners via planar PnP.

Conventions (OpenCV):
- camera frame: x right, y down, z forward;
- marker frame: origin at the marker center, x right, y up, z out of the
  marker face toward the viewer.

Object points are ordered TL, TR, BR, BL to match ``ArucoDetect``. This is
also the order ``SOLVEPNP_IPPE_SQUARE`` requires. A marker seen head-on and
upright therefore has rotation diag(1, -1, -1), not identity.
"""

from itertools import combinations

import cv2
import numpy as np

from ..errors import DegenerateGeometry
from ..ip_types import Pose

# Corner triangles smaller than this (px^2) count as collinear.
MIN_TRIANGLE_AREA_PX2 = 1.0


def marker_object_points(side_length: float) -> np.ndarray:
    """3D corners of a square marker of the given side, centered at the origin."""
    h = float(side_length) / 2.0
    return np.array(
        [
            [-h, h, 0.0],   # top left
            [h, h, 0.0],    # top right
            [h, -h, 0.0],   # bottom right
            [-h, -h, 0.0],  # bottom left
        ],
        dtype=np.float64,
    )


def _check_corners(img_pts: np.ndarray) -> None:
    if not np.isfinite(img_pts).all():
        raise DegenerateGeometry("corner coordinates are not finite")
    for a, b, c in combinations(range(4), 3):
        u = img_pts[b] - img_pts[a]
        v = img_pts[c] - img_pts[a]
        area = 0.5 * abs(u[0] * v[1] - u[1] * v[0])
        if area < MIN_TRIANGLE_AREA_PX2:
            raise DegenerateGeometry(f"corners {a},{b},{c} are collinear (area={area:.3g}px^2)")


def solve_pose(corners, side_length: float, calib) -> Pose:
    """Rotation and translation of the marker relative to the camera.

    Args:
        corners: (4,2) pixel corners, TL, TR, BR, BL.
        side_length: marker side in meters.
        calib: CalibrationParameters.

    Raises:
        DegenerateGeometry: non-positive size, collinear corners or a failed solve.
    """
    s = float(side_length)
    if not np.isfinite(s) or s <= 0.0:
        raise DegenerateGeometry(f"marker side must be positive and finite, got {side_length}")

    img_pts = np.asarray(corners, dtype=np.float64).reshape(4, 2)
    _check_corners(img_pts)
    obj_pts = marker_object_points(s)

    K = calib.camera_matrix
    dist = calib.dist_coeffs
    try:
        ok, rvec, tvec = cv2.solvePnP(
            obj_pts, img_pts, K, dist, flags=cv2.SOLVEPNP_IPPE_SQUARE
        )
    except cv2.error as exc:
        raise DegenerateGeometry(f"solvePnP failed: {exc}") from exc
    if not ok:
        raise DegenerateGeometry("solvePnP found no solution")

    rvec = np.asarray(rvec, dtype=np.float64).reshape(3)
    tvec = np.asarray(tvec, dtype=np.float64).reshape(3)
    if not (np.isfinite(rvec).all() and np.isfinite(tvec).all()):
        raise DegenerateGeometry("solvePnP returned a non-finite pose")

    proj, _ = cv2.projectPoints(obj_pts, rvec, tvec, K, dist)
    err = np.asarray(proj, dtype=np.float64).reshape(4, 2) - img_pts
    rmse = float(np.sqrt(np.mean(np.sum(err * err, axis=1))))

    return Pose(rvec, tvec, s, rmse)
