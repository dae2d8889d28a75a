import logging

import cv2
import numpy as np

logger = logging.getLogger(__name__)


def annotate(image, markers, poses, calib, axis_thickness: int = 2) -> np.ndarray:
    """Draw marker outlines and pose axes on a copy of ``image``.

    ``poses`` is a sequence of ``(marker, Pose)`` pairs; markers without an
    entry are outlined only. Axis length equals the pose's marker size.
    With no markers the returned copy is pixel-identical to the input.
    """
    draw = np.array(image, copy=True)
    if not markers:
        return draw

    ids = np.array([m.marker_id for m in markers], dtype=np.int32).reshape(-1, 1)
    corners = [np.asarray(m.corners, dtype=np.float32).reshape(1, 4, 2) for m in markers]
    try:
        cv2.aruco.drawDetectedMarkers(draw, corners, ids)
    except cv2.error as exc:
        logger.debug("drawDetectedMarkers failed: %s", exc)

    for marker, pose in poses:
        try:
            cv2.drawFrameAxes(
                draw,
                calib.camera_matrix,
                calib.dist_coeffs,
                pose.rvec,
                pose.tvec,
                pose.marker_size_m,
                axis_thickness,
            )
        except cv2.error as exc:
            logger.debug("drawFrameAxes failed for marker %d: %s", marker.marker_id, exc)

    return draw
