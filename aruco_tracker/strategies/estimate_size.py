"""Marker side length from pixel geometry and ground distance.

Pinhole similar triangles: an edge of ``p`` pixels seen with focal length
``fx`` subtends ``p / fx`` radians, which at range ``d`` is ``p / fx * d``
meters. The marker is assumed roughly fronto-parallel to the camera; tilt
foreshortens the measured edge and biases the size low.
"""

import math

import numpy as np

FIRST_EDGE = "first_edge"
MEAN_EDGES = "mean_edges"
SIZE_MODES = (FIRST_EDGE, MEAN_EDGES)


def pixel_edge_length(corners, mode: str = FIRST_EDGE) -> float:
    """Edge length in pixels.

    ``first_edge`` measures corners[0] -> corners[1] (top edge).
    ``mean_edges`` averages the four sides.
    """
    pts = np.asarray(corners, dtype=np.float64).reshape(4, 2)
    if mode == FIRST_EDGE:
        return float(np.linalg.norm(pts[0] - pts[1]))
    if mode == MEAN_EDGES:
        edges = np.linalg.norm(pts - np.roll(pts, -1, axis=0), axis=1)
        return float(edges.mean())
    raise ValueError(f"size mode must be one of {SIZE_MODES}, got {mode!r}")


def estimate_size(corners, focal_length_x: float, ground_distance: float,
                  mode: str = FIRST_EDGE) -> float:
    """Real-world marker side length in meters.

    Never raises on degenerate inputs: ``focal_length_x == 0`` gives inf/nan.
    Check the result with ``is_valid_size`` before using it.
    """
    edge = np.float64(pixel_edge_length(corners, mode))
    with np.errstate(divide="ignore", invalid="ignore"):
        size = edge / np.float64(focal_length_x) * np.float64(ground_distance)
    return float(size)


def is_valid_size(size: float) -> bool:
    return math.isfinite(size) and size >= 0.0
