from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional

import cv2
import numpy as np


@dataclass
class Frame:
    idx: int
    ts_iso: str
    image: Any  # numpy array
    timestamp_ns: int = 0
    encoding: str = "bgr8"

    def with_image(self, image: Any, encoding: str = "bgr8") -> "Frame":
        """Same header (index, timestamps), new pixel buffer."""
        return Frame(self.idx, self.ts_iso, image, self.timestamp_ns, encoding)


@dataclass(frozen=True)
class DetectedMarker:
    marker_id: int
    corners: np.ndarray  # (4,2) float32, TL, TR, BR, BL


@dataclass(frozen=True)
class Pose:
    rvec: np.ndarray  # (3,)
    tvec: np.ndarray  # (3,)
    marker_size_m: float
    reproj_rmse_px: float = 0.0

    @property
    def rotation_matrix(self) -> np.ndarray:
        R, _ = cv2.Rodrigues(np.asarray(self.rvec, dtype=np.float64).reshape(3))
        return R

    @property
    def depth(self) -> float:
        return float(np.asarray(self.tvec).reshape(3)[2])


@dataclass(frozen=True)
class MarkerEstimate:
    marker: DetectedMarker
    size_m: float
    pose: Optional[Pose]
    provisional: bool

    @property
    def marker_id(self) -> int:
        return self.marker.marker_id
