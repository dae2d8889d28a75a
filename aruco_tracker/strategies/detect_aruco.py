import cv2
import numpy as np

from ..ip_types import DetectedMarker

DEFAULT_DICT = "4x4_250"

_FAMILIES = ("4X4", "5X5", "6X6", "7X7")
_SIZES = ("50", "100", "250", "1000")


def _normalize_name(name: str) -> str:
    key = (name or "").strip()
    if key.upper().startswith("DICT_"):
        key = key[5:]
    return key.lower()


def get_dict(name: str):
    """
    ArUco-only dictionary resolver (no AprilTag).
    Accepts "4x4_250" or "DICT_4X4_250"; unknown names raise ValueError.
    Works on OpenCV >= 4.7 (getPredefinedDictionary) and older (Dictionary_get).
    """
    key = _normalize_name(name)
    table = {
        f"{fam}_{size}".lower(): getattr(cv2.aruco, f"DICT_{fam}_{size}")
        for fam in _FAMILIES
        for size in _SIZES
    }
    table["original"] = cv2.aruco.DICT_ARUCO_ORIGINAL
    if key not in table:
        raise ValueError(f"Unknown ArUco dictionary {name!r}; expected one of {sorted(table)}")
    code = table[key]

    if hasattr(cv2.aruco, "getPredefinedDictionary"):           # OpenCV >= 4.7
        return cv2.aruco.getPredefinedDictionary(code)
    return cv2.aruco.Dictionary_get(code)                        # Older OpenCV


def _make_params():
    """Create detector parameters across OpenCV versions."""
    if hasattr(cv2.aruco, "DetectorParameters_create"):
        return cv2.aruco.DetectorParameters_create()
    return cv2.aruco.DetectorParameters()


class ArucoDetect:
    """
    Strategy: detect ArUco markers in a BGR8 (or grayscale) image.

    The dictionary is fixed at construction for the life of the detector.
    Each DetectedMarker carries corners as a (4,2) float32 array in OpenCV's
    ArUco winding: top-left, top-right, bottom-right, bottom-left (clockwise in
    image coordinates). The PnP object template relies on this order.
    """
    def __init__(self, dict_name: str = DEFAULT_DICT):
        self.dict_name = _normalize_name(dict_name)
        self.dictionary = get_dict(dict_name)
        self.params = _make_params()
        self._detector = None
        # Prefer the newer ArucoDetector API if present
        if hasattr(cv2.aruco, "ArucoDetector"):
            self._detector = cv2.aruco.ArucoDetector(self.dictionary, self.params)

    def detect(self, image) -> list[DetectedMarker]:
        if self._detector is not None:
            corners, ids, _rej = self._detector.detectMarkers(image)
        else:
            corners, ids, _rej = cv2.aruco.detectMarkers(
                image, self.dictionary, parameters=self.params
            )

        markers: list[DetectedMarker] = []
        if ids is not None and len(ids) > 0:
            for i, mid in enumerate(np.asarray(ids).flatten()):
                pts = np.asarray(corners[i], dtype=np.float32).reshape(4, 2)
                markers.append(DetectedMarker(int(mid), pts))
        return markers


def render_marker(marker_id: int, side_px: int, dict_name: str = DEFAULT_DICT) -> np.ndarray:
    """Render a single marker as a grayscale uint8 image (no quiet zone)."""
    dictionary = get_dict(dict_name)
    if hasattr(cv2.aruco, "generateImageMarker"):                # OpenCV >= 4.7
        return cv2.aruco.generateImageMarker(dictionary, int(marker_id), int(side_px))
    return cv2.aruco.drawMarker(dictionary, int(marker_id), int(side_px))
