"""Frame source abstraction for camera input.

Provides a unified interface for different frame sources:
- Device cameras (USB via V4L2)
- RTP streams (video over network)
- Synthetic marker scenes (dry runs and tests)
"""

from __future__ import annotations

import re
import time
from abc import ABC, abstractmethod
from typing import Any, Optional

import cv2
import numpy as np

from .ip_types import Frame
from .strategies.detect_aruco import render_marker


def _now_iso() -> str:
    return time.strftime("%Y-%m-%dT%H:%M:%S")


class FrameSource(ABC):
    """Abstract base class for frame sources."""

    @abstractmethod
    def start(self) -> None:
        """Start the frame source. Called before any read() calls."""
        ...

    @abstractmethod
    def read(self) -> Frame | None:
        """Read next frame, or None if no frame is available right now."""
        ...

    @abstractmethod
    def stop(self) -> None:
        """Stop the frame source and release resources."""
        ...


class DeviceCameraSource(FrameSource):
    """USB camera source using OpenCV's V4L2 interface."""

    def __init__(self, device: int | str, fps: int, width: int, height: int):
        self.device = device
        self.fps = fps
        self.width = width
        self.height = height
        self.cap: Any = None
        self.frame_id = 0

    def start(self) -> None:
        """Open the camera device."""
        if isinstance(self.device, int):
            self.cap = cv2.VideoCapture(self.device, cv2.CAP_V4L2)
        else:
            dev_str = str(self.device)
            match = re.match(r"^/dev/video(\d+)$", dev_str)
            if match:
                self.cap = cv2.VideoCapture(int(match.group(1)), cv2.CAP_V4L2)
            else:
                self.cap = cv2.VideoCapture(dev_str)

        self.cap.set(cv2.CAP_PROP_FOURCC, cv2.VideoWriter_fourcc(*"MJPG"))
        self.cap.set(cv2.CAP_PROP_FRAME_WIDTH, self.width)
        self.cap.set(cv2.CAP_PROP_FRAME_HEIGHT, self.height)
        self.cap.set(cv2.CAP_PROP_FPS, self.fps)

        if not self.cap.isOpened():
            raise RuntimeError(f"Failed to open camera: {self.device}")

        self.frame_id = 0

    def read(self) -> Frame | None:
        if self.cap is None:
            return None
        ok, img = self.cap.read()
        if not ok:
            return None
        self.frame_id += 1
        return Frame(self.frame_id, _now_iso(), img, time.time_ns(), "bgr8")

    def stop(self) -> None:
        if self.cap is not None:
            self.cap.release()
            self.cap = None


class RTPStreamSource(FrameSource):
    """RTP H.264 stream source using OpenCV's GStreamer backend."""

    def __init__(self, port: int, fps: int, width: int, height: int):
        self.port = port
        self.fps = fps
        self.width = width
        self.height = height
        self.frame_id = 0
        self.cap: Any = None

    def pipeline(self) -> str:
        return (
            f"udpsrc port={self.port} "
            f'caps="application/x-rtp,media=video,encoding-name=H264,payload=96,clock-rate=90000" ! '
            f"rtph264depay ! "
            f"h264parse ! "
            f"avdec_h264 ! "
            f"videoconvert ! "
            f"video/x-raw,format=BGR ! "
            f"appsink drop=true max-buffers=1 sync=false"
        )

    def start(self) -> None:
        self.cap = cv2.VideoCapture(self.pipeline(), cv2.CAP_GSTREAMER)
        if not self.cap.isOpened():
            raise RuntimeError(
                f"Failed to open RTP stream on port {self.port}. "
                f"Ensure GStreamer is installed: "
                f"sudo apt-get install gstreamer1.0-plugins-good gstreamer1.0-plugins-bad"
            )
        self.frame_id = 0

    def read(self) -> Frame | None:
        if self.cap is None:
            raise RuntimeError("RTP stream not started")
        ok, img = self.cap.read()
        if not ok:
            return None
        self.frame_id += 1
        return Frame(self.frame_id, _now_iso(), img, time.time_ns(), "bgr8")

    def stop(self) -> None:
        if self.cap is not None:
            self.cap.release()
            self.cap = None


class SyntheticMarkerSource(FrameSource):
    """White BGR canvas with one upright, head-on marker.

    ``marker_px`` is the rendered side length; ``center`` defaults to the
    image center. ``fps <= 0`` disables pacing.
    """

    def __init__(
        self,
        fps: int,
        width: int,
        height: int,
        marker_id: int = 0,
        marker_px: int = 120,
        center: Optional[tuple[int, int]] = None,
        dict_name: str = "4x4_250",
    ):
        self.fps = fps
        self.width = width
        self.height = height
        self.frame_id = 0
        self._last = 0.0

        canvas = np.full((height, width), 255, dtype=np.uint8)
        cx, cy = center if center is not None else (width // 2, height // 2)
        x0, y0 = cx - marker_px // 2, cy - marker_px // 2
        if x0 < 0 or y0 < 0 or x0 + marker_px > width or y0 + marker_px > height:
            raise ValueError("synthetic marker does not fit in the frame")
        canvas[y0:y0 + marker_px, x0:x0 + marker_px] = render_marker(marker_id, marker_px, dict_name)
        self.image = cv2.cvtColor(canvas, cv2.COLOR_GRAY2BGR)
        self.origin = (x0, y0)

    def start(self) -> None:
        self._last = time.time()
        self.frame_id = 0

    def read(self) -> Frame | None:
        if self.fps > 0:
            wait = max(0.0, (1.0 / self.fps) - (time.time() - self._last))
            if wait > 0:
                time.sleep(wait)
        self._last = time.time()
        self.frame_id += 1
        return Frame(self.frame_id, _now_iso(), self.image.copy(), time.time_ns(), "bgr8")

    def stop(self) -> None:
        return None


def build_frame_source(cfg) -> FrameSource:
    """Frame source for a TrackerConfig."""
    if cfg.dry_run or cfg.source.type == "synthetic":
        return SyntheticMarkerSource(cfg.fps, cfg.width, cfg.height, dict_name=cfg.aruco_dict)
    if cfg.source.type == "rtp_h264_udp":
        if cfg.source.port is None:
            raise ValueError("source.port is required for rtp_h264_udp")
        return RTPStreamSource(cfg.source.port, cfg.fps, cfg.width, cfg.height)
    return DeviceCameraSource(cfg.device, cfg.fps, cfg.width, cfg.height)
