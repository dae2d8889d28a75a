"""Single-camera ArUco size and pose tracking with a ground-distance scale cue."""

from .config import TrackerConfig
from .pipeline import ArucoTracker, FrameResult
from .worker import TrackerWorker

__all__ = ["TrackerConfig", "ArucoTracker", "FrameResult", "TrackerWorker"]
