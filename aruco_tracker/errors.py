class ArucoTrackerError(RuntimeError):
    """Base class for tracker errors."""


class CalibrationLoadFailure(ArucoTrackerError):
    """Calibration file missing or cannot be opened."""


class CalibrationDataMissing(ArucoTrackerError):
    """Calibration file opened but a required matrix is absent or malformed."""


class DegenerateGeometry(ArucoTrackerError):
    """Corner correspondence cannot yield a pose (collinear, zero area, zero size)."""


class FrameDecodeError(ArucoTrackerError):
    """A single frame could not be converted to BGR8."""
