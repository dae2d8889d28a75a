import threading
from typing import Tuple

DEFAULT_GROUND_DISTANCE_M = 1.0


class RangeCache:
    """Latest ground-distance sample, shared between the range and image paths.

    Last writer wins; there is no history and no validation. Until the first
    update, ``read()`` returns ``default`` and ``snapshot()`` reports the value
    as provisional.
    """

    def __init__(self, default: float = DEFAULT_GROUND_DISTANCE_M):
        self._lock = threading.Lock()
        self._value = float(default)
        self._has_sample = False
        self.default = float(default)

    def update(self, distance: float) -> None:
        with self._lock:
            self._value = float(distance)
            self._has_sample = True

    def read(self) -> float:
        with self._lock:
            return self._value

    def snapshot(self) -> Tuple[float, bool]:
        """Return ``(distance, provisional)`` read under one lock."""
        with self._lock:
            return self._value, not self._has_sample

    @property
    def has_sample(self) -> bool:
        with self._lock:
            return self._has_sample
