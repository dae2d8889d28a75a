"""Ground-distance sources feeding the range cache.

A range source pushes each new distance (meters) into a callback from its
own thread; it never blocks the image path.
"""

from __future__ import annotations

import logging
import threading
import time
from abc import ABC, abstractmethod
from typing import Callable, Optional

from pymavlink import mavutil

logger = logging.getLogger(__name__)

RangeCallback = Callable[[float], None]


class RangeSource(ABC):
    @abstractmethod
    def start(self, callback: RangeCallback) -> None: ...

    @abstractmethod
    def stop(self) -> None: ...


class StaticRangeSource(RangeSource):
    """Emits one fixed distance at start (bench tests, fixed-height rigs)."""

    def __init__(self, distance_m: float):
        self.distance_m = float(distance_m)

    def start(self, callback: RangeCallback) -> None:
        callback(self.distance_m)

    def stop(self) -> None:
        return None


class MavlinkRangeSource(RangeSource):
    """Listens for DISTANCE_SENSOR messages from the flight controller.

    ``current_distance`` arrives in centimeters and is forwarded in meters.
    With ``sensor_id`` set, other rangefinders on the link are ignored.
    """

    MSG_TYPE = "DISTANCE_SENSOR"

    def __init__(
        self,
        connection_string: str,
        baud: int = 921600,
        sensor_id: Optional[int] = None,
        recv_timeout: float = 1.0,
    ):
        self.connection_string = connection_string
        self.baud = baud
        self.sensor_id = sensor_id
        self.recv_timeout = recv_timeout
        self.connection = None
        self.samples = 0
        self._callback: Optional[RangeCallback] = None
        self._running = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def connect(self):
        logger.info("Connecting to MAVLink device at %s", self.connection_string)
        if self.connection_string.startswith("/dev/"):
            return mavutil.mavlink_connection(self.connection_string, baud=self.baud)
        return mavutil.mavlink_connection(self.connection_string)

    def start(self, callback: RangeCallback) -> None:
        self._callback = callback
        self.connection = self.connect()
        self._running.set()
        self._thread = threading.Thread(target=self._listen, name="mavlink-range", daemon=True)
        self._thread.start()

    def handle(self, msg) -> Optional[float]:
        """Convert one DISTANCE_SENSOR message; returns the distance forwarded, if any."""
        if msg is None or msg.get_type() != self.MSG_TYPE:
            return None
        if self.sensor_id is not None and int(msg.id) != self.sensor_id:
            return None
        distance_m = float(msg.current_distance) / 100.0
        self.samples += 1
        if self._callback is not None:
            self._callback(distance_m)
        return distance_m

    def _listen(self) -> None:
        while self._running.is_set():
            try:
                msg = self.connection.recv_match(
                    type=self.MSG_TYPE, blocking=True, timeout=self.recv_timeout
                )
            except Exception as e:
                logger.warning("Error receiving %s: %s", self.MSG_TYPE, e)
                time.sleep(0.1)
                continue
            self.handle(msg)

    def stop(self) -> None:
        self._running.clear()
        if self._thread is not None:
            self._thread.join(timeout=2.0 * self.recv_timeout + 1.0)
            self._thread = None
        if self.connection is not None:
            try:
                self.connection.close()
            except OSError as e:
                logger.debug("closing MAVLink connection: %s", e)
            self.connection = None


def build_range_source(cfg) -> Optional[RangeSource]:
    """Range source for a TrackerConfig; None keeps the default distance."""
    rng = cfg.range
    if rng.type == "none":
        return None
    if rng.type == "static":
        if rng.distance_m is None:
            raise ValueError("range.distance_m is required for a static range source")
        return StaticRangeSource(rng.distance_m)
    return MavlinkRangeSource(rng.connection, baud=rng.baud, sensor_id=rng.sensor_id)
