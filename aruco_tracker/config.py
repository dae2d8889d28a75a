from __future__ import annotations

import json
from dataclasses import dataclass, asdict, field
from pathlib import Path
from typing import Any, Optional

from .services.range_cache import DEFAULT_GROUND_DISTANCE_M
from .strategies.estimate_size import FIRST_EDGE, SIZE_MODES

SOURCE_TYPES = ("v4l2", "rtp_h264_udp", "synthetic")
RANGE_TYPES = ("mavlink", "static", "none")


@dataclass
class SourceConfig:
    """Configuration for frame source (camera, RTP stream, synthetic)."""

    type: str = "v4l2"  # "v4l2", "rtp_h264_udp", "synthetic"
    port: Optional[int] = None  # For RTP streams: UDP port

    def as_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class RangeConfig:
    """Configuration for the ground-distance source."""

    type: str = "mavlink"  # "mavlink", "static", "none"
    connection: str = "udpin:0.0.0.0:14550"
    baud: int = 921600  # serial links only
    sensor_id: Optional[int] = None  # DISTANCE_SENSOR id filter
    distance_m: Optional[float] = None  # For static range

    def as_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class TrackerConfig:
    camera_name: str = "cam"
    device: int | str = 0
    fps: int = 30
    width: int = 640
    height: int = 480
    calibration_path: str = "usb_cam_calib.yml"
    session_root: str = "data/sessions"
    duration_sec: float = 0.0  # 0 = run until stopped
    max_frames: Optional[int] = None
    aruco_dict: str = "4x4_250"
    default_ground_distance_m: float = DEFAULT_GROUND_DISTANCE_M
    size_mode: str = FIRST_EDGE
    save_frames: bool = False
    save_annotated: bool = True
    dry_run: bool = False
    source: SourceConfig = field(default_factory=SourceConfig)
    range: RangeConfig = field(default_factory=RangeConfig)

    def as_dict(self) -> dict[str, Any]:
        return asdict(self)

    def apply_overrides(self, **kwargs: Any) -> "TrackerConfig":
        for key, value in kwargs.items():
            if value is not None and hasattr(self, key):
                setattr(self, key, value)
        return self


def _load_yaml(path: Path) -> dict[str, Any]:
    import yaml

    with path.open("r", encoding="utf-8") as fp:
        data = yaml.safe_load(fp) or {}
    if not isinstance(data, dict):
        raise ValueError("YAML config root must be a mapping")
    return data


def _choice(value: Any, choices: tuple[str, ...], name: str) -> str:
    value = str(value)
    if value not in choices:
        raise ValueError(f"{name} must be one of {choices}, got {value!r}")
    return value


def _optional(value: Any, cast):
    return None if value is None else cast(value)


def load_config(path: str | Path) -> TrackerConfig:
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(f"Config not found: {p}")

    if p.suffix.lower() in {".yaml", ".yml"}:
        raw = _load_yaml(p)
    else:
        with p.open("r", encoding="utf-8") as fp:
            raw = json.load(fp)

    if not isinstance(raw, dict):
        raise ValueError("Config root must be a JSON/YAML object")

    cfg = TrackerConfig()
    cfg.camera_name = str(raw.get("camera_name", cfg.camera_name))
    cfg.device = raw.get("device", cfg.device)
    cfg.fps = int(raw.get("fps", cfg.fps))
    cfg.width = int(raw.get("width", cfg.width))
    cfg.height = int(raw.get("height", cfg.height))
    cfg.calibration_path = str(raw.get("calibration_path", cfg.calibration_path))
    cfg.session_root = str(raw.get("session_root", cfg.session_root))
    cfg.duration_sec = float(raw.get("duration_sec", cfg.duration_sec))
    cfg.max_frames = _optional(raw.get("max_frames", cfg.max_frames), int)
    cfg.aruco_dict = str(raw.get("aruco_dict", cfg.aruco_dict))
    cfg.default_ground_distance_m = float(
        raw.get("default_ground_distance_m", cfg.default_ground_distance_m)
    )
    cfg.size_mode = _choice(raw.get("size_mode", cfg.size_mode), SIZE_MODES, "size_mode")
    cfg.save_frames = bool(raw.get("save_frames", cfg.save_frames))
    cfg.save_annotated = bool(raw.get("save_annotated", cfg.save_annotated))
    cfg.dry_run = bool(raw.get("dry_run", cfg.dry_run))

    src_raw = raw.get("source")
    if isinstance(src_raw, dict):
        src = SourceConfig()
        src.type = _choice(src_raw.get("type", src.type), SOURCE_TYPES, "source.type")
        src.port = _optional(src_raw.get("port", src.port), int)
        cfg.source = src

    rng_raw = raw.get("range")
    if isinstance(rng_raw, dict):
        rng = RangeConfig()
        rng.type = _choice(rng_raw.get("type", rng.type), RANGE_TYPES, "range.type")
        rng.connection = str(rng_raw.get("connection", rng.connection))
        rng.baud = int(rng_raw.get("baud", rng.baud))
        rng.sensor_id = _optional(rng_raw.get("sensor_id", rng.sensor_id), int)
        rng.distance_m = _optional(rng_raw.get("distance_m", rng.distance_m), float)
        cfg.range = rng

    return cfg
