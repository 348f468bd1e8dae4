"""Typed config schema blocks shared by loader/validator/runtime."""

from dataclasses import dataclass, field
from typing import Any, Dict, List


class ConfigError(Exception):
    pass


@dataclass
class RuntimeConfig:
    save_dir: str = "data"
    max_runtime_s: float = 0.0
    inspect_interval_ms: int = 1000
    opencv_num_threads: int = 0
    log_level: str = "info"


@dataclass
class CameraConfigBlock:
    type: str = "opencv"
    targets: List[str] = field(default_factory=lambda: [""])
    default_index: int = 0
    connect_attempts: int = 3
    settle_ms: int = 500
    retry_delay_ms: int = 1000
    probe_reads: int = 10
    probe_interval_ms: int = 100
    capture_reads: int = 10
    capture_interval_ms: int = 50
    max_fps: float = 60.0
    default_fps: float = 30.0
    stop_timeout_ms: int = 1000
    error_backoff_ms: int = 100
    enumerate_max_index: int = 10
    enumerate_settle_ms: int = 100
    buffer_size: int = 1
    width: int = 0
    height: int = 0
    image_dir: str = ""
    order: str = "name_asc"
    end_mode: str = "loop"


@dataclass
class DetectConfigBlock:
    impl: str = "aoi"
    config_file: str = ""
    preview_enabled: bool = True
    line_width: int = 2


@dataclass
class LoadedConfig:
    runtime: RuntimeConfig
    camera: CameraConfigBlock
    detect: DetectConfigBlock
    detect_params: Dict[str, Any]
    paths: Dict[str, str] = field(default_factory=dict)


__all__ = [
    "ConfigError",
    "RuntimeConfig",
    "CameraConfigBlock",
    "DetectConfigBlock",
    "LoadedConfig",
]
