"""Runtime config value validation."""

from __future__ import annotations

from typing import Any

from .schema import ConfigError, LoadedConfig

CAMERA_TYPES = ("opencv", "mock")
MAX_CAMERAS = 2
LOG_LEVELS = ("debug", "info", "warning", "error", "critical")
MOCK_ORDERS = ("name_asc", "name_desc", "name_natural", "mtime_asc", "mtime_desc", "random")
MOCK_END_MODES = ("loop", "stop", "hold")


def validate_config(cfg: LoadedConfig) -> None:
    # runtime
    _require_choice("runtime.log_level", str(cfg.runtime.log_level).lower(), LOG_LEVELS)
    _require_float("runtime.max_runtime_s", cfg.runtime.max_runtime_s, min_v=0.0)
    _require_int("runtime.inspect_interval_ms", cfg.runtime.inspect_interval_ms, min_v=1)
    _require_int("runtime.opencv_num_threads", cfg.runtime.opencv_num_threads, min_v=0)

    # camera
    cam = cfg.camera
    _require_choice("camera.type", cam.type, CAMERA_TYPES)
    _require_str_list("camera.targets", cam.targets)
    if not (1 <= len(cam.targets) <= MAX_CAMERAS):
        raise ConfigError(f"camera.targets must list 1..{MAX_CAMERAS} cameras")
    _require_int("camera.default_index", cam.default_index, min_v=0)
    _require_int("camera.connect_attempts", cam.connect_attempts, min_v=1)
    _require_int("camera.settle_ms", cam.settle_ms, min_v=0)
    _require_int("camera.retry_delay_ms", cam.retry_delay_ms, min_v=0)
    _require_int("camera.probe_reads", cam.probe_reads, min_v=1)
    _require_int("camera.probe_interval_ms", cam.probe_interval_ms, min_v=0)
    _require_int("camera.capture_reads", cam.capture_reads, min_v=1)
    _require_int("camera.capture_interval_ms", cam.capture_interval_ms, min_v=0)
    _require_positive_float("camera.max_fps", cam.max_fps)
    default_fps = _require_positive_float("camera.default_fps", cam.default_fps)
    if default_fps > float(cam.max_fps):
        raise ConfigError("camera.default_fps must be <= camera.max_fps")
    _require_int("camera.stop_timeout_ms", cam.stop_timeout_ms, min_v=1)
    _require_int("camera.error_backoff_ms", cam.error_backoff_ms, min_v=0)
    _require_int("camera.enumerate_max_index", cam.enumerate_max_index, min_v=0)
    _require_int("camera.enumerate_settle_ms", cam.enumerate_settle_ms, min_v=0)
    _require_int("camera.buffer_size", cam.buffer_size, min_v=1)
    _require_int("camera.width", cam.width, min_v=0)
    _require_int("camera.height", cam.height, min_v=0)
    if cam.type == "mock":
        if not str(cam.image_dir or "").strip():
            raise ConfigError("camera.image_dir is required for the mock camera")
        _require_choice("camera.order", cam.order, MOCK_ORDERS)
        _require_choice("camera.end_mode", cam.end_mode, MOCK_END_MODES)

    # detect
    if not str(cfg.detect.impl or "").strip():
        raise ConfigError("detect.impl must not be empty")
    _require_int("detect.line_width", cfg.detect.line_width, min_v=1)


def _require_int(
    name: str, value: Any, *, min_v: int | None = None, max_v: int | None = None
) -> int:
    try:
        iv = int(value)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"{name} must be an integer") from e
    if min_v is not None and iv < min_v:
        op = ">=" if min_v != 1 else ">"
        threshold = min_v if min_v != 1 else 0
        raise ConfigError(f"{name} must be {op} {threshold}")
    if max_v is not None and iv > max_v:
        raise ConfigError(f"{name} must be <= {max_v}")
    return iv


def _require_float(
    name: str, value: Any, *, min_v: float | None = None, max_v: float | None = None
) -> float:
    try:
        fv = float(value)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"{name} must be a number") from e
    if min_v is not None and fv < min_v:
        raise ConfigError(f"{name} must be >= {min_v:g}")
    if max_v is not None and fv > max_v:
        raise ConfigError(f"{name} must be <= {max_v:g}")
    return fv


def _require_positive_float(name: str, value: Any) -> float:
    fv = _require_float(name, value)
    if not fv > 0:
        raise ConfigError(f"{name} must be > 0")
    return fv


def _require_choice(name: str, value: Any, choices: tuple[str, ...]) -> str:
    if value not in choices:
        raise ConfigError(f"{name} must be one of: {', '.join(choices)}")
    return value


def _require_str_list(name: str, value: Any) -> list[str]:
    if not isinstance(value, list):
        raise ConfigError(f"{name} must be a list of strings")
    for i, item in enumerate(value):
        if not isinstance(item, str):
            raise ConfigError(f"{name}[{i}] must be a string")
    return value


__all__ = ["validate_config"]
