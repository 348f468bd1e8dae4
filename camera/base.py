# -- coding: utf-8 --

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, List, Protocol, Tuple, Type

from core.registry import register_named, resolve_registered

CameraFactory = Dict[str, Type["BaseCamera"]]
_registry: CameraFactory = {}


class CaptureHandle(Protocol):
    """Subset of the `cv2.VideoCapture` API a camera backend must provide."""

    def isOpened(self) -> bool: ...
    def read(self) -> Tuple[bool, Any]: ...
    def get(self, prop_id: int) -> float: ...
    def set(self, prop_id: int, value: float) -> bool: ...
    def release(self) -> None: ...


@dataclass
class CameraConfig:
    target: str = ""
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


def build_camera_config(cfg_block, *, target: str | None = None) -> CameraConfig:
    targets: List[str] = list(getattr(cfg_block, "targets", None) or [""])
    return CameraConfig(
        target=str(target if target is not None else targets[0] or ""),
        default_index=int(cfg_block.default_index),
        connect_attempts=int(cfg_block.connect_attempts),
        settle_ms=int(cfg_block.settle_ms),
        retry_delay_ms=int(cfg_block.retry_delay_ms),
        probe_reads=int(cfg_block.probe_reads),
        probe_interval_ms=int(cfg_block.probe_interval_ms),
        capture_reads=int(cfg_block.capture_reads),
        capture_interval_ms=int(cfg_block.capture_interval_ms),
        max_fps=float(cfg_block.max_fps),
        default_fps=float(cfg_block.default_fps),
        stop_timeout_ms=int(cfg_block.stop_timeout_ms),
        error_backoff_ms=int(cfg_block.error_backoff_ms),
        enumerate_max_index=int(cfg_block.enumerate_max_index),
        enumerate_settle_ms=int(cfg_block.enumerate_settle_ms),
        buffer_size=int(cfg_block.buffer_size),
        width=int(cfg_block.width),
        height=int(cfg_block.height),
        image_dir=str(cfg_block.image_dir),
        order=str(cfg_block.order),
        end_mode=str(cfg_block.end_mode),
    )


def build_camera_configs(cfg_block) -> List[CameraConfig]:
    """One CameraConfig per configured target (one or two cameras)."""
    targets = list(getattr(cfg_block, "targets", None) or [""])
    return [build_camera_config(cfg_block, target=str(t or "")) for t in targets]


def resolve_target(target: str, default_index: int = 0) -> int | str:
    """Map a target string to a local device index or a stream URL.

    An empty string selects `default_index`; an integer string selects that
    device; anything else is handed to the backend as a URL.
    """
    raw = str(target or "").strip()
    if not raw:
        return int(default_index)
    try:
        return int(raw)
    except ValueError:
        return raw


class BaseCamera(ABC):
    """Camera backend: opens capture handles for a device index or URL."""

    name = "camera"

    def __init__(self, cfg: CameraConfig):
        self.cfg = cfg

    @abstractmethod
    def open(self, target: int | str) -> CaptureHandle:
        """Return a capture handle; it may report isOpened() == False."""

    def describe(self, index: int) -> str:
        return f"{self.name} {index}"


def register_camera(name: str):
    return register_named(_registry, name)


def create_camera(name: str, cfg: CameraConfig) -> BaseCamera:
    cls = resolve_registered(
        _registry,
        name,
        package=__package__ or "camera",
        unknown_label="camera type",
    )
    return cls(cfg)


__all__ = [
    "CaptureHandle",
    "CameraConfig",
    "build_camera_config",
    "build_camera_configs",
    "resolve_target",
    "BaseCamera",
    "register_camera",
    "create_camera",
]
