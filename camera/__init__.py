from .base import (
    BaseCamera,
    CameraConfig,
    CaptureHandle,
    build_camera_config,
    build_camera_configs,
    create_camera,
    register_camera,
    resolve_target,
)
from .source import FrameSource

__all__ = [
    "BaseCamera",
    "CameraConfig",
    "CaptureHandle",
    "build_camera_config",
    "build_camera_configs",
    "create_camera",
    "register_camera",
    "resolve_target",
    "FrameSource",
]
