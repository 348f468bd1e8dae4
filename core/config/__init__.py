"""Config package facade."""

from .loader import load_config
from .schema import (
    CameraConfigBlock,
    ConfigError,
    DetectConfigBlock,
    LoadedConfig,
    RuntimeConfig,
)
from .validate import validate_config

__all__ = [
    "ConfigError",
    "LoadedConfig",
    "RuntimeConfig",
    "CameraConfigBlock",
    "DetectConfigBlock",
    "load_config",
    "validate_config",
]
