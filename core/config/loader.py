"""YAML loader and section builders for runtime configuration.

A config directory holds exactly one `main_*.yaml` with `runtime`, `camera`
and `detect` sections, plus the detector parameter file it references via
`detect.config_file` (resolved relative to the directory).
"""

from __future__ import annotations

import glob
import os
from typing import Any

import yaml

from .schema import (
    CameraConfigBlock,
    ConfigError,
    DetectConfigBlock,
    LoadedConfig,
    RuntimeConfig,
)

ROOT_SECTIONS = ("runtime", "camera", "detect")


def load_config(config_dir: str = "config") -> LoadedConfig:
    main_path = _locate_main_file(config_dir)
    doc = _load_mapping(main_path)
    for key in doc:
        if key not in ROOT_SECTIONS:
            raise ConfigError(f"Unknown field <root>.{key} in {main_path}")

    runtime = _fill(RuntimeConfig(), _mapping_at(doc, "runtime", main_path), "runtime", main_path)
    camera = _camera_block(_mapping_at(doc, "camera", main_path), main_path)
    detect = _fill(DetectConfigBlock(), _mapping_at(doc, "detect", main_path), "detect", main_path)

    detect_path = _detect_params_path(config_dir, detect, main_path)
    return LoadedConfig(
        runtime=runtime,
        camera=camera,
        detect=detect,
        detect_params=_load_mapping(detect_path),
        paths={"main": main_path, "detect": detect_path},
    )


def _locate_main_file(config_dir: str) -> str:
    found = sorted(
        path
        for ext in ("yaml", "yml")
        for path in glob.glob(os.path.join(config_dir, f"main_*.{ext}"))
    )
    if not found:
        raise ConfigError(f"No main_*.yaml found under {config_dir}")
    if len(found) > 1:
        raise ConfigError(f"Expected exactly one main_*.yaml, found: {', '.join(found)}")
    return found[0]


def _detect_params_path(config_dir: str, detect: DetectConfigBlock, main_path: str) -> str:
    name = str(detect.config_file or "").strip()
    if not name:
        raise ConfigError(f"detect.config_file is required in {main_path}")
    path = name if os.path.isabs(name) else os.path.join(config_dir, name)
    if not os.path.exists(path):
        raise ConfigError(f"Detect config not found: {path}")
    return path


def _load_mapping(path: str) -> dict[str, Any]:
    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"YAML root must be a mapping: {path}")
    return data


def _mapping_at(data: dict[str, Any], key: str, main_path: str, label: str | None = None) -> dict[str, Any]:
    value = data.get(key)
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ConfigError(f"'{label or key}' must be a mapping in {main_path}")
    return value


def _fill(obj, values: dict[str, Any], section: str, main_path: str, *, skip: tuple[str, ...] = ()):
    """Set dataclass fields on `obj` from `values`; unknown keys are errors."""
    fields = type(obj).__dataclass_fields__
    for key, value in values.items():
        if key not in fields or key in skip:
            raise ConfigError(f"Unknown field {section}.{key} in {main_path}")
        setattr(obj, key, value)
    return obj


def _camera_block(data: dict[str, Any], main_path: str) -> CameraConfigBlock:
    """Build the camera block from `camera.common` and the selected backend block.

    Blocks for other backends may stay in the file; only `camera.<type>` applies
    and it overrides `camera.common`.
    """
    cfg = CameraConfigBlock()
    cfg.type = str(data.get("type") or cfg.type).strip()

    stray = [k for k, v in data.items() if k not in ("type", "common") and not isinstance(v, dict)]
    if stray:
        raise ConfigError(
            f"camera.{stray[0]} must be nested under camera.common or camera.{cfg.type} in {main_path}"
        )

    for block_name in ("common", cfg.type):
        label = f"camera.{block_name}"
        _fill(cfg, _mapping_at(data, block_name, main_path, label), label, main_path, skip=("type",))

    targets = cfg.targets
    if isinstance(targets, (str, int)):
        targets = [targets]
    if isinstance(targets, list):
        # `targets: [0, 1]` names device indices.
        targets = [
            str(t) if isinstance(t, int) and not isinstance(t, bool) else t for t in targets
        ]
    cfg.targets = targets
    return cfg


__all__ = ["load_config", "ROOT_SECTIONS"]
