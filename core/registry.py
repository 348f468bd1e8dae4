"""Name -> factory registries for camera backends and detectors."""

from __future__ import annotations

import importlib
from collections.abc import MutableMapping
from typing import TypeVar

T = TypeVar("T")


def normalize_name(name: str) -> str:
    return str(name or "").strip().lower()


def register_named(registry: MutableMapping[str, T], name: str):
    """Decorator registering a class or factory under `name` (case-insensitive)."""
    key = normalize_name(name)
    if not key:
        raise ValueError("registry name must not be empty")

    def decorator(obj: T) -> T:
        existing = registry.get(key)
        if existing is not None and existing is not obj:
            raise ValueError(f"'{key}' is already registered to {existing!r}")
        registry[key] = obj
        return obj

    return decorator


def resolve_registered(
    registry: MutableMapping[str, T],
    name: str,
    *,
    package: str,
    unknown_label: str,
) -> T:
    """Look up `name`, importing module `<package>.<name>` on first use."""
    key = normalize_name(name)
    import_err: Exception | None = None
    if key and key not in registry:
        try:
            importlib.import_module(f"{package}.{key}")
        except ImportError as e:
            import_err = e
    if key not in registry:
        hint = f" (import failed: {import_err})" if import_err else ""
        available = ", ".join(sorted(registry)) or "none"
        raise ValueError(
            f"Unknown {unknown_label} '{name}'. Available: {available}{hint}"
        )
    return registry[key]


__all__ = ["normalize_name", "register_named", "resolve_registered"]
