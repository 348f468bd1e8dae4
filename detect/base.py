from typing import Callable, Dict, Protocol, Tuple

import cv2
import numpy as np
from core.registry import register_named, resolve_registered


class Detector(Protocol):
    def detect(
        self, img: np.ndarray
    ) -> Tuple[bool, str, np.ndarray | None, str | None]:
        """Return ok flag, message, overlay image (or None), and result_code."""
        ...


DetectorFactory = Callable[..., Detector]

_registry: Dict[str, DetectorFactory] = {}


def register_detector(name: str):
    return register_named(_registry, name)


def create_detector(
    name: str,
    params: dict,
    *,
    generate_overlay: bool = True,
) -> Detector:
    # `detect.impl: aoi` resolves to module detect.aoi on first use.
    factory = resolve_registered(
        _registry,
        name,
        package=__package__ or "detect",
        unknown_label="detector impl",
    )
    return factory(dict(params or {}), generate_overlay)


def create_detector_from_loaded_config(cfg) -> Detector:
    """Build the configured detector; detect params win over `detect.line_width`."""
    params = {"line_width": int(cfg.detect.line_width), **(cfg.detect_params or {})}
    return create_detector(
        cfg.detect.impl,
        params,
        generate_overlay=bool(cfg.detect.preview_enabled),
    )


def encode_image_jpeg(img: np.ndarray, quality: int = 90) -> Tuple[bytes, str]:
    """Encode a gray or BGR image; returns (bytes, content_type)."""
    if img is None or img.size == 0:
        raise ValueError("cannot encode an empty image")
    if img.dtype != np.uint8:
        img = np.clip(img, 0, 255).astype(np.uint8)
    ok, buf = cv2.imencode(".jpg", img, [int(cv2.IMWRITE_JPEG_QUALITY), int(quality)])
    if not ok:
        raise RuntimeError("opencv_imencode_failed")
    return buf.tobytes(), "image/jpeg"


__all__ = [
    "Detector",
    "DetectorFactory",
    "register_detector",
    "create_detector",
    "create_detector_from_loaded_config",
    "encode_image_jpeg",
]
