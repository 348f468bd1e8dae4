# -- coding: utf-8 --

import logging
import os
import random
import re
import threading

import cv2
import numpy as np

from camera.base import BaseCamera, CameraConfig, register_camera

L = logging.getLogger("aoi_runtime.camera.mock")

IMAGE_EXTS = (".jpg", ".jpeg", ".png", ".bmp")
END_MODES = ("loop", "stop", "hold")
MOCK_FPS = 10.0


def _natural_key(path: str):
    name = os.path.basename(path)
    return [int(tok) if tok.isdigit() else tok.lower() for tok in re.split(r"(\d+)", name)]


def _name_key(path: str):
    return os.path.basename(path).lower()


# order -> (sort key, reverse); "random" shuffles instead.
_SORT_KEYS = {
    "name_asc": (_name_key, False),
    "name_desc": (_name_key, True),
    "name_natural": (_natural_key, False),
    "mtime_asc": (os.path.getmtime, False),
    "mtime_desc": (os.path.getmtime, True),
}
ORDERS = tuple(_SORT_KEYS) + ("random",)


def order_images(paths: list[str], order: str) -> list[str]:
    if order == "random":
        shuffled = list(paths)
        random.shuffle(shuffled)
        return shuffled
    key, reverse = _SORT_KEYS[order]
    return sorted(paths, key=key, reverse=reverse)


def scan_image_dir(image_dir: str, order: str) -> list[str]:
    """Image files directly inside `image_dir` (relative to the CWD), ordered."""
    root = str(image_dir or "").strip()
    if not root:
        raise RuntimeError("mock image_dir is required")
    root = os.path.abspath(root)
    if not os.path.isdir(root):
        raise RuntimeError(f"mock image_dir not found: {root}")
    paths = [
        entry.path
        for entry in os.scandir(root)
        if entry.is_file() and os.path.splitext(entry.name)[1].lower() in IMAGE_EXTS
    ]
    if not paths:
        L.warning("no images found in %s", root)
    return order_images(paths, order)


def imread_any(path: str, flags: int = cv2.IMREAD_COLOR) -> np.ndarray | None:
    """`cv2.imread` with a byte-buffer fallback for non-ASCII paths."""
    arr = cv2.imread(path, flags)
    if arr is not None:
        return arr
    try:
        data = np.fromfile(path, dtype=np.uint8)
    except OSError:
        return None
    if data.size == 0:
        return None
    return cv2.imdecode(data, flags)


class ImageDirCapture:
    """VideoCapture-like handle replaying still images; opened iff it has images.

    At the end of the list `end_mode` decides: "loop" restarts (reshuffling a
    random order), "hold" repeats the last image, "stop" fails further reads.
    """

    def __init__(self, paths: list[str], order: str = "name_asc", end_mode: str = "loop"):
        self._paths = list(paths)
        self._order = order
        self._end_mode = end_mode
        self._pos = 0
        self._opened = bool(self._paths)
        self._last_shape: tuple[int, ...] | None = None
        self._lock = threading.Lock()

    def _advance(self) -> str | None:
        if self._pos >= len(self._paths):
            if self._end_mode == "hold":
                return self._paths[-1]
            if self._end_mode != "loop":
                return None
            if self._order == "random":
                self._paths = order_images(self._paths, "random")
            self._pos = 0
        path = self._paths[self._pos]
        self._pos += 1
        return path

    def isOpened(self) -> bool:
        return self._opened

    def read(self):
        with self._lock:
            path = self._advance() if self._opened else None
        if path is None:
            return False, None
        img = imread_any(path, cv2.IMREAD_COLOR)
        if img is None:
            L.warning("mock read failed: %s", path)
            return False, None
        self._last_shape = img.shape
        return True, img

    def get(self, prop_id: int) -> float:
        if prop_id == cv2.CAP_PROP_FPS:
            return MOCK_FPS
        shape = self._last_shape
        if shape is None:
            return 0.0
        if prop_id == cv2.CAP_PROP_FRAME_WIDTH:
            return float(shape[1])
        if prop_id == cv2.CAP_PROP_FRAME_HEIGHT:
            return float(shape[0])
        return 0.0

    def set(self, prop_id: int, value: float) -> bool:
        return False

    def release(self) -> None:
        with self._lock:
            self._opened = False


@register_camera("mock")
class MockCamera(BaseCamera):
    """Offline backend: device `default_index` replays `image_dir`."""

    name = "Mock Camera"

    def __init__(self, cfg: CameraConfig):
        super().__init__(cfg)
        self.order = str(cfg.order or "name_asc").strip().lower()
        self.end_mode = str(cfg.end_mode or "loop").strip().lower()
        if self.order not in ORDERS:
            raise ValueError(f"mock order must be one of {list(ORDERS)}, got {self.order!r}")
        if self.end_mode not in END_MODES:
            raise ValueError(
                f"mock end_mode must be one of {list(END_MODES)}, got {self.end_mode!r}"
            )

    def open(self, target):
        # Only the default device exists; other indices report closed.
        if isinstance(target, int) and target != int(self.cfg.default_index):
            return ImageDirCapture([])
        paths = scan_image_dir(self.cfg.image_dir, self.order)
        return ImageDirCapture(paths, self.order, self.end_mode)


__all__ = ["MockCamera", "ImageDirCapture", "imread_any", "scan_image_dir", "ORDERS", "END_MODES"]
