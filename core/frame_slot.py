"""Latest-frame hand-off between a capture thread and its consumers."""

from __future__ import annotations

import threading
import time
from datetime import datetime

import numpy as np


class LatestFrameSlot:
    """Holds only the most recent frame; a new frame overwrites the previous one.

    `put` takes ownership of the array it is given; callers hand over a private
    copy (`FrameSource` delivers one). `get` returns a fresh copy, so readers
    never share the stored buffer.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._frame: np.ndarray | None = None
        self._captured_at: datetime | None = None
        self._seq = 0

    def put(self, frame: np.ndarray, captured_at: datetime | None = None) -> None:
        with self._lock:
            self._frame = frame
            self._captured_at = captured_at
            self._seq += 1

    def get(self) -> tuple[np.ndarray | None, datetime | None]:
        with self._lock:
            frame = self._frame
            captured_at = self._captured_at
        if frame is None:
            return None, None
        return frame.copy(), captured_at

    def clear(self) -> None:
        with self._lock:
            self._frame = None
            self._captured_at = None

    @property
    def seq(self) -> int:
        """Number of frames stored since creation (including overwritten ones)."""
        with self._lock:
            return self._seq


class FpsMeter:
    """Delivered frames per second, refreshed once per `window_s` window."""

    def __init__(self, window_s: float = 1.0, clock=time.monotonic):
        self._window_s = float(window_s)
        self._clock = clock
        self._lock = threading.Lock()
        self._window_start = clock()
        self._frames = 0
        self._fps = 0.0
        self.total_frames = 0

    def tick(self) -> float:
        with self._lock:
            self._frames += 1
            self.total_frames += 1
            now = self._clock()
            elapsed = now - self._window_start
            if elapsed >= self._window_s:
                self._fps = self._frames / elapsed
                self._frames = 0
                self._window_start = now
            return self._fps

    def reset(self) -> None:
        with self._lock:
            self._window_start = self._clock()
            self._frames = 0
            self._fps = 0.0
            self.total_frames = 0

    @property
    def fps(self) -> float:
        with self._lock:
            return self._fps


__all__ = ["LatestFrameSlot", "FpsMeter"]
