# -- coding: utf-8 --
"""FrameSource: one camera handle, its connection retries, and its capture loop."""

from __future__ import annotations

import logging
import threading
import time
from datetime import datetime, timezone
from typing import Callable

import cv2
import numpy as np

from camera.base import BaseCamera, CameraConfig, resolve_target
from core.contracts import (
    NETWORK_CAMERA_INDEX,
    CameraInfo,
    CaptureResult,
    ConnectResult,
    SourceState,
)
from core.errors import CaptureError, ConnectionFailure
from core.worker import BaseWorker

L = logging.getLogger("aoi_runtime.camera")

FrameCallback = Callable[[np.ndarray, datetime], None]
LogFn = Callable[[str], None]

NETWORK_CAMERA_NAME = "Network camera (enter URL)"


def _has_pixels(frame) -> bool:
    return frame is not None and getattr(frame, "size", 0) > 0


def _release_quietly(cap) -> None:
    if cap is None:
        return
    try:
        cap.release()
    except Exception:
        L.debug("capture release failed", exc_info=True)


class _CaptureLoop(BaseWorker):
    def __init__(self, source: "FrameSource"):
        super().__init__(f"{source.name}-capture")
        self._source = source

    def run(self):
        src = self._source
        src._emit(logging.INFO, "capture loop started")
        try:
            while not self.stop_requested:
                started = time.perf_counter()
                try:
                    available, frame = src._read_locked()
                    if not available:
                        src._emit(
                            logging.WARNING,
                            "capture handle unavailable, capture loop exiting",
                        )
                        break
                    if frame is None:
                        continue
                    src._deliver(frame)
                    elapsed_ms = (time.perf_counter() - started) * 1000.0
                    self.wait(max(0.0, src.frame_interval_ms - elapsed_ms) / 1000.0)
                except Exception as e:
                    src._emit(logging.WARNING, f"capture loop error: {e}")
                    self.wait(max(0, int(src.cfg.error_backoff_ms)) / 1000.0)
        finally:
            src._emit(logging.INFO, "capture loop stopped")


class FrameSource:
    """Owns one capture handle; every handle access goes through `self._lock`.

    Frames are delivered to `on_frame(frame, captured_at)` on the capture thread.
    Each delivered frame is a private copy. Delivery is synchronous and
    unbuffered: a slow consumer makes the loop skip frames, nothing is queued.
    """

    def __init__(
        self,
        backend: BaseCamera,
        cfg: CameraConfig | None = None,
        *,
        on_frame: FrameCallback | None = None,
        log: LogFn | None = None,
        name: str = "",
    ):
        self.backend = backend
        self.cfg = cfg or backend.cfg
        self.name = name or "camera"
        self._on_frame = on_frame
        self._log_fn = log
        self._lock = threading.Lock()
        self._stream_lock = threading.Lock()
        self._cap = None
        self._worker: _CaptureLoop | None = None
        self._connecting = False
        self._frame_size: tuple[int, int] | None = None
        self._fps = 0.0
        self.frames_delivered = 0

    # -- logging ---------------------------------------------------------

    def _emit(self, level: int, message: str) -> None:
        text = f"{self.name}: {message}"
        if self._log_fn is not None:
            self._log_fn(text)
        else:
            L.log(level, text)

    # -- properties ------------------------------------------------------

    @property
    def is_connected(self) -> bool:
        with self._lock:
            cap = self._cap
            return cap is not None and bool(cap.isOpened())

    @property
    def is_streaming(self) -> bool:
        worker = self._worker
        return bool(worker and worker.is_alive and not worker.stop_requested)

    @property
    def state(self) -> SourceState:
        if self._connecting:
            return SourceState.CONNECTING
        if self.is_streaming:
            return SourceState.STREAMING
        if self.is_connected:
            return SourceState.CONNECTED
        return SourceState.DISCONNECTED

    @property
    def frame_size(self) -> tuple[int, int] | None:
        return self._frame_size

    @property
    def fps(self) -> float:
        return self._fps

    @property
    def frame_interval_ms(self) -> float:
        fps = self._fps if self._fps > 0 else float(self.cfg.default_fps)
        return 1000.0 / fps

    def set_frame_callback(self, on_frame: FrameCallback | None) -> None:
        self._on_frame = on_frame

    # -- connection ------------------------------------------------------

    def connect(self) -> ConnectResult:
        self.disconnect()
        target = resolve_target(self.cfg.target, self.cfg.default_index)
        attempts = max(1, int(self.cfg.connect_attempts))
        retry_delay_s = max(0, int(self.cfg.retry_delay_ms)) / 1000.0
        last_error = ""
        self._connecting = True
        try:
            for attempt in range(1, attempts + 1):
                self._emit(logging.INFO, f"connect attempt #{attempt} target={target!r}")
                try:
                    cap, frame_size = self._open_attempt(target)
                except Exception as e:
                    last_error = f"attempt #{attempt} failed: {e}"
                    self._emit(logging.WARNING, last_error)
                    if attempt < attempts:
                        time.sleep(retry_delay_s)
                    continue
                fps = self._query_fps(cap)
                with self._lock:
                    self._cap = cap
                    self._frame_size = frame_size
                    self._fps = fps
                self._emit(
                    logging.INFO,
                    f"connected {frame_size[0]}x{frame_size[1]} @ {fps:.1f} fps",
                )
                return ConnectResult(
                    success=True,
                    target=target,
                    attempts=attempt,
                    frame_size=frame_size,
                    fps=fps,
                )
        finally:
            self._connecting = False
        self._emit(logging.ERROR, f"all {attempts} connection attempts failed")
        return ConnectResult(
            success=False, target=target, attempts=attempts, error=last_error
        )

    def _open_attempt(self, target: int | str):
        cap = self.backend.open(target)
        try:
            settle_s = max(0, int(self.cfg.settle_ms)) / 1000.0
            if settle_s > 0:
                time.sleep(settle_s)
            if cap is None or not cap.isOpened():
                raise ConnectionFailure("camera did not open")
            reads = max(1, int(self.cfg.probe_reads))
            interval_s = max(0, int(self.cfg.probe_interval_ms)) / 1000.0
            for i in range(reads):
                ok, frame = cap.read()
                if ok and _has_pixels(frame):
                    height, width = frame.shape[:2]
                    return cap, (int(width), int(height))
                if i < reads - 1:
                    time.sleep(interval_s)
            raise ConnectionFailure(f"no frame received after {reads} reads")
        except Exception:
            _release_quietly(cap)
            raise

    def _query_fps(self, cap) -> float:
        try:
            fps = float(cap.get(cv2.CAP_PROP_FPS))
        except Exception:
            fps = 0.0
        if not (0.0 < fps <= float(self.cfg.max_fps)):
            return float(self.cfg.default_fps)
        return fps

    def disconnect(self) -> None:
        self.stop_streaming()
        with self._lock:
            cap = self._cap
            self._cap = None
            self._frame_size = None
            self._fps = 0.0
            if cap is None:
                return
            try:
                cap.release()
            except Exception as e:
                self._emit(logging.WARNING, f"release failed: {e}")
        self._emit(logging.INFO, "disconnected")

    # -- single capture --------------------------------------------------

    def capture_one_frame(self) -> np.ndarray:
        reads = max(1, int(self.cfg.capture_reads))
        interval_s = max(0, int(self.cfg.capture_interval_ms)) / 1000.0
        with self._lock:
            cap = self._cap
            if cap is None or not cap.isOpened():
                raise CaptureError("camera not connected")
            for i in range(reads):
                ok, frame = cap.read()
                if ok and _has_pixels(frame):
                    return frame.copy()
                if i < reads - 1:
                    time.sleep(interval_s)
        raise CaptureError(f"no frame captured after {reads} reads")

    def capture_once(self) -> CaptureResult:
        start = time.perf_counter()
        try:
            frame = self.capture_one_frame()
        except CaptureError as e:
            return CaptureResult(device_id=self.name, success=False, error=str(e))
        return CaptureResult(
            device_id=self.name,
            success=True,
            image=frame,
            captured_at=datetime.now(timezone.utc),
            timings={"grab_ms": (time.perf_counter() - start) * 1000},
        )

    # -- streaming -------------------------------------------------------

    def start_streaming(self) -> None:
        if not self.is_connected:
            raise CaptureError("camera not connected")
        with self._stream_lock:
            if self.is_streaming:
                return
            worker = _CaptureLoop(self)
            self._worker = worker
            worker.start()
        self._emit(logging.INFO, f"live stream started ({self._fps:.1f} fps)")

    def stop_streaming(self) -> None:
        with self._stream_lock:
            worker = self._worker
            self._worker = None
        if worker is None:
            return
        timeout_s = max(0, int(self.cfg.stop_timeout_ms)) / 1000.0
        if not worker.stop(timeout=timeout_s):
            self._emit(
                logging.WARNING,
                f"capture loop still running after {timeout_s:.2f}s, abandoned",
            )
        self._emit(logging.INFO, "live stream stopped")

    def _read_locked(self) -> tuple[bool, np.ndarray | None]:
        """Read one frame under the lock: (handle_available, frame_or_None)."""
        with self._lock:
            cap = self._cap
            if cap is None or not cap.isOpened():
                return False, None
            ok, frame = cap.read()
        if not ok or not _has_pixels(frame):
            return True, None
        return True, frame

    def _deliver(self, frame: np.ndarray) -> None:
        callback = self._on_frame
        self.frames_delivered += 1
        if callback is None:
            return
        callback(frame.copy(), datetime.now(timezone.utc))

    # -- discovery -------------------------------------------------------

    def enumerate_cameras(self) -> list[CameraInfo]:
        cameras: list[CameraInfo] = []
        settle_s = max(0, int(self.cfg.enumerate_settle_ms)) / 1000.0
        for index in range(max(0, int(self.cfg.enumerate_max_index))):
            cap = None
            try:
                cap = self.backend.open(index)
                if settle_s > 0:
                    time.sleep(settle_s)
                if cap is not None and cap.isOpened():
                    name = self.backend.describe(index)
                    cameras.append(CameraInfo(index=index, name=name, is_available=True))
                    self._emit(logging.INFO, f"found camera {index}: {name}")
                else:
                    L.debug("%s: camera %d not found", self.name, index)
            except Exception as e:
                self._emit(logging.WARNING, f"probe of camera {index} failed: {e}")
            finally:
                _release_quietly(cap)
        cameras.append(
            CameraInfo(
                index=NETWORK_CAMERA_INDEX,
                name=NETWORK_CAMERA_NAME,
                is_available=True,
            )
        )
        return cameras

    def close(self) -> None:
        self.disconnect()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False


__all__ = ["FrameSource", "FrameCallback", "NETWORK_CAMERA_NAME"]
