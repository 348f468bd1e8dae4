"""InspectionStation: one or two frame sources feeding the board inspection."""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Optional, Sequence

import numpy as np

from camera.base import build_camera_configs, create_camera
from camera.source import FrameSource
from core.contracts import CameraInfo, ConnectResult
from core.errors import CaptureError
from core.frame_slot import FpsMeter, LatestFrameSlot
from core.models import InspectionResult
from detect.visualize import draw_defects

L = logging.getLogger("aoi_runtime.station")

MAX_CAMERAS = 2


@dataclass
class StationInspection:
    camera: int
    result: InspectionResult
    overlay: np.ndarray | None
    captured_at: datetime | None = None


@dataclass
class _Channel:
    source: FrameSource
    slot: LatestFrameSlot = field(default_factory=LatestFrameSlot)
    meter: FpsMeter = field(default_factory=FpsMeter)

    def on_frame(self, frame: np.ndarray, captured_at: datetime) -> None:
        # `frame` is already a private copy from FrameSource.
        self.slot.put(frame, captured_at)
        self.meter.tick()


class InspectionStation:
    """Owns the frame sources and runs inspections on their frames.

    `detector` is an `AoiDetector` (anything with `inspect(img)` returning an
    `InspectionResult` and a `line_width`). The sources share no state.
    """

    def __init__(self, sources: Sequence[FrameSource], detector):
        if not (1 <= len(sources) <= MAX_CAMERAS):
            raise ValueError(f"station needs 1..{MAX_CAMERAS} frame sources")
        self.detector = detector
        self._channels = [_Channel(source=s) for s in sources]
        for ch in self._channels:
            ch.source.set_frame_callback(ch.on_frame)
        self._stop_evt = threading.Event()
        self._last: StationInspection | None = None
        self._inspections = 0

    @classmethod
    def from_loaded_config(cls, cfg, detector) -> "InspectionStation":
        sources = []
        for i, cam_cfg in enumerate(build_camera_configs(cfg.camera), start=1):
            backend = create_camera(cfg.camera.type, cam_cfg)
            sources.append(FrameSource(backend, cam_cfg, name=f"camera{i}"))
        return cls(sources, detector)

    @property
    def sources(self) -> list[FrameSource]:
        return [ch.source for ch in self._channels]

    @property
    def last_inspection(self) -> StationInspection | None:
        return self._last

    def _channel(self, camera: int) -> _Channel:
        if not (0 <= camera < len(self._channels)):
            raise ValueError(
                f"camera {camera} out of range (0..{len(self._channels) - 1})"
            )
        return self._channels[camera]

    # -- connection ------------------------------------------------------

    def connect_all(self) -> list[ConnectResult]:
        results = []
        for ch in self._channels:
            res = ch.source.connect()
            if not res:
                L.warning("%s: connect failed: %s", ch.source.name, res.last_error)
            results.append(res)
        return results

    def disconnect_all(self) -> None:
        for ch in self._channels:
            try:
                ch.source.disconnect()
            except Exception:
                L.exception("%s: disconnect failed", ch.source.name)
            ch.slot.clear()
            ch.meter.reset()

    def start_all_streams(self) -> int:
        started = 0
        for ch in self._channels:
            if not ch.source.is_connected:
                L.info("%s: not connected, stream not started", ch.source.name)
                continue
            ch.meter.reset()
            ch.source.start_streaming()
            started += 1
        return started

    def stop_all_streams(self) -> None:
        for ch in self._channels:
            ch.source.stop_streaming()

    def list_cameras(self) -> list[CameraInfo]:
        return self._channels[0].source.enumerate_cameras()

    # -- inspection ------------------------------------------------------

    def inspect_now(self, camera: int = 0) -> StationInspection:
        """Capture a fresh frame from `camera` and inspect it.

        Raises CaptureError when the camera is not connected or yields no frame.
        """
        ch = self._channel(camera)
        frame = ch.source.capture_one_frame()
        return self._inspect(camera, frame, datetime.now(timezone.utc))

    def inspect_latest(self, camera: int = 0) -> StationInspection | None:
        """Inspect the most recent streamed frame; None until one has arrived."""
        frame, captured_at = self._channel(camera).slot.get()
        if frame is None:
            return None
        return self._inspect(camera, frame, captured_at)

    def _inspect(
        self, camera: int, frame: np.ndarray, captured_at: datetime | None
    ) -> StationInspection:
        result = self.detector.inspect(frame)
        overlay = None
        if result.success:
            overlay = draw_defects(frame, result.defects, line_width=self.detector.line_width)
        inspection = StationInspection(
            camera=camera, result=result, overlay=overlay, captured_at=captured_at
        )
        self._last = inspection
        self._inspections += 1
        return inspection

    # -- service loop ----------------------------------------------------

    def request_stop(self) -> None:
        """Make a running `run()` return after its current iteration."""
        self._stop_evt.set()

    def run(
        self,
        *,
        interval_ms: int = 1000,
        runtime_limit_s: float | None = None,
        camera: int = 0,
        on_result: Optional[Callable[[StationInspection], None]] = None,
    ) -> None:
        """Inspect the latest frame of `camera` every `interval_ms` until stopped.

        Stops on `request_stop()`, the runtime limit, or a stopped stream
        (CaptureError). Errors raised by `on_result` are logged and the loop goes on.
        """
        self._channel(camera)
        interval_s = max(1, int(interval_ms)) / 1000.0
        start_ts = time.perf_counter()
        try:
            self._run_loop(interval_s, runtime_limit_s, start_ts, camera, on_result)
        finally:
            self._stop_evt.clear()

    def _run_loop(self, interval_s, runtime_limit_s, start_ts, camera, on_result) -> None:
        while not self._stop_evt.wait(interval_s):
            if runtime_limit_s and (time.perf_counter() - start_ts) >= runtime_limit_s:
                L.info("Runtime limit reached (%ss); stopping station", runtime_limit_s)
                break
            source = self._channel(camera).source
            if not source.is_streaming:
                raise CaptureError(f"{source.name} stream stopped unexpectedly")
            inspection = self.inspect_latest(camera)
            if inspection is None:
                L.debug("no frame yet from camera %d", camera)
                continue
            if on_result is None:
                continue
            try:
                on_result(inspection)
            except Exception:
                L.exception("result handler failed (camera %d)", camera)

    def status(self) -> dict[str, Any]:
        cameras = []
        for i, ch in enumerate(self._channels):
            src = ch.source
            cameras.append(
                {
                    "camera": i,
                    "name": src.name,
                    "state": src.state.value,
                    "fps": round(ch.meter.fps, 1),
                    "frames": ch.meter.total_frames,
                    "frame_size": src.frame_size,
                }
            )
        last = self._last
        return {
            "cameras": cameras,
            "inspections": self._inspections,
            "last_message": last.result.message if last else "",
            "last_defects": last.result.defect_count if last else 0,
        }


__all__ = ["InspectionStation", "StationInspection"]
