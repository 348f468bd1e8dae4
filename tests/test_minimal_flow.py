import os
import tempfile
import threading
import time
import unittest

import cv2
import numpy as np

from camera import CameraConfig, FrameSource, create_camera
from core.errors import CaptureError
from core.overlay_store import OverlayStore
from core.station import InspectionStation
from detect import create_detector, encode_image_jpeg


def _board(offset: int) -> np.ndarray:
    board = np.full((160, 200, 3), 255, dtype=np.uint8)
    cv2.rectangle(board, (20 + offset, 20), (59 + offset, 39), (0, 0, 0), -1)
    cv2.rectangle(board, (120, 100), (149, 129), (0, 0, 0), -1)
    return board


def _wait_for(fn, timeout_s: float = 2.0):
    start = time.perf_counter()
    while (time.perf_counter() - start) < timeout_s:
        value = fn()
        if value is not None:
            return value
        time.sleep(0.02)
    raise AssertionError("timeout waiting for value")


class TestMinimalFlow(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.image_dir = self._tmp.name
        for i in range(2):
            cv2.imwrite(os.path.join(self.image_dir, f"board{i}.png"), _board(i * 10))
        self.cam_cfg = CameraConfig(
            image_dir=self.image_dir,
            settle_ms=0,
            retry_delay_ms=0,
            probe_interval_ms=0,
            capture_interval_ms=0,
        )
        source = FrameSource(create_camera("mock", self.cam_cfg), self.cam_cfg, name="camera1")
        self.detector = create_detector("aoi", {}, generate_overlay=True)
        self.station = InspectionStation([source], self.detector)

    def tearDown(self):
        self.station.disconnect_all()
        self._tmp.cleanup()

    def test_inspect_now_on_mock_camera(self):
        results = self.station.connect_all()
        self.assertTrue(results[0])
        self.assertEqual(results[0].frame_size, (200, 160))
        self.assertEqual(results[0].fps, 10.0)

        inspection = self.station.inspect_now(0)
        self.assertTrue(inspection.result.success, inspection.result.message)
        self.assertGreaterEqual(len(inspection.result.components), 1)
        self.assertEqual(inspection.overlay.shape, (160, 200, 3))

        status = self.station.status()
        self.assertEqual(status["cameras"][0]["state"], "connected")
        self.assertEqual(status["inspections"], 1)

    def test_stream_then_inspect_latest(self):
        self.station.connect_all()
        self.assertEqual(self.station.start_all_streams(), 1)
        inspection = _wait_for(lambda: self.station.inspect_latest(0))
        self.assertTrue(inspection.result.success)
        self.assertIsNotNone(inspection.captured_at)
        self.assertEqual(self.station.status()["cameras"][0]["state"], "streaming")
        self.station.stop_all_streams()
        self.assertEqual(self.station.status()["cameras"][0]["state"], "connected")

    def test_run_loop_reports_results(self):
        self.station.connect_all()
        self.station.start_all_streams()
        seen = []
        self.station.run(interval_ms=50, runtime_limit_s=0.5, on_result=seen.append)
        self.assertGreaterEqual(len(seen), 1)
        self.assertTrue(all(s.camera == 0 for s in seen))

    def test_run_loop_survives_failing_result_handler(self):
        self.station.connect_all()
        self.station.start_all_streams()
        calls = []

        def failing_handler(inspection):
            calls.append(inspection)
            raise OSError("disk full")

        with self.assertLogs("aoi_runtime.station", level="ERROR"):
            self.station.run(interval_ms=50, runtime_limit_s=0.5, on_result=failing_handler)
        self.assertGreater(len(calls), 1)

    def test_request_stop_ends_unlimited_run(self):
        self.station.connect_all()
        self.station.start_all_streams()
        timer = threading.Timer(0.2, self.station.request_stop)
        timer.start()
        start = time.perf_counter()
        try:
            self.station.run(interval_ms=20)
        finally:
            timer.cancel()
        self.assertLess(time.perf_counter() - start, 2.0)
        # The stop request is consumed; a later run honours its own limit.
        self.station.run(interval_ms=20, runtime_limit_s=0.1)

    def test_disconnected_camera_cannot_inspect(self):
        with self.assertRaises(CaptureError):
            self.station.inspect_now(0)
        self.station.connect_all()
        self.station.disconnect_all()
        self.assertEqual(self.station.status()["cameras"][0]["state"], "disconnected")
        with self.assertRaises(CaptureError):
            self.station.inspect_now(0)

    def test_camera_index_and_source_count(self):
        with self.assertRaises(ValueError):
            self.station.inspect_now(1)
        with self.assertRaises(ValueError):
            InspectionStation([], self.detector)

    def test_detector_protocol_tuple(self):
        ok, message, overlay, code = self.detector.detect(_board(0))
        self.assertIsInstance(ok, bool)
        self.assertTrue(message.startswith(("OK: ", "NG: ")))
        self.assertIsNotNone(overlay)
        self.assertTrue(code == "OK" or code.startswith("DEFECT_"))

        ok, message, overlay, code = self.detector.detect(np.zeros((0, 0), dtype=np.uint8))
        self.assertFalse(ok)
        self.assertIsNone(overlay)
        self.assertEqual(code, "INSPECT_ERROR")

    def test_overlay_store_writes_dated_jpeg(self):
        data, content_type = encode_image_jpeg(_board(0))
        self.assertEqual(content_type, "image/jpeg")
        store = OverlayStore(os.path.join(self.image_dir, "overlays"))
        path = store.save(data, camera=1)
        self.assertTrue(os.path.isfile(path))
        self.assertTrue(path.endswith("_cam2_00001.jpg"))


if __name__ == "__main__":
    unittest.main()
