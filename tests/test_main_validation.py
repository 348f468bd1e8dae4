import signal
import threading
import unittest
from unittest import mock

from core.config import (
    CameraConfigBlock,
    ConfigError,
    DetectConfigBlock,
    LoadedConfig,
    RuntimeConfig,
)
from main import _install_stop_signal, _validate_config, parse_args


def _make_cfg():
    return LoadedConfig(
        runtime=RuntimeConfig(),
        camera=CameraConfigBlock(),
        detect=DetectConfigBlock(config_file="detect_aoi.yaml"),
        detect_params={},
    )


class TestMainConfigValidation(unittest.TestCase):
    def test_valid_config_passes(self):
        _validate_config(_make_cfg())

    def test_invalid_values_raise_config_error(self):
        cases = [
            ("camera.max_fps", "camera", {"max_fps": 0}),
            ("camera.default_fps", "camera", {"default_fps": 90}),
            ("camera.connect_attempts", "camera", {"connect_attempts": 0}),
            ("camera.targets", "camera", {"targets": ["0", "1", "2"]}),
            ("camera.targets", "camera", {"targets": []}),
            ("camera.type", "camera", {"type": "hik"}),
            ("camera.image_dir", "camera", {"type": "mock", "image_dir": ""}),
            ("camera.settle_ms", "camera", {"settle_ms": "soon"}),
            ("runtime.inspect_interval_ms", "runtime", {"inspect_interval_ms": 0}),
            ("runtime.log_level", "runtime", {"log_level": "loud"}),
            ("detect.line_width", "detect", {"line_width": 0}),
        ]
        for expected_name, target, patch in cases:
            with self.subTest(field=expected_name, patch=patch):
                cfg = _make_cfg()
                obj = cfg
                for part in target.split("."):
                    obj = getattr(obj, part)
                for k, v in patch.items():
                    setattr(obj, k, v)
                with self.assertRaises(ConfigError) as cm:
                    _validate_config(cfg)
                self.assertIn(expected_name, str(cm.exception))

    def test_max_fps_message(self):
        cfg = _make_cfg()
        cfg.camera.max_fps = 0
        with self.assertRaises(ConfigError) as cm:
            _validate_config(cfg)
        self.assertEqual(str(cm.exception), "camera.max_fps must be > 0")


class TestArgs(unittest.TestCase):
    def test_subcommands(self):
        self.assertEqual(parse_args([]).command, "run")
        self.assertEqual(parse_args(["cameras"]).command, "cameras")
        args = parse_args(["--verbose", "inspect", "--image", "b.png", "--out", "o.jpg"])
        self.assertEqual((args.command, args.image, args.out), ("inspect", "b.png", "o.jpg"))
        self.assertTrue(args.verbose)


class TestStopSignal(unittest.TestCase):
    def test_sigterm_requests_station_stop(self):
        stopped = threading.Event()
        station = mock.Mock()
        station.request_stop.side_effect = stopped.set
        original = signal.getsignal(signal.SIGTERM)
        previous = _install_stop_signal(station)
        try:
            handler = signal.getsignal(signal.SIGTERM)
            self.assertIsNot(handler, original)
            handler(signal.SIGTERM, None)
            self.assertTrue(stopped.wait(2.0))
        finally:
            signal.signal(signal.SIGTERM, previous)
        station.request_stop.assert_called_once_with()

    def test_no_handler_off_main_thread(self):
        out = []
        t = threading.Thread(target=lambda: out.append(_install_stop_signal(mock.Mock())))
        t.start()
        t.join(2.0)
        self.assertEqual(out, [None])


if __name__ == "__main__":
    unittest.main()
