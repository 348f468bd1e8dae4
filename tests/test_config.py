import os
import tempfile
import textwrap
import unittest

from camera.base import build_camera_configs
from core.config import ConfigError, load_config, validate_config
from detect import create_detector_from_loaded_config

REPO_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), os.pardir))
REPO_CONFIG_DIR = os.path.join(REPO_ROOT, "config")

MAIN_YAML = """
runtime:
  log_level: debug
  inspect_interval_ms: 250
camera:
  type: mock
  common:
    targets: [0, 1]
    settle_ms: 0
  mock:
    image_dir: boards
    order: name_natural
  opencv:
    buffer_size: 4
detect:
  impl: aoi
  config_file: detect.yaml
  line_width: 3
"""

DETECT_YAML = """
bridge_threshold: 90
parallel: false
"""


class TestLoadConfig(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.dir = self._tmp.name

    def tearDown(self):
        self._tmp.cleanup()

    def _write(self, name, text):
        with open(os.path.join(self.dir, name), "w", encoding="utf-8") as f:
            f.write(textwrap.dedent(text))

    def test_sections_and_selected_backend_block(self):
        self._write("main_test.yaml", MAIN_YAML)
        self._write("detect.yaml", DETECT_YAML)
        cfg = load_config(self.dir)
        self.assertEqual(cfg.runtime.log_level, "debug")
        self.assertEqual(cfg.runtime.inspect_interval_ms, 250)
        self.assertEqual(cfg.camera.type, "mock")
        self.assertEqual(cfg.camera.targets, ["0", "1"])
        self.assertEqual(cfg.camera.settle_ms, 0)
        self.assertEqual(cfg.camera.image_dir, "boards")
        # Only the selected backend block applies.
        self.assertEqual(cfg.camera.buffer_size, 1)
        self.assertEqual(cfg.detect.line_width, 3)
        self.assertEqual(cfg.detect_params, {"bridge_threshold": 90, "parallel": False})
        self.assertEqual(cfg.paths["detect"], os.path.join(self.dir, "detect.yaml"))
        validate_config(cfg)

        cam_cfgs = build_camera_configs(cfg.camera)
        self.assertEqual([c.target for c in cam_cfgs], ["0", "1"])

        detector = create_detector_from_loaded_config(cfg)
        self.assertEqual(detector.params.bridge_threshold, 90)
        self.assertFalse(detector.params.parallel)
        self.assertEqual(detector.line_width, 3)

    def test_unknown_field_names_section_and_file(self):
        self._write(
            "main_test.yaml",
            MAIN_YAML.replace("    settle_ms: 0", "    settle_ms: 0\n    bogus: 1"),
        )
        self._write("detect.yaml", DETECT_YAML)
        with self.assertRaises(ConfigError) as cm:
            load_config(self.dir)
        self.assertIn("camera.common.bogus", str(cm.exception))
        self.assertIn("main_test.yaml", str(cm.exception))

    def test_unknown_top_level_section(self):
        self._write("main_test.yaml", MAIN_YAML + "\ntrigger:\n  tcp: {}\n")
        self._write("detect.yaml", DETECT_YAML)
        with self.assertRaises(ConfigError):
            load_config(self.dir)

    def test_exactly_one_main_file(self):
        with self.assertRaises(ConfigError):
            load_config(self.dir)
        self._write("main_a.yaml", MAIN_YAML)
        self._write("main_b.yaml", MAIN_YAML)
        with self.assertRaises(ConfigError):
            load_config(self.dir)

    def test_missing_detect_file(self):
        self._write("main_test.yaml", MAIN_YAML)
        with self.assertRaises(ConfigError) as cm:
            load_config(self.dir)
        self.assertIn("Detect config not found", str(cm.exception))

    def test_unknown_detect_param_rejected_by_detector(self):
        self._write("main_test.yaml", MAIN_YAML)
        self._write("detect.yaml", "bridge_treshold: 90\n")
        cfg = load_config(self.dir)
        with self.assertRaises(ValueError):
            create_detector_from_loaded_config(cfg)


class TestRepoConfig(unittest.TestCase):
    def test_shipped_config_is_valid(self):
        cfg = load_config(REPO_CONFIG_DIR)
        validate_config(cfg)
        self.assertEqual(cfg.camera.type, "opencv")
        self.assertEqual(cfg.camera.max_fps, 60)
        detector = create_detector_from_loaded_config(cfg)
        self.assertEqual(detector.params.bridge_confidence, 0.85)


if __name__ == "__main__":
    unittest.main()
