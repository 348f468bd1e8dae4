import unittest

import cv2
import numpy as np

from core.contracts import Rect
from core.models import ComponentType
from detect.components import ComponentDetector, classify_component
from detect.inspection import determine_component_type
from detect.preprocess import binarize, circularity, morph_clean, preprocess


def _white_board(h=200, w=200):
    return np.full((h, w, 3), 255, dtype=np.uint8)


class TestPreprocess(unittest.TestCase):
    def test_returns_new_gray_array(self):
        img = _white_board(40, 40)
        img[10:20, 10:20] = 0
        before = img.copy()
        out = preprocess(img)
        self.assertEqual(out.shape, (40, 40))
        self.assertEqual(out.dtype, np.uint8)
        np.testing.assert_array_equal(img, before)

    def test_gray_input_is_not_aliased(self):
        gray = np.full((10, 10), 80, dtype=np.uint8)
        out = preprocess(gray, denoise=False, enhance=False)
        self.assertIsNot(out, gray)
        np.testing.assert_array_equal(out, gray)

    def test_binarize_inverts_dark_foreground(self):
        gray = np.full((20, 20), 255, dtype=np.uint8)
        gray[5:10, 5:10] = 0
        mask = binarize(gray, invert=True)
        self.assertEqual(mask[7, 7], 255)
        self.assertEqual(mask[0, 0], 0)

    def test_morph_clean_drops_speckles(self):
        mask = np.zeros((30, 30), dtype=np.uint8)
        mask[15, 15] = 255
        mask[2:12, 2:12] = 255
        cleaned = morph_clean(mask)
        self.assertEqual(cleaned[15, 15], 0)
        self.assertEqual(cleaned[6, 6], 255)

    def test_circularity_without_perimeter(self):
        self.assertEqual(circularity(100.0, 0.0), 0.0)


class TestClassification(unittest.TestCase):
    def test_elongated_by_area(self):
        self.assertEqual(classify_component(Rect(0, 0, 40, 10)), ComponentType.RESISTOR)
        self.assertEqual(classify_component(Rect(0, 0, 50, 10)), ComponentType.CAPACITOR)
        self.assertEqual(classify_component(Rect(0, 0, 60, 20)), ComponentType.CAPACITOR)
        self.assertEqual(classify_component(Rect(0, 0, 90, 30)), ComponentType.INDUCTOR)
        self.assertEqual(classify_component(Rect(0, 0, 10, 40)), ComponentType.RESISTOR)

    def test_compact_by_area(self):
        self.assertEqual(classify_component(Rect(0, 0, 15, 15)), ComponentType.LED)
        self.assertEqual(classify_component(Rect(0, 0, 20, 20)), ComponentType.DIODE)
        self.assertEqual(classify_component(Rect(0, 0, 40, 40)), ComponentType.TRANSISTOR)
        self.assertEqual(classify_component(Rect(0, 0, 60, 60)), ComponentType.INTEGRATED_CIRCUIT)

    def test_ratio_boundary_is_compact(self):
        # 18 / 10 == 1.8 is not elongated.
        self.assertEqual(classify_component(Rect(0, 0, 18, 10)), ComponentType.LED)

    def test_secondary_type(self):
        self.assertEqual(determine_component_type(Rect(0, 0, 40, 10)), ComponentType.RESISTOR)
        self.assertEqual(determine_component_type(Rect(0, 0, 60, 20)), ComponentType.CAPACITOR)
        self.assertEqual(determine_component_type(Rect(0, 0, 20, 20)), ComponentType.LED)
        self.assertEqual(
            determine_component_type(Rect(0, 0, 40, 40)), ComponentType.INTEGRATED_CIRCUIT
        )
        self.assertEqual(determine_component_type(Rect(0, 0, 30, 20)), ComponentType.UNKNOWN)
        self.assertEqual(determine_component_type(Rect(0, 0, 20, 10)), ComponentType.UNKNOWN)


class TestComponentDetector(unittest.TestCase):
    def test_detects_dark_rectangle(self):
        img = _white_board()
        cv2.rectangle(img, (50, 60), (89, 79), (0, 0, 0), -1)  # 40x20
        detections = ComponentDetector().detect(img)
        self.assertEqual(len(detections), 1)
        det = detections[0]
        self.assertEqual(det.bounding_box, Rect(50, 60, 40, 20))
        self.assertEqual(det.type, ComponentType.CAPACITOR)
        self.assertAlmostEqual(det.contour_area, 741.0)
        self.assertGreaterEqual(det.confidence, 0.1)
        self.assertLessEqual(det.confidence, 1.0)

    def test_area_and_ratio_filters(self):
        img = _white_board()
        cv2.rectangle(img, (10, 10), (14, 14), (0, 0, 0), -1)  # too small
        cv2.rectangle(img, (40, 100), (159, 105), (0, 0, 0), -1)  # 120x6, ratio 20
        self.assertEqual(ComponentDetector().detect(img), [])

    def test_invalid_ranges_rejected(self):
        with self.assertRaises(ValueError):
            ComponentDetector(min_area=500, max_area=100)
        with self.assertRaises(ValueError):
            ComponentDetector(min_ratio=0.0)


if __name__ == "__main__":
    unittest.main()
