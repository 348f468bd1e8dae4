import unittest

import cv2
import numpy as np

from core.models import SolderQuality
from detect.pads import PadQualityAnalyzer


def _two_level_roi(low: int, high: int) -> np.ndarray:
    # 64x64 keeps the std-dev arithmetic exact.
    roi = np.full((64, 64), low, dtype=np.uint8)
    roi[32:, :] = high
    return roi


class TestPadEmptiness(unittest.TestCase):
    def setUp(self):
        self.analyzer = PadQualityAnalyzer()

    def test_stddev_exactly_at_threshold_is_not_empty(self):
        self.assertFalse(self.analyzer.is_pad_empty(_two_level_roi(100, 130)))

    def test_stddev_below_threshold_is_empty(self):
        self.assertTrue(self.analyzer.is_pad_empty(_two_level_roi(101, 129)))

    def test_threshold_override(self):
        self.assertFalse(self.analyzer.is_pad_empty(_two_level_roi(101, 129), threshold=10.0))
        self.assertTrue(PadQualityAnalyzer(20.0).is_pad_empty(_two_level_roi(100, 130)))

    def test_color_roi_uses_grayscale(self):
        roi = np.full((16, 16, 3), 128, dtype=np.uint8)
        self.assertTrue(self.analyzer.is_pad_empty(roi))

    def test_empty_roi(self):
        self.assertFalse(self.analyzer.is_pad_empty(np.zeros((0, 0), dtype=np.uint8)))


class TestFindPads(unittest.TestCase):
    def test_uniform_board_has_no_pads_and_reads_empty(self):
        board = np.full((100, 100), 128, dtype=np.uint8)
        analyzer = PadQualityAnalyzer()
        self.assertEqual(analyzer.find_pads(board), [])
        self.assertTrue(analyzer.is_pad_empty(board))

    def test_finds_separate_dark_pads(self):
        board = np.full((200, 200, 3), 255, dtype=np.uint8)
        for x in (20, 80, 140):
            cv2.rectangle(board, (x, 90), (x + 19, 109), (0, 0, 0), -1)
        pads = PadQualityAnalyzer().find_pads(board)
        self.assertEqual(len(pads), 3)
        for pad in pads:
            self.assertTrue(18 <= pad.width <= 22)
            self.assertTrue(18 <= pad.height <= 22)

    def test_area_filter(self):
        board = np.full((200, 200, 3), 255, dtype=np.uint8)
        cv2.rectangle(board, (20, 20), (79, 79), (0, 0, 0), -1)  # ~3500 px
        self.assertEqual(PadQualityAnalyzer().find_pads(board), [])


class TestAnalyzeQuality(unittest.TestCase):
    def test_empty_roi_scores_zero(self):
        q = PadQualityAnalyzer().analyze_quality(np.zeros((0, 5, 3), dtype=np.uint8))
        self.assertEqual(q, SolderQuality())
        self.assertEqual(q.overall_score, 0.0)

    def test_round_bright_joint(self):
        roi = np.zeros((40, 40), dtype=np.uint8)
        cv2.circle(roi, (20, 20), 15, 255, -1)
        q = PadQualityAnalyzer().analyze_quality(roi)
        self.assertEqual(q.saturation_score, 1.0)
        self.assertGreater(q.shine_score, 0.0)
        self.assertLess(q.shine_score, 1.0)
        self.assertGreater(q.circularity, 0.8)
        self.assertGreater(q.convexity, 0.9)
        self.assertGreater(q.contour_area, 500)
        self.assertGreater(q.perimeter, 0)


if __name__ == "__main__":
    unittest.main()
