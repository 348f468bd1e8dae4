from __future__ import annotations

import logging
from typing import List

import cv2
import numpy as np

from core.contracts import Rect
from core.models import SolderQuality

from .preprocess import (
    binarize,
    circularity,
    find_external_contours,
    morph_clean,
    preprocess,
    to_bgr,
    to_gray,
)

L = logging.getLogger("aoi_runtime.detection.pads")

EMPTY_PAD_STDDEV = 15.0


class PadQualityAnalyzer:
    """Locates solder pads and scores the solder deposited on each one."""

    def __init__(self, empty_stddev_threshold: float = EMPTY_PAD_STDDEV):
        self.empty_stddev_threshold = float(empty_stddev_threshold)

    def find_pads(self, img: np.ndarray, min_area: float = 50, max_area: float = 1000) -> List[Rect]:
        mask = morph_clean(binarize(preprocess(img), invert=True))
        pads: List[Rect] = []
        for contour in find_external_contours(mask):
            area = cv2.contourArea(contour)
            if min_area <= area <= max_area:
                pads.append(Rect.from_xywh(cv2.boundingRect(contour)))
        L.debug("pad candidates=%d", len(pads))
        return pads

    def analyze_quality(self, roi: np.ndarray) -> SolderQuality:
        """Score one pad region.

        Shine and saturation come from the HSV means of the whole region;
        circularity and convexity from its dominant Otsu contour. An empty
        region scores zero everywhere.
        """
        if roi is None or roi.size == 0 or roi.shape[0] == 0 or roi.shape[1] == 0:
            return SolderQuality()

        hsv = cv2.cvtColor(to_bgr(roi), cv2.COLOR_BGR2HSV)
        shine = float(hsv[:, :, 2].mean()) / 255.0
        saturation = 1.0 - float(hsv[:, :, 1].mean()) / 255.0

        mask = binarize(to_gray(roi), invert=False)
        contours = find_external_contours(mask)
        area = perimeter = circ = convexity = 0.0
        if contours:
            main = max(contours, key=cv2.contourArea)
            area = float(cv2.contourArea(main))
            perimeter = float(cv2.arcLength(main, True))
            circ = circularity(area, perimeter)
            hull_area = float(cv2.contourArea(cv2.convexHull(main)))
            convexity = area / hull_area if hull_area > 0 else 0.0

        return SolderQuality(
            shine_score=shine,
            saturation_score=saturation,
            circularity=circ,
            convexity=convexity,
            contour_area=area,
            perimeter=perimeter,
        )

    def is_pad_empty(self, roi: np.ndarray, threshold: float | None = None) -> bool:
        """Near-uniform region (std-dev strictly below the threshold): bare pad."""
        if roi is None or roi.size == 0:
            return False
        limit = self.empty_stddev_threshold if threshold is None else float(threshold)
        _mean, stddev = cv2.meanStdDev(to_gray(roi))
        return float(stddev[0][0]) < limit


__all__ = ["PadQualityAnalyzer", "EMPTY_PAD_STDDEV"]
