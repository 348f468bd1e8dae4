import logging
from dataclasses import dataclass
from typing import List

import cv2
import numpy as np

from core.contracts import Rect
from core.models import ComponentType

from .preprocess import (
    binarize,
    circularity,
    find_external_contours,
    morph_clean,
    to_gray,
)

L = logging.getLogger("aoi_runtime.detection.components")

# Bounding-box ratio outside (0.55, 1.8) counts as an elongated two-terminal part.
ELONGATED_RATIO_HIGH = 1.8
ELONGATED_RATIO_LOW = 0.55

# (exclusive upper bound on box area, type); the last entry catches the rest.
_ELONGATED_BY_AREA = (
    (500, ComponentType.RESISTOR),
    (2000, ComponentType.CAPACITOR),
    (float("inf"), ComponentType.INDUCTOR),
)
_COMPACT_BY_AREA = (
    (400, ComponentType.LED),
    (1000, ComponentType.DIODE),
    (2500, ComponentType.TRANSISTOR),
    (float("inf"), ComponentType.INTEGRATED_CIRCUIT),
)


def classify_component(box: Rect) -> ComponentType:
    area = box.area
    ratio = box.aspect_ratio
    if ratio > ELONGATED_RATIO_HIGH or ratio < ELONGATED_RATIO_LOW:
        table = _ELONGATED_BY_AREA
    else:
        table = _COMPACT_BY_AREA
    for upper, comp_type in table:
        if area < upper:
            return comp_type
    return table[-1][1]


@dataclass(frozen=True)
class ComponentDetection:
    bounding_box: Rect
    confidence: float
    type: ComponentType
    contour_area: float = 0.0


class ComponentDetector:
    """Finds component-sized dark blobs and guesses their type from geometry."""

    def __init__(
        self,
        min_area: float = 100,
        max_area: float = 10000,
        min_ratio: float = 0.2,
        max_ratio: float = 5.0,
    ):
        self.min_area = float(min_area)
        self.max_area = float(max_area)
        self.min_ratio = float(min_ratio)
        self.max_ratio = float(max_ratio)
        if not (0 <= self.min_area <= self.max_area):
            raise ValueError("component area range must satisfy 0 <= min <= max")
        if not (0 < self.min_ratio <= self.max_ratio):
            raise ValueError("component ratio range must satisfy 0 < min <= max")

    def detect(self, img: np.ndarray) -> List[ComponentDetection]:
        gray = to_gray(img)
        equalized = cv2.equalizeHist(gray)
        mask = morph_clean(binarize(equalized, invert=True))

        detections: List[ComponentDetection] = []
        for contour in find_external_contours(mask):
            area = float(cv2.contourArea(contour))
            if area < self.min_area or area > self.max_area:
                continue
            box = Rect.from_xywh(cv2.boundingRect(contour))
            ratio = box.aspect_ratio
            if ratio > self.max_ratio or ratio < self.min_ratio:
                continue
            perimeter = float(cv2.arcLength(contour, True))
            circ = circularity(area, perimeter)
            confidence = min(max(circ * 0.8 + 0.2, 0.1), 1.0)
            detections.append(
                ComponentDetection(
                    bounding_box=box,
                    confidence=confidence,
                    type=classify_component(box),
                    contour_area=area,
                )
            )
        L.debug("component candidates=%d", len(detections))
        return detections


__all__ = ["ComponentDetection", "ComponentDetector", "classify_component"]
