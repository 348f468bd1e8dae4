from typing import Iterable

import cv2
import numpy as np

from core.models import Defect, DefectSeverity

from .preprocess import to_bgr

# BGR
SEVERITY_COLORS = {
    DefectSeverity.LOW: (0, 255, 255),
    DefectSeverity.MEDIUM: (0, 165, 255),
    DefectSeverity.HIGH: (0, 0, 255),
    DefectSeverity.CRITICAL: (0, 0, 139),
}
MARKER_RADIUS = 5
LABEL_FONT = cv2.FONT_HERSHEY_SIMPLEX
LABEL_SCALE = 0.5


def defect_label(defect: Defect) -> str:
    return f"{defect.type.value} ({defect.confidence:.0%})"


def draw_defects(
    image: np.ndarray, defects: Iterable[Defect], line_width: int = 2
) -> np.ndarray:
    """Return a BGR copy of `image` with every defect boxed, marked and labelled."""
    if image is None or image.size == 0:
        raise ValueError("draw_defects needs a non-empty image")
    canvas = to_bgr(image)
    canvas = canvas.copy() if canvas is image else canvas
    thickness = max(1, int(line_width))
    for defect in defects:
        color = SEVERITY_COLORS[defect.severity]
        box = defect.bounding_box
        cv2.rectangle(
            canvas,
            (box.x, box.y),
            (box.x + box.width, box.y + box.height),
            color,
            thickness,
        )
        cv2.circle(canvas, defect.location.as_tuple(), MARKER_RADIUS, color, -1)
        cv2.putText(
            canvas,
            defect_label(defect),
            (box.x, max(0, box.y - 5)),
            LABEL_FONT,
            LABEL_SCALE,
            color,
            1,
            cv2.LINE_AA,
        )
    return canvas


__all__ = ["SEVERITY_COLORS", "defect_label", "draw_defects"]
