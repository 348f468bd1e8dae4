import logging

import numpy as np

from core.models import DefectSeverity, InspectionResult

from .base import register_detector
from .inspection import InspectionOrchestrator, InspectionParams
from .visualize import draw_defects

L = logging.getLogger("aoi_runtime.detection.aoi")


def result_code_for(result: InspectionResult) -> str:
    if not result.success:
        return "INSPECT_ERROR"
    if not result.has_defects:
        return "OK"
    worst = max(d.severity for d in result.defects)
    return f"DEFECT_{worst.name}"


@register_detector("aoi")
class AoiDetector:
    """Adapts the board inspection to the `(ok, message, overlay, code)` protocol."""

    def __init__(
        self,
        params: dict,
        generate_overlay: bool = True,
    ):
        params = dict(params or {})
        self.line_width = int(params.pop("line_width", 2))
        self.generate_overlay = generate_overlay
        self.params = InspectionParams.from_dict(params)
        self.orchestrator = InspectionOrchestrator(self.params)
        self.last_result: InspectionResult | None = None
        if self.line_width < 1:
            raise ValueError("detect line_width must be >= 1")

    def inspect(self, img: np.ndarray) -> InspectionResult:
        result = self.orchestrator.inspect(img)
        self.last_result = result
        return result

    def detect(self, img: np.ndarray):
        result = self.inspect(img)
        overlay = None
        if self.generate_overlay and result.success:
            overlay = draw_defects(img, result.defects, line_width=self.line_width)
        ok = result.success and not any(
            d.severity >= DefectSeverity.HIGH for d in result.defects
        )
        code = result_code_for(result)
        L.debug("aoi detect: code=%s %.1fms", code, result.processing_ms)
        prefix = "OK" if ok else "NG"
        return ok, f"{prefix}: {result.message}", overlay, code


__all__ = ["AoiDetector", "result_code_for"]
