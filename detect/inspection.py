"""Board inspection pipeline: preprocessing, detection, pad checks, defects."""

from __future__ import annotations

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, fields, replace
from typing import Any, Callable, List, Sequence, TypeVar

import cv2
import numpy as np

from core.contracts import Rect
from core.errors import InspectionError
from core.models import (
    Component,
    ComponentType,
    Defect,
    DefectSeverity,
    DefectType,
    InspectionResult,
    SolderQuality,
)

from .components import ComponentDetection, ComponentDetector
from .pads import PadQualityAnalyzer
from .preprocess import find_all_contours, preprocess, to_gray

L = logging.getLogger("aoi_runtime.inspection")

T = TypeVar("T")


@dataclass
class InspectionParams:
    component_min_area: float = 100.0
    component_max_area: float = 10000.0
    component_min_ratio: float = 0.2
    component_max_ratio: float = 5.0
    min_component_confidence: float = 0.6
    pad_min_area: float = 50.0
    pad_max_area: float = 1000.0
    empty_pad_stddev: float = 15.0
    missing_solder_confidence: float = 0.9
    shift_ratio_low: float = 0.67
    shift_ratio_high: float = 1.5
    shift_confidence: float = 0.8
    bridge_threshold: int = 100
    bridge_min_area: float = 50.0
    bridge_min_pads: int = 2
    bridge_confidence: float = 0.85
    parallel: bool = True

    @classmethod
    def from_dict(cls, params: dict[str, Any] | None) -> "InspectionParams":
        obj = cls()
        known = {f.name: f for f in fields(cls)}
        for key, value in (params or {}).items():
            if key not in known:
                raise ValueError(f"Unknown inspection param '{key}'")
            default = getattr(obj, key)
            if isinstance(default, bool):
                setattr(obj, key, bool(value))
            elif isinstance(default, int):
                setattr(obj, key, int(value))
            else:
                setattr(obj, key, float(value))
        obj.validate()
        return obj

    def validate(self) -> None:
        if not (0 <= self.component_min_area <= self.component_max_area):
            raise ValueError("component_min_area/component_max_area out of order")
        if not (0 < self.component_min_ratio <= self.component_max_ratio):
            raise ValueError("component_min_ratio/component_max_ratio out of order")
        if not (0 <= self.pad_min_area <= self.pad_max_area):
            raise ValueError("pad_min_area/pad_max_area out of order")
        if not (0 <= self.bridge_threshold <= 255):
            raise ValueError("bridge_threshold must be 0..255")
        if self.bridge_min_pads < 2:
            raise ValueError("bridge_min_pads must be >= 2")
        if not (0 < self.shift_ratio_low < self.shift_ratio_high):
            raise ValueError("shift_ratio_low/shift_ratio_high out of order")
        for name in (
            "min_component_confidence",
            "missing_solder_confidence",
            "shift_confidence",
            "bridge_confidence",
        ):
            if not (0.0 <= getattr(self, name) <= 1.0):
                raise ValueError(f"{name} must be in [0, 1]")
        if self.empty_pad_stddev < 0:
            raise ValueError("empty_pad_stddev must be >= 0")


def determine_component_type(box: Rect) -> ComponentType:
    """Type assigned to components in the inspection result.

    Coarser than the detector's own guess, and it takes precedence over it.
    """
    ratio = box.aspect_ratio
    area = box.area
    if ratio > 2.0 or ratio < 0.5:
        return ComponentType.RESISTOR if area < 500 else ComponentType.CAPACITOR
    if abs(ratio - 1.0) < 0.2:
        return ComponentType.INTEGRATED_CIRCUIT if area > 1000 else ComponentType.LED
    return ComponentType.UNKNOWN


def solder_defect_description(defect_type: DefectType, quality: SolderQuality) -> str:
    if defect_type is DefectType.POOR_SOLDER:
        return f"Poor solder joint, score {quality.overall_score:.2f}"
    if defect_type is DefectType.COLD_SOLDER:
        return f"Cold solder joint, shine {quality.shine_score:.2f}"
    if defect_type is DefectType.MISSING_SOLDER:
        return "No solder on pad"
    return "Solder defect"


_SHIFT_CHECKED_TYPES = (ComponentType.RESISTOR, ComponentType.CAPACITOR)


class InspectionOrchestrator:
    """Runs the full board inspection and never raises from `inspect()`."""

    def __init__(
        self,
        params: InspectionParams | None = None,
        *,
        log: Callable[[str], None] | None = None,
    ):
        self.params = params or InspectionParams()
        self.params.validate()
        self._log_fn = log
        self.component_detector = ComponentDetector(
            min_area=self.params.component_min_area,
            max_area=self.params.component_max_area,
            min_ratio=self.params.component_min_ratio,
            max_ratio=self.params.component_max_ratio,
        )
        self.pad_analyzer = PadQualityAnalyzer(
            empty_stddev_threshold=self.params.empty_pad_stddev
        )

    def _emit(self, level: int, message: str) -> None:
        if self._log_fn is not None:
            self._log_fn(message)
        else:
            L.log(level, message)

    def inspect(self, board: np.ndarray) -> InspectionResult:
        start = time.perf_counter()
        try:
            components, defects = self._inspect_impl(board)
        except InspectionError as e:
            elapsed_ms = (time.perf_counter() - start) * 1000
            self._emit(logging.WARNING, f"inspection failed: {e}")
            return InspectionResult(
                success=False,
                message=f"Inspection failed: {e}",
                error=e,
                processing_ms=elapsed_ms,
            )
        elapsed_ms = (time.perf_counter() - start) * 1000
        result = InspectionResult(
            success=True,
            message="",
            defects=tuple(defects),
            components=tuple(components),
            processing_ms=elapsed_ms,
        )
        message = _summary_message(result)
        result = replace(result, message=message)
        self._emit(logging.INFO, f"{message} in {elapsed_ms:.1f} ms")
        return result

    def _inspect_impl(self, board: np.ndarray):
        if board is None or not isinstance(board, np.ndarray) or board.size == 0:
            raise InspectionError("stage=validate: empty or missing image")
        if board.ndim not in (2, 3):
            raise InspectionError(f"stage=validate: unsupported image shape {board.shape}")

        processed = _run_stage("preprocess", lambda: preprocess(board))

        p = self.params
        if p.parallel:
            with ThreadPoolExecutor(max_workers=2, thread_name_prefix="inspect") as pool:
                comp_future = pool.submit(
                    _run_stage, "detect_components", lambda: self.detect_components(processed)
                )
                pad_future = pool.submit(
                    _run_stage,
                    "find_pads",
                    lambda: self.pad_analyzer.find_pads(
                        processed, p.pad_min_area, p.pad_max_area
                    ),
                )
                components = comp_future.result()
                pads = pad_future.result()
        else:
            components = _run_stage(
                "detect_components", lambda: self.detect_components(processed)
            )
            pads = _run_stage(
                "find_pads",
                lambda: self.pad_analyzer.find_pads(processed, p.pad_min_area, p.pad_max_area),
            )

        defects: List[Defect] = []
        defects.extend(
            _run_stage("solder_points", lambda: self.inspect_solder_points(board, pads))
        )
        defects.extend(
            _run_stage("components", lambda: self.inspect_components(components))
        )
        defects.extend(
            _run_stage("solder_bridges", lambda: self.find_solder_bridges(board, pads))
        )
        L.debug(
            "components=%d pads=%d defects=%d", len(components), len(pads), len(defects)
        )
        return components, defects

    def detect_components(self, processed: np.ndarray) -> List[Component]:
        detections: List[ComponentDetection] = self.component_detector.detect(processed)
        components: List[Component] = []
        for det in detections:
            components.append(
                Component(
                    designator=f"C{len(components) + 1}",
                    type=determine_component_type(det.bounding_box),
                    bounding_box=det.bounding_box,
                    detection_confidence=det.confidence,
                )
            )
        return components

    def inspect_solder_points(self, board: np.ndarray, pads: Sequence[Rect]) -> List[Defect]:
        defects: List[Defect] = []
        for pad in pads:
            roi = pad.crop(board)
            quality = self.pad_analyzer.analyze_quality(roi)
            if quality.is_poor or not quality.is_good:
                defect_type = (
                    DefectType.POOR_SOLDER if quality.is_poor else DefectType.COLD_SOLDER
                )
                defects.append(
                    Defect(
                        type=defect_type,
                        location=pad.center,
                        confidence=1.0 - quality.overall_score,
                        bounding_box=pad,
                        description=solder_defect_description(defect_type, quality),
                    )
                )
            if self.pad_analyzer.is_pad_empty(roi):
                defects.append(
                    Defect(
                        type=DefectType.MISSING_SOLDER,
                        location=pad.center,
                        confidence=self.params.missing_solder_confidence,
                        bounding_box=pad,
                        description=solder_defect_description(
                            DefectType.MISSING_SOLDER, quality
                        ),
                    )
                )
        return defects

    def inspect_components(self, components: Sequence[Component]) -> List[Defect]:
        """Attach low-confidence and misalignment defects to each component."""
        p = self.params
        defects: List[Defect] = []
        for component in components:
            if component.detection_confidence < p.min_component_confidence:
                defect = Defect(
                    type=DefectType.MISSING_COMPONENT,
                    location=component.center,
                    confidence=1.0 - component.detection_confidence,
                    bounding_box=component.bounding_box,
                    description=f"Low detection confidence for component {component.designator}",
                )
                defects.append(defect)
                component.add_defect(defect)
            if self.is_component_misaligned(component):
                defect = Defect(
                    type=DefectType.COMPONENT_SHIFT,
                    location=component.center,
                    confidence=p.shift_confidence,
                    bounding_box=component.bounding_box,
                    description=f"Component shifted: {component.designator}",
                )
                defects.append(defect)
                component.add_defect(defect)
        return defects

    def is_component_misaligned(self, component: Component) -> bool:
        # Only two-terminal parts are expected to be elongated.
        if component.type not in _SHIFT_CHECKED_TYPES:
            return False
        ratio = component.bounding_box.aspect_ratio
        return self.params.shift_ratio_low < ratio < self.params.shift_ratio_high

    def find_solder_bridges(self, board: np.ndarray, pads: Sequence[Rect]) -> List[Defect]:
        p = self.params
        defects: List[Defect] = []
        if len(pads) < p.bridge_min_pads:
            return defects

        gray = to_gray(board)
        _, mask = cv2.threshold(gray, int(p.bridge_threshold), 255, cv2.THRESH_BINARY_INV)
        for contour in find_all_contours(mask):
            if cv2.contourArea(contour) < p.bridge_min_area:
                continue
            box = Rect.from_xywh(cv2.boundingRect(contour))
            touched = [pad for pad in pads if box.intersects(pad)]
            if len(touched) < p.bridge_min_pads:
                continue
            defects.append(
                Defect(
                    type=DefectType.SOLDER_BRIDGE,
                    location=box.center,
                    confidence=p.bridge_confidence,
                    bounding_box=box,
                    description=f"Possible solder bridge between {len(touched)} pads",
                )
            )
        return defects


def _run_stage(stage: str, fn: Callable[[], T]) -> T:
    try:
        return fn()
    except InspectionError:
        raise
    except Exception as e:
        raise InspectionError(f"stage={stage}: {e}") from e


def _summary_message(result: InspectionResult) -> str:
    counts = result.severity_counts()
    return (
        f"Found {result.defect_count} defects in {len(result.components)} components "
        f"(critical={counts[DefectSeverity.CRITICAL]} high={counts[DefectSeverity.HIGH]} "
        f"medium={counts[DefectSeverity.MEDIUM]} low={counts[DefectSeverity.LOW]})"
    )


__all__ = [
    "InspectionParams",
    "InspectionOrchestrator",
    "determine_component_type",
    "solder_defect_description",
]
