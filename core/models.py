"""Inspection domain types: components, defects, solder quality, results."""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum, IntEnum

from core.contracts import Point, Rect


class ComponentType(str, Enum):
    UNKNOWN = "Unknown"
    RESISTOR = "Resistor"
    CAPACITOR = "Capacitor"
    INDUCTOR = "Inductor"
    DIODE = "Diode"
    TRANSISTOR = "Transistor"
    INTEGRATED_CIRCUIT = "IntegratedCircuit"
    CONNECTOR = "Connector"
    BUTTON = "Button"
    LED = "LED"


class DefectType(str, Enum):
    MISSING_SOLDER = "MissingSolder"
    POOR_SOLDER = "PoorSolder"
    SOLDER_BRIDGE = "SolderBridge"
    COMPONENT_SHIFT = "ComponentShift"
    MISSING_COMPONENT = "MissingComponent"
    WRONG_COMPONENT = "WrongComponent"
    COLD_SOLDER = "ColdSolder"
    EXCESS_SOLDER = "ExcessSolder"


class DefectSeverity(IntEnum):
    LOW = 0
    MEDIUM = 1
    HIGH = 2
    CRITICAL = 3


_SEVERITY_BY_TYPE = {
    DefectType.SOLDER_BRIDGE: DefectSeverity.CRITICAL,
    DefectType.MISSING_COMPONENT: DefectSeverity.HIGH,
    DefectType.MISSING_SOLDER: DefectSeverity.MEDIUM,
    DefectType.POOR_SOLDER: DefectSeverity.MEDIUM,
}


def severity_for(defect_type: DefectType) -> DefectSeverity:
    return _SEVERITY_BY_TYPE.get(DefectType(defect_type), DefectSeverity.LOW)


def clamp01(value: float) -> float:
    v = float(value)
    if v != v:  # NaN
        return 0.0
    return 0.0 if v < 0.0 else 1.0 if v > 1.0 else v


@dataclass(frozen=True, slots=True)
class Defect:
    type: DefectType
    location: Point
    confidence: float = 0.5
    bounding_box: Rect = field(default_factory=Rect)
    description: str = ""
    id: uuid.UUID = field(default_factory=uuid.uuid4)
    detected_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def __post_init__(self):
        object.__setattr__(self, "type", DefectType(self.type))
        object.__setattr__(self, "confidence", clamp01(self.confidence))

    @property
    def severity(self) -> DefectSeverity:
        return severity_for(self.type)


@dataclass(slots=True)
class Component:
    designator: str
    type: ComponentType = ComponentType.UNKNOWN
    bounding_box: Rect = field(default_factory=Rect)
    detection_confidence: float = 0.0
    defects: list[Defect] = field(default_factory=list)

    def __post_init__(self):
        self.detection_confidence = clamp01(self.detection_confidence)

    @property
    def center(self) -> Point:
        return self.bounding_box.center

    def add_defect(self, defect: Defect) -> None:
        self.defects.append(defect)


# Weights of (shine, saturation, circularity, convexity) in the overall score.
SOLDER_SCORE_WEIGHTS = (0.4, 0.2, 0.2, 0.2)
GOOD_SOLDER_THRESHOLD = 0.7
POOR_SOLDER_THRESHOLD = 0.4


@dataclass(frozen=True, slots=True)
class SolderQuality:
    shine_score: float = 0.0
    saturation_score: float = 0.0
    circularity: float = 0.0
    convexity: float = 0.0
    contour_area: float = 0.0
    perimeter: float = 0.0

    @property
    def overall_score(self) -> float:
        w_shine, w_sat, w_circ, w_conv = SOLDER_SCORE_WEIGHTS
        score = (
            self.shine_score * w_shine
            + self.saturation_score * w_sat
            + self.circularity * w_circ
            + self.convexity * w_conv
        )
        # Rounded so that scores landing on a threshold compare exactly.
        return round(score, 9)

    @property
    def is_good(self) -> bool:
        return self.overall_score >= GOOD_SOLDER_THRESHOLD

    @property
    def is_poor(self) -> bool:
        return self.overall_score < POOR_SOLDER_THRESHOLD


@dataclass(frozen=True, slots=True)
class InspectionResult:
    success: bool
    message: str = ""
    error: Exception | None = None
    defects: tuple[Defect, ...] = ()
    components: tuple[Component, ...] = ()
    inspected_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    processing_ms: float = 0.0

    @property
    def defect_count(self) -> int:
        return len(self.defects)

    @property
    def has_defects(self) -> bool:
        return bool(self.defects)

    def severity_counts(self) -> dict[DefectSeverity, int]:
        counts = {sev: 0 for sev in DefectSeverity}
        for defect in self.defects:
            counts[defect.severity] += 1
        return counts


__all__ = [
    "ComponentType",
    "DefectType",
    "DefectSeverity",
    "severity_for",
    "clamp01",
    "Defect",
    "Component",
    "SOLDER_SCORE_WEIGHTS",
    "GOOD_SOLDER_THRESHOLD",
    "POOR_SOLDER_THRESHOLD",
    "SolderQuality",
    "InspectionResult",
]
