from .base import (
    Detector,
    create_detector,
    create_detector_from_loaded_config,
    register_detector,
    encode_image_jpeg,
)
from .inspection import InspectionOrchestrator, InspectionParams
from .visualize import draw_defects

__all__ = [
    "Detector",
    "create_detector",
    "create_detector_from_loaded_config",
    "register_detector",
    "encode_image_jpeg",
    "InspectionOrchestrator",
    "InspectionParams",
    "draw_defects",
]
