"""Exception types raised by the camera and inspection layers."""


class CameraError(Exception):
    pass


class ConnectionFailure(CameraError):
    """All connection attempts failed, or the handle could not be opened/read."""


class CaptureError(CameraError):
    """The capture handle is not open, or no frame arrived within the retry budget."""


class InspectionError(Exception):
    """A pipeline stage failed; the message carries the stage context."""


__all__ = [
    "CameraError",
    "ConnectionFailure",
    "CaptureError",
    "InspectionError",
]
