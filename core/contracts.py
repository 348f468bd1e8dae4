"""Data contracts shared by camera, detect, and station layers."""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any


@dataclass(frozen=True, slots=True)
class Point:
    x: int = 0
    y: int = 0

    def as_tuple(self) -> tuple[int, int]:
        return (int(self.x), int(self.y))


@dataclass(frozen=True, slots=True)
class Rect:
    x: int = 0
    y: int = 0
    width: int = 0
    height: int = 0

    @classmethod
    def from_xywh(cls, xywh) -> "Rect":
        x, y, w, h = xywh
        return cls(int(x), int(y), int(w), int(h))

    @property
    def center(self) -> Point:
        return Point(self.x + self.width // 2, self.y + self.height // 2)

    @property
    def area(self) -> int:
        return self.width * self.height

    @property
    def aspect_ratio(self) -> float:
        if self.height == 0:
            return 0.0
        return self.width / self.height

    @property
    def is_empty(self) -> bool:
        return self.width <= 0 or self.height <= 0

    def intersects(self, other: "Rect") -> bool:
        # Edges that only touch do not count as an overlap.
        return (
            self.x < other.x + other.width
            and other.x < self.x + self.width
            and self.y < other.y + other.height
            and other.y < self.y + self.height
        )

    def crop(self, image):
        """Return a view of `image` limited to this rect (clipped to the image)."""
        img_h, img_w = image.shape[:2]
        x0 = min(max(self.x, 0), img_w)
        y0 = min(max(self.y, 0), img_h)
        x1 = min(max(self.x + self.width, 0), img_w)
        y1 = min(max(self.y + self.height, 0), img_h)
        return image[y0:y1, x0:x1]

    def as_tuple(self) -> tuple[int, int, int, int]:
        return (int(self.x), int(self.y), int(self.width), int(self.height))


NETWORK_CAMERA_INDEX = -1


@dataclass(frozen=True, slots=True)
class CameraInfo:
    index: int
    name: str = ""
    is_available: bool = False

    @property
    def is_network(self) -> bool:
        return self.index == NETWORK_CAMERA_INDEX

    @property
    def display_name(self) -> str:
        suffix = f" ({self.name})" if self.name else ""
        return f"Camera {self.index}{suffix}"


class SourceState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    STREAMING = "streaming"


@dataclass(slots=True)
class CaptureResult:
    device_id: str = ""
    success: bool = False
    error: str | None = None
    image: Any | None = None  # runtime np.ndarray
    captured_at: datetime | None = None
    timings: dict[str, float] | None = None


@dataclass(frozen=True, slots=True)
class ConnectResult:
    success: bool
    target: int | str | None = None
    attempts: int = 0
    error: str = ""
    frame_size: tuple[int, int] | None = None  # (width, height)
    fps: float = 0.0

    def __bool__(self) -> bool:
        return self.success

    @property
    def last_error(self) -> str:
        return self.error


__all__ = [
    "Point",
    "Rect",
    "NETWORK_CAMERA_INDEX",
    "CameraInfo",
    "SourceState",
    "CaptureResult",
    "ConnectResult",
]
