from __future__ import annotations

import os
from datetime import datetime, timezone


def normalize_utc_datetime(value: datetime | None) -> datetime:
    ref = value or datetime.now(timezone.utc)
    if ref.tzinfo is None:
        ref = ref.replace(tzinfo=timezone.utc)
    return ref.astimezone(timezone.utc)


def format_overlay_filename(
    seq: int, camera: int, ts_utc: datetime | None = None, ext: str = ".jpg"
) -> str:
    ref = normalize_utc_datetime(ts_utc)
    ts = ref.strftime("%H-%M-%S.%f")[:-3] + "Z"
    return f"{ts}_cam{int(camera) + 1}_{int(seq):05d}{ext}"


class OverlayStore:
    """Writes encoded overlay images under `<root>/<UTC date>/`."""

    def __init__(self, root_dir: str):
        self.root_dir = root_dir
        self._date_key: str | None = None
        self._dir_path: str | None = None
        self._seq = 0

    def _dated_dir(self, ref: datetime) -> str:
        date_key = ref.date().isoformat()
        if self._date_key != date_key or not self._dir_path:
            target_dir = os.path.join(self.root_dir, date_key)
            os.makedirs(target_dir, exist_ok=True)
            self._date_key = date_key
            self._dir_path = target_dir
        return self._dir_path

    def save(self, data: bytes, *, camera: int = 0, ts_utc: datetime | None = None) -> str:
        ref = normalize_utc_datetime(ts_utc)
        self._seq += 1
        path = os.path.join(
            self._dated_dir(ref), format_overlay_filename(self._seq, camera, ref)
        )
        with open(path, "wb") as f:
            f.write(data)
        return path


__all__ = ["OverlayStore", "format_overlay_filename", "normalize_utc_datetime"]
