# -- coding: utf-8 --

import logging

import cv2

from camera.base import BaseCamera, CameraConfig, register_camera

L = logging.getLogger("aoi_runtime.camera.opencv")


@register_camera("opencv")
class OpenCvCamera(BaseCamera):
    """Local UVC devices and network streams through `cv2.VideoCapture`."""

    name = "USB Camera"

    def __init__(self, cfg: CameraConfig):
        super().__init__(cfg)

    def open(self, target):
        cap = cv2.VideoCapture(target, cv2.CAP_ANY)
        if not cap.isOpened():
            return cap
        if self.cfg.buffer_size > 0:
            # Keep the driver queue short so reads return the newest frame.
            cap.set(cv2.CAP_PROP_BUFFERSIZE, int(self.cfg.buffer_size))
        if self.cfg.width and self.cfg.height:
            cap.set(cv2.CAP_PROP_FRAME_WIDTH, int(self.cfg.width))
            cap.set(cv2.CAP_PROP_FRAME_HEIGHT, int(self.cfg.height))
        L.debug("opened capture target=%r", target)
        return cap


__all__ = ["OpenCvCamera"]
