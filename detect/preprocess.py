"""Stateless image preparation shared by the detection stages."""

import math

import cv2
import numpy as np

DENOISE_KERNEL = (3, 3)
MORPH_KERNEL_SIZE = 3


def to_gray(img: np.ndarray) -> np.ndarray:
    if img.ndim == 2:
        return img
    if img.ndim == 3 and img.shape[2] == 1:
        return img[:, :, 0]
    if img.ndim == 3 and img.shape[2] == 4:
        return cv2.cvtColor(img, cv2.COLOR_BGRA2GRAY)
    return cv2.cvtColor(img, cv2.COLOR_BGR2GRAY)


def to_bgr(img: np.ndarray) -> np.ndarray:
    if img.ndim == 2:
        return cv2.cvtColor(img, cv2.COLOR_GRAY2BGR)
    if img.ndim == 3 and img.shape[2] == 1:
        return cv2.cvtColor(img[:, :, 0], cv2.COLOR_GRAY2BGR)
    if img.ndim == 3 and img.shape[2] == 4:
        return cv2.cvtColor(img, cv2.COLOR_BGRA2BGR)
    return img


def preprocess(img: np.ndarray, denoise: bool = True, enhance: bool = True) -> np.ndarray:
    """Grayscale, then optional 3x3 Gaussian blur and histogram equalization.

    Always returns a new array; the input is never modified.
    """
    gray = to_gray(img).astype(np.uint8, copy=False)
    out = gray.copy()
    if denoise:
        out = cv2.GaussianBlur(out, DENOISE_KERNEL, 0)
    if enhance:
        out = cv2.equalizeHist(out)
    return out


def binarize(gray: np.ndarray, invert: bool = True) -> np.ndarray:
    """Otsu threshold; with `invert` the darker class becomes foreground (255)."""
    flags = cv2.THRESH_BINARY | cv2.THRESH_OTSU
    _, mask = cv2.threshold(to_gray(gray), 0, 255, flags)
    if invert:
        mask = cv2.bitwise_not(mask)
    return mask


def morph_clean(mask: np.ndarray, ksize: int = MORPH_KERNEL_SIZE) -> np.ndarray:
    """Close then open with a square kernel: fill pin holes, drop speckles."""
    kernel = cv2.getStructuringElement(cv2.MORPH_RECT, (ksize, ksize))
    closed = cv2.morphologyEx(mask, cv2.MORPH_CLOSE, kernel)
    return cv2.morphologyEx(closed, cv2.MORPH_OPEN, kernel)


def _contours(mask: np.ndarray, mode: int):
    res = cv2.findContours(mask, mode, cv2.CHAIN_APPROX_SIMPLE)
    # OpenCV 3 returns (image, contours, hierarchy); 4 returns (contours, hierarchy).
    return res[0] if len(res) == 2 else res[1]


def find_external_contours(mask: np.ndarray):
    return _contours(mask, cv2.RETR_EXTERNAL)


def find_all_contours(mask: np.ndarray):
    return _contours(mask, cv2.RETR_LIST)


def circularity(area: float, perimeter: float) -> float:
    if perimeter <= 0:
        return 0.0
    return float(4.0 * math.pi * area / (perimeter * perimeter))


__all__ = [
    "to_gray",
    "to_bgr",
    "preprocess",
    "binarize",
    "morph_clean",
    "find_external_contours",
    "find_all_contours",
    "circularity",
]
