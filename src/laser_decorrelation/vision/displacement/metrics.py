from __future__ import annotations

from typing import Optional

import cv2
import numpy as np

from .errors import EmptyFrameError


def _to_grayscale(image: np.ndarray) -> np.ndarray:
    """Convert image to grayscale; 2-D input passes through untouched."""
    if image.ndim == 2:
        return image
    if image.ndim == 3 and image.shape[2] == 3:
        # Assume BGR (OpenCV convention)
        return cv2.cvtColor(image, cv2.COLOR_BGR2GRAY)
    raise ValueError("Unsupported image shape for grayscale conversion: " + str(image.shape))


def sobel_magnitude(image: np.ndarray, ksize: int = 3) -> np.ndarray:
    """Per-pixel gradient magnitude sqrt(dx^2 + dy^2) from Sobel derivatives."""
    gray = _to_grayscale(image)
    if gray.dtype not in (np.uint8, np.uint16, np.int16, np.float32):
        gray = gray.astype(np.float32)
    gx = cv2.Sobel(gray, cv2.CV_32F, 1, 0, ksize=ksize)
    gy = cv2.Sobel(gray, cv2.CV_32F, 0, 1, ksize=ksize)
    return cv2.magnitude(gx, gy)


def mean_intensity_gradient(image: Optional[np.ndarray], ksize: int = 3) -> float:
    """Mean Intensity Gradient (MIG) sharpness score.

    Sum of Sobel gradient magnitudes over the frame divided by the pixel
    count. Exactly 0 for a uniform frame, larger for sharper frames.

    Args:
        image: Grayscale (or BGR) frame.
        ksize: Sobel kernel size.

    Raises:
        EmptyFrameError: ``image`` is missing or has no pixels.
    """
    if image is None or image.size == 0:
        raise EmptyFrameError("Cannot compute MIG of an empty frame")

    magnitude = sobel_magnitude(image, ksize=ksize)
    total = float(np.sum(magnitude, dtype=np.float64))
    return total / (magnitude.shape[0] * magnitude.shape[1])
