from __future__ import annotations

from typing import Optional, Tuple

import cv2
import numpy as np

from .config import FrameGeometry, TemplateGeometry
from .errors import EmptyFrameError, OutOfBoundsError
from .types import MatchResult


def _is_empty(image: Optional[np.ndarray]) -> bool:
    return image is None or image.size == 0 or image.ndim < 2


def _as_matchable(image: np.ndarray, template: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    """matchTemplate wants both inputs as uint8 or both as float32."""
    if image.dtype == np.uint8 and template.dtype == np.uint8:
        return image, template
    return image.astype(np.float32, copy=False), template.astype(np.float32, copy=False)


def extract_template(frame: np.ndarray, geometry: TemplateGeometry) -> np.ndarray:
    """Cut the reference rectangle out of ``frame`` as an independent copy."""
    if _is_empty(frame):
        raise EmptyFrameError("Reference frame is empty or failed to decode")

    frame_height, frame_width = frame.shape[:2]
    if not geometry.fits_within(frame_width, frame_height):
        raise OutOfBoundsError(
            f"Template rectangle (x={geometry.origin_x}, y={geometry.origin_y}, "
            f"w={geometry.width}, h={geometry.height}) exceeds frame "
            f"{frame_width}x{frame_height}"
        )

    y0, x0 = geometry.origin_y, geometry.origin_x
    return frame[y0:y0 + geometry.height, x0:x0 + geometry.width].copy()


def estimate_displacement(
    frame: np.ndarray,
    template: np.ndarray,
    frame_geometry: FrameGeometry,
    method: int = cv2.TM_CCORR_NORMED,
) -> MatchResult:
    """Locate ``template`` in ``frame`` and express it as a shift from the frame centre.

    The shift is the template centre minus the frame centre, each halved with
    integer division (all operands are non-negative, so this truncates the same
    way C integer division does). Ties between equally scoring windows resolve
    to whichever location ``cv2.minMaxLoc`` reports first.

    Args:
        frame: Grayscale frame to search.
        template: Reference crop from frame 0 of the same unit.
        frame_geometry: Nominal frame size used for the centre.
        method: OpenCV normalized matching mode.
    """
    if _is_empty(frame):
        raise EmptyFrameError("Frame is empty or failed to decode")
    if _is_empty(template):
        raise EmptyFrameError("Template is empty")

    template_height, template_width = template.shape[:2]
    if template_height > frame.shape[0] or template_width > frame.shape[1]:
        raise OutOfBoundsError(
            f"Template {template_width}x{template_height} is larger than frame "
            f"{frame.shape[1]}x{frame.shape[0]}"
        )

    image, templ = _as_matchable(frame, template)
    response = cv2.matchTemplate(image, templ, method)
    _, max_val, _, max_loc = cv2.minMaxLoc(response)

    match_x, match_y = int(max_loc[0]), int(max_loc[1])
    shift_row = (match_y + template_height // 2) - (frame_geometry.height // 2)
    shift_col = (match_x + template_width // 2) - (frame_geometry.width // 2)

    return MatchResult(
        match_location=(match_x, match_y),
        confidence=float(max_val) * 100.0,
        shift_row=shift_row,
        shift_col=shift_col,
    )
