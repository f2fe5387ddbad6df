"""Pixel-to-physical conversion for stage displacement."""

from __future__ import annotations

from typing import TYPE_CHECKING, Tuple

from .errors import SingularCalibrationError

if TYPE_CHECKING:
    from .config import CalibrationMatrix


def pixel_shift_to_mm(shift_row: int, shift_col: int, matrix: "CalibrationMatrix") -> Tuple[float, float]:
    """Invert the 2x2 stage-to-pixel map, absorbing stage-axis skew.

    Args:
        shift_row: Signed row shift in pixels (positive = downward).
        shift_col: Signed column shift in pixels (positive = rightward).
        matrix: Calibration coefficients.

    Returns:
        (dist_x_mm, dist_y_mm)
    """
    det = matrix.txx * matrix.tyy - matrix.txy * matrix.tyx
    if det == 0:
        raise SingularCalibrationError("Calibration matrix became singular at conversion time")

    dist_x_mm = (shift_col * matrix.tyy - shift_row * matrix.txy) / det
    dist_y_mm = (shift_row * matrix.txx - shift_col * matrix.tyx) / det
    return float(dist_x_mm), float(dist_y_mm)
