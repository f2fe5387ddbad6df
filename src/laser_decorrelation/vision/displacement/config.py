from __future__ import annotations

from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Dict, Tuple, Union

import cv2

from ...utils.io import load_config, save_config
from .calibration import pixel_shift_to_mm
from .errors import OutOfBoundsError, SingularCalibrationError

MATCH_METHODS: Dict[str, int] = {
    "ccorr_normed": cv2.TM_CCORR_NORMED,
    "ccoeff_normed": cv2.TM_CCOEFF_NORMED,
}

DEFAULT_FRAME_EXTENSIONS: Tuple[str, ...] = (".png", ".bmp", ".tif", ".tiff", ".jpg", ".jpeg")


@dataclass(frozen=True)
class FrameGeometry:
    """Nominal size of every frame in the experiment grid (pixels)."""

    width: int = 728
    height: int = 544

    def __post_init__(self) -> None:
        if self.width <= 0 or self.height <= 0:
            raise ValueError(f"Frame size must be positive, got {self.width}x{self.height}")


@dataclass(frozen=True)
class TemplateGeometry:
    """Reference rectangle cut from frame 0 (top-left origin, pixels)."""

    width: int = 128
    height: int = 128
    origin_x: int = 300
    origin_y: int = 208

    def fits_within(self, frame_width: int, frame_height: int) -> bool:
        return (
            self.width > 0
            and self.height > 0
            and self.origin_x >= 0
            and self.origin_y >= 0
            and self.origin_x + self.width <= frame_width
            and self.origin_y + self.height <= frame_height
        )


@dataclass(frozen=True)
class CalibrationMatrix:
    """Forward stage-to-pixel map; inverted to turn pixel shifts into mm.

    ``col = txx * x_mm + txy * y_mm`` and ``row = tyx * x_mm + tyy * y_mm``.
    """

    txx: float = -256.75
    txy: float = 2.5
    tyx: float = 3.5
    tyy: float = 260.5

    def __post_init__(self) -> None:
        if self.determinant == 0:
            raise SingularCalibrationError(
                f"Calibration matrix is singular (txx={self.txx}, txy={self.txy}, "
                f"tyx={self.tyx}, tyy={self.tyy})"
            )

    @property
    def determinant(self) -> float:
        return self.txx * self.tyy - self.txy * self.tyx

    def to_mm(self, shift_row: int, shift_col: int) -> Tuple[float, float]:
        """Convert a pixel shift into (dist_x_mm, dist_y_mm)."""
        return pixel_shift_to_mm(shift_row, shift_col, self)

    def to_pixels(self, dist_x_mm: float, dist_y_mm: float) -> Tuple[float, float]:
        """Forward map: physical displacement to (shift_row, shift_col)."""
        shift_col = self.txx * dist_x_mm + self.txy * dist_y_mm
        shift_row = self.tyx * dist_x_mm + self.tyy * dist_y_mm
        return shift_row, shift_col


@dataclass(frozen=True)
class DisplacementConfig:
    """Complete measurement configuration, fixed for the lifetime of a run."""

    calibration: CalibrationMatrix = field(default_factory=CalibrationMatrix)
    template: TemplateGeometry = field(default_factory=TemplateGeometry)
    frame: FrameGeometry = field(default_factory=FrameGeometry)

    match_method: str = "ccorr_normed"
    frame_extensions: Tuple[str, ...] = DEFAULT_FRAME_EXTENSIONS
    results_filename: str = "Results.csv"

    # Write pixel shift, confidence and MIG only (mm columns left blank)
    calibration_mode: bool = False
    skip_unreadable_frames: bool = False
    fail_fast: bool = False
    max_workers: int = 1

    def __post_init__(self) -> None:
        if self.match_method not in MATCH_METHODS:
            raise ValueError(
                f"Unknown match method '{self.match_method}', expected one of {sorted(MATCH_METHODS)}"
            )
        if not self.template.fits_within(self.frame.width, self.frame.height):
            raise OutOfBoundsError(
                f"Template {self.template} does not fit inside a "
                f"{self.frame.width}x{self.frame.height} frame"
            )
        if self.max_workers < 1:
            raise ValueError(f"max_workers must be >= 1, got {self.max_workers}")
        # Normalise extensions so matching is case-insensitive
        extensions = tuple(
            ext.lower() if ext.startswith(".") else f".{ext.lower()}"
            for ext in self.frame_extensions
        )
        object.__setattr__(self, "frame_extensions", extensions)

    @property
    def match_flag(self) -> int:
        return MATCH_METHODS[self.match_method]

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["frame_extensions"] = list(self.frame_extensions)
        return data

    def save(self, path: Union[str, Path]) -> None:
        """Save configuration to a YAML or JSON file."""
        save_config(self.to_dict(), path)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DisplacementConfig":
        data = dict(data)
        kwargs: Dict[str, Any] = {}

        # Handle nested dataclass creation
        if "calibration" in data:
            kwargs["calibration"] = CalibrationMatrix(**data.pop("calibration"))
        if "template" in data:
            kwargs["template"] = TemplateGeometry(**data.pop("template"))
        if "frame" in data:
            kwargs["frame"] = FrameGeometry(**data.pop("frame"))
        if "frame_extensions" in data:
            kwargs["frame_extensions"] = tuple(data.pop("frame_extensions"))

        kwargs.update(data)
        return cls(**kwargs)

    @classmethod
    def load(cls, path: Union[str, Path]) -> "DisplacementConfig":
        """Load configuration from a YAML or JSON file."""
        return cls.from_dict(load_config(path))
