"""Shared dataclasses and type definitions for displacement measurement."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Tuple

RESULT_COLUMNS: Tuple[str, ...] = (
    "Pixel Shift X (Columns)",
    "Pixel Shift Y (Rows)",
    "Confidence (%)",
    "Dist. X (mm)",
    "Dist. Y (mm)",
    "Error X (mm)",
    "Error Y (mm)",
    "Error X (%)",
    "Error Y (%)",
    "MIG",
)


@dataclass(frozen=True)
class ExperimentLeaf:
    """One Gain/Move/Exp folder discovered in the experiment tree."""

    gain_label: str
    move_label: str
    exp_label: str
    directory: Path

    @property
    def relative_parts(self) -> Tuple[str, str, str]:
        return self.gain_label, self.move_label, self.exp_label


@dataclass(frozen=True)
class ExperimentUnit:
    """A leaf together with its frames in processing order."""

    gain_label: str
    move_label: str
    exp_label: str
    directory: Path
    ordered_frame_paths: Tuple[Path, ...]

    @property
    def relative_parts(self) -> Tuple[str, str, str]:
        return self.gain_label, self.move_label, self.exp_label

    @property
    def frame_count(self) -> int:
        return len(self.ordered_frame_paths)


@dataclass(frozen=True)
class MatchResult:
    """Template match in one frame.

    ``match_location`` is the (x, y) top-left corner of the best window.
    Negative ``shift_row`` means the template moved up, negative ``shift_col``
    means it moved left.
    """

    match_location: Tuple[int, int]
    confidence: float
    shift_row: int
    shift_col: int


@dataclass(frozen=True)
class MeasurementRecord:
    """One row of a results table."""

    pixel_shift_x: int
    pixel_shift_y: int
    confidence_percent: float
    dist_x_mm: Optional[float]
    dist_y_mm: Optional[float]
    mig: float
    # No ground truth at this layer; kept so every table has the same columns
    error_x_mm: Optional[float] = None
    error_y_mm: Optional[float] = None
    error_x_pct: Optional[float] = None
    error_y_pct: Optional[float] = None

    def to_row(self) -> Tuple[Optional[float], ...]:
        """Values in ``RESULT_COLUMNS`` order."""
        return (
            self.pixel_shift_x,
            self.pixel_shift_y,
            self.confidence_percent,
            self.dist_x_mm,
            self.dist_y_mm,
            self.error_x_mm,
            self.error_y_mm,
            self.error_x_pct,
            self.error_y_pct,
            self.mig,
        )


@dataclass(frozen=True)
class FrameOutcome:
    """Result of measuring one frame file: a record or the error that stopped it."""

    frame_path: Path
    record: Optional[MeasurementRecord] = None
    error: Optional[Exception] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class UnitReport:
    """What processing one leaf produced."""

    leaf: ExperimentLeaf
    frames_total: int = 0
    frames_processed: int = 0
    frames_skipped: List[Path] = field(default_factory=list)
    table_path: Optional[Path] = None
    error: Optional[Exception] = None

    @property
    def completed(self) -> bool:
        return self.error is None


@dataclass
class RunReport:
    """Aggregated outcome of a run over the whole experiment tree."""

    root: Path
    output_root: Path
    units: List[UnitReport] = field(default_factory=list)

    @property
    def completed(self) -> List[UnitReport]:
        return [u for u in self.units if u.completed]

    @property
    def failed(self) -> List[UnitReport]:
        return [u for u in self.units if not u.completed]

    @property
    def ok(self) -> bool:
        return not self.failed

    def summary(self) -> dict:
        return {
            "root": str(self.root),
            "output_root": str(self.output_root),
            "units": len(self.units),
            "completed": len(self.completed),
            "failed": [
                {"leaf": str(u.leaf.directory), "error": str(u.error)}
                for u in self.failed
            ],
            "frames_processed": sum(u.frames_processed for u in self.units),
        }
