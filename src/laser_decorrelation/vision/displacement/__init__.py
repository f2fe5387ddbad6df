"""Stage displacement and sharpness measurement module.

Walks a Gain/Move/Exp grid of calibration experiments, locates a reference
template in every frame by normalized cross-correlation, converts the pixel
shift into millimetres and scores frame sharpness (MIG), writing one results
table per experiment.
"""

from .calibration import pixel_shift_to_mm
from .config import (
    CalibrationMatrix,
    DisplacementConfig,
    FrameGeometry,
    TemplateGeometry,
)
from .discovery import walk_experiment_tree
from .errors import (
    DisplacementError,
    EmptyFrameError,
    MalformedFilenameError,
    MissingReferenceFrameError,
    MissingRootError,
    OutOfBoundsError,
    RunAbortedError,
    SingularCalibrationError,
    SinkOpenError,
)
from .io import ResultSink, ensure_directory, load_frame, read_results
from .matching import estimate_displacement, extract_template
from .metrics import mean_intensity_gradient
from .sequencing import frame_index, sequence_frames
from .service import MeasurementPipeline, measure_frame, measure_frame_file, run_pipeline
from .types import (
    RESULT_COLUMNS,
    ExperimentLeaf,
    ExperimentUnit,
    FrameOutcome,
    MatchResult,
    MeasurementRecord,
    RunReport,
    UnitReport,
)

__all__ = [
    # Configuration
    "CalibrationMatrix",
    "DisplacementConfig",
    "FrameGeometry",
    "TemplateGeometry",

    # Errors
    "DisplacementError",
    "EmptyFrameError",
    "MalformedFilenameError",
    "MissingReferenceFrameError",
    "MissingRootError",
    "OutOfBoundsError",
    "RunAbortedError",
    "SingularCalibrationError",
    "SinkOpenError",

    # Data model
    "RESULT_COLUMNS",
    "ExperimentLeaf",
    "ExperimentUnit",
    "FrameOutcome",
    "MatchResult",
    "MeasurementRecord",
    "RunReport",
    "UnitReport",

    # Measurements
    "extract_template",
    "estimate_displacement",
    "pixel_shift_to_mm",
    "mean_intensity_gradient",

    # Discovery and ordering
    "walk_experiment_tree",
    "frame_index",
    "sequence_frames",

    # Results
    "ResultSink",
    "ensure_directory",
    "load_frame",
    "read_results",

    # Pipeline
    "MeasurementPipeline",
    "measure_frame",
    "measure_frame_file",
    "run_pipeline",
]
