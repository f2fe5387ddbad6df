"""Error taxonomy for the displacement measurement pipeline.

Each error carries the path it concerns (when there is one) so the caller can
report the affected file or folder before aborting its scope.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional, Union

PathLike = Union[str, Path]


class DisplacementError(Exception):
    """Base class for all measurement pipeline failures."""

    def __init__(self, message: str, path: Optional[PathLike] = None):
        self.path = Path(path) if path is not None else None
        if self.path is not None:
            message = f"{message}: {self.path}"
        super().__init__(message)


class MissingRootError(DisplacementError, FileNotFoundError):
    """Experiment root folder does not exist. Fatal for the whole run."""


class MalformedFilenameError(DisplacementError, ValueError):
    """A frame filename carries no decimal index. Fatal for its unit."""


class OutOfBoundsError(DisplacementError, ValueError):
    """A rectangle or template does not fit inside the frame. Fatal for its unit."""


class EmptyFrameError(DisplacementError, ValueError):
    """A frame is empty or failed to decode. Short-circuits that frame's record."""


class SingularCalibrationError(DisplacementError, ValueError):
    """Calibration matrix has a zero determinant. Fatal for the whole run."""


class SinkOpenError(DisplacementError, OSError):
    """The results table for a unit could not be opened."""


class MissingReferenceFrameError(DisplacementError, FileNotFoundError):
    """An experiment has no index-0 frame to cut the template from. Fatal for its unit."""


class RunAbortedError(DisplacementError):
    """Processing stopped because another unit already aborted the run."""
