"""Input/output helpers: frame decoding, output folders and results tables."""

from __future__ import annotations

from pathlib import Path
from typing import List, Optional, Sequence, Union

import cv2
import numpy as np
import pandas as pd

from ...utils.io import load_data, save_data
from ...utils.log import get_logger
from .errors import EmptyFrameError, SinkOpenError
from .types import RESULT_COLUMNS, MeasurementRecord

logger = get_logger(__name__)

# Same significant digits as a default C++ output stream
FLOAT_FORMAT = "%.6g"


def ensure_directory(path: Union[str, Path]) -> bool:
    """Create ``path`` (and parents) if absent.

    Returns:
        True if the folder was created, False if it already existed.
    """
    path = Path(path)
    if path.is_dir():
        logger.info(f"Folder already exists at path: {path}")
        return False
    path.mkdir(parents=True, exist_ok=True)
    logger.info(f"Folder created at path: {path}")
    return True


def load_frame(path: Union[str, Path]) -> np.ndarray:
    """Decode an image file as a single-channel raster.

    Raises:
        EmptyFrameError: the file is missing, unreadable or decodes to nothing.
    """
    path = Path(path)
    frame = cv2.imread(str(path), cv2.IMREAD_GRAYSCALE)
    if frame is None or frame.size == 0:
        raise EmptyFrameError("Image is empty or corrupted", path)
    return frame


def read_results(path: Union[str, Path]) -> pd.DataFrame:
    """Load a results table written by :class:`ResultSink`."""
    return load_data(path, file_type="csv")


class ResultSink:
    """Fixed-schema CSV table for one experiment unit.

    ``open()`` creates the file with its header straight away so an unwritable
    location is reported before any frame is measured. Rows are buffered in
    append order and written on ``close()``. Leaving the context with an
    exception drops the buffered rows and removes the header file, so an
    abandoned unit leaves no table behind.
    """

    def __init__(self, path: Union[str, Path], columns: Sequence[str] = RESULT_COLUMNS):
        self.path = Path(path)
        self.columns = list(columns)
        self._rows: List[tuple] = []
        self._open = False

    def __enter__(self) -> "ResultSink":
        self.open()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        if exc_type is not None:
            self.abandon()
        else:
            self.close()

    @property
    def rows_written(self) -> int:
        return len(self._rows)

    def open(self) -> None:
        try:
            ensure_directory(self.path.parent)
            self._write([])
        except OSError as e:
            raise SinkOpenError(f"Error opening results table ({e})", self.path) from e
        self._rows = []
        self._open = True

    def append(self, record: MeasurementRecord) -> None:
        if not self._open:
            raise RuntimeError("Sink not opened. Use as context manager or call open().")
        self._rows.append(record.to_row())

    def close(self) -> None:
        if not self._open:
            return
        self._write(self._rows)
        self._open = False
        logger.debug(f"Wrote {len(self._rows)} rows to {self.path}")

    def abandon(self) -> None:
        if self._open:
            logger.warning(f"Discarding {len(self._rows)} buffered rows for {self.path}")
            # A header-only file would read as a finished empty experiment
            self.path.unlink(missing_ok=True)
        self._rows = []
        self._open = False

    def _write(self, rows: Sequence[tuple]) -> None:
        table = pd.DataFrame.from_records(list(rows), columns=self.columns)
        save_data(table, self.path, file_type="csv", float_format=FLOAT_FORMAT)


def results_path(output_root: Union[str, Path], parts: Sequence[str], filename: str = "Results.csv") -> Path:
    """Mirror a leaf's Gain/Move/Exp labels under ``output_root``."""
    return Path(output_root).joinpath(*parts) / filename


def default_output_root(root: Union[str, Path], suffix: Optional[str] = "_results") -> Path:
    """``images`` -> ``images_results`` alongside the input root."""
    root = Path(root).resolve()
    return root.with_name(root.name + (suffix or ""))
