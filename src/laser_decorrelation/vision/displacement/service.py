"""Measurement pipeline orchestrating discovery, matching and result tables."""

from __future__ import annotations

import threading
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Union

import numpy as np

from ...utils.log import get_logger
from .calibration import pixel_shift_to_mm
from .config import DisplacementConfig
from .discovery import walk_experiment_tree
from .errors import (
    DisplacementError,
    EmptyFrameError,
    MissingReferenceFrameError,
    RunAbortedError,
    SingularCalibrationError,
)
from .io import ResultSink, default_output_root, load_frame, results_path
from .matching import estimate_displacement, extract_template
from .metrics import mean_intensity_gradient
from .sequencing import frame_index, list_frame_paths, sequence_frames
from .types import (
    ExperimentLeaf,
    ExperimentUnit,
    FrameOutcome,
    MeasurementRecord,
    RunReport,
    UnitReport,
)

logger = get_logger(__name__)


def measure_frame(frame: np.ndarray, template: np.ndarray, config: DisplacementConfig) -> MeasurementRecord:
    """Displacement, physical distance and MIG for one in-memory frame."""
    match = estimate_displacement(frame, template, config.frame, method=config.match_flag)
    mig = mean_intensity_gradient(frame)

    if config.calibration_mode:
        dist_x_mm = dist_y_mm = None
    else:
        dist_x_mm, dist_y_mm = pixel_shift_to_mm(match.shift_row, match.shift_col, config.calibration)

    return MeasurementRecord(
        pixel_shift_x=match.shift_col,
        pixel_shift_y=match.shift_row,
        confidence_percent=match.confidence,
        dist_x_mm=dist_x_mm,
        dist_y_mm=dist_y_mm,
        mig=mig,
    )


def measure_frame_file(path: Path, template: np.ndarray, config: DisplacementConfig) -> FrameOutcome:
    """Decode and measure one frame file; a bad decode becomes an error outcome."""
    try:
        frame = load_frame(path)
    except EmptyFrameError as e:
        return FrameOutcome(frame_path=path, error=e)
    return FrameOutcome(frame_path=path, record=measure_frame(frame, template, config))


@dataclass
class MeasurementPipeline:
    """Runs the per-frame measurements over every leaf of an experiment tree."""

    config: DisplacementConfig = field(default_factory=DisplacementConfig)
    # Set once a run-fatal error is raised; in-flight units stop at their next frame
    _abort: threading.Event = field(default_factory=threading.Event, init=False, repr=False, compare=False)

    def build_unit(self, leaf: ExperimentLeaf) -> ExperimentUnit:
        frames = list_frame_paths(leaf.directory, self.config.frame_extensions)
        ordered = sequence_frames(frames)
        return ExperimentUnit(
            gain_label=leaf.gain_label,
            move_label=leaf.move_label,
            exp_label=leaf.exp_label,
            directory=leaf.directory,
            ordered_frame_paths=tuple(ordered),
        )

    def process_unit(
        self,
        unit: ExperimentUnit,
        output_root: Union[str, Path],
        report: Optional[UnitReport] = None,
    ) -> UnitReport:
        """Measure every frame of ``unit`` and write its results table.

        Raises whatever aborts the unit; ``report`` is filled in as far as it got.
        """
        if report is None:
            report = UnitReport(leaf=ExperimentLeaf(*unit.relative_parts, unit.directory))
        report.frames_total = unit.frame_count
        table_path = results_path(output_root, unit.relative_parts, self.config.results_filename)

        if unit.ordered_frame_paths and frame_index(unit.ordered_frame_paths[0]) != 0:
            first = unit.ordered_frame_paths[0]
            raise MissingReferenceFrameError(
                "Experiment has no reference frame", unit.directory / f"frame_0{first.suffix}"
            )

        with ResultSink(table_path) as sink:
            report.table_path = table_path
            if not unit.ordered_frame_paths:
                logger.warning(f"No frames found in {unit.directory}")
                return report

            # Frame 0 is the reference; its template is used for every frame in the unit
            reference = load_frame(unit.ordered_frame_paths[0])
            template = extract_template(reference, self.config.template)

            for path in unit.ordered_frame_paths:
                if self._abort.is_set():
                    raise RunAbortedError("Run aborted while measuring", unit.directory)
                logger.debug(f"Reading image: {path}")
                outcome = measure_frame_file(path, template, self.config)
                if not outcome.ok:
                    if not self.config.skip_unreadable_frames:
                        raise outcome.error
                    logger.warning(f"Skipping unreadable frame: {outcome.error}")
                    report.frames_skipped.append(path)
                    continue
                sink.append(outcome.record)
                report.frames_processed += 1

        logger.info(f"Wrote {report.frames_processed} rows to {table_path}")
        return report

    def process_leaf(self, leaf: ExperimentLeaf, output_root: Union[str, Path]) -> UnitReport:
        """Process one leaf, turning unit-fatal errors into a failed report."""
        report = UnitReport(leaf=leaf)
        try:
            if self._abort.is_set():
                raise RunAbortedError("Run aborted before experiment started", leaf.directory)
            unit = self.build_unit(leaf)
            self.process_unit(unit, output_root, report)
        except (SingularCalibrationError, RunAbortedError):
            # Run-fatal: a bad calibration fails every unit the same way
            self._abort.set()
            raise
        except (DisplacementError, OSError) as e:
            logger.error(f"Abandoning experiment {leaf.directory}: {e}")
            report.error = e
            if self.config.fail_fast:
                self._abort.set()
                raise
        return report

    def run(self, root: Union[str, Path], output_root: Optional[Union[str, Path]] = None) -> RunReport:
        """Walk ``root`` and write one results table per leaf under ``output_root``."""
        root = Path(root)
        leaves = walk_experiment_tree(root)
        if output_root is None:
            output_root = default_output_root(root)
        output_root = Path(output_root)
        if root.resolve() in output_root.resolve().parents or root.resolve() == output_root.resolve():
            # Tables written inside the tree would be walked as experiments
            raise ValueError(f"Output root {output_root} must not be inside experiment root {root}")

        self._abort.clear()
        report = RunReport(root=root, output_root=output_root)
        report.units.extend(self._map_leaves(leaves, output_root))

        logger.info(
            f"Processed {len(report.units)} experiments: "
            f"{len(report.completed)} completed, {len(report.failed)} failed"
        )
        return report

    def _map_leaves(self, leaves: Iterable[ExperimentLeaf], output_root: Path) -> List[UnitReport]:
        if self.config.max_workers == 1:
            return [self.process_leaf(leaf, output_root) for leaf in leaves]

        # Units share nothing; each one still runs its frames in order on one worker.
        # No more than max_workers leaves are in flight, so an abort stops new work.
        reports: Dict[int, UnitReport] = {}
        pending: Dict[Future, int] = {}
        failure: Optional[BaseException] = None

        def collect(done) -> None:
            nonlocal failure
            for future in done:
                position = pending.pop(future)
                try:
                    reports[position] = future.result()
                except Exception as e:
                    # Keep the error that caused the abort over the ones it triggered
                    if failure is None or isinstance(failure, RunAbortedError):
                        failure = e

        with ThreadPoolExecutor(max_workers=self.config.max_workers) as executor:
            for position, leaf in enumerate(leaves):
                while len(pending) >= self.config.max_workers and failure is None:
                    done, _ = wait(pending, return_when=FIRST_COMPLETED)
                    collect(done)
                if failure is not None:
                    break
                pending[executor.submit(self.process_leaf, leaf, output_root)] = position
            while pending:
                done, _ = wait(pending, return_when=FIRST_COMPLETED)
                collect(done)

        if failure is not None:
            raise failure
        return [reports[position] for position in sorted(reports)]


def run_pipeline(
    root: Union[str, Path],
    output_root: Optional[Union[str, Path]] = None,
    config: Optional[DisplacementConfig] = None,
) -> RunReport:
    """Convenience entry point: run the pipeline with ``config`` (defaults if None)."""
    pipeline = MeasurementPipeline(config=config or DisplacementConfig())
    return pipeline.run(root, output_root)
