from __future__ import annotations

import dataclasses
import threading
import time
from pathlib import Path
from typing import List

import numpy as np
import pytest

from conftest import shifted, speckle
from laser_decorrelation.vision.displacement import (
    DisplacementConfig,
    EmptyFrameError,
    MalformedFilenameError,
    MeasurementPipeline,
    MissingReferenceFrameError,
    MissingRootError,
    OutOfBoundsError,
    SinkOpenError,
    measure_frame,
    pixel_shift_to_mm,
    read_results,
    run_pipeline,
    walk_experiment_tree,
)
from laser_decorrelation.vision.displacement.io import results_path
from laser_decorrelation.vision.displacement.matching import extract_template
from laser_decorrelation.vision.displacement.types import ExperimentLeaf, ExperimentUnit

LEAF = ("Gain_1", "Move_1", "Exp_1")


def _snapshot(root: Path) -> dict:
    return {p.relative_to(root): p.read_bytes() for p in sorted(root.rglob("*")) if p.is_file()}


def test_two_frame_experiment(shifted_experiment: Path, tmp_path: Path) -> None:
    out = tmp_path / "results"
    report = run_pipeline(shifted_experiment, out)

    assert report.ok
    assert len(report.units) == 1
    table_path = out / "Gain_1" / "Move_1" / "Exp_1" / "Results.csv"
    assert report.units[0].table_path == table_path

    table = read_results(table_path)
    assert len(table) == 2

    first, second = table.iloc[0], table.iloc[1]
    assert (first["Pixel Shift X (Columns)"], first["Pixel Shift Y (Rows)"]) == (0, 0)
    assert (second["Pixel Shift X (Columns)"], second["Pixel Shift Y (Rows)"]) == (5, 3)
    assert second["Confidence (%)"] == pytest.approx(100.0, abs=0.01)

    dist_x, dist_y = pixel_shift_to_mm(3, 5, DisplacementConfig().calibration)
    assert second["Dist. X (mm)"] == pytest.approx(dist_x, rel=1e-5)
    assert second["Dist. Y (mm)"] == pytest.approx(dist_y, rel=1e-5)
    assert first["Dist. X (mm)"] == 0
    assert table[["Error X (mm)", "Error Y (mm)", "Error X (%)", "Error Y (%)"]].isna().all().all()
    assert (table["MIG"] > 0).all()


def test_uniform_frames_have_zero_mig(tmp_path: Path, write_leaf) -> None:
    gray = np.full((544, 728), 128, dtype=np.uint8)
    root = tmp_path / "images"
    write_leaf(root, LEAF, {"frame_0.png": gray, "frame_1.png": gray})

    report = run_pipeline(root, tmp_path / "results")

    table = read_results(report.units[0].table_path)
    assert len(table) == 2
    assert (table["MIG"] == 0).all()


def test_frames_processed_in_numeric_order(tmp_path: Path, write_leaf, speckle_frame) -> None:
    root = tmp_path / "images"
    frames = {f"frame_{i}.png": shifted(speckle_frame, 0, i) for i in (0, 1, 2, 10, 11)}
    write_leaf(root, LEAF, frames)

    report = run_pipeline(root, tmp_path / "results")

    table = read_results(report.units[0].table_path)
    assert list(table["Pixel Shift X (Columns)"]) == [0, 1, 2, 10, 11]
    assert report.units[0].frames_processed == report.units[0].frames_total == 5


def test_rerun_is_idempotent(shifted_experiment: Path, tmp_path: Path) -> None:
    out = tmp_path / "results"
    run_pipeline(shifted_experiment, out)
    before = _snapshot(out)

    report = run_pipeline(shifted_experiment, out)

    assert report.ok
    assert _snapshot(out) == before


def test_missing_root_is_fatal(tmp_path: Path) -> None:
    with pytest.raises(MissingRootError):
        run_pipeline(tmp_path / "nope", tmp_path / "results")


def test_output_inside_root_is_rejected(shifted_experiment: Path) -> None:
    with pytest.raises(ValueError):
        run_pipeline(shifted_experiment, shifted_experiment / "results")


def test_default_output_root_is_sibling(shifted_experiment: Path) -> None:
    report = run_pipeline(shifted_experiment)
    assert report.output_root == shifted_experiment.resolve().with_name("images_results")
    assert (report.output_root / "Gain_1" / "Move_1" / "Exp_1" / "Results.csv").is_file()


def test_unreadable_frame_abandons_unit(shifted_experiment: Path, tmp_path: Path) -> None:
    leaf = shifted_experiment.joinpath(*LEAF)
    (leaf / "frame_2.png").write_bytes(b"truncated")

    report = run_pipeline(shifted_experiment, tmp_path / "results")

    assert not report.ok
    failed = report.failed[0]
    assert isinstance(failed.error, EmptyFrameError)
    assert failed.error.path == leaf / "frame_2.png"
    # Neither a partial nor a header-only table
    assert not failed.table_path.exists()


def test_unreadable_frame_can_be_skipped(shifted_experiment: Path, tmp_path: Path) -> None:
    leaf = shifted_experiment.joinpath(*LEAF)
    (leaf / "frame_2.png").write_bytes(b"truncated")
    config = DisplacementConfig(skip_unreadable_frames=True)

    report = run_pipeline(shifted_experiment, tmp_path / "results", config)

    unit = report.units[0]
    assert unit.completed
    assert unit.frames_skipped == [leaf / "frame_2.png"]
    assert unit.frames_processed == 2
    assert len(read_results(unit.table_path)) == 2


def test_unreadable_reference_frame_is_always_fatal(tmp_path: Path, write_leaf, speckle_frame) -> None:
    root = tmp_path / "images"
    leaf = write_leaf(root, LEAF, {"frame_1.png": speckle_frame})
    (leaf / "frame_0.png").write_bytes(b"")
    config = DisplacementConfig(skip_unreadable_frames=True)

    report = run_pipeline(root, tmp_path / "results", config)

    assert isinstance(report.units[0].error, EmptyFrameError)


def test_experiment_without_frame_zero_is_rejected(tmp_path: Path, write_leaf, speckle_frame) -> None:
    root = tmp_path / "images"
    leaf = write_leaf(
        root,
        LEAF,
        {"frame_1.png": shifted(speckle_frame, 3, 5), "frame_2.png": shifted(speckle_frame, 6, 10)},
    )
    out = tmp_path / "results"

    report = run_pipeline(root, out)

    assert not report.ok
    error = report.units[0].error
    assert isinstance(error, MissingReferenceFrameError)
    assert isinstance(error, FileNotFoundError)
    assert error.path == leaf / "frame_0.png"
    assert not results_path(out, LEAF).exists()


def test_unit_errors_do_not_stop_siblings(tmp_path: Path, write_leaf, speckle_frame) -> None:
    root = tmp_path / "images"
    write_leaf(root, ("Gain_1", "Move_1", "Exp_1"), {"frame_0.png": speckle_frame, "frame_x.png": speckle_frame})
    write_leaf(root, ("Gain_1", "Move_1", "Exp_2"), {"frame_0.png": speckle(300, 400)})
    write_leaf(root, ("Gain_2", "Move_1", "Exp_1"), {"frame_0.png": speckle_frame})

    report = run_pipeline(root, tmp_path / "results")

    errors = {u.leaf.relative_parts: type(u.error) for u in report.failed}
    assert errors == {
        ("Gain_1", "Move_1", "Exp_1"): MalformedFilenameError,
        ("Gain_1", "Move_1", "Exp_2"): OutOfBoundsError,
    }
    assert [u.leaf.relative_parts for u in report.completed] == [("Gain_2", "Move_1", "Exp_1")]
    assert report.summary()["completed"] == 1


def test_fail_fast_aborts_run(tmp_path: Path, write_leaf, speckle_frame) -> None:
    root = tmp_path / "images"
    write_leaf(root, LEAF, {"frame_0.png": speckle_frame, "frame_x.png": speckle_frame})

    with pytest.raises(MalformedFilenameError):
        run_pipeline(root, tmp_path / "results", DisplacementConfig(fail_fast=True))


class _RecordingPipeline(MeasurementPipeline):
    """Records which leaves start and holds the healthy ones long enough to overlap."""

    def __init__(self, config: DisplacementConfig, failing: ExperimentLeaf):
        super().__init__(config=config)
        self.failing = failing
        self.started: List[ExperimentLeaf] = []
        self._lock = threading.Lock()

    def build_unit(self, leaf: ExperimentLeaf) -> ExperimentUnit:
        with self._lock:
            self.started.append(leaf)
        if leaf != self.failing:
            time.sleep(0.2)
        return super().build_unit(leaf)


def test_parallel_fail_fast_stops_remaining_work(tmp_path: Path, write_leaf, speckle_frame) -> None:
    root = tmp_path / "images"
    for exp in range(1, 6):
        frames = {f"frame_{i}.png": shifted(speckle_frame, i, i) for i in range(3)}
        write_leaf(root, ("Gain_1", "Move_1", f"Exp_{exp}"), frames)
    first = list(walk_experiment_tree(root))[0]
    (first.directory / "frame_x.png").write_bytes((first.directory / "frame_0.png").read_bytes())
    out = tmp_path / "results"
    config = DisplacementConfig(fail_fast=True, max_workers=2)
    pipeline = _RecordingPipeline(config, first)

    with pytest.raises(MalformedFilenameError):
        pipeline.run(root, out)

    assert first in pipeline.started
    assert len(pipeline.started) <= 2
    assert list(out.rglob("Results.csv")) == []


def test_sink_open_failure_is_reported_per_unit(shifted_experiment: Path, tmp_path: Path) -> None:
    out = tmp_path / "results"
    out.mkdir()
    (out / "Gain_1").write_text("blocks the output folder")

    report = run_pipeline(shifted_experiment, out)

    assert isinstance(report.units[0].error, SinkOpenError)


def test_empty_leaf_writes_header_only(tmp_path: Path) -> None:
    root = tmp_path / "images"
    root.joinpath(*LEAF).mkdir(parents=True)

    report = run_pipeline(root, tmp_path / "results")

    assert report.ok
    assert len(read_results(report.units[0].table_path)) == 0


def test_calibration_mode_leaves_mm_blank(shifted_experiment: Path, tmp_path: Path) -> None:
    report = run_pipeline(shifted_experiment, tmp_path / "results", DisplacementConfig(calibration_mode=True))

    table = read_results(report.units[0].table_path)
    assert table["Dist. X (mm)"].isna().all()
    assert table["Dist. Y (mm)"].isna().all()
    assert list(table["Pixel Shift X (Columns)"]) == [0, 5]


def test_parallel_run_matches_sequential(tmp_path: Path, write_leaf) -> None:
    root = tmp_path / "images"
    base = speckle(seed=11)
    for g in (1, 2):
        for m in (1, 2):
            frames = {f"frame_{i}.png": shifted(base, i * m, -i * g) for i in range(4)}
            write_leaf(root, (f"Gain_{g}", f"Move_{m}", "Exp_1"), frames)

    sequential = run_pipeline(root, tmp_path / "seq")
    parallel = run_pipeline(root, tmp_path / "par", dataclasses.replace(DisplacementConfig(), max_workers=3))

    assert [u.leaf for u in parallel.units] == [u.leaf for u in sequential.units]
    assert parallel.ok and sequential.ok
    assert _snapshot(tmp_path / "par") == _snapshot(tmp_path / "seq")


def test_measure_frame_on_in_memory_rasters(speckle_frame: np.ndarray) -> None:
    config = DisplacementConfig()
    template = extract_template(speckle_frame, config.template)

    record = measure_frame(shifted(speckle_frame, -4, 6), template, config)

    assert (record.pixel_shift_x, record.pixel_shift_y) == (6, -4)
    assert (record.dist_x_mm, record.dist_y_mm) == pixel_shift_to_mm(-4, 6, config.calibration)
    assert record.error_x_mm is None


def test_build_unit_orders_frames(tmp_path: Path, write_leaf, speckle_frame) -> None:
    leaf_dir = write_leaf(tmp_path, LEAF, {f"frame_{i}.png": speckle_frame for i in (3, 0, 12, 1)})
    (leaf_dir / "notes.txt").write_text("ignored")

    unit = MeasurementPipeline().build_unit(ExperimentLeaf(*LEAF, leaf_dir))

    assert [p.name for p in unit.ordered_frame_paths] == ["frame_0.png", "frame_1.png", "frame_3.png", "frame_12.png"]
    assert unit.frame_count == 4
