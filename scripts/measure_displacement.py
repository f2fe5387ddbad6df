#!/usr/bin/env python3
"""Measure stage displacement and MIG over a Gain/Move/Exp experiment tree."""

from __future__ import annotations

import argparse
import dataclasses
import json
import sys
from pathlib import Path

from laser_decorrelation.utils.log import get_logger, setup_logging
from laser_decorrelation.vision.displacement import (
    DisplacementConfig,
    MeasurementPipeline,
    MissingRootError,
    SingularCalibrationError,
)

EXIT_OK = 0
EXIT_UNIT_FAILURES = 1
EXIT_FATAL = 2


def parse_args(argv: list[str]) -> argparse.Namespace:
    p = argparse.ArgumentParser(description="NCC displacement and MIG measurement for calibration experiments")
    p.add_argument("root", type=str, help="Experiment root containing <gain>/<move>/<exp>/frame_<n>.png")
    p.add_argument("--output", type=str, default=None, help="Results root (default: <root>_results next to root)")
    p.add_argument("--config", type=str, default=None, help="YAML or JSON configuration file")
    p.add_argument("--workers", type=int, default=None, help="Process experiments on N worker threads")
    p.add_argument("--calibration-mode", action="store_true", help="Leave mm columns blank (while calibrating)")
    p.add_argument("--fail-fast", action="store_true", help="Abort the run on the first failed experiment")
    p.add_argument("--skip-unreadable", action="store_true", help="Skip frames that fail to decode instead of abandoning the experiment")
    p.add_argument("--log-level", type=str, default="INFO")
    p.add_argument("--log-file", type=str, default=None)
    p.add_argument("--summary-json", type=str, default=None, help="Write run summary JSON")
    return p.parse_args(argv)


def build_config(args: argparse.Namespace) -> DisplacementConfig:
    config = DisplacementConfig.load(args.config) if args.config else DisplacementConfig()
    overrides = {}
    if args.workers is not None:
        overrides["max_workers"] = args.workers
    if args.calibration_mode:
        overrides["calibration_mode"] = True
    if args.fail_fast:
        overrides["fail_fast"] = True
    if args.skip_unreadable:
        overrides["skip_unreadable_frames"] = True
    return dataclasses.replace(config, **overrides) if overrides else config


def main(argv: list[str]) -> int:
    args = parse_args(argv)
    setup_logging(args.log_level, args.log_file)
    logger = get_logger("scripts.measure_displacement")

    try:
        config = build_config(args)
    except (SingularCalibrationError, ValueError, OSError) as e:
        logger.error(f"Invalid configuration: {e}")
        return EXIT_FATAL

    pipeline = MeasurementPipeline(config=config)
    try:
        report = pipeline.run(args.root, args.output)
    except MissingRootError as e:
        logger.error(f"{e}. Copy the acquired experiment images there first.")
        return EXIT_FATAL
    except Exception as e:
        logger.error(f"Run aborted: {e}")
        return EXIT_FATAL

    if args.summary_json:
        summary_path = Path(args.summary_json)
        summary_path.parent.mkdir(parents=True, exist_ok=True)
        with open(summary_path, "w") as f:
            json.dump(report.summary(), f, indent=2)

    return EXIT_OK if report.ok else EXIT_UNIT_FAILURES


if __name__ == "__main__":
    sys.exit(main(sys.argv[1:]))
