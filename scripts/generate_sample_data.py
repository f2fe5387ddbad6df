#!/usr/bin/env python3
"""Generate a synthetic experiment tree for trying out the displacement pipeline."""

import argparse
import sys
from pathlib import Path
from typing import Tuple

import cv2
import numpy as np


def make_speckle(height: int, width: int, rng: np.random.Generator, grain_sigma: float = 1.5) -> np.ndarray:
    """Laser-speckle-like texture: smoothed noise stretched to 8 bits."""
    noise = rng.random((height, width)).astype(np.float32)
    smooth = cv2.GaussianBlur(noise, (0, 0), grain_sigma)
    smooth -= smooth.min()
    smooth /= max(float(smooth.max()), 1e-12)
    return (smooth * 255.0).astype(np.uint8)


def generate_experiment(
    output_dir: Path,
    base: np.ndarray,
    step_px: Tuple[int, int],
    num_frames: int,
    gain: float,
    blur_sigma: float,
) -> None:
    """Write ``num_frames`` frames, each shifted by ``step_px`` (rows, cols) from the last."""
    output_dir.mkdir(parents=True, exist_ok=True)

    for i in range(num_frames):
        shifted = np.roll(base, (i * step_px[0], i * step_px[1]), axis=(0, 1)).astype(np.float32)
        frame = np.clip(shifted * gain, 0, 255)
        if blur_sigma > 0:
            frame = cv2.GaussianBlur(frame, (0, 0), blur_sigma)
        cv2.imwrite(str(output_dir / f"frame_{i}.png"), frame.astype(np.uint8))


def generate_sample_tree(
    root: Path,
    num_frames: int = 10,
    width: int = 728,
    height: int = 544,
    seed: int = 0,
) -> None:
    """Build ``root/Gain_<g>/Move_<m>/Exp_<e>`` with shifted speckle frames."""
    print(f"Generating sample experiment tree in {root}...")
    rng = np.random.default_rng(seed)
    base = make_speckle(height, width, rng)

    gains = {"Gain_1": 0.8, "Gain_2": 1.0}
    moves = {"Move_1": (0, 2), "Move_2": (3, -1)}
    exposures = {"Exp_1": 0.0, "Exp_2": 1.0}

    for gain_label, gain in gains.items():
        for move_label, step in moves.items():
            for exp_label, blur in exposures.items():
                generate_experiment(root / gain_label / move_label / exp_label, base, step, num_frames, gain, blur)

    print(f"Wrote {len(gains) * len(moves) * len(exposures)} experiments of {num_frames} frames")


def main(argv: list) -> int:
    p = argparse.ArgumentParser(description="Generate a synthetic Gain/Move/Exp experiment tree")
    p.add_argument("root", type=str, help="Output directory for the tree")
    p.add_argument("--frames", type=int, default=10)
    p.add_argument("--seed", type=int, default=0)
    args = p.parse_args(argv)
    generate_sample_tree(Path(args.root), num_frames=args.frames, seed=args.seed)
    return 0


if __name__ == "__main__":
    sys.exit(main(sys.argv[1:]))
