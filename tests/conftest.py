from __future__ import annotations

from pathlib import Path
from typing import Callable, Dict, Sequence

import cv2
import numpy as np
import pytest

FRAME_HEIGHT = 544
FRAME_WIDTH = 728


def speckle(height: int = FRAME_HEIGHT, width: int = FRAME_WIDTH, seed: int = 0, sigma: float = 1.0) -> np.ndarray:
    """Smoothed random texture with a single sharp correlation peak."""
    rng = np.random.default_rng(seed)
    noise = rng.random((height, width)).astype(np.float32)
    smooth = cv2.GaussianBlur(noise, (0, 0), sigma)
    smooth -= smooth.min()
    smooth /= smooth.max()
    return (smooth * 255.0).astype(np.uint8)


def shifted(image: np.ndarray, rows: int, cols: int) -> np.ndarray:
    """Move image content down by ``rows`` and right by ``cols`` (wrapping)."""
    return np.roll(image, (rows, cols), axis=(0, 1))


@pytest.fixture
def speckle_frame() -> np.ndarray:
    return speckle()


@pytest.fixture
def write_leaf() -> Callable[..., Path]:
    """Write ``{filename: image}`` into ``root/gain/move/exp`` and return the leaf folder."""

    def _write(root: Path, parts: Sequence[str], frames: Dict[str, np.ndarray]) -> Path:
        leaf = Path(root).joinpath(*parts)
        leaf.mkdir(parents=True, exist_ok=True)
        for name, image in frames.items():
            assert cv2.imwrite(str(leaf / name), image)
        return leaf

    return _write


@pytest.fixture
def shifted_experiment(tmp_path: Path, write_leaf, speckle_frame) -> Path:
    """images/Gain_1/Move_1/Exp_1 with frame_0 and frame_1 shifted +3 rows, +5 cols."""
    root = tmp_path / "images"
    write_leaf(
        root,
        ("Gain_1", "Move_1", "Exp_1"),
        {
            "frame_0.png": speckle_frame,
            "frame_1.png": shifted(speckle_frame, 3, 5),
        },
    )
    return root
