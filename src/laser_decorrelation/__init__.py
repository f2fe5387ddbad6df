"""
Laser decorrelation: stage displacement and sharpness measurement.

This package measures sub-pixel stage displacement (normalized
cross-correlation against a reference template) and frame sharpness (Mean
Intensity Gradient) across a Gain x Move x Exp grid of calibration
experiments, producing one results table per experiment.
"""

__version__ = "0.1.0"

from . import utils
from . import vision

__all__ = [
    "utils",
    "vision",
]
