"""Vision-related components for laser_decorrelation.

This package groups the computer vision measurements applied to stage
calibration frames.
"""

from . import displacement

__all__ = [
    "displacement",
]
