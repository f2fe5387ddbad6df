"""Utility modules for laser decorrelation analysis."""

from .io import load_data, save_data, load_config, save_config
from .log import setup_logging, get_logger

__all__ = [
    "load_data",
    "save_data",
    "load_config",
    "save_config",
    "setup_logging",
    "get_logger",
]
