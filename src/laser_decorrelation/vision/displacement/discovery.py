"""Discovery of the Gain/Move/Exp experiment grid."""

from __future__ import annotations

from pathlib import Path
from typing import Iterator, Union

from ...utils.log import get_logger
from .errors import MissingRootError
from .types import ExperimentLeaf

logger = get_logger(__name__)


def _subdirectories(path: Path) -> Iterator[Path]:
    for entry in path.iterdir():
        if entry.is_dir():
            yield entry


def walk_experiment_tree(root: Union[str, Path]) -> Iterator[ExperimentLeaf]:
    """Yield one leaf per ``root/<gain>/<move>/<exp>`` folder.

    Folders come out in filesystem enumeration order; frame ordering happens
    later, per leaf. The root is checked immediately, not on first iteration.
    """
    root = Path(root)
    if not root.is_dir():
        raise MissingRootError("Experiment root directory does not exist", root)
    logger.info(f"Directory found: {root}")
    return _walk(root)


def _walk(root: Path) -> Iterator[ExperimentLeaf]:
    for gain_dir in _subdirectories(root):
        logger.info(f"Inside camera parameter directory: {gain_dir}")
        for move_dir in _subdirectories(gain_dir):
            logger.info(f"Inside movement directory: {move_dir}")
            for exp_dir in _subdirectories(move_dir):
                logger.info(f"Inside experiment directory: {exp_dir}")
                yield ExperimentLeaf(
                    gain_label=gain_dir.name,
                    move_label=move_dir.name,
                    exp_label=exp_dir.name,
                    directory=exp_dir,
                )
