"""Deterministic ordering of the frames inside one experiment folder."""

from __future__ import annotations

import re
from pathlib import Path
from typing import Iterable, List, Sequence, TypeVar, Union

from .errors import MalformedFilenameError

_DIGITS = re.compile(r"[0-9]+")

NameT = TypeVar("NameT", str, Path)


def frame_index(name: Union[str, Path]) -> int:
    """Return the first run of decimal digits in a filename as an integer.

    ``frame_12.png`` -> 12, ``cam2_frame_7.png`` -> 2.
    """
    filename = Path(name).name
    match = _DIGITS.search(filename)
    if match is None:
        raise MalformedFilenameError("Frame filename has no numeric index", filename)
    return int(match.group())


def sequence_frames(names: Iterable[NameT]) -> List[NameT]:
    """Sort filenames ascending by their embedded index.

    The sort is stable, so names sharing an index keep their input order.
    """
    # Parse everything first so a bad name fails before any work is done
    keyed = [(frame_index(n), n) for n in names]
    keyed.sort(key=lambda item: item[0])
    return [n for _, n in keyed]


def list_frame_paths(directory: Path, extensions: Sequence[str]) -> List[Path]:
    """Files in ``directory`` with an image extension, in enumeration order."""
    return [
        entry
        for entry in Path(directory).iterdir()
        if entry.is_file() and entry.suffix.lower() in extensions
    ]
