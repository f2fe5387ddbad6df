from __future__ import annotations

import random
from pathlib import Path

import pytest

from laser_decorrelation.vision.displacement.errors import MalformedFilenameError
from laser_decorrelation.vision.displacement.sequencing import (
    frame_index,
    list_frame_paths,
    sequence_frames,
)


def test_frame_index_uses_first_digit_run() -> None:
    assert frame_index("frame_0.png") == 0
    assert frame_index("frame_123.png") == 123
    assert frame_index("cam2_frame_7.png") == 2
    assert frame_index(Path("/data/Gain_9/frame_0042.tif")) == 42


def test_numeric_not_lexicographic_order() -> None:
    names = ["frame_10.png", "frame_2.png", "frame_1.png", "frame_0.png", "frame_100.png"]
    assert sequence_frames(names) == [
        "frame_0.png",
        "frame_1.png",
        "frame_2.png",
        "frame_10.png",
        "frame_100.png",
    ]


def test_order_independent_of_enumeration_order() -> None:
    names = [f"frame_{i}.png" for i in range(50)]
    rng = random.Random(1234)
    for _ in range(5):
        shuffled = names[:]
        rng.shuffle(shuffled)
        ordered = sequence_frames(shuffled)
        indices = [frame_index(n) for n in ordered]
        assert indices == sorted(indices)
        assert all(a < b for a, b in zip(indices, indices[1:]))


def test_ties_keep_input_order() -> None:
    names = ["b_frame_1.png", "frame_01.png", "a_frame_1.png", "frame_0.png"]
    assert sequence_frames(names) == ["frame_0.png", "b_frame_1.png", "frame_01.png", "a_frame_1.png"]


def test_name_without_digits_is_rejected() -> None:
    with pytest.raises(MalformedFilenameError) as excinfo:
        sequence_frames(["frame_1.png", "reference.png"])
    assert "reference.png" in str(excinfo.value)


@pytest.mark.parametrize("name", ["frame_١٢.png", "frame_１２.png"])
def test_non_ascii_digits_are_not_an_index(name: str) -> None:
    with pytest.raises(MalformedFilenameError):
        frame_index(name)


def test_index_starts_at_first_ascii_digit() -> None:
    # Arabic-Indic one followed by an ASCII two
    assert frame_index("frame_١2.png") == 2


def test_paths_are_sorted_by_filename_only(tmp_path: Path) -> None:
    leaf = tmp_path / "Gain_1" / "Move_2" / "Exp_3"
    paths = [leaf / "frame_5.png", leaf / "frame_0.png"]
    assert sequence_frames(paths) == [leaf / "frame_0.png", leaf / "frame_5.png"]


def test_list_frame_paths_filters_by_extension(tmp_path: Path) -> None:
    (tmp_path / "frame_0.png").write_bytes(b"")
    (tmp_path / "frame_1.PNG").write_bytes(b"")
    (tmp_path / "notes.txt").write_text("gain sweep")
    (tmp_path / ".DS_Store").write_bytes(b"")
    (tmp_path / "sub_9.png").mkdir()

    found = sorted(p.name for p in list_frame_paths(tmp_path, (".png",)))
    assert found == ["frame_0.png", "frame_1.PNG"]
