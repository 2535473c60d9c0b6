import uuid
from pathlib import Path

import pytest

from framerender.render.naming import (
    InvalidJobIdError,
    MAX_FRAME_COUNT,
    artifact_name,
    frame_glob,
    frame_name,
    frame_pattern,
    job_id_from_name,
    validate_job_id,
)

JOB_ID = uuid.UUID(int=1).hex


def test_frame_name_is_zero_padded() -> None:
    assert frame_name(JOB_ID, 7, "png") == f"{JOB_ID}_frame_000007.png"


def test_lexicographic_order_matches_numeric_order_past_999() -> None:
    indices = [0, 9, 10, 99, 100, 999, 1000, 1001, 12345]
    names = [frame_name(JOB_ID, index, "png") for index in indices]

    assert sorted(names) == names


def test_pattern_expands_to_frame_name() -> None:
    pattern = frame_pattern(Path("/frames"), JOB_ID, "webp")

    assert pattern.name == f"{JOB_ID}_frame_%06d.webp"
    assert Path(str(pattern) % 42) == Path("/frames") / frame_name(JOB_ID, 42, "webp")


def test_artifact_and_glob_share_job_prefix() -> None:
    assert artifact_name(JOB_ID) == f"{JOB_ID}.mp4"
    assert frame_glob(JOB_ID) == f"{JOB_ID}_frame_*"


@pytest.mark.parametrize("bad", ["J1", "", JOB_ID.upper(), JOB_ID + "0", "../" + JOB_ID[3:]])
def test_validate_job_id_rejects_weak_or_unsafe_ids(bad: str) -> None:
    with pytest.raises(InvalidJobIdError):
        validate_job_id(bad)


def test_frame_index_bounds() -> None:
    with pytest.raises(ValueError):
        frame_name(JOB_ID, -1, "png")
    with pytest.raises(ValueError):
        frame_name(JOB_ID, MAX_FRAME_COUNT + 1, "png")


def test_job_id_from_name() -> None:
    assert job_id_from_name(f"{JOB_ID}.mp4") == JOB_ID
    assert job_id_from_name(f"{JOB_ID}_frame_000001.png") == JOB_ID
    assert job_id_from_name("README.txt") is None
    assert job_id_from_name(f"{JOB_ID}x.mp4") is None
