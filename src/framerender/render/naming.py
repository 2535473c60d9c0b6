"""Deterministic file names for frames and artifacts.

Every name starts with the job identifier so that concurrently running jobs
partition the shared directories without locking. Frame indices are padded to
``FRAME_INDEX_WIDTH`` digits, which keeps lexicographic order equal to numeric
order for every count up to ``MAX_FRAME_COUNT``.
"""

from __future__ import annotations

import re
from pathlib import Path

FRAME_INDEX_WIDTH = 6
MAX_FRAME_COUNT = 10**FRAME_INDEX_WIDTH - 1
ARTIFACT_EXTENSION = "mp4"

_JOB_ID_RE = re.compile(r"^[0-9a-f]{32}$")


class InvalidJobIdError(ValueError):
    """Raised when a job identifier is not a 128-bit lowercase hex string."""


def validate_job_id(job_id: str) -> str:
    if not isinstance(job_id, str) or not _JOB_ID_RE.match(job_id):
        raise InvalidJobIdError(f"invalid job id: {job_id!r}")
    return job_id


def frame_name(job_id: str, index: int, extension: str) -> str:
    validate_job_id(job_id)
    if index < 0 or index > MAX_FRAME_COUNT:
        raise ValueError(f"frame index out of range: {index}")
    return f"{job_id}_frame_{index:0{FRAME_INDEX_WIDTH}d}.{extension}"


def frame_path(frames_dir: Path, job_id: str, index: int, extension: str) -> Path:
    return frames_dir / frame_name(job_id, index, extension)


def frame_pattern(frames_dir: Path, job_id: str, extension: str) -> Path:
    """Return the printf-style input pattern understood by ffmpeg."""
    validate_job_id(job_id)
    return frames_dir / f"{job_id}_frame_%0{FRAME_INDEX_WIDTH}d.{extension}"


def frame_glob(job_id: str) -> str:
    validate_job_id(job_id)
    return f"{job_id}_frame_*"


def artifact_name(job_id: str) -> str:
    validate_job_id(job_id)
    return f"{job_id}.{ARTIFACT_EXTENSION}"


def job_id_from_name(name: str) -> str | None:
    """Extract the owning job id from a frame or artifact file name."""
    candidate = name[:32]
    if _JOB_ID_RE.match(candidate) and name[32:33] in {"_", "."}:
        return candidate
    return None


__all__ = [
    "ARTIFACT_EXTENSION",
    "FRAME_INDEX_WIDTH",
    "MAX_FRAME_COUNT",
    "InvalidJobIdError",
    "artifact_name",
    "frame_glob",
    "frame_name",
    "frame_path",
    "frame_pattern",
    "job_id_from_name",
    "validate_job_id",
]
