"""Data structures for the render pipeline."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import StrEnum
from fractions import Fraction
from pathlib import Path

from .render_errors import InvalidStateTransition


class JobState(StrEnum):
    """Lifecycle states of a render job."""

    CREATED = "created"
    FRAMES_WRITTEN = "frames_written"
    ENCODING = "encoding"
    READY = "ready"
    EXPIRED = "expired"
    FAILED = "failed"


_TRANSITIONS: dict[JobState, frozenset[JobState]] = {
    JobState.CREATED: frozenset({JobState.FRAMES_WRITTEN, JobState.FAILED}),
    JobState.FRAMES_WRITTEN: frozenset({JobState.ENCODING, JobState.FAILED}),
    JobState.ENCODING: frozenset({JobState.READY, JobState.FAILED}),
    JobState.READY: frozenset({JobState.EXPIRED}),
    JobState.EXPIRED: frozenset(),
    JobState.FAILED: frozenset(),
}


class FailureReason(StrEnum):
    """Failure reasons reported to clients."""

    INVALID_REQUEST = "invalid_request"
    INVALID_FRAME_ENCODING = "invalid_frame_encoding"
    INVALID_FRAME_RATE = "invalid_frame_rate"
    TOO_MANY_FRAMES = "too_many_frames"
    FRAME_WRITE_ERROR = "frame_write_error"
    ENCODE_ERROR = "encode_error"
    ENCODE_TIMEOUT = "encode_timeout"
    ARTIFACT_NOT_FOUND = "artifact_not_found"
    INTERNAL_ERROR = "internal_error"


class ImageFormat(StrEnum):
    """Frame formats accepted in ``data:image/<format>;base64,`` payloads."""

    PNG = "png"
    WEBP = "webp"
    JPEG = "jpeg"

    @property
    def extension(self) -> str:
        return "jpg" if self is ImageFormat.JPEG else self.value

    @classmethod
    def parse(cls, value: str) -> "ImageFormat":
        lowered = value.strip().lower()
        if lowered == "jpg":
            lowered = "jpeg"
        return cls(lowered)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True, slots=True)
class RenderRequest:
    """Validated render request; built before any filesystem work."""

    frames: tuple[str, ...]
    frame_rate: Fraction
    image_format: ImageFormat

    @property
    def frame_count(self) -> int:
        return len(self.frames)


@dataclass(slots=True)
class RenderJob:
    """Aggregated state of one render request."""

    job_id: str
    frame_rate: Fraction
    frame_count: int
    image_format: ImageFormat
    created_at: datetime = field(default_factory=_utcnow)
    state: JobState = JobState.CREATED
    failure_reason: FailureReason | None = None
    frame_paths: list[Path] = field(default_factory=list)
    artifact_path: Path | None = None
    expires_at: datetime | None = None

    def transition(self, new_state: JobState) -> None:
        if new_state not in _TRANSITIONS[self.state]:
            raise InvalidStateTransition(
                f"job {self.job_id}: {self.state.value} -> {new_state.value}"
            )
        self.state = new_state

    def fail(self, reason: FailureReason) -> None:
        self.transition(JobState.FAILED)
        self.failure_reason = reason
