"""Domain service orchestrating one render job."""

from __future__ import annotations

import asyncio
import uuid
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Sequence

import structlog

from ..media.artifact_lifecycle import ArtifactLifecycle
from ..media.frame_store import FrameStore
from .encoder import Encoder
from .render_errors import (
    EncodeError,
    EncodeTimeoutError,
    FrameWriteError,
    InvalidFrameEncodingError,
    InvalidFrameRateError,
    TooManyFramesError,
)
from .render_models import FailureReason, JobState, RenderJob, RenderRequest
from .validation import FrameRequestValidator

logger = structlog.get_logger(__name__)


def new_job_id() -> str:
    return uuid.uuid4().hex


def failure_reason_for(exc: BaseException) -> FailureReason:
    """Map a pipeline exception onto the client-facing failure reason."""
    if isinstance(exc, TooManyFramesError):
        return FailureReason.TOO_MANY_FRAMES
    if isinstance(exc, InvalidFrameEncodingError):
        return FailureReason.INVALID_FRAME_ENCODING
    if isinstance(exc, InvalidFrameRateError):
        return FailureReason.INVALID_FRAME_RATE
    if isinstance(exc, FrameWriteError):
        return FailureReason.FRAME_WRITE_ERROR
    if isinstance(exc, EncodeTimeoutError):
        return FailureReason.ENCODE_TIMEOUT
    if isinstance(exc, EncodeError):
        return FailureReason.ENCODE_ERROR
    return FailureReason.INTERNAL_ERROR


@dataclass(slots=True)
class RenderService:
    """Coordinates frame ingest, encoding and artifact registration."""

    validator: FrameRequestValidator
    frame_store: FrameStore
    encoder: Encoder
    artifacts: ArtifactLifecycle
    job_id_factory: Callable[[], str] = field(default_factory=lambda: new_job_id)

    def prepare_request(
        self,
        frames: Sequence[str],
        frame_rate: object,
        *,
        image_format: str | None = None,
        frame_count: int | None = None,
    ) -> RenderRequest:
        return self.validator.validate(
            frames, frame_rate, image_format=image_format, frame_count=frame_count
        )

    async def render(self, request: RenderRequest) -> RenderJob:
        """Run the full pipeline; the returned job is ``ready``.

        Any failure moves the job to ``failed``, removes its files and
        re-raises the original error.
        """
        job = RenderJob(
            job_id=self.job_id_factory(),
            frame_rate=request.frame_rate,
            frame_count=request.frame_count,
            image_format=request.image_format,
        )
        with structlog.contextvars.bound_contextvars(job_id=job.job_id):
            logger.info(
                "render.job.created",
                frame_count=job.frame_count,
                frame_rate=str(job.frame_rate),
                format=job.image_format.value,
            )
            try:
                await self._run(job, request)
            except BaseException as exc:
                self.record_failure(job, exc)
                raise
            logger.info(
                "render.job.ready",
                artifact=job.artifact_path.name if job.artifact_path else None,
                expires_at=job.expires_at.isoformat() if job.expires_at else None,
            )
        return job

    async def _run(self, job: RenderJob, request: RenderRequest) -> None:
        job.frame_paths = await asyncio.to_thread(
            self.frame_store.ingest, job.job_id, request.frames, request.image_format
        )
        job.transition(JobState.FRAMES_WRITTEN)

        pattern = self.frame_store.pattern(job.job_id, request.image_format)
        output_path = self.artifacts.artifact_path(job.job_id)
        job.transition(JobState.ENCODING)
        result = await self.encoder.encode(pattern, job.frame_rate, output_path)
        logger.info("render.encode.completed", duration_seconds=round(result.duration_seconds, 3))

        handle = self.artifacts.register(job.job_id, result.output_path, job=job)
        job.artifact_path = handle.path
        job.expires_at = handle.expires_at
        job.transition(JobState.READY)

    def record_failure(self, job: RenderJob, exc: BaseException) -> None:
        """Mark ``job`` failed and remove its frames and any partial artifact."""
        reason = failure_reason_for(exc)
        if job.state is not JobState.FAILED:
            job.fail(reason)
        removed = self.frame_store.purge(job.job_id)
        self.artifacts.artifact_path(job.job_id).unlink(missing_ok=True)
        logger.warning(
            "render.job.failed",
            reason=reason.value,
            state=job.state.value,
            frames_removed=removed,
            error=str(exc),
        )
