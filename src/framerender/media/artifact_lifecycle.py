"""Artifact registry with deferred, idempotent expiry.

Each registered artifact owns one ``asyncio.Task`` that sleeps for the
retention window and then expires the job: the handle is dropped first, so
``resolve`` stops returning it, and only then are the artifact and the job's
frames deleted. An explicit ``expire_now`` and the timer may both fire; the
second caller finds no handle and does nothing.

Artifacts currently being streamed hold a lease. Expiry still hides them from
``resolve`` immediately but the artifact file is removed when the last lease
is released.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Callable

from ..render.naming import artifact_name, job_id_from_name, validate_job_id
from ..render.render_errors import ArtifactNotFoundError
from ..render.render_models import JobState, RenderJob
from .frame_store import FrameStore

DEFAULT_TTL_SECONDS = 60.0


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(slots=True, eq=False)
class ArtifactHandle:
    """Registered artifact and its retention deadline."""

    job_id: str
    path: Path
    created_at: datetime
    expires_at: datetime
    job: RenderJob | None = None
    readers: int = 0
    expired: bool = False


@dataclass(slots=True)
class ArtifactLifecycle:
    """Own artifact handles and their expiry timers."""

    artifacts_dir: Path
    frame_store: FrameStore
    default_ttl_seconds: float = DEFAULT_TTL_SECONDS
    clock: Callable[[], datetime] = _utcnow
    log: logging.Logger = field(default_factory=lambda: logging.getLogger(__name__))
    _handles: dict[str, ArtifactHandle] = field(default_factory=dict, init=False)
    _timers: dict[str, asyncio.Task[None]] = field(default_factory=dict, init=False)

    def artifact_path(self, job_id: str) -> Path:
        return self.artifacts_dir / artifact_name(job_id)

    def register(
        self,
        job_id: str,
        artifact_path: Path,
        ttl: float | None = None,
        *,
        job: RenderJob | None = None,
    ) -> ArtifactHandle:
        """Record a finished artifact and arm its expiry timer.

        Must be called from a running event loop.
        """
        validate_job_id(job_id)
        if job_id in self._handles:
            raise ValueError(f"artifact for job {job_id} is already registered")
        ttl_seconds = self.default_ttl_seconds if ttl is None else float(ttl)
        if ttl_seconds < 0:
            raise ValueError("ttl must not be negative")

        created_at = self.clock()
        handle = ArtifactHandle(
            job_id=job_id,
            path=artifact_path,
            created_at=created_at,
            expires_at=created_at + timedelta(seconds=ttl_seconds),
            job=job,
        )
        self._handles[job_id] = handle
        self._timers[job_id] = asyncio.get_running_loop().create_task(
            self._expire_after(job_id, ttl_seconds),
            name=f"framerender-expiry-{job_id}",
        )
        self.log.info(
            "artifact.registered",
            extra={
                "job_id": job_id,
                "path": str(artifact_path),
                "expires_at": handle.expires_at.isoformat(),
            },
        )
        return handle

    async def _expire_after(self, job_id: str, ttl_seconds: float) -> None:
        await asyncio.sleep(ttl_seconds)
        self.expire_now(job_id)

    def resolve(self, job_id: str) -> Path:
        """Return the artifact path or raise :class:`ArtifactNotFoundError`."""
        handle = self._handles.get(job_id)
        if handle is None:
            raise ArtifactNotFoundError(f"no artifact for job {job_id!r}")
        if handle.expires_at <= self.clock():
            self.expire_now(job_id)
            raise ArtifactNotFoundError(f"artifact for job {job_id} expired")
        if not handle.path.is_file():
            self.log.warning(
                "artifact.missing_file", extra={"job_id": job_id, "path": str(handle.path)}
            )
            raise ArtifactNotFoundError(f"artifact file for job {job_id} is gone")
        return handle.path

    def acquire(self, job_id: str) -> ArtifactHandle:
        """Resolve and lease the artifact for streaming; pair with :meth:`release`."""
        self.resolve(job_id)
        handle = self._handles[job_id]
        handle.readers += 1
        return handle

    def release(self, handle: ArtifactHandle) -> None:
        handle.readers = max(0, handle.readers - 1)
        if handle.expired and handle.readers == 0:
            self._remove_artifact(handle)

    def expire_now(self, job_id: str) -> bool:
        """Expire ``job_id``; returns ``True`` only for the call that did the work."""
        handle = self._handles.pop(job_id, None)
        timer = self._timers.pop(job_id, None)
        if timer is not None and timer is not _current_task():
            timer.cancel()
        if handle is None:
            return False

        handle.expired = True
        if handle.job is not None and handle.job.state is JobState.READY:
            handle.job.transition(JobState.EXPIRED)
        try:
            frames_removed = self.frame_store.purge(job_id)
        except OSError as exc:
            frames_removed = 0
            self.log.error(
                "artifact.frames_purge_failed",
                extra={"job_id": job_id, "error": str(exc)},
            )
        if handle.readers == 0:
            self._remove_artifact(handle)
        else:
            self.log.info(
                "artifact.removal_deferred",
                extra={"job_id": job_id, "readers": handle.readers},
            )
        self.log.info(
            "artifact.expired",
            extra={"job_id": job_id, "frames_removed": frames_removed},
        )
        return True

    def _remove_artifact(self, handle: ArtifactHandle) -> None:
        try:
            handle.path.unlink(missing_ok=True)
        except OSError as exc:
            self.log.error(
                "artifact.remove_failed",
                extra={"job_id": handle.job_id, "path": str(handle.path), "error": str(exc)},
            )

    def pending(self) -> list[str]:
        return list(self._handles)

    def owns(self, path: Path) -> bool:
        job_id = job_id_from_name(path.name)
        return job_id is not None and job_id in self._handles

    async def shutdown(self, *, drain: bool) -> None:
        """Cancel timers; ``drain`` expires live artifacts now, else they are abandoned."""
        timers = list(self._timers.values())
        if drain:
            for job_id in list(self._handles):
                self.expire_now(job_id)
        else:
            for timer in timers:
                timer.cancel()
            self.log.info(
                "artifact.shutdown.abandoned", extra={"count": len(self._handles)}
            )
            self._handles.clear()
            self._timers.clear()
        for timer in timers:
            with contextlib.suppress(asyncio.CancelledError):
                await timer


def _current_task() -> asyncio.Task[object] | None:
    try:
        return asyncio.current_task()
    except RuntimeError:
        return None


__all__ = ["ArtifactHandle", "ArtifactLifecycle", "DEFAULT_TTL_SECONDS"]
