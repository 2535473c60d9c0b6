"""Lifecycle helpers wiring background tasks for FastAPI startup."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable

from .config import MediaPaths
from .media.artifact_lifecycle import ArtifactLifecycle
from .render.naming import job_id_from_name


logger = logging.getLogger(__name__)


def _default_clock() -> datetime:
    return datetime.now(timezone.utc)


def _is_stale(path: Path, *, now: datetime, max_age_seconds: float) -> bool:
    try:
        modified = datetime.fromtimestamp(path.stat().st_mtime, tz=timezone.utc)
    except FileNotFoundError:
        return False
    return (now - modified).total_seconds() >= max_age_seconds


def sweep_orphans_once(
    *,
    media_paths: MediaPaths,
    artifacts: ArtifactLifecycle | None,
    max_age_seconds: float,
    now: datetime | None = None,
    dry_run: bool = False,
) -> list[Path]:
    """Remove job files older than ``max_age_seconds`` that no live handle owns.

    Only names carrying a job id prefix are considered; anything else in the
    media directories is left alone.
    """
    current = now or _default_clock()
    removed: list[Path] = []
    for directory in (media_paths.frames, media_paths.artifacts):
        if not directory.is_dir():
            continue
        for path in sorted(directory.iterdir()):
            if not path.is_file() or job_id_from_name(path.name) is None:
                continue
            if artifacts is not None and artifacts.owns(path):
                continue
            if not _is_stale(path, now=current, max_age_seconds=max_age_seconds):
                continue
            if not dry_run:
                path.unlink(missing_ok=True)
            removed.append(path)
    if removed:
        logger.info(
            "media.orphans.removed",
            extra={"count": len(removed), "dry_run": dry_run},
        )
    return removed


async def run_periodic_orphan_sweep(
    *,
    media_paths: MediaPaths,
    artifacts: ArtifactLifecycle | None,
    shutdown_event: asyncio.Event,
    max_age_seconds: float,
    interval_seconds: float = 300.0,
    clock: Callable[[], datetime] | None = None,
) -> None:
    """Execute the orphan sweep until ``shutdown_event`` is signalled."""

    interval = max(1.0, float(interval_seconds))
    tick = clock or _default_clock
    while not shutdown_event.is_set():
        try:
            sweep_orphans_once(
                media_paths=media_paths,
                artifacts=artifacts,
                max_age_seconds=max_age_seconds,
                now=tick(),
            )
        except OSError:
            logger.exception("media.orphans.sweep_failed")
        try:
            await asyncio.wait_for(shutdown_event.wait(), timeout=interval)
        except asyncio.TimeoutError:
            continue


__all__ = [
    "run_periodic_orphan_sweep",
    "sweep_orphans_once",
]
