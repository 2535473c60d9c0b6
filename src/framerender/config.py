"""Application configuration builder."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Sequence

from .render.naming import MAX_FRAME_COUNT


@dataclass(slots=True)
class RenderLimits:
    allowed_formats: Sequence[str]
    max_frames: int
    max_frame_rate: float


@dataclass(slots=True)
class MediaPaths:
    root: Path
    frames: Path
    artifacts: Path


@dataclass(slots=True)
class EncoderSettings:
    binary: str
    timeout_seconds: float


@dataclass(slots=True)
class AppConfig:
    media_paths: MediaPaths
    render_limits: RenderLimits
    encoder: EncoderSettings
    artifact_ttl_seconds: float
    orphan_sweep_interval_seconds: float
    drain_on_shutdown: bool
    base_url: str | None = None


def _ensure_media_paths(paths: MediaPaths) -> None:
    paths.root.mkdir(parents=True, exist_ok=True)
    paths.frames.mkdir(parents=True, exist_ok=True)
    paths.artifacts.mkdir(parents=True, exist_ok=True)


def _env_flag(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def build_media_paths(root: Path) -> MediaPaths:
    return MediaPaths(root=root, frames=root / "frames", artifacts=root / "output")


def load_config() -> AppConfig:
    """Load configuration from environment variables."""
    media_paths = build_media_paths(Path(os.getenv("MEDIA_ROOT", "media")))
    _ensure_media_paths(media_paths)

    max_frames = int(os.getenv("RENDER_MAX_FRAMES", 3000))
    if not 0 < max_frames <= MAX_FRAME_COUNT:
        raise ValueError(
            f"RENDER_MAX_FRAMES must be between 1 and {MAX_FRAME_COUNT}, got {max_frames}"
        )

    render_limits = RenderLimits(
        allowed_formats=("png", "webp", "jpeg"),
        max_frames=max_frames,
        max_frame_rate=float(os.getenv("RENDER_MAX_FRAME_RATE", 240)),
    )
    encoder = EncoderSettings(
        binary=os.getenv("ENCODER_BINARY", "ffmpeg"),
        timeout_seconds=float(os.getenv("ENCODER_TIMEOUT_SECONDS", 120)),
    )

    base_url = os.getenv("BASE_URL") or None

    return AppConfig(
        media_paths=media_paths,
        render_limits=render_limits,
        encoder=encoder,
        artifact_ttl_seconds=float(os.getenv("ARTIFACT_TTL_SECONDS", 60)),
        orphan_sweep_interval_seconds=float(
            os.getenv("ORPHAN_SWEEP_INTERVAL_SECONDS", 300)
        ),
        drain_on_shutdown=_env_flag("ARTIFACT_DRAIN_ON_SHUTDOWN", True),
        base_url=base_url.rstrip("/") if base_url else None,
    )
