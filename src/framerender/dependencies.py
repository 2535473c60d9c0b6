"""Dependency wiring helpers."""

from __future__ import annotations

from fastapi import APIRouter, FastAPI

from .config import AppConfig
from .media.artifact_api import build_artifact_router
from .media.artifact_lifecycle import ArtifactLifecycle
from .media.frame_store import FrameStore
from .render.encoder import Encoder, FfmpegEncoder
from .render.render_api import router as render_router
from .render.render_service import RenderService
from .render.validation import FrameRequestValidator

health_router = APIRouter(tags=["health"])


@health_router.get("/healthz")
async def healthz() -> dict[str, str]:
    return {"status": "ok"}


def build_encoder(config: AppConfig) -> FfmpegEncoder:
    return FfmpegEncoder(
        binary=config.encoder.binary,
        timeout_seconds=config.encoder.timeout_seconds,
        max_frame_rate=config.render_limits.max_frame_rate,
    )


def orphan_max_age_seconds(config: AppConfig) -> float:
    """Age after which an unowned job file cannot belong to a live job."""
    return config.artifact_ttl_seconds + config.encoder.timeout_seconds + 60.0


def include_routers(
    app: FastAPI, config: AppConfig, *, encoder: Encoder | None = None
) -> None:
    """Mount routers and attach services."""
    frame_store = FrameStore(config.media_paths.frames)
    artifacts = ArtifactLifecycle(
        artifacts_dir=config.media_paths.artifacts,
        frame_store=frame_store,
        default_ttl_seconds=config.artifact_ttl_seconds,
    )
    render_service = RenderService(
        validator=FrameRequestValidator(config.render_limits),
        frame_store=frame_store,
        encoder=encoder or build_encoder(config),
        artifacts=artifacts,
    )

    app.state.config = config
    app.state.base_url = config.base_url
    app.state.frame_store = frame_store
    app.state.artifacts = artifacts
    app.state.render_service = render_service

    app.include_router(health_router)
    app.include_router(render_router)
    app.include_router(build_artifact_router(artifacts))
