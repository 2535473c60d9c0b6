"""FastAPI application entry point."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import AsyncIterator

from fastapi import FastAPI

from .config import AppConfig, load_config
from .dependencies import include_routers, orphan_max_age_seconds
from .lifecycle import run_periodic_orphan_sweep, sweep_orphans_once
from .logging import configure_logging
from .render.encoder import Encoder

logger = logging.getLogger(__name__)


@contextlib.asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    config: AppConfig = app.state.config
    artifacts = app.state.artifacts
    max_age = orphan_max_age_seconds(config)

    sweep_orphans_once(
        media_paths=config.media_paths, artifacts=artifacts, max_age_seconds=max_age
    )
    shutdown_event = asyncio.Event()
    sweep_task = asyncio.create_task(
        run_periodic_orphan_sweep(
            media_paths=config.media_paths,
            artifacts=artifacts,
            shutdown_event=shutdown_event,
            max_age_seconds=max_age,
            interval_seconds=config.orphan_sweep_interval_seconds,
        ),
        name="framerender-orphan-sweep",
    )
    try:
        yield
    finally:
        shutdown_event.set()
        sweep_task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await sweep_task
        await artifacts.shutdown(drain=config.drain_on_shutdown)
        logger.info("app.shutdown.complete", extra={"drained": config.drain_on_shutdown})


def create_app(
    config: AppConfig | None = None, *, encoder: Encoder | None = None
) -> FastAPI:
    """Build FastAPI instance with configured dependencies."""
    configure_logging()
    cfg = config or load_config()
    app = FastAPI(title="framerender", lifespan=lifespan)
    include_routers(app, cfg, encoder=encoder)
    return app


app = create_app()
