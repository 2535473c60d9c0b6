"""Public endpoint for artifact downloads."""

from __future__ import annotations

import logging

from fastapi import APIRouter, status
from fastapi.responses import FileResponse, JSONResponse
from starlette.types import Receive, Scope, Send

from ..render.naming import ARTIFACT_EXTENSION, InvalidJobIdError, validate_job_id
from ..render.render_errors import ArtifactNotFoundError
from ..render.render_models import FailureReason
from .artifact_lifecycle import ArtifactHandle, ArtifactLifecycle

logger = logging.getLogger(__name__)


def _not_found() -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_404_NOT_FOUND,
        content={
            "status": "error",
            "failure_reason": FailureReason.ARTIFACT_NOT_FOUND.value,
        },
    )


class LeasedFileResponse(FileResponse):
    """File response that returns its artifact lease once sending stops."""

    def __init__(
        self, *args, lifecycle: ArtifactLifecycle, handle: ArtifactHandle, **kwargs
    ) -> None:
        super().__init__(*args, **kwargs)
        self.lifecycle = lifecycle
        self.handle = handle

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        try:
            await super().__call__(scope, receive, send)
        finally:
            self.lifecycle.release(self.handle)


def build_artifact_router(lifecycle: ArtifactLifecycle) -> APIRouter:
    router = APIRouter(prefix="/output", tags=["artifacts"])

    @router.get("/{filename}", name="get_artifact", response_model=None)
    async def get_artifact(filename: str) -> LeasedFileResponse | JSONResponse:
        job_id, _, extension = filename.partition(".")
        if extension != ARTIFACT_EXTENSION:
            return _not_found()
        try:
            validate_job_id(job_id)
            handle = lifecycle.acquire(job_id)
        except (InvalidJobIdError, ArtifactNotFoundError):
            logger.debug("artifact.not_found", extra={"filename": filename})
            return _not_found()

        return LeasedFileResponse(
            handle.path,
            media_type="video/mp4",
            filename=handle.path.name,
            content_disposition_type="inline",
            lifecycle=lifecycle,
            handle=handle,
        )

    return router
