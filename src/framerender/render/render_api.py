"""HTTP routes for render operations."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Request, status

from .naming import artifact_name
from .render_errors import (
    EncodeError,
    EncodeTimeoutError,
    FrameWriteError,
    InvalidFrameEncodingError,
    InvalidFrameRateError,
    RenderError,
    TooManyFramesError,
)
from .render_models import FailureReason
from .render_schemas import RenderErrorSchema, RenderRequestModel, RenderResponseModel
from .render_service import RenderService

router = APIRouter(tags=["render"])
logger = logging.getLogger(__name__)

_ERROR_STATUS: tuple[tuple[type[RenderError], int, FailureReason], ...] = (
    (TooManyFramesError, status.HTTP_413_REQUEST_ENTITY_TOO_LARGE, FailureReason.TOO_MANY_FRAMES),
    (InvalidFrameEncodingError, status.HTTP_400_BAD_REQUEST, FailureReason.INVALID_FRAME_ENCODING),
    (InvalidFrameRateError, status.HTTP_400_BAD_REQUEST, FailureReason.INVALID_FRAME_RATE),
    (FrameWriteError, status.HTTP_507_INSUFFICIENT_STORAGE, FailureReason.FRAME_WRITE_ERROR),
    (EncodeTimeoutError, status.HTTP_504_GATEWAY_TIMEOUT, FailureReason.ENCODE_TIMEOUT),
    (EncodeError, status.HTTP_502_BAD_GATEWAY, FailureReason.ENCODE_ERROR),
)


def get_render_service(request: Request) -> RenderService:
    """Fetch render service from application state."""
    try:
        return request.app.state.render_service  # type: ignore[attr-defined]
    except AttributeError as exc:  # pragma: no cover - wiring error
        raise RuntimeError("RenderService is not configured") from exc


def _error(exc: RenderError) -> HTTPException:
    for error_type, status_code, reason in _ERROR_STATUS:
        if isinstance(exc, error_type):
            break
    else:
        status_code, reason = (
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            FailureReason.INTERNAL_ERROR,
        )
    body = RenderErrorSchema(failure_reason=reason.value, details=exc.summary)
    return HTTPException(status_code=status_code, detail=body.model_dump())


def _video_url(request: Request, job_id: str) -> str:
    base_url = getattr(request.app.state, "base_url", None)
    if base_url:
        return f"{base_url}/output/{artifact_name(job_id)}"
    return str(request.url_for("get_artifact", filename=artifact_name(job_id)))


@router.post("/render", response_model=RenderResponseModel)
async def submit_render(
    payload: RenderRequestModel,
    request: Request,
    service: RenderService = Depends(get_render_service),
) -> RenderResponseModel:
    """Write frames, encode them and return the artifact location."""
    try:
        render_request = service.prepare_request(
            payload.frames,
            payload.frame_rate,
            image_format=payload.image_format,
            frame_count=payload.frame_count,
        )
    except RenderError as exc:
        logger.warning(
            "render.request.rejected",
            extra={"error": type(exc).__name__, "details": str(exc)},
        )
        raise _error(exc) from exc

    try:
        job = await service.render(render_request)
    except RenderError as exc:
        raise _error(exc) from exc
    except Exception as exc:
        logger.exception("render.unexpected_error")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=RenderErrorSchema(
                failure_reason=FailureReason.INTERNAL_ERROR.value
            ).model_dump(),
        ) from exc

    return RenderResponseModel(
        job_id=job.job_id,
        video_url=_video_url(request, job.job_id),
        expires_at=job.expires_at,  # type: ignore[arg-type]
    )
