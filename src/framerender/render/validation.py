"""Render request validation."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Sequence

from ..config import RenderLimits
from ..media.frame_store import sniff_format
from .encoder import validate_frame_rate
from .render_errors import (
    FrameSequenceError,
    InvalidFrameEncodingError,
    TooManyFramesError,
)
from .render_models import ImageFormat, RenderRequest

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class FrameRequestValidator:
    """Validate raw render input against configured limits."""

    limits: RenderLimits

    def validate(
        self,
        frames: Sequence[str],
        frame_rate: object,
        *,
        image_format: str | None = None,
        frame_count: int | None = None,
    ) -> RenderRequest:
        if not frames:
            logger.warning("render.request.no_frames")
            raise FrameSequenceError("request contains no frames")
        if len(frames) > self.limits.max_frames:
            logger.warning(
                "render.request.too_many_frames",
                extra={"frame_count": len(frames), "limit": self.limits.max_frames},
            )
            raise TooManyFramesError(
                f"{len(frames)} frames exceed limit of {self.limits.max_frames}",
                summary=f"at most {self.limits.max_frames} frames are accepted",
            )
        if frame_count is not None and frame_count != len(frames):
            logger.warning(
                "render.request.sequence_mismatch",
                extra={"declared": frame_count, "received": len(frames)},
            )
            raise FrameSequenceError(
                f"declared {frame_count} frames but received {len(frames)}"
            )
        if not all(isinstance(frame, str) for frame in frames):
            raise InvalidFrameEncodingError("every frame must be a data URI string")

        fmt = self._resolve_format(frames[0], image_format)
        rate = validate_frame_rate(frame_rate, max_rate=self.limits.max_frame_rate)

        request = RenderRequest(frames=tuple(frames), frame_rate=rate, image_format=fmt)
        logger.info(
            "render.request.validated",
            extra={
                "frame_count": request.frame_count,
                "frame_rate": str(rate),
                "format": fmt.value,
            },
        )
        return request

    def _resolve_format(self, first_frame: str, declared: str | None) -> ImageFormat:
        try:
            fmt = ImageFormat.parse(declared) if declared else sniff_format(first_frame)
        except ValueError as exc:
            raise InvalidFrameEncodingError(f"unsupported format {declared!r}") from exc
        if fmt.value not in self.limits.allowed_formats:
            raise InvalidFrameEncodingError(f"format {fmt.value} is not allowed")
        return fmt
