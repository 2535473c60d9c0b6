"""Frame storage for render jobs."""

from __future__ import annotations

import base64
import binascii
import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from types import TracebackType
from typing import Sequence

from ..render.naming import frame_glob, frame_path, frame_pattern
from ..render.render_errors import (
    FrameSequenceError,
    FrameWriteError,
    InvalidFrameEncodingError,
)
from ..render.render_models import ImageFormat

_DATA_URI_RE = re.compile(
    r"^data:image/(?P<format>[A-Za-z0-9.+-]+);base64,(?P<payload>.*)$", re.DOTALL
)


def sniff_format(payload: str) -> ImageFormat:
    """Return the image format declared by a data URI prefix."""
    match = _DATA_URI_RE.match(payload) if isinstance(payload, str) else None
    if match is None:
        raise InvalidFrameEncodingError("frame is not a base64 image data URI")
    try:
        return ImageFormat.parse(match.group("format"))
    except ValueError as exc:
        raise InvalidFrameEncodingError(
            f"unsupported frame format {match.group('format')!r}"
        ) from exc


def decode_frame(payload: str, image_format: ImageFormat, *, index: int = 0) -> bytes:
    """Strip the data URI prefix and decode the base64 body."""
    declared = sniff_format(payload)
    if declared is not image_format:
        raise InvalidFrameEncodingError(
            f"frame {index} is {declared.value}, job expects {image_format.value}"
        )
    body = _DATA_URI_RE.match(payload).group("payload")  # type: ignore[union-attr]
    try:
        data = base64.b64decode(body, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise InvalidFrameEncodingError(f"frame {index} has invalid base64") from exc
    if not data:
        raise InvalidFrameEncodingError(f"frame {index} is empty")
    return data


@dataclass(slots=True)
class FrameBatch:
    """Scoped set of frame writes; removes everything written on error."""

    store: "FrameStore"
    job_id: str
    written: list[Path] = field(default_factory=list)

    def __enter__(self) -> "FrameBatch":
        return self

    def write(self, index: int, data: bytes, extension: str) -> Path:
        target = frame_path(self.store.frames_dir, self.job_id, index, extension)
        with target.open("xb") as sink:
            self.written.append(target)
            sink.write(data)
        return target

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        if exc_type is None:
            return
        for path in self.written:
            path.unlink(missing_ok=True)
        self.store.log.warning(
            "render.frames.rolled_back",
            extra={"job_id": self.job_id, "removed": len(self.written)},
        )
        self.written.clear()


@dataclass(slots=True)
class FrameStore:
    """Persist decoded frames into the shared frames directory."""

    frames_dir: Path
    log: logging.Logger = field(default_factory=lambda: logging.getLogger(__name__))

    def batch(self, job_id: str) -> FrameBatch:
        return FrameBatch(store=self, job_id=job_id)

    def ingest(
        self,
        job_id: str,
        frames: Sequence[str],
        image_format: ImageFormat,
    ) -> list[Path]:
        """Decode every payload, then write them in index order.

        Decoding happens up front so that an encoding error leaves no files.
        """
        if not frames:
            raise FrameSequenceError("no frames supplied")
        decoded = [
            decode_frame(payload, image_format, index=index)
            for index, payload in enumerate(frames)
        ]

        extension = image_format.extension
        try:
            self.frames_dir.mkdir(parents=True, exist_ok=True)
            with self.batch(job_id) as batch:
                paths = [
                    batch.write(index, data, extension)
                    for index, data in enumerate(decoded)
                ]
                self.verify_contiguous(job_id, len(paths), extension)
        except OSError as exc:
            self.log.error(
                "render.frames.write_failed",
                extra={"job_id": job_id, "error": str(exc)},
            )
            raise FrameWriteError(f"failed to write frames for {job_id}: {exc}") from exc

        self.log.info(
            "render.frames.written",
            extra={"job_id": job_id, "frame_count": len(paths), "format": image_format.value},
        )
        return paths

    def verify_contiguous(self, job_id: str, count: int, extension: str) -> None:
        """Ensure files ``0..count-1`` exist, the encoder stops at the first gap."""
        missing = [
            index
            for index in range(count)
            if not frame_path(self.frames_dir, job_id, index, extension).is_file()
        ]
        if missing:
            raise FrameSequenceError(
                f"job {job_id} is missing frame indices {missing[:10]}"
            )

    def pattern(self, job_id: str, image_format: ImageFormat) -> Path:
        return frame_pattern(self.frames_dir, job_id, image_format.extension)

    def list_frames(self, job_id: str) -> list[Path]:
        return sorted(self.frames_dir.glob(frame_glob(job_id)))

    def purge(self, job_id: str) -> int:
        """Remove every frame owned by ``job_id``; missing files are ignored."""
        removed = 0
        for path in self.list_frames(job_id):
            try:
                path.unlink()
            except FileNotFoundError:
                continue
            removed += 1
        if removed:
            self.log.info(
                "render.frames.purged", extra={"job_id": job_id, "removed": removed}
            )
        return removed
