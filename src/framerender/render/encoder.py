"""External video encoder invocation.

The encoder is a black-box executable consuming an indexed image sequence.
``Encoder`` is the seam used by the render service; ``FfmpegEncoder`` is the
production implementation. Tests substitute a fake that writes a file.
"""

from __future__ import annotations

import asyncio
import logging
import math
from dataclasses import dataclass, field
from fractions import Fraction
from numbers import Real
from pathlib import Path
from typing import Protocol

from .render_errors import EncodeError, EncodeTimeoutError, InvalidFrameRateError

logger = logging.getLogger(__name__)

VIDEO_CODEC = "libx264"
PIXEL_FORMAT = "yuv420p"
# libx264 with yuv420p rejects odd frame dimensions.
EVEN_DIMENSIONS_FILTER = "pad=ceil(iw/2)*2:ceil(ih/2)*2"
DIAGNOSTIC_TAIL_LINES = 20
DEFAULT_MAX_FRAME_RATE = 240.0
MAX_RATE_DENOMINATOR = 1001
MIN_FRAME_RATE = Fraction(1, MAX_RATE_DENOMINATOR)


@dataclass(slots=True)
class EncodeResult:
    output_path: Path
    duration_seconds: float


class Encoder(Protocol):
    async def encode(
        self, input_pattern: Path, frame_rate: Fraction, output_path: Path
    ) -> EncodeResult:  # pragma: no cover - protocol
        ...


def validate_frame_rate(
    value: object, *, max_rate: float = DEFAULT_MAX_FRAME_RATE
) -> Fraction:
    """Return ``value`` as a positive finite ``Fraction`` or raise."""
    if isinstance(value, bool) or not isinstance(value, (Real, str)):
        raise InvalidFrameRateError(f"frame rate must be numeric, got {value!r}")
    if isinstance(value, float) and not math.isfinite(value):
        raise InvalidFrameRateError(f"frame rate must be finite, got {value!r}")
    try:
        exact = Fraction(value)  # type: ignore[arg-type]
    except (ValueError, ZeroDivisionError, OverflowError) as exc:
        raise InvalidFrameRateError(f"frame rate is not a number: {value!r}") from exc
    if exact <= 0:
        raise InvalidFrameRateError(f"frame rate must be positive, got {value!r}")
    rate = exact.limit_denominator(MAX_RATE_DENOMINATOR)
    if rate < MIN_FRAME_RATE:
        raise InvalidFrameRateError(
            f"frame rate {value!r} is below the minimum of {MIN_FRAME_RATE}",
            summary="frame rate is too low",
        )
    if rate > max_rate:
        raise InvalidFrameRateError(
            f"frame rate {value!r} exceeds maximum of {max_rate:g}",
            summary=f"frame rate must not exceed {max_rate:g}",
        )
    return rate


def format_frame_rate(rate: Fraction) -> str:
    if rate.denominator == 1:
        return str(rate.numerator)
    return f"{rate.numerator}/{rate.denominator}"


def _diagnostic_tail(stderr: bytes) -> str:
    lines = stderr.decode("utf-8", errors="replace").splitlines()
    return "\n".join(lines[-DIAGNOSTIC_TAIL_LINES:])


def _discard_partial(output_path: Path) -> None:
    try:
        output_path.unlink(missing_ok=True)
    except OSError:
        logger.warning("encoder.partial_output.remove_failed", extra={"path": str(output_path)})


@dataclass(slots=True)
class FfmpegEncoder:
    """Run ffmpeg over an indexed frame sequence."""

    binary: str = "ffmpeg"
    timeout_seconds: float = 120.0
    max_frame_rate: float = DEFAULT_MAX_FRAME_RATE
    log: logging.Logger = field(default_factory=lambda: logger)

    def build_args(
        self, input_pattern: Path, frame_rate: Fraction, output_path: Path
    ) -> list[str]:
        return [
            self.binary,
            "-hide_banner",
            "-loglevel",
            "error",
            "-y",
            "-framerate",
            format_frame_rate(frame_rate),
            "-start_number",
            "0",
            "-i",
            str(input_pattern),
            "-vf",
            EVEN_DIMENSIONS_FILTER,
            "-c:v",
            VIDEO_CODEC,
            "-pix_fmt",
            PIXEL_FORMAT,
            "-movflags",
            "+faststart",
            str(output_path),
        ]

    async def encode(
        self, input_pattern: Path, frame_rate: Fraction, output_path: Path
    ) -> EncodeResult:
        rate = validate_frame_rate(frame_rate, max_rate=self.max_frame_rate)
        args = self.build_args(input_pattern, rate, output_path)
        self.log.debug("encoder.spawn", extra={"args": args})

        loop = asyncio.get_running_loop()
        started = loop.time()
        try:
            process = await asyncio.create_subprocess_exec(
                *args,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as exc:
            self.log.error(
                "encoder.spawn_failed", extra={"binary": self.binary, "error": str(exc)}
            )
            raise EncodeError(
                f"failed to start encoder {self.binary!r}: {exc}",
                diagnostics=str(exc),
                summary="video encoder is unavailable",
            ) from exc

        try:
            _, stderr = await asyncio.wait_for(
                process.communicate(), timeout=self.timeout_seconds
            )
        except asyncio.TimeoutError as exc:
            process.kill()
            await process.wait()
            _discard_partial(output_path)
            self.log.warning(
                "encoder.timeout",
                extra={"timeout_seconds": self.timeout_seconds, "output": str(output_path)},
            )
            raise EncodeTimeoutError(
                f"encoder exceeded {self.timeout_seconds:g}s"
            ) from exc
        except asyncio.CancelledError:
            if process.returncode is None:
                process.kill()
                await process.wait()
            _discard_partial(output_path)
            raise

        duration = loop.time() - started
        if process.returncode != 0:
            diagnostics = _diagnostic_tail(stderr or b"")
            _discard_partial(output_path)
            for line in diagnostics.splitlines():
                self.log.error("ffmpeg: %s", line)
            raise EncodeError(
                f"encoder exited with status {process.returncode}",
                diagnostics=diagnostics,
                returncode=process.returncode,
            )
        if not output_path.exists():
            raise EncodeError("encoder reported success but produced no output")

        return EncodeResult(output_path=output_path, duration_seconds=duration)


__all__ = [
    "Encoder",
    "EncodeResult",
    "FfmpegEncoder",
    "format_frame_rate",
    "validate_frame_rate",
]
