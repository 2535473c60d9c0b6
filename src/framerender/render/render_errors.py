"""Domain-specific exceptions for the render pipeline."""


class RenderError(Exception):
    """Base class for render-related errors.

    ``summary`` is a short client-safe description; the full message may
    contain paths or encoder output and is meant for logs only.
    """

    summary = "render failed"

    def __init__(self, message: str = "", *, summary: str | None = None) -> None:
        super().__init__(message or self.summary)
        if summary is not None:
            self.summary = summary


class InvalidFrameEncodingError(RenderError):
    """Raised when a frame payload is malformed or has the wrong media type."""

    summary = "frame payload is not a valid data URI for the declared format"


class FrameSequenceError(InvalidFrameEncodingError):
    """Raised when the frame sequence is empty or not contiguous."""

    summary = "frame sequence is empty or not contiguous"


class TooManyFramesError(InvalidFrameEncodingError):
    """Raised when the request exceeds the configured frame limit."""

    summary = "too many frames"


class FrameWriteError(RenderError):
    """Raised when persisting frames to storage fails."""

    summary = "failed to store frames"


class InvalidFrameRateError(RenderError):
    """Raised when the frame rate is not a positive finite number."""

    summary = "frame rate must be a positive finite number"


class EncodeError(RenderError):
    """Raised when the encoder cannot be spawned or exits with an error."""

    summary = "video encoding failed"

    def __init__(
        self,
        message: str = "",
        *,
        diagnostics: str = "",
        returncode: int | None = None,
        summary: str | None = None,
    ) -> None:
        super().__init__(message, summary=summary)
        self.diagnostics = diagnostics
        self.returncode = returncode


class EncodeTimeoutError(EncodeError):
    """Raised when the encoder exceeds its runtime budget."""

    summary = "video encoding timed out"


class ArtifactNotFoundError(RenderError):
    """Raised when an artifact is unknown, expired or already deleted."""

    summary = "artifact not found"


class InvalidStateTransition(RenderError):
    """Raised when a job is moved to a state its current state cannot reach."""

    summary = "invalid job state transition"
