"""Custom exceptions for the render engine.

Every error carries a machine-readable code from constants.error_codes so a
job facade can report failures with a retry hint instead of a bare string.
"""

from studio_render.constants.error_codes import get_error_spec
from studio_render.schemas.envelope import ErrorInfo, ErrorLocation
from studio_render.schemas.project import TimelineIssue

# Known FFmpeg failure patterns and the hint appended to the error message
ENCODER_ERROR_HINTS: list[tuple[str, str]] = [
    (
        "Resource temporarily unavailable",
        "System resources exhausted. Try rendering at 720p or close other applications.",
    ),
    (
        "Failed to configure output pad",
        "Filter graph configuration error. Check that every slide image is valid.",
    ),
    (
        "Error reinitializing filters",
        "Filter reinitialization failed. Slide images may have mismatched formats.",
    ),
]


class StudioRenderError(Exception):
    """Base exception for all render engine errors."""

    code: str = "INTERNAL_ERROR"
    message: str = "An unexpected error occurred"

    def __init__(
        self,
        message: str | None = None,
        *,
        code: str | None = None,
        location: ErrorLocation | None = None,
        suggested_fix: str | None = None,
    ):
        self.message = message or self.__class__.message
        if code:
            self.code = code
        self.location = location
        self.suggested_fix = suggested_fix
        super().__init__(self.message)

    @property
    def retryable(self) -> bool:
        return get_error_spec(self.code).get("retryable", False)

    def details(self) -> list[str]:
        return []

    def to_error_info(self) -> ErrorInfo:
        """Convert exception to ErrorInfo for job status reporting."""
        spec = get_error_spec(self.code)
        return ErrorInfo(
            code=self.code,
            message=self.message,
            location=self.location,
            retryable=spec.get("retryable", False),
            suggested_fix=self.suggested_fix or spec.get("suggested_fix"),
            details=self.details(),
        )


# =============================================================================
# Input Errors
# =============================================================================


class InvalidTimelineError(StudioRenderError):
    """The slide timeline is malformed or cannot be chained."""

    code = "INVALID_TIMELINE"
    message = "Invalid timeline"

    def __init__(self, errors: list[TimelineIssue] | None = None, message: str | None = None):
        self.errors = list(errors or [])
        if message is None:
            message = "Invalid timeline: " + "; ".join(str(e) for e in self.errors) if self.errors else None
        location = ErrorLocation(index=self.errors[0].index) if self.errors else None
        super().__init__(message, location=location)

    def details(self) -> list[str]:
        return [str(e) for e in self.errors]


class AssetUnavailableError(StudioRenderError):
    """A referenced image or audio asset could not be resolved to a local file."""

    code = "ASSET_UNAVAILABLE"
    message = "Asset unavailable"

    def __init__(self, ref: str | None = None, reason: str | None = None):
        self.ref = ref
        message = f"Asset unavailable: {ref}" if ref else self.message
        if reason:
            message = f"{message} ({reason})"
        super().__init__(message, location=ErrorLocation(field=ref) if ref else None)


# =============================================================================
# Encoder Errors
# =============================================================================


class EncoderError(StudioRenderError):
    """Base class for encoder subprocess errors."""

    def __init__(self, message: str | None = None, stderr_tail: str = ""):
        self.stderr_tail = stderr_tail
        super().__init__(message)

    def details(self) -> list[str]:
        return self.stderr_tail.splitlines()


class EncoderFailureError(EncoderError):
    """The encoder exited with a non-zero status."""

    code = "ENCODER_FAILURE"
    message = "Encoder failed"

    def __init__(self, returncode: int | None, stderr_tail: str = ""):
        self.returncode = returncode
        message = f"FFmpeg exited with code {returncode}"
        hint = encoder_error_hint(stderr_tail)
        if hint:
            message = f"{message}. {hint}"
        super().__init__(message, stderr_tail)


class EncoderTimeoutError(EncoderError):
    """The encoder produced no diagnostic output for the stall window."""

    code = "ENCODER_TIMEOUT"
    message = "Encoder stalled"

    def __init__(self, stall_seconds: float, stderr_tail: str = ""):
        self.stall_seconds = stall_seconds
        super().__init__(f"FFmpeg produced no output for {stall_seconds:g}s and was killed", stderr_tail)


class SpawnFailureError(StudioRenderError):
    """The encoder binary is missing or could not be started."""

    code = "SPAWN_FAILURE"
    message = "Could not start FFmpeg"

    def __init__(self, reason: str | None = None):
        super().__init__(f"Could not start FFmpeg: {reason}" if reason else None)


# =============================================================================
# State Errors
# =============================================================================


class JobNotFoundError(StudioRenderError):
    """Render job not found."""

    code = "JOB_NOT_FOUND"
    message = "Render job not found"

    def __init__(self, job_id: str | None = None):
        super().__init__(f"Render job not found: {job_id}" if job_id else None)


class JobTransitionError(StudioRenderError):
    """A render job was updated after reaching a terminal state, or moved backwards."""

    code = "INVALID_JOB_TRANSITION"
    message = "Invalid render job transition"


class PipelineStateError(StudioRenderError):
    """The render supervisor was asked to re-enter a state."""

    code = "INVALID_PIPELINE_STATE"
    message = "Invalid pipeline state transition"


def encoder_error_hint(stderr_text: str) -> str | None:
    """Return a human-readable hint for a known FFmpeg failure pattern."""
    for pattern, hint in ENCODER_ERROR_HINTS:
        if pattern in stderr_text:
            return hint
    return None
