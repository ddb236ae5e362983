"""Error codes dictionary for the render engine.

Single source of truth for every error code, whether a retry can help,
and the fix a caller should try. Used by StudioRenderError.to_error_info().
"""

from typing import TypedDict


class ErrorCodeSpec(TypedDict, total=False):
    """Specification for an error code."""

    retryable: bool
    suggested_fix: str


ERROR_CODES: dict[str, ErrorCodeSpec] = {
    # ==========================================================================
    # Input errors (not retryable without changing the project)
    # ==========================================================================
    "INVALID_TIMELINE": {
        "retryable": False,
        "suggested_fix": "Normalize the timeline so slides start at 0 and follow each other without gaps",
    },
    "ASSET_UNAVAILABLE": {
        "retryable": True,
        "suggested_fix": "Check that the asset URL or upload reference still exists",
    },
    # ==========================================================================
    # Encoder errors
    # ==========================================================================
    "ENCODER_FAILURE": {
        "retryable": True,
        "suggested_fix": "Inspect the encoder output tail; retry with the 720p profile if resources were exhausted",
    },
    "ENCODER_TIMEOUT": {
        "retryable": True,
        "suggested_fix": "The encoder stopped producing output; retry the render",
    },
    "SPAWN_FAILURE": {
        "retryable": False,
        "suggested_fix": "Install FFmpeg or set FFMPEG_PATH to the binary location",
    },
    # ==========================================================================
    # State errors
    # ==========================================================================
    "JOB_NOT_FOUND": {
        "retryable": False,
    },
    "INVALID_JOB_TRANSITION": {
        "retryable": False,
    },
    "INVALID_PIPELINE_STATE": {
        "retryable": False,
    },
    "INTERNAL_ERROR": {
        "retryable": True,
    },
}


def get_error_spec(code: str) -> ErrorCodeSpec:
    """Get error specification by code, falling back to INTERNAL_ERROR."""
    return ERROR_CODES.get(code, ERROR_CODES["INTERNAL_ERROR"])
