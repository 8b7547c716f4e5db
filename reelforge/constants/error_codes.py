"""Error codes dictionary.

This is the single source of truth for all error codes, their retryability
at the queue layer, and suggested fixes returned to callers.
"""

from typing import TypedDict


class ErrorCodeSpec(TypedDict, total=False):
    """Specification for an error code."""

    retryable: bool
    suggested_fix: str


# Error codes dictionary - single source of truth
ERROR_CODES: dict[str, ErrorCodeSpec] = {
    # ==========================================================================
    # Caller errors (never retried)
    # ==========================================================================
    "VALIDATION_ERROR": {
        "retryable": False,
        "suggested_fix": "Fix the request body and submit again",
    },
    "INVALID_TIMESTAMPS": {
        "retryable": False,
        "suggested_fix": "Word timestamps must satisfy 0 <= start <= end",
    },
    "OVERLAY_ASSET_NOT_FOUND": {
        "retryable": False,
        "suggested_fix": "Use one of the bundled overlay names or pass overlayUrl",
    },
    "COMPOSITION_ERROR": {
        "retryable": False,
        "suggested_fix": "Check the resolution, scale and duration parameters",
    },
    # ==========================================================================
    # Processing errors (retried with backoff by the queue)
    # ==========================================================================
    "ASSET_UNAVAILABLE": {
        "retryable": True,
        "suggested_fix": "Make sure every input URL is publicly reachable",
    },
    "PROBE_FAILURE": {
        "retryable": True,
        "suggested_fix": "Make sure the input is a valid media file with a video stream",
    },
    "ENGINE_FAILURE": {
        "retryable": True,
    },
    "UPLOAD_FAILURE": {
        "retryable": True,
    },
    # ==========================================================================
    # System errors
    # ==========================================================================
    "JOB_TIMEOUT": {
        "retryable": False,
        "suggested_fix": "The job is still running or the queue is saturated; retry later",
    },
    "JOB_FAILED": {
        "retryable": False,
        "suggested_fix": "The job exhausted its attempts; see the error message for the last failure",
    },
    "INTERNAL_ERROR": {
        "retryable": True,
    },
}


def get_error_spec(code: str) -> ErrorCodeSpec:
    """Return the spec for an error code, falling back to INTERNAL_ERROR."""
    return ERROR_CODES.get(code, ERROR_CODES["INTERNAL_ERROR"])


def is_retryable(code: str) -> bool:
    return get_error_spec(code).get("retryable", False)
