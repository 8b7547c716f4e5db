"""Custom exceptions for reelforge.

Each exception carries a machine-readable error code. Whether the queue
retries a failed attempt is decided by the code's entry in
``reelforge.constants.error_codes``.
"""

from reelforge.constants.error_codes import get_error_spec, is_retryable


class ReelforgeError(Exception):
    """Base exception for all reelforge errors."""

    code: str = "INTERNAL_ERROR"
    status_code: int = 500
    message: str = "An unexpected error occurred"

    def __init__(
        self,
        message: str | None = None,
        *,
        code: str | None = None,
        status_code: int | None = None,
    ):
        self.message = message or self.__class__.message
        if code:
            self.code = code
        if status_code:
            self.status_code = status_code
        super().__init__(self.message)

    @property
    def retryable(self) -> bool:
        return is_retryable(self.code)

    @property
    def suggested_fix(self) -> str | None:
        return get_error_spec(self.code).get("suggested_fix")

    def to_dict(self) -> dict:
        """Serialize for API error bodies."""
        body = {"error": self.message, "code": self.code}
        if self.suggested_fix:
            body["suggested_fix"] = self.suggested_fix
        return body


# =============================================================================
# Caller errors (400)
# =============================================================================


class ValidationError(ReelforgeError):
    """Missing or malformed input. Never retried."""

    code = "VALIDATION_ERROR"
    status_code = 400
    message = "Invalid request"


class InvalidTimestampsError(ValidationError):
    """Word timestamps are malformed or out of order."""

    code = "INVALID_TIMESTAMPS"
    message = "Invalid word timestamps"

    def __init__(self, message: str | None = None, *, index: int | None = None):
        msg = message or self.message
        if index is not None:
            msg = f"{msg} (word index {index})"
        super().__init__(msg)


class OverlayAssetNotFoundError(ValidationError):
    """Named bundled overlay does not exist."""

    code = "OVERLAY_ASSET_NOT_FOUND"
    message = "Overlay asset not found"

    def __init__(self, name: str | None = None, search_dir: str | None = None):
        message = self.message
        if name:
            message = f"Overlay asset not found: {name}"
            if search_dir:
                message += f" (looked in {search_dir})"
        super().__init__(message)


class CompositionError(ReelforgeError):
    """A filter graph could not be planned from the inputs."""

    code = "COMPOSITION_ERROR"
    status_code = 400
    message = "Composition could not be planned"


# =============================================================================
# Processing errors (500, retried by the queue)
# =============================================================================


class AssetUnavailableError(ReelforgeError):
    """Download of a remote input failed or timed out."""

    code = "ASSET_UNAVAILABLE"
    message = "Remote asset unavailable"

    def __init__(self, url: str | None = None, reason: str | None = None):
        message = self.message
        if url:
            message = f"Failed to download {url}"
            if reason:
                message += f": {reason}"
        super().__init__(message)


class ProbeFailureError(ReelforgeError):
    """The probe tool returned no usable stream information."""

    code = "PROBE_FAILURE"
    message = "Media probe failed"


class EngineFailureError(ReelforgeError):
    """The media engine exited non-zero, timed out or wrote no output."""

    code = "ENGINE_FAILURE"
    message = "Media engine failed"

    def __init__(
        self,
        message: str | None = None,
        *,
        returncode: int | None = None,
        stderr: str | None = None,
        timed_out: bool = False,
    ):
        self.returncode = returncode
        self.stderr = stderr or ""
        self.timed_out = timed_out
        super().__init__(message)


class UploadFailureError(ReelforgeError):
    """Object storage write failed."""

    code = "UPLOAD_FAILURE"
    message = "Upload to object storage failed"


# =============================================================================
# System errors
# =============================================================================


class JobTimeoutError(ReelforgeError):
    """The caller gave up waiting for a queued job."""

    code = "JOB_TIMEOUT"
    status_code = 500
    message = "Timed out waiting for the job to finish"


class InternalError(ReelforgeError):
    """Internal server error."""

    code = "INTERNAL_ERROR"
    status_code = 500
    message = "Internal server error"


class JobFailedError(ReelforgeError):
    """A queued job finished without producing output."""

    code = "JOB_FAILED"
    status_code = 500
    message = "Job failed"
