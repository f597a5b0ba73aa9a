"""Custom exceptions for the HyperEdit backend.

Every error that reaches a client is a ``HyperEditError`` subclass. The API
layer turns it into ``{"error": message, "code": code}`` with the class's
HTTP status.
"""


class HyperEditError(Exception):
    """Base exception for all HyperEdit application errors."""

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

    def to_payload(self) -> dict[str, str]:
        """Convert exception to the JSON error body."""
        return {"error": self.message, "code": self.code}


# =============================================================================
# Not Found Errors (404)
# =============================================================================


class NotFoundError(HyperEditError):
    """Base class for unknown ids. Never retried."""

    code = "NOT_FOUND"
    status_code = 404
    message = "Not found"


class SessionNotFoundError(NotFoundError):
    code = "SESSION_NOT_FOUND"
    message = "Session not found"

    def __init__(self, session_id: str | None = None):
        message = f"Session not found: {session_id}" if session_id else self.message
        super().__init__(message)


class AssetNotFoundError(NotFoundError):
    code = "ASSET_NOT_FOUND"
    message = "Asset not found"

    def __init__(self, asset_id: str | None = None):
        message = f"Asset not found: {asset_id}" if asset_id else self.message
        super().__init__(message)


class ClipNotFoundError(NotFoundError):
    code = "CLIP_NOT_FOUND"
    message = "Clip not found"

    def __init__(self, clip_id: str | None = None):
        message = f"Clip not found: {clip_id}" if clip_id else self.message
        super().__init__(message)


class TrackNotFoundError(NotFoundError):
    code = "TRACK_NOT_FOUND"
    message = "Track not found"

    def __init__(self, track_id: str | None = None):
        message = f"Track not found: {track_id}" if track_id else self.message
        super().__init__(message)


class RenderNotFoundError(NotFoundError):
    code = "RENDER_NOT_FOUND"
    message = "Render not found"

    def __init__(self, kind: str | None = None):
        message = f"No {kind} render found" if kind else self.message
        super().__init__(message)


class ThumbnailNotFoundError(NotFoundError):
    code = "THUMBNAIL_NOT_FOUND"
    message = "Thumbnail not found"


class WorkingVideoNotFoundError(NotFoundError):
    code = "WORKING_VIDEO_NOT_FOUND"
    message = "Session has no working video"


# =============================================================================
# Validation Errors (400)
# =============================================================================


class ValidationError(HyperEditError):
    """Raised before any subprocess is spawned."""

    code = "VALIDATION_ERROR"
    status_code = 400
    message = "Invalid request"


class MissingUploadError(ValidationError):
    code = "MISSING_UPLOAD"
    message = "No file uploaded"

    def __init__(self, field: str | None = None):
        message = f"No file uploaded in field '{field}'" if field else self.message
        super().__init__(message)


class EmptyTimelineError(ValidationError):
    code = "EMPTY_TIMELINE"
    message = "No clips to render"


class InvalidTransformError(ValidationError):
    code = "INVALID_TRANSFORM"
    message = "Invalid clip transform"


class InvalidTimeRangeError(ValidationError):
    code = "INVALID_TIME_RANGE"
    message = "Invalid time range"


class InvalidEditCommandError(ValidationError):
    code = "INVALID_EDIT_COMMAND"
    message = "Invalid edit command"


class NothingToKeepError(ValidationError):
    code = "NOTHING_TO_KEEP"
    message = "The whole file is silent; nothing would remain"


# =============================================================================
# External tool / upstream errors
# =============================================================================


class ExternalToolError(HyperEditError):
    """ffmpeg or ffprobe exited unsuccessfully. Never retried."""

    code = "EXTERNAL_TOOL_FAILURE"
    status_code = 500
    message = "External tool failed"

    def __init__(
        self,
        message: str | None = None,
        *,
        diagnostics: str = "",
        returncode: int | None = None,
    ):
        self.diagnostics = diagnostics
        self.returncode = returncode
        msg = message or self.message
        if diagnostics:
            msg = f"{msg}: {diagnostics}"
        super().__init__(msg)


class UpstreamServiceError(HyperEditError):
    """A transcription or GIF provider returned an error or a bad payload."""

    code = "UPSTREAM_SERVICE_FAILURE"
    status_code = 502
    message = "Upstream service failed"

    def __init__(self, message: str | None = None, *, service: str = "upstream"):
        self.service = service
        super().__init__(f"{service}: {message or self.message}")


class UpstreamTimeoutError(HyperEditError):
    code = "UPSTREAM_TIMEOUT"
    status_code = 504
    message = "Upstream service timed out"


class ConfigurationError(HyperEditError):
    code = "NOT_CONFIGURED"
    status_code = 503
    message = "Service is not configured"


class TransientIOError(HyperEditError):
    """Best-effort cleanup failed. Logged, never returned to clients."""

    code = "TRANSIENT_IO_FAILURE"
    status_code = 500
    message = "Temporary file cleanup failed"
