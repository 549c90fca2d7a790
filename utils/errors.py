"""
Error taxonomy for the meeting minutes service.

Every error carries a stable machine-readable code and an HTTP status so the
transport layer can map it without knowing where it came from. Synchronous
API callers receive these as structured error bodies (see main.py); the
webhook path and background pipeline only log them.
"""

from typing import Any, Dict, Optional


class MinutesServiceError(Exception):
    """Base error for all failures raised by this service.

    Attributes:
        message: Human-readable error description
        code: Machine-readable error code
        status_code: HTTP status used when surfaced to an API caller
        details: Optional diagnostic payload (only exposed outside production)
    """
    code = "INTERNAL_ERROR"
    status_code = 500

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        status_code: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        if code is not None:
            self.code = code
        if status_code is not None:
            self.status_code = status_code
        self.details = details or {}
        super().__init__(message)

    def to_dict(self, include_details: bool = False) -> Dict[str, Any]:
        body: Dict[str, Any] = {"code": self.code, "message": self.message}
        if include_details and self.details:
            body["details"] = self.details
        return body


class AuthenticationError(MinutesServiceError):
    """Token acquisition or bearer-token verification failed."""
    code = "AUTH_ERROR"
    status_code = 401


class GraphApiError(MinutesServiceError):
    """The communications/transcript API returned an error or was unreachable."""
    code = "GRAPH_API_ERROR"
    status_code = 502


class TranscriptNotFoundError(MinutesServiceError):
    """No transcript exists (yet) for the requested meeting or call."""
    code = "TRANSCRIPT_NOT_FOUND"
    status_code = 404

    def __init__(self, meeting_id: str, details: Optional[Dict[str, Any]] = None):
        self.meeting_id = meeting_id
        super().__init__(
            f"Transcript not found for meeting: {meeting_id}",
            details=details,
        )


class GenerationError(MinutesServiceError):
    """The language model call failed or returned nothing usable."""
    code = "GENERATION_ERROR"
    status_code = 502


class InvalidInputError(MinutesServiceError):
    """Malformed caller input (join URL, uploaded file, request body)."""
    code = "INVALID_INPUT"
    status_code = 400


class CaptionParseError(InvalidInputError):
    """A caption-track (WebVTT) document is structurally invalid."""
    code = "INVALID_CAPTION_FILE"


class UploadTooLargeError(InvalidInputError):
    """An uploaded file exceeds the configured size bound."""
    code = "UPLOAD_TOO_LARGE"
    status_code = 413

    def __init__(self, size: int, max_size: int):
        self.size = size
        self.max_size = max_size
        super().__init__(
            f"File too large. Maximum size: {max_size / (1024 * 1024):.0f}MB",
            details={"size": size, "max_size": max_size},
        )
