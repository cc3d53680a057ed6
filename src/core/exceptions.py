"""
Raasta Sathi - Error Taxonomy
Domain errors shared by the server core and the submission client.
"""

from typing import Any, Dict, List, Optional


class ReportError(Exception):
    """Base class for every error raised by the report core."""

    message = "An error occurred"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.message
        super().__init__(self.message)


class ValidationError(ReportError):
    """Malformed or missing input. Never retried."""

    message = "Validation failed"

    def __init__(self, message: Optional[str] = None, field: Optional[str] = None):
        super().__init__(message)
        self.field = field

    def to_dict(self) -> Dict[str, Any]:
        return {"field": self.field, "message": self.message}


class StateConflictError(ReportError):
    """Illegal status transition or action against an inactive report."""

    message = "Report is not in a state that allows this action"


class NotFoundError(ReportError):
    """Report does not exist or has been deactivated."""

    message = "Report not found"


class PermissionDeniedError(ReportError):
    """Acting user may not perform this action on the report."""

    message = "Not allowed to modify this report"


# ---------------------------------------------------------------------------
# Client-side request errors
# ---------------------------------------------------------------------------

class TransportError(ReportError):
    """Request never produced a usable server response."""

    message = "An error occurred"
    retryable = True


class RequestTimeoutError(TransportError):
    message = "Request timed out. Please check your connection and try again."


class NetworkError(TransportError):
    message = "Network error - please check your connection"


class UnknownRequestError(TransportError):
    """Unexpected transport failure or malformed response."""

    message = "An unexpected error occurred. Please try again."


class ServerError(ReportError):
    """5xx-class response. Retried by the client, detail never exposed."""

    message = "Server error occurred"
    retryable = True

    def __init__(self, message: Optional[str] = None, status_code: int = 500):
        super().__init__(message)
        self.status_code = status_code


class RequestRejectedError(ReportError):
    """4xx-class response. Surfaced immediately without another attempt."""

    message = "The server rejected the request"

    def __init__(
        self,
        message: Optional[str] = None,
        status_code: int = 400,
        errors: Optional[List[Dict[str, Any]]] = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.errors = errors or []


class SubmissionCancelledError(ReportError):
    """Caller abandoned the submission."""

    message = "Submission cancelled"
