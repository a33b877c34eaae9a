"""
Domain errors raised by the booking services.

Each error carries a stable ``kind`` that clients render as a toast, a
human-readable message and the HTTP status used by the API layer.
"""
from typing import Any, Dict, Optional


class BookingError(Exception):
    kind = "internal_error"
    status_code = 500

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"error": self.kind, "detail": self.message}
        if self.details:
            body["details"] = self.details
        return body

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(message={self.message!r})"


class ValidationError(BookingError):
    """Malformed or out-of-policy input."""

    kind = "validation_error"
    status_code = 400


class FormatError(ValidationError):
    """Date or time string in the wrong shape."""

    kind = "format_error"


class ConflictError(BookingError):
    """Vehicle already booked over the requested window."""

    kind = "conflict"
    status_code = 409


class AuthorizationError(BookingError):
    kind = "forbidden"
    status_code = 403


class NotFoundError(BookingError):
    kind = "not_found"
    status_code = 404


class InvalidStateError(BookingError):
    """Operation not allowed for the booking's current status."""

    kind = "invalid_state"
    status_code = 409


class InternalError(BookingError):
    kind = "internal_error"
    status_code = 500
