"""SendGrid Newsletter SDK exceptions.

Operations never raise these; they are carried by ``Result`` and the
connector's last-error slot. ``Result.unwrap()`` raises them on demand.
"""

from __future__ import annotations

from typing import Any


class SendGridError(Exception):
    """Base exception for the SendGrid Newsletter SDK."""

    def __init__(self, message: str, status_code: int | None = None):
        self.message = message
        self.status_code = status_code
        super().__init__(self.message)


class RemoteError(SendGridError):
    """Raised when the API response carries an ``error`` field."""

    def __init__(self, detail: Any, status_code: int | None = None):
        message = detail if isinstance(detail, str) else str(detail)
        super().__init__(message, status_code=status_code)
        self.detail = detail


class TransportError(SendGridError):
    """Raised when the request could not be completed (network, timeout, TLS)."""


class DecodeError(SendGridError):
    """Raised when the response body is not a JSON object or array."""

    def __init__(self, message: str = "Invalid response body", status_code: int | None = None):
        super().__init__(message, status_code=status_code)


class MissingFieldError(DecodeError):
    """Raised when a successful response lacks the field an operation reports."""

    def __init__(self, field: str):
        super().__init__(f"Response has no '{field}' field")
        self.field = field


class NotFoundError(SendGridError):
    """Raised when a record an operation depends on does not exist."""

    def __init__(self, message: str = "Record not found"):
        super().__init__(message)


class ValidationError(SendGridError):
    """Raised when arguments are rejected before any request is made."""

    def __init__(self, message: str = "Invalid request"):
        super().__init__(message)


class ConfigurationError(SendGridError):
    """Raised when the client cannot be configured."""
