"""SendGrid Newsletter Python SDK - newsletters, recipient lists, identities and schedules."""

import logging

from .client import SendGridClient
from ._version import __version__
from .connect import Connector, form_fields
from .result import Result
from .exceptions import (
    SendGridError,
    RemoteError,
    TransportError,
    DecodeError,
    MissingFieldError,
    NotFoundError,
    ValidationError,
    ConfigurationError,
)

logging.getLogger(__name__).addHandler(logging.NullHandler())

__all__ = [
    "SendGridClient",
    "Connector",
    "form_fields",
    "Result",
    "SendGridError",
    "RemoteError",
    "TransportError",
    "DecodeError",
    "MissingFieldError",
    "NotFoundError",
    "ValidationError",
    "ConfigurationError",
]
