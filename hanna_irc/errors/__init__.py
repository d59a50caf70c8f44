"""Error hierarchy and structured error helpers."""

from .handling import log_error  # noqa: F401
from .internal import (  # noqa: F401
    InternalError,
    InvalidTransitionError,
    LineParseError,
    NetworkError,
    ParsingError,
    RegistrationError,
    RequestTimeoutError,
)

__all__ = [
    "InternalError",
    "InvalidTransitionError",
    "LineParseError",
    "NetworkError",
    "ParsingError",
    "RegistrationError",
    "RequestTimeoutError",
    "log_error",
]
