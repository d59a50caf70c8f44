from __future__ import annotations

import logging

from ..logging_config import log_structured_error
from .internal import (
    InternalError,
    NetworkError,
    ParsingError,
    RegistrationError,
    RequestTimeoutError,
)


def error_category(error: Exception) -> str:
    """Map an exception onto the category name used by the error aggregator."""
    if isinstance(error, TimeoutError | RequestTimeoutError):
        return "timeout"
    if isinstance(error, NetworkError | OSError | ConnectionError):
        return "network"
    if isinstance(error, RegistrationError):
        return "registration"
    if isinstance(error, ParsingError):
        return "parsing"
    if isinstance(error, InternalError):
        return "internal"
    return "unknown"


def log_error(
    message: str,
    error: Exception,
    context: dict | None = None,
    level: int = logging.ERROR,
) -> None:
    """Logs an error message with the associated exception details.

    The exception is categorized (network, timeout, registration, parsing,
    internal) and handed to the structured error logger so repeated failures
    show up in the aggregated error summary.

    Args:
        message: A descriptive message about the error context.
        error: The exception instance to be logged.
        context: Optional additional context data for debugging.
        level: Logging level for the structured record.
    """
    log_structured_error(
        error_type=error_category(error),
        message=f"{message}: {error}",
        exception=error,
        context=context,
        level=level,
    )
