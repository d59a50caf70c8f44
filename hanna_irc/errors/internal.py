"""Centralized internal error hierarchy.

These exceptions provide semantic categories for the ingestion loop and the
connection lifecycle. Raw socket / asyncio errors are wrapped into these
before they reach reconnect logic.

Classes:
  InternalError          – Base for all internal errors.
  NetworkError           – Transport failures (socket read/write, connect).
  ParsingError           – Protocol text that could not be understood.
  LineParseError         – A single malformed IRC line (dropped, never fatal).
  RegistrationError      – Server refused or never completed registration.
  InvalidTransitionError – Lifecycle asked to make a transition it does not allow.
  RequestTimeoutError    – A LIST/WHOIS request did not complete in time.
"""

from __future__ import annotations

from collections.abc import Mapping


class InternalError(Exception):
    """Base class for all internal application errors with metadata support.

    Attributes:
        data: Dictionary containing arbitrary structured context data.

    Args:
        message: Descriptive error message.
        data: Optional mapping of additional context data.
    """

    data: dict[str, object]

    def __init__(
        self, message: str, *, data: Mapping[str, object] | None = None
    ) -> None:
        super().__init__(message)
        # Copy into a plain dict to avoid unexpected mutations from caller.
        self.data = dict(data) if data else {}


class NetworkError(InternalError):
    """Exception raised for network or transport layer errors.

    Any of these moves the connection lifecycle into RECONNECTING.
    """


class ParsingError(InternalError):
    """Exception raised for protocol text that could not be parsed."""


class LineParseError(ParsingError):
    """Raised by the line parser for empty or command-less lines.

    Args:
        message: Description of what was wrong with the line.
        line: The offending raw line.
    """

    def __init__(self, message: str, line: str = "") -> None:
        super().__init__(message, data={"line": line})
        self.line = line


class RegistrationError(InternalError):
    """Raised when registration fails fatally (e.g. 464/465 or a timeout)."""

    def __init__(self, message: str, *, code: str | None = None) -> None:
        super().__init__(message, data={"code": code})
        self.code = code


class InvalidTransitionError(InternalError):
    """Raised when the lifecycle is asked for a transition it does not allow."""


class RequestTimeoutError(InternalError):
    """Raised when a LIST or WHOIS request gets no complete answer in time."""


__all__ = [
    "InternalError",
    "NetworkError",
    "ParsingError",
    "LineParseError",
    "RegistrationError",
    "InvalidTransitionError",
    "RequestTimeoutError",
]
