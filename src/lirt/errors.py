"""Error taxonomy shared by the lirt components and command layer."""

from __future__ import annotations
from enum import IntEnum
from typing import Any


class ExitCode(IntEnum):
    """Process exit codes scripts can branch on."""

    SUCCESS = 0
    ERROR = 1
    USAGE = 2
    AUTH = 3
    NOT_FOUND = 4


class LirtError(Exception):
    """Base class for errors surfaced to the command layer."""

    exit_code: ExitCode = ExitCode.ERROR


class ConfigurationError(LirtError):
    """Raised when a settings or secrets file cannot be read."""


class ValidationError(LirtError):
    """Raised for malformed user input caught before any network call."""

    exit_code = ExitCode.USAGE


class AuthenticationError(LirtError):
    """Raised when no credential resolves or the remote rejects it."""

    exit_code = ExitCode.AUTH


class NotFoundError(LirtError):
    """Raised when a resource, profile or identifier does not exist."""

    exit_code = ExitCode.NOT_FOUND


class TransportError(LirtError):
    """Raised when a request never produced a structured response."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        """Initialise the error with the optional HTTP status code."""
        super().__init__(message)
        self.status_code = status_code


class PaginationError(TransportError):
    """Raised when the server keeps repeating a cursor or pages never end."""


class RateLimitError(LirtError):
    """Raised once the rate-limit retry budget is exhausted."""

    def __init__(self, message: str, *, retry_after: float | None = None) -> None:
        """Initialise the error with the last server-provided delay."""
        super().__init__(message)
        self.retry_after = retry_after


_NOT_FOUND_CODES = frozenset({"ENTITY_NOT_FOUND", "NOT_FOUND"})


class PartialAPIError(LirtError):
    """Raised when a successful response carries application-level errors.

    ``data`` holds whatever the server returned next to the errors (possibly
    ``None``), so callers can inspect partial results before giving up.
    """

    def __init__(self, errors: list[dict[str, Any]], data: Any = None) -> None:
        """Initialise the error with the structured errors and partial data."""
        self.errors = errors
        self.data = data
        super().__init__(_summarise(errors))

    @property
    def messages(self) -> list[str]:
        """Return the human readable message of every error."""
        return [str(error.get("message", error)) for error in self.errors]

    @property
    def codes(self) -> list[str | None]:
        """Return the ``extensions.code`` of every error, if present."""
        return [error_code(error) for error in self.errors]

    @property
    def not_found(self) -> bool:
        """Whether every error reports a missing entity."""
        if not self.errors:
            return False
        for error in self.errors:
            code = error_code(error)
            message = str(error.get("message", "")).lower()
            if code not in _NOT_FOUND_CODES and "not found" not in message:
                return False
        return True


def error_code(error: dict[str, Any]) -> str | None:
    """Return the ``extensions.code`` (or ``type``) of a GraphQL error."""
    extensions = error.get("extensions")
    if isinstance(extensions, dict):
        code = extensions.get("code") or extensions.get("type")
        if isinstance(code, str):
            return code.upper()
    code = error.get("type")
    if isinstance(code, str):
        return code.upper()
    return None


def _summarise(errors: list[dict[str, Any]]) -> str:
    messages = [str(error.get("message", error)) for error in errors]
    if not messages:
        return "API returned an error without details"
    if len(messages) == 1:
        return f"API error: {messages[0]}"
    return f"API returned {len(messages)} errors: " + "; ".join(messages)


__all__ = [
    "AuthenticationError",
    "ConfigurationError",
    "ExitCode",
    "LirtError",
    "NotFoundError",
    "PaginationError",
    "PartialAPIError",
    "RateLimitError",
    "TransportError",
    "ValidationError",
    "error_code",
]
