"""Exception hierarchy for Configwatch.

Errors raised while fetching, parsing and merging are contained by the refresh
controller. :class:`TypeMismatchError` is the only one that reaches consumers
reading values from the store.
"""

from __future__ import annotations


class ConfigwatchError(Exception):
    """Base class for all Configwatch errors."""


class FetchError(ConfigwatchError):
    """Raised when a source cannot be read (network, IO or timeout).

    ``reason`` labels the failure for metrics: ``io``, ``timeout``, ``busy``
    (an earlier fetch of the same source is still running) or ``auth``.
    """

    default_reason = "io"

    def __init__(
        self, message: str, *, source: str | None = None, reason: str | None = None
    ) -> None:
        super().__init__(message)
        self.source = source
        self.reason = reason or self.default_reason

    @property
    def timed_out(self) -> bool:
        return self.reason == "timeout"


class AuthError(FetchError):
    """Raised when a source rejects the supplied credentials."""

    default_reason = "auth"


class ParseError(ConfigwatchError):
    """Raised when a document is malformed."""

    def __init__(self, message: str, *, document: str | None = None) -> None:
        if document:
            message = f"{document}: {message}"
        super().__init__(message)
        self.document = document


class ConflictError(ConfigwatchError):
    """Raised when a profile changes the basic type of a default key."""

    def __init__(self, key: str, expected: str, actual: str, profile: str) -> None:
        super().__init__(
            f"Profile '{profile}' changes type of '{key}' from {expected} to {actual}"
        )
        self.key = key
        self.expected = expected
        self.actual = actual
        self.profile = profile


class TypeMismatchError(ConfigwatchError):
    """Raised when a stored value cannot be coerced to the requested type."""

    def __init__(self, key: str, requested: str, actual: str) -> None:
        super().__init__(
            f"Value for '{key}' is {actual}; cannot be read as {requested}"
        )
        self.key = key
        self.requested = requested
        self.actual = actual


class SettingsError(ConfigwatchError):
    """Raised when the Configwatch settings file is missing or invalid."""


__all__ = [
    "AuthError",
    "ConfigwatchError",
    "ConflictError",
    "FetchError",
    "ParseError",
    "SettingsError",
    "TypeMismatchError",
]
