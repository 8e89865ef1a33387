"""Configuration source domain model."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class SourceKind(str, Enum):
    """Enumeration of supported source backends."""

    REPOSITORY = "repository"
    DIRECTORY = "directory"
    ENDPOINT = "endpoint"

    @classmethod
    def from_string(cls, value: str) -> "SourceKind":
        """Convert a string to a SourceKind, accepting a few common aliases."""
        normalized = (value or "").lower().strip()
        if normalized in ("repository", "repo", "git"):
            return cls.REPOSITORY
        if normalized in ("directory", "dir", "file", "native"):
            return cls.DIRECTORY
        if normalized in ("endpoint", "http", "https", "url"):
            return cls.ENDPOINT
        raise ValueError(f"Unknown source kind: {value!r}")


DEFAULT_APPLICATION_NAME = "application"
DEFAULT_BRANCH = "main"
DEFAULT_FETCH_TIMEOUT = 10.0


@dataclass(frozen=True)
class ConfigSource:
    """One configuration backend.

    ``revision`` pins a repository source to a specific commit or tag and wins
    over ``branch``. ``optional`` sources that fail to fetch are skipped
    instead of failing the whole refresh cycle.
    """

    kind: SourceKind
    location: str
    credentials_ref: str | None = None
    poll_interval_seconds: float | None = None
    name: str = DEFAULT_APPLICATION_NAME
    branch: str = DEFAULT_BRANCH
    revision: str | None = None
    search_path: str = ""
    timeout_seconds: float = DEFAULT_FETCH_TIMEOUT
    optional: bool = False

    def __post_init__(self) -> None:
        if not isinstance(self.kind, SourceKind):
            object.__setattr__(self, "kind", SourceKind.from_string(str(self.kind)))
        if not self.location or not self.location.strip():
            raise ValueError("ConfigSource.location must not be empty")
        if self.timeout_seconds <= 0:
            raise ValueError("ConfigSource.timeout_seconds must be positive")
        if self.poll_interval_seconds is not None and self.poll_interval_seconds < 0:
            raise ValueError("ConfigSource.poll_interval_seconds must not be negative")

    @property
    def ref(self) -> str:
        """Return the repository ref to resolve (pinned revision or branch)."""
        return self.revision or self.branch

    @property
    def description(self) -> str:
        """Return a short human-readable description for logs."""
        if self.kind is SourceKind.REPOSITORY:
            return f"{self.kind.value}:{self.location}@{self.ref}"
        return f"{self.kind.value}:{self.location}"


__all__ = [
    "ConfigSource",
    "DEFAULT_APPLICATION_NAME",
    "DEFAULT_BRANCH",
    "DEFAULT_FETCH_TIMEOUT",
    "SourceKind",
]
