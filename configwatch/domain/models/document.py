"""Raw configuration documents and the file naming convention."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import PurePosixPath

DEFAULT_PROFILE = "default"


class DocumentFormat(str, Enum):
    """Enumeration of supported document formats."""

    PROPERTIES = "properties"
    YAML = "yaml"
    JSON = "json"

    @classmethod
    def from_suffix(cls, suffix: str) -> "DocumentFormat | None":
        """Map a file suffix (with or without the dot) to a format."""
        normalized = suffix.lower().lstrip(".")
        if normalized == "properties":
            return cls.PROPERTIES
        if normalized in ("yml", "yaml"):
            return cls.YAML
        if normalized == "json":
            return cls.JSON
        return None

    @classmethod
    def from_content_type(cls, content_type: str | None) -> "DocumentFormat | None":
        """Map an HTTP content type to a format."""
        if not content_type:
            return None
        media_type = content_type.split(";", 1)[0].strip().lower()
        if media_type.endswith("json"):
            return cls.JSON
        if media_type.endswith("yaml") or media_type.endswith("yml"):
            return cls.YAML
        if media_type in ("text/x-java-properties", "text/x-properties"):
            return cls.PROPERTIES
        return None


@dataclass(frozen=True)
class RawDocument:
    """A named blob of configuration bytes for a single profile."""

    name: str
    content: bytes
    format: DocumentFormat
    profile: str = DEFAULT_PROFILE
    origin: str = ""

    @property
    def label(self) -> str:
        """Return the origin when known, otherwise the document name."""
        return self.origin or self.name

    def text(self) -> str:
        """Decode the content as UTF-8 (BOM tolerated)."""
        return self.content.decode("utf-8-sig")


def classify_document(filename: str, app_name: str) -> tuple[str, DocumentFormat] | None:
    """Return ``(profile, format)`` for a file following the naming convention.

    ``application.yml`` belongs to the default profile and
    ``application-dev.yml`` to ``dev``. Files for other applications or with
    unsupported suffixes return ``None``.
    """
    path = PurePosixPath(filename)
    fmt = DocumentFormat.from_suffix(path.suffix)
    if fmt is None:
        return None
    stem = path.stem
    if stem == app_name:
        return DEFAULT_PROFILE, fmt
    prefix = f"{app_name}-"
    if stem.startswith(prefix) and len(stem) > len(prefix):
        return stem[len(prefix):], fmt
    return None


__all__ = ["DEFAULT_PROFILE", "DocumentFormat", "RawDocument", "classify_document"]
