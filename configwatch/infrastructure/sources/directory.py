"""Adapter for configuration files mounted into a local directory."""

from __future__ import annotations

import time
from pathlib import Path

from configwatch.domain.errors import FetchError
from configwatch.domain.models import (
    ConfigSource,
    MergePlan,
    RawDocument,
    SourceKind,
    classify_document,
)
from configwatch.infrastructure.observability import get_logger

from .base import SourceAdapter

logger = get_logger(__name__)


class DirectorySourceAdapter(SourceAdapter):
    """Reads ``<name>[-<profile>].<ext>`` files from a directory.

    A missing directory or missing profile file means the profile is absent
    and yields no documents.
    """

    kind = SourceKind.DIRECTORY

    def fetch(
        self, source: ConfigSource, plan: MergePlan | None = None
    ) -> frozenset[RawDocument]:
        root = Path(source.location).expanduser()
        if source.search_path:
            root = root / source.search_path
        if not root.is_dir():
            logger.debug("Config directory %s does not exist; no documents", root)
            return frozenset()

        deadline = time.monotonic() + source.timeout_seconds
        documents: set[RawDocument] = set()
        try:
            entries = sorted(root.iterdir())
        except OSError as exc:
            raise FetchError(f"Cannot list {root}: {exc}", source=source.description) from exc

        for path in entries:
            classified = classify_document(path.name, source.name)
            if classified is None or not path.is_file():
                continue
            profile, fmt = classified
            if not self.wanted(profile, plan):
                continue
            if time.monotonic() > deadline:
                raise FetchError(
                    f"Reading {root} exceeded {source.timeout_seconds}s",
                    source=source.description,
                    reason="timeout",
                )
            try:
                content = path.read_bytes()
            except FileNotFoundError:
                # Removed between listing and reading: treat as absent
                continue
            except OSError as exc:
                raise FetchError(f"Cannot read {path}: {exc}", source=source.description) from exc
            documents.add(
                RawDocument(
                    name=path.name,
                    content=content,
                    format=fmt,
                    profile=profile,
                    origin=str(path),
                )
            )
        return frozenset(documents)


__all__ = ["DirectorySourceAdapter"]
