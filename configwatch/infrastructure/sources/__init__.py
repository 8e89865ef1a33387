"""Source adapters for Configwatch.

Each adapter fetches raw documents from one kind of backend: a git
repository, a mounted directory or an HTTP endpoint.
"""

from __future__ import annotations

from pathlib import Path

import httpx

from .base import AdapterRegistry, SourceAdapter
from .credentials import Credentials, resolve_credentials
from .directory import DirectorySourceAdapter
from .endpoint import EndpointSourceAdapter, expand_location, profile_from_property_source
from .repository import RepositorySourceAdapter, default_cache_dir


def default_registry(
    *,
    cache_dir: Path | str | None = None,
    transport: httpx.BaseTransport | None = None,
) -> AdapterRegistry:
    """Return a registry with the three built-in adapters."""
    return AdapterRegistry(
        [
            DirectorySourceAdapter(),
            RepositorySourceAdapter(cache_dir=cache_dir),
            EndpointSourceAdapter(transport=transport),
        ]
    )


__all__ = [
    "AdapterRegistry",
    "Credentials",
    "DirectorySourceAdapter",
    "EndpointSourceAdapter",
    "RepositorySourceAdapter",
    "SourceAdapter",
    "default_cache_dir",
    "default_registry",
    "expand_location",
    "profile_from_property_source",
    "resolve_credentials",
]
