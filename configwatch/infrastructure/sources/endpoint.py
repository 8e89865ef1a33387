"""Adapter for configuration served over HTTP.

Two response shapes are understood:

* a config-server environment (JSON with ``propertySources``), which is
  exploded into one document per property source, and
* a plain document body (YAML, JSON or properties) served at the URL.

The location may contain ``{name}`` and ``{profiles}`` placeholders, e.g.
``https://config.internal/{name}/{profiles}``.
"""

from __future__ import annotations

import json
import re
from pathlib import PurePosixPath
from urllib.parse import urlparse

import httpx

from configwatch.domain.errors import AuthError, FetchError
from configwatch.domain.models import (
    DEFAULT_PROFILE,
    ConfigSource,
    DocumentFormat,
    MergePlan,
    RawDocument,
    SourceKind,
    classify_document,
)
from configwatch.infrastructure.observability import get_logger

from .base import SourceAdapter
from .credentials import resolve_credentials

logger = get_logger(__name__)

_RESOURCE_RE = re.compile(r"([\w.-]+)\.(?:ya?ml|properties|json)\b")


def expand_location(source: ConfigSource, plan: MergePlan | None) -> str:
    """Substitute ``{name}`` and ``{profiles}`` in the source location."""
    profiles = ",".join(plan.active) if plan is not None and plan.active else DEFAULT_PROFILE
    return source.location.replace("{name}", source.name).replace("{profiles}", profiles)


def profile_from_property_source(name: str, app_name: str) -> str:
    """Derive the profile from a property source name.

    Names look like ``https://git/repo/application-dev.yml`` or
    ``file:/config/application.properties``; unrecognised names belong to the
    default profile.
    """
    for match in _RESOURCE_RE.finditer(name):
        candidate = match.group(0)
        classified = classify_document(candidate, app_name)
        if classified is None and app_name != "application":
            classified = classify_document(candidate, "application")
        if classified is not None:
            return classified[0]
    return DEFAULT_PROFILE


class EndpointSourceAdapter(SourceAdapter):
    """Fetches documents with a single HTTP GET per refresh."""

    kind = SourceKind.ENDPOINT

    def __init__(self, transport: httpx.BaseTransport | None = None) -> None:
        self._transport = transport

    def _headers(self, source: ConfigSource) -> dict[str, str]:
        from configwatch import __version__

        headers = {
            "User-Agent": f"configwatch/{__version__}",
            "Accept": "application/json, application/yaml, text/plain",
        }
        credentials = resolve_credentials(source.credentials_ref)
        if credentials is not None:
            headers["Authorization"] = credentials.authorization_header()
        return headers

    def _get(self, url: str, source: ConfigSource) -> httpx.Response:
        try:
            with httpx.Client(
                timeout=source.timeout_seconds,
                transport=self._transport,
                follow_redirects=True,
            ) as client:
                return client.get(url, headers=self._headers(source))
        except httpx.TimeoutException as exc:
            raise FetchError(
                f"GET {url} timed out after {source.timeout_seconds}s",
                source=source.description,
                reason="timeout",
            ) from exc
        except httpx.HTTPError as exc:
            raise FetchError(f"GET {url} failed: {exc}", source=source.description) from exc

    def fetch(
        self, source: ConfigSource, plan: MergePlan | None = None
    ) -> frozenset[RawDocument]:
        url = expand_location(source, plan)
        response = self._get(url, source)

        if response.status_code in (401, 403):
            raise AuthError(
                f"GET {url} rejected credentials (HTTP {response.status_code})",
                source=source.description,
            )
        if response.status_code == 404:
            logger.debug("Endpoint %s returned 404; no documents", url)
            return frozenset()
        if response.status_code >= 400:
            raise FetchError(
                f"GET {url} failed with HTTP {response.status_code}",
                source=source.description,
            )

        fmt = DocumentFormat.from_content_type(response.headers.get("content-type"))
        if fmt is DocumentFormat.JSON:
            environment = self._property_sources(response.content)
            if environment is not None:
                return self._explode(environment, source, plan, url)

        path_name = PurePosixPath(urlparse(url).path).name
        if fmt is None:
            fmt = DocumentFormat.from_suffix(PurePosixPath(path_name).suffix) or DocumentFormat.YAML
        classified = classify_document(path_name, source.name)
        profile = classified[0] if classified else DEFAULT_PROFILE
        if not self.wanted(profile, plan):
            return frozenset()
        return frozenset(
            {
                RawDocument(
                    name=path_name or url,
                    content=response.content,
                    format=fmt,
                    profile=profile,
                    origin=url,
                )
            }
        )

    @staticmethod
    def _property_sources(content: bytes) -> list[dict] | None:
        try:
            payload = json.loads(content or b"null")
        except ValueError:
            return None
        if isinstance(payload, dict) and isinstance(payload.get("propertySources"), list):
            return payload["propertySources"]
        return None

    def _explode(
        self,
        property_sources: list[dict],
        source: ConfigSource,
        plan: MergePlan | None,
        url: str,
    ) -> frozenset[RawDocument]:
        documents: set[RawDocument] = set()
        # The server lists the highest precedence source first
        total = len(property_sources)
        for position, entry in enumerate(reversed(property_sources)):
            if not isinstance(entry, dict) or not isinstance(entry.get("source"), dict):
                raise FetchError(
                    f"Malformed propertySources entry from {url}", source=source.description
                )
            name = str(entry.get("name") or f"{url}#{total - position}")
            profile = profile_from_property_source(name, source.name)
            if not self.wanted(profile, plan):
                continue
            documents.add(
                RawDocument(
                    # Position prefix keeps the server precedence when sorting by name
                    name=f"{position:04d}:{name}",
                    content=json.dumps(entry["source"]).encode("utf-8"),
                    format=DocumentFormat.JSON,
                    profile=profile,
                    origin=name,
                )
            )
        return frozenset(documents)


__all__ = ["EndpointSourceAdapter", "expand_location", "profile_from_property_source"]
