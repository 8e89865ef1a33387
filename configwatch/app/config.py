"""Settings loading for Configwatch.

Settings live in a YAML or JSON file, resolved in this order: the ``path``
argument, the ``CONFIGWATCH_CONFIG`` environment variable, then
``configwatch.yaml`` in the working directory. A few environment variables
override individual fields:

- ``CONFIGWATCH_PROFILES``: comma separated active profiles
- ``CONFIGWATCH_FETCH_TIMEOUT``: per-source fetch timeout in seconds
- ``CONFIGWATCH_CACHE_DIR``: directory for repository mirrors

Example ``configwatch.yaml``::

    profiles: [prod]
    retry_interval_seconds: 5
    sources:
      - kind: repository
        location: https://git.example.com/config.git
        credentials_ref: env:CONFIG_REPO_TOKEN
        poll_interval_seconds: 30
      - kind: directory
        location: /etc/myapp/config
        optional: true
"""

from __future__ import annotations

import json
import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from configwatch.domain.errors import SettingsError
from configwatch.domain.models import ConfigSource, MergePlan, SourceKind
from configwatch.domain.models.source import (
    DEFAULT_APPLICATION_NAME,
    DEFAULT_BRANCH,
    DEFAULT_FETCH_TIMEOUT,
)
from configwatch.infrastructure.observability import get_logger

CONFIG_ENV = "CONFIGWATCH_CONFIG"
PROFILES_ENV = "CONFIGWATCH_PROFILES"
FETCH_TIMEOUT_ENV = "CONFIGWATCH_FETCH_TIMEOUT"
CACHE_DIR_ENV = "CONFIGWATCH_CACHE_DIR"
DEFAULT_SETTINGS_FILE = "configwatch.yaml"

logger = get_logger(__name__)


class SourceSettings(BaseModel):
    model_config = ConfigDict(extra="forbid")

    kind: str
    location: str
    credentials_ref: str | None = None
    poll_interval_seconds: float | None = Field(default=None, ge=0)
    name: str = DEFAULT_APPLICATION_NAME
    branch: str = DEFAULT_BRANCH
    revision: str | None = None
    search_path: str = ""
    timeout_seconds: float = Field(default=DEFAULT_FETCH_TIMEOUT, gt=0)
    optional: bool = False

    @field_validator("kind")
    @classmethod
    def _known_kind(cls, value: str) -> str:
        return SourceKind.from_string(value).value

    @field_validator("location")
    @classmethod
    def _non_empty_location(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("location must not be empty")
        return value

    def to_source(self, *, timeout_override: float | None = None) -> ConfigSource:
        return ConfigSource(
            kind=SourceKind(self.kind),
            location=self.location,
            credentials_ref=self.credentials_ref,
            poll_interval_seconds=self.poll_interval_seconds,
            name=self.name,
            branch=self.branch,
            revision=self.revision,
            search_path=self.search_path,
            timeout_seconds=timeout_override or self.timeout_seconds,
            optional=self.optional,
        )


class WatchSettings(BaseModel):
    """Top-level settings file model."""

    model_config = ConfigDict(extra="forbid")

    sources: list[SourceSettings] = Field(default_factory=list)
    profiles: list[str] = Field(default_factory=list)
    fetch_timeout_seconds: float | None = Field(default=None, gt=0)
    poll_interval_seconds: float | None = Field(default=None, gt=0)
    retry_interval_seconds: float = Field(default=5.0, ge=0)
    max_consecutive_failures: int = Field(default=3, ge=1)
    cache_dir: str | None = None

    @field_validator("profiles", mode="before")
    @classmethod
    def _split_profiles(cls, value: Any) -> Any:
        if value is None:
            return []
        if isinstance(value, str):
            return [part.strip() for part in value.split(",") if part.strip()]
        return value

    def to_sources(self) -> list[ConfigSource]:
        """Convert to domain sources, applying the global fetch timeout."""
        return [
            source.to_source(timeout_override=self.fetch_timeout_seconds)
            for source in self.sources
        ]

    def merge_plan(self) -> MergePlan:
        return MergePlan.from_active(self.profiles)


def resolve_settings_path(
    path: str | os.PathLike | None = None,
    environ: Mapping[str, str] | None = None,
) -> tuple[Path, bool]:
    """Return the settings path and whether it was requested explicitly."""
    env = os.environ if environ is None else environ
    if path is not None:
        return Path(path), True
    override = env.get(CONFIG_ENV)
    if override:
        return Path(override), True
    return Path.cwd() / DEFAULT_SETTINGS_FILE, False


def _read_settings_file(path: Path) -> dict[str, Any]:
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise SettingsError(f"Cannot read settings file {path}: {exc}") from exc

    try:
        if path.suffix.lower() == ".json":
            data = json.loads(text) if text.strip() else {}
        else:
            data = yaml.safe_load(text) or {}
    except (json.JSONDecodeError, yaml.YAMLError) as exc:
        raise SettingsError(f"Settings file {path} is not valid: {exc}") from exc

    if not isinstance(data, dict):
        raise SettingsError(f"Settings file {path} must contain a mapping")
    return data


def _apply_environment(data: dict[str, Any], env: Mapping[str, str]) -> dict[str, Any]:
    merged = dict(data)
    profiles = env.get(PROFILES_ENV)
    if profiles is not None:
        merged["profiles"] = profiles
    timeout = env.get(FETCH_TIMEOUT_ENV)
    if timeout:
        try:
            merged["fetch_timeout_seconds"] = float(timeout)
        except ValueError as exc:
            raise SettingsError(f"{FETCH_TIMEOUT_ENV} must be a number, got {timeout!r}") from exc
    cache_dir = env.get(CACHE_DIR_ENV)
    if cache_dir:
        merged["cache_dir"] = cache_dir
    return merged


def load_settings(
    path: str | os.PathLike | None = None,
    *,
    environ: Mapping[str, str] | None = None,
) -> WatchSettings:
    """Load and validate Configwatch settings.

    A missing default ``configwatch.yaml`` yields settings without sources;
    a missing file that was asked for explicitly is an error.

    Raises:
        SettingsError: If the file cannot be read or fails validation.
    """
    env = os.environ if environ is None else environ
    settings_path, explicit = resolve_settings_path(path, env)

    if settings_path.exists():
        data = _read_settings_file(settings_path)
        logger.debug("Loaded settings from %s", settings_path)
    elif explicit:
        raise SettingsError(f"Settings file not found: {settings_path}")
    else:
        logger.debug("No settings file at %s; using defaults", settings_path)
        data = {}

    data = _apply_environment(data, env)
    try:
        return WatchSettings.model_validate(data)
    except ValidationError as exc:
        raise SettingsError(f"Invalid settings in {settings_path}:\n{exc}") from exc


__all__ = [
    "CACHE_DIR_ENV",
    "CONFIG_ENV",
    "DEFAULT_SETTINGS_FILE",
    "FETCH_TIMEOUT_ENV",
    "PROFILES_ENV",
    "SourceSettings",
    "WatchSettings",
    "load_settings",
    "resolve_settings_path",
]
