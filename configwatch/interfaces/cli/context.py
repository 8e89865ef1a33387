"""Shared helpers for composing CLI command contexts.

Every command resolves the same settings file and profile selection from the
group options; this module turns them into a :class:`ConfigWatcher`.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from pathlib import Path

import click

from configwatch.app.config import WatchSettings, load_settings
from configwatch.domain.errors import SettingsError
from configwatch.services import ConfigWatcher, RefreshResult


@dataclass(frozen=True)
class CLIContext:
    """Options shared by all commands."""

    config_path: Path | None = None
    profiles: tuple[str, ...] = field(default_factory=tuple)

    def settings(self) -> WatchSettings:
        """Load settings, turning validation errors into a CLI error."""
        try:
            return load_settings(self.config_path)
        except SettingsError as exc:
            raise click.ClickException(str(exc)) from exc

    def build_watcher(self, *, poll_interval_seconds: float | None = None) -> ConfigWatcher:
        settings = self.settings()
        if poll_interval_seconds is not None:
            settings = settings.model_copy(update={"poll_interval_seconds": poll_interval_seconds})
        profiles = self.profiles or None
        return ConfigWatcher.from_settings(settings, profiles=profiles)


def get_cli_context(ctx: click.Context) -> CLIContext:
    obj = ctx.find_object(CLIContext)
    return obj if obj is not None else CLIContext()


def refresh_once(watcher: ConfigWatcher) -> RefreshResult:
    """Run a single refresh cycle and fail the command if it did not succeed."""
    result = asyncio.run(watcher.refresh_now())
    if result.status != "success":
        raise click.ClickException(f"Configuration refresh failed: {result.error}")
    return result


__all__ = ["CLIContext", "get_cli_context", "refresh_once"]
