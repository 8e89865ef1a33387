"""High-level facade wiring settings, store and refresh controller together."""

from __future__ import annotations

from collections.abc import Callable, Sequence
from typing import TYPE_CHECKING, Any

from configwatch.domain.models import ConfigSnapshot, ConfigSource, MergePlan
from configwatch.infrastructure.observability import get_logger
from configwatch.infrastructure.sources import AdapterRegistry, default_registry

from .refresh import RefreshController, RefreshResult, StatusCallback
from .store import ChangeListener, ConfigStore

if TYPE_CHECKING:
    from configwatch.app.config import WatchSettings


class ConfigWatcher:
    """Keeps a live configuration snapshot for a hosting application.

    Example:
        watcher = ConfigWatcher.from_settings(load_settings())
        await watcher.start()
        timeout = watcher.get("db.timeout", int)
    """

    def __init__(
        self,
        sources: Sequence[ConfigSource],
        *,
        plan: MergePlan | None = None,
        registry: AdapterRegistry | None = None,
        store: ConfigStore | None = None,
        fetch_timeout_seconds: float | None = None,
        poll_interval_seconds: float | None = None,
        retry_interval_seconds: float = 5.0,
        max_consecutive_failures: int = 3,
    ) -> None:
        self._store = store or ConfigStore()
        self._degraded_callbacks: list[StatusCallback] = []
        self._recovered_callbacks: list[StatusCallback] = []
        self._controller = RefreshController(
            sources,
            self._store,
            plan=plan,
            registry=registry,
            fetch_timeout_seconds=fetch_timeout_seconds,
            poll_interval_seconds=poll_interval_seconds,
            retry_interval_seconds=retry_interval_seconds,
            max_consecutive_failures=max_consecutive_failures,
            on_degraded=self._dispatch_degraded,
            on_recovered=self._dispatch_recovered,
        )
        self._logger = get_logger(__name__)

    @classmethod
    def from_settings(
        cls,
        settings: "WatchSettings",
        *,
        profiles: Sequence[str] | str | None = None,
        registry: AdapterRegistry | None = None,
    ) -> "ConfigWatcher":
        """Build a watcher from loaded settings; ``profiles`` overrides the settings file."""
        active = profiles if profiles is not None else settings.profiles
        return cls(
            settings.to_sources(),
            plan=MergePlan.from_active(active),
            registry=registry or default_registry(cache_dir=settings.cache_dir),
            fetch_timeout_seconds=settings.fetch_timeout_seconds,
            poll_interval_seconds=settings.poll_interval_seconds,
            retry_interval_seconds=settings.retry_interval_seconds,
            max_consecutive_failures=settings.max_consecutive_failures,
        )

    @property
    def store(self) -> ConfigStore:
        return self._store

    @property
    def controller(self) -> RefreshController:
        return self._controller

    @property
    def plan(self) -> MergePlan:
        return self._controller.plan

    async def start(self) -> None:
        await self._controller.start()

    async def stop(self) -> None:
        await self._controller.stop()

    async def refresh_now(self) -> RefreshResult:
        """Run one refresh cycle in the caller's event loop."""
        return await self._controller.refresh()

    def trigger(self) -> bool:
        return self._controller.trigger()

    def current(self) -> ConfigSnapshot:
        return self._store.current()

    def get(self, key: str, expected_type: Any = None, default: Any = None) -> Any:
        return self._store.get(key, expected_type, default)

    def on_change(self, callback: ChangeListener) -> Callable[[], None]:
        return self._store.on_change(callback)

    def on_degraded(self, callback: StatusCallback) -> None:
        self._degraded_callbacks.append(callback)

    def on_recovered(self, callback: StatusCallback) -> None:
        self._recovered_callbacks.append(callback)

    def status(self) -> dict:
        return self._controller.get_status()

    def _dispatch_degraded(self, status) -> None:
        for callback in list(self._degraded_callbacks):
            callback(status)

    def _dispatch_recovered(self, status) -> None:
        for callback in list(self._recovered_callbacks):
            callback(status)


__all__ = ["ConfigWatcher"]
