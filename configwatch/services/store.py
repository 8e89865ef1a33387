"""Config store: the single, atomically swapped snapshot reference.

Readers call :meth:`ConfigStore.current` or :meth:`ConfigStore.get` from any
thread without locking; they always see one complete snapshot. The refresh
controller is the only writer and publishes new snapshots with
:meth:`ConfigStore.install`, which replaces the reference in one assignment.
"""

from __future__ import annotations

import threading
from collections.abc import Callable
from typing import Any

from configwatch.domain.models import ConfigSnapshot
from configwatch.infrastructure.observability import get_logger, record_snapshot_installed

ChangeListener = Callable[[ConfigSnapshot, ConfigSnapshot], None]


class ConfigStore:
    """Holds the latest installed :class:`ConfigSnapshot`."""

    def __init__(self, initial: ConfigSnapshot | None = None) -> None:
        self._snapshot = initial or ConfigSnapshot.empty()
        self._listeners: list[ChangeListener] = []
        self._write_lock = threading.Lock()
        self._logger = get_logger(__name__)

    def current(self) -> ConfigSnapshot:
        """Return the latest installed snapshot (version 0 before any install)."""
        return self._snapshot

    @property
    def version(self) -> int:
        return self._snapshot.version

    def install(self, snapshot: ConfigSnapshot) -> ConfigSnapshot:
        """Make ``snapshot`` visible to all subsequent readers.

        Returns the snapshot it replaced. Listeners are notified after the
        swap, outside the write lock.

        Raises:
            ValueError: If the snapshot version does not increase.
        """
        with self._write_lock:
            previous = self._snapshot
            if snapshot.version <= previous.version:
                raise ValueError(
                    f"Snapshot version {snapshot.version} does not supersede "
                    f"installed version {previous.version}"
                )
            self._snapshot = snapshot
            listeners = list(self._listeners)

        record_snapshot_installed(snapshot.version)
        for listener in listeners:
            try:
                listener(previous, snapshot)
            except Exception:
                self._logger.exception(
                    "Change listener %r failed for version %d",
                    listener,
                    snapshot.version,
                )
        return previous

    def get(self, key: str, expected_type: Any = None, default: Any = None) -> Any:
        """Read ``key`` from the current snapshot.

        Raises:
            TypeMismatchError: If the value cannot be coerced to ``expected_type``.
        """
        return self._snapshot.get(key, expected_type, default)

    def on_change(self, callback: ChangeListener) -> Callable[[], None]:
        """Register ``callback(old, new)``; returns a function that unregisters it."""
        with self._write_lock:
            self._listeners.append(callback)

        def unsubscribe() -> None:
            with self._write_lock:
                if callback in self._listeners:
                    self._listeners.remove(callback)

        return unsubscribe


__all__ = ["ChangeListener", "ConfigStore"]
