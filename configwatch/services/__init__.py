"""Service layer modules for Configwatch."""

from .merger import merge
from .refresh import RefreshController, RefreshResult, RefreshState, RefreshStatus
from .store import ChangeListener, ConfigStore
from .watcher import ConfigWatcher

__all__ = [
    "ChangeListener",
    "ConfigStore",
    "ConfigWatcher",
    "RefreshController",
    "RefreshResult",
    "RefreshState",
    "RefreshStatus",
    "merge",
]
