"""Logging utilities for Configwatch.

Configwatch logs through the standard library. This module configures the root
handler once and lets callers attach context fields (source, profile, snapshot
version) that are appended to every message emitted inside the context.
"""

from __future__ import annotations

import logging
import sys
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Any, Iterator

_DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# Third-party loggers that are too chatty at INFO
_NOISY_LOGGERS = ("httpx", "httpcore", "asyncio", "urllib3")

_log_context: ContextVar[dict[str, Any]] = ContextVar("log_context", default={})


class ContextualFormatter(logging.Formatter):
    """Formatter that appends the active context fields to log messages."""

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        ctx = _log_context.get()
        if not ctx:
            return message
        ctx_str = " ".join(f"{k}={v}" for k, v in ctx.items())
        return f"{message} [{ctx_str}]"


@contextmanager
def log_context(**fields: Any) -> Iterator[None]:
    """Temporarily add context fields to all log messages.

    Usage::

        with log_context(source="directory:/etc/app", version=3):
            logger.info("Installing snapshot")

    Fields are merged with any existing context and restored on exit.
    """
    merged = {**_log_context.get(), **fields}
    token = _log_context.set(merged)
    try:
        yield
    finally:
        _log_context.reset(token)


def current_log_context() -> dict[str, Any]:
    """Return a copy of the active context fields."""
    return dict(_log_context.get())


_configured = False


def parse_level(level: int | str) -> int:
    """Accept a logging level as int or name (``"debug"``, ``"INFO"``...)."""
    if isinstance(level, int):
        return level
    resolved = logging.getLevelName(str(level).upper())
    if not isinstance(resolved, int):
        raise ValueError(f"Unknown log level: {level!r}")
    return resolved


def configure_logging(
    level: int | str = logging.INFO,
    third_party_level: int | str = logging.WARNING,
    *,
    stream: Any = None,
    force: bool = False,
) -> None:
    """Configure application-wide logging.

    Call this once at startup (CLI entry point or the hosting application's
    bootstrap). Subsequent calls are ignored unless ``force`` is set.
    """
    global _configured
    if _configured and not force:
        return
    _configured = True

    root = logging.getLogger()
    root.setLevel(parse_level(level))
    for handler in root.handlers[:]:
        root.removeHandler(handler)

    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(ContextualFormatter(_DEFAULT_FORMAT))
    root.addHandler(handler)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(parse_level(third_party_level))


def get_logger(name: str) -> logging.Logger:
    """Return a logger for the given name (typically ``__name__``)."""
    return logging.getLogger(name)


__all__ = [
    "ContextualFormatter",
    "configure_logging",
    "current_log_context",
    "get_logger",
    "log_context",
    "parse_level",
]
