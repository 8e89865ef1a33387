"""Refresh controller: re-fetches, re-merges and installs configuration.

One background task runs refresh cycles on the poll interval, or right away
when :meth:`RefreshController.trigger` is called. Each cycle walks
``IDLE → FETCHING → MERGING → INSTALLING → IDLE``. Any error before the
install moves the cycle to ``FAILED`` and back to ``IDLE`` with the previous
snapshot still in place; the error is logged and counted but never raised.
A merge that reproduces the installed values keeps the current version and
skips the install, so change listeners only hear about real changes.

Adapters run in worker threads. A fetch that exceeds its timeout fails the
cycle, but its thread keeps running until the adapter returns; until then
every later cycle fails that source with reason ``busy`` instead of starting
a second fetch against the same backend.

After a failure the next attempt comes after the fixed retry interval. When
the number of consecutive failures reaches the configured bound, the
``on_degraded`` callback fires once for that streak so the hosting application
can alert, while readers keep getting the last good snapshot.
"""

from __future__ import annotations

import asyncio
import threading
import time
from collections.abc import Callable, Sequence
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Literal

from configwatch.domain.errors import ConfigwatchError, FetchError
from configwatch.domain.models import ConfigSnapshot, ConfigSource, MergePlan, RawDocument
from configwatch.infrastructure.observability import (
    MERGE_DURATION,
    Timer,
    add_span_event,
    get_logger,
    log_context,
    record_consecutive_failures,
    record_exception,
    record_fetch_failure,
    record_refresh_cycle,
    set_span_attribute,
    trace_span,
)
from configwatch.infrastructure.sources import AdapterRegistry, default_registry

from .merger import merge
from .store import ConfigStore

MergeCallable = Callable[..., ConfigSnapshot]
RefreshOutcome = Literal["success", "failed", "skipped"]


class RefreshState(str, Enum):
    """States of the refresh cycle."""

    IDLE = "idle"
    FETCHING = "fetching"
    MERGING = "merging"
    INSTALLING = "installing"
    FAILED = "failed"


@dataclass(frozen=True)
class RefreshResult:
    """Outcome of a single refresh cycle."""

    status: RefreshOutcome
    previous_version: int
    version: int
    error: str | None = None
    duration_seconds: float = 0.0

    @property
    def changed(self) -> bool:
        return self.version != self.previous_version


@dataclass
class RefreshStatus:
    """Health snapshot of the controller, suitable for a status endpoint."""

    state: RefreshState = RefreshState.IDLE
    version: int = 0
    consecutive_failures: int = 0
    total_failures: int = 0
    total_successes: int = 0
    degraded: bool = False
    last_error: str | None = None
    last_success_at: datetime | None = None
    last_failure_at: datetime | None = None
    running: bool = False

    def to_dict(self) -> dict:
        payload = asdict(self)
        payload["state"] = self.state.value
        for key in ("last_success_at", "last_failure_at"):
            value = payload[key]
            payload[key] = value.isoformat() if value is not None else None
        return payload


StatusCallback = Callable[[RefreshStatus], None]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _discard_result(task: asyncio.Future) -> None:
    """Retrieve the outcome of a fetch so an abandoned one is not reported as lost."""
    if not task.cancelled():
        task.exception()


class RefreshController:
    """Single writer that keeps a :class:`ConfigStore` up to date."""

    def __init__(
        self,
        sources: Sequence[ConfigSource],
        store: ConfigStore,
        *,
        plan: MergePlan | None = None,
        registry: AdapterRegistry | None = None,
        fetch_timeout_seconds: float | None = None,
        poll_interval_seconds: float | None = None,
        retry_interval_seconds: float = 5.0,
        max_consecutive_failures: int = 3,
        on_degraded: StatusCallback | None = None,
        on_recovered: StatusCallback | None = None,
        merge_callable: MergeCallable = merge,
    ) -> None:
        if retry_interval_seconds < 0:
            raise ValueError("retry_interval_seconds must not be negative")
        if max_consecutive_failures < 1:
            raise ValueError("max_consecutive_failures must be at least 1")
        self._sources = tuple(sources)
        self._store = store
        self._plan = plan or MergePlan()
        self._registry = registry or default_registry()
        self._fetch_timeout_seconds = fetch_timeout_seconds
        self._poll_interval_seconds = (
            poll_interval_seconds
            if poll_interval_seconds is not None
            else self._derive_poll_interval(self._sources)
        )
        self._retry_interval_seconds = retry_interval_seconds
        self._max_consecutive_failures = max_consecutive_failures
        self._on_degraded = on_degraded
        self._on_recovered = on_recovered
        self._merge = merge_callable
        self._logger = get_logger(__name__)

        self._status = RefreshStatus(version=store.version)
        self._in_flight = False
        self._cycle = 0
        self._pending: dict[int, asyncio.Future] = {}
        self._task: asyncio.Task | None = None
        self._loop: asyncio.AbstractEventLoop | None = None
        self._wake_event: asyncio.Event | None = None
        self._stopping = False
        self._status_lock = threading.Lock()

    # -------------------- configuration --------------------
    @staticmethod
    def _derive_poll_interval(sources: Sequence[ConfigSource]) -> float | None:
        intervals = [
            s.poll_interval_seconds
            for s in sources
            if s.poll_interval_seconds is not None and s.poll_interval_seconds > 0
        ]
        return min(intervals) if intervals else None

    @property
    def plan(self) -> MergePlan:
        return self._plan

    @property
    def sources(self) -> tuple[ConfigSource, ...]:
        return self._sources

    @property
    def poll_interval_seconds(self) -> float | None:
        return self._poll_interval_seconds

    @property
    def status(self) -> RefreshStatus:
        return self._status

    @property
    def is_refreshing(self) -> bool:
        return self._in_flight

    def get_status(self) -> dict:
        with self._status_lock:
            self._status.running = self._task is not None and not self._task.done()
            return self._status.to_dict()

    def _set_state(self, state: RefreshState) -> None:
        with self._status_lock:
            self._status.state = state

    # -------------------- refresh cycle --------------------
    async def _fetch_one(self, index: int, source: ConfigSource) -> list[RawDocument]:
        pending = self._pending.get(index)
        if pending is not None and not pending.done():
            # The worker thread of a timed-out fetch cannot be interrupted
            record_fetch_failure(source.kind.value, "busy")
            raise FetchError(
                f"Previous fetch of {source.description} is still running",
                source=source.description,
                reason="busy",
            )

        timeout = self._fetch_timeout_seconds or source.timeout_seconds
        task = asyncio.ensure_future(asyncio.to_thread(self._registry.fetch, source, self._plan))
        task.add_done_callback(_discard_result)
        self._pending[index] = task
        try:
            documents = await asyncio.wait_for(asyncio.shield(task), timeout=timeout)
        except asyncio.TimeoutError as exc:
            record_fetch_failure(source.kind.value, "timeout")
            self._logger.warning(
                "Fetch of %s exceeded %ss; no new fetch starts until it returns",
                source.description,
                timeout,
            )
            raise FetchError(
                f"Fetching {source.description} timed out after {timeout}s",
                source=source.description,
                reason="timeout",
            ) from exc
        except FetchError as exc:
            record_fetch_failure(source.kind.value, exc.reason)
            raise
        return sorted(documents, key=lambda doc: doc.name)

    async def _fetch_all(self) -> list[RawDocument]:
        results = await asyncio.gather(
            *(self._fetch_one(index, source) for index, source in enumerate(self._sources)),
            return_exceptions=True,
        )
        documents: list[RawDocument] = []
        for source, result in zip(self._sources, results):
            if isinstance(result, BaseException):
                if source.optional and isinstance(result, FetchError):
                    self._logger.warning(
                        "Skipping optional source %s: %s", source.description, result
                    )
                    continue
                raise result
            documents.extend(result)
        return documents

    async def refresh(self) -> RefreshResult:
        """Run one fetch → merge → install cycle.

        Returns a ``skipped`` result without doing anything when a cycle is
        already in flight. Never raises for fetch, parse or merge failures.
        """
        previous = self._store.current()
        if self._in_flight:
            self._logger.debug("Refresh already in flight; trigger ignored")
            record_refresh_cycle("skipped", 0.0)
            return RefreshResult("skipped", previous.version, previous.version)

        self._in_flight = True
        self._cycle += 1
        started = time.perf_counter()
        try:
            with log_context(cycle=self._cycle), trace_span(
                "configwatch.refresh",
                sources=len(self._sources),
                profiles=",".join(self._plan.profiles),
            ):
                try:
                    self._set_state(RefreshState.FETCHING)
                    documents = await self._fetch_all()
                    set_span_attribute("documents", len(documents))
                    self._set_state(RefreshState.MERGING)
                    with Timer(MERGE_DURATION, help_text="Merge duration in seconds"):
                        snapshot = self._merge(documents, self._plan, previous.version + 1)
                    if self._unchanged(previous, snapshot):
                        snapshot = previous
                    else:
                        self._set_state(RefreshState.INSTALLING)
                        self._store.install(snapshot)
                        add_span_event("snapshot_installed", version=snapshot.version)
                except ConfigwatchError as exc:
                    record_exception(exc)
                    return self._handle_failure(previous, exc, started, expected=True)
                except Exception as exc:
                    record_exception(exc)
                    return self._handle_failure(previous, exc, started, expected=False)
                return self._handle_success(previous, snapshot, len(documents), started)
        finally:
            self._set_state(RefreshState.IDLE)
            self._in_flight = False

    @staticmethod
    def _unchanged(previous: ConfigSnapshot, snapshot: ConfigSnapshot) -> bool:
        """Return True when a merge reproduced the installed snapshot."""
        return (
            previous.version > 0
            and previous.profiles == snapshot.profiles
            and dict(previous.values) == dict(snapshot.values)
        )

    def _handle_success(
        self,
        previous: ConfigSnapshot,
        snapshot: ConfigSnapshot,
        document_count: int,
        started: float,
    ) -> RefreshResult:
        duration = time.perf_counter() - started
        recovered = False
        with self._status_lock:
            self._status.version = snapshot.version
            self._status.consecutive_failures = 0
            self._status.total_successes += 1
            self._status.last_error = None
            self._status.last_success_at = _utcnow()
            if self._status.degraded:
                self._status.degraded = False
                recovered = True

        record_refresh_cycle("success", duration)
        record_consecutive_failures(0)
        if snapshot is previous:
            self._logger.debug(
                "Configuration unchanged at version %d (%d documents)",
                previous.version,
                document_count,
            )
        else:
            self._logger.info(
                "Configuration updated: version %d -> %d (%d keys from %d documents)",
                previous.version,
                snapshot.version,
                len(snapshot),
                document_count,
            )
        if recovered:
            self._logger.info("Configuration refresh recovered after persistent failures")
            self._notify(self._on_recovered)
        return RefreshResult(
            "success", previous.version, snapshot.version, duration_seconds=duration
        )

    def _handle_failure(
        self,
        previous: ConfigSnapshot,
        exc: BaseException,
        started: float,
        *,
        expected: bool,
    ) -> RefreshResult:
        duration = time.perf_counter() - started
        escalate = False
        with self._status_lock:
            self._status.state = RefreshState.FAILED
            self._status.consecutive_failures += 1
            self._status.total_failures += 1
            self._status.last_error = str(exc)
            self._status.last_failure_at = _utcnow()
            failures = self._status.consecutive_failures
            if failures >= self._max_consecutive_failures and not self._status.degraded:
                self._status.degraded = True
                escalate = True

        record_refresh_cycle("failed", duration)
        record_consecutive_failures(failures)
        if expected:
            self._logger.warning(
                "Configuration refresh failed (%d consecutive); keeping version %d: %s",
                failures,
                previous.version,
                exc,
            )
        else:
            self._logger.exception(
                "Unexpected error during configuration refresh; keeping version %d",
                previous.version,
            )
        if escalate:
            self._logger.error(
                "Configuration refresh persistently failing: %d consecutive failures; "
                "serving last good version %d",
                failures,
                previous.version,
            )
            self._notify(self._on_degraded)
        return RefreshResult(
            "failed",
            previous.version,
            previous.version,
            error=str(exc),
            duration_seconds=duration,
        )

    def _notify(self, callback: StatusCallback | None) -> None:
        if callback is None:
            return
        try:
            callback(self._status)
        except Exception:
            self._logger.exception("Refresh status callback failed")

    # -------------------- background loop --------------------
    async def start(self) -> None:
        """Start the background refresh task; the first cycle runs immediately."""
        if self._task is not None and not self._task.done():
            raise RuntimeError("Refresh controller is already running")
        self._loop = asyncio.get_running_loop()
        self._wake_event = asyncio.Event()
        self._stopping = False
        self._task = asyncio.create_task(self._run_loop())
        self._logger.info(
            "Refresh controller started (%d sources, profiles=%s, poll=%s)",
            len(self._sources),
            ",".join(self._plan.profiles),
            self._poll_interval_seconds,
        )

    async def stop(self) -> None:
        """Stop the background task and wait for the current cycle to end."""
        task = self._task
        if task is None:
            return
        self._stopping = True
        if self._wake_event is not None:
            self._wake_event.set()
        await task
        self._task = None
        self._logger.info("Refresh controller stopped at version %d", self._store.version)

    def trigger(self) -> bool:
        """Request an immediate refresh; safe to call from any thread.

        Returns False when the background task is not running. A trigger that
        arrives while a cycle is in flight is dropped.
        """
        loop, event = self._loop, self._wake_event
        if loop is None or event is None or self._task is None or self._task.done():
            return False
        if self._in_flight:
            return True
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None
        if running is loop:
            event.set()
        else:
            loop.call_soon_threadsafe(event.set)
        return True

    def _next_delay(self, result: RefreshResult) -> float | None:
        if result.status == "failed":
            return self._retry_interval_seconds
        return self._poll_interval_seconds

    async def _run_loop(self) -> None:
        assert self._wake_event is not None
        while not self._stopping:
            result = await self.refresh()
            self._wake_event.clear()
            if self._stopping:
                break
            delay = self._next_delay(result)
            try:
                if delay is None:
                    await self._wake_event.wait()
                else:
                    await asyncio.wait_for(self._wake_event.wait(), timeout=delay)
            except asyncio.TimeoutError:
                continue


__all__ = [
    "RefreshController",
    "RefreshResult",
    "RefreshState",
    "RefreshStatus",
]
