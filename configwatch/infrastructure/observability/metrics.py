"""In-process metrics for Configwatch.

Counters, gauges and histograms live in a process-wide registry guarded by
locks, so the refresh task and reader threads can record concurrently. The
registry can be dumped as a summary dict or as Prometheus text.
"""

from __future__ import annotations

import threading
import time
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Mapping

LabelKey = tuple[tuple[str, str | None], ...]


def _labels_to_key(labels: Mapping[str, str | None] | None) -> LabelKey:
    if labels is None:
        return ()
    return tuple(sorted(labels.items()))


def _label_text(key: LabelKey, *, quoted: bool) -> str:
    if quoted:
        return ",".join(f'{k}="{v}"' for k, v in key)
    return ",".join(f"{k}={v}" for k, v in key) if key else "default"


@dataclass
class Counter:
    """A monotonically increasing counter."""

    name: str
    help_text: str = ""
    _values: dict[LabelKey, float] = field(default_factory=lambda: defaultdict(float))
    _lock: threading.Lock = field(default_factory=threading.Lock)

    def inc(self, value: float = 1.0, labels: Mapping[str, str | None] | None = None) -> None:
        if value < 0:
            raise ValueError("Counters can only increase")
        with self._lock:
            self._values[_labels_to_key(labels)] += value

    def get(self, labels: Mapping[str, str | None] | None = None) -> float:
        with self._lock:
            return self._values.get(_labels_to_key(labels), 0.0)

    def items(self) -> list[tuple[LabelKey, float]]:
        with self._lock:
            return list(self._values.items())


@dataclass
class Gauge:
    """A value that can go up and down (e.g. the installed snapshot version)."""

    name: str
    help_text: str = ""
    _values: dict[LabelKey, float] = field(default_factory=dict)
    _lock: threading.Lock = field(default_factory=threading.Lock)

    def set(self, value: float, labels: Mapping[str, str | None] | None = None) -> None:
        with self._lock:
            self._values[_labels_to_key(labels)] = value

    def get(self, labels: Mapping[str, str | None] | None = None) -> float | None:
        with self._lock:
            return self._values.get(_labels_to_key(labels))

    def items(self) -> list[tuple[LabelKey, float]]:
        with self._lock:
            return list(self._values.items())


@dataclass
class Histogram:
    """Running count/sum of observations, keyed by label set."""

    name: str
    help_text: str = ""
    _observations: dict[LabelKey, list[float]] = field(
        default_factory=lambda: defaultdict(list)
    )
    _lock: threading.Lock = field(default_factory=threading.Lock)

    def observe(self, value: float, labels: Mapping[str, str | None] | None = None) -> None:
        with self._lock:
            self._observations[_labels_to_key(labels)].append(value)

    def get_stats(self, labels: Mapping[str, str | None] | None = None) -> dict[str, float]:
        with self._lock:
            values = list(self._observations.get(_labels_to_key(labels), ()))
        if not values:
            return {"count": 0, "sum": 0.0, "avg": 0.0, "max": 0.0}
        total = sum(values)
        return {
            "count": len(values),
            "sum": total,
            "avg": total / len(values),
            "max": max(values),
        }

    def label_keys(self) -> list[LabelKey]:
        with self._lock:
            return list(self._observations)


class MetricRegistry:
    """Registry for all metrics of the process."""

    def __init__(self) -> None:
        self._counters: dict[str, Counter] = {}
        self._gauges: dict[str, Gauge] = {}
        self._histograms: dict[str, Histogram] = {}
        self._lock = threading.Lock()

    def counter(self, name: str, help_text: str = "") -> Counter:
        with self._lock:
            if name not in self._counters:
                self._counters[name] = Counter(name=name, help_text=help_text)
            return self._counters[name]

    def gauge(self, name: str, help_text: str = "") -> Gauge:
        with self._lock:
            if name not in self._gauges:
                self._gauges[name] = Gauge(name=name, help_text=help_text)
            return self._gauges[name]

    def histogram(self, name: str, help_text: str = "") -> Histogram:
        with self._lock:
            if name not in self._histograms:
                self._histograms[name] = Histogram(name=name, help_text=help_text)
            return self._histograms[name]

    def all_counters(self) -> dict[str, Counter]:
        with self._lock:
            return dict(self._counters)

    def all_gauges(self) -> dict[str, Gauge]:
        with self._lock:
            return dict(self._gauges)

    def all_histograms(self) -> dict[str, Histogram]:
        with self._lock:
            return dict(self._histograms)

    def clear(self) -> None:
        with self._lock:
            self._counters.clear()
            self._gauges.clear()
            self._histograms.clear()


_registry = MetricRegistry()


def get_registry() -> MetricRegistry:
    """Return the process-wide registry."""
    return _registry


def reset_metrics() -> None:
    """Drop every recorded metric (used by tests and the CLI)."""
    _registry.clear()


def increment_counter(
    name: str,
    value: float = 1.0,
    labels: Mapping[str, str | None] | None = None,
    help_text: str = "",
) -> None:
    _registry.counter(name, help_text).inc(value, labels)


def set_gauge(
    name: str,
    value: float,
    labels: Mapping[str, str | None] | None = None,
    help_text: str = "",
) -> None:
    _registry.gauge(name, help_text).set(value, labels)


def observe_histogram(
    name: str,
    value: float,
    labels: Mapping[str, str | None] | None = None,
    help_text: str = "",
) -> None:
    _registry.histogram(name, help_text).observe(value, labels)


class Timer:
    """Context manager that records the elapsed time into a histogram."""

    def __init__(
        self,
        histogram_name: str,
        labels: Mapping[str, str | None] | None = None,
        help_text: str = "",
    ) -> None:
        self.histogram_name = histogram_name
        self.labels = labels
        self.help_text = help_text
        self.elapsed: float = 0.0
        self._start: float = 0.0

    def __enter__(self) -> "Timer":
        self._start = time.perf_counter()
        return self

    def __exit__(self, *args: object) -> None:
        self.elapsed = time.perf_counter() - self._start
        observe_histogram(self.histogram_name, self.elapsed, self.labels, self.help_text)


# ---------------------------------------------------------------------------
# Predefined metrics for Configwatch
# ---------------------------------------------------------------------------

REFRESH_CYCLES = "configwatch_refresh_cycles_total"
REFRESH_DURATION = "configwatch_refresh_duration_seconds"
MERGE_DURATION = "configwatch_merge_duration_seconds"
FETCH_FAILURES = "configwatch_fetch_failures_total"
SNAPSHOT_VERSION = "configwatch_snapshot_version"
CONSECUTIVE_FAILURES = "configwatch_consecutive_failures"


def record_refresh_cycle(status: str, duration: float) -> None:
    """Record the outcome of one refresh cycle.

    Args:
        status: 'success', 'failed' or 'skipped'
        duration: Cycle time in seconds
    """
    increment_counter(
        REFRESH_CYCLES, labels={"status": status}, help_text="Total refresh cycles"
    )
    observe_histogram(
        REFRESH_DURATION,
        duration,
        labels={"status": status},
        help_text="Refresh cycle duration in seconds",
    )


def record_fetch_failure(kind: str, reason: str) -> None:
    """Record a failed fetch for a source kind ('timeout', 'busy', 'auth', 'io')."""
    increment_counter(
        FETCH_FAILURES,
        labels={"kind": kind, "reason": reason},
        help_text="Total failed source fetches",
    )


def record_snapshot_installed(version: int) -> None:
    set_gauge(SNAPSHOT_VERSION, float(version), help_text="Installed snapshot version")


def record_consecutive_failures(count: int) -> None:
    set_gauge(
        CONSECUTIVE_FAILURES,
        float(count),
        help_text="Consecutive failed refresh cycles",
    )


def get_refresh_stats() -> dict[str, object]:
    """Summarise refresh health for CLI display or a health endpoint."""
    cycles = _registry.counter(REFRESH_CYCLES)
    return {
        "cycles": {
            "success": cycles.get({"status": "success"}),
            "failed": cycles.get({"status": "failed"}),
            "skipped": cycles.get({"status": "skipped"}),
        },
        "snapshot_version": _registry.gauge(SNAPSHOT_VERSION).get(),
        "consecutive_failures": _registry.gauge(CONSECUTIVE_FAILURES).get(),
        "duration": _registry.histogram(REFRESH_DURATION).get_stats({"status": "success"}),
    }


# ---------------------------------------------------------------------------
# Export utilities
# ---------------------------------------------------------------------------


def get_metrics_summary() -> dict[str, object]:
    """Return all metrics as nested dicts keyed by metric and label set."""
    counters = {
        name: {_label_text(key, quoted=False): value for key, value in counter.items()}
        for name, counter in _registry.all_counters().items()
    }
    gauges = {
        name: {_label_text(key, quoted=False): value for key, value in gauge.items()}
        for name, gauge in _registry.all_gauges().items()
    }
    histograms = {
        name: {
            _label_text(key, quoted=False): histogram.get_stats(dict(key) if key else None)
            for key in histogram.label_keys()
        }
        for name, histogram in _registry.all_histograms().items()
    }
    return {"counters": counters, "gauges": gauges, "histograms": histograms}


def format_prometheus() -> str:
    """Format metrics in Prometheus text exposition format."""
    lines: list[str] = []

    def emit(name: str, help_text: str, kind: str, rows: list[tuple[LabelKey, float]]) -> None:
        if help_text:
            lines.append(f"# HELP {name} {help_text}")
        lines.append(f"# TYPE {name} {kind}")
        for key, value in rows:
            if key:
                lines.append(f"{name}{{{_label_text(key, quoted=True)}}} {value}")
            else:
                lines.append(f"{name} {value}")

    for name, counter in _registry.all_counters().items():
        emit(name, counter.help_text, "counter", counter.items())
    for name, gauge in _registry.all_gauges().items():
        emit(name, gauge.help_text, "gauge", gauge.items())
    for name, histogram in _registry.all_histograms().items():
        if histogram.help_text:
            lines.append(f"# HELP {name} {histogram.help_text}")
        lines.append(f"# TYPE {name} summary")
        for key in histogram.label_keys():
            stats = histogram.get_stats(dict(key) if key else None)
            suffix = f"{{{_label_text(key, quoted=True)}}}" if key else ""
            lines.append(f"{name}_count{suffix} {stats['count']}")
            lines.append(f"{name}_sum{suffix} {stats['sum']}")

    return "\n".join(lines)


__all__ = [
    "Counter",
    "Gauge",
    "Histogram",
    "MERGE_DURATION",
    "MetricRegistry",
    "Timer",
    "format_prometheus",
    "get_metrics_summary",
    "get_refresh_stats",
    "get_registry",
    "increment_counter",
    "observe_histogram",
    "record_consecutive_failures",
    "record_fetch_failure",
    "record_refresh_cycle",
    "record_snapshot_installed",
    "reset_metrics",
    "set_gauge",
]
