"""Observability and logging facades."""

from .logging import (
    configure_logging,
    get_logger,
    log_context,
)
from .metrics import (
    MERGE_DURATION,
    Timer,
    format_prometheus,
    get_metrics_summary,
    get_refresh_stats,
    increment_counter,
    observe_histogram,
    record_consecutive_failures,
    record_fetch_failure,
    record_refresh_cycle,
    record_snapshot_installed,
    reset_metrics,
)
from .tracing import (
    add_span_event,
    configure_tracing,
    get_trace_context,
    is_tracing_enabled,
    record_exception,
    set_span_attribute,
    trace_span,
    traced,
)

__all__ = [
    # Logging
    "configure_logging",
    "get_logger",
    "log_context",
    # Metrics
    "MERGE_DURATION",
    "Timer",
    "format_prometheus",
    "get_metrics_summary",
    "get_refresh_stats",
    "increment_counter",
    "observe_histogram",
    "record_consecutive_failures",
    "record_fetch_failure",
    "record_refresh_cycle",
    "record_snapshot_installed",
    "reset_metrics",
    # Tracing
    "add_span_event",
    "configure_tracing",
    "get_trace_context",
    "is_tracing_enabled",
    "record_exception",
    "set_span_attribute",
    "trace_span",
    "traced",
]
