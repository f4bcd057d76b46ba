"""
Observability - Logging and metrics for the orchestrator.

Provides:
- Structured logging with request id and attempt propagation
- Metrics collection (counters, gauges, histograms)
"""

from openai_orch.observability.logging import (
    set_request_id,
    get_request_id,
    configure_logging,
    get_logger,
    LogContext,
    JSONFormatter,
    ReadableFormatter,
    RequestContextFilter,
    RequestLogState,
    set_attempt,
    get_attempt,
)
from openai_orch.observability.metrics import (
    Counter,
    Gauge,
    Histogram,
    MetricsRegistry,
    get_metrics,
    reset_metrics,
)

__all__ = [
    # Logging
    "set_request_id",
    "get_request_id",
    "configure_logging",
    "get_logger",
    "LogContext",
    "JSONFormatter",
    "ReadableFormatter",
    "RequestContextFilter",
    "RequestLogState",
    "set_attempt",
    "get_attempt",
    # Metrics
    "Counter",
    "Gauge",
    "Histogram",
    "MetricsRegistry",
    "get_metrics",
    "reset_metrics",
]
