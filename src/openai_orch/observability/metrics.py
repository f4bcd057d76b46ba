"""
Metrics - Simple metrics collection for the orchestrator.

Tracks throughput, retry behaviour and concurrency of dispatched requests.
"""

from dataclasses import dataclass, field
from threading import Lock
from typing import Any


class Counter:
    """Monotonically increasing counter."""

    def __init__(self, name: str, description: str = ""):
        self.name = name
        self.description = description
        self._value = 0.0
        self._lock = Lock()

    def inc(self, amount: float = 1.0) -> None:
        """Increment counter."""
        with self._lock:
            self._value += amount

    @property
    def value(self) -> float:
        return self._value

    def reset(self) -> None:
        """Reset counter (for testing)."""
        with self._lock:
            self._value = 0.0


class Gauge:
    """Value that can go up and down. Remembers its highest value."""

    def __init__(self, name: str, description: str = ""):
        self.name = name
        self.description = description
        self._value = 0.0
        self._peak = 0.0
        self._lock = Lock()

    def set(self, value: float) -> None:
        """Set gauge value."""
        with self._lock:
            self._value = value
            self._peak = max(self._peak, value)

    def inc(self, amount: float = 1.0) -> None:
        """Increment gauge."""
        with self._lock:
            self._value += amount
            self._peak = max(self._peak, self._value)

    def dec(self, amount: float = 1.0) -> None:
        """Decrement gauge."""
        with self._lock:
            self._value -= amount

    @property
    def value(self) -> float:
        return self._value

    @property
    def peak(self) -> float:
        return self._peak

    def reset(self) -> None:
        with self._lock:
            self._value = 0.0
            self._peak = 0.0


class Histogram:
    """
    Simple histogram for tracking distributions.

    Tracks count, sum, min, max for calculating stats.
    """

    def __init__(self, name: str, description: str = ""):
        self.name = name
        self.description = description
        self._count = 0
        self._sum = 0.0
        self._min = float("inf")
        self._max = float("-inf")
        self._lock = Lock()

    def observe(self, value: float) -> None:
        """Record an observation."""
        with self._lock:
            self._count += 1
            self._sum += value
            self._min = min(self._min, value)
            self._max = max(self._max, value)

    @property
    def count(self) -> int:
        return self._count

    @property
    def sum(self) -> float:
        return self._sum

    @property
    def avg(self) -> float:
        if self._count == 0:
            return 0.0
        return self._sum / self._count

    @property
    def min(self) -> float:
        return self._min if self._count > 0 else 0.0

    @property
    def max(self) -> float:
        return self._max if self._count > 0 else 0.0

    def reset(self) -> None:
        with self._lock:
            self._count = 0
            self._sum = 0.0
            self._min = float("inf")
            self._max = float("-inf")

    def to_dict(self) -> dict[str, float]:
        return {
            "count": self._count,
            "sum": self._sum,
            "avg": self.avg,
            "min": self.min,
            "max": self.max,
        }


@dataclass
class MetricsRegistry:
    """
    Registry for orchestrator metrics.
    """
    # Request outcomes
    requests_submitted: Counter = field(
        default_factory=lambda: Counter("requests_submitted", "Requests accepted by submit")
    )
    requests_succeeded: Counter = field(
        default_factory=lambda: Counter("requests_succeeded", "Requests settled SUCCEEDED")
    )
    requests_failed: Counter = field(
        default_factory=lambda: Counter("requests_failed", "Requests settled FAILED")
    )
    requests_cancelled: Counter = field(
        default_factory=lambda: Counter("requests_cancelled", "Requests cancelled before settling")
    )

    # Attempts
    attempts_total: Counter = field(
        default_factory=lambda: Counter("attempts_total", "Capability calls started")
    )
    attempt_failures: Counter = field(
        default_factory=lambda: Counter("attempt_failures", "Attempts that raised a failure")
    )
    attempt_timeouts: Counter = field(
        default_factory=lambda: Counter("attempt_timeouts", "Attempts that hit the deadline")
    )
    retries_total: Counter = field(
        default_factory=lambda: Counter("retries_total", "Retries scheduled")
    )

    # Durations
    attempt_latency_seconds: Histogram = field(
        default_factory=lambda: Histogram("attempt_latency_seconds", "Capability call latency")
    )
    request_duration_seconds: Histogram = field(
        default_factory=lambda: Histogram("request_duration_seconds", "Submit to settle")
    )

    # Active state
    in_flight: Gauge = field(
        default_factory=lambda: Gauge("in_flight", "Capability calls currently running")
    )

    def to_dict(self) -> dict[str, Any]:
        """Export all metrics as dict."""
        return {
            "requests": {
                "submitted": self.requests_submitted.value,
                "succeeded": self.requests_succeeded.value,
                "failed": self.requests_failed.value,
                "cancelled": self.requests_cancelled.value,
            },
            "attempts": {
                "total": self.attempts_total.value,
                "failures": self.attempt_failures.value,
                "timeouts": self.attempt_timeouts.value,
                "retries": self.retries_total.value,
            },
            "duration": {
                "attempt": self.attempt_latency_seconds.to_dict(),
                "request": self.request_duration_seconds.to_dict(),
            },
            "concurrency": {
                "in_flight": self.in_flight.value,
                "peak": self.in_flight.peak,
            },
        }

    def reset(self) -> None:
        """Reset all metrics (for testing)."""
        self.requests_submitted.reset()
        self.requests_succeeded.reset()
        self.requests_failed.reset()
        self.requests_cancelled.reset()
        self.attempts_total.reset()
        self.attempt_failures.reset()
        self.attempt_timeouts.reset()
        self.retries_total.reset()
        self.attempt_latency_seconds.reset()
        self.request_duration_seconds.reset()
        self.in_flight.reset()


# Global metrics registry
_metrics = MetricsRegistry()


def get_metrics() -> MetricsRegistry:
    """Get global metrics registry."""
    return _metrics


def reset_metrics() -> None:
    """Reset all metrics (for testing)."""
    _metrics.reset()
