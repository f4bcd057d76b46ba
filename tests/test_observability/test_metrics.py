"""Tests for metrics collection."""

import threading

from openai_orch.observability import (
    Counter,
    Gauge,
    Histogram,
    MetricsRegistry,
    get_metrics,
    reset_metrics,
)


class TestCounter:
    """Tests for Counter metric."""

    def test_starts_at_zero(self):
        """Counter starts at zero."""
        assert Counter("test", "Test counter").value == 0

    def test_increment_by_amount(self):
        """Can increment by specific amount."""
        counter = Counter("test", "Test counter")
        counter.inc()
        counter.inc(5)
        assert counter.value == 6

    def test_thread_safe(self):
        """Concurrent increments are not lost."""
        counter = Counter("test")

        def bump():
            for _ in range(1000):
                counter.inc()

        threads = [threading.Thread(target=bump) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert counter.value == 8000

    def test_reset(self):
        """Can reset counter."""
        counter = Counter("test", "Test counter")
        counter.inc(10)
        counter.reset()
        assert counter.value == 0


class TestGauge:
    """Tests for Gauge metric."""

    def test_inc_dec(self):
        """Gauge moves both ways."""
        gauge = Gauge("test", "Test gauge")
        gauge.set(10)
        gauge.inc(5)
        gauge.dec(3)
        assert gauge.value == 12

    def test_peak_remembered(self):
        """Peak survives decrements."""
        gauge = Gauge("test")
        gauge.inc()
        gauge.inc()
        gauge.dec()
        gauge.dec()
        assert gauge.value == 0
        assert gauge.peak == 2

    def test_reset_clears_peak(self):
        """Reset zeroes value and peak."""
        gauge = Gauge("test")
        gauge.inc(3)
        gauge.reset()
        assert gauge.peak == 0


class TestHistogram:
    """Tests for Histogram metric."""

    def test_observe_values(self):
        """Tracks count, sum and mean."""
        hist = Histogram("test", "Test histogram")
        for value in (1.0, 2.0, 3.0):
            hist.observe(value)

        assert hist.count == 3
        assert hist.sum == 6.0
        assert hist.avg == 2.0

    def test_min_max(self):
        """Tracks min and max."""
        hist = Histogram("test", "Test histogram")
        for value in (5.0, 1.0, 10.0):
            hist.observe(value)

        assert hist.min == 1.0
        assert hist.max == 10.0

    def test_empty(self):
        """Empty histograms report zeros."""
        d = Histogram("test").to_dict()
        assert d == {"count": 0, "sum": 0.0, "avg": 0.0, "min": 0.0, "max": 0.0}


class TestMetricsRegistry:
    """Tests for metrics registries."""

    def setup_method(self):
        """Reset metrics before each test."""
        reset_metrics()

    def test_global_registry_is_shared(self):
        """get_metrics() always returns the same registry."""
        assert get_metrics() is get_metrics()

    def test_track_requests(self):
        """Request outcome counters export under 'requests'."""
        metrics = MetricsRegistry()
        metrics.requests_submitted.inc(3)
        metrics.requests_succeeded.inc(2)
        metrics.requests_failed.inc()

        d = metrics.to_dict()
        assert d["requests"] == {
            "submitted": 3,
            "succeeded": 2,
            "failed": 1,
            "cancelled": 0,
        }

    def test_track_attempts_and_concurrency(self):
        """Attempt counters and in-flight gauge export."""
        metrics = MetricsRegistry()
        metrics.attempts_total.inc(4)
        metrics.retries_total.inc(3)
        metrics.in_flight.inc()
        metrics.in_flight.dec()
        metrics.attempt_latency_seconds.observe(0.5)

        d = metrics.to_dict()
        assert d["attempts"]["total"] == 4
        assert d["attempts"]["retries"] == 3
        assert d["concurrency"] == {"in_flight": 0, "peak": 1}
        assert d["duration"]["attempt"]["avg"] == 0.5

    def test_reset(self):
        """reset() zeroes every metric."""
        metrics = get_metrics()
        metrics.requests_submitted.inc()
        metrics.request_duration_seconds.observe(1.0)

        reset_metrics()

        assert metrics.requests_submitted.value == 0
        assert metrics.request_duration_seconds.count == 0
