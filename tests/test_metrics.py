"""Tests for gateway performance tracking."""

import pytest

from gateway_engine.metrics import Counter, Gauge, PerformanceTracker


class TestPerformanceTracker:
    """Rolling success rate and latency."""

    def test_defaults_without_history(self):
        metrics = PerformanceTracker().get("stripe")

        assert metrics.success_rate == 0.0
        assert metrics.average_response_time_ms == 1000.0
        assert metrics.total_requests == 0

    def test_record(self):
        tracker = PerformanceTracker()
        tracker.record("stripe", success=True, latency_ms=100)
        tracker.record("stripe", success=True, latency_ms=300)
        metrics = tracker.record("stripe", success=False, latency_ms=200)

        assert metrics.total_requests == 3
        assert metrics.failed_requests == 1
        assert metrics.success_rate == pytest.approx(2 / 3)
        assert metrics.average_response_time_ms == pytest.approx(200.0)

    def test_returned_metrics_are_copies(self):
        tracker = PerformanceTracker()
        metrics = tracker.record("stripe", success=True, latency_ms=100)
        metrics.total_requests = 99

        assert tracker.get("stripe").total_requests == 1

    def test_score(self):
        tracker = PerformanceTracker()
        tracker.record("stripe", success=True, latency_ms=250)

        assert tracker.get("stripe").score == pytest.approx(75.0)

    def test_remove(self):
        tracker = PerformanceTracker()
        tracker.record("stripe", success=True, latency_ms=100)

        tracker.remove("stripe")

        assert tracker.snapshot() == {}
        assert tracker.get("stripe").total_requests == 0


class TestExport:
    """Prometheus and JSON output."""

    def test_collect(self):
        tracker = PerformanceTracker()
        tracker.record("stripe", success=True, latency_ms=100)

        collected = tracker.collect()

        assert {m.name for m in collected} == {
            "gateway_requests_total",
            "gateway_requests_failed_total",
            "gateway_success_rate",
            "gateway_response_time_ms",
        }
        assert all(isinstance(m, (Counter, Gauge)) for m in collected)

    def test_prometheus_format(self):
        tracker = PerformanceTracker()
        tracker.record("stripe", success=True, latency_ms=100)
        tracker.record("pagarme", success=False, latency_ms=50)

        text = tracker.to_prometheus()

        assert text.count("# TYPE gateway_requests_total counter") == 1
        assert "# TYPE gateway_success_rate gauge" in text
        assert 'gateway_requests_total{gateway="stripe"} 1' in text
        assert 'gateway_requests_failed_total{gateway="pagarme"} 1' in text

    def test_to_json(self):
        tracker = PerformanceTracker()
        tracker.record("stripe", success=True, latency_ms=100)

        assert '"stripe"' in tracker.to_json()
