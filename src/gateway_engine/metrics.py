"""Gateway performance tracking and metrics export.

PerformanceTracker keeps one PerformanceMetrics per gateway, updated after
every gateway call. The figures drive performance-based selection and the
status endpoints; they are eventually consistent and never block a call.

Usage:
    tracker = PerformanceTracker()
    tracker.record("stripe", success=True, latency_ms=182.0)
    tracker.get("stripe").score

    # For Prometheus export
    print(tracker.to_prometheus())
"""

from __future__ import annotations

import json
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from gateway_engine.models.gateway import PerformanceMetrics


@dataclass
class Counter:
    """A counter metric (monotonically increasing)."""

    name: str
    value: int
    labels: dict[str, str] = field(default_factory=dict)
    help_text: str = ""


@dataclass
class Gauge:
    """A gauge metric (can go up or down)."""

    name: str
    value: float | int
    labels: dict[str, str] = field(default_factory=dict)
    help_text: str = ""


class PerformanceTracker:
    """Per-gateway success rate and mean latency."""

    def __init__(self) -> None:
        self._metrics: dict[str, PerformanceMetrics] = {}
        self._total_ms: dict[str, float] = {}
        self._locks: dict[str, threading.Lock] = {}
        self._registry_lock = threading.Lock()

    def _lock_for(self, gateway: str) -> threading.Lock:
        with self._registry_lock:
            lock = self._locks.get(gateway)
            if lock is None:
                lock = self._locks[gateway] = threading.Lock()
            return lock

    def record(self, gateway: str, success: bool, latency_ms: float) -> PerformanceMetrics:
        """Fold one call outcome into the gateway's metrics."""
        with self._lock_for(gateway):
            metrics = self._metrics.get(gateway)
            if metrics is None:
                metrics = self._metrics[gateway] = PerformanceMetrics(gateway=gateway)
                self._total_ms[gateway] = 0.0

            metrics.total_requests += 1
            if not success:
                metrics.failed_requests += 1
            self._total_ms[gateway] += max(latency_ms, 0.0)

            metrics.success_rate = (
                metrics.total_requests - metrics.failed_requests
            ) / metrics.total_requests
            metrics.average_response_time_ms = self._total_ms[gateway] / metrics.total_requests
            metrics.last_updated = datetime.now(timezone.utc)
            return _copy(metrics)

    def get(self, gateway: str) -> PerformanceMetrics:
        """Current metrics; defaults when the gateway has no history."""
        with self._lock_for(gateway):
            metrics = self._metrics.get(gateway)
            return _copy(metrics) if metrics is not None else PerformanceMetrics(gateway=gateway)

    def snapshot(self) -> dict[str, PerformanceMetrics]:
        return {name: self.get(name) for name in list(self._metrics)}

    def remove(self, gateway: str) -> None:
        """Drop history for a gateway."""
        with self._lock_for(gateway):
            self._metrics.pop(gateway, None)
            self._total_ms.pop(gateway, None)
        with self._registry_lock:
            self._locks.pop(gateway, None)

    def collect(self) -> list[Counter | Gauge]:
        """All metrics as Counter/Gauge values."""
        collected: list[Counter | Gauge] = []
        for name, metrics in sorted(self.snapshot().items()):
            labels = {"gateway": name}
            collected.extend(
                [
                    Counter(
                        name="gateway_requests_total",
                        value=metrics.total_requests,
                        labels=labels,
                        help_text="Gateway calls made",
                    ),
                    Counter(
                        name="gateway_requests_failed_total",
                        value=metrics.failed_requests,
                        labels=labels,
                        help_text="Gateway calls that failed",
                    ),
                    Gauge(
                        name="gateway_success_rate",
                        value=round(metrics.success_rate, 4),
                        labels=labels,
                        help_text="Fraction of successful gateway calls",
                    ),
                    Gauge(
                        name="gateway_response_time_ms",
                        value=round(metrics.average_response_time_ms, 2),
                        labels=labels,
                        help_text="Mean gateway call latency in milliseconds",
                    ),
                ]
            )
        return collected

    def to_dict(self) -> dict[str, Any]:
        return {name: metrics.to_dict() for name, metrics in self.snapshot().items()}

    def to_json(self) -> str:
        """Convert to JSON string."""
        return json.dumps(self.to_dict(), indent=2)

    def to_prometheus(self) -> str:
        """Convert to Prometheus text format."""
        lines: list[str] = []
        described: set[str] = set()

        for metric in self.collect():
            if metric.name not in described:
                if metric.help_text:
                    lines.append(f"# HELP {metric.name} {metric.help_text}")
                metric_type = "counter" if isinstance(metric, Counter) else "gauge"
                lines.append(f"# TYPE {metric.name} {metric_type}")
                described.add(metric.name)

            labels = ""
            if metric.labels:
                label_parts = [f'{k}="{v}"' for k, v in metric.labels.items()]
                labels = "{" + ",".join(label_parts) + "}"
            lines.append(f"{metric.name}{labels} {metric.value}")

        return "\n".join(lines)


def _copy(metrics: PerformanceMetrics) -> PerformanceMetrics:
    return PerformanceMetrics(
        gateway=metrics.gateway,
        success_rate=metrics.success_rate,
        average_response_time_ms=metrics.average_response_time_ms,
        total_requests=metrics.total_requests,
        failed_requests=metrics.failed_requests,
        last_updated=metrics.last_updated,
    )
