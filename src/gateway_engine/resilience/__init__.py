"""Resilience primitives: circuit breaker, retry and health probing."""

from gateway_engine.resilience.circuit_breaker import (
    CircuitBreaker,
    CircuitSnapshot,
    CircuitState,
)
from gateway_engine.resilience.health import HealthMonitor, HealthStatus
from gateway_engine.resilience.retry import RetryExecutor

__all__ = [
    "CircuitBreaker",
    "CircuitSnapshot",
    "CircuitState",
    "HealthMonitor",
    "HealthStatus",
    "RetryExecutor",
]
