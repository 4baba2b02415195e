"""Pytest fixtures for gateway engine tests."""

from __future__ import annotations

import random
from datetime import date
from typing import Any, Callable

import pytest

from gateway_engine.config import (
    CircuitBreakerConfig,
    EngineConfig,
    HealthCheckConfig,
    LoadBalancingConfig,
    RetryPolicy,
    Strategy,
)
from gateway_engine.engine import Engine, build_engine
from gateway_engine.events import EventEmitter, RecordingHandler
from gateway_engine.models.gateway import GatewayConfig, GatewayKind
from gateway_engine.repositories.base import PaymentRepository


class FakeClock:
    """Monotonic clock that only moves when told to."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingSleep:
    """Async sleep replacement that records delays and returns at once."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


def gateway_config(
    name: str,
    kind: GatewayKind = GatewayKind.STRIPE,
    **overrides: Any,
) -> GatewayConfig:
    """Sandbox gateway config with test-friendly defaults."""
    values: dict[str, Any] = {
        "environment": "sandbox",
        "credentials_ref": f"sandbox/{name}",
    }
    values.update(overrides)
    return GatewayConfig(name=name, kind=kind, **values)


def card_payment(**overrides: Any) -> dict[str, Any]:
    """A valid credit card payment request in USD."""
    data: dict[str, Any] = {
        "amount": "100.00",
        "currency": "USD",
        "payment_method": "credit_card",
        "customer_id": "cus_123",
        "order_id": "ord_456",
        "card": {
            "number": "4242 4242 4242 4242",
            "holder_name": "Ada Lovelace",
            "expiry_month": "12",
            "expiry_year": str(date.today().year + 2),
            "cvv": "123",
        },
    }
    data.update(overrides)
    return data


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def recorder() -> RecordingHandler:
    return RecordingHandler()


@pytest.fixture
def emitter(recorder: RecordingHandler) -> EventEmitter:
    emitter = EventEmitter()
    emitter.on_all(recorder)
    return emitter


@pytest.fixture
def build(
    clock: FakeClock, sleep: RecordingSleep, emitter: EventEmitter
) -> Callable[..., Engine]:
    """Factory for engines over sandbox gateways ``a`` and ``b`` by default."""

    def _build(
        gateways: list[GatewayConfig] | None = None,
        *,
        strategy: Strategy = Strategy.ROUND_ROBIN,
        failover: bool = True,
        failure_threshold: int = 5,
        open_timeout: float = 60.0,
        retry: RetryPolicy | None = None,
        repository: PaymentRepository | None = None,
        seed: int = 7,
    ) -> Engine:
        config = EngineConfig(
            gateways=gateways if gateways is not None else [gateway_config("a"), gateway_config("b")],
            retry=retry or RetryPolicy(max_attempts=3, base_delay=1.0, max_delay=10.0),
            circuit_breaker=CircuitBreakerConfig(
                failure_threshold=failure_threshold, open_timeout=open_timeout
            ),
            health=HealthCheckConfig(healthy_ttl=300.0, unhealthy_ttl=60.0),
            load_balancing=LoadBalancingConfig(
                strategy=strategy, failover_enabled=failover, default_currency="USD"
            ),
        )
        return build_engine(
            config,
            repository=repository,
            emitter=emitter,
            clock=clock,
            sleep=sleep,
            rng=random.Random(seed),
        )

    return _build


@pytest.fixture
def engine(build: Callable[..., Engine]) -> Engine:
    return build()
