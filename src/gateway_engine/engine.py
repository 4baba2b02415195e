"""Engine facade - the one blessed way to assemble the orchestration graph.

Usage:
    engine = build_engine(create_sandbox_config())

    result = await engine.orchestrator.process_payment({
        "amount": "100.00",
        "currency": "BRL",
        "payment_method": "pix",
    })

    status = await engine.orchestrator.get_gateways_status()

The builder:
- Registers every configured gateway in order
- Shares one EventEmitter between all components
- Wires registry changes to the health cache, metrics and breaker
"""

from __future__ import annotations

import asyncio
import logging
import random
import time
from dataclasses import dataclass
from typing import Callable, Mapping

from gateway_engine.config import EngineConfig
from gateway_engine.events import EventEmitter
from gateway_engine.gateways.registry import GatewayFactory, GatewayRegistry
from gateway_engine.metrics import PerformanceTracker
from gateway_engine.models.gateway import GatewayKind
from gateway_engine.repositories.base import PaymentRepository
from gateway_engine.repositories.memory import InMemoryPaymentRepository
from gateway_engine.resilience.circuit_breaker import CircuitBreaker
from gateway_engine.resilience.health import HealthMonitor
from gateway_engine.resilience.retry import RetryExecutor, Sleep
from gateway_engine.services.load_balancer import LoadBalancer
from gateway_engine.services.payment_orchestrator import PaymentOrchestrator
from gateway_engine.validation import CardValidator

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Engine:
    """Every component of one orchestration engine."""

    config: EngineConfig
    emitter: EventEmitter
    registry: GatewayRegistry
    breaker: CircuitBreaker
    health: HealthMonitor
    performance: PerformanceTracker
    load_balancer: LoadBalancer
    retry: RetryExecutor
    repository: PaymentRepository
    orchestrator: PaymentOrchestrator


def build_engine(
    config: EngineConfig,
    repository: PaymentRepository | None = None,
    emitter: EventEmitter | None = None,
    *,
    factories: Mapping[GatewayKind, GatewayFactory] | None = None,
    clock: Callable[[], float] = time.monotonic,
    sleep: Sleep = asyncio.sleep,
    rng: random.Random | None = None,
    card_validator: CardValidator | None = None,
) -> Engine:
    """Wire an Engine from explicit configuration.

    Args:
        config: Engine configuration; gateways are registered in order.
        repository: Payment storage. Defaults to an in-memory repository.
        emitter: Event emitter shared by all components.
        factories: Adapter constructors per GatewayKind.
        clock: Monotonic clock for the breaker and health cache.
        sleep: Async sleep used between retries.
        rng: Random source for weighted and random selection.
        card_validator: Card payload validator.
    """
    emitter = emitter or EventEmitter()
    registry = GatewayRegistry(factories)
    breaker = CircuitBreaker(config.circuit_breaker, emitter=emitter, clock=clock)
    health = HealthMonitor(registry, breaker, config.health, emitter=emitter, clock=clock)
    performance = PerformanceTracker()

    load_balancer = LoadBalancer(
        registry,
        breaker,
        health,
        performance,
        strategy=config.load_balancing.strategy,
        emitter=emitter,
        rng=rng,
    )

    def on_gateway_change(name: str, removed: bool) -> None:
        health.invalidate(name)
        performance.remove(name)
        if removed:
            breaker.remove(name)
            health.forget(name)
            load_balancer.forget(name)

    registry.add_invalidation_listener(on_gateway_change)
    for gateway in config.gateways:
        registry.register_config(gateway.name, gateway)

    retry = RetryExecutor(config.retry, emitter=emitter, sleep=sleep)
    repository = repository if repository is not None else InMemoryPaymentRepository()
    orchestrator = PaymentOrchestrator(
        registry,
        breaker,
        health,
        load_balancer,
        retry,
        repository,
        performance,
        config=config.load_balancing,
        emitter=emitter,
        card_validator=card_validator,
    )
    logger.info(
        "Engine built with %d gateway(s), strategy=%s, failover=%s",
        len(registry),
        load_balancer.strategy.value,
        config.load_balancing.failover_enabled,
    )
    return Engine(
        config=config,
        emitter=emitter,
        registry=registry,
        breaker=breaker,
        health=health,
        performance=performance,
        load_balancer=load_balancer,
        retry=retry,
        repository=repository,
        orchestrator=orchestrator,
    )
