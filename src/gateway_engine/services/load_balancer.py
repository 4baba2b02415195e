"""Gateway selection.

Filtering keeps gateways that are enabled, not blocked by their circuit,
able to handle the payment (method, currency, amount) and healthy, in that
order. Probing health last keeps network probes off gateways that could
never take the payment anyway.
"""

from __future__ import annotations

import logging
import random
import threading
from typing import Sequence

from gateway_engine.config import Strategy
from gateway_engine.events import EventEmitter, GatewaySelected
from gateway_engine.exceptions import GatewayUnavailableError, NoGatewayAvailableError
from gateway_engine.gateways.registry import GatewayRegistry
from gateway_engine.metrics import PerformanceTracker
from gateway_engine.models.gateway import SelectionCriteria
from gateway_engine.resilience.circuit_breaker import CircuitBreaker
from gateway_engine.resilience.health import HealthMonitor

logger = logging.getLogger(__name__)


class LoadBalancer:
    """Chooses a gateway for each payment operation.

    Round-robin cursors are kept per distinct candidate tuple, so the
    rotation over (a, b) is unaffected by selections over (a, b, c).
    """

    def __init__(
        self,
        registry: GatewayRegistry,
        breaker: CircuitBreaker,
        health: HealthMonitor,
        performance: PerformanceTracker,
        strategy: Strategy | str = Strategy.ROUND_ROBIN,
        emitter: EventEmitter | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self.registry = registry
        self.breaker = breaker
        self.health = health
        self.performance = performance
        self._strategy = Strategy(strategy)
        self._emitter = emitter
        self._rng = rng or random.Random()
        self._cursors: dict[tuple[str, ...], int] = {}
        self._cursor_locks: dict[tuple[str, ...], threading.Lock] = {}
        self._lock = threading.Lock()

    @property
    def strategy(self) -> Strategy:
        return self._strategy

    def set_strategy(self, strategy: Strategy | str) -> None:
        try:
            self._strategy = Strategy(strategy)
        except ValueError:
            raise ValueError(f"Unknown load balancing strategy: {strategy!r}") from None
        logger.info("Load balancing strategy set to %s", self._strategy.value)

    def forget(self, name: str) -> None:
        """Drop round-robin cursors of candidate sets that include a removed gateway."""
        with self._lock:
            for key in [k for k in self._cursors if name in k]:
                del self._cursors[key]
            for key in [k for k in self._cursor_locks if name in k]:
                del self._cursor_locks[key]

    def matches(self, name: str, criteria: SelectionCriteria) -> bool:
        """Whether the gateway's adapter can handle the criteria."""
        try:
            adapter = self.registry.get_gateway(name)
            if criteria.payment_method and not adapter.supports_method(criteria.payment_method):
                return False
            if criteria.currency and not adapter.supports_currency(criteria.currency):
                return False
            if criteria.amount is not None and not adapter.is_amount_valid(
                criteria.amount, criteria.currency or "", criteria.payment_method
            ):
                return False
        except GatewayUnavailableError:
            return False
        except Exception as exc:
            logger.warning(
                "Skipping gateway %s: capability check raised %s",
                name,
                exc,
                extra={"gateway": name},
            )
            return False
        return True

    async def is_eligible(self, name: str, criteria: SelectionCriteria | None = None) -> bool:
        """Whether one gateway could take a payment matching ``criteria`` now.

        Raises:
            GatewayNotConfiguredError: Unknown name.
        """
        criteria = criteria or SelectionCriteria()
        if not self.registry.get_config(name).enabled:
            return False
        if not self.breaker.is_available(name):
            return False
        if not self.matches(name, criteria):
            return False
        status = await self.health.check_health(name)
        return status.healthy

    async def get_available_gateways(
        self,
        criteria: SelectionCriteria | None = None,
        exclude: Sequence[str] = (),
    ) -> list[str]:
        """Names of gateways able to take a payment now, in registry order."""
        available: list[str] = []
        for name in self.registry.enabled_names():
            if name in exclude:
                continue
            try:
                eligible = await self.is_eligible(name, criteria)
            except GatewayUnavailableError:
                # Removed while iterating.
                continue
            if eligible:
                available.append(name)
        return available

    def select_gateway(
        self,
        candidates: Sequence[str],
        strategy: Strategy | str | None = None,
    ) -> str:
        """Pick one candidate using the given (or configured) strategy."""
        if not candidates:
            raise NoGatewayAvailableError()
        strategy = Strategy(strategy) if strategy is not None else self._strategy
        candidates = tuple(candidates)

        if strategy is Strategy.ROUND_ROBIN:
            chosen = self._select_round_robin(candidates)
        elif strategy is Strategy.WEIGHTED:
            chosen = self._select_weighted(candidates)
        elif strategy is Strategy.PERFORMANCE_BASED:
            chosen = self._select_by_performance(candidates)
        else:
            chosen = self._rng.choice(candidates)

        logger.debug(
            "Selected gateway %s from %s using %s",
            chosen,
            list(candidates),
            strategy.value,
            extra={"gateway": chosen},
        )
        if self._emitter is not None:
            self._emitter.emit(
                GatewaySelected(gateway=chosen, strategy=strategy.value, candidates=candidates)
            )
        return chosen

    async def recommend(
        self,
        criteria: SelectionCriteria | None = None,
        exclude: Sequence[str] = (),
        strategy: Strategy | str | None = None,
    ) -> str:
        """Filter then select."""
        candidates = await self.get_available_gateways(criteria, exclude)
        if not candidates:
            raise NoGatewayAvailableError(
                criteria=criteria,
                excluded=list(exclude),
            )
        return self.select_gateway(candidates, strategy)

    def _cursor_lock(self, key: tuple[str, ...]) -> threading.Lock:
        with self._lock:
            lock = self._cursor_locks.get(key)
            if lock is None:
                lock = self._cursor_locks[key] = threading.Lock()
            return lock

    def _select_round_robin(self, candidates: tuple[str, ...]) -> str:
        with self._cursor_lock(candidates):
            index = self._cursors.get(candidates, -1) + 1
            if index >= len(candidates):
                index = 0
            self._cursors[candidates] = index
        return candidates[index]

    def _select_weighted(self, candidates: tuple[str, ...]) -> str:
        weights = [self.registry.get_config(name).weight for name in candidates]
        draw = self._rng.randint(1, sum(weights))
        cumulative = 0
        for name, weight in zip(candidates, weights):
            cumulative += weight
            if draw <= cumulative:
                return name
        return candidates[0]

    def _select_by_performance(self, candidates: tuple[str, ...]) -> str:
        best = candidates[0]
        best_score = self.performance.get(best).score
        for name in candidates[1:]:
            score = self.performance.get(name).score
            if score > best_score:
                best, best_score = name, score
        return best
