"""Gateway health probing with TTL caching.

A probe calls the adapter's test_connection under the gateway deadline.
Healthy results are cached for HealthCheckConfig.healthy_ttl and unhealthy
ones for the shorter unhealthy_ttl. Concurrent checks of the same gateway
share one probe.
"""

from __future__ import annotations

import asyncio
import logging
import threading
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Callable

from gateway_engine.config import HealthCheckConfig
from gateway_engine.events import EventEmitter, GatewayHealthChecked
from gateway_engine.exceptions import GatewayUnavailableError
from gateway_engine.resilience.circuit_breaker import CircuitBreaker

if TYPE_CHECKING:
    from gateway_engine.gateways.registry import GatewayRegistry

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class HealthStatus:
    """Outcome of one health probe."""

    gateway: str
    healthy: bool
    response_time_ms: float | None = None
    error: str | None = None
    probed: bool = True
    checked_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> dict[str, Any]:
        return {
            "gateway": self.gateway,
            "healthy": self.healthy,
            "response_time_ms": self.response_time_ms,
            "error": self.error,
            "probed": self.probed,
            "checked_at": self.checked_at.isoformat(),
        }


@dataclass(frozen=True)
class _CacheEntry:
    status: HealthStatus
    expires_at: float


class HealthMonitor:
    """Caches gateway health and combines it with breaker availability."""

    def __init__(
        self,
        registry: GatewayRegistry,
        breaker: CircuitBreaker,
        config: HealthCheckConfig | None = None,
        emitter: EventEmitter | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.registry = registry
        self.breaker = breaker
        self.config = config or HealthCheckConfig()
        self._emitter = emitter
        self._clock = clock
        self._cache: dict[str, _CacheEntry] = {}
        self._cache_lock = threading.Lock()
        self._probe_locks: dict[str, asyncio.Lock] = {}

    def cached(self, gateway: str) -> HealthStatus | None:
        """Unexpired cached status, if any."""
        with self._cache_lock:
            entry = self._cache.get(gateway)
            if entry is None:
                return None
            if self._clock() >= entry.expires_at:
                del self._cache[gateway]
                return None
            return entry.status

    def invalidate(self, gateway: str) -> None:
        """Drop the cached status for a gateway."""
        with self._cache_lock:
            self._cache.pop(gateway, None)

    def forget(self, gateway: str) -> None:
        """Drop the cached status and probe lock of a removed gateway."""
        with self._cache_lock:
            self._cache.pop(gateway, None)
            self._probe_locks.pop(gateway, None)

    def _probe_lock(self, gateway: str) -> asyncio.Lock:
        with self._cache_lock:
            lock = self._probe_locks.get(gateway)
            if lock is None:
                lock = self._probe_locks[gateway] = asyncio.Lock()
            return lock

    async def check_health(self, gateway: str, *, force: bool = False) -> HealthStatus:
        """Return the gateway's health, probing when the cache is empty.

        Raises:
            GatewayNotConfiguredError: No configuration under this name.
        """
        config = self.registry.get_config(gateway)
        if not config.health_check_enabled:
            return HealthStatus(gateway=gateway, healthy=True, probed=False)

        if not force:
            status = self.cached(gateway)
            if status is not None:
                return status

        async with self._probe_lock(gateway):
            # Another task may have probed while this one waited.
            if not force:
                status = self.cached(gateway)
                if status is not None:
                    return status
            status = await self._probe(gateway, config.timeout_seconds)
            ttl = self.config.healthy_ttl if status.healthy else self.config.unhealthy_ttl
            with self._cache_lock:
                self._cache[gateway] = _CacheEntry(status=status, expires_at=self._clock() + ttl)

        if self._emitter is not None:
            self._emitter.emit(
                GatewayHealthChecked(
                    gateway=gateway,
                    healthy=status.healthy,
                    response_time_ms=status.response_time_ms,
                    error=status.error,
                )
            )
        return status

    async def _probe(self, gateway: str, timeout: float) -> HealthStatus:
        started = time.perf_counter()
        try:
            adapter = self.registry.get_gateway(gateway)
            healthy = bool(await asyncio.wait_for(adapter.test_connection(), timeout=timeout))
            error = None if healthy else "connection test failed"
        except asyncio.TimeoutError:
            healthy, error = False, f"timed out after {timeout:.2f}s"
        except GatewayUnavailableError as exc:
            healthy, error = False, str(exc)
        except Exception as exc:
            logger.warning("Health probe for gateway %s raised: %s", gateway, exc)
            healthy, error = False, str(exc)

        elapsed_ms = (time.perf_counter() - started) * 1000
        if not healthy:
            logger.warning(
                "Gateway %s reported unhealthy: %s",
                gateway,
                error,
                extra={"gateway": gateway},
            )
        return HealthStatus(
            gateway=gateway,
            healthy=healthy,
            response_time_ms=round(elapsed_ms, 2),
            error=error,
        )

    async def check_all(self) -> dict[str, HealthStatus]:
        """Check every enabled gateway concurrently."""
        names = self.registry.enabled_names()
        results = await asyncio.gather(*(self.check_health(name) for name in names))
        return dict(zip(names, results))

    async def is_available(self, gateway: str) -> bool:
        """Healthy and not blocked by the circuit breaker."""
        if not self.breaker.is_available(gateway):
            return False
        status = await self.check_health(gateway)
        return status.healthy
