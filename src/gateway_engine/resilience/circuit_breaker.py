"""Per-gateway circuit breaker.

States:
    closed     calls allowed; failures counted
    open       calls rejected until open_timeout has elapsed since the last
               failure
    half_open  exactly one trial call allowed; success closes, failure reopens

Any recorded success, from any state, resets the counter and closes the
circuit. Each gateway has its own lock, so a burst of failures on one gateway
never blocks callers of another.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable

from gateway_engine.config import CircuitBreakerConfig
from gateway_engine.events import CircuitStateChanged, EventEmitter

logger = logging.getLogger(__name__)


class CircuitState(str, Enum):
    """Circuit breaker states."""

    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


@dataclass
class _Circuit:
    failure_threshold: int
    open_timeout: float
    state: CircuitState = CircuitState.CLOSED
    failure_count: int = 0
    last_failure_at: float | None = None
    trial_in_flight: bool = False


@dataclass(frozen=True)
class CircuitSnapshot:
    """Read-only view of one gateway's breaker."""

    gateway: str
    state: CircuitState
    failure_count: int
    failure_threshold: int
    open_timeout: float
    last_failure_at: float | None
    retry_in: float | None

    def to_dict(self) -> dict[str, object]:
        return {
            "gateway": self.gateway,
            "state": self.state.value,
            "failure_count": self.failure_count,
            "failure_threshold": self.failure_threshold,
            "open_timeout": self.open_timeout,
            "retry_in": self.retry_in,
        }


class CircuitBreaker:
    """Tracks availability of every gateway independently.

    Usage:
        breaker = CircuitBreaker(CircuitBreakerConfig(failure_threshold=5))
        if breaker.allow_request("stripe"):
            try:
                await call()
            except Exception:
                breaker.record_failure("stripe")
                raise
            breaker.record_success("stripe")
    """

    def __init__(
        self,
        config: CircuitBreakerConfig | None = None,
        emitter: EventEmitter | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.config = config or CircuitBreakerConfig()
        self._emitter = emitter
        self._clock = clock
        self._circuits: dict[str, _Circuit] = {}
        self._locks: dict[str, threading.Lock] = {}
        self._registry_lock = threading.Lock()

    def _lock_for(self, gateway: str) -> threading.Lock:
        lock = self._locks.get(gateway)
        if lock is None:
            with self._registry_lock:
                lock = self._locks.setdefault(gateway, threading.Lock())
        return lock

    def _circuit(self, gateway: str) -> _Circuit:
        # Caller holds the gateway lock.
        circuit = self._circuits.get(gateway)
        if circuit is None:
            circuit = _Circuit(
                failure_threshold=self.config.failure_threshold,
                open_timeout=self.config.open_timeout,
            )
            self._circuits[gateway] = circuit
        return circuit

    def _timeout_elapsed(self, circuit: _Circuit) -> bool:
        if circuit.last_failure_at is None:
            return True
        return self._clock() - circuit.last_failure_at > circuit.open_timeout

    def configure(
        self,
        gateway: str,
        *,
        failure_threshold: int | None = None,
        open_timeout: float | None = None,
    ) -> None:
        """Override thresholds for one gateway."""
        with self._lock_for(gateway):
            circuit = self._circuit(gateway)
            if failure_threshold is not None:
                if failure_threshold < 1:
                    raise ValueError("failure_threshold must be at least 1")
                circuit.failure_threshold = failure_threshold
            if open_timeout is not None:
                if open_timeout <= 0:
                    raise ValueError("open_timeout must be positive")
                circuit.open_timeout = open_timeout

    def allow_request(self, gateway: str) -> bool:
        """Gate check before a call. Claims the half-open trial slot."""
        transition = None
        with self._lock_for(gateway):
            circuit = self._circuit(gateway)
            if circuit.state is CircuitState.CLOSED:
                return True
            if circuit.state is CircuitState.OPEN:
                if not self._timeout_elapsed(circuit):
                    return False
                transition = self._move(gateway, circuit, CircuitState.HALF_OPEN)
                circuit.trial_in_flight = True
                allowed = True
            else:
                allowed = not circuit.trial_in_flight
                circuit.trial_in_flight = True
        self._publish(transition)
        return allowed

    def is_available(self, gateway: str) -> bool:
        """Whether a call would currently be allowed. Does not change state."""
        with self._lock_for(gateway):
            circuit = self._circuit(gateway)
            if circuit.state is CircuitState.CLOSED:
                return True
            if circuit.state is CircuitState.OPEN:
                return self._timeout_elapsed(circuit)
            return not circuit.trial_in_flight

    def record_success(self, gateway: str) -> None:
        """Reset the counter and close the circuit."""
        transition = None
        with self._lock_for(gateway):
            circuit = self._circuit(gateway)
            circuit.failure_count = 0
            circuit.trial_in_flight = False
            if circuit.state is not CircuitState.CLOSED:
                transition = self._move(gateway, circuit, CircuitState.CLOSED)
        self._publish(transition)

    def record_failure(self, gateway: str) -> None:
        """Count a failure; open the circuit at the threshold."""
        transition = None
        with self._lock_for(gateway):
            circuit = self._circuit(gateway)
            circuit.failure_count += 1
            circuit.last_failure_at = self._clock()
            circuit.trial_in_flight = False
            if circuit.state is CircuitState.HALF_OPEN:
                transition = self._move(gateway, circuit, CircuitState.OPEN)
            elif (
                circuit.state is CircuitState.CLOSED
                and circuit.failure_count >= circuit.failure_threshold
            ):
                transition = self._move(gateway, circuit, CircuitState.OPEN)
        self._publish(transition)

    def release_trial(self, gateway: str) -> None:
        """Give back a claimed half-open slot when no call was made."""
        if gateway not in self._circuits:
            return
        with self._lock_for(gateway):
            circuit = self._circuits.get(gateway)
            if circuit is not None:
                circuit.trial_in_flight = False

    def get_state(self, gateway: str) -> CircuitSnapshot:
        with self._lock_for(gateway):
            circuit = self._circuit(gateway)
            retry_in = None
            if circuit.state is CircuitState.OPEN and circuit.last_failure_at is not None:
                retry_in = max(
                    0.0, circuit.open_timeout - (self._clock() - circuit.last_failure_at)
                )
            return CircuitSnapshot(
                gateway=gateway,
                state=circuit.state,
                failure_count=circuit.failure_count,
                failure_threshold=circuit.failure_threshold,
                open_timeout=circuit.open_timeout,
                last_failure_at=circuit.last_failure_at,
                retry_in=retry_in,
            )

    def snapshot_all(self) -> dict[str, CircuitSnapshot]:
        return {name: self.get_state(name) for name in list(self._circuits)}

    def reset(self, gateway: str) -> None:
        """Force the circuit closed with a zero counter."""
        self.record_success(gateway)

    def remove(self, gateway: str) -> None:
        """Forget all state for a gateway."""
        with self._lock_for(gateway):
            self._circuits.pop(gateway, None)
        with self._registry_lock:
            self._locks.pop(gateway, None)

    def _move(
        self, gateway: str, circuit: _Circuit, to_state: CircuitState
    ) -> CircuitStateChanged:
        from_state = circuit.state
        circuit.state = to_state
        log = logger.warning if to_state is CircuitState.OPEN else logger.info
        log(
            "Circuit for gateway %s moved %s -> %s",
            gateway,
            from_state.value,
            to_state.value,
            extra={"gateway": gateway, "failure_count": circuit.failure_count},
        )
        return CircuitStateChanged(
            gateway=gateway,
            from_state=from_state.value,
            to_state=to_state.value,
            failure_count=circuit.failure_count,
        )

    def _publish(self, event: CircuitStateChanged | None) -> None:
        if event is not None and self._emitter is not None:
            self._emitter.emit(event)
