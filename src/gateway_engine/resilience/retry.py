"""Retry with exponential backoff for gateway calls.

Only failures classified as transient are retried. Validation, state and
permanent gateway errors are re-raised on the first occurrence.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, TypeVar

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from gateway_engine.config import RetryPolicy
from gateway_engine.events import EventEmitter, GatewayRetryScheduled
from gateway_engine.exceptions import ErrorKind, classify_error

logger = logging.getLogger(__name__)

T = TypeVar("T")

Sleep = Callable[[float], Awaitable[None]]


def is_transient(exc: BaseException) -> bool:
    """Whether a failure is worth another attempt. Cancellation never is."""
    return isinstance(exc, Exception) and classify_error(exc) is ErrorKind.TRANSIENT


class RetryExecutor:
    """Runs an async operation with bounded, backed-off retries.

    The sleep function is injectable so tests can record waits instead of
    actually suspending.
    """

    def __init__(
        self,
        policy: RetryPolicy | None = None,
        emitter: EventEmitter | None = None,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self.policy = policy or RetryPolicy()
        self._emitter = emitter
        self._sleep = sleep

    async def execute(
        self,
        operation: Callable[[], Awaitable[T]],
        *,
        max_attempts: int | None = None,
        base_delay: float | None = None,
        max_delay: float | None = None,
        backoff_factor: float | None = None,
        context: str = "operation",
        gateway: str | None = None,
    ) -> T:
        """Invoke ``operation`` until it succeeds or attempts run out.

        Args:
            operation: Zero-argument coroutine factory. Called once per attempt.
            max_attempts: Total attempts including the first.
            base_delay: Seconds before the first retry.
            max_delay: Cap for any single wait.
            backoff_factor: Multiplier applied per retry.
            context: Operation label for logs and events.
            gateway: Gateway name for logs and events.

        Returns:
            Whatever the operation returns on its first success.

        Raises:
            The last error once attempts are exhausted, or the first
            non-transient error immediately.
        """
        policy = RetryPolicy(
            max_attempts=max_attempts if max_attempts is not None else self.policy.max_attempts,
            base_delay=base_delay if base_delay is not None else self.policy.base_delay,
            max_delay=max_delay if max_delay is not None else self.policy.max_delay,
            backoff_factor=(
                backoff_factor if backoff_factor is not None else self.policy.backoff_factor
            ),
        )

        def before_sleep(retry_state: RetryCallState) -> None:
            exc = retry_state.outcome.exception() if retry_state.outcome else None
            delay = retry_state.next_action.sleep if retry_state.next_action else 0.0
            logger.warning(
                "%s on gateway %s failed (attempt %d/%d), retrying in %.2fs: %s",
                context,
                gateway,
                retry_state.attempt_number,
                policy.max_attempts,
                delay,
                exc,
                extra={"gateway": gateway, "attempt": retry_state.attempt_number},
            )
            if self._emitter is not None:
                self._emitter.emit(
                    GatewayRetryScheduled(
                        gateway=gateway,
                        operation=context,
                        attempt=retry_state.attempt_number,
                        delay_seconds=delay,
                        error=str(exc),
                    )
                )

        async def sleep(seconds: float) -> None:
            await self._sleep(float(seconds))

        retrying = AsyncRetrying(
            stop=stop_after_attempt(policy.max_attempts),
            wait=wait_exponential(
                multiplier=policy.base_delay,
                exp_base=policy.backoff_factor,
                max=policy.max_delay,
            ),
            retry=retry_if_exception(is_transient),
            before_sleep=before_sleep,
            sleep=sleep,
            reraise=True,
        )

        attempts = 0

        async def attempt() -> T:
            nonlocal attempts
            attempts += 1
            return await operation()

        try:
            return await retrying(attempt)
        except Exception as exc:
            kind = classify_error(exc)
            if kind is ErrorKind.TRANSIENT:
                logger.warning(
                    "%s on gateway %s failed after %d attempts: %s",
                    context,
                    gateway,
                    attempts,
                    exc,
                    extra={"gateway": gateway, "attempt": attempts},
                )
            else:
                logger.info(
                    "%s on gateway %s failed with %s error, not retrying: %s",
                    context,
                    gateway,
                    kind.value,
                    exc,
                    extra={"gateway": gateway, "attempt": attempts},
                )
            raise
