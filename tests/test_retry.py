"""Tests for retry with exponential backoff."""

import asyncio

import pytest
from hypothesis import given, settings, strategies as st

from gateway_engine.config import RetryPolicy
from gateway_engine.events import GatewayRetryScheduled
from gateway_engine.exceptions import (
    GatewayDeclinedError,
    GatewayOperationError,
    GatewayTimeoutError,
    ValidationError,
)
from gateway_engine.resilience.retry import RetryExecutor


class Flaky:
    """Operation that fails a fixed number of times before succeeding."""

    def __init__(self, failures: int, error: Exception | None = None):
        self.failures = failures
        self.error = error or GatewayOperationError("boom", gateway="stripe")
        self.calls = 0

    async def __call__(self) -> str:
        self.calls += 1
        if self.calls <= self.failures:
            raise self.error
        return "ok"


@pytest.fixture
def executor(emitter, sleep) -> RetryExecutor:
    return RetryExecutor(
        RetryPolicy(max_attempts=3, base_delay=1.0, max_delay=10.0),
        emitter=emitter,
        sleep=sleep,
    )


class TestRetryPolicy:
    """Backoff arithmetic."""

    def test_delays_double(self):
        policy = RetryPolicy(base_delay=1.0, backoff_factor=2.0, max_delay=10.0)

        assert [policy.delay_before_retry(n) for n in range(1, 6)] == [1.0, 2.0, 4.0, 8.0, 10.0]

    def test_invalid_policy(self):
        with pytest.raises(ValueError):
            RetryPolicy(max_attempts=0)
        with pytest.raises(ValueError):
            RetryPolicy(base_delay=-1)
        with pytest.raises(ValueError):
            RetryPolicy(backoff_factor=0.5)

    @given(
        base=st.floats(min_value=0, max_value=30),
        factor=st.floats(min_value=1, max_value=4),
        cap=st.floats(min_value=0, max_value=60),
        retry_number=st.integers(min_value=1, max_value=30),
    )
    @settings(max_examples=200)
    def test_delay_never_exceeds_cap(self, base, factor, cap, retry_number):
        """min(base * factor^(n-1), cap) is bounded and non-negative."""
        policy = RetryPolicy(base_delay=base, backoff_factor=factor, max_delay=cap)

        delay = policy.delay_before_retry(retry_number)

        assert 0 <= delay <= cap


class TestRetryExecutor:
    """Retry loop behaviour."""

    async def test_success_first_try(self, executor, sleep):
        operation = Flaky(0)

        assert await executor.execute(operation) == "ok"
        assert operation.calls == 1
        assert sleep.delays == []

    async def test_transient_failures_are_retried(self, executor, sleep, recorder):
        operation = Flaky(2)

        result = await executor.execute(operation, context="process_payment", gateway="stripe")

        assert result == "ok"
        assert operation.calls == 3
        assert sleep.delays == [1.0, 2.0]
        events = recorder.of_type(GatewayRetryScheduled)
        assert [(e.attempt, e.delay_seconds) for e in events] == [(1, 1.0), (2, 2.0)]
        assert events[0].gateway == "stripe"
        assert events[0].operation == "process_payment"

    async def test_gives_up_after_max_attempts(self, executor, sleep):
        """The last error propagates after exactly max_attempts calls."""
        operation = Flaky(5)

        with pytest.raises(GatewayOperationError):
            await executor.execute(operation)

        assert operation.calls == 3
        assert len(sleep.delays) == 2

    async def test_per_call_override(self, executor):
        operation = Flaky(5)

        with pytest.raises(GatewayOperationError):
            await executor.execute(operation, max_attempts=1)

        assert operation.calls == 1

    async def test_timeouts_are_retried(self, executor):
        operation = Flaky(1, GatewayTimeoutError("stripe", 30))

        assert await executor.execute(operation) == "ok"
        assert operation.calls == 2

    @pytest.mark.parametrize(
        "error",
        [
            GatewayDeclinedError("declined", gateway="stripe", code="card_declined"),
            GatewayOperationError("bad request", gateway="stripe", retryable=False),
            ValidationError("bad input", field="amount"),
            ValueError("malformed"),
        ],
    )
    async def test_non_transient_errors_are_not_retried(self, executor, sleep, error):
        operation = Flaky(5, error)

        with pytest.raises(type(error)):
            await executor.execute(operation)

        assert operation.calls == 1
        assert sleep.delays == []

    async def test_unknown_errors_are_treated_as_transient(self, executor):
        operation = Flaky(1, RuntimeError("connection reset"))

        assert await executor.execute(operation) == "ok"
        assert operation.calls == 2

    async def test_backoff_is_capped(self, emitter, sleep):
        executor = RetryExecutor(
            RetryPolicy(max_attempts=6, base_delay=1.0, max_delay=10.0, backoff_factor=2.0),
            emitter=emitter,
            sleep=sleep,
        )

        with pytest.raises(GatewayOperationError):
            await executor.execute(Flaky(10))

        assert sleep.delays == [1.0, 2.0, 4.0, 8.0, 10.0]

    async def test_backoff_matches_policy_arithmetic(self, sleep):
        policy = RetryPolicy(max_attempts=5, base_delay=0.5, max_delay=3.0, backoff_factor=3.0)
        executor = RetryExecutor(policy, sleep=sleep)

        with pytest.raises(GatewayOperationError):
            await executor.execute(Flaky(10))

        assert sleep.delays == pytest.approx([policy.delay_before_retry(n) for n in range(1, 5)])

    async def test_cancellation_is_not_retried(self, executor, sleep):
        operation = Flaky(5, asyncio.CancelledError())

        with pytest.raises(asyncio.CancelledError):
            await executor.execute(operation)

        assert operation.calls == 1
        assert sleep.delays == []
