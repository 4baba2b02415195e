"""Error taxonomy for gateway orchestration.

Every error carries an ErrorKind. Retry, failover and circuit breaker code
branch on the kind, never on the concrete exception class:

    VALIDATION   bad input, never retried
    UNAVAILABLE  gateway disabled, unconfigured or circuit open; skip it
    TRANSIENT    remote call failed, retry then fail over
    PERMANENT    remote call answered with a definitive refusal
    STATE        illegal lifecycle transition
"""

from __future__ import annotations

import asyncio
from enum import Enum
from typing import Any


class ErrorKind(str, Enum):
    """Failure classification used by the retry loop and failover."""

    VALIDATION = "validation"
    UNAVAILABLE = "unavailable"
    TRANSIENT = "transient"
    PERMANENT = "permanent"
    STATE = "state"


class GatewayEngineError(Exception):
    """Base class for all orchestration errors."""

    kind: ErrorKind = ErrorKind.PERMANENT

    def __init__(self, message: str, **context: Any):
        self.context = context
        super().__init__(message)


# =============================================================================
# Input errors
# =============================================================================


class ValidationError(GatewayEngineError):
    """Payment input failed validation."""

    kind = ErrorKind.VALIDATION

    def __init__(self, message: str, field: str | None = None, **context: Any):
        self.field = field
        super().__init__(message, field=field, **context)


class CardValidationError(ValidationError):
    """Card payload rejected before submission."""


class ConfigurationError(GatewayEngineError):
    """Gateway configuration is invalid or incomplete."""

    kind = ErrorKind.VALIDATION


# =============================================================================
# Availability errors
# =============================================================================


class GatewayUnavailableError(GatewayEngineError):
    """Gateway cannot be used right now."""

    kind = ErrorKind.UNAVAILABLE

    def __init__(self, message: str, gateway: str | None = None, **context: Any):
        self.gateway = gateway
        super().__init__(message, gateway=gateway, **context)


class GatewayNotConfiguredError(GatewayUnavailableError):
    """No configuration registered under this name."""

    def __init__(self, gateway: str):
        super().__init__(f"Gateway not configured: {gateway}", gateway=gateway)


class GatewayDisabledError(GatewayUnavailableError):
    """Gateway is configured but disabled."""

    def __init__(self, gateway: str):
        super().__init__(f"Gateway disabled: {gateway}", gateway=gateway)


class CircuitOpenError(GatewayUnavailableError):
    """Circuit breaker rejected the call."""

    def __init__(self, gateway: str):
        super().__init__(f"Circuit open for gateway: {gateway}", gateway=gateway)


class NoGatewayAvailableError(GatewayUnavailableError):
    """No enabled, healthy gateway matches the selection criteria."""

    def __init__(self, message: str = "No gateway available for the given criteria", **context: Any):
        super().__init__(message, **context)


# =============================================================================
# Remote operation errors
# =============================================================================


class GatewayOperationError(GatewayEngineError):
    """A remote gateway call failed."""

    def __init__(
        self,
        message: str,
        gateway: str | None = None,
        retryable: bool = True,
        **context: Any,
    ):
        self.gateway = gateway
        self.retryable = retryable
        super().__init__(message, gateway=gateway, **context)

    @property
    def kind(self) -> ErrorKind:  # type: ignore[override]
        return ErrorKind.TRANSIENT if self.retryable else ErrorKind.PERMANENT


class GatewayTimeoutError(GatewayOperationError):
    """Gateway call exceeded its deadline."""

    def __init__(self, gateway: str, timeout: float):
        self.timeout = timeout
        super().__init__(
            f"Gateway {gateway} timed out after {timeout:.2f}s",
            gateway=gateway,
            retryable=True,
            timeout=timeout,
        )


class GatewayDeclinedError(GatewayOperationError):
    """Gateway refused the operation (card declined, insufficient funds...)."""

    def __init__(self, message: str, gateway: str | None = None, code: str | None = None):
        self.code = code
        super().__init__(message, gateway=gateway, retryable=False, code=code)


# =============================================================================
# Lifecycle errors
# =============================================================================


class PaymentStateError(GatewayEngineError):
    """Operation is not legal for the payment's current status."""

    kind = ErrorKind.STATE

    def __init__(
        self,
        message: str,
        payment_id: str | None = None,
        from_status: str | None = None,
        to_status: str | None = None,
    ):
        self.payment_id = payment_id
        self.from_status = from_status
        self.to_status = to_status
        super().__init__(
            message,
            payment_id=payment_id,
            from_status=from_status,
            to_status=to_status,
        )


class PaymentNotFoundError(PaymentStateError):
    """Payment id unknown to the repository."""

    def __init__(self, payment_id: str):
        super().__init__(f"Payment not found: {payment_id}", payment_id=payment_id)


class PaymentFailedError(GatewayEngineError):
    """Terminal failure of a payment operation."""

    def __init__(
        self,
        message: str,
        payment_id: str | None = None,
        gateway: str | None = None,
        attempted_gateways: list[str] | None = None,
        payment_ids: list[str] | None = None,
    ):
        self.payment_id = payment_id
        self.gateway = gateway
        self.attempted_gateways = list(attempted_gateways or [])
        self.payment_ids = list(payment_ids or ([payment_id] if payment_id else []))
        super().__init__(
            message,
            payment_id=payment_id,
            gateway=gateway,
            attempted_gateways=self.attempted_gateways,
        )


class FailoverExhaustedError(PaymentFailedError):
    """Every matching gateway was attempted and failed."""


def classify_error(exc: BaseException) -> ErrorKind:
    """Map any exception to an ErrorKind.

    Engine errors carry their own kind. Timeouts and connection problems from
    adapter code are transient; ValueError/TypeError mean the adapter rejected
    the request shape and are permanent. Anything else is treated as
    transient, since the call outcome is unknown.
    """
    if isinstance(exc, GatewayEngineError):
        return exc.kind
    if isinstance(exc, (asyncio.TimeoutError, TimeoutError, ConnectionError, OSError)):
        return ErrorKind.TRANSIENT
    if isinstance(exc, (ValueError, TypeError)):
        return ErrorKind.PERMANENT
    return ErrorKind.TRANSIENT
