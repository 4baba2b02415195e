"""Payment orchestration across gateways.

Orchestrates every payment operation through:
1. Input validation (never retried, never reaches a gateway)
2. Gateway selection (preferred gateway or load balancer)
3. Circuit breaker gate and retried gateway call under a deadline
4. Repository update following the payment state machine
5. Failover to the next eligible gateway after transient exhaustion

Operations on one payment id are serialized with a per-payment lock.
"""

from __future__ import annotations

import asyncio
import logging
import time
import weakref
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any, Awaitable, Callable, Mapping

from gateway_engine.config import LoadBalancingConfig
from gateway_engine.events import (
    DomainEvent,
    EventEmitter,
    GatewayFailover,
    GatewaySelected,
    PaymentAuthorized,
    PaymentCancelled,
    PaymentCaptured,
    PaymentFailed,
    PaymentProcessed,
    PaymentRefunded,
    PaymentStatusReconciled,
)
from gateway_engine.exceptions import (
    CircuitOpenError,
    ConfigurationError,
    ErrorKind,
    FailoverExhaustedError,
    GatewayDeclinedError,
    GatewayNotConfiguredError,
    GatewayTimeoutError,
    GatewayUnavailableError,
    NoGatewayAvailableError,
    PaymentFailedError,
    PaymentNotFoundError,
    PaymentStateError,
    ValidationError,
    classify_error,
)
from gateway_engine.gateways.base import GatewayAdapter, GatewayResponse
from gateway_engine.gateways.registry import GatewayRegistry
from gateway_engine.metrics import PerformanceTracker
from gateway_engine.models.gateway import SelectionCriteria
from gateway_engine.models.payment import (
    Payment,
    PaymentResult,
    PaymentStatus,
    Refund,
    generate_payment_id,
)
from gateway_engine.repositories.base import PaymentFilters, PaymentRepository
from gateway_engine.resilience.circuit_breaker import CircuitBreaker
from gateway_engine.resilience.health import HealthMonitor
from gateway_engine.resilience.retry import RetryExecutor
from gateway_engine.services.load_balancer import LoadBalancer
from gateway_engine.services.state_machine import PaymentStateMachine
from gateway_engine.validation import CardValidator, redact_payment_data, validate_payment_data

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AttemptResult:
    """Outcome of one gateway attempt within process or authorize.

    ``payment`` is None when the attempt was skipped before a payment was
    created (circuit rejected the call, gateway disabled meanwhile).
    """

    gateway: str
    payment: Payment | None = None
    response: GatewayResponse | None = None
    error: Exception | None = None

    @property
    def succeeded(self) -> bool:
        return self.error is None and self.payment is not None and self.response is not None

    @property
    def error_kind(self) -> ErrorKind | None:
        return classify_error(self.error) if self.error is not None else None

    @property
    def can_fail_over(self) -> bool:
        return self.error_kind in (ErrorKind.TRANSIENT, ErrorKind.UNAVAILABLE)


class PaymentOrchestrator:
    """Runs payment operations against the configured gateways.

    Usage:
        orchestrator = engine.orchestrator
        result = await orchestrator.process_payment({
            "amount": "100.00",
            "currency": "BRL",
            "payment_method": "pix",
        })
        await orchestrator.refund_payment(result.payment_id, Decimal("40"))
    """

    def __init__(
        self,
        registry: GatewayRegistry,
        breaker: CircuitBreaker,
        health: HealthMonitor,
        load_balancer: LoadBalancer,
        retry: RetryExecutor,
        repository: PaymentRepository,
        performance: PerformanceTracker,
        config: LoadBalancingConfig | None = None,
        emitter: EventEmitter | None = None,
        card_validator: CardValidator | None = None,
    ):
        self.registry = registry
        self.breaker = breaker
        self.health = health
        self.load_balancer = load_balancer
        self.retry = retry
        self.repository = repository
        self.performance = performance
        self.config = config or LoadBalancingConfig()
        self._emitter = emitter
        self._card_validator = card_validator or CardValidator()
        self._payment_locks: weakref.WeakValueDictionary[str, asyncio.Lock] = (
            weakref.WeakValueDictionary()
        )

    # ------------------------------------------------------------------
    # Payment creation
    # ------------------------------------------------------------------

    async def process_payment(
        self,
        payment_data: Mapping[str, Any],
        preferred_gateway: str | None = None,
    ) -> PaymentResult:
        """Charge a payment, failing over to other gateways when one is down.

        Args:
            payment_data: Request with at least ``amount`` and
                ``payment_method``. Card methods may carry a ``card`` dict.
            preferred_gateway: Gateway to try first when it is eligible.

        Returns:
            PaymentResult for the attempt that succeeded.

        Raises:
            ValidationError: Bad input. Nothing is persisted.
            GatewayNotConfiguredError: Unknown preferred gateway.
            NoGatewayAvailableError: No gateway could take the payment.
            PaymentFailedError: The gateway declined the payment, or
                failover is disabled and the chosen gateway failed.
            FailoverExhaustedError: Every eligible gateway failed.
        """
        data = self._prepare(payment_data)
        criteria = SelectionCriteria.from_payment_data(data, self.config.default_currency)

        # Each failed gateway is excluded from later selections, so the loop
        # ends after at most one attempt per configured gateway.
        max_attempts = max(len(self.registry), 1)
        attempted: list[str] = []
        payment_ids: list[str] = []
        gateway = await self._select(criteria, preferred_gateway)

        while True:
            attempted.append(gateway)
            attempt = await self._attempt(gateway, data, capture=True)
            if attempt.payment is not None:
                payment_ids.append(attempt.payment.payment_id)

            if attempt.succeeded:
                return self._result(attempt, attempted, data["amount"])

            error = attempt.error
            if not attempt.can_fail_over:
                raise PaymentFailedError(
                    f"Payment failed at gateway {gateway}: {error}",
                    payment_id=payment_ids[-1] if payment_ids else None,
                    gateway=gateway,
                    attempted_gateways=attempted,
                    payment_ids=payment_ids,
                ) from error

            if not self.config.failover_enabled:
                raise PaymentFailedError(
                    f"Payment failed at gateway {gateway} and failover is disabled: {error}",
                    payment_id=payment_ids[-1] if payment_ids else None,
                    gateway=gateway,
                    attempted_gateways=attempted,
                    payment_ids=payment_ids,
                ) from error

            next_gateway = None
            if len(attempted) < max_attempts:
                try:
                    next_gateway = await self.load_balancer.recommend(criteria, exclude=attempted)
                except NoGatewayAvailableError:
                    next_gateway = None

            if next_gateway is None:
                logger.error(
                    "Failover exhausted after gateways %s: %s",
                    attempted,
                    error,
                    extra={"gateway": gateway, "attempted_gateways": attempted},
                )
                raise FailoverExhaustedError(
                    f"All gateways failed ({', '.join(attempted)}): {error}",
                    payment_id=payment_ids[-1] if payment_ids else None,
                    gateway=gateway,
                    attempted_gateways=attempted,
                    payment_ids=payment_ids,
                ) from error

            logger.warning(
                "Failing over from gateway %s to %s: %s",
                gateway,
                next_gateway,
                error,
                extra={"gateway": gateway, "next_gateway": next_gateway},
            )
            self._emit(
                GatewayFailover(
                    from_gateway=gateway,
                    to_gateway=next_gateway,
                    failed_payment_id=attempt.payment.payment_id if attempt.payment else "",
                    reason=str(error),
                )
            )
            gateway = next_gateway

    async def authorize_payment(
        self,
        payment_data: Mapping[str, Any],
        preferred_gateway: str | None = None,
    ) -> PaymentResult:
        """Place an authorization hold. No failover: callers retry explicitly.

        Raises:
            ValidationError: Bad input.
            NoGatewayAvailableError: No gateway could take the payment.
            PaymentFailedError: The selected gateway failed or declined.
        """
        data = self._prepare(payment_data)
        criteria = SelectionCriteria.from_payment_data(data, self.config.default_currency)
        gateway = await self._select(criteria, preferred_gateway)

        attempt = await self._attempt(gateway, data, capture=False)
        if not attempt.succeeded:
            payment_id = attempt.payment.payment_id if attempt.payment else None
            raise PaymentFailedError(
                f"Authorization failed at gateway {gateway}: {attempt.error}",
                payment_id=payment_id,
                gateway=gateway,
                attempted_gateways=[gateway],
            ) from attempt.error
        return self._result(attempt, [gateway], data["amount"])

    def _prepare(self, payment_data: Mapping[str, Any]) -> dict[str, Any]:
        data = validate_payment_data(payment_data, self._card_validator)
        data.setdefault("currency", self.config.default_currency.upper())
        return data

    async def _select(self, criteria: SelectionCriteria, preferred: str | None) -> str:
        if preferred is not None:
            if preferred not in self.registry:
                raise GatewayNotConfiguredError(preferred)
            if await self.load_balancer.is_eligible(preferred, criteria):
                self._emit(
                    GatewaySelected(
                        gateway=preferred,
                        strategy=self.load_balancer.strategy.value,
                        candidates=(preferred,),
                        preferred=True,
                    )
                )
                return preferred
            logger.info(
                "Preferred gateway %s is not eligible, selecting another",
                preferred,
                extra={"gateway": preferred},
            )
        return await self.load_balancer.recommend(criteria)

    async def _attempt(self, gateway: str, data: dict[str, Any], capture: bool) -> AttemptResult:
        """One gateway attempt: breaker gate, create, retried call, persist."""
        if not self.breaker.allow_request(gateway):
            return AttemptResult(gateway=gateway, error=CircuitOpenError(gateway))

        try:
            adapter = self.registry.get_gateway(gateway)
            payment = await self.repository.create(
                Payment(
                    payment_id=generate_payment_id(),
                    status=PaymentStatus.PROCESSING,
                    gateway=gateway,
                    amount=data["amount"],
                    currency=data["currency"],
                    payment_method=data["payment_method"],
                    customer_id=data.get("customer_id"),
                    order_id=data.get("order_id"),
                    payment_data=redact_payment_data(data),
                )
            )
        except (GatewayUnavailableError, ConfigurationError) as exc:
            self.breaker.release_trial(gateway)
            return AttemptResult(gateway=gateway, error=exc)
        except BaseException:
            self.breaker.release_trial(gateway)
            raise

        operation = "process_payment" if capture else "authorize_payment"
        call = adapter.process_payment if capture else adapter.authorize_payment
        request = {**data, "payment_id": payment.payment_id}
        log_extra = {"gateway": gateway, "payment_id": payment.payment_id}

        try:
            response = await self._call_with_retry(gateway, operation, lambda: call(request))
        except asyncio.CancelledError:
            self.breaker.release_trial(gateway)
            raise
        except Exception as exc:
            self._record_breaker(gateway, exc)
            payment = await self._fail(payment, exc)
            return AttemptResult(gateway=gateway, payment=payment, error=exc)

        self.breaker.record_success(gateway)
        status = self._status_from_response(response, payment)

        if status is PaymentStatus.FAILED:
            exc = GatewayDeclinedError(
                response.message or "Payment failed at gateway",
                gateway=gateway,
                code=response.status,
            )
            payment = await self._fail(payment, exc, response)
            return AttemptResult(gateway=gateway, payment=payment, response=response, error=exc)

        payment = await self.repository.update_status(
            payment.payment_id,
            status,
            response.to_dict(),
            authorization_id=response.authorization_id,
            transaction_id=response.transaction_id,
            expected_version=payment.version,
        )

        if status is PaymentStatus.ERROR:
            exc = PaymentFailedError(
                f"Gateway {gateway} answered with unexpected status {response.status!r}",
                payment_id=payment.payment_id,
                gateway=gateway,
            )
            logger.error("%s", exc, extra=log_extra)
            self._emit(
                PaymentFailed(
                    payment_id=payment.payment_id,
                    gateway=gateway,
                    reason=str(exc),
                    error_kind=ErrorKind.PERMANENT.value,
                )
            )
            return AttemptResult(gateway=gateway, payment=payment, response=response, error=exc)

        logger.info(
            "Payment %s %s via gateway %s",
            payment.payment_id,
            status.value,
            gateway,
            extra=log_extra,
        )
        if status is PaymentStatus.AUTHORIZED:
            self._emit(
                PaymentAuthorized(
                    payment_id=payment.payment_id,
                    gateway=gateway,
                    authorization_id=payment.authorization_id,
                    amount=payment.amount,
                )
            )
        else:
            self._emit(
                PaymentProcessed(
                    payment_id=payment.payment_id,
                    gateway=gateway,
                    status=status.value,
                    amount=payment.amount,
                    currency=payment.currency,
                )
            )
        return AttemptResult(gateway=gateway, payment=payment, response=response)

    def _status_from_response(self, response: GatewayResponse, payment: Payment) -> PaymentStatus:
        try:
            status = PaymentStatus(response.status)
        except ValueError:
            logger.warning(
                "Gateway %s returned unknown status %r for payment %s",
                payment.gateway,
                response.status,
                payment.payment_id,
                extra={"gateway": payment.gateway, "payment_id": payment.payment_id},
            )
            return PaymentStatus.ERROR
        if status is PaymentStatus.PROCESSING:
            return status
        if not PaymentStateMachine.can_transition(payment.status, status):
            logger.warning(
                "Gateway %s returned status %s, illegal from %s for payment %s",
                payment.gateway,
                status.value,
                payment.status.value,
                payment.payment_id,
                extra={"gateway": payment.gateway, "payment_id": payment.payment_id},
            )
            return PaymentStatus.ERROR
        return status

    async def _fail(
        self,
        payment: Payment,
        exc: Exception,
        response: GatewayResponse | None = None,
    ) -> Payment:
        kind = classify_error(exc)
        gateway_data: dict[str, Any] = {"error_kind": kind.value}
        if isinstance(exc, GatewayDeclinedError) and exc.code:
            gateway_data["error_code"] = exc.code
        if response is not None:
            gateway_data.update(response.to_dict())
        payment = await self.repository.mark_as_failed(payment.payment_id, str(exc), gateway_data)
        logger.warning(
            "Payment %s failed at gateway %s (%s): %s",
            payment.payment_id,
            payment.gateway,
            kind.value,
            exc,
            extra={"gateway": payment.gateway, "payment_id": payment.payment_id},
        )
        self._emit(
            PaymentFailed(
                payment_id=payment.payment_id,
                gateway=payment.gateway,
                reason=str(exc),
                error_kind=kind.value,
            )
        )
        return payment

    def _result(
        self, attempt: AttemptResult, attempted: list[str], amount: Decimal
    ) -> PaymentResult:
        payment = attempt.payment
        if payment is None or attempt.response is None:
            raise PaymentFailedError(
                f"Gateway {attempt.gateway} produced no payment outcome",
                gateway=attempt.gateway,
                attempted_gateways=attempted,
            )
        return PaymentResult(
            payment_id=payment.payment_id,
            gateway=attempt.gateway,
            status=payment.status,
            response=attempt.response.to_dict(),
            attempted_gateways=tuple(attempted),
            amount=amount,
        )

    # ------------------------------------------------------------------
    # Operations on existing payments
    # ------------------------------------------------------------------

    async def capture_payment(
        self, payment_id: str, amount: Decimal | str | None = None
    ) -> PaymentResult:
        """Capture an authorization hold, fully or partially.

        Raises:
            PaymentNotFoundError: Unknown payment id.
            PaymentStateError: Payment is not authorized or lacks an
                authorization id. No gateway call is made.
            ValidationError: Amount is not positive or exceeds the hold.
            CircuitOpenError: The payment's gateway is blocked.
            PaymentFailedError: The gateway call failed.
        """
        async with self._payment_lock(payment_id):
            payment = await self._load(payment_id)
            self._require_status(payment, PaymentStatus.CAPTURED, {PaymentStatus.AUTHORIZED})
            if not payment.authorization_id:
                raise PaymentStateError(
                    f"Payment {payment_id} has no authorization id",
                    payment_id=payment_id,
                    from_status=payment.status.value,
                    to_status=PaymentStatus.CAPTURED.value,
                )
            capture_amount = self._parse_amount(amount) if amount is not None else None
            if capture_amount is not None and capture_amount > payment.amount:
                raise ValidationError(
                    f"Capture amount {capture_amount} exceeds authorized amount {payment.amount}",
                    field="amount",
                )

            authorization_id = payment.authorization_id
            response = await self._gated_call(
                payment,
                "capture_payment",
                lambda adapter: adapter.capture_payment(authorization_id, capture_amount),
            )

            captured = capture_amount if capture_amount is not None else payment.amount
            payment = await self.repository.mark_as_captured(
                payment_id,
                {"capture": response.to_dict()},
                captured_amount=captured,
            )
            logger.info(
                "Payment %s captured %s via gateway %s",
                payment_id,
                captured,
                payment.gateway,
                extra={"gateway": payment.gateway, "payment_id": payment_id},
            )
            self._emit(PaymentCaptured(payment_id=payment_id, gateway=payment.gateway, amount=captured))
            return PaymentResult(
                payment_id=payment_id,
                gateway=payment.gateway,
                status=payment.status,
                response=response.to_dict(),
                attempted_gateways=(payment.gateway,),
                amount=captured,
            )

    async def cancel_payment(self, payment_id: str, reason: str = "") -> PaymentResult:
        """Release an authorization hold.

        Raises:
            PaymentNotFoundError: Unknown payment id.
            PaymentStateError: Payment is not authorized.
            CircuitOpenError: The payment's gateway is blocked.
            PaymentFailedError: The gateway call failed.
        """
        async with self._payment_lock(payment_id):
            payment = await self._load(payment_id)
            self._require_status(payment, PaymentStatus.CANCELLED, {PaymentStatus.AUTHORIZED})
            if not payment.authorization_id:
                raise PaymentStateError(
                    f"Payment {payment_id} has no authorization id",
                    payment_id=payment_id,
                    from_status=payment.status.value,
                    to_status=PaymentStatus.CANCELLED.value,
                )

            authorization_id = payment.authorization_id
            response = await self._gated_call(
                payment,
                "cancel_payment",
                lambda adapter: adapter.cancel_payment(authorization_id, reason),
            )
            payment = await self.repository.mark_as_cancelled(
                payment_id, reason, {"cancellation": response.to_dict()}
            )
            logger.info(
                "Payment %s cancelled via gateway %s",
                payment_id,
                payment.gateway,
                extra={"gateway": payment.gateway, "payment_id": payment_id},
            )
            self._emit(PaymentCancelled(payment_id=payment_id, gateway=payment.gateway, reason=reason))
            return PaymentResult(
                payment_id=payment_id,
                gateway=payment.gateway,
                status=payment.status,
                response=response.to_dict(),
                attempted_gateways=(payment.gateway,),
            )

    async def refund_payment(
        self,
        payment_id: str,
        amount: Decimal | str | None = None,
        reason: str = "",
    ) -> PaymentResult:
        """Refund part or all of a captured or paid payment.

        ``amount=None`` refunds the whole remaining balance. A request above
        the remaining balance is rejected without calling the gateway.

        Raises:
            PaymentNotFoundError: Unknown payment id.
            PaymentStateError: Payment is not refundable, nothing is left to
                refund, or the amount exceeds the refundable balance.
            ValidationError: Amount is not positive.
            CircuitOpenError: The payment's gateway is blocked.
            PaymentFailedError: The gateway call failed.
        """
        async with self._payment_lock(payment_id):
            payment = await self._load(payment_id)
            self._require_status(payment, PaymentStatus.REFUNDED, PaymentStateMachine.REFUNDABLE)

            refundable = payment.refundable_amount
            if refundable <= 0:
                raise PaymentStateError(
                    f"Payment {payment_id} has nothing left to refund",
                    payment_id=payment_id,
                    from_status=payment.status.value,
                    to_status=PaymentStatus.REFUNDED.value,
                )
            requested = self._parse_amount(amount) if amount is not None else refundable
            if requested > refundable:
                raise PaymentStateError(
                    f"Refund of {requested} exceeds refundable balance {refundable}",
                    payment_id=payment_id,
                    from_status=payment.status.value,
                    to_status=PaymentStatus.REFUNDED.value,
                )
            transaction_id = payment.gateway_transaction_id
            if not transaction_id:
                raise PaymentStateError(
                    f"Payment {payment_id} has no gateway transaction id",
                    payment_id=payment_id,
                    from_status=payment.status.value,
                )

            response = await self._gated_call(
                payment,
                "refund_payment",
                lambda adapter: adapter.refund_payment(transaction_id, requested, reason),
            )
            refund = await self.repository.add_refund(
                Refund(
                    payment_id=payment_id,
                    amount=requested,
                    reason=reason,
                    gateway_refund_id=response.refund_id,
                    gateway_data=response.to_dict(),
                )
            )

            total_refunded = payment.total_refunded + requested
            fully_refunded = total_refunded >= payment.settled_amount
            if fully_refunded:
                payment = await self.repository.mark_as_refunded(payment_id)
            else:
                payment = await self._load(payment_id)

            logger.info(
                "Refunded %s of payment %s via gateway %s (total %s)",
                requested,
                payment_id,
                payment.gateway,
                total_refunded,
                extra={"gateway": payment.gateway, "payment_id": payment_id},
            )
            self._emit(
                PaymentRefunded(
                    payment_id=payment_id,
                    gateway=payment.gateway,
                    refund_id=refund.refund_id,
                    amount=requested,
                    total_refunded=total_refunded,
                    fully_refunded=fully_refunded,
                )
            )
            return PaymentResult(
                payment_id=payment_id,
                gateway=payment.gateway,
                status=payment.status,
                response={
                    **response.to_dict(),
                    "refund": {
                        "refund_id": refund.refund_id,
                        "amount": str(requested),
                        "total_refunded": str(total_refunded),
                        "refundable_amount": str(payment.settled_amount - total_refunded),
                    },
                },
                attempted_gateways=(payment.gateway,),
                amount=requested,
            )

    async def check_transaction_status(self, payment_id: str) -> PaymentResult:
        """Ask the gateway for the payment's status and reconcile.

        The call bypasses retry and the circuit breaker. A diverging remote
        status is applied locally only when the state machine allows the
        transition; otherwise it is logged and left alone.

        Raises:
            PaymentNotFoundError: Unknown payment id.
            PaymentStateError: Payment has no gateway transaction id.
            GatewayUnavailableError: Gateway no longer configured or enabled.
            GatewayOperationError: The gateway call failed.
        """
        async with self._payment_lock(payment_id):
            payment = await self._load(payment_id)
            transaction_id = payment.gateway_transaction_id
            if not transaction_id:
                raise PaymentStateError(
                    f"Payment {payment_id} has no gateway transaction id",
                    payment_id=payment_id,
                    from_status=payment.status.value,
                )
            adapter = self.registry.get_gateway(payment.gateway)
            response = await self._call_gateway(
                payment.gateway,
                "check_transaction_status",
                lambda: adapter.check_transaction_status(transaction_id),
            )
            log_extra = {"gateway": payment.gateway, "payment_id": payment_id}

            try:
                remote = PaymentStatus(response.status)
            except ValueError:
                remote = None
                logger.warning(
                    "Gateway %s reported unknown status %r for payment %s",
                    payment.gateway,
                    response.status,
                    payment_id,
                    extra=log_extra,
                )

            if remote is not None and remote is not payment.status:
                if PaymentStateMachine.can_transition(payment.status, remote):
                    from_status = payment.status
                    payment = await self.repository.update_status(
                        payment_id,
                        remote,
                        {"status_check": response.to_dict()},
                        expected_version=payment.version,
                    )
                    logger.info(
                        "Payment %s reconciled %s -> %s from gateway %s",
                        payment_id,
                        from_status.value,
                        remote.value,
                        payment.gateway,
                        extra=log_extra,
                    )
                    self._emit(
                        PaymentStatusReconciled(
                            payment_id=payment_id,
                            gateway=payment.gateway,
                            from_status=from_status.value,
                            to_status=remote.value,
                        )
                    )
                else:
                    logger.warning(
                        "Gateway %s reports payment %s as %s; local status %s cannot move there",
                        payment.gateway,
                        payment_id,
                        remote.value,
                        payment.status.value,
                        extra=log_extra,
                    )

            return PaymentResult(
                payment_id=payment_id,
                gateway=payment.gateway,
                status=payment.status,
                response={**response.to_dict(), "gateway_status": response.status},
                attempted_gateways=(payment.gateway,),
            )

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def get_payment(self, payment_id: str) -> Payment:
        """Raises PaymentNotFoundError for an unknown id."""
        return await self._load(payment_id)

    async def list_payments(
        self, filters: PaymentFilters | Mapping[str, Any] | None = None
    ) -> list[Payment]:
        return await self.repository.find_by_filters(self._filters(filters))

    async def get_statistics(
        self, filters: PaymentFilters | Mapping[str, Any] | None = None
    ) -> dict[str, Any]:
        return await self.repository.get_statistics(self._filters(filters))

    async def get_available_gateways(
        self, criteria: SelectionCriteria | None = None
    ) -> list[dict[str, Any]]:
        """Describe every gateway that could take a payment right now."""
        descriptions = []
        for name in await self.load_balancer.get_available_gateways(criteria):
            adapter = self.registry.get_gateway(name)
            descriptions.append(
                {
                    "name": name,
                    "provider": adapter.get_name(),
                    "api_version": adapter.get_api_version(),
                    "supported_methods": adapter.get_supported_methods(),
                    "supported_currencies": adapter.get_supported_currencies(),
                    "active": adapter.is_active(),
                }
            )
        return descriptions

    async def get_gateways_status(self) -> dict[str, Any]:
        """Counts plus config, health, circuit and metrics per gateway."""
        configs = sorted(self.registry.configs(), key=lambda c: c.priority)
        gateways: dict[str, Any] = {}
        enabled = healthy = 0
        for config in configs:
            health = None
            if config.enabled:
                enabled += 1
                try:
                    health = await self.health.check_health(config.name)
                except GatewayUnavailableError:
                    # Removed or disabled meanwhile.
                    health = None
            is_healthy = bool(health and health.healthy)
            if is_healthy:
                healthy += 1
            gateways[config.name] = {
                "config": config.public_view(),
                "healthy": is_healthy,
                "health": health.to_dict() if health else None,
                "circuit": self.breaker.get_state(config.name).to_dict(),
                "performance": self.performance.get(config.name).to_dict(),
            }
        return {
            "total_gateways": len(configs),
            "enabled_gateways": enabled,
            "healthy_gateways": healthy,
            "strategy": self.load_balancer.strategy.value,
            "failover_enabled": self.config.failover_enabled,
            "gateways": gateways,
        }

    # ------------------------------------------------------------------
    # Gateway calls
    # ------------------------------------------------------------------

    async def _call_gateway(
        self,
        gateway: str,
        operation: str,
        call: Callable[[], Awaitable[GatewayResponse]],
    ) -> GatewayResponse:
        """One gateway call under the gateway deadline, feeding the tracker.

        Declines count as successful calls: the gateway answered.
        """
        timeout = self.registry.get_config(gateway).timeout_seconds
        started = time.perf_counter()
        try:
            response = await asyncio.wait_for(call(), timeout=timeout)
        except asyncio.TimeoutError:
            self._track(gateway, started, success=False)
            logger.warning(
                "%s on gateway %s timed out after %.2fs",
                operation,
                gateway,
                timeout,
                extra={"gateway": gateway},
            )
            raise GatewayTimeoutError(gateway, timeout) from None
        except GatewayDeclinedError:
            self._track(gateway, started, success=True)
            raise
        except Exception:
            self._track(gateway, started, success=False)
            raise
        self._track(gateway, started, success=True)
        return response

    async def _call_with_retry(
        self,
        gateway: str,
        operation: str,
        call: Callable[[], Awaitable[GatewayResponse]],
    ) -> GatewayResponse:
        config = self.registry.get_config(gateway)
        return await self.retry.execute(
            lambda: self._call_gateway(gateway, operation, call),
            max_attempts=config.max_retry_attempts,
            context=operation,
            gateway=gateway,
        )

    async def _gated_call(
        self,
        payment: Payment,
        operation: str,
        call: Callable[[GatewayAdapter], Awaitable[GatewayResponse]],
    ) -> GatewayResponse:
        """Breaker-gated, retried call against the payment's own gateway."""
        gateway = payment.gateway
        adapter = self.registry.get_gateway(gateway)
        if not self.breaker.allow_request(gateway):
            raise CircuitOpenError(gateway)
        try:
            response = await self._call_with_retry(gateway, operation, lambda: call(adapter))
        except asyncio.CancelledError:
            self.breaker.release_trial(gateway)
            raise
        except Exception as exc:
            self._record_breaker(gateway, exc)
            raise PaymentFailedError(
                f"{operation} failed for payment {payment.payment_id} at gateway {gateway}: {exc}",
                payment_id=payment.payment_id,
                gateway=gateway,
                attempted_gateways=[gateway],
            ) from exc
        self.breaker.record_success(gateway)
        return response

    def _record_breaker(self, gateway: str, exc: Exception) -> None:
        if classify_error(exc) is ErrorKind.UNAVAILABLE:
            # The gateway was never reached; it may also have been removed.
            self.breaker.release_trial(gateway)
        elif isinstance(exc, GatewayDeclinedError):
            self.breaker.record_success(gateway)
        else:
            self.breaker.record_failure(gateway)

    def _track(self, gateway: str, started: float, success: bool) -> None:
        self.performance.record(gateway, success, (time.perf_counter() - started) * 1000)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _payment_lock(self, payment_id: str) -> asyncio.Lock:
        lock = self._payment_locks.get(payment_id)
        if lock is None:
            lock = asyncio.Lock()
            self._payment_locks[payment_id] = lock
        return lock

    async def _load(self, payment_id: str) -> Payment:
        payment = await self.repository.find_by_id(payment_id)
        if payment is None:
            raise PaymentNotFoundError(payment_id)
        return payment

    @staticmethod
    def _require_status(
        payment: Payment, target: PaymentStatus, allowed: set[PaymentStatus]
    ) -> None:
        if payment.status not in allowed:
            raise PaymentStateError(
                f"Cannot move payment {payment.payment_id} from "
                f"'{payment.status.value}' to '{target.value}'",
                payment_id=payment.payment_id,
                from_status=payment.status.value,
                to_status=target.value,
            )

    @staticmethod
    def _parse_amount(amount: Decimal | str) -> Decimal:
        try:
            value = Decimal(str(amount))
        except InvalidOperation:
            raise ValidationError("Amount must be a number", field="amount") from None
        if not value.is_finite() or value <= 0:
            raise ValidationError("Amount must be greater than zero", field="amount")
        return value

    @staticmethod
    def _filters(filters: PaymentFilters | Mapping[str, Any] | None) -> PaymentFilters:
        if isinstance(filters, PaymentFilters):
            return filters
        return PaymentFilters.from_mapping(filters)

    def _emit(self, event: DomainEvent) -> None:
        if self._emitter is not None:
            self._emitter.emit(event)
