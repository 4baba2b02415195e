"""In-memory sandbox gateway for local development and testing.

Replace with a real vendor API adapter for production. Subclasses only
declare their capability tables and native status vocabulary.

Fault injection (tests and demos):
    gateway.fail_next(2)                 next two calls raise a transient error
    gateway.decline_next(code="card_declined")
    gateway.set_healthy(False)           test_connection returns False
    gateway.latency = 0.5                every call sleeps before answering
    gateway.simulate_status(txn, "refunded")
"""

from __future__ import annotations

import asyncio
import logging
import time
import uuid
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, ClassVar

from gateway_engine.exceptions import GatewayDeclinedError, GatewayOperationError
from gateway_engine.gateways.base import GatewayResponse
from gateway_engine.models.gateway import GatewayConfig

logger = logging.getLogger(__name__)

# Card numbers the sandbox always declines.
DECLINED_TEST_CARDS = frozenset({"4000000000000002", "4000000000009995"})


class SandboxGateway:
    """Stub gateway keeping transactions in memory.

    In production, an adapter would:
    - Call the vendor API with credentials resolved from credentials_ref
    - Map vendor error codes to declines vs transient failures
    - Send the engine payment id as the idempotency key
    """

    provider_name: ClassVar[str] = "sandbox"
    api_version: ClassVar[str] = "sandbox"
    supported_methods: ClassVar[tuple[str, ...]] = ()
    supported_currencies: ClassVar[tuple[str, ...]] = ()
    min_amount: ClassVar[int] = 1  # minor units
    max_amount: ClassVar[int] = 10**12
    method_minimums: ClassVar[dict[str, int]] = {}
    zero_decimal_currencies: ClassVar[frozenset[str]] = frozenset()
    fees: ClassVar[dict[str, tuple[Decimal, Decimal]]] = {}

    # Native status vocabulary, filled by subclasses.
    status_paid: ClassVar[str] = "paid"
    status_authorized: ClassVar[str] = "authorized"
    status_captured: ClassVar[str] = "captured"
    status_cancelled: ClassVar[str] = "cancelled"
    status_refunded: ClassVar[str] = "refunded"
    status_map: ClassVar[dict[str, str]] = {}

    def __init__(self, config: GatewayConfig):
        self.config = config
        self.latency = float(config.options.get("latency", 0.0))
        self._healthy = bool(config.options.get("healthy", True))
        self._failures_pending = 0
        self._failure_message = "sandbox transient failure"
        self._declines_pending = 0
        self._decline_code = "card_declined"
        self._transactions: dict[str, dict[str, Any]] = {}
        self._authorizations: dict[str, str] = {}
        self.calls: list[str] = []
        self._requests = 0
        self._failed = 0
        self._total_ms = 0.0
        if config.environment == "production":
            logger.warning(
                "Gateway %s uses the %s sandbox adapter in production",
                config.name,
                self.provider_name,
            )

    # ------------------------------------------------------------------
    # Fault injection
    # ------------------------------------------------------------------

    def fail_next(self, count: int = 1, message: str = "sandbox transient failure") -> None:
        """Make the next ``count`` remote calls raise a retryable error."""
        self._failures_pending = count
        self._failure_message = message

    def decline_next(self, count: int = 1, code: str = "card_declined") -> None:
        """Make the next ``count`` payment calls decline."""
        self._declines_pending = count
        self._decline_code = code

    def set_healthy(self, healthy: bool) -> None:
        self._healthy = healthy

    def simulate_status(self, transaction_id: str, native_status: str) -> None:
        """Change a transaction's status as if the vendor had moved it."""
        self._transactions[transaction_id]["status"] = native_status

    # ------------------------------------------------------------------
    # Remote operations
    # ------------------------------------------------------------------

    async def process_payment(self, payment_data: dict[str, Any]) -> GatewayResponse:
        return await self._call("process_payment", self._create, payment_data, True)

    async def authorize_payment(self, payment_data: dict[str, Any]) -> GatewayResponse:
        return await self._call("authorize_payment", self._create, payment_data, False)

    async def capture_payment(
        self, authorization_id: str, amount: Decimal | None = None
    ) -> GatewayResponse:
        return await self._call("capture_payment", self._capture, authorization_id, amount)

    async def cancel_payment(self, authorization_id: str, reason: str = "") -> GatewayResponse:
        return await self._call("cancel_payment", self._cancel, authorization_id, reason)

    async def refund_payment(
        self, transaction_id: str, amount: Decimal | None = None, reason: str = ""
    ) -> GatewayResponse:
        return await self._call("refund_payment", self._refund, transaction_id, amount, reason)

    async def check_transaction_status(self, transaction_id: str) -> GatewayResponse:
        return await self._call("check_transaction_status", self._status, transaction_id)

    async def test_connection(self) -> bool:
        self.calls.append("test_connection")
        if self.latency:
            await asyncio.sleep(self.latency)
        return self._healthy

    async def _call(self, operation: str, handler: Any, *args: Any) -> GatewayResponse:
        self.calls.append(operation)
        started = time.perf_counter()
        try:
            if self.latency:
                await asyncio.sleep(self.latency)
            if self._failures_pending > 0:
                self._failures_pending -= 1
                raise GatewayOperationError(
                    self._failure_message, gateway=self.config.name, retryable=True
                )
            response = handler(*args)
        except Exception:
            self._failed += 1
            raise
        finally:
            self._requests += 1
            self._total_ms += (time.perf_counter() - started) * 1000
        return response

    # ------------------------------------------------------------------
    # Handlers (synchronous: no suspension while touching state)
    # ------------------------------------------------------------------

    def _create(self, payment_data: dict[str, Any], capture: bool) -> GatewayResponse:
        method = payment_data.get("payment_method", "")
        currency = str(payment_data.get("currency", "")).upper()
        amount = Decimal(str(payment_data["amount"]))

        if not self.supports_method(method):
            raise GatewayDeclinedError(
                f"Payment method not supported: {method}",
                gateway=self.config.name,
                code="unsupported_method",
            )
        if not self.supports_currency(currency) or not self.is_amount_valid(
            amount, currency, method
        ):
            raise GatewayDeclinedError(
                f"Amount {amount} {currency} outside gateway limits",
                gateway=self.config.name,
                code="amount_out_of_range",
            )
        card_number = str((payment_data.get("card") or {}).get("number", "")).replace(" ", "")
        if self._declines_pending > 0 or card_number in DECLINED_TEST_CARDS:
            self._declines_pending = max(0, self._declines_pending - 1)
            raise GatewayDeclinedError(
                "Payment declined by issuer",
                gateway=self.config.name,
                code=self._decline_code,
            )

        transaction_id = self._new_id("txn")
        record = {
            "id": transaction_id,
            "status": self.status_paid if capture else self.status_authorized,
            "amount": amount,
            "currency": currency,
            "payment_method": method,
            "captured_amount": amount if capture else Decimal("0"),
            "refunded_amount": Decimal("0"),
            "reference": payment_data.get("payment_id"),
        }
        self._transactions[transaction_id] = record

        authorization_id = None
        if not capture:
            authorization_id = self._new_id("auth")
            self._authorizations[authorization_id] = transaction_id

        logger.debug(
            "Sandbox %s created transaction %s (%s)",
            self.config.name,
            transaction_id,
            record["status"],
        )
        return self._response(record, authorization_id=authorization_id)

    def _transaction_for_authorization(self, authorization_id: str) -> dict[str, Any]:
        transaction_id = self._authorizations.get(authorization_id)
        if transaction_id is None:
            raise GatewayDeclinedError(
                f"Authorization {authorization_id} not found",
                gateway=self.config.name,
                code="resource_missing",
            )
        return self._transactions[transaction_id]

    def _capture(self, authorization_id: str, amount: Decimal | None) -> GatewayResponse:
        record = self._transaction_for_authorization(authorization_id)
        if record["status"] != self.status_authorized:
            raise GatewayDeclinedError(
                f"Cannot capture transaction in status {record['status']}",
                gateway=self.config.name,
                code="invalid_state",
            )
        capture_amount = record["amount"] if amount is None else Decimal(str(amount))
        if capture_amount <= 0 or capture_amount > record["amount"]:
            raise GatewayDeclinedError(
                f"Capture amount {capture_amount} exceeds authorized {record['amount']}",
                gateway=self.config.name,
                code="amount_too_large",
            )
        record["status"] = self.status_captured
        record["captured_amount"] = capture_amount
        return self._response(record, authorization_id=authorization_id)

    def _cancel(self, authorization_id: str, reason: str) -> GatewayResponse:
        record = self._transaction_for_authorization(authorization_id)
        if record["status"] != self.status_authorized:
            raise GatewayDeclinedError(
                f"Cannot cancel transaction in status {record['status']}",
                gateway=self.config.name,
                code="invalid_state",
            )
        record["status"] = self.status_cancelled
        record["cancellation_reason"] = reason
        return self._response(record, authorization_id=authorization_id, message=reason)

    def _refund(self, transaction_id: str, amount: Decimal | None, reason: str) -> GatewayResponse:
        record = self._transactions.get(transaction_id)
        if record is None:
            raise GatewayDeclinedError(
                f"Transaction {transaction_id} not found",
                gateway=self.config.name,
                code="resource_missing",
            )
        available = record["captured_amount"] - record["refunded_amount"]
        refund_amount = available if amount is None else Decimal(str(amount))
        if refund_amount <= 0 or refund_amount > available:
            raise GatewayDeclinedError(
                f"Refund amount {refund_amount} exceeds available {available}",
                gateway=self.config.name,
                code="amount_too_large",
            )
        record["refunded_amount"] += refund_amount
        if record["refunded_amount"] >= record["captured_amount"]:
            record["status"] = self.status_refunded
        refund_id = self._new_id("re")
        return GatewayResponse(
            status="refunded",
            transaction_id=transaction_id,
            refund_id=refund_id,
            amount=refund_amount,
            message=reason,
            raw={"id": refund_id, "charge": transaction_id, "reason": reason},
        )

    def _status(self, transaction_id: str) -> GatewayResponse:
        record = self._transactions.get(transaction_id)
        if record is None:
            raise GatewayDeclinedError(
                f"Transaction {transaction_id} not found",
                gateway=self.config.name,
                code="resource_missing",
            )
        return self._response(record)

    def _response(
        self,
        record: dict[str, Any],
        authorization_id: str | None = None,
        message: str = "",
    ) -> GatewayResponse:
        native = record["status"]
        return GatewayResponse(
            status=self.status_map.get(native, "processing"),
            transaction_id=record["id"],
            authorization_id=authorization_id,
            amount=record["amount"],
            message=message or f"{self.provider_name} sandbox {native}",
            raw={
                "id": record["id"],
                "status": native,
                "amount": self.to_minor_units(record["amount"], record["currency"]),
                "currency": record["currency"],
                "payment_method": record["payment_method"],
            },
        )

    def _new_id(self, prefix: str) -> str:
        return f"{prefix}_{uuid.uuid4().hex[:24]}"

    # ------------------------------------------------------------------
    # Capability queries
    # ------------------------------------------------------------------

    def to_minor_units(self, amount: Decimal, currency: str) -> int:
        """Amount in the currency's smallest unit."""
        factor = 1 if currency.upper() in self.zero_decimal_currencies else 100
        return int((Decimal(str(amount)) * factor).quantize(Decimal("1"), rounding=ROUND_HALF_UP))

    def is_amount_valid(self, amount: Decimal, currency: str, method: str | None = None) -> bool:
        minor = self.to_minor_units(amount, currency)
        minimum = max(self.min_amount, self.method_minimums.get(method or "", 0))
        return minimum <= minor <= self.max_amount

    def supports_method(self, method: str) -> bool:
        return method in self.supported_methods

    def supports_currency(self, currency: str) -> bool:
        return currency.upper() in self.supported_currencies

    def get_supported_methods(self) -> list[str]:
        return list(self.supported_methods)

    def get_supported_currencies(self) -> list[str]:
        return list(self.supported_currencies)

    def get_transaction_limits(self) -> dict[str, int]:
        limits = {"min_amount": self.min_amount, "max_amount": self.max_amount}
        for method, minimum in self.method_minimums.items():
            limits[f"{method}_min"] = minimum
        return limits

    def calculate_fees(self, amount: Decimal, method: str) -> dict[str, Decimal]:
        """Provider fee estimate: percentage plus fixed part."""
        percentage, fixed = self.fees.get(method, (Decimal("0"), Decimal("0")))
        amount = Decimal(str(amount))
        percentage_fee = (amount * percentage / 100).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
        total = percentage_fee + fixed
        return {
            "percentage_fee": percentage_fee,
            "fixed_fee": fixed,
            "total_fee": total,
            "net_amount": amount - total,
        }

    def get_performance_metrics(self) -> dict[str, Any]:
        success_rate = (
            (self._requests - self._failed) / self._requests if self._requests else 1.0
        )
        return {
            "total_requests": self._requests,
            "failed_requests": self._failed,
            "success_rate": round(success_rate, 4),
            "average_response_time_ms": (
                round(self._total_ms / self._requests, 2) if self._requests else 0.0
            ),
        }

    def get_name(self) -> str:
        return self.provider_name

    def get_api_version(self) -> str:
        return self.api_version

    def is_active(self) -> bool:
        return self.config.enabled
