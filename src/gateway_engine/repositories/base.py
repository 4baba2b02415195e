"""Payment repository protocol and shared query types.

The orchestrator only talks to this interface; it never owns storage.
Every write bumps Payment.version. Status writes accept an expected
version and fail with PaymentStateError when another writer got there
first.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any, Mapping, Protocol, runtime_checkable

from gateway_engine.exceptions import ValidationError
from gateway_engine.models.payment import Payment, PaymentStatus, Refund


@dataclass(frozen=True)
class PaymentFilters:
    """Query filters for listing payments and computing statistics."""

    status: PaymentStatus | None = None
    gateway: str | None = None
    customer_id: str | None = None
    order_id: str | None = None
    currency: str | None = None
    created_from: datetime | None = None
    created_to: datetime | None = None
    limit: int | None = None
    offset: int = 0

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any] | None) -> PaymentFilters:
        if not data:
            return cls()
        known = set(cls.__dataclass_fields__)
        unknown = set(data) - known
        if unknown:
            raise ValidationError(f"Unknown payment filters: {sorted(unknown)}")
        values = {k: v for k, v in data.items() if v is not None}
        if "status" in values:
            try:
                values["status"] = PaymentStatus(values["status"])
            except ValueError:
                raise ValidationError(
                    f"Unknown payment status: {values['status']!r}", field="status"
                ) from None
        if "currency" in values:
            values["currency"] = str(values["currency"]).upper()
        return cls(**values)

    def matches(self, payment: Payment) -> bool:
        if self.status is not None and payment.status != self.status:
            return False
        if self.gateway is not None and payment.gateway != self.gateway:
            return False
        if self.customer_id is not None and payment.customer_id != self.customer_id:
            return False
        if self.order_id is not None and payment.order_id != self.order_id:
            return False
        if self.currency is not None and payment.currency != self.currency:
            return False
        if self.created_from is not None and payment.created_at < self.created_from:
            return False
        if self.created_to is not None and payment.created_at > self.created_to:
            return False
        return True


SUCCESS_STATUSES = frozenset(
    {PaymentStatus.AUTHORIZED, PaymentStatus.CAPTURED, PaymentStatus.PAID, PaymentStatus.REFUNDED}
)


def format_money(amount: Decimal) -> str:
    return str(amount.quantize(Decimal("0.01")))


def build_statistics(payments: list[Payment]) -> dict[str, Any]:
    """Aggregate figures over a list of payments."""
    by_status: dict[str, int] = {}
    by_gateway: dict[str, int] = {}
    total_amount = Decimal("0")
    total_refunded = Decimal("0")
    succeeded = 0
    for payment in payments:
        by_status[payment.status.value] = by_status.get(payment.status.value, 0) + 1
        by_gateway[payment.gateway] = by_gateway.get(payment.gateway, 0) + 1
        total_amount += payment.amount
        total_refunded += payment.total_refunded
        if payment.status in SUCCESS_STATUSES:
            succeeded += 1
    total = len(payments)
    return {
        "total_payments": total,
        "total_amount": format_money(total_amount),
        "total_refunded": format_money(total_refunded),
        "success_rate": round(succeeded / total, 4) if total else 0.0,
        "by_status": by_status,
        "by_gateway": by_gateway,
    }


@runtime_checkable
class PaymentRepository(Protocol):
    """Storage for payments and refunds."""

    async def create(self, payment: Payment) -> Payment:
        """Persist a new payment. Raises ValidationError on duplicate id."""
        ...

    async def find_by_id(self, payment_id: str) -> Payment | None:
        ...

    async def update_status(
        self,
        payment_id: str,
        status: PaymentStatus,
        gateway_data: dict[str, Any] | None = None,
        *,
        authorization_id: str | None = None,
        transaction_id: str | None = None,
        expected_version: int | None = None,
    ) -> Payment:
        """Set status, merging gateway data and identifiers when given."""
        ...

    async def update_gateway_data(self, payment_id: str, gateway_data: dict[str, Any]) -> Payment:
        ...

    async def mark_as_failed(
        self, payment_id: str, reason: str, gateway_data: dict[str, Any] | None = None
    ) -> Payment:
        ...

    async def mark_as_captured(
        self,
        payment_id: str,
        gateway_data: dict[str, Any] | None = None,
        captured_amount: Decimal | None = None,
    ) -> Payment:
        ...

    async def mark_as_cancelled(
        self, payment_id: str, reason: str = "", gateway_data: dict[str, Any] | None = None
    ) -> Payment:
        ...

    async def mark_as_refunded(self, payment_id: str) -> Payment:
        ...

    async def add_refund(self, refund: Refund) -> Refund:
        """Append a refund. Raises PaymentStateError if it would over-refund."""
        ...

    async def get_total_refunded(self, payment_id: str) -> Decimal:
        ...

    async def get_statistics(self, filters: PaymentFilters | None = None) -> dict[str, Any]:
        ...

    async def find_by_filters(self, filters: PaymentFilters | None = None) -> list[Payment]:
        """Matching payments, newest first."""
        ...
