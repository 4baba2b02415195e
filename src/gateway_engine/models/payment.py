"""Payment and refund domain types."""

from __future__ import annotations

import secrets
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any


class PaymentStatus(str, Enum):
    """Payment status values."""

    PROCESSING = "processing"
    AUTHORIZED = "authorized"
    CAPTURED = "captured"
    PAID = "paid"
    FAILED = "failed"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"
    ERROR = "error"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def generate_payment_id() -> str:
    return f"pay_{uuid.uuid4().hex[:16]}_{secrets.token_hex(4)}"


def generate_refund_id() -> str:
    return f"ref_{uuid.uuid4().hex[:16]}"


@dataclass
class Refund:
    """A refund applied to exactly one payment."""

    payment_id: str
    amount: Decimal
    reason: str = ""
    gateway_refund_id: str | None = None
    gateway_data: dict[str, Any] = field(default_factory=dict)
    refund_id: str = field(default_factory=generate_refund_id)
    created_at: datetime = field(default_factory=utcnow)


@dataclass
class Payment:
    """A payment as tracked by the repository.

    The orchestrator never keeps its own canonical copy; it reads through the
    repository, decides a transition, and writes it back.
    """

    payment_id: str
    status: PaymentStatus
    gateway: str
    amount: Decimal
    currency: str
    payment_method: str
    customer_id: str | None = None
    order_id: str | None = None
    authorization_id: str | None = None
    gateway_transaction_id: str | None = None
    captured_amount: Decimal | None = None
    gateway_data: dict[str, Any] = field(default_factory=dict)
    payment_data: dict[str, Any] = field(default_factory=dict)
    failure_reason: str | None = None
    refunds: list[Refund] = field(default_factory=list)
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)
    version: int = 1

    @property
    def total_refunded(self) -> Decimal:
        return sum((r.amount for r in self.refunds), Decimal("0"))

    @property
    def settled_amount(self) -> Decimal:
        """Amount actually taken: the captured amount after a partial capture."""
        return self.captured_amount if self.captured_amount is not None else self.amount

    @property
    def refundable_amount(self) -> Decimal:
        return self.settled_amount - self.total_refunded

    def to_dict(self) -> dict[str, Any]:
        return {
            "payment_id": self.payment_id,
            "status": self.status.value,
            "gateway": self.gateway,
            "amount": str(self.amount),
            "currency": self.currency,
            "payment_method": self.payment_method,
            "customer_id": self.customer_id,
            "order_id": self.order_id,
            "authorization_id": self.authorization_id,
            "gateway_transaction_id": self.gateway_transaction_id,
            "captured_amount": str(self.captured_amount) if self.captured_amount is not None else None,
            "failure_reason": self.failure_reason,
            "total_refunded": str(self.total_refunded),
            "refunds": [
                {
                    "refund_id": r.refund_id,
                    "amount": str(r.amount),
                    "reason": r.reason,
                    "gateway_refund_id": r.gateway_refund_id,
                    "created_at": r.created_at.isoformat(),
                }
                for r in self.refunds
            ],
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }


@dataclass(frozen=True)
class PaymentResult:
    """Outcome of an orchestrated payment operation."""

    payment_id: str
    gateway: str
    status: PaymentStatus
    response: dict[str, Any] = field(default_factory=dict)
    attempted_gateways: tuple[str, ...] = ()
    amount: Decimal | None = None
