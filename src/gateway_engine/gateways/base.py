"""Base protocol and types for payment gateway adapters.

All gateway adapters must implement the GatewayAdapter protocol. Remote
operations are coroutines; capability queries are plain methods because
they never leave the process.

Adapters report failures by raising:
    GatewayDeclinedError    definitive refusal, never retried
    GatewayOperationError   anything else that went wrong remotely
Any other exception is classified by exceptions.classify_error.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Protocol, runtime_checkable


@dataclass(frozen=True)
class GatewayResponse:
    """Normalized result of a gateway operation."""

    status: str  # processing/authorized/captured/paid/failed/cancelled/refunded
    transaction_id: str | None = None
    authorization_id: str | None = None
    refund_id: str | None = None
    amount: Decimal | None = None
    message: str = ""
    raw: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status,
            "transaction_id": self.transaction_id,
            "authorization_id": self.authorization_id,
            "refund_id": self.refund_id,
            "amount": str(self.amount) if self.amount is not None else None,
            "message": self.message,
            "raw": dict(self.raw),
        }


@runtime_checkable
class GatewayAdapter(Protocol):
    """Protocol for payment gateway adapters.

    Each provider has its own adapter implementing this protocol.
    The orchestrator uses these adapters without knowing provider details.
    """

    async def process_payment(self, payment_data: dict[str, Any]) -> GatewayResponse:
        """Authorize and capture in one step.

        Args:
            payment_data: Payment details including:
                - payment_id: str (engine id, used as idempotency key)
                - amount: Decimal
                - currency: str
                - payment_method: str
                - card: dict (card-based methods only)
                - customer_id / order_id: str | None

        Returns:
            GatewayResponse with status "paid" or "captured".
        """
        ...

    async def authorize_payment(self, payment_data: dict[str, Any]) -> GatewayResponse:
        """Place an authorization hold. Returns status "authorized"."""
        ...

    async def capture_payment(
        self, authorization_id: str, amount: Decimal | None = None
    ) -> GatewayResponse:
        """Capture an authorization hold, fully or partially."""
        ...

    async def cancel_payment(self, authorization_id: str, reason: str = "") -> GatewayResponse:
        """Release an authorization hold."""
        ...

    async def refund_payment(
        self, transaction_id: str, amount: Decimal | None = None, reason: str = ""
    ) -> GatewayResponse:
        """Refund a captured payment, fully or partially."""
        ...

    async def check_transaction_status(self, transaction_id: str) -> GatewayResponse:
        """Gateway's current view of a transaction."""
        ...

    async def test_connection(self) -> bool:
        """Connectivity probe used by health monitoring."""
        ...

    def get_performance_metrics(self) -> dict[str, Any]:
        """Adapter-side performance figures (response time, success rate)."""
        ...

    def supports_method(self, method: str) -> bool:
        ...

    def supports_currency(self, currency: str) -> bool:
        ...

    def is_amount_valid(
        self, amount: Decimal, currency: str, method: str | None = None
    ) -> bool:
        """Whether the amount is within the gateway's limits for a currency and method."""
        ...

    def get_supported_methods(self) -> list[str]:
        ...

    def get_supported_currencies(self) -> list[str]:
        ...

    def get_name(self) -> str:
        ...

    def get_api_version(self) -> str:
        ...

    def is_active(self) -> bool:
        ...
