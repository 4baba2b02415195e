"""Domain event types for gateway orchestration.

All events are:
- Immutable (frozen dataclasses)
- Typed with explicit payloads
- Traceable via metadata
- Serializable for log shipping and metrics sinks

Events are observability output only. Nothing in the engine reads them back
to make a routing or lifecycle decision.
"""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID, uuid4


class EventCategory(str, Enum):
    """Event categories for routing and filtering."""

    GATEWAY = "gateway"
    RESILIENCE = "resilience"
    PAYMENT = "payment"


@dataclass(frozen=True)
class EventMetadata:
    """Metadata attached to every domain event."""

    event_id: UUID
    timestamp: datetime
    correlation_id: UUID
    source_service: str = "gateway_engine"
    version: int = 1

    @classmethod
    def create(cls, correlation_id: UUID | None = None) -> EventMetadata:
        """Create metadata with auto-generated fields."""
        return cls(
            event_id=uuid4(),
            timestamp=datetime.now(timezone.utc),
            correlation_id=correlation_id or uuid4(),
        )


@dataclass(frozen=True)
class DomainEvent:
    """Base class for all domain events."""

    metadata: EventMetadata = field(default_factory=EventMetadata.create, kw_only=True)

    @property
    def event_type(self) -> str:
        """Event type name for routing."""
        return self.__class__.__name__

    @property
    def category(self) -> EventCategory:
        """Event category for filtering."""
        raise NotImplementedError("Subclasses must define category")

    def to_dict(self) -> dict[str, Any]:
        """Serialize event to dictionary."""
        data = _serialize_dict(asdict(self))
        data["event_type"] = self.event_type
        data["category"] = self.category.value
        return data

    def to_json(self) -> str:
        """Serialize event to JSON string."""
        return json.dumps(self.to_dict(), default=str)


def _serialize_dict(obj: Any) -> Any:
    """Recursively serialize objects for JSON compatibility."""
    if isinstance(obj, dict):
        return {k: _serialize_dict(v) for k, v in obj.items()}
    elif isinstance(obj, (list, tuple)):
        return [_serialize_dict(v) for v in obj]
    elif isinstance(obj, UUID):
        return str(obj)
    elif isinstance(obj, datetime):
        return obj.isoformat()
    elif isinstance(obj, Decimal):
        return str(obj)
    elif isinstance(obj, Enum):
        return obj.value
    return obj


# =============================================================================
# Gateway Events
# =============================================================================


@dataclass(frozen=True)
class GatewaySelected(DomainEvent):
    """A gateway was chosen for an operation."""

    gateway: str
    strategy: str
    candidates: tuple[str, ...]
    preferred: bool = False

    @property
    def category(self) -> EventCategory:
        return EventCategory.GATEWAY


@dataclass(frozen=True)
class GatewayFailover(DomainEvent):
    """Processing moved from a failed gateway to another one."""

    from_gateway: str
    to_gateway: str
    failed_payment_id: str
    reason: str

    @property
    def category(self) -> EventCategory:
        return EventCategory.GATEWAY


@dataclass(frozen=True)
class GatewayHealthChecked(DomainEvent):
    """A gateway connectivity probe completed."""

    gateway: str
    healthy: bool
    response_time_ms: float | None
    error: str | None = None

    @property
    def category(self) -> EventCategory:
        return EventCategory.GATEWAY


# =============================================================================
# Resilience Events
# =============================================================================


@dataclass(frozen=True)
class GatewayRetryScheduled(DomainEvent):
    """A failed gateway call will be retried after a delay."""

    gateway: str | None
    operation: str
    attempt: int
    delay_seconds: float
    error: str

    @property
    def category(self) -> EventCategory:
        return EventCategory.RESILIENCE


@dataclass(frozen=True)
class CircuitStateChanged(DomainEvent):
    """A gateway's circuit breaker moved between states."""

    gateway: str
    from_state: str
    to_state: str
    failure_count: int

    @property
    def category(self) -> EventCategory:
        return EventCategory.RESILIENCE


# =============================================================================
# Payment Events
# =============================================================================


@dataclass(frozen=True)
class PaymentProcessed(DomainEvent):
    """A payment completed successfully at a gateway."""

    payment_id: str
    gateway: str
    status: str
    amount: Decimal
    currency: str

    @property
    def category(self) -> EventCategory:
        return EventCategory.PAYMENT


@dataclass(frozen=True)
class PaymentFailed(DomainEvent):
    """A payment attempt failed terminally at one gateway."""

    payment_id: str
    gateway: str
    reason: str
    error_kind: str

    @property
    def category(self) -> EventCategory:
        return EventCategory.PAYMENT


@dataclass(frozen=True)
class PaymentAuthorized(DomainEvent):
    """An authorization hold was placed."""

    payment_id: str
    gateway: str
    authorization_id: str | None
    amount: Decimal

    @property
    def category(self) -> EventCategory:
        return EventCategory.PAYMENT


@dataclass(frozen=True)
class PaymentCaptured(DomainEvent):
    """An authorization hold was captured."""

    payment_id: str
    gateway: str
    amount: Decimal

    @property
    def category(self) -> EventCategory:
        return EventCategory.PAYMENT


@dataclass(frozen=True)
class PaymentCancelled(DomainEvent):
    """An authorization hold was released."""

    payment_id: str
    gateway: str
    reason: str

    @property
    def category(self) -> EventCategory:
        return EventCategory.PAYMENT


@dataclass(frozen=True)
class PaymentRefunded(DomainEvent):
    """A refund was applied to a payment."""

    payment_id: str
    gateway: str
    refund_id: str
    amount: Decimal
    total_refunded: Decimal
    fully_refunded: bool

    @property
    def category(self) -> EventCategory:
        return EventCategory.PAYMENT


@dataclass(frozen=True)
class PaymentStatusReconciled(DomainEvent):
    """Local status was corrected from the gateway's view."""

    payment_id: str
    gateway: str
    from_status: str
    to_status: str

    @property
    def category(self) -> EventCategory:
        return EventCategory.PAYMENT
