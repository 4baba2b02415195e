"""Domain events package.

This package provides:
- Typed domain events for gateway selection, resilience and payments
- Event emitter for publishing events to observability sinks
"""

from gateway_engine.events.emitter import EventEmitter, EventHandler, RecordingHandler
from gateway_engine.events.types import (
    # Base
    DomainEvent,
    EventCategory,
    EventMetadata,
    # Gateway Events
    GatewayFailover,
    GatewayHealthChecked,
    GatewaySelected,
    # Resilience Events
    CircuitStateChanged,
    GatewayRetryScheduled,
    # Payment Events
    PaymentAuthorized,
    PaymentCancelled,
    PaymentCaptured,
    PaymentFailed,
    PaymentProcessed,
    PaymentRefunded,
    PaymentStatusReconciled,
)

__all__ = [
    # Base
    "DomainEvent",
    "EventCategory",
    "EventMetadata",
    # Gateway Events
    "GatewayFailover",
    "GatewayHealthChecked",
    "GatewaySelected",
    # Resilience Events
    "CircuitStateChanged",
    "GatewayRetryScheduled",
    # Payment Events
    "PaymentAuthorized",
    "PaymentCancelled",
    "PaymentCaptured",
    "PaymentFailed",
    "PaymentProcessed",
    "PaymentRefunded",
    "PaymentStatusReconciled",
    # Emitter
    "EventEmitter",
    "EventHandler",
    "RecordingHandler",
]
