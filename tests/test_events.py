"""Tests for domain events and the emitter."""

import json
from decimal import Decimal

from gateway_engine.events import (
    CircuitStateChanged,
    EventCategory,
    EventEmitter,
    GatewaySelected,
    PaymentProcessed,
    PaymentRefunded,
    RecordingHandler,
)


def processed(**overrides) -> PaymentProcessed:
    values = {
        "payment_id": "pay_1",
        "gateway": "stripe",
        "status": "captured",
        "amount": Decimal("10.00"),
        "currency": "USD",
    }
    values.update(overrides)
    return PaymentProcessed(**values)


class TestDomainEvents:
    """Event payloads and serialization."""

    def test_categories(self):
        assert GatewaySelected(gateway="a", strategy="round_robin", candidates=("a",)).category is (
            EventCategory.GATEWAY
        )
        assert CircuitStateChanged(
            gateway="a", from_state="closed", to_state="open", failure_count=5
        ).category is EventCategory.RESILIENCE
        assert processed().category is EventCategory.PAYMENT

    def test_to_dict_serializes_values(self):
        data = processed().to_dict()

        assert data["event_type"] == "PaymentProcessed"
        assert data["category"] == "payment"
        assert data["amount"] == "10.00"
        assert isinstance(data["metadata"]["event_id"], str)
        assert data["metadata"]["source_service"] == "gateway_engine"

    def test_to_json_round_trips_through_json(self):
        event = PaymentRefunded(
            payment_id="pay_1",
            gateway="stripe",
            refund_id="ref_1",
            amount=Decimal("4.00"),
            total_refunded=Decimal("4.00"),
            fully_refunded=False,
        )

        loaded = json.loads(event.to_json())

        assert loaded["total_refunded"] == "4.00"
        assert loaded["fully_refunded"] is False

    def test_every_event_gets_unique_metadata(self):
        assert processed().metadata.event_id != processed().metadata.event_id


class TestEventEmitter:
    """Handler registration and isolation."""

    def test_type_filter(self):
        emitter = EventEmitter()
        handler = RecordingHandler()
        emitter.on(PaymentProcessed, handler)

        emitter.emit(processed())
        emitter.emit(GatewaySelected(gateway="a", strategy="random", candidates=("a",)))

        assert [e.event_type for e in handler.events] == ["PaymentProcessed"]

    def test_category_filter(self):
        emitter = EventEmitter()
        handler = RecordingHandler()
        emitter.on_category(EventCategory.GATEWAY, handler)

        emitter.emit(processed())
        emitter.emit(GatewaySelected(gateway="a", strategy="random", candidates=("a",)))

        assert [e.event_type for e in handler.events] == ["GatewaySelected"]

    def test_failing_handler_is_isolated(self):
        emitter = EventEmitter()
        handler = RecordingHandler()

        def broken(event):
            raise RuntimeError("sink down")

        emitter.on_all(broken)
        emitter.on_all(handler)

        errors = emitter.emit(processed())

        assert len(errors) == 1
        assert len(handler.events) == 1

    def test_off(self):
        emitter = EventEmitter()
        handler = RecordingHandler()
        emitter.on_all(handler)
        emitter.off(handler)

        emitter.emit(processed())

        assert handler.events == []
