"""Tests for payment state machine."""

import pytest

from gateway_engine.exceptions import PaymentStateError
from gateway_engine.models.payment import PaymentStatus
from gateway_engine.services.state_machine import PaymentStateMachine


class TestPaymentStateMachine:
    """Test state machine transitions."""

    def test_valid_transitions(self):
        """Test that valid transitions are allowed."""
        # processing → any gateway outcome
        for target in ("authorized", "captured", "paid", "failed", "error"):
            assert PaymentStateMachine.can_transition("processing", target) is True

        # authorized → captured / cancelled / failed
        assert PaymentStateMachine.can_transition("authorized", "captured") is True
        assert PaymentStateMachine.can_transition("authorized", "cancelled") is True
        assert PaymentStateMachine.can_transition("authorized", "failed") is True

        # captured / paid → refunded
        assert PaymentStateMachine.can_transition("captured", "refunded") is True
        assert PaymentStateMachine.can_transition("paid", "refunded") is True

    def test_invalid_transitions(self):
        """Test that invalid transitions are blocked."""
        # Can't refund before money moved
        assert PaymentStateMachine.can_transition("processing", "refunded") is False
        assert PaymentStateMachine.can_transition("authorized", "refunded") is False

        # Can't go backwards
        assert PaymentStateMachine.can_transition("captured", "authorized") is False
        assert PaymentStateMachine.can_transition("paid", "processing") is False

        # Captured money can't be cancelled
        assert PaymentStateMachine.can_transition("captured", "cancelled") is False

    @pytest.mark.parametrize("status", ["failed", "cancelled", "refunded", "error"])
    def test_terminal_statuses(self, status):
        """Terminal statuses allow no transition at all."""
        assert PaymentStateMachine.is_terminal(status) is True
        assert PaymentStateMachine.get_next_statuses(status) == []
        for target in PaymentStatus:
            assert PaymentStateMachine.can_transition(status, target) is False

    def test_validate_transition_raises(self):
        """Test that validate_transition raises for invalid transitions."""
        with pytest.raises(PaymentStateError) as exc_info:
            PaymentStateMachine.validate_transition("processing", "refunded", payment_id="pay_1")

        assert exc_info.value.from_status == "processing"
        assert exc_info.value.to_status == "refunded"
        assert exc_info.value.payment_id == "pay_1"

    def test_validate_transition_accepts_valid(self):
        PaymentStateMachine.validate_transition(PaymentStatus.AUTHORIZED, PaymentStatus.CAPTURED)

    def test_is_refundable(self):
        """Only settled payments can be refunded."""
        assert PaymentStateMachine.is_refundable("captured") is True
        assert PaymentStateMachine.is_refundable("paid") is True
        assert PaymentStateMachine.is_refundable("authorized") is False
        assert PaymentStateMachine.is_refundable("refunded") is False

    def test_get_next_statuses(self):
        """Test getting valid next statuses."""
        assert set(PaymentStateMachine.get_next_statuses("authorized")) == {
            PaymentStatus.CAPTURED,
            PaymentStatus.CANCELLED,
            PaymentStatus.FAILED,
        }
        assert PaymentStateMachine.get_next_statuses("captured") == [PaymentStatus.REFUNDED]

    def test_unknown_status_raises(self):
        with pytest.raises(ValueError):
            PaymentStateMachine.can_transition("settled", "refunded")
