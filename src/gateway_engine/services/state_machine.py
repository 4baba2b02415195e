"""Payment lifecycle state machine with transition validation."""

from __future__ import annotations

from gateway_engine.exceptions import PaymentStateError
from gateway_engine.models.payment import PaymentStatus


class PaymentStateMachine:
    """State machine for payment status transitions.

    Allowed transitions:
    - processing → authorized | captured | paid | failed | error
    - authorized → captured | cancelled | failed
    - captured → refunded
    - paid → refunded

    Partial refunds leave captured/paid unchanged. failed, cancelled,
    refunded and error are terminal.
    """

    # Define valid transitions: {from_status: [allowed_to_statuses]}
    VALID_TRANSITIONS: dict[PaymentStatus, list[PaymentStatus]] = {
        PaymentStatus.PROCESSING: [
            PaymentStatus.AUTHORIZED,
            PaymentStatus.CAPTURED,
            PaymentStatus.PAID,
            PaymentStatus.FAILED,
            PaymentStatus.ERROR,
        ],
        PaymentStatus.AUTHORIZED: [
            PaymentStatus.CAPTURED,
            PaymentStatus.CANCELLED,
            PaymentStatus.FAILED,
        ],
        PaymentStatus.CAPTURED: [PaymentStatus.REFUNDED],
        PaymentStatus.PAID: [PaymentStatus.REFUNDED],
        PaymentStatus.FAILED: [],  # Terminal states
        PaymentStatus.CANCELLED: [],
        PaymentStatus.REFUNDED: [],
        PaymentStatus.ERROR: [],
    }

    # Statuses holding money that can be refunded
    REFUNDABLE = {PaymentStatus.CAPTURED, PaymentStatus.PAID}

    # Statuses a successful process/authorize call may land in
    SUCCESSFUL_OUTCOMES = {
        PaymentStatus.AUTHORIZED,
        PaymentStatus.CAPTURED,
        PaymentStatus.PAID,
    }

    @classmethod
    def can_transition(cls, from_status: PaymentStatus, to_status: PaymentStatus) -> bool:
        """Check if a transition is valid."""
        allowed = cls.VALID_TRANSITIONS.get(PaymentStatus(from_status), [])
        return PaymentStatus(to_status) in allowed

    @classmethod
    def validate_transition(
        cls,
        from_status: PaymentStatus,
        to_status: PaymentStatus,
        payment_id: str | None = None,
    ) -> None:
        """Validate a transition, raising PaymentStateError if invalid."""
        if not cls.can_transition(from_status, to_status):
            raise PaymentStateError(
                f"Invalid transition from '{PaymentStatus(from_status).value}' "
                f"to '{PaymentStatus(to_status).value}'",
                payment_id=payment_id,
                from_status=PaymentStatus(from_status).value,
                to_status=PaymentStatus(to_status).value,
            )

    @classmethod
    def is_terminal(cls, status: PaymentStatus) -> bool:
        return not cls.VALID_TRANSITIONS.get(PaymentStatus(status))

    @classmethod
    def is_refundable(cls, status: PaymentStatus) -> bool:
        return PaymentStatus(status) in cls.REFUNDABLE

    @classmethod
    def get_next_statuses(cls, current_status: PaymentStatus) -> list[PaymentStatus]:
        """Get list of valid next statuses from current status."""
        return list(cls.VALID_TRANSITIONS.get(PaymentStatus(current_status), []))
