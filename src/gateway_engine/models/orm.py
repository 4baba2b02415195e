"""SQLAlchemy ORM tables backing the SQL payment repository."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any

from sqlalchemy import (
    JSON,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    type_annotation_map = {
        datetime: DateTime(timezone=True),
        dict[str, Any]: JSON,
    }

    def to_dict(self) -> dict[str, Any]:
        """Convert model to dictionary."""
        return {c.name: getattr(self, c.name) for c in self.__table__.columns}


class TimestampMixin:
    """Mixin for models with created_at timestamp."""

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )


class PaymentRecord(Base, TimestampMixin):
    """Persisted payment."""

    __tablename__ = "payment"

    payment_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    status: Mapped[str] = mapped_column(String(16), nullable=False, index=True)
    gateway: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    amount: Mapped[Decimal] = mapped_column(Numeric(14, 4), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False)
    payment_method: Mapped[str] = mapped_column(String(32), nullable=False)
    customer_id: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)
    order_id: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)
    authorization_id: Mapped[str | None] = mapped_column(String(128), nullable=True)
    gateway_transaction_id: Mapped[str | None] = mapped_column(String(128), nullable=True)
    captured_amount: Mapped[Decimal | None] = mapped_column(Numeric(14, 4), nullable=True)
    gateway_data: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    payment_data: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    failure_reason: Mapped[str | None] = mapped_column(String, nullable=True)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        CheckConstraint(
            "status IN ('processing', 'authorized', 'captured', 'paid', "
            "'failed', 'cancelled', 'refunded', 'error')",
            name="payment_status_check",
        ),
        CheckConstraint("amount > 0", name="payment_amount_positive"),
    )

    refunds: Mapped[list[RefundRecord]] = relationship(
        back_populates="payment",
        order_by="RefundRecord.created_at",
        lazy="selectin",
    )


class RefundRecord(Base, TimestampMixin):
    """Persisted refund, always attached to one payment."""

    __tablename__ = "payment_refund"

    refund_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    payment_id: Mapped[str] = mapped_column(
        String(64),
        ForeignKey("payment.payment_id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    amount: Mapped[Decimal] = mapped_column(Numeric(14, 4), nullable=False)
    reason: Mapped[str] = mapped_column(String, nullable=False, default="")
    gateway_refund_id: Mapped[str | None] = mapped_column(String(128), nullable=True)
    gateway_data: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)

    __table_args__ = (CheckConstraint("amount > 0", name="payment_refund_amount_positive"),)

    payment: Mapped[PaymentRecord] = relationship(back_populates="refunds")
