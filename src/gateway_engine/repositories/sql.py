"""SQLAlchemy-backed payment repository.

Payments map to the ``payment`` table and refunds to ``payment_refund``.
PaymentRecord.version is the mapper's version_id_col, so any flush that
races another writer raises StaleDataError, surfaced here as
PaymentStateError.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any

from sqlalchemy import Select, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm.exc import StaleDataError

from gateway_engine.database import session_scope
from gateway_engine.exceptions import PaymentNotFoundError, PaymentStateError, ValidationError
from gateway_engine.models.orm import PaymentRecord, RefundRecord
from gateway_engine.models.payment import Payment, PaymentStatus, Refund, utcnow
from gateway_engine.repositories.base import SUCCESS_STATUSES, PaymentFilters, format_money

logger = logging.getLogger(__name__)


def _aware(value: datetime) -> datetime:
    # SQLite drops tzinfo on the way back.
    return value if value.tzinfo is not None else value.replace(tzinfo=timezone.utc)


def _to_refund(record: RefundRecord) -> Refund:
    return Refund(
        refund_id=record.refund_id,
        payment_id=record.payment_id,
        amount=Decimal(record.amount),
        reason=record.reason,
        gateway_refund_id=record.gateway_refund_id,
        gateway_data=dict(record.gateway_data or {}),
        created_at=_aware(record.created_at),
    )


def _to_payment(record: PaymentRecord) -> Payment:
    return Payment(
        payment_id=record.payment_id,
        status=PaymentStatus(record.status),
        gateway=record.gateway,
        amount=Decimal(record.amount),
        currency=record.currency,
        payment_method=record.payment_method,
        customer_id=record.customer_id,
        order_id=record.order_id,
        authorization_id=record.authorization_id,
        gateway_transaction_id=record.gateway_transaction_id,
        captured_amount=Decimal(record.captured_amount) if record.captured_amount is not None else None,
        gateway_data=dict(record.gateway_data or {}),
        payment_data=dict(record.payment_data or {}),
        failure_reason=record.failure_reason,
        refunds=[_to_refund(r) for r in record.refunds],
        created_at=_aware(record.created_at),
        updated_at=_aware(record.updated_at),
        version=record.version,
    )


def _apply_filters(stmt: Select[Any], filters: PaymentFilters) -> Select[Any]:
    if filters.status is not None:
        stmt = stmt.where(PaymentRecord.status == filters.status.value)
    if filters.gateway is not None:
        stmt = stmt.where(PaymentRecord.gateway == filters.gateway)
    if filters.customer_id is not None:
        stmt = stmt.where(PaymentRecord.customer_id == filters.customer_id)
    if filters.order_id is not None:
        stmt = stmt.where(PaymentRecord.order_id == filters.order_id)
    if filters.currency is not None:
        stmt = stmt.where(PaymentRecord.currency == filters.currency)
    if filters.created_from is not None:
        stmt = stmt.where(PaymentRecord.created_at >= filters.created_from)
    if filters.created_to is not None:
        stmt = stmt.where(PaymentRecord.created_at <= filters.created_to)
    return stmt


class SqlAlchemyPaymentRepository:
    """Async SQLAlchemy repository. One short transaction per call."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def _load(self, session: AsyncSession, payment_id: str) -> PaymentRecord:
        record = await session.get(PaymentRecord, payment_id)
        if record is None:
            raise PaymentNotFoundError(payment_id)
        return record

    async def create(self, payment: Payment) -> Payment:
        record = PaymentRecord(
            payment_id=payment.payment_id,
            status=payment.status.value,
            gateway=payment.gateway,
            amount=payment.amount,
            currency=payment.currency,
            payment_method=payment.payment_method,
            customer_id=payment.customer_id,
            order_id=payment.order_id,
            authorization_id=payment.authorization_id,
            gateway_transaction_id=payment.gateway_transaction_id,
            captured_amount=payment.captured_amount,
            gateway_data=dict(payment.gateway_data),
            payment_data=dict(payment.payment_data),
            failure_reason=payment.failure_reason,
            created_at=payment.created_at,
            updated_at=payment.updated_at,
            refunds=[],
        )
        try:
            async with session_scope(self._session_factory) as session:
                session.add(record)
                await session.flush()
                return _to_payment(record)
        except IntegrityError as e:
            raise ValidationError(
                f"Payment already exists: {payment.payment_id}", field="payment_id"
            ) from e

    async def find_by_id(self, payment_id: str) -> Payment | None:
        async with self._session_factory() as session:
            record = await session.get(PaymentRecord, payment_id)
            return _to_payment(record) if record is not None else None

    async def _write(
        self,
        payment_id: str,
        *,
        status: PaymentStatus | None = None,
        gateway_data: dict[str, Any] | None = None,
        authorization_id: str | None = None,
        transaction_id: str | None = None,
        failure_reason: str | None = None,
        captured_amount: Decimal | None = None,
        expected_version: int | None = None,
    ) -> Payment:
        try:
            async with session_scope(self._session_factory) as session:
                record = await self._load(session, payment_id)
                if expected_version is not None and record.version != expected_version:
                    raise PaymentStateError(
                        f"Payment {payment_id} was modified concurrently "
                        f"(expected version {expected_version}, found {record.version})",
                        payment_id=payment_id,
                        from_status=record.status,
                        to_status=status.value if status is not None else None,
                    )
                if status is not None:
                    record.status = PaymentStatus(status).value
                if gateway_data:
                    record.gateway_data = {**(record.gateway_data or {}), **gateway_data}
                if authorization_id is not None:
                    record.authorization_id = authorization_id
                if transaction_id is not None:
                    record.gateway_transaction_id = transaction_id
                if failure_reason is not None:
                    record.failure_reason = failure_reason
                if captured_amount is not None:
                    record.captured_amount = captured_amount
                record.updated_at = utcnow()
                await session.flush()
                return _to_payment(record)
        except StaleDataError as e:
            raise PaymentStateError(
                f"Payment {payment_id} was modified concurrently",
                payment_id=payment_id,
            ) from e

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
        return await self._write(
            payment_id,
            status=PaymentStatus(status),
            gateway_data=gateway_data,
            authorization_id=authorization_id,
            transaction_id=transaction_id,
            expected_version=expected_version,
        )

    async def update_gateway_data(self, payment_id: str, gateway_data: dict[str, Any]) -> Payment:
        return await self._write(payment_id, gateway_data=gateway_data)

    async def mark_as_failed(
        self, payment_id: str, reason: str, gateway_data: dict[str, Any] | None = None
    ) -> Payment:
        return await self._write(
            payment_id,
            status=PaymentStatus.FAILED,
            gateway_data=gateway_data,
            failure_reason=reason,
        )

    async def mark_as_captured(
        self,
        payment_id: str,
        gateway_data: dict[str, Any] | None = None,
        captured_amount: Decimal | None = None,
    ) -> Payment:
        return await self._write(
            payment_id,
            status=PaymentStatus.CAPTURED,
            gateway_data=gateway_data,
            captured_amount=captured_amount,
        )

    async def mark_as_cancelled(
        self, payment_id: str, reason: str = "", gateway_data: dict[str, Any] | None = None
    ) -> Payment:
        return await self._write(
            payment_id,
            status=PaymentStatus.CANCELLED,
            gateway_data={**(gateway_data or {}), "cancellation_reason": reason},
        )

    async def mark_as_refunded(self, payment_id: str) -> Payment:
        return await self._write(payment_id, status=PaymentStatus.REFUNDED)

    async def add_refund(self, refund: Refund) -> Refund:
        try:
            async with session_scope(self._session_factory) as session:
                record = await self._load(session, refund.payment_id)
                refunded = sum((Decimal(r.amount) for r in record.refunds), Decimal("0"))
                settled = record.captured_amount if record.captured_amount is not None else record.amount
                refundable = Decimal(settled) - refunded
                if refund.amount <= 0 or refund.amount > refundable:
                    raise PaymentStateError(
                        f"Refund of {refund.amount} exceeds refundable balance {refundable}",
                        payment_id=refund.payment_id,
                        from_status=record.status,
                    )
                refund_record = RefundRecord(
                    refund_id=refund.refund_id,
                    payment_id=refund.payment_id,
                    amount=refund.amount,
                    reason=refund.reason,
                    gateway_refund_id=refund.gateway_refund_id,
                    gateway_data=dict(refund.gateway_data),
                    created_at=refund.created_at,
                )
                record.refunds.append(refund_record)
                # Bumps the version so concurrent refunds conflict.
                record.updated_at = utcnow()
                await session.flush()
                return _to_refund(refund_record)
        except StaleDataError as e:
            raise PaymentStateError(
                f"Payment {refund.payment_id} was modified concurrently",
                payment_id=refund.payment_id,
            ) from e

    async def get_total_refunded(self, payment_id: str) -> Decimal:
        async with self._session_factory() as session:
            await self._load(session, payment_id)
            total = await session.scalar(
                select(func.coalesce(func.sum(RefundRecord.amount), 0)).where(
                    RefundRecord.payment_id == payment_id
                )
            )
            return Decimal(str(total))

    async def find_by_filters(self, filters: PaymentFilters | None = None) -> list[Payment]:
        filters = filters or PaymentFilters()
        stmt = _apply_filters(select(PaymentRecord), filters).order_by(
            PaymentRecord.created_at.desc()
        )
        if filters.offset:
            stmt = stmt.offset(filters.offset)
        if filters.limit is not None:
            stmt = stmt.limit(filters.limit)
        async with self._session_factory() as session:
            result = await session.scalars(stmt)
            return [_to_payment(record) for record in result.all()]

    async def get_statistics(self, filters: PaymentFilters | None = None) -> dict[str, Any]:
        filters = filters or PaymentFilters()
        async with self._session_factory() as session:
            by_status_rows = await session.execute(
                _apply_filters(
                    select(
                        PaymentRecord.status,
                        func.count(),
                        func.coalesce(func.sum(PaymentRecord.amount), 0),
                    ),
                    filters,
                ).group_by(PaymentRecord.status)
            )
            by_gateway_rows = await session.execute(
                _apply_filters(
                    select(PaymentRecord.gateway, func.count()), filters
                ).group_by(PaymentRecord.gateway)
            )
            filtered_ids = _apply_filters(select(PaymentRecord.payment_id), filters)
            total_refunded = await session.scalar(
                select(func.coalesce(func.sum(RefundRecord.amount), 0)).where(
                    RefundRecord.payment_id.in_(filtered_ids.scalar_subquery())
                )
            )

        by_status: dict[str, int] = {}
        total_amount = Decimal("0")
        for status, count, amount in by_status_rows.all():
            by_status[status] = count
            total_amount += Decimal(str(amount))
        by_gateway = {gateway: count for gateway, count in by_gateway_rows.all()}
        total = sum(by_status.values())
        succeeded = sum(by_status.get(s.value, 0) for s in SUCCESS_STATUSES)
        return {
            "total_payments": total,
            "total_amount": format_money(total_amount),
            "total_refunded": format_money(Decimal(str(total_refunded))),
            "success_rate": round(succeeded / total, 4) if total else 0.0,
            "by_status": by_status,
            "by_gateway": by_gateway,
        }
