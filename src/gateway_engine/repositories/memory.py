"""In-memory payment repository for development and tests."""

from __future__ import annotations

import copy
import threading
from decimal import Decimal
from typing import Any

from gateway_engine.exceptions import PaymentNotFoundError, PaymentStateError, ValidationError
from gateway_engine.models.payment import Payment, PaymentStatus, Refund, utcnow
from gateway_engine.repositories.base import PaymentFilters, build_statistics


class InMemoryPaymentRepository:
    """Dict-backed repository.

    Reads return copies, so callers never hold a reference into the store.
    """

    def __init__(self) -> None:
        self._payments: dict[str, Payment] = {}
        self._lock = threading.Lock()

    async def create(self, payment: Payment) -> Payment:
        with self._lock:
            if payment.payment_id in self._payments:
                raise ValidationError(
                    f"Payment already exists: {payment.payment_id}", field="payment_id"
                )
            self._payments[payment.payment_id] = copy.deepcopy(payment)
            return copy.deepcopy(payment)

    async def find_by_id(self, payment_id: str) -> Payment | None:
        with self._lock:
            payment = self._payments.get(payment_id)
            return copy.deepcopy(payment) if payment is not None else None

    def _get(self, payment_id: str) -> Payment:
        # Caller holds the lock.
        payment = self._payments.get(payment_id)
        if payment is None:
            raise PaymentNotFoundError(payment_id)
        return payment

    def _touch(self, payment: Payment) -> Payment:
        payment.version += 1
        payment.updated_at = utcnow()
        return copy.deepcopy(payment)

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
        with self._lock:
            payment = self._get(payment_id)
            if expected_version is not None and payment.version != expected_version:
                raise PaymentStateError(
                    f"Payment {payment_id} was modified concurrently "
                    f"(expected version {expected_version}, found {payment.version})",
                    payment_id=payment_id,
                    from_status=payment.status.value,
                    to_status=PaymentStatus(status).value,
                )
            payment.status = PaymentStatus(status)
            if gateway_data:
                payment.gateway_data = {**payment.gateway_data, **gateway_data}
            if authorization_id is not None:
                payment.authorization_id = authorization_id
            if transaction_id is not None:
                payment.gateway_transaction_id = transaction_id
            return self._touch(payment)

    async def update_gateway_data(self, payment_id: str, gateway_data: dict[str, Any]) -> Payment:
        with self._lock:
            payment = self._get(payment_id)
            payment.gateway_data = {**payment.gateway_data, **gateway_data}
            return self._touch(payment)

    async def mark_as_failed(
        self, payment_id: str, reason: str, gateway_data: dict[str, Any] | None = None
    ) -> Payment:
        with self._lock:
            payment = self._get(payment_id)
            payment.status = PaymentStatus.FAILED
            payment.failure_reason = reason
            if gateway_data:
                payment.gateway_data = {**payment.gateway_data, **gateway_data}
            return self._touch(payment)

    async def mark_as_captured(
        self,
        payment_id: str,
        gateway_data: dict[str, Any] | None = None,
        captured_amount: Decimal | None = None,
    ) -> Payment:
        with self._lock:
            payment = self._get(payment_id)
            payment.status = PaymentStatus.CAPTURED
            payment.captured_amount = captured_amount
            if gateway_data:
                payment.gateway_data = {**payment.gateway_data, **gateway_data}
            return self._touch(payment)

    async def mark_as_cancelled(
        self, payment_id: str, reason: str = "", gateway_data: dict[str, Any] | None = None
    ) -> Payment:
        data = {**(gateway_data or {}), "cancellation_reason": reason}
        return await self.update_status(payment_id, PaymentStatus.CANCELLED, data)

    async def mark_as_refunded(self, payment_id: str) -> Payment:
        return await self.update_status(payment_id, PaymentStatus.REFUNDED)

    async def add_refund(self, refund: Refund) -> Refund:
        with self._lock:
            payment = self._get(refund.payment_id)
            if refund.amount <= 0 or refund.amount > payment.refundable_amount:
                raise PaymentStateError(
                    f"Refund of {refund.amount} exceeds refundable balance "
                    f"{payment.refundable_amount}",
                    payment_id=payment.payment_id,
                    from_status=payment.status.value,
                )
            payment.refunds.append(copy.deepcopy(refund))
            self._touch(payment)
            return copy.deepcopy(refund)

    async def get_total_refunded(self, payment_id: str) -> Decimal:
        with self._lock:
            return self._get(payment_id).total_refunded

    async def find_by_filters(self, filters: PaymentFilters | None = None) -> list[Payment]:
        filters = filters or PaymentFilters()
        with self._lock:
            matching = [p for p in self._payments.values() if filters.matches(p)]
            matching.sort(key=lambda p: p.created_at, reverse=True)
            end = filters.offset + filters.limit if filters.limit is not None else None
            return [copy.deepcopy(p) for p in matching[filters.offset:end]]

    async def get_statistics(self, filters: PaymentFilters | None = None) -> dict[str, Any]:
        filters = filters or PaymentFilters()
        with self._lock:
            matching = [p for p in self._payments.values() if filters.matches(p)]
            return build_statistics(matching)
