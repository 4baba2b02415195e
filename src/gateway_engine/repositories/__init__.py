"""Payment storage."""

from gateway_engine.repositories.base import PaymentFilters, PaymentRepository
from gateway_engine.repositories.memory import InMemoryPaymentRepository
from gateway_engine.repositories.sql import SqlAlchemyPaymentRepository

__all__ = [
    "InMemoryPaymentRepository",
    "PaymentFilters",
    "PaymentRepository",
    "SqlAlchemyPaymentRepository",
]
