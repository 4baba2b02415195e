"""Domain and persistence models."""

from gateway_engine.models.gateway import (
    GatewayConfig,
    GatewayKind,
    PerformanceMetrics,
    SelectionCriteria,
)
from gateway_engine.models.orm import Base, PaymentRecord, RefundRecord
from gateway_engine.models.payment import (
    Payment,
    PaymentResult,
    PaymentStatus,
    Refund,
)

__all__ = [
    "Base",
    "GatewayConfig",
    "GatewayKind",
    "Payment",
    "PaymentRecord",
    "PaymentResult",
    "PaymentStatus",
    "PerformanceMetrics",
    "Refund",
    "RefundRecord",
    "SelectionCriteria",
]
