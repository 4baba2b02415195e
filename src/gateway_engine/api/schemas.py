"""Pydantic schemas for API responses."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel


class ErrorResponse(BaseModel):
    """Error payload returned for engine errors."""

    detail: str
    code: str
    context: dict[str, Any] = {}


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    timestamp: datetime
    database: str
    enabled_gateways: int


# ============================================================================
# Gateway schemas
# ============================================================================


class GatewayHealthResponse(BaseModel):
    """One gateway's probe result."""

    gateway: str
    healthy: bool
    response_time_ms: float | None = None
    error: str | None = None
    probed: bool
    checked_at: datetime
    circuit_state: str


class GatewayConfigResponse(BaseModel):
    """Gateway configuration without credential references."""

    name: str
    kind: str
    environment: str
    enabled: bool
    priority: int
    weight: int
    timeout_seconds: float
    max_retry_attempts: int
    health_check_enabled: bool


class GatewayDescription(BaseModel):
    """A gateway able to take payments right now."""

    name: str
    provider: str
    api_version: str
    supported_methods: list[str]
    supported_currencies: list[str]
    active: bool


class GatewaysStatusResponse(BaseModel):
    """Counts plus per-gateway details."""

    total_gateways: int
    enabled_gateways: int
    healthy_gateways: int
    strategy: str
    failover_enabled: bool
    gateways: dict[str, dict[str, Any]]


# ============================================================================
# Payment schemas
# ============================================================================


class PaymentStatisticsResponse(BaseModel):
    """Aggregate payment figures."""

    total_payments: int
    total_amount: str
    total_refunded: str
    success_rate: float
    by_status: dict[str, int]
    by_gateway: dict[str, int]
