"""API routes."""

from gateway_engine.api.routes.gateways import router as gateways_router
from gateway_engine.api.routes.health import router as health_router
from gateway_engine.api.routes.payments import router as payments_router

__all__ = ["gateways_router", "health_router", "payments_router"]
