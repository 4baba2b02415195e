"""Payment gateway adapters."""

from gateway_engine.gateways.base import GatewayAdapter, GatewayResponse
from gateway_engine.gateways.pagarme_sandbox import PagarMeSandboxGateway
from gateway_engine.gateways.registry import (
    GATEWAY_FACTORIES,
    GatewayRegistry,
    validate_factories,
)
from gateway_engine.gateways.sandbox import SandboxGateway
from gateway_engine.gateways.stripe_sandbox import StripeSandboxGateway

__all__ = [
    "GATEWAY_FACTORIES",
    "GatewayAdapter",
    "GatewayRegistry",
    "GatewayResponse",
    "PagarMeSandboxGateway",
    "SandboxGateway",
    "StripeSandboxGateway",
    "validate_factories",
]
