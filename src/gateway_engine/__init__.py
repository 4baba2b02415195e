"""Payment gateway orchestration engine.

Routes payment operations across interchangeable gateways with health
probing, circuit breaking, retries, load balancing and failover.
"""

from gateway_engine.config import (
    CircuitBreakerConfig,
    EngineConfig,
    HealthCheckConfig,
    LoadBalancingConfig,
    RetryPolicy,
    Strategy,
    create_sandbox_config,
)
from gateway_engine.engine import Engine, build_engine
from gateway_engine.models.gateway import GatewayConfig, GatewayKind, SelectionCriteria
from gateway_engine.models.payment import Payment, PaymentResult, PaymentStatus, Refund

__version__ = "0.1.0"

__all__ = [
    "CircuitBreakerConfig",
    "Engine",
    "EngineConfig",
    "GatewayConfig",
    "GatewayKind",
    "HealthCheckConfig",
    "LoadBalancingConfig",
    "Payment",
    "PaymentResult",
    "PaymentStatus",
    "Refund",
    "RetryPolicy",
    "SelectionCriteria",
    "Strategy",
    "build_engine",
    "create_sandbox_config",
]
