"""Gateway engine services."""

from gateway_engine.services.load_balancer import LoadBalancer
from gateway_engine.services.payment_orchestrator import AttemptResult, PaymentOrchestrator
from gateway_engine.services.state_machine import PaymentStateMachine

__all__ = [
    "AttemptResult",
    "LoadBalancer",
    "PaymentOrchestrator",
    "PaymentStateMachine",
]
