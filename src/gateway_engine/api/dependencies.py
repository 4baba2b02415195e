"""FastAPI dependencies for dependency injection."""

from typing import Annotated

from fastapi import Depends, HTTPException, Request, status

from gateway_engine.engine import Engine
from gateway_engine.services.payment_orchestrator import PaymentOrchestrator


def get_engine(request: Request) -> Engine:
    """Engine attached to the application at startup."""
    engine = getattr(request.app.state, "engine", None)
    if engine is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Engine is not initialized",
        )
    return engine


def get_orchestrator(engine: Annotated[Engine, Depends(get_engine)]) -> PaymentOrchestrator:
    return engine.orchestrator


# Type aliases for cleaner dependency injection
EngineDep = Annotated[Engine, Depends(get_engine)]
OrchestratorDep = Annotated[PaymentOrchestrator, Depends(get_orchestrator)]
