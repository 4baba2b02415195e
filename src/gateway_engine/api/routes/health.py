"""Health check endpoints."""

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, status

from gateway_engine.api.dependencies import EngineDep
from gateway_engine.api.schemas import HealthResponse
from gateway_engine.repositories.base import PaymentFilters

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


@router.get(
    "/health",
    response_model=HealthResponse,
    status_code=status.HTTP_200_OK,
)
async def health_check(engine: EngineDep) -> HealthResponse:
    """Check API and payment storage health."""
    db_status = "unhealthy"
    try:
        await engine.repository.find_by_filters(PaymentFilters(limit=1))
        db_status = "healthy"
    except Exception:
        logger.exception("Payment repository health check failed")

    return HealthResponse(
        status="healthy" if db_status == "healthy" else "degraded",
        timestamp=datetime.now(timezone.utc),
        database=db_status,
        enabled_gateways=len(engine.registry.enabled_names()),
    )


@router.get("/ready", status_code=status.HTTP_200_OK)
async def readiness_check() -> dict[str, str]:
    """Readiness check for container orchestration."""
    return {"status": "ready"}


@router.get("/live", status_code=status.HTTP_200_OK)
async def liveness_check() -> dict[str, str]:
    """Liveness check for container orchestration."""
    return {"status": "alive"}
