"""Gateway status and administration endpoints."""

from decimal import Decimal
from typing import Annotated

from fastapi import APIRouter, Path, Query
from fastapi.responses import PlainTextResponse

from gateway_engine.api.dependencies import EngineDep, OrchestratorDep
from gateway_engine.api.schemas import (
    ErrorResponse,
    GatewayConfigResponse,
    GatewayDescription,
    GatewayHealthResponse,
    GatewaysStatusResponse,
)
from gateway_engine.models.gateway import SelectionCriteria

router = APIRouter(prefix="/gateways", tags=["gateways"])

GatewayName = Annotated[str, Path(min_length=1, max_length=64)]


@router.get("", response_model=GatewaysStatusResponse)
async def get_gateways_status(orchestrator: OrchestratorDep) -> GatewaysStatusResponse:
    """Counts and per-gateway config, health, circuit and metrics."""
    return GatewaysStatusResponse(**await orchestrator.get_gateways_status())


@router.get("/available", response_model=list[GatewayDescription])
async def get_available_gateways(
    orchestrator: OrchestratorDep,
    payment_method: str | None = None,
    currency: Annotated[str | None, Query(min_length=3, max_length=3)] = None,
    amount: Annotated[Decimal | None, Query(gt=0)] = None,
) -> list[GatewayDescription]:
    """Gateways able to take a payment matching the given criteria now."""
    criteria = SelectionCriteria(
        payment_method=payment_method,
        currency=currency.upper() if currency else None,
        amount=amount,
    )
    return [
        GatewayDescription(**description)
        for description in await orchestrator.get_available_gateways(criteria)
    ]


@router.get(
    "/{name}/health",
    response_model=GatewayHealthResponse,
    responses={404: {"model": ErrorResponse}},
)
async def get_gateway_health(
    engine: EngineDep,
    name: GatewayName,
    force: bool = False,
) -> GatewayHealthResponse:
    """Probe one gateway, or return its cached health."""
    health = await engine.health.check_health(name, force=force)
    return GatewayHealthResponse(
        **health.to_dict(),
        circuit_state=engine.breaker.get_state(name).state.value,
    )


@router.post(
    "/{name}/enable",
    response_model=GatewayConfigResponse,
    responses={404: {"model": ErrorResponse}},
)
async def enable_gateway(engine: EngineDep, name: GatewayName) -> GatewayConfigResponse:
    """Put a gateway back into rotation."""
    return GatewayConfigResponse(**engine.registry.enable(name).public_view())


@router.post(
    "/{name}/disable",
    response_model=GatewayConfigResponse,
    responses={404: {"model": ErrorResponse}},
)
async def disable_gateway(engine: EngineDep, name: GatewayName) -> GatewayConfigResponse:
    """Take a gateway out of rotation."""
    return GatewayConfigResponse(**engine.registry.disable(name).public_view())


@router.post(
    "/{name}/circuit/reset",
    response_model=dict[str, object],
    responses={404: {"model": ErrorResponse}},
)
async def reset_circuit(engine: EngineDep, name: GatewayName) -> dict[str, object]:
    """Force a gateway's circuit closed."""
    engine.registry.get_config(name)
    engine.breaker.reset(name)
    return engine.breaker.get_state(name).to_dict()


@router.get("/metrics", response_class=PlainTextResponse)
async def get_metrics(engine: EngineDep) -> str:
    """Per-gateway performance in Prometheus text format."""
    return engine.performance.to_prometheus()
