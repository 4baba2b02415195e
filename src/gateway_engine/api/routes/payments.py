"""Payment query endpoints."""

from datetime import datetime
from typing import Annotated, Any

from fastapi import APIRouter, Path, Query

from gateway_engine.api.dependencies import OrchestratorDep
from gateway_engine.api.schemas import ErrorResponse, PaymentStatisticsResponse

router = APIRouter(prefix="/payments", tags=["payments"])


@router.get(
    "/statistics",
    response_model=PaymentStatisticsResponse,
    responses={400: {"model": ErrorResponse}},
)
async def get_payment_statistics(
    orchestrator: OrchestratorDep,
    status_filter: Annotated[str | None, Query(alias="status")] = None,
    gateway: str | None = None,
    currency: str | None = None,
    created_from: datetime | None = None,
    created_to: datetime | None = None,
) -> PaymentStatisticsResponse:
    """Aggregate figures over payments matching the filters."""
    statistics = await orchestrator.get_statistics(
        {
            "status": status_filter,
            "gateway": gateway,
            "currency": currency,
            "created_from": created_from,
            "created_to": created_to,
        }
    )
    return PaymentStatisticsResponse(**statistics)


@router.get(
    "/{payment_id}",
    response_model=dict[str, Any],
    responses={404: {"model": ErrorResponse}},
)
async def get_payment(
    orchestrator: OrchestratorDep,
    payment_id: Annotated[str, Path(min_length=1, max_length=64)],
) -> dict[str, Any]:
    """One payment with its refunds."""
    payment = await orchestrator.get_payment(payment_id)
    return payment.to_dict()
