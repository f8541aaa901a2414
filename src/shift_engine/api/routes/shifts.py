"""Shift occurrence and penalty table endpoints."""

from datetime import date
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Path

from shift_engine.api.dependencies import Allocation
from shift_engine.api.schemas import (
    ActivateStandbyResponse,
    AvailabilityResponse,
    ErrorResponse,
    PenaltyRuleResponse,
    PenaltyTableResponse,
)
from shift_engine.calculators.cancellation_policy import PENALTY_TABLE_VERSION, penalty_table

router = APIRouter(prefix="/shifts", tags=["shifts"])
penalties_router = APIRouter(tags=["penalties"])


@router.get(
    "/{shift_id}/occurrences/{occurrence_date}/availability",
    response_model=AvailabilityResponse,
    responses={404: {"model": ErrorResponse}},
)
async def get_availability(
    service: Allocation,
    shift_id: Annotated[UUID, Path()],
    occurrence_date: Annotated[date, Path()],
) -> AvailabilityResponse:
    """Seat counters and listing label for a shift occurrence."""
    snapshot = await service.availability(shift_id, occurrence_date)
    return AvailabilityResponse.model_validate(snapshot)


@router.post(
    "/{shift_id}/occurrences/{occurrence_date}/activate-standby",
    response_model=ActivateStandbyResponse,
    responses={404: {"model": ErrorResponse}},
)
async def activate_standby(
    service: Allocation,
    shift_id: Annotated[UUID, Path()],
    occurrence_date: Annotated[date, Path()],
) -> ActivateStandbyResponse:
    """Promote the earliest standby booking into a free primary seat."""
    worker_id = await service.activate_standby(shift_id, occurrence_date)
    return ActivateStandbyResponse(promoted_worker_id=worker_id)


@penalties_router.get("/penalties", response_model=PenaltyTableResponse)
async def get_penalty_table() -> PenaltyTableResponse:
    """The cancellation penalty table, highest threshold first."""
    return PenaltyTableResponse(
        version=PENALTY_TABLE_VERSION,
        rules=[PenaltyRuleResponse(**row) for row in penalty_table()],
    )
