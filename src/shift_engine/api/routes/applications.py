"""Application (booking) and attendance API endpoints."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Path, Query, status

from shift_engine.api.dependencies import Allocation
from shift_engine.api.schemas import (
    ApplicationListResponse,
    ApplicationResponse,
    ApplyRequest,
    ApplyResponse,
    CancelRequest,
    CancelResponse,
    ClockInRequest,
    ClockInResponse,
    ClockOutResponse,
    CompleteResponse,
    ErrorResponse,
)

router = APIRouter(tags=["applications"])


# ============================================================================
# Booking
# ============================================================================


@router.post(
    "/applications",
    response_model=ApplyResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        400: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
    },
)
async def apply_for_shift(service: Allocation, payload: ApplyRequest) -> ApplyResponse:
    """Book a primary seat, or a standby seat once the primary pool is full."""
    result = await service.apply(
        worker_id=payload.worker_id,
        shift_id=payload.shift_id,
        occurrence_date=payload.occurrence_date,
        want_standby=payload.is_standby,
    )
    return ApplyResponse(
        application_id=result.application_id,
        worker_id=result.worker_id,
        seat_kind=result.seat_kind.value,
    )


@router.post(
    "/applications/{application_id}/cancel",
    response_model=CancelResponse,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def cancel_application(
    service: Allocation,
    application_id: Annotated[UUID, Path()],
    payload: CancelRequest,
) -> CancelResponse:
    """Cancel a booking and report the assessed penalty."""
    result = await service.cancel(
        application_id,
        reason=payload.reason,
        detail=payload.detail,
        evidence_ref=payload.evidence_ref,
    )
    return CancelResponse(
        application_id=result.application_id,
        penalty=result.penalty,
        label=result.label,
        cancelled_at=result.cancelled_at,
        promoted_worker_id=result.promoted_worker_id,
        promoted_application_id=result.promoted_application_id,
    )


# ============================================================================
# Attendance
# ============================================================================


@router.post(
    "/applications/{application_id}/clock-in",
    response_model=ClockInResponse,
    responses={
        400: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
    },
)
async def clock_in(
    service: Allocation,
    application_id: Annotated[UUID, Path()],
    payload: ClockInRequest,
) -> ClockInResponse:
    """Clock in at the job site."""
    clock_in_time = await service.clock_in(
        application_id,
        latitude=payload.latitude,
        longitude=payload.longitude,
        qr_token=payload.qr_token,
    )
    return ClockInResponse(application_id=application_id, clock_in_time=clock_in_time)


@router.post(
    "/applications/{application_id}/clock-out",
    response_model=ClockOutResponse,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def clock_out(
    service: Allocation,
    application_id: Annotated[UUID, Path()],
) -> ClockOutResponse:
    """Clock out of the shift."""
    clock_out_time = await service.clock_out(application_id)
    return ClockOutResponse(application_id=application_id, clock_out_time=clock_out_time)


@router.post(
    "/applications/{application_id}/complete",
    response_model=CompleteResponse,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def complete_application(
    service: Allocation,
    application_id: Annotated[UUID, Path()],
) -> CompleteResponse:
    """Close a clocked-out booking and report the earned amount."""
    result = await service.complete(application_id)
    return CompleteResponse(
        application_id=result.application_id,
        completed_at=result.completed_at,
        earned_amount=result.earned_amount,
    )


@router.post(
    "/applications/{application_id}/no-show",
    response_model=ApplicationResponse,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def mark_no_show(
    service: Allocation,
    application_id: Annotated[UUID, Path()],
) -> ApplicationResponse:
    """Mark a booking whose shift started without a clock-in as a no-show."""
    application = await service.mark_no_show(application_id)
    return ApplicationResponse.model_validate(application)


# ============================================================================
# Reads
# ============================================================================


@router.get(
    "/applications/{application_id}",
    response_model=ApplicationResponse,
    responses={404: {"model": ErrorResponse}},
)
async def get_application(
    service: Allocation,
    application_id: Annotated[UUID, Path()],
) -> ApplicationResponse:
    """Get a specific application by ID."""
    application = await service.get_application(application_id)
    return ApplicationResponse.model_validate(application)


@router.get(
    "/workers/{worker_id}/applications",
    response_model=ApplicationListResponse,
    responses={422: {"model": ErrorResponse}},
)
async def list_worker_applications(
    service: Allocation,
    worker_id: Annotated[UUID, Path()],
    status_filter: Annotated[str | None, Query(alias="status")] = None,
) -> ApplicationListResponse:
    """List a worker's applications, newest first."""
    applications = await service.list_worker_applications(worker_id, status_filter)
    return ApplicationListResponse(
        items=[ApplicationResponse.model_validate(a) for a in applications],
        total=len(applications),
    )
