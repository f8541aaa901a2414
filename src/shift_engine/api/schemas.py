"""Pydantic schemas for API request/response models."""

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from shift_engine.models.enums import ApplicationStage, CancellationReason


# ============================================================================
# Application schemas
# ============================================================================


class ApplyRequest(BaseModel):
    """Schema for booking a seat on a shift occurrence."""

    model_config = ConfigDict(populate_by_name=True)

    worker_id: UUID
    shift_id: UUID
    occurrence_date: date = Field(alias="date")
    is_standby: bool = False


class ApplyResponse(BaseModel):
    """Schema for a successful booking."""

    application_id: UUID
    worker_id: UUID
    seat_kind: str


class CancelRequest(BaseModel):
    """Schema for cancelling a booking."""

    reason: CancellationReason
    detail: str | None = Field(default=None, max_length=2000)
    evidence_ref: str | None = Field(default=None, max_length=500)


class CancelResponse(BaseModel):
    """Schema for cancellation outcome."""

    application_id: UUID
    penalty: Decimal
    label: str
    cancelled_at: datetime
    promoted_worker_id: UUID | None = None
    promoted_application_id: UUID | None = None


class ApplicationResponse(BaseModel):
    """Schema for application response."""

    model_config = ConfigDict(from_attributes=True)

    application_id: UUID
    worker_id: UUID
    job_id: UUID
    shift_id: UUID
    occurrence_date: date
    status: str
    applied_status: str
    stage: ApplicationStage
    is_standby: bool
    applied_as_standby: bool
    applied_at: datetime
    activated_at: datetime | None = None
    cancelled_at: datetime | None = None
    completed_at: datetime | None = None
    clock_in_time: datetime | None = None
    clock_out_time: datetime | None = None
    cancellation_reason: str | None = None
    penalty: Decimal
    penalty_label: str | None = None
    cancellation_count: int
    earned_amount: Decimal | None = None


class ApplicationListResponse(BaseModel):
    """Schema for listing a worker's applications."""

    items: list[ApplicationResponse]
    total: int


# ============================================================================
# Attendance schemas
# ============================================================================


class ClockInRequest(BaseModel):
    """Schema for clocking in at the job site."""

    latitude: float
    longitude: float
    qr_token: str | None = None


class ClockInResponse(BaseModel):
    application_id: UUID
    clock_in_time: datetime


class ClockOutResponse(BaseModel):
    application_id: UUID
    clock_out_time: datetime


class CompleteResponse(BaseModel):
    """Schema for a completed booking."""

    application_id: UUID
    completed_at: datetime
    earned_amount: Decimal


# ============================================================================
# Shift occurrence schemas
# ============================================================================


class AvailabilityResponse(BaseModel):
    """Seat counters for one shift occurrence."""

    model_config = ConfigDict(from_attributes=True)

    shift_id: UUID
    occurrence_date: date
    vacancy: int
    standby_vacancy: int
    filled_primary: int
    filled_standby: int
    available_primary: int
    available_standby: int
    is_fully_booked: bool
    slot_label: str


class ActivateStandbyResponse(BaseModel):
    promoted_worker_id: UUID | None = None


# ============================================================================
# Penalty schemas
# ============================================================================


class PenaltyRuleResponse(BaseModel):
    threshold_hours: Decimal | None = None
    penalty: Decimal
    label: str


class PenaltyTableResponse(BaseModel):
    """The cancellation penalty table."""

    version: str
    rules: list[PenaltyRuleResponse]


# ============================================================================
# Error schemas
# ============================================================================


class ErrorResponse(BaseModel):
    """Schema for error response."""

    detail: str
    code: str
    label: str | None = None
