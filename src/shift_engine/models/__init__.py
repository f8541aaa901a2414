"""ORM models for the shift engine."""

from shift_engine.models.base import Base, TimestampMixin, utcnow
from shift_engine.models.catalog import Job, Shift, ShiftOccurrence, Worker
from shift_engine.models.application import Application, ApplicationAudit
from shift_engine.models.enums import (
    TERMINAL_STATUSES,
    ApplicationStage,
    ApplicationStatus,
    AppliedStatus,
    BreakType,
    CancellationReason,
    RateType,
    SeatKind,
)

__all__ = [
    "Base",
    "TimestampMixin",
    "utcnow",
    "Job",
    "Shift",
    "ShiftOccurrence",
    "Worker",
    "Application",
    "ApplicationAudit",
    "TERMINAL_STATUSES",
    "ApplicationStage",
    "ApplicationStatus",
    "AppliedStatus",
    "BreakType",
    "CancellationReason",
    "RateType",
    "SeatKind",
]
