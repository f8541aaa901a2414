"""Enumerations shared by the ORM models and services."""

from __future__ import annotations

from enum import Enum


class ApplicationStatus(str, Enum):
    """Canonical persisted status of an application."""

    UPCOMING = "upcoming"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    NO_SHOW = "no_show"


class AppliedStatus(str, Enum):
    """Booking flag kept alongside the status for worker-facing listings."""

    APPLIED = "applied"
    CANCELLED = "cancelled"


class ApplicationStage(str, Enum):
    """Lifecycle stage derived from status, seat and clock stamps."""

    APPLIED = "applied"
    STANDBY = "standby"
    ACTIVATED = "activated"
    CLOCKED_IN = "clocked_in"
    CLOCKED_OUT = "clocked_out"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    NO_SHOW = "no_show"


class SeatKind(str, Enum):
    """Which capacity pool a booking occupies."""

    PRIMARY = "primary"
    STANDBY = "standby"


class CancellationReason(str, Enum):
    """Reasons a worker may give when cancelling."""

    MEDICAL = "medical"
    EMERGENCY = "emergency"
    PERSONAL_REASON = "personal_reason"
    TRANSPORT_ISSUE = "transport_issue"
    OTHER = "other"


class RateType(str, Enum):
    """How a shift's pay rate is applied."""

    FLAT = "flat"
    HOURLY = "hourly"


class BreakType(str, Enum):
    """Whether break hours are paid."""

    PAID = "paid"
    UNPAID = "unpaid"


# Plain string values so raw column values can be tested for membership
TERMINAL_STATUSES = frozenset(
    {
        ApplicationStatus.COMPLETED.value,
        ApplicationStatus.CANCELLED.value,
        ApplicationStatus.NO_SHOW.value,
    }
)
