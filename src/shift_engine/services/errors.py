"""Domain errors raised by the allocation and attendance services.

Every error carries a stable machine-readable ``code`` and a human ``label``
so the HTTP layer can map it without inspecting message text. Guard failures
are client errors and never indicate corrupted state; CapacityInvariantError
is the exception and signals a programming or data bug.
"""

from __future__ import annotations

from typing import Any
from uuid import UUID


class AllocationError(Exception):
    """Base class for all shift engine domain errors."""

    code = "ALLOCATION_ERROR"
    label = "Allocation error"
    retryable = False

    def __init__(self, message: str | None = None, **context: Any):
        self.context = context
        super().__init__(message or self.label)

    def to_dict(self) -> dict[str, Any]:
        """Serialize for API responses."""
        return {"code": self.code, "detail": str(self), "label": self.label}


# ===== Input / lookup =====


class ValidationError(AllocationError):
    """Missing or malformed input, rejected before touching state."""

    code = "VALIDATION_ERROR"
    label = "Invalid request"


class NotFoundError(AllocationError):
    """Unknown worker, shift, occurrence or application."""

    code = "NOT_FOUND"
    label = "Not found"

    def __init__(self, entity: str, entity_id: Any):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} {entity_id} not found", entity=entity, entity_id=entity_id)


# ===== Booking guards =====


class ProfileIncompleteError(AllocationError):
    code = "PROFILE_INCOMPLETE"
    label = "Profile not completed. Please complete your profile first."


class DuplicateApplicationError(AllocationError):
    code = "DUPLICATE_APPLICATION"
    label = "You already hold a booking for this shift"


class NoVacancyError(AllocationError):
    code = "NO_VACANCY"
    label = "No vacancies available for this shift"


class AlreadyTerminalError(AllocationError):
    """The application is already completed, cancelled or a no-show."""

    code = "ALREADY_TERMINAL"
    label = "Application is already closed"

    def __init__(self, application_id: UUID, status: str):
        self.application_id = application_id
        self.status = status
        super().__init__(
            f"Application {application_id} is already {status}",
            application_id=application_id,
            status=status,
        )


class NotUpcomingError(AllocationError):
    code = "NOT_UPCOMING"
    label = "Application is not in upcoming status"


# ===== Attendance guards =====


class NotAppliedError(AllocationError):
    code = "NOT_APPLIED"
    label = "You have not applied for this shift"


class StandbyNotActivatedError(AllocationError):
    code = "STANDBY_NOT_ACTIVATED"
    label = "Standby booking has not been activated"


class AlreadyClockedInError(AllocationError):
    code = "ALREADY_CLOCKED_IN"
    label = "You have already clocked in"


class AlreadyClockedOutError(AllocationError):
    code = "ALREADY_CLOCKED_OUT"
    label = "You have already clocked out"


class NotClockedInError(AllocationError):
    code = "NOT_CLOCKED_IN"
    label = "You haven't clocked in yet"


class OutsideGeofenceError(AllocationError):
    """Clock-in position is too far from the job location."""

    code = "OUTSIDE_GEOFENCE"
    label = "You are too far from the job location"

    def __init__(self, distance_meters: float, radius_meters: float):
        self.distance_meters = distance_meters
        self.radius_meters = radius_meters
        super().__init__(
            f"Clock-in position is {distance_meters:.0f}m from the job location "
            f"(allowed {radius_meters:.0f}m)",
            distance_meters=distance_meters,
            radius_meters=radius_meters,
        )


class InvalidQRCodeError(AllocationError):
    code = "INVALID_QR_CODE"
    label = "QR code does not match this shift"


# ===== State machine =====


class InvalidTransitionError(AllocationError):
    """Raised when an invalid stage transition is attempted."""

    code = "INVALID_TRANSITION"
    label = "Invalid application transition"

    def __init__(self, from_stage: str, to_stage: str, reason: str | None = None):
        self.from_stage = from_stage
        self.to_stage = to_stage
        self.reason = reason
        msg = f"Invalid transition from '{from_stage}' to '{to_stage}'"
        if reason:
            msg += f": {reason}"
        super().__init__(msg, from_stage=from_stage, to_stage=to_stage)


# ===== Infrastructure =====


class ConcurrencyConflictError(AllocationError):
    """A concurrent writer won the race; safe to retry."""

    code = "CONCURRENCY_CONFLICT"
    label = "The shift is busy, please retry"
    retryable = True


class StorageError(AllocationError):
    """Unexpected persistence failure; the transaction was rolled back."""

    code = "STORAGE_ERROR"
    label = "Storage failure"


class CapacityInvariantError(AllocationError):
    """Seat counters disagree with the bookings that should hold them."""

    code = "CAPACITY_INVARIANT_VIOLATED"
    label = "Capacity ledger invariant violated"
