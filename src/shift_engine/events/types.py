"""Domain event types for shift allocation and attendance.

All events are:
- Immutable (frozen dataclasses)
- Typed with explicit payloads
- Traceable via metadata
- Serializable for notification and reporting consumers

Events are emitted only after the unit of work that produced them commits.
"""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID, uuid4

from shift_engine.models.base import utcnow


class EventCategory(str, Enum):
    """Event categories for routing and filtering."""

    BOOKING = "booking"
    CANCELLATION = "cancellation"
    ATTENDANCE = "attendance"
    REPUTATION = "reputation"


@dataclass(frozen=True)
class EventMetadata:
    """Metadata attached to every domain event."""

    event_id: UUID
    timestamp: datetime
    correlation_id: UUID  # Links events produced by one operation
    actor_id: UUID | None
    actor_type: str  # 'worker', 'employer', 'system', 'scheduler'
    source_service: str = "shift_engine"
    version: int = 1

    @classmethod
    def create(
        cls,
        correlation_id: UUID | None = None,
        actor_id: UUID | None = None,
        actor_type: str = "system",
    ) -> EventMetadata:
        """Create metadata with auto-generated fields."""
        return cls(
            event_id=uuid4(),
            timestamp=utcnow(),
            correlation_id=correlation_id or uuid4(),
            actor_id=actor_id,
            actor_type=actor_type,
        )


@dataclass(frozen=True)
class DomainEvent:
    """Base class for all domain events."""

    metadata: EventMetadata

    @property
    def event_type(self) -> str:
        """Event type name for routing."""
        return self.__class__.__name__

    @property
    def category(self) -> EventCategory:
        """Event category for filtering."""
        raise NotImplementedError("Subclasses must define category")

    def to_dict(self) -> dict[str, Any]:
        """Serialize event to dictionary."""
        data = _serialize_dict(asdict(self))
        data["event_type"] = self.event_type
        data["category"] = self.category.value
        return data

    def to_json(self) -> str:
        """Serialize event to JSON string."""
        return json.dumps(self.to_dict(), default=str)


def _serialize_dict(obj: Any) -> Any:
    """Recursively serialize objects for JSON compatibility."""
    if isinstance(obj, dict):
        return {k: _serialize_dict(v) for k, v in obj.items()}
    elif isinstance(obj, list):
        return [_serialize_dict(v) for v in obj]
    elif isinstance(obj, UUID):
        return str(obj)
    elif isinstance(obj, (datetime, date)):
        return obj.isoformat()
    elif isinstance(obj, Decimal):
        return str(obj)
    elif isinstance(obj, Enum):
        return obj.value
    return obj


# =============================================================================
# Booking Events
# =============================================================================


@dataclass(frozen=True)
class ApplicationSubmitted(DomainEvent):
    """A worker booked a seat on a shift occurrence."""

    application_id: UUID
    worker_id: UUID
    job_id: UUID
    shift_id: UUID
    occurrence_date: date
    seat_kind: str

    @property
    def category(self) -> EventCategory:
        return EventCategory.BOOKING


@dataclass(frozen=True)
class StandbyPromoted(DomainEvent):
    """A standby booking took over a freed primary seat."""

    application_id: UUID
    worker_id: UUID
    shift_id: UUID
    occurrence_date: date

    @property
    def category(self) -> EventCategory:
        return EventCategory.BOOKING


# =============================================================================
# Cancellation Events
# =============================================================================


@dataclass(frozen=True)
class ApplicationCancelled(DomainEvent):
    """A booking was cancelled and its seat released."""

    application_id: UUID
    worker_id: UUID
    shift_id: UUID
    occurrence_date: date
    seat_kind: str
    reason: str
    penalty: Decimal
    penalty_label: str
    cancelled_at: datetime

    @property
    def category(self) -> EventCategory:
        return EventCategory.CANCELLATION


@dataclass(frozen=True)
class WorkerCancellationRecorded(DomainEvent):
    """Reputation signal: a worker's running cancellation count changed."""

    worker_id: UUID
    application_id: UUID
    cancellation_count: int
    penalty: Decimal
    hours_before_start: Decimal

    @property
    def category(self) -> EventCategory:
        return EventCategory.REPUTATION


# =============================================================================
# Attendance Events
# =============================================================================


@dataclass(frozen=True)
class WorkerClockedIn(DomainEvent):
    application_id: UUID
    worker_id: UUID
    clock_in_time: datetime
    distance_meters: float

    @property
    def category(self) -> EventCategory:
        return EventCategory.ATTENDANCE


@dataclass(frozen=True)
class WorkerClockedOut(DomainEvent):
    application_id: UUID
    worker_id: UUID
    clock_out_time: datetime

    @property
    def category(self) -> EventCategory:
        return EventCategory.ATTENDANCE


@dataclass(frozen=True)
class ApplicationCompleted(DomainEvent):
    """A clocked-out booking was marked completed."""

    application_id: UUID
    worker_id: UUID
    completed_at: datetime
    earned_amount: Decimal

    @property
    def category(self) -> EventCategory:
        return EventCategory.ATTENDANCE


@dataclass(frozen=True)
class ApplicationNoShow(DomainEvent):
    """A confirmed booking passed its start without a clock-in."""

    application_id: UUID
    worker_id: UUID
    shift_id: UUID
    occurrence_date: date
    penalty: Decimal

    @property
    def category(self) -> EventCategory:
        return EventCategory.REPUTATION
