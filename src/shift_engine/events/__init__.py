"""Domain events emitted by the shift engine."""

from shift_engine.events.emitter import EventBatch, EventEmitter
from shift_engine.events.types import (
    ApplicationCancelled,
    ApplicationCompleted,
    ApplicationNoShow,
    ApplicationSubmitted,
    DomainEvent,
    EventCategory,
    EventMetadata,
    StandbyPromoted,
    WorkerCancellationRecorded,
    WorkerClockedIn,
    WorkerClockedOut,
)

__all__ = [
    "EventBatch",
    "EventEmitter",
    "ApplicationCancelled",
    "ApplicationCompleted",
    "ApplicationNoShow",
    "ApplicationSubmitted",
    "DomainEvent",
    "EventCategory",
    "EventMetadata",
    "StandbyPromoted",
    "WorkerCancellationRecorded",
    "WorkerClockedIn",
    "WorkerClockedOut",
]
