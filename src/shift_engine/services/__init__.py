"""Shift engine services."""

from shift_engine.services.allocation_service import (
    AllocationService,
    ApplyResult,
    CancelResult,
    CompleteResult,
)
from shift_engine.services.attendance_service import AttendanceTracker, qr_token_for
from shift_engine.services.capacity_service import CapacityService, CapacitySnapshot
from shift_engine.services.lifecycle_service import ApplicationLifecycle
from shift_engine.services.locking_service import LockingService, occurrence_lock_key
from shift_engine.services.state_machine import ApplicationStateMachine

__all__ = [
    "AllocationService",
    "ApplyResult",
    "CancelResult",
    "CompleteResult",
    "AttendanceTracker",
    "qr_token_for",
    "CapacityService",
    "CapacitySnapshot",
    "ApplicationLifecycle",
    "LockingService",
    "occurrence_lock_key",
    "ApplicationStateMachine",
]
