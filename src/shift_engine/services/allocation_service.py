"""Transactional entry point for shift booking, cancellation and attendance.

Every public mutating operation runs as one unit of work:
1. Serialize on the shift occurrence (in-process lock + advisory lock)
2. Open a transaction and re-load everything it decides on
3. Apply capacity, application and audit changes
4. Commit, then publish the collected domain events

Concurrency conflicts are retried a bounded number of times with
exponential backoff. Nothing is published for a rolled-back attempt.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Awaitable, Callable, TypeVar
from uuid import UUID, uuid4

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm.exc import StaleDataError

from shift_engine.config import AllocationConfig
from shift_engine.events import (
    ApplicationCancelled,
    ApplicationCompleted,
    ApplicationNoShow,
    ApplicationSubmitted,
    EventBatch,
    EventEmitter,
    EventMetadata,
    StandbyPromoted,
    WorkerCancellationRecorded,
    WorkerClockedIn,
    WorkerClockedOut,
)
from shift_engine.models import (
    Application,
    ApplicationStatus,
    CancellationReason,
    Job,
    SeatKind,
    Shift,
    Worker,
    utcnow,
)
from shift_engine.services.attendance_service import AttendanceTracker
from shift_engine.services.capacity_service import CapacityService, CapacitySnapshot
from shift_engine.services.errors import (
    AllocationError,
    AlreadyTerminalError,
    CapacityInvariantError,
    ConcurrencyConflictError,
    DuplicateApplicationError,
    InvalidTransitionError,
    NotFoundError,
    NotUpcomingError,
    StorageError,
    ValidationError,
)
from shift_engine.services.lifecycle_service import ApplicationLifecycle
from shift_engine.services.locking_service import LockingService, occurrence_lock_key

logger = logging.getLogger(__name__)

R = TypeVar("R")

UnitOfWork = Callable[[AsyncSession, EventBatch], Awaitable[R]]


@dataclass(frozen=True)
class ApplyResult:
    application_id: UUID
    worker_id: UUID
    seat_kind: SeatKind


@dataclass(frozen=True)
class CancelResult:
    application_id: UUID
    penalty: Decimal
    label: str
    cancelled_at: datetime
    promoted_worker_id: UUID | None = None
    promoted_application_id: UUID | None = None


@dataclass(frozen=True)
class CompleteResult:
    application_id: UUID
    completed_at: datetime
    earned_amount: Decimal


class AllocationService:
    """Public entry point for booking and attendance operations.

    Operations:
    - apply: book a primary or standby seat
    - cancel: cancel with penalty, release the seat, promote a standby
    - activate_standby: backfill a free primary seat from the waitlist
    - clock_in / clock_out: attendance stamps
    - complete: close a clocked-out booking
    - mark_no_show / sweep_no_shows: close bookings with no clock-in
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        config: AllocationConfig | None = None,
        emitter: EventEmitter | None = None,
        locking: LockingService | None = None,
        clock: Callable[[], datetime] | None = None,
    ):
        self.session_factory = session_factory
        self.config = config or AllocationConfig()
        self.emitter = emitter or EventEmitter()
        self.locking = locking or LockingService(self.config.lock_timeout_seconds)
        self.clock = clock or utcnow

    # =========================================================================
    # Booking
    # =========================================================================

    async def apply(
        self,
        worker_id: UUID,
        shift_id: UUID,
        occurrence_date: date,
        want_standby: bool = False,
    ) -> ApplyResult:
        """Book a seat on a shift occurrence for a worker."""
        if worker_id is None or shift_id is None or occurrence_date is None:
            raise ValidationError("worker_id, shift_id and date are required")

        async def work(session: AsyncSession, batch: EventBatch) -> ApplyResult:
            worker = await _get_or_404(session, Worker, worker_id)
            shift = await _get_or_404(session, Shift, shift_id)
            capacity = CapacityService(session)
            occurrence = await capacity.get_occurrence(shift_id, occurrence_date)

            lifecycle = ApplicationLifecycle(session, capacity, self.config)
            application = await lifecycle.apply(
                worker, shift, occurrence, want_standby, self.clock()
            )

            batch.add(
                ApplicationSubmitted(
                    metadata=_metadata(worker_id, "worker"),
                    application_id=application.application_id,
                    worker_id=worker_id,
                    job_id=application.job_id,
                    shift_id=shift_id,
                    occurrence_date=occurrence_date,
                    seat_kind=application.seat_kind.value,
                )
            )
            return ApplyResult(
                application_id=application.application_id,
                worker_id=worker_id,
                seat_kind=application.seat_kind,
            )

        result = await self._execute("apply", occurrence_lock_key(shift_id, occurrence_date), work)
        logger.info(
            "Worker %s booked %s seat on shift %s (%s)",
            worker_id,
            result.seat_kind.value,
            shift_id,
            occurrence_date.isoformat(),
        )
        return result

    async def cancel(
        self,
        application_id: UUID,
        reason: CancellationReason | str,
        detail: str | None = None,
        evidence_ref: str | None = None,
    ) -> CancelResult:
        """Cancel a booking, charging the time-based penalty."""
        try:
            reason = CancellationReason(reason)
        except ValueError as e:
            raise ValidationError(f"Unknown cancellation reason {reason!r}") from e

        lock_key = await self._lock_key_for_application(application_id)

        async def work(session: AsyncSession, batch: EventBatch) -> CancelResult:
            application = await _get_or_404(session, Application, application_id)
            shift = await _get_or_404(session, Shift, application.shift_id)

            lifecycle = ApplicationLifecycle(session, config=self.config)
            outcome = await lifecycle.cancel(
                application,
                shift,
                reason,
                self.clock(),
                detail=detail,
                evidence_ref=evidence_ref,
            )

            correlation = uuid4()
            metadata = _metadata(application.worker_id, "worker", correlation)
            batch.add(
                ApplicationCancelled(
                    metadata=metadata,
                    application_id=application_id,
                    worker_id=application.worker_id,
                    shift_id=application.shift_id,
                    occurrence_date=application.occurrence_date,
                    seat_kind=outcome.released_seat.value,
                    reason=reason.value,
                    penalty=outcome.assessment.amount,
                    penalty_label=outcome.assessment.label,
                    cancelled_at=application.cancelled_at,
                )
            )
            batch.add(
                WorkerCancellationRecorded(
                    metadata=metadata,
                    worker_id=application.worker_id,
                    application_id=application_id,
                    cancellation_count=application.cancellation_count,
                    penalty=outcome.assessment.amount,
                    hours_before_start=outcome.assessment.hours_before_start,
                )
            )

            promoted = outcome.promoted
            if promoted is not None:
                batch.add(self._promotion_event(promoted, correlation))

            return CancelResult(
                application_id=application_id,
                penalty=outcome.assessment.amount,
                label=outcome.assessment.label,
                cancelled_at=application.cancelled_at,
                promoted_worker_id=promoted.worker_id if promoted else None,
                promoted_application_id=promoted.application_id if promoted else None,
            )

        result = await self._execute("cancel", lock_key, work)
        logger.info(
            "Application %s cancelled with penalty %s (%s)",
            application_id,
            result.penalty,
            result.label,
        )
        return result

    async def activate_standby(self, shift_id: UUID, occurrence_date: date) -> UUID | None:
        """Promote the earliest standby booking if a primary seat is free.

        Returns the promoted worker's id, or None.
        """

        async def work(session: AsyncSession, batch: EventBatch) -> UUID | None:
            capacity = CapacityService(session)
            occurrence = await capacity.get_occurrence(shift_id, occurrence_date)
            candidate = await capacity.promote_one_standby(occurrence.occurrence_id)
            if candidate is None:
                return None

            lifecycle = ApplicationLifecycle(session, capacity, self.config)
            promoted = await lifecycle.activate(candidate, self.clock())
            batch.add(self._promotion_event(promoted))
            return promoted.worker_id

        return await self._execute(
            "activate_standby", occurrence_lock_key(shift_id, occurrence_date), work
        )

    # =========================================================================
    # Attendance
    # =========================================================================

    async def clock_in(
        self,
        application_id: UUID,
        latitude: float,
        longitude: float,
        qr_token: str | None = None,
    ) -> datetime:
        """Record a clock-in at the job site."""
        if latitude is None or longitude is None:
            raise ValidationError("latitude and longitude are required")

        lock_key = await self._lock_key_for_application(application_id)

        async def work(session: AsyncSession, batch: EventBatch) -> datetime:
            application = await _get_or_404(session, Application, application_id)
            job = await _get_or_404(session, Job, application.job_id)

            tracker = AttendanceTracker(session, self.config)
            result = await tracker.clock_in(
                application, job, latitude, longitude, self.clock(), qr_token=qr_token
            )
            batch.add(
                WorkerClockedIn(
                    metadata=_metadata(application.worker_id, "worker"),
                    application_id=application_id,
                    worker_id=application.worker_id,
                    clock_in_time=result.clock_in_time,
                    distance_meters=result.distance_meters,
                )
            )
            return result.clock_in_time

        return await self._execute("clock_in", lock_key, work)

    async def clock_out(self, application_id: UUID) -> datetime:
        """Record a clock-out."""
        lock_key = await self._lock_key_for_application(application_id)

        async def work(session: AsyncSession, batch: EventBatch) -> datetime:
            application = await _get_or_404(session, Application, application_id)
            tracker = AttendanceTracker(session, self.config)
            clock_out_time = await tracker.clock_out(application, self.clock())
            batch.add(
                WorkerClockedOut(
                    metadata=_metadata(application.worker_id, "worker"),
                    application_id=application_id,
                    worker_id=application.worker_id,
                    clock_out_time=clock_out_time,
                )
            )
            return clock_out_time

        return await self._execute("clock_out", lock_key, work)

    async def complete(self, application_id: UUID) -> CompleteResult:
        """Mark a clocked-out booking completed."""
        lock_key = await self._lock_key_for_application(application_id)

        async def work(session: AsyncSession, batch: EventBatch) -> CompleteResult:
            application = await _get_or_404(session, Application, application_id)
            shift = await _get_or_404(session, Shift, application.shift_id)

            lifecycle = ApplicationLifecycle(session, config=self.config)
            await lifecycle.mark_completed(application, shift, self.clock())
            batch.add(
                ApplicationCompleted(
                    metadata=_metadata(None, "employer"),
                    application_id=application_id,
                    worker_id=application.worker_id,
                    completed_at=application.completed_at,
                    earned_amount=application.earned_amount,
                )
            )
            return CompleteResult(
                application_id=application_id,
                completed_at=application.completed_at,
                earned_amount=application.earned_amount,
            )

        return await self._execute("complete", lock_key, work)

    async def mark_no_show(
        self, application_id: UUID, now: datetime | None = None
    ) -> Application:
        """Close a booking whose shift started without a clock-in."""
        lock_key = await self._lock_key_for_application(application_id)

        async def work(session: AsyncSession, batch: EventBatch) -> Application:
            application = await _get_or_404(session, Application, application_id)
            shift = await _get_or_404(session, Shift, application.shift_id)

            lifecycle = ApplicationLifecycle(session, config=self.config)
            await lifecycle.mark_no_show(application, shift, now or self.clock())
            batch.add(
                ApplicationNoShow(
                    metadata=_metadata(None, "scheduler"),
                    application_id=application_id,
                    worker_id=application.worker_id,
                    shift_id=application.shift_id,
                    occurrence_date=application.occurrence_date,
                    penalty=application.penalty,
                )
            )
            return application

        return await self._execute("mark_no_show", lock_key, work)

    async def sweep_no_shows(self, now: datetime | None = None) -> list[UUID]:
        """Mark every overdue confirmed booking without a clock-in as a no-show.

        Intended to be called periodically by an external scheduler.
        Returns the ids that were marked. Bookings that moved on since the
        candidate query are skipped; storage failures and exhausted
        conflicts propagate and end the sweep.
        """
        now = now or self.clock()
        async with self.session_factory() as session:
            result = await session.execute(
                select(Application.application_id, Application.occurrence_date, Shift.start_time)
                .join(Shift, Shift.shift_id == Application.shift_id)
                .where(
                    Application.status == ApplicationStatus.UPCOMING.value,
                    Application.is_standby.is_(False),
                    Application.clock_in_time.is_(None),
                    Application.occurrence_date <= now.date(),
                )
            )
            candidates = [
                application_id
                for application_id, occurrence_date, start_time in result.all()
                if datetime.combine(occurrence_date, start_time) <= now
            ]

        marked: list[UUID] = []
        for application_id in candidates:
            try:
                await self.mark_no_show(application_id, now)
            except (
                AlreadyTerminalError,
                InvalidTransitionError,
                NotFoundError,
                NotUpcomingError,
            ) as e:
                # Clocked in or cancelled since the candidate query
                logger.info("Skipping no-show for %s: %s", application_id, e)
                continue
            marked.append(application_id)

        if marked:
            logger.info("Marked %d application(s) as no-show", len(marked))
        return marked

    # =========================================================================
    # Reads
    # =========================================================================

    async def availability(self, shift_id: UUID, occurrence_date: date) -> CapacitySnapshot:
        """Current seat counters for a shift occurrence."""
        async with self.session_factory() as session:
            capacity = CapacityService(session)
            occurrence = await capacity.get_occurrence(shift_id, occurrence_date)
            return await capacity.snapshot(occurrence.occurrence_id)

    async def get_application(self, application_id: UUID) -> Application:
        async with self.session_factory() as session:
            return await _get_or_404(session, Application, application_id)

    async def list_worker_applications(
        self,
        worker_id: UUID,
        status: ApplicationStatus | str | None = None,
    ) -> list[Application]:
        """A worker's bookings, newest first, optionally filtered by status."""
        query = select(Application).where(Application.worker_id == worker_id)
        if status is not None:
            try:
                status = ApplicationStatus(status)
            except ValueError as e:
                raise ValidationError(f"Unknown status {status!r}") from e
            query = query.where(Application.status == status.value)
        query = query.order_by(Application.applied_at.desc())

        async with self.session_factory() as session:
            result = await session.execute(query)
            return list(result.scalars().all())

    # =========================================================================
    # Unit of work
    # =========================================================================

    async def _execute(self, operation: str, lock_key: str, work: UnitOfWork[R]) -> R:
        """Run ``work`` in one serialized transaction, retrying conflicts."""
        attempts = self.config.max_attempts
        for attempt in range(1, attempts + 1):
            try:
                return await self._attempt(lock_key, work)
            except ConcurrencyConflictError:
                if attempt == attempts:
                    logger.warning(
                        "%s on %s gave up after %d attempts", operation, lock_key, attempts
                    )
                    raise
                delay = self.config.retry_backoff_seconds * (2 ** (attempt - 1))
                logger.warning(
                    "%s on %s hit a concurrency conflict (attempt %d/%d), retrying in %.3fs",
                    operation,
                    lock_key,
                    attempt,
                    attempts,
                    delay,
                )
                await asyncio.sleep(delay)
        raise AssertionError("unreachable")

    async def _attempt(self, lock_key: str, work: UnitOfWork[R]) -> R:
        try:
            with self.emitter.batch() as batch:
                async with self.locking.hold(lock_key):
                    async with self.session_factory() as session:
                        async with session.begin():
                            await self.locking.lock_in_transaction(session, lock_key)
                            result = await work(session, batch)
            return result
        except AllocationError:
            raise
        except IntegrityError as e:
            raise _translate_integrity_error(e) from e
        except StaleDataError as e:
            raise ConcurrencyConflictError(str(e)) from e
        except OperationalError as e:
            if _is_lock_contention(e):
                raise ConcurrencyConflictError(str(e.orig)) from e
            logger.exception("Storage failure on %s", lock_key)
            raise StorageError(str(e.orig)) from e
        except SQLAlchemyError as e:
            logger.exception("Storage failure on %s", lock_key)
            raise StorageError(str(e)) from e

    async def _lock_key_for_application(self, application_id: UUID) -> str:
        """Occurrence key of an application (shift and date never change)."""
        if application_id is None:
            raise ValidationError("application_id is required")
        async with self.session_factory() as session:
            result = await session.execute(
                select(Application.shift_id, Application.occurrence_date).where(
                    Application.application_id == application_id
                )
            )
            row = result.first()
        if row is None:
            raise NotFoundError("Application", application_id)
        return occurrence_lock_key(row.shift_id, row.occurrence_date)

    def _promotion_event(self, promoted: Application, correlation_id: UUID | None = None) -> StandbyPromoted:
        return StandbyPromoted(
            metadata=_metadata(None, "system", correlation_id),
            application_id=promoted.application_id,
            worker_id=promoted.worker_id,
            shift_id=promoted.shift_id,
            occurrence_date=promoted.occurrence_date,
        )


async def _get_or_404(session: AsyncSession, model: type, entity_id: UUID):
    entity = await session.get(model, entity_id)
    if entity is None:
        raise NotFoundError(model.__name__, entity_id)
    return entity


def _metadata(
    actor_id: UUID | None,
    actor_type: str,
    correlation_id: UUID | None = None,
) -> EventMetadata:
    return EventMetadata.create(
        correlation_id=correlation_id,
        actor_id=actor_id,
        actor_type=actor_type,
    )


def _translate_integrity_error(error: IntegrityError) -> AllocationError:
    message = str(error.orig)
    if "application_one_active_per_occurrence" in message or "application.worker_id" in message:
        return DuplicateApplicationError()
    if "shift_occurrence" in message:
        return CapacityInvariantError(message)
    return StorageError(message)


def _is_lock_contention(error: OperationalError) -> bool:
    message = str(error.orig).lower()
    return any(
        marker in message
        for marker in ("database is locked", "deadlock", "could not serialize", "lock timeout")
    )
