"""Application lifecycle: booking, cancellation, activation and completion."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from shift_engine.calculators.cancellation_policy import (
    NO_SHOW_RULE,
    PenaltyAssessment,
    penalty_for,
)
from shift_engine.calculators.wage_calculator import earned_amount
from shift_engine.config import AllocationConfig
from shift_engine.models import (
    Application,
    ApplicationAudit,
    ApplicationStage,
    ApplicationStatus,
    AppliedStatus,
    CancellationReason,
    SeatKind,
    Shift,
    ShiftOccurrence,
    Worker,
)
from shift_engine.services.capacity_service import CapacityService
from shift_engine.services.errors import (
    AlreadyTerminalError,
    DuplicateApplicationError,
    NotUpcomingError,
    ProfileIncompleteError,
)
from shift_engine.services.state_machine import ApplicationStateMachine

logger = logging.getLogger(__name__)

_workers = Worker.__table__


@dataclass(frozen=True)
class CancellationOutcome:
    """What a cancellation changed."""

    application: Application
    assessment: PenaltyAssessment
    released_seat: SeatKind
    promoted: Application | None


async def record_audit(
    session: AsyncSession,
    application: Application,
    action: str,
    from_stage: ApplicationStage | None,
    to_stage: ApplicationStage,
    details: dict[str, Any] | None = None,
) -> ApplicationAudit:
    """Append an audit row for an application transition."""
    audit = ApplicationAudit(
        application_id=application.application_id,
        action=action,
        from_stage=from_stage.value if from_stage is not None else None,
        to_stage=to_stage.value,
        details_json=details,
    )
    session.add(audit)
    return audit


class ApplicationLifecycle:
    """State transitions for a single worker's booking.

    Operations:
    - apply: reserve a seat and create the application
    - cancel: assess the penalty, release the seat, promote a standby
    - activate: turn a promoted standby booking into a primary one
    - mark_completed: close a clocked-out booking and compute earnings
    - mark_no_show: close a booking whose shift started without a clock-in

    Seat counters change only through CapacityService. Completion and
    no-show leave the counters alone: the seat was consumed by that
    occurrence and stays counted toward its fill rate.
    """

    def __init__(
        self,
        session: AsyncSession,
        capacity: CapacityService | None = None,
        config: AllocationConfig | None = None,
    ):
        self.session = session
        self.capacity = capacity or CapacityService(session)
        self.config = config or AllocationConfig()

    async def find_active(
        self,
        worker_id: UUID,
        shift_id: UUID,
        occurrence_date: Any,
    ) -> Application | None:
        """The worker's live booking for a shift occurrence, if any."""
        result = await self.session.execute(
            select(Application).where(
                Application.worker_id == worker_id,
                Application.shift_id == shift_id,
                Application.occurrence_date == occurrence_date,
                Application.status == ApplicationStatus.UPCOMING.value,
            )
        )
        return result.scalar_one_or_none()

    async def apply(
        self,
        worker: Worker,
        shift: Shift,
        occurrence: ShiftOccurrence,
        want_standby: bool,
        now: datetime,
    ) -> Application:
        """Book a seat for a worker.

        Raises:
            ProfileIncompleteError: Worker profile is not complete
            DuplicateApplicationError: A live booking already exists
            NoVacancyError: Both pools are full
        """
        if not worker.profile_completed:
            raise ProfileIncompleteError(worker_id=worker.worker_id)

        existing = await self.find_active(worker.worker_id, shift.shift_id, occurrence.occurrence_date)
        if existing is not None:
            raise DuplicateApplicationError(
                f"Worker {worker.worker_id} already holds application "
                f"{existing.application_id} for this shift",
                application_id=existing.application_id,
            )

        seat = await self.capacity.reserve(occurrence.occurrence_id, want_standby)
        is_standby = seat == SeatKind.STANDBY

        application = Application(
            worker_id=worker.worker_id,
            job_id=shift.job_id,
            shift_id=shift.shift_id,
            occurrence_id=occurrence.occurrence_id,
            occurrence_date=occurrence.occurrence_date,
            is_standby=is_standby,
            applied_as_standby=is_standby,
            applied_status=AppliedStatus.APPLIED.value,
            status=ApplicationStatus.UPCOMING.value,
            applied_at=now,
            penalty=Decimal("0"),
            cancellation_count=worker.cancellation_count,
        )
        self.session.add(application)
        await self.session.flush()

        await record_audit(
            self.session,
            application,
            action="applied",
            from_stage=None,
            to_stage=application.stage,
            details={"seat_kind": seat.value, "requested_standby": want_standby},
        )
        return application

    async def cancel(
        self,
        application: Application,
        shift: Shift,
        reason: CancellationReason,
        now: datetime,
        detail: str | None = None,
        evidence_ref: str | None = None,
    ) -> CancellationOutcome:
        """Cancel a booking, release its seat and backfill from standby.

        Raises:
            AlreadyTerminalError: The application is already closed
        """
        if application.is_terminal:
            raise AlreadyTerminalError(application.application_id, application.status)

        from_stage = ApplicationStateMachine.transition(application, ApplicationStage.CANCELLED)
        released_seat = application.seat_kind

        cancellation_count = await self._increment_worker_counter(
            application.worker_id, _workers.c.cancellation_count
        )
        assessment = penalty_for(
            shift_start=shift.start_datetime(application.occurrence_date),
            cancelled_at=now,
            prior_cancellation_count=cancellation_count - 1,
        )

        application.status = ApplicationStatus.CANCELLED.value
        application.applied_status = AppliedStatus.CANCELLED.value
        application.cancelled_at = now
        application.cancellation_reason = CancellationReason(reason).value
        application.cancellation_detail = detail
        application.evidence_ref = evidence_ref
        application.penalty = assessment.amount
        application.penalty_label = assessment.label
        application.cancellation_count = cancellation_count

        await self.capacity.release(application.occurrence_id, released_seat)
        await self.session.flush()

        await record_audit(
            self.session,
            application,
            action="cancelled",
            from_stage=from_stage,
            to_stage=ApplicationStage.CANCELLED,
            details={
                "reason": application.cancellation_reason,
                "penalty": str(assessment.amount),
                "label": assessment.label,
                "penalized": assessment.is_penalized,
                "hours_before_start": str(assessment.hours_before_start),
                "released_seat": released_seat.value,
            },
        )

        promoted = None
        if released_seat == SeatKind.PRIMARY:
            candidate = await self.capacity.promote_one_standby(application.occurrence_id)
            if candidate is not None:
                promoted = await self.activate(candidate, now)

        return CancellationOutcome(
            application=application,
            assessment=assessment,
            released_seat=released_seat,
            promoted=promoted,
        )

    async def activate(self, application: Application, now: datetime) -> Application:
        """Flip a standby booking to primary after its seat was moved."""
        from_stage = ApplicationStateMachine.transition(application, ApplicationStage.ACTIVATED)

        application.is_standby = False
        application.activated_at = now
        await self.session.flush()

        await record_audit(
            self.session,
            application,
            action="standby_activated",
            from_stage=from_stage,
            to_stage=ApplicationStage.ACTIVATED,
        )
        return application

    async def mark_completed(self, application: Application, shift: Shift, now: datetime) -> Application:
        """Close a clocked-out booking.

        Raises:
            NotUpcomingError: Not upcoming or not yet clocked out
        """
        if application.status != ApplicationStatus.UPCOMING or application.clock_out_time is None:
            raise NotUpcomingError(
                f"Application {application.application_id} must be upcoming and clocked out "
                f"to complete (status={application.status})",
                application_id=application.application_id,
            )

        from_stage = ApplicationStateMachine.transition(application, ApplicationStage.COMPLETED)

        application.status = ApplicationStatus.COMPLETED.value
        application.completed_at = now
        application.earned_amount = earned_amount(
            shift.total_wage, application.applied_as_standby, self.config.standby_bonus
        )
        await self._increment_worker_counter(application.worker_id, _workers.c.completed_count)
        await self.session.flush()

        await record_audit(
            self.session,
            application,
            action="completed",
            from_stage=from_stage,
            to_stage=ApplicationStage.COMPLETED,
            details={"earned_amount": str(application.earned_amount)},
        )
        return application

    async def mark_no_show(self, application: Application, shift: Shift, now: datetime) -> Application:
        """Close a confirmed booking whose shift started without a clock-in.

        Raises:
            AlreadyTerminalError: The application is already closed
            NotUpcomingError: Still on standby, already clocked in, or the
                shift has not started yet
        """
        if application.is_terminal:
            raise AlreadyTerminalError(application.application_id, application.status)

        shift_start = shift.start_datetime(application.occurrence_date)
        if application.is_standby or application.clock_in_time is not None or now < shift_start:
            raise NotUpcomingError(
                f"Application {application.application_id} is not eligible for no-show "
                f"(stage={application.stage.value})",
                application_id=application.application_id,
            )

        from_stage = ApplicationStateMachine.transition(application, ApplicationStage.NO_SHOW)

        application.status = ApplicationStatus.NO_SHOW.value
        application.penalty = NO_SHOW_RULE.amount
        application.penalty_label = NO_SHOW_RULE.label
        await self._increment_worker_counter(application.worker_id, _workers.c.no_show_count)
        await self.session.flush()

        await record_audit(
            self.session,
            application,
            action="no_show",
            from_stage=from_stage,
            to_stage=ApplicationStage.NO_SHOW,
            details={"penalty": str(NO_SHOW_RULE.amount)},
        )
        return application

    async def _increment_worker_counter(self, worker_id: UUID, column: Any) -> int:
        """Atomically bump a worker counter and return the new value."""
        result = await self.session.execute(
            update(_workers)
            .where(_workers.c.worker_id == worker_id)
            .values({column.name: column + 1})
            .returning(column)
        )
        return int(result.scalar_one())
