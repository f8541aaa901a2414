"""Application (booking) and audit models."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from shift_engine.models.base import Base, TimestampMixin, utcnow
from shift_engine.models.catalog import Job, Shift, ShiftOccurrence, Worker
from shift_engine.models.enums import (
    TERMINAL_STATUSES,
    ApplicationStage,
    ApplicationStatus,
    SeatKind,
)


class Application(Base, TimestampMixin):
    """One worker's claim on one shift occurrence.

    Applications are never deleted; cancelled, completed and no-show rows
    remain as attendance and penalty history.
    """

    __tablename__ = "application"

    application_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    worker_id: Mapped[UUID] = mapped_column(
        ForeignKey("worker.worker_id", ondelete="RESTRICT"),
        nullable=False,
    )
    job_id: Mapped[UUID] = mapped_column(
        ForeignKey("job.job_id", ondelete="RESTRICT"),
        nullable=False,
    )
    shift_id: Mapped[UUID] = mapped_column(
        ForeignKey("shift.shift_id", ondelete="RESTRICT"),
        nullable=False,
    )
    occurrence_id: Mapped[UUID] = mapped_column(
        ForeignKey("shift_occurrence.occurrence_id", ondelete="RESTRICT"),
        nullable=False,
    )
    occurrence_date: Mapped[date] = mapped_column(Date, nullable=False)

    is_standby: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    applied_as_standby: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    applied_status: Mapped[str] = mapped_column(String, nullable=False, default="applied")
    status: Mapped[str] = mapped_column(String, nullable=False, default="upcoming")

    applied_at: Mapped[datetime] = mapped_column(DateTime(), nullable=False, default=utcnow)
    activated_at: Mapped[datetime | None] = mapped_column(DateTime(), nullable=True)
    cancelled_at: Mapped[datetime | None] = mapped_column(DateTime(), nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(), nullable=True)
    clock_in_time: Mapped[datetime | None] = mapped_column(DateTime(), nullable=True)
    clock_out_time: Mapped[datetime | None] = mapped_column(DateTime(), nullable=True)
    check_in_latitude: Mapped[float | None] = mapped_column(Float, nullable=True)
    check_in_longitude: Mapped[float | None] = mapped_column(Float, nullable=True)

    cancellation_reason: Mapped[str | None] = mapped_column(String, nullable=True)
    cancellation_detail: Mapped[str | None] = mapped_column(Text, nullable=True)
    evidence_ref: Mapped[str | None] = mapped_column(String, nullable=True)
    penalty: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False, default=Decimal("0"))
    penalty_label: Mapped[str | None] = mapped_column(String, nullable=True)
    cancellation_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    earned_amount: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)

    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        CheckConstraint(
            "status IN ('upcoming', 'completed', 'cancelled', 'no_show')",
            name="application_status_check",
        ),
        CheckConstraint(
            "applied_status IN ('applied', 'cancelled')",
            name="application_applied_status_check",
        ),
        CheckConstraint(
            "cancellation_reason IS NULL OR cancellation_reason IN "
            "('medical', 'emergency', 'personal_reason', 'transport_issue', 'other')",
            name="application_cancellation_reason_check",
        ),
        CheckConstraint(
            "clock_out_time IS NULL OR clock_in_time IS NOT NULL",
            name="application_clock_order_check",
        ),
        CheckConstraint("penalty >= 0", name="application_penalty_check"),
        # At most one live booking per worker and shift occurrence
        Index(
            "application_one_active_per_occurrence",
            "worker_id",
            "shift_id",
            "occurrence_date",
            unique=True,
            postgresql_where=text("status = 'upcoming'"),
            sqlite_where=text("status = 'upcoming'"),
        ),
        Index("application_occurrence_standby_idx", "occurrence_id", "is_standby", "applied_at"),
    )

    # Relationships
    worker: Mapped[Worker] = relationship()
    job: Mapped[Job] = relationship()
    shift: Mapped[Shift] = relationship()
    occurrence: Mapped[ShiftOccurrence] = relationship()

    @property
    def is_terminal(self) -> bool:
        """Completed, cancelled and no-show applications are final."""
        return self.status in TERMINAL_STATUSES

    @property
    def seat_kind(self) -> SeatKind:
        """Capacity pool this application currently occupies."""
        return SeatKind.STANDBY if self.is_standby else SeatKind.PRIMARY

    @property
    def stage(self) -> ApplicationStage:
        """Lifecycle stage derived from the persisted fields."""
        if self.status == ApplicationStatus.COMPLETED:
            return ApplicationStage.COMPLETED
        if self.status == ApplicationStatus.CANCELLED:
            return ApplicationStage.CANCELLED
        if self.status == ApplicationStatus.NO_SHOW:
            return ApplicationStage.NO_SHOW
        if self.clock_out_time is not None:
            return ApplicationStage.CLOCKED_OUT
        if self.clock_in_time is not None:
            return ApplicationStage.CLOCKED_IN
        if self.is_standby:
            return ApplicationStage.STANDBY
        if self.activated_at is not None:
            return ApplicationStage.ACTIVATED
        return ApplicationStage.APPLIED


class ApplicationAudit(Base, TimestampMixin):
    """Append-only record of application transitions."""

    __tablename__ = "application_audit"

    audit_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    application_id: Mapped[UUID] = mapped_column(
        ForeignKey("application.application_id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    action: Mapped[str] = mapped_column(String, nullable=False)
    from_stage: Mapped[str | None] = mapped_column(String, nullable=True)
    to_stage: Mapped[str] = mapped_column(String, nullable=False)
    details_json: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
