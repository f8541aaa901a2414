"""Job catalog, capacity ledger and worker profile models."""

from __future__ import annotations

from datetime import date, datetime, time, timedelta
from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    Float,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Time,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from shift_engine.models.base import Base, TimestampMixin

# ===== Jobs & Shifts =====


class Job(Base, TimestampMixin):
    """A posted job at a registered location."""

    __tablename__ = "job"

    job_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    employer_id: Mapped[UUID] = mapped_column(nullable=False)
    job_name: Mapped[str] = mapped_column(String, nullable=False)
    location: Mapped[str] = mapped_column(String, nullable=False)
    latitude: Mapped[float] = mapped_column(Float, nullable=False)
    longitude: Mapped[float] = mapped_column(Float, nullable=False)
    industry: Mapped[str] = mapped_column(String, nullable=False, default="restaurant")

    __table_args__ = (
        CheckConstraint(
            "industry IN ('retail', 'restaurant', 'hotel', 'healthcare')",
            name="job_industry_check",
        ),
        CheckConstraint("latitude BETWEEN -90 AND 90", name="job_latitude_check"),
        CheckConstraint("longitude BETWEEN -180 AND 180", name="job_longitude_check"),
    )

    # Relationships
    shifts: Mapped[list[Shift]] = relationship(back_populates="job")


class Shift(Base, TimestampMixin):
    """A bookable time window within a job.

    The vacancy counts here are the template for each occurrence; seat
    counters live on ShiftOccurrence.
    """

    __tablename__ = "shift"

    shift_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    job_id: Mapped[UUID] = mapped_column(
        ForeignKey("job.job_id", ondelete="CASCADE"),
        nullable=False,
    )
    start_time: Mapped[time] = mapped_column(Time, nullable=False)
    end_time: Mapped[time] = mapped_column(Time, nullable=False)
    break_hours: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False, default=Decimal("0"))
    break_type: Mapped[str] = mapped_column(String, nullable=False, default="unpaid")
    duration: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False)
    vacancy: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    standby_vacancy: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    rate_type: Mapped[str] = mapped_column(String, nullable=False, default="hourly")
    pay_rate: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    total_wage: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)

    __table_args__ = (
        CheckConstraint("vacancy >= 0", name="shift_vacancy_check"),
        CheckConstraint("standby_vacancy >= 0", name="shift_standby_vacancy_check"),
        CheckConstraint("rate_type IN ('flat', 'hourly')", name="shift_rate_type_check"),
        CheckConstraint("break_type IN ('paid', 'unpaid')", name="shift_break_type_check"),
        CheckConstraint("pay_rate >= 0", name="shift_pay_rate_check"),
    )

    # Relationships
    job: Mapped[Job] = relationship(back_populates="shifts")
    occurrences: Mapped[list[ShiftOccurrence]] = relationship(back_populates="shift")

    def start_datetime(self, on: date) -> datetime:
        """Scheduled start of this shift on a given date."""
        return datetime.combine(on, self.start_time)

    def end_datetime(self, on: date) -> datetime:
        """Scheduled end; an end time at or before the start wraps to the next day."""
        end = datetime.combine(on, self.end_time)
        if self.end_time <= self.start_time:
            end += timedelta(days=1)
        return end


class ShiftOccurrence(Base, TimestampMixin):
    """One bookable (shift, date) pair and its seat counters.

    This row is the capacity ledger. Counters only change through the
    capacity service's conditional updates.
    """

    __tablename__ = "shift_occurrence"

    occurrence_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    shift_id: Mapped[UUID] = mapped_column(
        ForeignKey("shift.shift_id", ondelete="CASCADE"),
        nullable=False,
    )
    occurrence_date: Mapped[date] = mapped_column(Date, nullable=False)
    vacancy: Mapped[int] = mapped_column(Integer, nullable=False)
    standby_vacancy: Mapped[int] = mapped_column(Integer, nullable=False)
    filled_primary: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    filled_standby: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    __table_args__ = (
        UniqueConstraint("shift_id", "occurrence_date", name="shift_occurrence_shift_date_unique"),
        CheckConstraint(
            "filled_primary >= 0 AND filled_primary <= vacancy",
            name="shift_occurrence_primary_check",
        ),
        CheckConstraint(
            "filled_standby >= 0 AND filled_standby <= standby_vacancy",
            name="shift_occurrence_standby_check",
        ),
    )

    # Relationships
    shift: Mapped[Shift] = relationship(back_populates="occurrences")

    @classmethod
    def schedule(cls, shift: Shift, on: date) -> ShiftOccurrence:
        """Create an empty occurrence of a shift, copying its vacancy template."""
        return cls(
            shift_id=shift.shift_id,
            occurrence_date=on,
            vacancy=shift.vacancy,
            standby_vacancy=shift.standby_vacancy,
            filled_primary=0,
            filled_standby=0,
            version=1,
        )


# ===== Workers =====


class Worker(Base, TimestampMixin):
    """Projection of a worker profile owned by the profile service."""

    __tablename__ = "worker"

    worker_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    full_name: Mapped[str] = mapped_column(String, nullable=False)
    profile_completed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    cancellation_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    no_show_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    completed_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
