"""Seat counters for shift occurrences.

Every counter change is a single conditional UPDATE executed by the
database (``filled_primary < vacancy``, ``filled_primary > 0`` ...), so the
check and the write cannot be separated by a concurrent writer. A guard that
matches no row is either a full pool (reserve) or a broken ledger (release),
never something to clamp.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from shift_engine.models import Application, ApplicationStatus, SeatKind, ShiftOccurrence
from shift_engine.services.errors import CapacityInvariantError, NoVacancyError, NotFoundError

logger = logging.getLogger(__name__)

_ledger = ShiftOccurrence.__table__


@dataclass(frozen=True)
class CapacitySnapshot:
    """Point-in-time view of one occurrence's seat counters."""

    occurrence_id: UUID
    shift_id: UUID
    occurrence_date: date
    vacancy: int
    standby_vacancy: int
    filled_primary: int
    filled_standby: int
    version: int

    @property
    def available_primary(self) -> int:
        return self.vacancy - self.filled_primary

    @property
    def available_standby(self) -> int:
        return self.standby_vacancy - self.filled_standby

    @property
    def is_fully_booked(self) -> bool:
        return self.available_primary == 0

    @property
    def slot_label(self) -> str:
        """Marketing label shown next to the shift in listings."""
        available = self.available_primary
        if available == 0:
            return "Standby Slot Available" if self.available_standby > 0 else "Fully Booked"
        if available == 1:
            return "Last Slot"
        if available >= 10:
            return "Trending"
        if available > 3:
            return "Limited Slots"
        return "New"

    def check_invariants(self) -> None:
        """Raise if the counters are outside their bounds."""
        if not 0 <= self.filled_primary <= self.vacancy:
            raise CapacityInvariantError(
                f"filled_primary={self.filled_primary} outside 0..{self.vacancy} "
                f"for occurrence {self.occurrence_id}"
            )
        if not 0 <= self.filled_standby <= self.standby_vacancy:
            raise CapacityInvariantError(
                f"filled_standby={self.filled_standby} outside 0..{self.standby_vacancy} "
                f"for occurrence {self.occurrence_id}"
            )


class CapacityService:
    """Reserve, release and promote seats on a shift occurrence.

    Callers must hold the occurrence lock (see LockingService) for the
    duration of the surrounding transaction.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_occurrence(self, shift_id: UUID, occurrence_date: date) -> ShiftOccurrence:
        """Load the occurrence for a (shift, date) pair."""
        result = await self.session.execute(
            select(ShiftOccurrence).where(
                ShiftOccurrence.shift_id == shift_id,
                ShiftOccurrence.occurrence_date == occurrence_date,
            )
        )
        occurrence = result.scalar_one_or_none()
        if occurrence is None:
            raise NotFoundError("Shift occurrence", f"{shift_id} on {occurrence_date.isoformat()}")
        return occurrence

    async def snapshot(self, occurrence_id: UUID) -> CapacitySnapshot:
        """Read the current counters straight from the ledger row."""
        result = await self.session.execute(
            select(
                _ledger.c.occurrence_id,
                _ledger.c.shift_id,
                _ledger.c.occurrence_date,
                _ledger.c.vacancy,
                _ledger.c.standby_vacancy,
                _ledger.c.filled_primary,
                _ledger.c.filled_standby,
                _ledger.c.version,
            ).where(_ledger.c.occurrence_id == occurrence_id)
        )
        row = result.first()
        if row is None:
            raise NotFoundError("Shift occurrence", occurrence_id)
        return CapacitySnapshot(*row)

    async def reserve(self, occurrence_id: UUID, want_standby: bool = False) -> SeatKind:
        """Take one seat.

        A standby request takes a standby seat or nothing; the worker joins
        the waitlist even while primary seats are free. Otherwise a primary
        seat is taken while the primary pool has room, then a standby seat
        once it is full.

        Raises:
            NoVacancyError: If no seat of an acceptable kind is free
        """
        if want_standby:
            if await self._increment(occurrence_id, SeatKind.STANDBY):
                return SeatKind.STANDBY
            raise NoVacancyError(occurrence_id=occurrence_id)

        if await self._increment(occurrence_id, SeatKind.PRIMARY):
            return SeatKind.PRIMARY

        if await self._increment(occurrence_id, SeatKind.STANDBY):
            logger.debug("Primary pool full for occurrence %s, reserved standby", occurrence_id)
            return SeatKind.STANDBY

        raise NoVacancyError(occurrence_id=occurrence_id)

    async def release(self, occurrence_id: UUID, seat_kind: SeatKind) -> CapacitySnapshot:
        """Give one seat back.

        Raises:
            CapacityInvariantError: If the counter is already zero
        """
        column = _filled_column(seat_kind)
        result = await self.session.execute(
            update(_ledger)
            .where(_ledger.c.occurrence_id == occurrence_id, column > 0)
            .values({column.name: column - 1, "version": _ledger.c.version + 1})
            .returning(_ledger.c.occurrence_id)
        )
        if result.first() is None:
            raise CapacityInvariantError(
                f"Release of {seat_kind.value} seat on occurrence {occurrence_id} "
                "would drive the counter below zero",
                occurrence_id=occurrence_id,
                seat_kind=seat_kind.value,
            )
        return await self.snapshot(occurrence_id)

    async def next_standby(self, occurrence_id: UUID) -> Application | None:
        """Earliest waiting standby application (FIFO by applied_at)."""
        result = await self.session.execute(
            select(Application)
            .where(
                Application.occurrence_id == occurrence_id,
                Application.is_standby.is_(True),
                Application.status == ApplicationStatus.UPCOMING.value,
            )
            .order_by(Application.applied_at, Application.application_id)
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def promote_one_standby(self, occurrence_id: UUID) -> Application | None:
        """Move the earliest standby booking into a free primary seat.

        Moves one seat from the standby counter to the primary counter and
        returns the application to activate, or None when nobody is waiting
        or no primary seat is free.
        """
        candidate = await self.next_standby(occurrence_id)
        if candidate is None:
            return None

        result = await self.session.execute(
            update(_ledger)
            .where(
                _ledger.c.occurrence_id == occurrence_id,
                _ledger.c.filled_primary < _ledger.c.vacancy,
                _ledger.c.filled_standby > 0,
            )
            .values(
                filled_primary=_ledger.c.filled_primary + 1,
                filled_standby=_ledger.c.filled_standby - 1,
                version=_ledger.c.version + 1,
            )
            .returning(_ledger.c.occurrence_id)
        )
        if result.first() is not None:
            return candidate

        snapshot = await self.snapshot(occurrence_id)
        if snapshot.available_primary == 0:
            return None
        raise CapacityInvariantError(
            f"Standby application {candidate.application_id} is waiting but occurrence "
            f"{occurrence_id} has filled_standby={snapshot.filled_standby}",
            occurrence_id=occurrence_id,
        )

    async def _increment(self, occurrence_id: UUID, seat_kind: SeatKind) -> bool:
        column = _filled_column(seat_kind)
        limit = _ledger.c.vacancy if seat_kind == SeatKind.PRIMARY else _ledger.c.standby_vacancy
        result = await self.session.execute(
            update(_ledger)
            .where(_ledger.c.occurrence_id == occurrence_id, column < limit)
            .values({column.name: column + 1, "version": _ledger.c.version + 1})
            .returning(_ledger.c.occurrence_id)
        )
        return result.first() is not None


def _filled_column(seat_kind: SeatKind):
    if seat_kind == SeatKind.PRIMARY:
        return _ledger.c.filled_primary
    return _ledger.c.filled_standby
