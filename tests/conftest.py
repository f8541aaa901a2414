"""Pytest fixtures for shift engine tests."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from typing import AsyncGenerator
from uuid import UUID, uuid4

import pytest
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from shift_engine.calculators.wage_calculator import calculate_shift_wage
from shift_engine.config import AllocationConfig
from shift_engine.database import create_schema, create_session_factory, get_engine
from shift_engine.events import DomainEvent, EventEmitter
from shift_engine.models import Job, Shift, ShiftOccurrence, Worker
from shift_engine.services.allocation_service import AllocationService

# Occurrence used across tests: 09:00-17:00 with one unpaid break hour
SHIFT_DATE = date(2030, 6, 1)
SHIFT_START = datetime(2030, 6, 1, 9, 0)
JOB_LATITUDE = 1.3521
JOB_LONGITUDE = 103.8198


class FakeClock:
    """Controllable naive-UTC clock."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def set(self, now: datetime) -> None:
        self.now = now

    def advance(self, **kwargs: float) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


@dataclass
class SeededShift:
    """Ids of a seeded job, shift and occurrence."""

    job_id: UUID
    shift_id: UUID
    occurrence_id: UUID
    occurrence_date: date


@pytest.fixture
async def engine(tmp_path) -> AsyncGenerator[AsyncEngine, None]:
    """File-backed SQLite engine with the schema created."""
    engine = get_engine(f"sqlite+aiosqlite:///{tmp_path / 'shift_engine.db'}")
    await create_schema(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine) -> async_sessionmaker[AsyncSession]:
    return create_session_factory(engine)


@pytest.fixture
async def session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """A database session for direct service tests."""
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
def clock() -> FakeClock:
    """Four days before the seeded shift starts."""
    return FakeClock(SHIFT_START - timedelta(days=4))


@pytest.fixture
def config() -> AllocationConfig:
    return AllocationConfig(
        retry_backoff_seconds=0.001,
        lock_timeout_seconds=10.0,
        qr_secret="test-secret",
    )


@pytest.fixture
def events() -> list[DomainEvent]:
    return []


@pytest.fixture
def emitter(events) -> EventEmitter:
    """Emitter that records every published event."""
    emitter = EventEmitter()
    emitter.on_all(events.append)
    return emitter


@pytest.fixture
def service(session_factory, config, emitter, clock) -> AllocationService:
    return AllocationService(session_factory, config=config, emitter=emitter, clock=clock)


@pytest.fixture
def make_shift(session_factory):
    """Factory creating a job, shift and occurrence; returns their ids."""

    async def _make(
        vacancy: int = 1,
        standby_vacancy: int = 1,
        on: date = SHIFT_DATE,
        start: time = time(9, 0),
        end: time = time(17, 0),
        pay_rate: Decimal = Decimal("20"),
        rate_type: str = "hourly",
    ) -> SeededShift:
        async with session_factory() as session:
            async with session.begin():
                job = Job(
                    employer_id=uuid4(),
                    job_name="Barista",
                    location="1 Raffles Place",
                    latitude=JOB_LATITUDE,
                    longitude=JOB_LONGITUDE,
                    industry="restaurant",
                )
                session.add(job)
                await session.flush()

                wage = calculate_shift_wage(
                    start, end, pay_rate, rate_type, Decimal("1"), "unpaid"
                )
                shift = Shift(
                    job_id=job.job_id,
                    start_time=start,
                    end_time=end,
                    break_hours=Decimal("1"),
                    break_type="unpaid",
                    duration=wage.duration_hours,
                    vacancy=vacancy,
                    standby_vacancy=standby_vacancy,
                    rate_type=rate_type,
                    pay_rate=pay_rate,
                    total_wage=wage.total_wage,
                )
                session.add(shift)
                await session.flush()

                occurrence = ShiftOccurrence.schedule(shift, on)
                session.add(occurrence)
                await session.flush()

                return SeededShift(
                    job_id=job.job_id,
                    shift_id=shift.shift_id,
                    occurrence_id=occurrence.occurrence_id,
                    occurrence_date=on,
                )

    return _make


@pytest.fixture
def make_worker(session_factory):
    """Factory creating a worker; returns the worker id."""

    async def _make(name: str = "Test Worker", profile_completed: bool = True) -> UUID:
        async with session_factory() as session:
            async with session.begin():
                worker = Worker(full_name=name, profile_completed=profile_completed)
                session.add(worker)
                await session.flush()
                return worker.worker_id

    return _make


@pytest.fixture
async def seeded(make_shift) -> SeededShift:
    """One primary seat and one standby seat."""
    return await make_shift(vacancy=1, standby_vacancy=1)
