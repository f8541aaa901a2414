"""Tests for clock-in/out, completion and no-show handling."""

from __future__ import annotations

from datetime import datetime, timedelta
from decimal import Decimal

import pytest

from shift_engine.config import AllocationConfig
from shift_engine.events import ApplicationNoShow, WorkerClockedIn
from shift_engine.models import ApplicationStage, Worker
from shift_engine.services.allocation_service import AllocationService
from shift_engine.services.attendance_service import qr_token_for
from shift_engine.services.errors import (
    AlreadyClockedInError,
    AlreadyClockedOutError,
    AlreadyTerminalError,
    ConcurrencyConflictError,
    InvalidQRCodeError,
    NotAppliedError,
    NotClockedInError,
    NotUpcomingError,
    OutsideGeofenceError,
    StandbyNotActivatedError,
    StorageError,
    ValidationError,
)

SHIFT_START = datetime(2030, 6, 1, 9, 0)
ON_SITE = (1.3523, 103.8198)  # ~22 m from the job
OFF_SITE = (1.3621, 103.8198)  # ~1.1 km from the job


@pytest.fixture
async def booking(service, seeded, make_worker):
    return await service.apply(await make_worker(), seeded.shift_id, seeded.occurrence_date)


class TestClockIn:
    async def test_clock_in_on_site(self, service, clock, events, booking):
        clock.set(SHIFT_START - timedelta(minutes=5))

        clock_in_time = await service.clock_in(booking.application_id, *ON_SITE)

        assert clock_in_time == clock()
        application = await service.get_application(booking.application_id)
        assert application.stage == ApplicationStage.CLOCKED_IN
        assert application.status == "upcoming"
        assert application.check_in_latitude == pytest.approx(ON_SITE[0])

        clocked = [e for e in events if isinstance(e, WorkerClockedIn)]
        assert len(clocked) == 1
        assert clocked[0].distance_meters < 100

    async def test_second_clock_in_rejected(self, service, booking):
        await service.clock_in(booking.application_id, *ON_SITE)
        with pytest.raises(AlreadyClockedInError):
            await service.clock_in(booking.application_id, *ON_SITE)

    async def test_outside_geofence(self, service, booking):
        with pytest.raises(OutsideGeofenceError) as exc_info:
            await service.clock_in(booking.application_id, *OFF_SITE)

        assert exc_info.value.distance_meters > 1000
        application = await service.get_application(booking.application_id)
        assert application.clock_in_time is None

    async def test_invalid_coordinates(self, service, booking):
        with pytest.raises(ValidationError):
            await service.clock_in(booking.application_id, 95.0, 0.0)

    async def test_standby_must_be_activated(self, service, seeded, make_worker, booking):
        standby = await service.apply(await make_worker("B"), seeded.shift_id, seeded.occurrence_date)
        with pytest.raises(StandbyNotActivatedError):
            await service.clock_in(standby.application_id, *ON_SITE)

    async def test_cancelled_booking(self, service, booking):
        await service.cancel(booking.application_id, "medical")
        with pytest.raises(NotAppliedError):
            await service.clock_in(booking.application_id, *ON_SITE)


class TestQRCode:
    async def test_required_token(self, session_factory, clock, seeded, make_worker):
        config = AllocationConfig(qr_secret="site-secret", require_qr_token=True)
        service = AllocationService(session_factory, config=config, clock=clock)
        booked = await service.apply(await make_worker(), seeded.shift_id, seeded.occurrence_date)

        with pytest.raises(InvalidQRCodeError):
            await service.clock_in(booked.application_id, *ON_SITE)
        with pytest.raises(InvalidQRCodeError):
            await service.clock_in(booked.application_id, *ON_SITE, qr_token="0" * 32)

        token = qr_token_for("site-secret", seeded.job_id, seeded.shift_id, seeded.occurrence_date)
        await service.clock_in(booked.application_id, *ON_SITE, qr_token=token)

    async def test_token_is_checked_when_supplied(self, service, seeded, booking):
        token = qr_token_for("another-secret", seeded.job_id, seeded.shift_id, seeded.occurrence_date)
        with pytest.raises(InvalidQRCodeError):
            await service.clock_in(booking.application_id, *ON_SITE, qr_token=token)

    def test_token_is_per_occurrence(self, seeded):
        today = qr_token_for("s", seeded.job_id, seeded.shift_id, seeded.occurrence_date)
        tomorrow = qr_token_for(
            "s", seeded.job_id, seeded.shift_id, seeded.occurrence_date + timedelta(days=1)
        )
        assert today != tomorrow
        assert len(today) == 32


class TestClockOut:
    async def test_requires_clock_in(self, service, booking):
        with pytest.raises(NotClockedInError):
            await service.clock_out(booking.application_id)

    async def test_clock_out_once(self, service, clock, booking):
        clock.set(SHIFT_START)
        await service.clock_in(booking.application_id, *ON_SITE)
        clock.advance(hours=8)

        assert await service.clock_out(booking.application_id) == clock()
        with pytest.raises(AlreadyClockedOutError):
            await service.clock_out(booking.application_id)

        application = await service.get_application(booking.application_id)
        assert application.stage == ApplicationStage.CLOCKED_OUT
        assert application.status == "upcoming"


class TestComplete:
    async def test_complete_after_clock_out(self, service, clock, session_factory, booking):
        clock.set(SHIFT_START)
        await service.clock_in(booking.application_id, *ON_SITE)
        clock.advance(hours=8)
        await service.clock_out(booking.application_id)

        result = await service.complete(booking.application_id)

        assert result.completed_at == clock()
        assert result.earned_amount == Decimal("140")
        application = await service.get_application(booking.application_id)
        assert application.status == "completed"

        async with session_factory() as session:
            worker = await session.get(Worker, application.worker_id)
        assert worker.completed_count == 1

        with pytest.raises(NotUpcomingError):
            await service.complete(booking.application_id)

    async def test_cannot_complete_before_clock_out(self, service, booking):
        await service.clock_in(booking.application_id, *ON_SITE)
        with pytest.raises(NotUpcomingError):
            await service.complete(booking.application_id)

    async def test_promoted_standby_earns_bonus(self, service, clock, seeded, make_worker, booking):
        standby = await service.apply(await make_worker("B"), seeded.shift_id, seeded.occurrence_date)
        await service.cancel(booking.application_id, "emergency")

        clock.set(SHIFT_START)
        await service.clock_in(standby.application_id, *ON_SITE)
        clock.advance(hours=8)
        await service.clock_out(standby.application_id)

        result = await service.complete(standby.application_id)
        assert result.earned_amount == Decimal("150")


class TestNoShow:
    async def test_not_before_shift_start(self, service, booking):
        with pytest.raises(NotUpcomingError):
            await service.mark_no_show(booking.application_id)

    async def test_no_show_after_start(self, service, clock, events, seeded, session_factory, booking):
        clock.set(SHIFT_START + timedelta(minutes=30))

        application = await service.mark_no_show(booking.application_id)

        assert application.status == "no_show"
        assert application.penalty == Decimal("50")
        assert application.penalty_label == "< 6 Hours / No-show"
        assert any(isinstance(e, ApplicationNoShow) for e in events)

        # The seat stays consumed
        counters = await service.availability(seeded.shift_id, seeded.occurrence_date)
        assert counters.filled_primary == 1

        async with session_factory() as session:
            worker = await session.get(Worker, application.worker_id)
        assert worker.no_show_count == 1

        with pytest.raises(AlreadyTerminalError):
            await service.mark_no_show(booking.application_id)

    async def test_clocked_in_is_not_a_no_show(self, service, clock, booking):
        clock.set(SHIFT_START)
        await service.clock_in(booking.application_id, *ON_SITE)
        clock.advance(hours=1)

        with pytest.raises(NotUpcomingError):
            await service.mark_no_show(booking.application_id)

    async def test_sweep(self, service, clock, make_shift, make_worker):
        seeded = await make_shift(vacancy=2, standby_vacancy=1)
        absent = await service.apply(await make_worker("A"), seeded.shift_id, seeded.occurrence_date)
        present = await service.apply(await make_worker("B"), seeded.shift_id, seeded.occurrence_date)
        waiting = await service.apply(await make_worker("C"), seeded.shift_id, seeded.occurrence_date)

        clock.set(SHIFT_START)
        await service.clock_in(present.application_id, *ON_SITE)

        # Nothing is overdue a minute before the start
        assert await service.sweep_no_shows(now=SHIFT_START - timedelta(minutes=1)) == []

        clock.advance(hours=1)
        marked = await service.sweep_no_shows()

        assert marked == [absent.application_id]
        assert (await service.get_application(waiting.application_id)).status == "upcoming"
        assert (await service.get_application(present.application_id)).status == "upcoming"

    @pytest.mark.parametrize(
        "failure",
        [StorageError("disk I/O error"), ConcurrencyConflictError("lock busy")],
        ids=["storage", "conflict"],
    )
    async def test_sweep_surfaces_infrastructure_failures(
        self, service, clock, monkeypatch, booking, failure
    ):
        async def failing_mark_no_show(application_id, now=None):
            raise failure

        monkeypatch.setattr(service, "mark_no_show", failing_mark_no_show)
        clock.set(SHIFT_START + timedelta(hours=1))

        with pytest.raises(type(failure)):
            await service.sweep_no_shows()

    async def test_sweep_skips_bookings_that_moved_on(self, service, clock, monkeypatch, booking):
        async def already_closed(application_id, now=None):
            raise AlreadyTerminalError(application_id, "cancelled")

        monkeypatch.setattr(service, "mark_no_show", already_closed)
        clock.set(SHIFT_START + timedelta(hours=1))

        assert await service.sweep_no_shows() == []
