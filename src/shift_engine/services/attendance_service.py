"""Clock-in / clock-out tracking bound to a live application."""

from __future__ import annotations

import hashlib
import hmac
import logging
from dataclasses import dataclass
from datetime import date, datetime
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from shift_engine.calculators.geo import validate_coordinates, within_radius
from shift_engine.config import AllocationConfig
from shift_engine.models import Application, ApplicationStage, Job
from shift_engine.services.errors import (
    AlreadyClockedInError,
    AlreadyClockedOutError,
    InvalidQRCodeError,
    NotAppliedError,
    NotClockedInError,
    OutsideGeofenceError,
    StandbyNotActivatedError,
    ValidationError,
)
from shift_engine.services.lifecycle_service import record_audit
from shift_engine.services.state_machine import ApplicationStateMachine

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ClockInResult:
    application: Application
    clock_in_time: datetime
    distance_meters: float


def qr_token_for(secret: str, job_id: UUID, shift_id: UUID, occurrence_date: date) -> str:
    """Token encoded in the QR code posted at the job site for one occurrence."""
    message = f"{job_id}:{shift_id}:{occurrence_date.isoformat()}".encode()
    return hmac.new(secret.encode(), message, hashlib.sha256).hexdigest()[:32]


class AttendanceTracker:
    """Records attendance against a validated application.

    Clock events never change the application status; completion is a
    separate step so wage and penalty reconciliation can run in between.
    """

    def __init__(self, session: AsyncSession, config: AllocationConfig | None = None):
        self.session = session
        self.config = config or AllocationConfig()

    def expected_qr_token(self, application: Application) -> str:
        return qr_token_for(
            self.config.qr_secret,
            application.job_id,
            application.shift_id,
            application.occurrence_date,
        )

    async def clock_in(
        self,
        application: Application,
        job: Job,
        latitude: float,
        longitude: float,
        now: datetime,
        qr_token: str | None = None,
    ) -> ClockInResult:
        """Stamp the clock-in time and position.

        Raises:
            NotAppliedError: The application is not live
            StandbyNotActivatedError: The booking is still on the waitlist
            AlreadyClockedInError: Clock-in already recorded
            InvalidQRCodeError: Token missing (when required) or wrong
            OutsideGeofenceError: Too far from the job location
        """
        if application.is_terminal:
            raise NotAppliedError(
                f"Application {application.application_id} is {application.status}",
                application_id=application.application_id,
            )
        if application.is_standby:
            raise StandbyNotActivatedError(application_id=application.application_id)
        if application.clock_in_time is not None:
            raise AlreadyClockedInError(application_id=application.application_id)

        self._check_qr_token(application, qr_token)

        try:
            validate_coordinates(latitude, longitude)
        except ValueError as e:
            raise ValidationError(str(e)) from e

        inside, distance = within_radius(
            latitude,
            longitude,
            job.latitude,
            job.longitude,
            self.config.geofence_radius_meters,
        )
        if not inside:
            raise OutsideGeofenceError(distance, self.config.geofence_radius_meters)

        from_stage = ApplicationStateMachine.transition(application, ApplicationStage.CLOCKED_IN)

        application.clock_in_time = now
        application.check_in_latitude = latitude
        application.check_in_longitude = longitude
        await self.session.flush()

        await record_audit(
            self.session,
            application,
            action="clocked_in",
            from_stage=from_stage,
            to_stage=ApplicationStage.CLOCKED_IN,
            details={"distance_meters": round(distance, 1)},
        )
        return ClockInResult(application=application, clock_in_time=now, distance_meters=distance)

    async def clock_out(self, application: Application, now: datetime) -> datetime:
        """Stamp the clock-out time.

        Raises:
            NotClockedInError: No clock-in recorded
            AlreadyClockedOutError: Clock-out already recorded
        """
        if application.clock_in_time is None:
            raise NotClockedInError(application_id=application.application_id)
        if application.clock_out_time is not None:
            raise AlreadyClockedOutError(application_id=application.application_id)
        if application.is_terminal:
            raise NotAppliedError(
                f"Application {application.application_id} is {application.status}",
                application_id=application.application_id,
            )
        if now < application.clock_in_time:
            raise ValidationError("Clock-out time cannot precede clock-in time")

        from_stage = ApplicationStateMachine.transition(application, ApplicationStage.CLOCKED_OUT)

        application.clock_out_time = now
        await self.session.flush()

        await record_audit(
            self.session,
            application,
            action="clocked_out",
            from_stage=from_stage,
            to_stage=ApplicationStage.CLOCKED_OUT,
        )
        return now

    def _check_qr_token(self, application: Application, qr_token: str | None) -> None:
        if qr_token is None:
            if self.config.require_qr_token:
                raise InvalidQRCodeError("A QR code scan is required to clock in")
            return
        if not hmac.compare_digest(qr_token, self.expected_qr_token(application)):
            raise InvalidQRCodeError(application_id=application.application_id)
