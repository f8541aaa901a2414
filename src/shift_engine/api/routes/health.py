"""Liveness, readiness and database health checks."""

import logging

from fastapi import APIRouter, Response, status
from pydantic import BaseModel
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from shift_engine.api.dependencies import DbSession
from shift_engine.calculators.cancellation_policy import PENALTY_TABLE_VERSION
from shift_engine.models.base import utcnow

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


class HealthResponse(BaseModel):
    status: str
    database: str
    checked_at: str
    penalty_table_version: str


async def _database_reachable(db: DbSession) -> bool:
    try:
        await db.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        logger.warning("Database health check failed: %s", e)
        return False
    return True


@router.get("/health", response_model=HealthResponse)
async def health_check(db: DbSession) -> HealthResponse:
    """Report whether the booking store answers queries."""
    reachable = await _database_reachable(db)
    return HealthResponse(
        status="healthy" if reachable else "degraded",
        database="up" if reachable else "down",
        checked_at=utcnow().isoformat(),
        penalty_table_version=PENALTY_TABLE_VERSION,
    )


@router.get("/ready")
async def readiness_check(db: DbSession, response: Response) -> dict[str, str]:
    """Ready once bookings can be written; 503 until then."""
    if not await _database_reachable(db):
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
        return {"status": "not_ready"}
    return {"status": "ready"}


@router.get("/live")
async def liveness_check() -> dict[str, str]:
    return {"status": "alive"}
