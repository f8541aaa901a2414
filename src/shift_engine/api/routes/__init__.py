"""API routes."""

from shift_engine.api.routes.applications import router as applications_router
from shift_engine.api.routes.health import router as health_router
from shift_engine.api.routes.shifts import penalties_router, router as shifts_router

__all__ = ["applications_router", "health_router", "penalties_router", "shifts_router"]
