"""FastAPI application factory."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from shift_engine.api.routes import (
    applications_router,
    health_router,
    penalties_router,
    shifts_router,
)
from shift_engine.config import get_settings
from shift_engine.database import dispose_db, init_db
from shift_engine.services.allocation_service import AllocationService
from shift_engine.services.errors import AllocationError

logger = logging.getLogger(__name__)

# Domain error code -> HTTP status. Unlisted codes are client conflicts (409).
STATUS_BY_CODE: dict[str, int] = {
    "VALIDATION_ERROR": status.HTTP_422_UNPROCESSABLE_ENTITY,
    "NOT_FOUND": status.HTTP_404_NOT_FOUND,
    "PROFILE_INCOMPLETE": status.HTTP_400_BAD_REQUEST,
    "OUTSIDE_GEOFENCE": status.HTTP_400_BAD_REQUEST,
    "INVALID_QR_CODE": status.HTTP_400_BAD_REQUEST,
    "CONCURRENCY_CONFLICT": status.HTTP_503_SERVICE_UNAVAILABLE,
    "STORAGE_ERROR": status.HTTP_500_INTERNAL_SERVER_ERROR,
    "CAPACITY_INVARIANT_VIOLATED": status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def status_for(error: AllocationError) -> int:
    """HTTP status for a domain error."""
    return STATUS_BY_CODE.get(error.code, status.HTTP_409_CONFLICT)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler."""
    # Startup
    owns_database = getattr(app.state, "allocation_service", None) is None
    if owns_database:
        _, session_factory = init_db()
        app.state.allocation_service = AllocationService(
            session_factory,
            config=get_settings().allocation,
        )
    yield
    # Shutdown
    if owns_database:
        await dispose_db()


def create_app(service: AllocationService | None = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        service: Pre-built allocation service. When omitted one is created
            at startup from the configured database.
    """
    app = FastAPI(
        title="Shift Engine API",
        description="Shift booking, cancellation and attendance",
        version="0.1.0",
        lifespan=lifespan,
    )
    if service is not None:
        app.state.allocation_service = service

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Exception handlers
    @app.exception_handler(AllocationError)
    async def allocation_error_handler(
        request: Request, exc: AllocationError
    ) -> JSONResponse:
        """Map domain errors to their HTTP status."""
        status_code = status_for(exc)
        if status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc)
        return JSONResponse(
            status_code=status_code,
            content=exc.to_dict(),
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(
        request: Request, exc: Exception
    ) -> JSONResponse:
        """Handle unexpected exceptions."""
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "detail": "An unexpected error occurred",
                "code": "INTERNAL_ERROR",
            },
        )

    # Include routers
    app.include_router(health_router)
    app.include_router(applications_router, prefix="/api/v1")
    app.include_router(shifts_router, prefix="/api/v1")
    app.include_router(penalties_router, prefix="/api/v1")

    return app


# Default app instance for uvicorn
app = create_app()
