"""FastAPI dependencies for dependency injection."""

from collections.abc import AsyncGenerator
from typing import Annotated

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from shift_engine.services.allocation_service import AllocationService


def get_allocation_service(request: Request) -> AllocationService:
    """The service instance created at startup."""
    return request.app.state.allocation_service


async def get_db_session(
    service: Annotated[AllocationService, Depends(get_allocation_service)],
) -> AsyncGenerator[AsyncSession, None]:
    """Get database session dependency."""
    async with service.session_factory() as session:
        try:
            yield session
        finally:
            await session.close()


# Type aliases for cleaner dependency injection
DbSession = Annotated[AsyncSession, Depends(get_db_session)]
Allocation = Annotated[AllocationService, Depends(get_allocation_service)]
