"""API test fixtures."""

from collections.abc import AsyncGenerator

import pytest
from httpx import ASGITransport, AsyncClient

from shift_engine.api.app import create_app


@pytest.fixture
async def client(service) -> AsyncGenerator[AsyncClient, None]:
    """Create async HTTP client bound to the test allocation service."""
    app = create_app(service)
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
