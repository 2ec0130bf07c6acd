"""Integration test fixtures running the API against an in-memory database."""

from collections.abc import AsyncGenerator

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from guard_payroll.api.app import create_app
from guard_payroll.api.dependencies import get_db_session

HR_USER = "hr-manager"


@pytest.fixture
async def session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Seeding session; tests commit it before calling the API."""
    async with session_factory() as session:
        yield session


@pytest.fixture
async def client(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncClient, None]:
    """Create async HTTP client for API testing."""
    app = create_app()

    async def override_db_session() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db_session] = override_db_session
    transport = ASGITransport(app=app)
    async with AsyncClient(
        transport=transport,
        base_url="http://test",
        headers={"X-User-ID": HR_USER},
    ) as client:
        yield client
