import os

# Settings are read once at import time, so the test secrets must be in place
# before anything from the package is imported.
os.environ.setdefault("STRIPE_SECRET_KEY", "sk_test_dummy")
os.environ.setdefault("STRIPE_WEBHOOK_SECRET", "whsec_test_secret")
os.environ.setdefault("APP_ENV", "test")

from unittest.mock import AsyncMock  # noqa: E402

import pytest  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402

from fundraiser.database import get_db  # noqa: E402
from fundraiser.main import app  # noqa: E402


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
async def client():
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture
def mock_db():
    """An AsyncMock standing in for an AsyncSession.

    Tests set ``mock_db.execute.side_effect`` to the sequence of result
    objects each statement should return.
    """
    session = AsyncMock()
    session.commit = AsyncMock()
    session.rollback = AsyncMock()
    return session


@pytest.fixture
def override_db(mock_db):
    """Route the ``get_db`` dependency to ``mock_db`` for one test."""

    async def _override_get_db():
        yield mock_db

    app.dependency_overrides[get_db] = _override_get_db
    try:
        yield mock_db
    finally:
        app.dependency_overrides.clear()
