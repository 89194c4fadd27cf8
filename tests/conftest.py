"""Shared pytest fixtures and configuration for all tests."""

import os
import tempfile
from typing import Any, AsyncIterator

# Point the app at a throwaway SQLite file before preplate is imported
_DB_DIR = tempfile.mkdtemp(prefix="preplate-tests-")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{os.path.join(_DB_DIR, 'test.db')}"
os.environ["JWT_SECRET"] = "test-signing-secret"
os.environ["ENV_MODE"] = "development"
os.environ["DEBUG"] = "false"

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession  # noqa: E402

from preplate.core.config import get_settings  # noqa: E402
from preplate.core.tokens import get_token_service  # noqa: E402
from preplate.database import Base, async_session_maker, engine  # noqa: E402
from preplate.main import app  # noqa: E402
from tests.factories import login, register, run, seed_restaurant  # noqa: E402


async def _reset_schema() -> None:
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)


@pytest.fixture(autouse=True)
def fresh_database(request: pytest.FixtureRequest):
    """Every test starts from empty tables."""
    # async tests reset inside their own loop via the ``session`` fixture
    if request.node.get_closest_marker("asyncio") is None:
        run(_reset_schema())
    yield


@pytest_asyncio.fixture
async def session() -> AsyncIterator[AsyncSession]:
    """Session on freshly created tables, for service-level async tests."""
    await _reset_schema()
    async with async_session_maker() as db:
        yield db


@pytest.fixture(autouse=True)
def fresh_caches():
    """Settings and the token service are rebuilt from the test environment."""
    get_settings.cache_clear()
    get_token_service.cache_clear()
    yield
    get_settings.cache_clear()
    get_token_service.cache_clear()


@pytest.fixture
def client() -> TestClient:
    return TestClient(app)


@pytest.fixture
def user_token(client: TestClient) -> str:
    """Token for the user account ``a@x.com``."""
    response = register(client, "user", "a@x.com")
    assert response.status_code == 201, response.text
    return response.json()["token"]


@pytest.fixture
def restaurant() -> dict[str, Any]:
    """Open restaurant with a 10.00 and a 5.00 dish."""
    return seed_restaurant()


@pytest.fixture
def restaurant_token(client: TestClient, restaurant: dict[str, Any]) -> str:
    return login(client, "restaurant", restaurant["email"])
