"""
Postboard Backend — Test Configuration (conftest.py)
=====================================================

What:  Shared pytest fixtures for the entire test suite.

Fixture Hierarchy (all function-scoped):
    ├── mock_db_session: AsyncMock session for service unit tests
    ├── auth_service:    AuthService with a test key and cheap bcrypt cost
    ├── test_settings:   Settings pointing at a fresh SQLite file per test
    ├── test_app:        Application built from test_settings, tables created
    ├── test_client:     HTTPX AsyncClient talking to test_app in-process
    └── register_user:   Helper that signs up + logs in, returns (id, token)
"""

import os
from typing import AsyncGenerator, Callable
from unittest.mock import AsyncMock, MagicMock

# Settings for the module-level app in postboard.main, set BEFORE any
# postboard import so nothing points at a real database
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./postboard_test.db")
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("LOG_LEVEL", "WARNING")

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy import select

from postboard.config import Settings
from postboard.database import create_schema, dispose_engine
from postboard.main import create_app
from postboard.models.user import User
from postboard.services.auth_service import AuthService

TEST_SECRET_KEY = "test-secret-key"


@pytest.fixture
def mock_db_session():
    """
    Provides a mock async database session.

    Usage:
        mock_db_session.get.return_value = post
        await post_service.update_post(mock_db_session, identity, 1, body)
    """
    session = AsyncMock()
    session.execute = AsyncMock()
    session.get = AsyncMock()
    session.delete = AsyncMock()
    session.flush = AsyncMock()
    session.commit = AsyncMock()
    session.rollback = AsyncMock()
    session.close = AsyncMock()
    session.add = MagicMock()
    return session


def scalar_result(value):
    """Mock of a Result whose scalar_one_or_none() returns `value`."""
    result = MagicMock()
    result.scalar_one_or_none.return_value = value
    return result


@pytest.fixture
def auth_service():
    return AuthService(secret_key=TEST_SECRET_KEY, bcrypt_rounds=4)


@pytest.fixture
def test_settings(tmp_path):
    return Settings(
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'postboard.db'}",
        secret_key=TEST_SECRET_KEY,
        bcrypt_rounds=4,
        rate_limit_requests=10000,
        log_level="WARNING",
    )


@pytest_asyncio.fixture
async def test_app(test_settings):
    """Application with its own SQLite database and freshly created tables."""
    app = create_app(test_settings)
    await create_schema(app.state.engine)
    yield app
    await dispose_engine(app.state.engine)


@pytest_asyncio.fixture
async def test_client(test_app) -> AsyncGenerator[AsyncClient, None]:
    """
    Async HTTP client routed straight into the ASGI app (no server).

    Usage:
        async def test_health(test_client):
            response = await test_client.get("/health")
    """
    transport = ASGITransport(app=test_app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest.fixture
def register_user(test_client, test_app) -> Callable:
    """Returns an async helper: signup + login, giving back (user_id, token)."""

    async def _register(username: str = "alice", password: str = "pw1"):
        signup = await test_client.post(
            "/auth/signup", json={"username": username, "password": password}
        )
        assert signup.status_code == 201, signup.text
        login = await test_client.post(
            "/auth/login", json={"username": username, "password": password}
        )
        assert login.status_code == 200, login.text

        async with test_app.state.session_factory() as session:
            result = await session.execute(select(User.id).where(User.username == username))
            user_id = result.scalar_one()
        return user_id, login.json()["token"]

    return _register


def bearer(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}
