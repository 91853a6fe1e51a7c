"""
User API Backend — Test Configuration (conftest.py)
=====================================================

What:  Shared pytest fixtures for the entire test suite.
How:   pytest auto-discovers conftest.py and makes fixtures available to all tests.

Fixtures:
    ├── mock_db_session: Mock AsyncSession (no real DB needed)
    ├── sample_user: Transient User row with a known password hash
    ├── app: create_app() with the session dependency overridden
    ├── test_client: HTTPX AsyncClient bound to `app`
    └── basic_auth: Builds an Authorization header value
"""

import base64
import os
import uuid
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import bcrypt
import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport

# Must be set BEFORE any userapi import: settings are read at import time
os.environ["DB_HOST"] = "db.test.internal"
os.environ["DB_PORT"] = "6543"
os.environ["DB_NAME"] = "users_test"
os.environ["DB_USER"] = "tester"
os.environ["DB_PASSWORD"] = "not-a-real-secret"
os.environ["LOG_LEVEL"] = "WARNING"

SAMPLE_PASSWORD = "correct horse battery"


@pytest.fixture
def mock_db_session():
    """
    Provides a mock async database session.

    Usage:
        mock_db_session.execute.return_value.scalar_one_or_none.return_value = user
    """
    session = AsyncMock()
    session.execute = AsyncMock()
    session.flush = AsyncMock()
    session.commit = AsyncMock()
    session.rollback = AsyncMock()
    session.close = AsyncMock()
    session.add = MagicMock()
    return session


@pytest.fixture(scope="session")
def sample_password():
    return SAMPLE_PASSWORD


@pytest.fixture(scope="session")
def sample_password_hash():
    # Low cost factor keeps the suite fast; checkpw reads it from the hash
    from userapi.services.user_service import _digest

    return bcrypt.hashpw(_digest(SAMPLE_PASSWORD), bcrypt.gensalt(rounds=4)).decode()


@pytest.fixture
def sample_user(sample_password_hash):
    from userapi.models.user import User

    now = datetime(2024, 1, 15, 12, 0, tzinfo=timezone.utc)
    return User(
        id=uuid.UUID("7f3f8a36-5c7e-4b8e-9a3e-2b8f1f9d6a10"),
        first_name="Ada",
        last_name="Lovelace",
        email="ada@example.com",
        password=sample_password_hash,
        account_created=now,
        account_updated=now,
    )


@pytest.fixture
def basic_auth():
    def build(email: str, password: str) -> str:
        token = base64.b64encode(f"{email}:{password}".encode()).decode()
        return f"Basic {token}"
    return build


@pytest.fixture
def app(mock_db_session):
    """A fresh application whose requests all share `mock_db_session`."""
    from userapi.database import get_db_session
    from userapi.main import create_app

    application = create_app(database=MagicMock())
    application.dependency_overrides[get_db_session] = lambda: mock_db_session
    return application


@pytest_asyncio.fixture
async def test_client(app):
    """
    Provides an async HTTP test client for endpoint testing.

    ASGITransport does not run the lifespan, so no engine is ever built.
    """
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
