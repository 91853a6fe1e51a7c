"""
User API Backend — Health Check Tests
"""

from unittest.mock import AsyncMock, MagicMock

import pytest
from httpx import ASGITransport, AsyncClient

from userapi.main import create_app


async def _get_health(database):
    app = create_app(database=database)
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        return await client.get("/healthz")


@pytest.mark.asyncio
async def test_healthy_when_database_answers():
    database = MagicMock()
    database.ping = AsyncMock()

    response = await _get_health(database)

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"
    assert response.json()["database"] == "connected"
    assert response.headers["Cache-Control"] == "no-cache, no-store, must-revalidate"
    database.ping.assert_awaited_once()


@pytest.mark.asyncio
async def test_unhealthy_when_database_unreachable():
    database = MagicMock()
    database.ping = AsyncMock(side_effect=ConnectionRefusedError("connection refused"))

    response = await _get_health(database)

    assert response.status_code == 503
    assert response.json()["status"] == "unhealthy"
    assert response.json()["database"] == "disconnected"


@pytest.mark.asyncio
async def test_unhealthy_before_startup():
    response = await _get_health(None)

    assert response.status_code == 503
