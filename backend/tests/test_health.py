from __future__ import annotations

import logging
from typing import TYPE_CHECKING
from unittest.mock import AsyncMock

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from leavetrack.db import get_session
from leavetrack.main import app

if TYPE_CHECKING:
    from collections.abc import AsyncIterator


async def test_health_returns_200(async_client: AsyncClient) -> None:
    response = await async_client.get("/health")
    assert response.status_code == 200


async def test_health_response_body(async_client: AsyncClient) -> None:
    response = await async_client.get("/health")
    data = response.json()
    assert data["status"] == "ok"
    assert data["database"] == "ok"
    assert data["version"] == "0.1.0"
    assert data["environment"] == "development"


async def test_health_response_schema(async_client: AsyncClient) -> None:
    response = await async_client.get("/health")
    data = response.json()
    assert set(data.keys()) == {"status", "database", "version", "environment", "today"}
    assert data["status"] in ("ok", "degraded")
    assert data["today"] == "2026-10-17"


async def test_health_degraded_on_db_failure() -> None:
    """GET /health returns degraded status when the database is unreachable."""
    mock_session = AsyncMock(spec=AsyncSession)
    mock_session.execute.side_effect = ConnectionError("DB unreachable")

    async def _broken_session() -> AsyncIterator[AsyncSession]:
        yield mock_session

    app.dependency_overrides[get_session] = _broken_session
    try:
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
            response = await client.get("/health")
        data = response.json()
        assert response.status_code == 200
        assert data["status"] == "degraded"
        assert data["database"] == "unreachable"
    finally:
        app.dependency_overrides.clear()


async def test_request_log_includes_actor(async_client: AsyncClient, caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.INFO, logger="leavetrack.middleware")
    await async_client.get("/health", headers={"X-User-Id": "3d9f3d1e-6d8b-4a53-9a3a-2b1c55f0a001"})
    messages = [r.getMessage() for r in caplog.records if r.name == "leavetrack.middleware"]
    assert any("GET /health -> 200" in m and "3d9f3d1e-6d8b-4a53-9a3a-2b1c55f0a001" in m for m in messages)
