"""
Health check endpoint tests.
"""

from unittest.mock import AsyncMock, patch

import pytest
from httpx import AsyncClient, ASGITransport
from redis.exceptions import ConnectionError as RedisConnectionError

from app.main import app


@pytest.fixture
async def client():
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


@pytest.mark.asyncio
async def test_health_check(client: AsyncClient):
    """Health endpoint should return status ok."""
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


@pytest.mark.asyncio
async def test_ready_check(client: AsyncClient):
    """Ready when the database answers; Redis is reported alongside."""
    redis = AsyncMock()
    with patch("app.main.get_redis", AsyncMock(return_value=redis)):
        response = await client.get("/ready")
    assert response.status_code == 200
    assert response.json() == {"status": "ready", "checks": {"database": "ok", "redis": "ok"}}


@pytest.mark.asyncio
async def test_ready_with_redis_down(client: AsyncClient):
    """A Redis outage degrades push delivery but not readiness."""
    redis = AsyncMock()
    redis.ping.side_effect = RedisConnectionError("refused")
    with patch("app.main.get_redis", AsyncMock(return_value=redis)):
        response = await client.get("/ready")
    data = response.json()
    assert data["status"] == "ready"
    assert data["checks"]["redis"] == "unavailable"


@pytest.mark.asyncio
async def test_api_root(client: AsyncClient):
    """API v1 root should return version and endpoint list."""
    response = await client.get("/api/v1/")
    assert response.status_code == 200
    data = response.json()
    assert data["api"] == "v1"
    assert "/projects" in data["endpoints"]


def test_configure_logging_filters_below_level():
    """Level names are accepted and lower levels are dropped."""
    import structlog
    from structlog.testing import capture_logs

    from app.core.logging_config import configure_logging

    try:
        configure_logging("WARNING", "text")
        with capture_logs() as logs:
            log = structlog.get_logger()
            log.info("quiet")
            log.warning("loud")
        assert [entry["event"] for entry in logs] == ["loud"]
    finally:
        structlog.reset_defaults()
