"""
Failure Injection Tests.

Validates behaviour when Redis or the database misbehave.
"""

import pytest
from unittest.mock import MagicMock, AsyncMock
from redis.exceptions import ConnectionError as RedisConnectionError
from sqlalchemy.exc import OperationalError

import delivery_backend.app.core.redis_client as redis_client_module
from delivery_backend.app.core.config import settings
from delivery_backend.app.core.token_revocation import revoke_token, is_token_revoked


@pytest.fixture
def broken_redis(mocker):
    broken = MagicMock()
    broken.ping = AsyncMock(side_effect=RedisConnectionError("Connection refused"))
    broken.exists = AsyncMock(side_effect=RedisConnectionError("Connection refused"))
    broken.setex = AsyncMock(side_effect=RedisConnectionError("Connection refused"))
    mocker.patch.object(redis_client_module, "redis_client", broken)
    return broken


@pytest.mark.asyncio
async def test_health_reports_redis_down(client, broken_redis):
    response = await client.get("/health")

    assert response.status_code == 200
    assert response.json()["redis"] == "down"


@pytest.mark.asyncio
async def test_revocation_check_fails_open(broken_redis):
    assert await is_token_revoked("some.jwt.token") is False
    assert await revoke_token("some.jwt.token", "cust_1") is False


@pytest.mark.asyncio
async def test_requests_still_served_without_redis(client, client_headers, broken_redis):
    me = await client.get("/v1/auth/me", headers=client_headers)
    assert me.status_code == 200

    logout = await client.post("/v1/auth/logout", headers=client_headers)
    assert logout.status_code == 200
    assert logout.json()["revoked"] is False


@pytest.mark.asyncio
async def test_blacklist_entry_expires_with_token(redis_client_session):
    assert await revoke_token("short.lived.token", "cust_1", expires_at=None) is True

    key = "blacklist:token:short.lived.token"
    assert redis_client_session.store[key] == "cust_1"
    assert redis_client_session.ttls[key] == settings.access_token_expire_minutes * 60


@pytest.mark.asyncio
async def test_database_failure_maps_to_503(client, mocker):
    mocker.patch(
        "sqlalchemy.ext.asyncio.AsyncSession.execute",
        side_effect=OperationalError("SELECT", {}, Exception("server closed the connection"))
    )

    response = await client.get("/v1/tracking/PKG00000001")

    assert response.status_code == 503
    assert response.json()["error_code"] == "ERR_PERSISTENCE_001"
