# tests/infra/test_redis_client.py
"""
Тесты для клиента Redis.
"""

from __future__ import annotations

from unittest.mock import AsyncMock

import pytest
from pydantic import BaseModel

from src.config.loader import RedisSettings
from src.infra.redis_client import RedisClient


class CachedThing(BaseModel):
    id: str
    amount: float


@pytest.fixture
def client() -> RedisClient:
    redis_client = RedisClient(RedisSettings(REDIS_NAMESPACE="test"))
    redis_client._client = AsyncMock()
    return redis_client


class TestRedisClient:
    """Тесты для RedisClient с замоканным redis.asyncio."""

    def test_not_connected(self) -> None:
        with pytest.raises(RuntimeError):
            _ = RedisClient(RedisSettings()).client

    @pytest.mark.asyncio
    async def test_keys_are_namespaced(self, client: RedisClient) -> None:
        await client.set("service_order:1", "v", ttl=30)

        client._client.set.assert_awaited_once_with("test:service_order:1", "v", ex=30)

    @pytest.mark.asyncio
    async def test_get_json_invalid(self, client: RedisClient) -> None:
        client._client.get = AsyncMock(return_value="{not json")

        assert await client.get_json("k") is None

    @pytest.mark.asyncio
    async def test_model_round_trip(self, client: RedisClient) -> None:
        await client.set_model("k", CachedThing(id="a", amount=1.5))
        stored = client._client.set.await_args.args[1]
        client._client.get = AsyncMock(return_value=stored)

        result = await client.get_model("k", CachedThing)

        assert result == CachedThing(id="a", amount=1.5)

    @pytest.mark.asyncio
    async def test_get_model_bad_payload(self, client: RedisClient) -> None:
        client._client.get = AsyncMock(return_value='{"id": 1}')

        assert await client.get_model("k", CachedThing) is None

    @pytest.mark.asyncio
    async def test_health_check_failure(self, client: RedisClient) -> None:
        client._client.ping = AsyncMock(side_effect=ConnectionError("down"))

        assert await client.health_check() is False
