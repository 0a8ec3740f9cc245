# tests/core/test_catalog_repository.py
"""
Тесты для репозитория каталога и пользователей.
"""

from __future__ import annotations

from decimal import Decimal
from unittest.mock import AsyncMock

import pytest

from src.core.catalog.repository import ServiceCatalogRepository
from src.core.users.repository import UserRepository


class TestServiceCatalogRepository:

    @pytest.mark.asyncio
    async def test_get_service(self, mock_db, mock_redis, sample_service_row) -> None:
        mock_db.fetchrow = AsyncMock(return_value=sample_service_row)

        service = await ServiceCatalogRepository(mock_db, mock_redis).get_service(sample_service_row["id"])

        assert service.type_key == "petrol"
        assert service.is_orderable
        assert service.has_location

    @pytest.mark.asyncio
    async def test_distance_converted_to_km(self, mock_db, mock_redis) -> None:
        mock_db.fetchval = AsyncMock(return_value=7700.0)

        assert await ServiceCatalogRepository(mock_db, mock_redis).straight_line_distance_km("s", "a") == 7.7

    @pytest.mark.asyncio
    async def test_distance_without_points(self, mock_db, mock_redis) -> None:
        assert await ServiceCatalogRepository(mock_db, mock_redis).straight_line_distance_km("s", "a") is None

    @pytest.mark.asyncio
    async def test_find_nearby_caches(self, mock_db, mock_redis) -> None:
        mock_db.fetch = AsyncMock(return_value=[{
            "id": "alt-1",
            "name": "Fuel Near",
            "service_type_id": "type-petrol",
            "price_per_unit": Decimal("990"),
            "avg_rating": Decimal("4.9"),
            "distance_km": 3.21456,
        }])
        repo = ServiceCatalogRepository(mock_db, mock_redis, nearby_ttl=45)

        services = await repo.find_nearby(6.45, 3.38, 10.0, "type-petrol", exclude_service_id="svc")

        assert services[0].distance_km == 3.215
        assert mock_redis.set_json.await_args.kwargs["ttl"] == 45
        assert mock_db.fetch.await_args.args[6] == "svc"

    @pytest.mark.asyncio
    async def test_find_nearby_keeps_fractional_radius(self, mock_db, mock_redis) -> None:
        mock_db.fetch = AsyncMock(return_value=[])
        repo = ServiceCatalogRepository(mock_db, mock_redis)

        await repo.find_nearby(6.45, 3.38, 2.5, "type-petrol")

        query, _lat, _lng, radius = mock_db.fetch.await_args.args[:4]
        assert "$3::float8 * 1000" in query
        assert radius == 2.5

    @pytest.mark.asyncio
    async def test_find_nearby_cache_hit(self, mock_db, mock_redis, sample_nearby) -> None:
        mock_redis.get_json = AsyncMock(return_value=[s.model_dump(mode="json") for s in sample_nearby])

        services = await ServiceCatalogRepository(mock_db, mock_redis).find_nearby(6.45, 3.38, 10.0, "type-petrol")

        assert services == sample_nearby
        mock_db.fetch.assert_not_called()


class TestUserRepository:

    @pytest.mark.asyncio
    async def test_user_with_role(self, mock_db) -> None:
        mock_db.fetchrow = AsyncMock(return_value={
            "id": "u-1",
            "role_id": "r-1",
            "role_name": "CUSTOMER",
            "email": "a@b.c",
            "full_name": "Ada",
        })

        user = await UserRepository(mock_db).get_by_id("u-1")

        assert user.has_role
        assert user.role_name == "CUSTOMER"

    @pytest.mark.asyncio
    async def test_address_missing(self, mock_db) -> None:
        assert await UserRepository(mock_db).get_address("a-1") is None

    @pytest.mark.asyncio
    async def test_address_without_location(self, mock_db) -> None:
        mock_db.fetchrow = AsyncMock(return_value={
            "id": "a-1",
            "user_id": "u-1",
            "address": "12 Marina Road",
            "latitude": None,
            "longitude": None,
        })

        address = await UserRepository(mock_db).get_address("a-1")

        assert address is not None
        assert not address.has_location
