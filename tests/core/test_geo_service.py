# tests/core/test_geo_service.py
"""
Тесты для геосервиса.
"""

from __future__ import annotations

import httpx
import pytest

from src.core.geo.service import GeoService, Location, haversine_km


LAGOS = Location(latitude=6.5244, longitude=3.3792)
IKEJA = Location(latitude=6.6018, longitude=3.3515)


def _client(payload: dict, status_code: int = 200) -> httpx.AsyncClient:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(status_code, json=payload)

    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


class TestHaversine:
    """Тесты прямого расстояния."""

    def test_same_point(self) -> None:
        assert haversine_km(LAGOS, LAGOS) == 0

    def test_known_distance(self) -> None:
        assert haversine_km(LAGOS, IKEJA) == pytest.approx(9.1, abs=0.3)

    def test_symmetric(self) -> None:
        assert haversine_km(LAGOS, IKEJA) == pytest.approx(haversine_km(IKEJA, LAGOS))


class TestRoadDistance:
    """Тесты запроса к Distance Matrix."""

    @pytest.mark.asyncio
    async def test_without_key(self) -> None:
        geo = GeoService(api_key="", client=_client({}))

        assert geo.is_configured is False
        assert await geo.road_distance(LAGOS, IKEJA) is None

    @pytest.mark.asyncio
    async def test_ok_response(self) -> None:
        payload = {
            "status": "OK",
            "rows": [{"elements": [{
                "status": "OK",
                "distance": {"value": 12400},
                "duration": {"value": 1500},
            }]}],
        }
        geo = GeoService(api_key="key", client=_client(payload))

        result = await geo.road_distance(LAGOS, IKEJA)

        assert result is not None
        assert result.distance_km == pytest.approx(12.4)
        assert result.duration_seconds == 1500

    @pytest.mark.asyncio
    async def test_route_not_found(self) -> None:
        payload = {"status": "OK", "rows": [{"elements": [{"status": "ZERO_RESULTS"}]}]}
        geo = GeoService(api_key="key", client=_client(payload))

        assert await geo.road_distance(LAGOS, IKEJA) is None

    @pytest.mark.asyncio
    async def test_denied_request(self) -> None:
        geo = GeoService(api_key="key", client=_client({"status": "REQUEST_DENIED"}))

        assert await geo.road_distance(LAGOS, IKEJA) is None

    @pytest.mark.asyncio
    async def test_transport_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("unreachable")

        geo = GeoService(
            api_key="key",
            client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
        )

        assert await geo.road_distance(LAGOS, IKEJA) is None
