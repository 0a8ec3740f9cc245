# tests/core/test_availability_service.py
"""
Тесты для проверки доступности услуги.
"""

from __future__ import annotations

from decimal import Decimal
from unittest.mock import AsyncMock

import pytest

from src.common.errors import ApiError, ErrorCodes
from src.core.availability.service import (
    AvailabilityChecker,
    DistanceMeasurement,
    evaluate_surcharge,
)
from src.core.geo.service import RoadDistance


class TestEvaluateSurcharge:
    """Правило радиуса на границах."""

    def test_inside_radius(self) -> None:
        decision = evaluate_surcharge(Decimal("10"), Decimal("10"), Decimal("100"))

        assert decision.is_available is True
        assert decision.additional_fee == Decimal("0")

    def test_within_extended_radius(self) -> None:
        decision = evaluate_surcharge(Decimal("11"), Decimal("10"), Decimal("100"))

        assert decision.is_available is True
        assert decision.additional_fee == Decimal("100.00")

    def test_on_extended_boundary(self) -> None:
        decision = evaluate_surcharge(Decimal("15"), Decimal("10"), Decimal("100"))

        assert decision.is_available is True
        assert decision.additional_fee == Decimal("500.00")

    def test_beyond_extended_radius(self) -> None:
        decision = evaluate_surcharge(Decimal("16"), Decimal("10"), Decimal("100"))

        assert decision.is_available is False
        assert decision.additional_fee == Decimal("0")


class TestDistanceMeasurement:
    def test_prefers_road_distance(self) -> None:
        measurement = DistanceMeasurement(straight_line_km=7.0, road_km=9.4567)

        assert measurement.distance_km == Decimal("9.457")

    def test_falls_back_to_straight_line(self) -> None:
        assert DistanceMeasurement(straight_line_km=7.0).distance_km == Decimal("7.000")


@pytest.fixture
def catalog() -> AsyncMock:
    repo = AsyncMock()
    repo.straight_line_distance_km = AsyncMock(return_value=7.0)
    repo.find_nearby = AsyncMock(return_value=[])
    return repo


@pytest.fixture
def geo() -> AsyncMock:
    service = AsyncMock()
    service.road_distance = AsyncMock(return_value=None)
    return service


@pytest.fixture
def checker(catalog: AsyncMock, geo: AsyncMock) -> AvailabilityChecker:
    return AvailabilityChecker(catalog=catalog, users=AsyncMock(), geo=geo)


class TestAvailabilityChecker:
    """Тесты для AvailabilityChecker с замоканными репозиториями."""

    @pytest.mark.asyncio
    async def test_available_without_fee(
        self, checker: AvailabilityChecker, sample_service, sample_address
    ) -> None:
        result = await checker.check_for(sample_service, sample_address)

        assert result.is_available is True
        assert result.distance_km == Decimal("7.000")
        assert result.additional_fee == Decimal("0")
        assert result.suggested_services == []

    @pytest.mark.asyncio
    async def test_road_distance_with_surcharge(
        self, checker: AvailabilityChecker, geo: AsyncMock, sample_service, sample_address
    ) -> None:
        geo.road_distance = AsyncMock(return_value=RoadDistance(distance_km=11.0, duration_seconds=900))

        result = await checker.check_for(sample_service, sample_address)

        assert result.is_available is True
        assert result.additional_fee == Decimal("100.00")
        assert result.duration_seconds == 900

    @pytest.mark.asyncio
    async def test_unavailable_returns_suggestions(
        self,
        checker: AvailabilityChecker,
        catalog: AsyncMock,
        sample_service,
        sample_address,
        sample_nearby,
    ) -> None:
        catalog.straight_line_distance_km = AsyncMock(return_value=16.0)
        catalog.find_nearby = AsyncMock(return_value=sample_nearby)

        result = await checker.check_for(sample_service, sample_address)

        assert result.is_available is False
        assert result.suggested_services == sample_nearby
        kwargs = catalog.find_nearby.await_args.kwargs
        assert kwargs["exclude_service_id"] == sample_service.id
        assert kwargs["service_type_id"] == "type-petrol"

    @pytest.mark.asyncio
    async def test_haversine_fallback(
        self, checker: AvailabilityChecker, catalog: AsyncMock, sample_service, sample_address
    ) -> None:
        catalog.straight_line_distance_km = AsyncMock(return_value=None)

        measurement = await checker.measure_distance(sample_service, sample_address)

        assert 7.0 < measurement.straight_line_km < 8.5

    @pytest.mark.asyncio
    async def test_geospatial_failure(
        self, checker: AvailabilityChecker, catalog: AsyncMock, sample_service, sample_address
    ) -> None:
        catalog.straight_line_distance_km = AsyncMock(side_effect=RuntimeError("postgis"))

        with pytest.raises(ApiError) as exc_info:
            await checker.measure_distance(sample_service, sample_address)

        assert exc_info.value.error_code == ErrorCodes.GEOSPATIAL_CALCULATION_FAILED

    @pytest.mark.asyncio
    async def test_address_without_location(self, catalog: AsyncMock, geo: AsyncMock, sample_address) -> None:
        users = AsyncMock()
        users.get_address = AsyncMock(return_value=sample_address.model_copy(update={"latitude": None}))
        checker = AvailabilityChecker(catalog=catalog, users=users, geo=geo)

        with pytest.raises(ApiError) as exc_info:
            await checker.check("svc-1", sample_address.id)

        assert exc_info.value.error_code == ErrorCodes.ADDRESS_LOCATION_NOT_FOUND

    @pytest.mark.asyncio
    async def test_service_without_radius(
        self, catalog: AsyncMock, geo: AsyncMock, sample_address, sample_service
    ) -> None:
        users = AsyncMock()
        users.get_address = AsyncMock(return_value=sample_address)
        catalog.get_service = AsyncMock(
            return_value=sample_service.model_copy(update={"service_radius": None})
        )
        checker = AvailabilityChecker(catalog=catalog, users=users, geo=geo)

        with pytest.raises(ApiError) as exc_info:
            await checker.check("svc-1", sample_address.id)

        assert exc_info.value.error_code == ErrorCodes.SERVICE_LOCATION_NOT_FOUND
