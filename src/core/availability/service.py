# src/core/availability/service.py
"""
Проверка доступности услуги по адресу доставки.

Правило радиуса:
- расстояние <= радиуса            -> доступно без доплаты
- расстояние <= радиус * factor    -> доступно с доплатой (d - r) * стоимость км
- иначе                            -> недоступно, предлагаются альтернативы
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

from src.common.constants import TypeMsg
from src.common.errors import ApiError, ErrorCodes
from src.common.logger import log_error, log_info
from src.core.catalog.models import NearbyService, ServiceListing
from src.core.catalog.repository import ServiceCatalogRepository
from src.core.geo.service import GeoService, Location, haversine_km
from src.core.users.models import CustomerAddress
from src.core.users.repository import UserRepository

_KM_PRECISION = Decimal("0.001")
_MONEY_PRECISION = Decimal("0.01")


@dataclass
class DistanceMeasurement:
    """Результат замера расстояния между услугой и адресом."""
    straight_line_km: float
    road_km: Optional[float] = None
    duration_seconds: Optional[int] = None

    @property
    def distance_km(self) -> Decimal:
        """Дорожное расстояние, если известно, иначе прямое."""
        value = self.road_km if self.road_km is not None else self.straight_line_km
        return Decimal(str(value)).quantize(_KM_PRECISION, rounding=ROUND_HALF_UP)


@dataclass
class SurchargeDecision:
    """Решение по радиусу обслуживания."""
    is_available: bool
    additional_fee: Decimal


@dataclass
class AvailabilityResult:
    """Итог проверки доступности."""
    is_available: bool
    distance_km: Decimal
    service_radius_km: Decimal
    additional_fee: Decimal
    duration_seconds: Optional[int] = None
    suggested_services: list[NearbyService] = field(default_factory=list)


def evaluate_surcharge(
    distance_km: Decimal,
    radius_km: Decimal,
    delivery_cost_per_km: Decimal,
    radius_factor: Decimal = Decimal("1.5"),
) -> SurchargeDecision:
    """
    Применяет правило радиуса к расстоянию.

    Args:
        distance_km: Расстояние до адреса
        radius_km: Радиус обслуживания услуги
        delivery_cost_per_km: Стоимость доставки за км сверх радиуса
        radius_factor: Во сколько раз можно превысить радиус с доплатой

    Returns:
        Доступность и доплата
    """
    if distance_km <= radius_km:
        return SurchargeDecision(is_available=True, additional_fee=Decimal("0"))

    if distance_km <= radius_km * radius_factor:
        fee = ((distance_km - radius_km) * delivery_cost_per_km).quantize(
            _MONEY_PRECISION, rounding=ROUND_HALF_UP
        )
        return SurchargeDecision(is_available=True, additional_fee=fee)

    return SurchargeDecision(is_available=False, additional_fee=Decimal("0"))


class AvailabilityChecker:
    """Определяет, может ли услуга обслужить адрес, и считает доплату."""

    def __init__(
        self,
        catalog: ServiceCatalogRepository,
        users: UserRepository,
        geo: GeoService,
        radius_factor: Decimal = Decimal("1.5"),
        suggestions_limit: int = 5,
    ) -> None:
        """
        Args:
            catalog: Репозиторий услуг
            users: Репозиторий пользователей и адресов
            geo: Клиент дорожных расстояний
            radius_factor: Допустимое превышение радиуса с доплатой
            suggestions_limit: Сколько альтернатив предлагать
        """
        self._catalog = catalog
        self._users = users
        self._geo = geo
        self._radius_factor = radius_factor
        self._suggestions_limit = suggestions_limit

    async def measure_distance(
        self,
        service: ServiceListing,
        address: CustomerAddress,
    ) -> DistanceMeasurement:
        """
        Замеряет прямое (PostGIS) и дорожное (Distance Matrix) расстояние.

        Raises:
            ApiError: GEOSPATIAL_CALCULATION_FAILED при сбое запроса к БД
        """
        origin = Location(latitude=service.latitude, longitude=service.longitude)
        destination = Location(latitude=address.latitude, longitude=address.longitude)

        try:
            straight_line = await self._catalog.straight_line_distance_km(service.id, address.id)
        except Exception as e:
            await log_error(f"Ошибка геозапроса для услуги {service.id} и адреса {address.id}: {e}")
            raise ApiError.internal(
                "Failed to calculate distance",
                ErrorCodes.GEOSPATIAL_CALCULATION_FAILED,
                {"serviceId": service.id, "addressId": address.id},
            )

        if straight_line is None:
            straight_line = haversine_km(origin, destination)

        measurement = DistanceMeasurement(straight_line_km=straight_line)

        road = await self._geo.road_distance(origin, destination)
        if road is not None:
            measurement.road_km = road.distance_km
            measurement.duration_seconds = road.duration_seconds

        await log_info(
            f"Расстояние услуга {service.id} -> адрес {address.id}: "
            f"прямое {straight_line:.3f} км, дорожное {measurement.road_km}",
            type_msg=TypeMsg.DEBUG,
        )
        return measurement

    async def check(self, service_id: str, address_id: str) -> AvailabilityResult:
        """
        Проверяет доступность услуги по ID услуги и адреса.

        Raises:
            ApiError: ADDRESS_LOCATION_NOT_FOUND, SERVICE_LOCATION_NOT_FOUND
        """
        address = await self._users.get_address(address_id)
        if address is None or not address.has_location:
            raise ApiError.not_found(
                "Address location not found",
                ErrorCodes.ADDRESS_LOCATION_NOT_FOUND,
                {"addressId": address_id},
            )

        service = await self._catalog.get_service(service_id)
        if service is None or not service.has_location:
            raise ApiError.not_found(
                "Service location or radius not found",
                ErrorCodes.SERVICE_LOCATION_NOT_FOUND,
                {"serviceId": service_id},
            )

        return await self.check_for(service, address)

    async def check_for(
        self,
        service: ServiceListing,
        address: CustomerAddress,
    ) -> AvailabilityResult:
        """Проверяет доступность для уже загруженных услуги и адреса."""
        measurement = await self.measure_distance(service, address)
        distance = measurement.distance_km
        radius = service.service_radius

        decision = evaluate_surcharge(distance, radius, service.delivery_cost, self._radius_factor)
        result = AvailabilityResult(
            is_available=decision.is_available,
            distance_km=distance,
            service_radius_km=radius,
            additional_fee=decision.additional_fee,
            duration_seconds=measurement.duration_seconds,
        )

        if not decision.is_available:
            result.suggested_services = await self._catalog.find_nearby(
                latitude=address.latitude,
                longitude=address.longitude,
                radius_km=float(radius),
                service_type_id=service.service_type_id,
                limit=self._suggestions_limit,
                exclude_service_id=service.id,
            )
            await log_info(
                f"Услуга {service.id} недоступна: {distance} км при радиусе {radius} км, "
                f"альтернатив: {len(result.suggested_services)}",
                type_msg=TypeMsg.INFO,
            )

        return result
