# src/core/geo/service.py
"""
Geo-сервис: геодезическое расстояние и дорожное расстояние через
Google Distance Matrix API.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Optional

import httpx

from src.common.constants import EARTH_RADIUS_KM, TypeMsg
from src.common.logger import log_error, log_info


@dataclass
class Location:
    """Геолокация."""
    latitude: float
    longitude: float


@dataclass
class RoadDistance:
    """Дорожное расстояние и время в пути."""
    distance_km: float
    duration_seconds: int


def haversine_km(origin: Location, destination: Location) -> float:
    """
    Расстояние по большой окружности между двумя точками.

    Args:
        origin: Начальная точка
        destination: Конечная точка

    Returns:
        Расстояние в километрах
    """
    lat1, lat2 = math.radians(origin.latitude), math.radians(destination.latitude)
    d_lat = lat2 - lat1
    d_lng = math.radians(destination.longitude - origin.longitude)

    a = math.sin(d_lat / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(d_lng / 2) ** 2
    return EARTH_RADIUS_KM * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


class GeoService:
    """
    Клиент Google Distance Matrix.

    Сбой внешнего API не фатален: метод возвращает None и пишет
    предупреждение, вызывающий код переходит на прямое расстояние.
    """

    DISTANCE_MATRIX_URL = "https://maps.googleapis.com/maps/api/distancematrix/json"

    def __init__(
        self,
        api_key: str,
        timeout: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """
        Args:
            api_key: API ключ Google Maps (пустой ключ отключает запросы)
            timeout: Таймаут HTTP запроса в секундах
            client: Готовый HTTP клиент (для тестов)
        """
        self._api_key = api_key
        self._client = client or httpx.AsyncClient(timeout=timeout)

    @property
    def is_configured(self) -> bool:
        return bool(self._api_key)

    async def close(self) -> None:
        """Закрывает HTTP клиент."""
        await self._client.aclose()

    async def road_distance(
        self,
        origin: Location,
        destination: Location,
    ) -> Optional[RoadDistance]:
        """
        Дорожное расстояние на автомобиле между двумя точками.

        Returns:
            RoadDistance или None, если ключ не настроен или API вернул ошибку
        """
        if not self._api_key:
            await log_info(
                "Google Maps API key не настроен, используется прямое расстояние",
                type_msg=TypeMsg.WARNING,
            )
            return None

        try:
            response = await self._client.get(
                self.DISTANCE_MATRIX_URL,
                params={
                    "origins": f"{origin.latitude},{origin.longitude}",
                    "destinations": f"{destination.latitude},{destination.longitude}",
                    "mode": "driving",
                    "key": self._api_key,
                },
            )
            data = response.json()

            if data.get("status") != "OK" or not data.get("rows"):
                await log_info(
                    f"Distance Matrix вернул статус {data.get('status')}",
                    type_msg=TypeMsg.WARNING,
                )
                return None

            element = data["rows"][0]["elements"][0]
            if element.get("status") != "OK":
                await log_info(
                    f"Distance Matrix не нашёл маршрут: {element.get('status')}",
                    type_msg=TypeMsg.WARNING,
                )
                return None

            return RoadDistance(
                distance_km=element["distance"]["value"] / 1000,
                duration_seconds=int(element["duration"]["value"]),
            )
        except Exception as e:
            await log_error(f"Ошибка Distance Matrix API: {e}")
            return None
