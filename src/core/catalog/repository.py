# src/core/catalog/repository.py
"""
Репозиторий каталога услуг.
Геопространственные запросы выполняются средствами PostGIS.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Optional

from asyncpg import Connection, Record

from src.common.constants import ORDERABLE_LISTING_STATUSES, TypeMsg
from src.common.logger import log_info
from src.core.catalog.models import NearbyService, ServiceListing
from src.infra.database import DatabaseManager
from src.infra.redis_client import RedisClient


_SERVICE_COLUMNS = """
    s.id, s.provider_id, s.service_type_id, st.name AS service_type_name,
    s.name, s.price_per_unit, s.delivery_cost, s.service_radius,
    s.latitude, s.longitude, s.status, s.is_active, s.avg_rating, s.rating_count
"""


class ServiceCatalogRepository:
    """Чтение услуг, расстояния и поиск ближайших альтернатив."""

    def __init__(
        self,
        db: DatabaseManager,
        redis: RedisClient,
        nearby_ttl: int = 60,
    ) -> None:
        """
        Args:
            db: Менеджер базы данных
            redis: Клиент Redis (кэш поиска поблизости)
            nearby_ttl: TTL кэша поиска в секундах
        """
        self._db = db
        self._redis = redis
        self._nearby_ttl = nearby_ttl

    async def get_service(
        self,
        service_id: str,
        conn: Connection | None = None,
    ) -> Optional[ServiceListing]:
        """
        Получает услугу вместе с названием типа.

        Args:
            service_id: UUID услуги
            conn: Соединение открытой транзакции (опционально)
        """
        executor = conn or self._db
        row = await executor.fetchrow(
            f"""
            SELECT {_SERVICE_COLUMNS}
            FROM services s
            JOIN service_types st ON st.id = s.service_type_id
            WHERE s.id = $1
            """,
            service_id,
        )
        return self._row_to_service(row) if row else None

    async def straight_line_distance_km(self, service_id: str, address_id: str) -> Optional[float]:
        """
        Геодезическое расстояние между услугой и адресом (PostGIS, geography).

        Returns:
            Расстояние в км или None, если у одной из сторон нет геоточки
        """
        distance_m = await self._db.fetchval(
            """
            SELECT ST_Distance(s.location, a.location)
            FROM services s, customer_addresses a
            WHERE s.id = $1 AND a.id = $2
              AND s.location IS NOT NULL AND a.location IS NOT NULL
            """,
            service_id,
            address_id,
        )
        if distance_m is None:
            return None
        return float(distance_m) / 1000

    async def find_nearby(
        self,
        latitude: float,
        longitude: float,
        radius_km: float,
        service_type_id: str,
        limit: int = 5,
        exclude_service_id: str | None = None,
    ) -> list[NearbyService]:
        """
        Ищет доступные услуги того же типа в радиусе от точки.
        Сортировка: рейтинг по убыванию, затем расстояние.
        Результат кэшируется на короткое время без инвалидации при записи.

        Args:
            latitude: Широта точки поиска
            longitude: Долгота точки поиска
            radius_km: Радиус поиска в км
            service_type_id: Тип услуги
            limit: Максимум результатов
            exclude_service_id: Услуга, которую не нужно предлагать
        """
        cache_key = (
            f"nearby:{latitude:.5f}:{longitude:.5f}:{radius_km}:"
            f"{service_type_id}:{exclude_service_id or 'none'}:{limit}"
        )
        cached = await self._redis.get_json(cache_key)
        if cached is not None:
            await log_info(f"Cache hit: {cache_key}", type_msg=TypeMsg.DEBUG)
            return [NearbyService.model_validate(item) for item in cached]

        rows = await self._db.fetch(
            """
            SELECT s.id, s.name, s.service_type_id, s.price_per_unit, s.avg_rating,
                   ST_Distance(
                       s.location,
                       ST_SetSRID(ST_MakePoint($2, $1), 4326)::geography
                   ) / 1000 AS distance_km
            FROM services s
            WHERE ST_DWithin(
                      s.location,
                      ST_SetSRID(ST_MakePoint($2, $1), 4326)::geography,
                      $3::float8 * 1000
                  )
              AND s.service_type_id = $4
              AND s.status = ANY($5::varchar[])
              AND s.is_active = TRUE
              AND ($6::uuid IS NULL OR s.id <> $6::uuid)
            ORDER BY s.avg_rating DESC, distance_km ASC
            LIMIT $7
            """,
            latitude,
            longitude,
            radius_km,
            service_type_id,
            list(ORDERABLE_LISTING_STATUSES),
            exclude_service_id,
            limit,
        )

        services = [
            NearbyService(
                id=str(row["id"]),
                name=row["name"],
                service_type_id=str(row["service_type_id"]),
                price_per_unit=row["price_per_unit"],
                avg_rating=row["avg_rating"],
                distance_km=round(float(row["distance_km"]), 3),
            )
            for row in rows
        ]
        await self._redis.set_json(
            cache_key,
            [s.model_dump(mode="json") for s in services],
            ttl=self._nearby_ttl,
        )
        return services

    async def update_rating(
        self,
        conn: Connection,
        service_id: str,
        avg_rating: Decimal,
        rating_count: int,
    ) -> None:
        """Записывает пересчитанный рейтинг услуги."""
        await conn.execute(
            """
            UPDATE services
            SET avg_rating = $2, rating_count = $3, updated_at = NOW()
            WHERE id = $1
            """,
            service_id,
            avg_rating,
            rating_count,
        )

    @staticmethod
    def _row_to_service(row: Record) -> ServiceListing:
        return ServiceListing(
            id=str(row["id"]),
            provider_id=str(row["provider_id"]),
            service_type_id=str(row["service_type_id"]),
            service_type_name=row["service_type_name"],
            name=row["name"],
            price_per_unit=row["price_per_unit"],
            delivery_cost=row["delivery_cost"],
            service_radius=row["service_radius"],
            latitude=row["latitude"],
            longitude=row["longitude"],
            status=row["status"],
            is_active=row["is_active"],
            avg_rating=row["avg_rating"],
            rating_count=row["rating_count"],
        )
