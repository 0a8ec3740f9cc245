# src/core/catalog/models.py
"""
Модели каталога услуг.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict

from src.common.constants import ORDERABLE_LISTING_STATUSES


class ServiceListing(BaseModel):
    """Услуга поставщика (топливо, газ, зарядка EV, солнечные панели и т.п.)."""
    model_config = ConfigDict(from_attributes=True)

    id: str
    provider_id: str
    service_type_id: str
    service_type_name: str
    name: str
    price_per_unit: Decimal
    delivery_cost: Decimal = Decimal("0")
    service_radius: Optional[Decimal] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    status: str
    is_active: bool = True
    avg_rating: Decimal = Decimal("0")
    rating_count: int = 0

    @property
    def has_location(self) -> bool:
        """Есть ли координаты и радиус обслуживания."""
        return (
            self.latitude is not None
            and self.longitude is not None
            and self.service_radius is not None
        )

    @property
    def is_orderable(self) -> bool:
        """Можно ли заказать услугу."""
        return self.is_active and self.status in ORDERABLE_LISTING_STATUSES

    @property
    def type_key(self) -> str:
        """Нормализованное имя типа услуги для сравнения с настройками."""
        return self.service_type_name.strip().lower()


class NearbyService(BaseModel):
    """Альтернативная услуга поблизости."""

    id: str
    name: str
    service_type_id: str
    price_per_unit: Decimal
    avg_rating: Decimal
    distance_km: float
