# src/core/pricing/models.py
"""
Модели расчёта стоимости заказа.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field

from src.core.catalog.models import NearbyService


@dataclass(frozen=True)
class AdminSettings:
    """Ставки и сбор, настраиваемые администратором."""
    service_charge: Decimal
    vat_rate: Decimal
    petroleum_tax_rate: Decimal


class OrderTotals(BaseModel):
    """Результат чистого расчёта суммы заказа."""

    service_fee: Decimal
    service_subtotal: Decimal
    delivery_fee: Decimal
    additional_fee: Decimal
    petroleum_tax: Decimal
    discount_amount: Decimal
    subtotal: Decimal
    vat_rate: Decimal
    vat_amount: Decimal
    total_amount: Decimal


class PriceQuote(OrderTotals):
    """Расчёт суммы вместе с контекстом услуги и расстояния."""

    service_id: str
    service_type: str
    price_per_unit: Decimal
    unit_quantity: Decimal
    distance_km: Decimal
    service_radius_km: Decimal
    is_available: bool = True
    duration_seconds: Optional[int] = None
    voucher_id: Optional[str] = None
    voucher_code: Optional[str] = None
    suggested_services: list[NearbyService] = Field(default_factory=list)
