# src/core/orders/models.py
"""
Модели данных заказов услуг.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from src.common.constants import (
    PaymentMethod,
    PaymentStatus,
    ServiceOrderStatus,
)
from src.core.catalog.models import NearbyService


class ServiceOrderView(BaseModel):
    """
    Заказ клиента на одну услугу без кода подтверждения.
    Так заказ видят поставщик и все ответы API, кроме собственных заказов клиента.
    """
    model_config = ConfigDict(from_attributes=True)

    id: str = Field(..., description="UUID заказа")
    user_id: str = Field(..., description="ID клиента")
    delivery_address_id: str = Field(..., description="ID адреса доставки")
    service_id: str = Field(..., description="ID услуги")
    provider_id: Optional[str] = Field(None, description="ID поставщика услуги")
    order_quantity: Decimal = Field(..., gt=0, description="Количество единиц")
    customer_reference: str = Field(..., description="Внешняя ссылка заказа")

    # Суммы
    service_fee: Decimal
    delivery_fee: Decimal
    vat: Decimal
    amount_due: Decimal

    # Статусы
    payment_method: PaymentMethod
    payment_status: PaymentStatus = PaymentStatus.PENDING
    status: ServiceOrderStatus = ServiceOrderStatus.PENDING

    voucher_id: Optional[str] = None
    delivery_distance: Optional[Decimal] = None
    electricity_token: Optional[str] = None
    pickup_latitude: Optional[float] = None
    pickup_longitude: Optional[float] = None

    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class ServiceOrder(ServiceOrderView):
    """Заказ клиента на одну услугу."""

    confirmation_code: str = Field(..., min_length=4, max_length=4)

    @property
    def is_paid(self) -> bool:
        return self.payment_status == PaymentStatus.COMPLETED

    @property
    def is_pay_on_delivery(self) -> bool:
        return self.payment_method == PaymentMethod.PAY_ON_DELIVERY


class StatusHistoryEntry(BaseModel):
    """Запись журнала смены статусов."""
    model_config = ConfigDict(from_attributes=True)

    id: str
    service_order_id: str
    status: ServiceOrderStatus
    updated_by: str
    notes: Optional[str] = None
    created_at: Optional[datetime] = None


class OrderDetails(BaseModel):
    """Заказ вместе с услугой, адресом, клиентом и историей."""

    order: ServiceOrderView
    service: Optional[dict[str, Any]] = None
    delivery_address: Optional[dict[str, Any]] = None
    customer: Optional[dict[str, Any]] = None
    status_history: list[StatusHistoryEntry] = Field(default_factory=list)
    estimated_distance_km: Optional[Decimal] = None


class CreateOrderResult(BaseModel):
    """Результат создания заказа."""

    service_order: ServiceOrder
    payment_result: Optional[dict[str, Any]] = None
    suggested_services: list[NearbyService] = Field(default_factory=list)
    distance_km: Decimal
    service_radius_km: Decimal


class DashboardStats(BaseModel):
    """Сводка по заказам поставщика."""

    total_orders: int = 0
    pending_orders: int = 0
    processing_orders: int = 0
    completed_orders: int = 0
    cancelled_orders: int = 0
    total_revenue: Decimal = Decimal("0")
    revenue_today: Decimal = Decimal("0")
