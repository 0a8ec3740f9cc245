# src/shared/models/commands.py
"""
Схемы входящих запросов и команды для ядра.

Запросы принимают camelCase поля, приводят числовые строки к Decimal/int
один раз на границе и проверяют диапазоны. Ядро получает уже проверенные
неизменяемые объекты.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

from src.common.constants import PaymentMethod
from src.core.payments.models import CardDetails


class _RequestModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="forbid",
        frozen=True,
        str_strip_whitespace=True,
    )


# =============================================================================
# ЗАКАЗЫ
# =============================================================================

@dataclass(frozen=True)
class CreateServiceOrderCommand:
    """Проверенная команда создания заказа."""
    user_id: str
    address_id: str
    service_id: str
    unit_quantity: Decimal
    payment_method: PaymentMethod
    voucher_code: Optional[str] = None
    client_ip: Optional[str] = None
    card_details: Optional[CardDetails] = None
    destination_bank_code: Optional[str] = None
    destination_account_number: Optional[str] = None


class CreateServiceOrderRequest(_RequestModel):
    """Тело запроса создания заказа."""

    address_id: str = Field(..., min_length=1)
    service_id: str = Field(..., min_length=1)
    unit_quantity: Decimal = Field(Decimal("1"), gt=0)
    payment_method: PaymentMethod
    voucher_code: Optional[str] = None
    card_details: Optional[CardDetails] = None
    destination_bank_code: Optional[str] = None
    destination_account_number: Optional[str] = None

    @model_validator(mode="after")
    def _card_details_for_card(self) -> "CreateServiceOrderRequest":
        if self.payment_method == PaymentMethod.CARD and self.card_details is None:
            raise ValueError("Card details are required for CARD payment method")
        return self

    def to_command(self, user_id: str, client_ip: str | None = None) -> CreateServiceOrderCommand:
        return CreateServiceOrderCommand(
            user_id=user_id,
            address_id=self.address_id,
            service_id=self.service_id,
            unit_quantity=self.unit_quantity,
            payment_method=self.payment_method,
            voucher_code=self.voucher_code or None,
            client_ip=client_ip,
            card_details=self.card_details,
            destination_bank_code=self.destination_bank_code,
            destination_account_number=self.destination_account_number,
        )


class CalculateTotalRequest(_RequestModel):
    """Тело запроса расчёта стоимости."""

    service_id: str = Field(..., min_length=1)
    address_id: str = Field(..., min_length=1)
    unit_quantity: Decimal = Field(Decimal("1"), gt=0)
    voucher_code: Optional[str] = None


class RejectOrderRequest(_RequestModel):
    reason: str = Field(..., min_length=1, max_length=1000)


class CompleteDeliveryRequest(_RequestModel):
    """Подтверждение доставки кодом клиента, опционально со спором."""

    confirmation_code: str = Field(..., pattern=r"^\d{4}$")
    dispute_reason: Optional[str] = Field(None, max_length=2000)


class CancelOrderRequest(_RequestModel):
    reason: str = Field(..., min_length=1, max_length=1000)


class RateOrderRequest(_RequestModel):
    rating: int = Field(..., ge=1, le=5)
    comment: Optional[str] = Field(None, max_length=2000)


class UpdatePickupLocationRequest(_RequestModel):
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)


class ValidateConfirmationCodeRequest(_RequestModel):
    confirmation_code: str = Field(..., pattern=r"^\d{4}$")


# =============================================================================
# ВИТРИНЫ
# =============================================================================

class PrepareListingPriceRequest(_RequestModel):
    """Цена витрины коммунальной услуги до включения налогов."""

    service_type: str = Field(..., min_length=1)
    price_per_unit: Decimal = Field(..., gt=0)
    license_ids: list[str] = Field(default_factory=list)
    vehicle_ids: list[str] = Field(default_factory=list)
