# src/core/payments/models.py
"""
Модели платежей: результат оплаты, операции кошелька, платёжные намерения.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict

from src.common.constants import PaymentIntentStatus, PaymentMethod, TransactionStatus


class CardDetails(BaseModel):
    """Реквизиты карты для оплаты через шлюз."""
    model_config = ConfigDict(frozen=True, extra="forbid")

    cardno: str
    cvv: str
    expirymonth: str
    expiryyear: str
    pin: Optional[str] = None
    suggested_auth: Optional[str] = None
    billingzip: Optional[str] = None
    billingcity: Optional[str] = None
    billingaddress: Optional[str] = None
    billingstate: Optional[str] = None
    billingcountry: Optional[str] = None


@dataclass
class PaymentResult:
    """Результат платёжной операции."""
    transaction_id: Optional[str]
    status: str
    payment_details: dict[str, Any] = field(default_factory=dict)
    electricity_token: Optional[str] = None
    error: Optional[str] = None

    @property
    def is_completed(self) -> bool:
        return self.status == TransactionStatus.COMPLETED.value

    @property
    def is_failed(self) -> bool:
        return self.status == TransactionStatus.FAILED.value

    @classmethod
    def from_gateway(cls, data: dict[str, Any]) -> PaymentResult:
        """Создаёт результат из JSON ответа платёжного шлюза."""
        status = str(data.get("status", TransactionStatus.PENDING.value)).upper()
        if status not in {s.value for s in TransactionStatus}:
            status = TransactionStatus.PENDING.value
        return cls(
            transaction_id=data.get("transactionId"),
            status=status,
            payment_details=data.get("paymentDetails") or {},
            electricity_token=data.get("electricityToken"),
            error=data.get("message") if status == TransactionStatus.FAILED.value else None,
        )


@dataclass
class PaymentRequest:
    """Всё, что нужно для проведения оплаты созданного заказа."""
    intent_id: str
    service_order_id: str
    customer_reference: str
    user_id: str
    service_id: str
    service_type: str
    payment_method: PaymentMethod
    amount: Decimal
    breakdown: dict[str, Any] = field(default_factory=dict)
    card_details: Optional[CardDetails] = None
    client_ip: Optional[str] = None
    voucher_code: Optional[str] = None
    destination_bank_code: Optional[str] = None
    destination_account_number: Optional[str] = None


@dataclass
class WalletTransaction:
    """Операция по кошельку."""
    id: str
    wallet_id: str
    user_id: str
    amount: Decimal
    transaction_type: str
    status: str
    transaction_ref: str
    service_order_id: Optional[str] = None
    created_at: Optional[datetime] = None


@dataclass
class PaymentIntent:
    """Намерение оплаты заказа (запись saga)."""
    id: str
    service_order_id: str
    payment_method: PaymentMethod
    amount: Decimal
    status: PaymentIntentStatus
    attempts: int = 0
    transaction_id: Optional[str] = None
    last_error: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def is_pending(self) -> bool:
        return self.status == PaymentIntentStatus.PENDING
