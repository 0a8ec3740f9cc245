# src/common/constants.py
"""
Общие константы и перечисления.
"""

from enum import Enum


class TypeMsg(str, Enum):
    """Типы сообщений для логирования."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class ServiceOrderStatus(str, Enum):
    """Статусы заказа услуги."""
    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    AGENT_ASSIGNED = "AGENT_ASSIGNED"
    OUT_FOR_DELIVERY = "OUT_FOR_DELIVERY"
    DELIVERED = "DELIVERED"
    REJECTED = "REJECTED"
    CANCELLED = "CANCELLED"


class PaymentStatus(str, Enum):
    """Статусы оплаты заказа."""
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    REFUNDED = "REFUNDED"


class PaymentMethod(str, Enum):
    """Способы оплаты."""
    WALLET = "WALLET"
    PAY_ON_DELIVERY = "PAY_ON_DELIVERY"
    CARD = "CARD"
    TRANSFER = "TRANSFER"
    VIRTUAL_ACCOUNT = "VIRTUAL_ACCOUNT"


class PaymentIntentStatus(str, Enum):
    """Статусы платёжного намерения (saga)."""
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


class VoucherType(str, Enum):
    """Тип скидки ваучера."""
    FIXED = "FIXED"
    PERCENTAGE = "PERCENTAGE"


class TransactionType(str, Enum):
    """Типы операций по кошельку."""
    DEBIT = "DEBIT"
    REFUND = "REFUND"


class TransactionStatus(str, Enum):
    """Статусы операций по кошельку."""
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


class DisputeStatus(str, Enum):
    """Статусы спора по доставке."""
    PENDING = "PENDING"
    RESOLVED = "RESOLVED"


class ListingStatus(str, Enum):
    """Статус самой услуги (витрины), не заказа."""
    PENDING = "PENDING"
    ACTIVE = "ACTIVE"
    APPROVED = "APPROVED"
    SUSPENDED = "SUSPENDED"


class DocumentStatus(str, Enum):
    """Статус документа (верификация, лицензия, транспорт)."""
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


# Статусы витрины, при которых услугу можно заказать
ORDERABLE_LISTING_STATUSES: tuple[str, ...] = (
    ListingStatus.ACTIVE.value,
    ListingStatus.APPROVED.value,
)

# Радиус Земли для формулы гаверсинусов
EARTH_RADIUS_KM: float = 6371.0
