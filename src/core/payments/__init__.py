# src/core/payments/__init__.py
"""
Платежи: кошелёк, платёжный шлюз, маршрутизация и сверка.
"""

from src.core.payments.dispatcher import PaymentDispatcher
from src.core.payments.gateway import HttpPaymentGateway, PaymentGateway
from src.core.payments.models import (
    CardDetails,
    PaymentIntent,
    PaymentRequest,
    PaymentResult,
    WalletTransaction,
)
from src.core.payments.reconciler import PaymentReconciler, SweepReport
from src.core.payments.repository import PaymentIntentRepository, WalletRepository
from src.core.payments.wallet import WalletService

__all__ = [
    "CardDetails",
    "HttpPaymentGateway",
    "PaymentDispatcher",
    "PaymentGateway",
    "PaymentIntent",
    "PaymentIntentRepository",
    "PaymentReconciler",
    "PaymentRequest",
    "PaymentResult",
    "SweepReport",
    "WalletRepository",
    "WalletService",
    "WalletTransaction",
]
