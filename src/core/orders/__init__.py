# src/core/orders/__init__.py
"""
Домен заказов услуг.
Менеджер жизненного цикла импортируется из src.core.orders.service.
"""

from src.core.orders.models import (
    CreateOrderResult,
    DashboardStats,
    OrderDetails,
    ServiceOrder,
    ServiceOrderView,
    StatusHistoryEntry,
)
from src.core.orders.state_machine import ALLOWED_TRANSITIONS, can_transition

__all__ = [
    "ALLOWED_TRANSITIONS",
    "CreateOrderResult",
    "DashboardStats",
    "OrderDetails",
    "ServiceOrder",
    "ServiceOrderView",
    "StatusHistoryEntry",
    "can_transition",
]
