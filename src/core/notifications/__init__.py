# src/core/notifications/__init__.py
"""
Уведомления о заказах через шину событий.
"""

from src.core.notifications.service import NotificationData, NotificationDispatcher

__all__ = [
    "NotificationData",
    "NotificationDispatcher",
]
