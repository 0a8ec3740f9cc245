# src/core/users/__init__.py
"""
Домен пользователей: учётные записи, роли, адреса доставки.
"""

from src.core.users.models import CustomerAddress, UserAccount
from src.core.users.repository import UserRepository

__all__ = [
    "CustomerAddress",
    "UserAccount",
    "UserRepository",
]
