# src/core/users/repository.py
"""
Репозиторий пользователей и адресов доставки.
"""

from __future__ import annotations

from typing import Optional

from asyncpg import Record

from src.core.users.models import CustomerAddress, UserAccount
from src.infra.database import DatabaseManager


class UserRepository:
    """Чтение пользователей и их адресов."""

    def __init__(self, db: DatabaseManager) -> None:
        """
        Args:
            db: Менеджер базы данных (Dependency Injection)
        """
        self._db = db

    async def get_by_id(self, user_id: str) -> Optional[UserAccount]:
        """
        Получает пользователя вместе с названием роли.

        Args:
            user_id: UUID пользователя

        Returns:
            Пользователь или None
        """
        row = await self._db.fetchrow(
            """
            SELECT u.id, u.role_id, r.name AS role_name, u.email, u.full_name
            FROM users u
            LEFT JOIN roles r ON r.id = u.role_id
            WHERE u.id = $1
            """,
            user_id,
        )
        return self._row_to_user(row) if row else None

    async def get_address(self, address_id: str) -> Optional[CustomerAddress]:
        """Получает адрес доставки по ID."""
        row = await self._db.fetchrow(
            """
            SELECT id, user_id, address, latitude, longitude
            FROM customer_addresses
            WHERE id = $1
            """,
            address_id,
        )
        if row is None:
            return None
        return CustomerAddress(
            id=str(row["id"]),
            user_id=str(row["user_id"]),
            address=row["address"],
            latitude=row["latitude"],
            longitude=row["longitude"],
        )

    @staticmethod
    def _row_to_user(row: Record) -> UserAccount:
        return UserAccount(
            id=str(row["id"]),
            role_id=str(row["role_id"]) if row["role_id"] else None,
            role_name=row["role_name"],
            email=row["email"],
            full_name=row["full_name"],
        )
