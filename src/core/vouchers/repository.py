# src/core/vouchers/repository.py
"""
Репозиторий ваучеров и фактов их использования.
"""

from __future__ import annotations

from typing import Optional

from asyncpg import Connection, Record

from src.core.vouchers.models import Voucher
from src.infra.database import DatabaseManager


_VOUCHER_SELECT = """
    SELECT v.id, v.code, v.type, v.discount, v.max_uses, v.max_uses_per_user,
           v.valid_from, v.valid_until, v.is_active,
           ARRAY(
               SELECT vr.role_id::text FROM voucher_roles vr WHERE vr.voucher_id = v.id
           ) AS role_ids
    FROM vouchers v
"""


class VoucherRepository:
    """Доступ к таблицам vouchers, voucher_roles, voucher_usages."""

    def __init__(self, db: DatabaseManager) -> None:
        self._db = db

    async def get_by_code(self, code: str) -> Optional[Voucher]:
        """Находит ваучер по коду вместе с ограничениями по ролям."""
        row = await self._db.fetchrow(f"{_VOUCHER_SELECT} WHERE v.code = $1", code)
        return self._row_to_voucher(row) if row else None

    async def lock(self, conn: Connection, voucher_id: str) -> Optional[Voucher]:
        """
        Блокирует строку ваучера до конца транзакции.
        Параллельные погашения одного ваучера выполняются последовательно.
        """
        row = await conn.fetchrow(
            f"{_VOUCHER_SELECT} WHERE v.id = $1 FOR UPDATE OF v",
            voucher_id,
        )
        return self._row_to_voucher(row) if row else None

    async def count_usages(self, voucher_id: str, conn: Connection | None = None) -> int:
        """Общее количество использований ваучера."""
        executor = conn or self._db
        return await executor.fetchval(
            "SELECT COUNT(*) FROM voucher_usages WHERE voucher_id = $1",
            voucher_id,
        )

    async def count_user_usages(
        self,
        voucher_id: str,
        user_id: str,
        conn: Connection | None = None,
    ) -> int:
        """Количество использований ваучера конкретным пользователем."""
        executor = conn or self._db
        return await executor.fetchval(
            "SELECT COUNT(*) FROM voucher_usages WHERE voucher_id = $1 AND user_id = $2",
            voucher_id,
            user_id,
        )

    async def insert_usage(
        self,
        conn: Connection,
        voucher_id: str,
        user_id: str,
        service_order_id: str,
    ) -> None:
        """Фиксирует использование ваучера заказом."""
        await conn.execute(
            """
            INSERT INTO voucher_usages (voucher_id, user_id, service_order_id)
            VALUES ($1, $2, $3)
            """,
            voucher_id,
            user_id,
            service_order_id,
        )

    @staticmethod
    def _row_to_voucher(row: Record) -> Voucher:
        return Voucher(
            id=str(row["id"]),
            code=row["code"],
            type=row["type"],
            discount=row["discount"],
            max_uses=row["max_uses"],
            max_uses_per_user=row["max_uses_per_user"],
            valid_from=row["valid_from"],
            valid_until=row["valid_until"],
            is_active=row["is_active"],
            role_ids=list(row["role_ids"] or []),
        )
