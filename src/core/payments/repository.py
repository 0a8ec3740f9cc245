# src/core/payments/repository.py
"""
Репозитории кошельков и платёжных намерений (PostgreSQL).
"""

from __future__ import annotations

import json
from decimal import Decimal
from typing import Any, Optional

from asyncpg import Connection, Record

from src.common.constants import PaymentIntentStatus, PaymentMethod
from src.core.payments.models import PaymentIntent, WalletTransaction
from src.infra.database import DatabaseManager


class WalletRepository:
    """Кошельки пользователей и журнал операций по ним."""

    def __init__(self, db: DatabaseManager) -> None:
        self._db = db

    async def lock_wallet(self, conn: Connection, user_id: str) -> Optional[Record]:
        """Кошелёк пользователя под блокировкой строки."""
        return await conn.fetchrow(
            "SELECT id, user_id, balance FROM wallets WHERE user_id = $1 FOR UPDATE",
            user_id,
        )

    async def adjust_balance(self, conn: Connection, wallet_id: str, delta: Decimal) -> Decimal:
        """
        Изменяет баланс на delta.

        Returns:
            Новый баланс
        """
        return await conn.fetchval(
            """
            UPDATE wallets
            SET balance = balance + $2, updated_at = NOW()
            WHERE id = $1
            RETURNING balance
            """,
            wallet_id,
            delta,
        )

    async def insert_transaction(
        self,
        conn: Connection,
        wallet_id: str,
        user_id: str,
        amount: Decimal,
        transaction_type: str,
        status: str,
        transaction_ref: str,
        service_order_id: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> WalletTransaction:
        """Записывает операцию по кошельку."""
        row = await conn.fetchrow(
            """
            INSERT INTO wallet_transactions
                (wallet_id, user_id, amount, transaction_type, status,
                 transaction_ref, service_order_id, metadata)
            VALUES ($1, $2, $3, $4, $5, $6, $7, $8::jsonb)
            RETURNING id, wallet_id, user_id, amount, transaction_type, status,
                      transaction_ref, service_order_id, created_at
            """,
            wallet_id,
            user_id,
            amount,
            transaction_type,
            status,
            transaction_ref,
            service_order_id,
            json.dumps(metadata or {}, default=str),
        )
        return self._row_to_transaction(row)

    async def get_transaction_by_ref(
        self,
        transaction_ref: str,
        conn: Connection | None = None,
    ) -> Optional[WalletTransaction]:
        """Операция по уникальной ссылке."""
        executor = conn or self._db
        row = await executor.fetchrow(
            """
            SELECT id, wallet_id, user_id, amount, transaction_type, status,
                   transaction_ref, service_order_id, created_at
            FROM wallet_transactions
            WHERE transaction_ref = $1
            """,
            transaction_ref,
        )
        return self._row_to_transaction(row) if row else None

    @staticmethod
    def _row_to_transaction(row: Record) -> WalletTransaction:
        return WalletTransaction(
            id=str(row["id"]),
            wallet_id=str(row["wallet_id"]),
            user_id=str(row["user_id"]),
            amount=row["amount"],
            transaction_type=row["transaction_type"],
            status=row["status"],
            transaction_ref=row["transaction_ref"],
            service_order_id=str(row["service_order_id"]) if row["service_order_id"] else None,
            created_at=row["created_at"],
        )


_INTENT_COLUMNS = """
    id, service_order_id, payment_method, amount, status, attempts,
    transaction_id, last_error, created_at, updated_at
"""


class PaymentIntentRepository:
    """Таблица payment_intents."""

    def __init__(self, db: DatabaseManager) -> None:
        self._db = db

    async def create(
        self,
        conn: Connection,
        intent_id: str,
        service_order_id: str,
        payment_method: PaymentMethod,
        amount: Decimal,
    ) -> None:
        """Создаёт намерение в транзакции создания заказа."""
        await conn.execute(
            """
            INSERT INTO payment_intents (id, service_order_id, payment_method, amount, status)
            VALUES ($1, $2, $3, $4, $5)
            """,
            intent_id,
            service_order_id,
            payment_method.value,
            amount,
            PaymentIntentStatus.PENDING.value,
        )

    async def get(self, intent_id: str) -> Optional[PaymentIntent]:
        row = await self._db.fetchrow(
            f"SELECT {_INTENT_COLUMNS} FROM payment_intents WHERE id = $1",
            intent_id,
        )
        return self._row_to_intent(row) if row else None

    async def find_completed_for_order(
        self,
        order_id: str,
        conn: Connection | None = None,
    ) -> Optional[PaymentIntent]:
        """Успешное намерение заказа (его ID служит ссылкой транзакции в шлюзе)."""
        executor = conn or self._db
        row = await executor.fetchrow(
            f"""
            SELECT {_INTENT_COLUMNS} FROM payment_intents
            WHERE service_order_id = $1 AND status = $2
            ORDER BY created_at DESC
            LIMIT 1
            """,
            order_id,
            PaymentIntentStatus.COMPLETED.value,
        )
        return self._row_to_intent(row) if row else None

    async def lock(self, conn: Connection, intent_id: str) -> Optional[PaymentIntent]:
        """Намерение под блокировкой строки до конца транзакции."""
        row = await conn.fetchrow(
            f"SELECT {_INTENT_COLUMNS} FROM payment_intents WHERE id = $1 FOR UPDATE",
            intent_id,
        )
        return self._row_to_intent(row) if row else None

    async def mark(
        self,
        conn: Connection,
        intent_id: str,
        status: PaymentIntentStatus,
        transaction_id: str | None = None,
        last_error: str | None = None,
    ) -> None:
        """Переводит намерение в финальный статус."""
        await conn.execute(
            """
            UPDATE payment_intents
            SET status = $2,
                transaction_id = COALESCE($3, transaction_id),
                last_error = $4,
                updated_at = NOW()
            WHERE id = $1
            """,
            intent_id,
            status.value,
            transaction_id,
            last_error,
        )

    async def register_attempt(
        self,
        conn: Connection,
        intent_id: str,
        last_error: str | None = None,
    ) -> None:
        """Увеличивает счётчик попыток для ещё не завершённого намерения."""
        await conn.execute(
            """
            UPDATE payment_intents
            SET attempts = attempts + 1, last_error = $2, updated_at = NOW()
            WHERE id = $1
            """,
            intent_id,
            last_error,
        )

    async def claim_stale(self, stale_after_seconds: int, limit: int) -> list[PaymentIntent]:
        """
        Забирает пачку зависших намерений для сверки.

        updated_at сдвигается при захвате, поэтому параллельный обходчик
        не возьмёт те же строки до следующего интервала.
        """
        rows = await self._db.fetch(
            f"""
            UPDATE payment_intents
            SET updated_at = NOW()
            WHERE id IN (
                SELECT id FROM payment_intents
                WHERE status = $1
                  AND updated_at < NOW() - make_interval(secs => $2)
                ORDER BY created_at
                LIMIT $3
                FOR UPDATE SKIP LOCKED
            )
            RETURNING {_INTENT_COLUMNS}
            """,
            PaymentIntentStatus.PENDING.value,
            float(stale_after_seconds),
            limit,
        )
        return [self._row_to_intent(row) for row in rows]

    @staticmethod
    def _row_to_intent(row: Record) -> PaymentIntent:
        return PaymentIntent(
            id=str(row["id"]),
            service_order_id=str(row["service_order_id"]),
            payment_method=PaymentMethod(row["payment_method"]),
            amount=row["amount"],
            status=PaymentIntentStatus(row["status"]),
            attempts=row["attempts"],
            transaction_id=row["transaction_id"],
            last_error=row["last_error"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )
