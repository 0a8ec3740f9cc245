# src/core/orders/repository.py
"""
Репозиторий заказов услуг и журнала статусов.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from asyncpg import Connection, Record

from src.common.constants import (
    DisputeStatus,
    PaymentMethod,
    PaymentStatus,
    ServiceOrderStatus,
    TypeMsg,
)
from src.common.logger import log_info
from src.core.orders.models import ServiceOrder, StatusHistoryEntry
from src.infra.database import DatabaseManager


_ORDER_SELECT = """
    SELECT o.id, o.user_id, o.delivery_address_id, o.service_id, s.provider_id,
           o.order_quantity, o.customer_reference, o.service_fee, o.delivery_fee,
           o.vat, o.amount_due, o.payment_method, o.payment_status, o.status,
           o.confirmation_code, o.voucher_id, o.delivery_distance, o.electricity_token,
           o.pickup_latitude, o.pickup_longitude, o.created_at, o.updated_at
    FROM service_orders o
    JOIN services s ON s.id = o.service_id
"""

# Колонки, которые можно менять вместе со статусом
_UPDATABLE_COLUMNS = frozenset({
    "payment_status",
    "electricity_token",
    "pickup_latitude",
    "pickup_longitude",
})


class ServiceOrderRepository:
    """Репозиторий заказов."""

    def __init__(self, db: DatabaseManager) -> None:
        """
        Args:
            db: Менеджер базы данных (Dependency Injection)
        """
        self._db = db

    # =========================================================================
    # ЧТЕНИЕ
    # =========================================================================

    async def get_by_id(
        self,
        order_id: str,
        conn: Connection | None = None,
    ) -> Optional[ServiceOrder]:
        """
        Получает заказ по ID вместе с ID поставщика услуги.

        Args:
            order_id: UUID заказа
            conn: Соединение открытой транзакции (опционально)
        """
        executor = conn or self._db
        row = await executor.fetchrow(f"{_ORDER_SELECT} WHERE o.id = $1", order_id)
        return self._row_to_order(row) if row else None

    async def lock(self, conn: Connection, order_id: str) -> Optional[ServiceOrder]:
        """Заказ под блокировкой строки до конца транзакции."""
        row = await conn.fetchrow(f"{_ORDER_SELECT} WHERE o.id = $1 FOR UPDATE OF o", order_id)
        return self._row_to_order(row) if row else None

    async def list_by_provider(
        self,
        provider_id: str,
        status: ServiceOrderStatus | None = None,
    ) -> list[ServiceOrder]:
        """Заказы по всем услугам поставщика, новые первыми."""
        rows = await self._db.fetch(
            f"""
            {_ORDER_SELECT}
            WHERE s.provider_id = $1
              AND ($2::varchar IS NULL OR o.status = $2::varchar)
            ORDER BY o.created_at DESC
            """,
            provider_id,
            status.value if status else None,
        )
        return [self._row_to_order(row) for row in rows]

    async def list_by_user(
        self,
        user_id: str,
        status: ServiceOrderStatus | None = None,
    ) -> list[ServiceOrder]:
        """Заказы клиента, новые первыми."""
        rows = await self._db.fetch(
            f"""
            {_ORDER_SELECT}
            WHERE o.user_id = $1
              AND ($2::varchar IS NULL OR o.status = $2::varchar)
            ORDER BY o.created_at DESC
            """,
            user_id,
            status.value if status else None,
        )
        return [self._row_to_order(row) for row in rows]

    async def get_history(self, order_id: str) -> list[StatusHistoryEntry]:
        """Журнал статусов заказа в хронологическом порядке."""
        rows = await self._db.fetch(
            """
            SELECT id, service_order_id, status, updated_by, notes, created_at
            FROM service_order_status_history
            WHERE service_order_id = $1
            ORDER BY created_at
            """,
            order_id,
        )
        return [
            StatusHistoryEntry(
                id=str(row["id"]),
                service_order_id=str(row["service_order_id"]),
                status=ServiceOrderStatus(row["status"]),
                updated_by=str(row["updated_by"]),
                notes=row["notes"],
                created_at=row["created_at"],
            )
            for row in rows
        ]

    async def dashboard_stats(self, provider_id: str, day_start: datetime) -> Record:
        """Агрегаты по заказам поставщика одним запросом."""
        return await self._db.fetchrow(
            """
            SELECT
                COUNT(*) AS total_orders,
                COUNT(*) FILTER (WHERE o.status = 'PENDING') AS pending_orders,
                COUNT(*) FILTER (
                    WHERE o.status IN ('PROCESSING', 'AGENT_ASSIGNED', 'OUT_FOR_DELIVERY')
                ) AS processing_orders,
                COUNT(*) FILTER (WHERE o.status = 'DELIVERED') AS completed_orders,
                COUNT(*) FILTER (WHERE o.status IN ('CANCELLED', 'REJECTED')) AS cancelled_orders,
                COALESCE(SUM(o.amount_due + o.vat) FILTER (
                    WHERE o.status = 'DELIVERED' AND o.payment_status = 'COMPLETED'
                ), 0) AS total_revenue,
                COALESCE(SUM(o.amount_due + o.vat) FILTER (
                    WHERE o.status = 'DELIVERED' AND o.payment_status = 'COMPLETED'
                      AND o.created_at >= $2
                ), 0) AS revenue_today
            FROM service_orders o
            JOIN services s ON s.id = o.service_id
            WHERE s.provider_id = $1
            """,
            provider_id,
            day_start,
        )

    # =========================================================================
    # ЗАПИСЬ
    # =========================================================================

    async def create(self, conn: Connection, order: ServiceOrder) -> None:
        """Вставляет новый заказ."""
        await conn.execute(
            """
            INSERT INTO service_orders (
                id, user_id, delivery_address_id, service_id, order_quantity,
                customer_reference, service_fee, delivery_fee, vat, payment_method,
                payment_status, status, confirmation_code, voucher_id, amount_due,
                delivery_distance
            )
            VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11, $12, $13, $14, $15, $16)
            """,
            order.id,
            order.user_id,
            order.delivery_address_id,
            order.service_id,
            order.order_quantity,
            order.customer_reference,
            order.service_fee,
            order.delivery_fee,
            order.vat,
            order.payment_method.value,
            order.payment_status.value,
            order.status.value,
            order.confirmation_code,
            order.voucher_id,
            order.amount_due,
            order.delivery_distance,
        )
        await log_info(f"Заказ {order.id} создан", type_msg=TypeMsg.DEBUG)

    async def update_status(
        self,
        conn: Connection,
        order_id: str,
        status: ServiceOrderStatus | None = None,
        **fields: Any,
    ) -> None:
        """
        Обновляет статус заказа и сопутствующие поля.

        Args:
            conn: Соединение открытой транзакции
            order_id: ID заказа
            status: Новый статус (None, чтобы не менять)
            **fields: Дополнительные колонки из _UPDATABLE_COLUMNS
        """
        unknown = set(fields) - _UPDATABLE_COLUMNS
        if unknown:
            raise ValueError(f"Недопустимые колонки: {', '.join(sorted(unknown))}")

        set_clauses = ["updated_at = NOW()"]
        params: list[Any] = [order_id]

        if status is not None:
            params.append(status.value)
            set_clauses.append(f"status = ${len(params)}")

        for key, value in fields.items():
            if value is None:
                continue
            if isinstance(value, PaymentStatus):
                value = value.value
            params.append(value)
            set_clauses.append(f"{key} = ${len(params)}")

        await conn.execute(
            f"UPDATE service_orders SET {', '.join(set_clauses)} WHERE id = $1",
            *params,
        )

    async def add_history(
        self,
        conn: Connection,
        order_id: str,
        status: ServiceOrderStatus,
        updated_by: str,
        notes: str,
    ) -> None:
        """Добавляет запись в журнал статусов."""
        await conn.execute(
            """
            INSERT INTO service_order_status_history (service_order_id, status, updated_by, notes)
            VALUES ($1, $2, $3, $4)
            """,
            order_id,
            status.value,
            updated_by,
            notes,
        )

    async def create_dispute(
        self,
        conn: Connection,
        order_id: str,
        customer_id: str,
        provider_id: str,
        reason: str,
    ) -> str:
        """Открывает спор по доставке. Возвращает ID спора."""
        dispute_id = await conn.fetchval(
            """
            INSERT INTO disputes (service_order_id, customer_id, provider_id, reason, status)
            VALUES ($1, $2, $3, $4, $5)
            RETURNING id
            """,
            order_id,
            customer_id,
            provider_id,
            reason,
            DisputeStatus.PENDING.value,
        )
        return str(dispute_id)

    async def update_pickup_location(
        self,
        order_id: str,
        latitude: float,
        longitude: float,
    ) -> None:
        await self._db.execute(
            """
            UPDATE service_orders
            SET pickup_latitude = $2, pickup_longitude = $3, updated_at = NOW()
            WHERE id = $1
            """,
            order_id,
            latitude,
            longitude,
        )

    @staticmethod
    def _row_to_order(row: Record) -> ServiceOrder:
        """Конвертирует строку БД в модель ServiceOrder."""
        return ServiceOrder(
            id=str(row["id"]),
            user_id=str(row["user_id"]),
            delivery_address_id=str(row["delivery_address_id"]),
            service_id=str(row["service_id"]),
            provider_id=str(row["provider_id"]) if row["provider_id"] else None,
            order_quantity=row["order_quantity"],
            customer_reference=row["customer_reference"],
            service_fee=row["service_fee"],
            delivery_fee=row["delivery_fee"],
            vat=row["vat"],
            amount_due=row["amount_due"],
            payment_method=PaymentMethod(row["payment_method"]),
            payment_status=PaymentStatus(row["payment_status"]),
            status=ServiceOrderStatus(row["status"]),
            confirmation_code=row["confirmation_code"],
            voucher_id=str(row["voucher_id"]) if row["voucher_id"] else None,
            delivery_distance=row["delivery_distance"],
            electricity_token=row["electricity_token"],
            pickup_latitude=row["pickup_latitude"],
            pickup_longitude=row["pickup_longitude"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )
