# src/core/revenue/service.py
"""
Дневная выручка услуг и рейтинг по отзывам.
"""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

from asyncpg import Connection, UniqueViolationError

from src.common.constants import ServiceOrderStatus, TypeMsg
from src.common.errors import ApiError, ErrorCodes
from src.common.logger import log_error, log_info
from src.core.catalog.repository import ServiceCatalogRepository
from src.core.orders.models import ServiceOrder
from src.core.orders.repository import ServiceOrderRepository
from src.infra.database import DatabaseManager


class RevenueAggregator:
    """Агрегаты по услугам: выручка за день и средний рейтинг."""

    def __init__(
        self,
        db: DatabaseManager,
        orders: ServiceOrderRepository,
        catalog: ServiceCatalogRepository,
    ) -> None:
        self._db = db
        self._orders = orders
        self._catalog = catalog

    async def update_service_revenue(self, conn: Connection, order: ServiceOrder) -> None:
        """
        Добавляет заказ к дневной выручке услуги.
        Вызывается в той же транзакции, что и смена статуса заказа.
        """
        today = datetime.now(timezone.utc).date()
        await conn.execute(
            """
            INSERT INTO service_revenue (service_id, date, total_orders, total_revenue, delivery_fees)
            VALUES ($1, $2, 1, $3, $4)
            ON CONFLICT (service_id, date) DO UPDATE
            SET total_orders = service_revenue.total_orders + 1,
                total_revenue = service_revenue.total_revenue + EXCLUDED.total_revenue,
                delivery_fees = service_revenue.delivery_fees + EXCLUDED.delivery_fees
            """,
            order.service_id,
            today,
            order.amount_due,
            order.delivery_fee,
        )
        await log_info(
            f"Выручка услуги {order.service_id} за {today} увеличена на {order.amount_due}",
            type_msg=TypeMsg.DEBUG,
        )

    async def add_service_order_rating(
        self,
        order_id: str,
        user_id: str,
        rating: int,
        comment: str | None = None,
    ) -> dict[str, Any]:
        """
        Сохраняет оценку доставленного заказа и пересчитывает рейтинг услуги.

        Raises:
            ApiError: INVALID_INPUT, ORDER_NOT_FOUND, UNAUTHORIZED (403),
                INVALID_ORDER_STATUS, ORDER_ALREADY_RATED (409), INTERNAL_ERROR
        """
        try:
            if rating < 1 or rating > 5:
                raise ApiError.bad_request("Rating must be between 1 and 5", ErrorCodes.INVALID_INPUT)

            order = await self._orders.get_by_id(order_id)
            if order is None:
                raise ApiError.not_found("Service order not found", ErrorCodes.ORDER_NOT_FOUND)

            if order.user_id != user_id:
                raise ApiError.forbidden(
                    "You are not authorized to rate this order", ErrorCodes.UNAUTHORIZED
                )

            if order.status != ServiceOrderStatus.DELIVERED:
                raise ApiError.bad_request(
                    "Can only rate completed orders", ErrorCodes.INVALID_ORDER_STATUS
                )

            async with self._db.transaction() as conn:
                already_rated = await conn.fetchval(
                    "SELECT 1 FROM order_reviews WHERE service_order_id = $1",
                    order_id,
                )
                if already_rated:
                    raise _already_rated(order_id)

                await conn.execute(
                    """
                    INSERT INTO order_reviews (service_order_id, service_id, user_id, rating, comment)
                    VALUES ($1, $2, $3, $4, $5)
                    """,
                    order_id,
                    order.service_id,
                    user_id,
                    rating,
                    comment or "",
                )
                stats = await conn.fetchrow(
                    """
                    SELECT COALESCE(AVG(rating), 0) AS avg_rating, COUNT(*) AS rating_count
                    FROM order_reviews
                    WHERE service_id = $1
                    """,
                    order.service_id,
                )
                avg_rating = Decimal(stats["avg_rating"]).quantize(
                    Decimal("0.01"), rounding=ROUND_HALF_UP
                )
                await self._catalog.update_rating(
                    conn, order.service_id, avg_rating, stats["rating_count"]
                )

            await log_info(
                f"Заказ {order_id} оценён на {rating}, рейтинг услуги {order.service_id}: {avg_rating}",
                type_msg=TypeMsg.INFO,
            )
            return {"success": True, "message": "Rating submitted successfully"}
        except ApiError:
            raise
        except UniqueViolationError:
            # Параллельная оценка того же заказа
            raise _already_rated(order_id)
        except Exception as e:
            await log_error(f"Ошибка сохранения оценки заказа {order_id}: {e}", exc_info=True)
            raise ApiError.internal("Failed to add rating")


def _already_rated(order_id: str) -> ApiError:
    return ApiError.conflict(
        "Order has already been rated", ErrorCodes.ORDER_ALREADY_RATED, {"orderId": order_id}
    )
