# tests/core/test_revenue_service.py
"""
Тесты для выручки и рейтингов услуг.
"""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from unittest.mock import AsyncMock

import pytest
from asyncpg import UniqueViolationError

from src.common.constants import ServiceOrderStatus
from src.common.errors import ApiError, ErrorCodes
from src.core.revenue.service import RevenueAggregator


@pytest.fixture
def orders() -> AsyncMock:
    return AsyncMock()


@pytest.fixture
def catalog() -> AsyncMock:
    return AsyncMock()


@pytest.fixture
def aggregator(mock_db, orders, catalog) -> RevenueAggregator:
    return RevenueAggregator(mock_db, orders, catalog)


class TestServiceRevenue:

    @pytest.mark.asyncio
    async def test_upsert_params(self, aggregator: RevenueAggregator, mock_conn, make_order) -> None:
        order = make_order()

        await aggregator.update_service_revenue(mock_conn, order)

        query, service_id, day, amount, delivery_fee = mock_conn.execute.await_args.args
        assert "ON CONFLICT (service_id, date)" in query
        assert service_id == order.service_id
        assert day == datetime.now(timezone.utc).date()
        assert amount == Decimal("3010.00")
        assert delivery_fee == Decimal("100")


class TestRating:
    """Оценка доставленного заказа."""

    @pytest.mark.asyncio
    async def test_rating_recomputes_average(
        self, aggregator: RevenueAggregator, orders, catalog, mock_conn, make_order
    ) -> None:
        order = make_order(status=ServiceOrderStatus.DELIVERED)
        orders.get_by_id = AsyncMock(return_value=order)
        mock_conn.fetchrow = AsyncMock(return_value={"avg_rating": Decimal("4.333333"), "rating_count": 3})

        result = await aggregator.add_service_order_rating(order.id, order.user_id, 5, "Fast")

        assert result == {"success": True, "message": "Rating submitted successfully"}
        catalog.update_rating.assert_awaited_once_with(mock_conn, order.service_id, Decimal("4.33"), 3)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("rating", [0, 6])
    async def test_rating_out_of_range(self, aggregator: RevenueAggregator, orders, rating: int) -> None:
        with pytest.raises(ApiError) as exc_info:
            await aggregator.add_service_order_rating("o-1", "u-1", rating)

        assert exc_info.value.error_code == ErrorCodes.INVALID_INPUT
        orders.get_by_id.assert_not_called()

    @pytest.mark.asyncio
    async def test_only_delivered(self, aggregator: RevenueAggregator, orders, make_order) -> None:
        order = make_order(status=ServiceOrderStatus.PROCESSING)
        orders.get_by_id = AsyncMock(return_value=order)

        with pytest.raises(ApiError) as exc_info:
            await aggregator.add_service_order_rating(order.id, order.user_id, 4)

        assert exc_info.value.error_code == ErrorCodes.INVALID_ORDER_STATUS

    @pytest.mark.asyncio
    async def test_only_owner(self, aggregator: RevenueAggregator, orders, make_order) -> None:
        orders.get_by_id = AsyncMock(return_value=make_order(status=ServiceOrderStatus.DELIVERED))

        with pytest.raises(ApiError) as exc_info:
            await aggregator.add_service_order_rating("o-1", "stranger", 4)

        assert exc_info.value.status_code == 403

    @pytest.mark.asyncio
    async def test_missing_order(self, aggregator: RevenueAggregator, orders) -> None:
        orders.get_by_id = AsyncMock(return_value=None)

        with pytest.raises(ApiError) as exc_info:
            await aggregator.add_service_order_rating("o-1", "u-1", 4)

        assert exc_info.value.error_code == ErrorCodes.ORDER_NOT_FOUND

    @pytest.mark.asyncio
    async def test_database_error_wrapped(
        self, aggregator: RevenueAggregator, orders, mock_conn, make_order
    ) -> None:
        order = make_order(status=ServiceOrderStatus.DELIVERED)
        orders.get_by_id = AsyncMock(return_value=order)
        mock_conn.execute = AsyncMock(side_effect=RuntimeError("connection reset"))

        with pytest.raises(ApiError) as exc_info:
            await aggregator.add_service_order_rating(order.id, order.user_id, 4)

        assert exc_info.value.status_code == 500

    @pytest.mark.asyncio
    async def test_second_rating_conflicts(
        self, aggregator: RevenueAggregator, orders, catalog, mock_conn, make_order
    ) -> None:
        order = make_order(status=ServiceOrderStatus.DELIVERED)
        orders.get_by_id = AsyncMock(return_value=order)
        mock_conn.fetchval = AsyncMock(return_value=1)

        with pytest.raises(ApiError) as exc_info:
            await aggregator.add_service_order_rating(order.id, order.user_id, 4)

        assert exc_info.value.status_code == 409
        assert exc_info.value.error_code == ErrorCodes.ORDER_ALREADY_RATED
        mock_conn.execute.assert_not_called()
        catalog.update_rating.assert_not_called()

    @pytest.mark.asyncio
    async def test_concurrent_rating_conflicts(
        self, aggregator: RevenueAggregator, orders, mock_conn, make_order
    ) -> None:
        order = make_order(status=ServiceOrderStatus.DELIVERED)
        orders.get_by_id = AsyncMock(return_value=order)
        mock_conn.execute = AsyncMock(side_effect=UniqueViolationError("order_reviews_service_order_id_key"))

        with pytest.raises(ApiError) as exc_info:
            await aggregator.add_service_order_rating(order.id, order.user_id, 4)

        assert exc_info.value.status_code == 409
        assert exc_info.value.error_code == ErrorCodes.ORDER_ALREADY_RATED
