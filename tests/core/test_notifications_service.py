# tests/core/test_notifications_service.py
"""
Тесты для сервиса уведомлений.
"""

from __future__ import annotations

from unittest.mock import AsyncMock

import pytest

from src.core.notifications.service import NotificationData, NotificationDispatcher
from src.infra.event_bus import EventTypes


class TestNotificationDispatcher:

    @pytest.mark.asyncio
    async def test_order_created_published(self, mock_event_bus, make_order) -> None:
        dispatcher = NotificationDispatcher(mock_event_bus)
        order = make_order()

        dispatcher.order_created(order)
        await dispatcher.drain()

        events = {
            tuple(call.args[0].payload["recipientIds"]): call.args[0]
            for call in mock_event_bus.publish.await_args_list
        }
        assert set(events) == {(order.user_id,), (order.provider_id,)}
        customer_event = events[(order.user_id,)]
        assert customer_event.event_type == EventTypes.SERVICE_ORDER_CREATED
        assert customer_event.payload["serviceOrderId"] == order.id
        assert customer_event.payload["confirmationCode"] == "4821"
        provider_event = events[(order.provider_id,)]
        assert provider_event.event_type == EventTypes.SERVICE_ORDER_CREATED
        assert "confirmationCode" not in provider_event.payload

    @pytest.mark.asyncio
    async def test_dispute_notifies_admins(self, mock_event_bus, make_order) -> None:
        dispatcher = NotificationDispatcher(mock_event_bus)

        dispatcher.order_delivered(make_order(), "Damaged cylinder")
        await dispatcher.drain()

        event_types = [call.args[0].event_type for call in mock_event_bus.publish.await_args_list]
        assert event_types == [EventTypes.SERVICE_ORDER_DELIVERED, EventTypes.SERVICE_ORDER_DISPUTED]
        disputed = mock_event_bus.publish.await_args_list[1].args[0]
        assert disputed.payload["recipientRoles"] == ["ADMIN"]

    @pytest.mark.asyncio
    async def test_empty_recipients_filtered(self, mock_event_bus, make_order) -> None:
        dispatcher = NotificationDispatcher(mock_event_bus)

        dispatcher.order_cancelled(make_order(provider_id=None), "Changed my mind")
        await dispatcher.drain()

        event = mock_event_bus.publish.await_args.args[0]
        assert event.payload["recipientIds"] == [make_order().user_id]
        assert event.payload["reason"] == "Changed my mind"

    @pytest.mark.asyncio
    async def test_publish_error_does_not_propagate(self, mock_event_bus) -> None:
        mock_event_bus.publish = AsyncMock(side_effect=RuntimeError("broker down"))
        dispatcher = NotificationDispatcher(mock_event_bus)

        dispatcher.notify(NotificationData(event_type=EventTypes.PAYMENT_FAILED, recipient_ids=["u-1"]))
        await dispatcher.drain()

        mock_event_bus.publish.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_drain_without_tasks(self, mock_event_bus) -> None:
        await NotificationDispatcher(mock_event_bus).drain()
