# tests/infra/test_event_bus.py
"""
Тесты для шины событий.
"""

from __future__ import annotations

import json
from unittest.mock import AsyncMock, MagicMock

import pytest

from src.config.loader import RabbitMQSettings
from src.infra.event_bus import DomainEvent, EventBus, EventTypes


class TestDomainEvent:
    """Тесты для сериализации событий."""

    def test_json_contains_payload(self) -> None:
        event = DomainEvent(
            event_type=EventTypes.SERVICE_ORDER_CREATED,
            payload={"order_id": "o-1"},
        )

        parsed = json.loads(event.to_json())

        assert parsed["event_type"] == "service_order.created"
        assert parsed["payload"] == {"order_id": "o-1"}
        assert parsed["event_id"] == event.event_id

    def test_from_json_defaults(self) -> None:
        event = DomainEvent.from_json('{"event_type": "payment.failed"}')

        assert event.event_type == EventTypes.PAYMENT_FAILED
        assert event.payload == {}
        assert event.event_id


class TestEventBusPublish:
    """Тесты публикации без реального RabbitMQ."""

    @pytest.mark.asyncio
    async def test_publish_without_connection_is_noop(self) -> None:
        bus = EventBus(RabbitMQSettings())

        await bus.publish(DomainEvent(event_type=EventTypes.PAYMENT_COMPLETED))

        assert bus.is_connected is False
        assert await bus.health_check() is False

    @pytest.mark.asyncio
    async def test_publish_uses_event_type_as_routing_key(self) -> None:
        bus = EventBus(RabbitMQSettings())
        bus._connection = MagicMock(is_closed=False)
        bus._exchange = AsyncMock()

        await bus.publish(DomainEvent(event_type=EventTypes.SERVICE_ORDER_DELIVERED))

        kwargs = bus._exchange.publish.await_args.kwargs
        assert kwargs["routing_key"] == "service_order.delivered"

    @pytest.mark.asyncio
    async def test_publish_errors_are_swallowed(self) -> None:
        bus = EventBus(RabbitMQSettings())
        bus._connection = MagicMock(is_closed=False)
        bus._exchange = AsyncMock()
        bus._exchange.publish = AsyncMock(side_effect=RuntimeError("channel closed"))

        await bus.publish(DomainEvent(event_type=EventTypes.PAYMENT_REFUNDED))
