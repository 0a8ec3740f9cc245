# src/core/notifications/service.py
"""
Сервис уведомлений.
Публикует события заказов в шину; фактическая доставка (push, SMS, email)
выполняется подписчиками. Сбой публикации не влияет на операцию заказа.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any

from src.common.constants import TypeMsg
from src.common.logger import log_error, log_info
from src.core.orders.models import ServiceOrder
from src.infra.event_bus import DomainEvent, EventBus, EventTypes


@dataclass
class NotificationData:
    """Данные уведомления."""
    event_type: str
    recipient_ids: list[str]
    payload: dict[str, Any] = field(default_factory=dict)
    recipient_roles: list[str] = field(default_factory=list)


class NotificationDispatcher:
    """
    Отправка уведомлений о заказах в фоне.

    notify() не ждёт публикации: событие уходит в отдельной задаче,
    ошибки только логируются.
    """

    def __init__(self, event_bus: EventBus) -> None:
        """
        Args:
            event_bus: Шина событий
        """
        self._event_bus = event_bus
        self._tasks: set[asyncio.Task] = set()

    def notify(self, data: NotificationData) -> None:
        """Ставит уведомление в очередь публикации."""
        task = asyncio.create_task(self._publish(data))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def drain(self) -> None:
        """Дожидается всех отправленных уведомлений (при остановке)."""
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)

    async def _publish(self, data: NotificationData) -> None:
        try:
            await self._event_bus.publish(DomainEvent(
                event_type=data.event_type,
                payload={
                    "recipientIds": data.recipient_ids,
                    "recipientRoles": data.recipient_roles,
                    **data.payload,
                },
            ))
            await log_info(
                f"Уведомление {data.event_type} -> {', '.join(data.recipient_ids)}",
                type_msg=TypeMsg.DEBUG,
            )
        except Exception as e:
            await log_error(f"Ошибка отправки уведомления {data.event_type}: {e}")

    # =========================================================================
    # СОБЫТИЯ ЗАКАЗА
    # =========================================================================

    def _order_event(
        self,
        event_type: str,
        order: ServiceOrder,
        recipients: list[str],
        **extra: Any,
    ) -> None:
        self.notify(NotificationData(
            event_type=event_type,
            recipient_ids=[r for r in recipients if r],
            payload={
                "serviceOrderId": order.id,
                "customerReference": order.customer_reference,
                "status": order.status.value,
                "paymentStatus": order.payment_status.value,
                **extra,
            },
        ))

    def order_created(self, order: ServiceOrder) -> None:
        """Клиенту и поставщику о новом заказе. Код подтверждения получает только клиент."""
        self._order_event(
            EventTypes.SERVICE_ORDER_CREATED,
            order,
            [order.user_id],
            amountDue=str(order.amount_due),
            confirmationCode=order.confirmation_code,
        )
        if order.provider_id:
            self._order_event(
                EventTypes.SERVICE_ORDER_CREATED,
                order,
                [order.provider_id],
                amountDue=str(order.amount_due),
            )

    def order_approved(self, order: ServiceOrder) -> None:
        self._order_event(EventTypes.SERVICE_ORDER_APPROVED, order, [order.user_id])

    def order_rejected(self, order: ServiceOrder, reason: str) -> None:
        self._order_event(EventTypes.SERVICE_ORDER_REJECTED, order, [order.user_id], reason=reason)

    def agent_assigned(self, order: ServiceOrder) -> None:
        self._order_event(EventTypes.SERVICE_ORDER_AGENT_ASSIGNED, order, [order.user_id])

    def out_for_delivery(self, order: ServiceOrder) -> None:
        self._order_event(EventTypes.SERVICE_ORDER_OUT_FOR_DELIVERY, order, [order.user_id])

    def order_delivered(self, order: ServiceOrder, dispute_reason: str | None = None) -> None:
        """Клиенту и поставщику о доставке; при споре отдельное событие администраторам."""
        self._order_event(
            EventTypes.SERVICE_ORDER_DELIVERED,
            order,
            [order.user_id, order.provider_id],
        )
        if dispute_reason:
            self.notify(NotificationData(
                event_type=EventTypes.SERVICE_ORDER_DISPUTED,
                recipient_ids=[],
                recipient_roles=["ADMIN"],
                payload={"serviceOrderId": order.id, "reason": dispute_reason},
            ))

    def order_cancelled(self, order: ServiceOrder, reason: str) -> None:
        self._order_event(
            EventTypes.SERVICE_ORDER_CANCELLED,
            order,
            [order.user_id, order.provider_id],
            reason=reason,
        )

    def payment_completed(self, order: ServiceOrder) -> None:
        self._order_event(
            EventTypes.PAYMENT_COMPLETED,
            order,
            [order.user_id, order.provider_id],
            amount=str(order.amount_due),
        )

    def payment_failed(self, order: ServiceOrder, error: str | None = None) -> None:
        self._order_event(EventTypes.PAYMENT_FAILED, order, [order.user_id], error=error)

    def payment_refunded(self, order: ServiceOrder) -> None:
        self._order_event(
            EventTypes.PAYMENT_REFUNDED,
            order,
            [order.user_id],
            amount=str(order.amount_due),
        )
