# src/core/orders/state_machine.py
"""
Допустимые переходы статуса заказа услуги.

PENDING -> PROCESSING -> [AGENT_ASSIGNED ->] OUT_FOR_DELIVERY -> DELIVERED
REJECTED и CANCELLED достижимы из PENDING и PROCESSING и являются конечными.
"""

from __future__ import annotations

from src.common.constants import ServiceOrderStatus
from src.common.errors import ApiError, ErrorCodes

S = ServiceOrderStatus

ALLOWED_TRANSITIONS: dict[ServiceOrderStatus, frozenset[ServiceOrderStatus]] = {
    S.PENDING: frozenset({S.PROCESSING, S.REJECTED, S.CANCELLED}),
    S.PROCESSING: frozenset({S.AGENT_ASSIGNED, S.OUT_FOR_DELIVERY, S.REJECTED, S.CANCELLED}),
    S.AGENT_ASSIGNED: frozenset({S.OUT_FOR_DELIVERY}),
    S.OUT_FOR_DELIVERY: frozenset({S.DELIVERED}),
    S.DELIVERED: frozenset(),
    S.REJECTED: frozenset(),
    S.CANCELLED: frozenset(),
}

CANCELLABLE_STATUSES: frozenset[ServiceOrderStatus] = frozenset({S.PENDING, S.PROCESSING})


def can_transition(current: ServiceOrderStatus, target: ServiceOrderStatus) -> bool:
    """Разрешён ли переход current -> target."""
    return target in ALLOWED_TRANSITIONS.get(current, frozenset())


def ensure_transition(
    order_id: str,
    current: ServiceOrderStatus,
    target: ServiceOrderStatus,
) -> None:
    """
    Проверяет переход статуса.

    Raises:
        ApiError: 400 INVALID_ORDER_STATUS для недопустимого перехода
    """
    if not can_transition(current, target):
        raise ApiError.bad_request(
            f"Order cannot move from {current.value} to {target.value}",
            ErrorCodes.INVALID_ORDER_STATUS,
            {"orderId": order_id, "currentStatus": current.value, "targetStatus": target.value},
        )
