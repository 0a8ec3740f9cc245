# tests/core/test_orders_state_machine.py
"""
Тесты для переходов статуса заказа.
"""

from __future__ import annotations

import pytest

from src.common.constants import ServiceOrderStatus as S
from src.common.errors import ApiError, ErrorCodes
from src.core.orders.state_machine import (
    ALLOWED_TRANSITIONS,
    CANCELLABLE_STATUSES,
    can_transition,
    ensure_transition,
)


class TestTransitions:

    @pytest.mark.parametrize(
        "current, target",
        [
            (S.PENDING, S.PROCESSING),
            (S.PENDING, S.REJECTED),
            (S.PENDING, S.CANCELLED),
            (S.PROCESSING, S.AGENT_ASSIGNED),
            (S.PROCESSING, S.OUT_FOR_DELIVERY),
            (S.AGENT_ASSIGNED, S.OUT_FOR_DELIVERY),
            (S.OUT_FOR_DELIVERY, S.DELIVERED),
        ],
    )
    def test_allowed(self, current: S, target: S) -> None:
        assert can_transition(current, target)

    @pytest.mark.parametrize(
        "current, target",
        [
            (S.PENDING, S.DELIVERED),
            (S.PENDING, S.OUT_FOR_DELIVERY),
            (S.AGENT_ASSIGNED, S.CANCELLED),
            (S.OUT_FOR_DELIVERY, S.CANCELLED),
            (S.DELIVERED, S.CANCELLED),
            (S.CANCELLED, S.PROCESSING),
            (S.REJECTED, S.PENDING),
        ],
    )
    def test_forbidden(self, current: S, target: S) -> None:
        assert not can_transition(current, target)

    def test_every_status_has_entry(self) -> None:
        assert set(ALLOWED_TRANSITIONS) == set(S)

    def test_terminal_statuses(self) -> None:
        assert {s for s, targets in ALLOWED_TRANSITIONS.items() if not targets} == {S.DELIVERED, S.REJECTED, S.CANCELLED}

    def test_cancellable(self) -> None:
        assert CANCELLABLE_STATUSES == {S.PENDING, S.PROCESSING}


class TestEnsureTransition:

    def test_passes(self) -> None:
        ensure_transition("o-1", S.PENDING, S.PROCESSING)

    def test_raises_with_details(self) -> None:
        with pytest.raises(ApiError) as exc_info:
            ensure_transition("o-1", S.DELIVERED, S.PROCESSING)

        error = exc_info.value
        assert error.status_code == 400
        assert error.error_code == ErrorCodes.INVALID_ORDER_STATUS
        assert error.details == {
            "orderId": "o-1",
            "currentStatus": "DELIVERED",
            "targetStatus": "PROCESSING",
        }
