# tests/core/test_payments_wallet.py
"""
Тесты для сервиса кошелька.
"""

from __future__ import annotations

from decimal import Decimal
from unittest.mock import AsyncMock

import pytest

from src.common.errors import ApiError, ErrorCodes
from src.common.constants import PaymentIntentStatus, PaymentMethod
from src.core.payments.models import PaymentIntent, WalletTransaction
from src.core.payments.wallet import WalletService


def make_transaction(**overrides) -> WalletTransaction:
    data = {
        "id": "wt-1",
        "wallet_id": "w-1",
        "user_id": "u-1",
        "amount": Decimal("3010.00"),
        "transaction_type": "DEBIT",
        "status": "COMPLETED",
        "transaction_ref": "intent-1",
        "service_order_id": "order-1",
    }
    data.update(overrides)
    return WalletTransaction(**data)


@pytest.fixture
def wallets() -> AsyncMock:
    repo = AsyncMock()
    repo.get_transaction_by_ref = AsyncMock(return_value=None)
    repo.lock_wallet = AsyncMock(return_value={"id": "w-1", "user_id": "u-1", "balance": Decimal("5000")})
    repo.adjust_balance = AsyncMock(return_value=Decimal("1990.00"))
    repo.insert_transaction = AsyncMock(return_value=make_transaction())
    return repo


@pytest.fixture
def intents() -> AsyncMock:
    repo = AsyncMock()
    repo.lock = AsyncMock(return_value=None)
    return repo


@pytest.fixture
def service(mock_db, wallets: AsyncMock, intents: AsyncMock) -> WalletService:
    return WalletService(mock_db, wallets, intents)


class TestPayWithWallet:
    """Списание за заказ."""

    @pytest.mark.asyncio
    async def test_debits_amount(self, service: WalletService, wallets: AsyncMock, mock_conn) -> None:
        transaction = await service.pay_with_wallet(
            user_id="u-1",
            amount=Decimal("3010.00"),
            service_order_id="order-1",
            reference="intent-1",
            service_type="petrol",
            breakdown={"vatAmount": "210.00"},
        )

        assert transaction.id == "wt-1"
        wallets.adjust_balance.assert_awaited_once_with(mock_conn, "w-1", Decimal("-3010.00"))
        kwargs = wallets.insert_transaction.await_args.kwargs
        assert kwargs["transaction_type"] == "DEBIT"
        assert kwargs["transaction_ref"] == "intent-1"
        assert kwargs["metadata"]["vatAmount"] == "210.00"

    @pytest.mark.asyncio
    async def test_repeat_reference_is_idempotent(self, service: WalletService, wallets: AsyncMock) -> None:
        wallets.get_transaction_by_ref = AsyncMock(return_value=make_transaction())

        transaction = await service.pay_with_wallet("u-1", Decimal("3010.00"), "order-1", "intent-1", "petrol")

        assert transaction.transaction_ref == "intent-1"
        wallets.adjust_balance.assert_not_called()

    @pytest.mark.asyncio
    async def test_missing_wallet(self, service: WalletService, wallets: AsyncMock) -> None:
        wallets.lock_wallet = AsyncMock(return_value=None)

        with pytest.raises(ApiError) as exc_info:
            await service.pay_with_wallet("u-1", Decimal("10"), "order-1", "intent-1", "petrol")

        assert exc_info.value.error_code == ErrorCodes.WALLET_NOT_FOUND

    @pytest.mark.asyncio
    async def test_insufficient_balance(self, service: WalletService, wallets: AsyncMock) -> None:
        wallets.lock_wallet = AsyncMock(return_value={"id": "w-1", "user_id": "u-1", "balance": Decimal("100")})

        with pytest.raises(ApiError) as exc_info:
            await service.pay_with_wallet("u-1", Decimal("3010.00"), "order-1", "intent-1", "petrol")

        assert exc_info.value.error_code == ErrorCodes.INSUFFICIENT_BALANCE
        assert exc_info.value.details == {"balance": "100", "required": "3010.00"}
        wallets.adjust_balance.assert_not_called()

    @pytest.mark.asyncio
    @pytest.mark.parametrize("amount", [Decimal("0"), Decimal("-860.00")])
    async def test_non_positive_amount_rejected(
        self, service: WalletService, wallets: AsyncMock, amount: Decimal
    ) -> None:
        with pytest.raises(ApiError) as exc_info:
            await service.pay_with_wallet("u-1", amount, "order-1", "intent-1", "petrol")

        assert exc_info.value.status_code == 400
        assert exc_info.value.error_code == ErrorCodes.INVALID_INPUT
        wallets.lock_wallet.assert_not_called()
        wallets.adjust_balance.assert_not_called()

    @pytest.mark.asyncio
    async def test_intent_failed_by_reconciler_blocks_debit(
        self, service: WalletService, wallets: AsyncMock, intents: AsyncMock, mock_conn
    ) -> None:
        intents.lock = AsyncMock(return_value=PaymentIntent(
            id="intent-1",
            service_order_id="order-1",
            payment_method=PaymentMethod.WALLET,
            amount=Decimal("3010.00"),
            status=PaymentIntentStatus.FAILED,
        ))

        with pytest.raises(ApiError) as exc_info:
            await service.pay_with_wallet("u-1", Decimal("3010.00"), "order-1", "intent-1", "petrol")

        intents.lock.assert_awaited_once_with(mock_conn, "intent-1")
        assert exc_info.value.status_code == 409
        assert exc_info.value.error_code == ErrorCodes.PAYMENT_INTENT_NOT_PENDING
        wallets.adjust_balance.assert_not_called()
        wallets.insert_transaction.assert_not_called()

    @pytest.mark.asyncio
    async def test_pending_intent_is_locked_before_debit(
        self, service: WalletService, wallets: AsyncMock, intents: AsyncMock, mock_conn
    ) -> None:
        intents.lock = AsyncMock(return_value=PaymentIntent(
            id="intent-1",
            service_order_id="order-1",
            payment_method=PaymentMethod.WALLET,
            amount=Decimal("3010.00"),
            status=PaymentIntentStatus.PENDING,
        ))

        await service.pay_with_wallet("u-1", Decimal("3010.00"), "order-1", "intent-1", "petrol")

        intents.lock.assert_awaited_once_with(mock_conn, "intent-1")
        wallets.adjust_balance.assert_awaited_once_with(mock_conn, "w-1", Decimal("-3010.00"))


class TestRefundToWallet:

    @pytest.mark.asyncio
    async def test_credits_exact_amount(self, service: WalletService, wallets: AsyncMock, mock_conn) -> None:
        wallets.insert_transaction = AsyncMock(
            return_value=make_transaction(transaction_type="REFUND", transaction_ref="REFUND-order-1")
        )

        transaction = await service.refund_to_wallet(
            mock_conn, "u-1", Decimal("3010.00"), "order-1", "REFUND-order-1"
        )

        wallets.adjust_balance.assert_awaited_once_with(mock_conn, "w-1", Decimal("3010.00"))
        assert transaction.transaction_type == "REFUND"
        assert wallets.insert_transaction.await_args.kwargs["transaction_type"] == "REFUND"

    @pytest.mark.asyncio
    async def test_missing_wallet(self, service: WalletService, wallets: AsyncMock, mock_conn) -> None:
        wallets.lock_wallet = AsyncMock(return_value=None)

        with pytest.raises(ApiError):
            await service.refund_to_wallet(mock_conn, "u-1", Decimal("1"), "order-1", "REFUND-order-1")
