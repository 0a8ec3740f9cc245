# src/core/payments/wallet.py
"""
Оплата заказов из кошелька и возвраты на кошелёк.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any, Optional

from asyncpg import Connection

from src.common.constants import TransactionStatus, TransactionType, TypeMsg
from src.common.errors import ApiError, ErrorCodes
from src.common.logger import log_info
from src.core.payments.models import WalletTransaction
from src.core.payments.repository import PaymentIntentRepository, WalletRepository
from src.infra.database import DatabaseManager


class WalletService:
    """
    Списания и возвраты по кошельку.

    Списание идемпотентно по ссылке: повторный вызов с той же ссылкой
    возвращает уже существующую операцию без повторного списания.
    Ссылка списания за заказ совпадает с ID платёжного намерения; списание
    проводится только пока намерение в статусе PENDING.
    """

    def __init__(
        self,
        db: DatabaseManager,
        wallets: WalletRepository,
        intents: PaymentIntentRepository,
    ) -> None:
        self._db = db
        self._wallets = wallets
        self._intents = intents

    async def pay_with_wallet(
        self,
        user_id: str,
        amount: Decimal,
        service_order_id: str,
        reference: str,
        service_type: str,
        breakdown: dict[str, Any] | None = None,
        voucher_code: str | None = None,
    ) -> WalletTransaction:
        """
        Списывает сумму заказа с кошелька пользователя.

        Args:
            user_id: ID пользователя
            amount: Сумма к списанию (итог заказа)
            service_order_id: ID заказа
            reference: Уникальная ссылка операции (ID платёжного намерения)
            service_type: Тип услуги
            breakdown: Состав суммы (стоимость услуги, сбор, НДС, налог)
            voucher_code: Применённый ваучер

        Raises:
            ApiError: INVALID_INPUT, WALLET_NOT_FOUND, INSUFFICIENT_BALANCE,
                PAYMENT_INTENT_NOT_PENDING
        """
        if amount <= 0:
            raise ApiError.bad_request(
                "Wallet debit amount must be greater than 0",
                ErrorCodes.INVALID_INPUT,
                {"amount": str(amount)},
            )

        async with self._db.transaction() as conn:
            # Блокировка намерения сериализует списание со сверкой
            intent = await self._intents.lock(conn, reference)

            existing = await self._wallets.get_transaction_by_ref(reference, conn=conn)
            if existing is not None:
                await log_info(
                    f"Списание {reference} уже проведено, повтор пропущен",
                    type_msg=TypeMsg.DEBUG,
                )
                return existing

            if intent is not None and not intent.is_pending:
                raise ApiError.conflict(
                    "Payment intent is no longer pending",
                    ErrorCodes.PAYMENT_INTENT_NOT_PENDING,
                    {"intentId": reference, "status": intent.status.value},
                )

            wallet = await self._wallets.lock_wallet(conn, user_id)
            if wallet is None:
                raise ApiError.not_found(
                    "Wallet not found", ErrorCodes.WALLET_NOT_FOUND, {"userId": user_id}
                )

            if wallet["balance"] < amount:
                raise ApiError.bad_request(
                    "Insufficient wallet balance",
                    ErrorCodes.INSUFFICIENT_BALANCE,
                    {"balance": str(wallet["balance"]), "required": str(amount)},
                )

            await self._wallets.adjust_balance(conn, str(wallet["id"]), -amount)
            transaction = await self._wallets.insert_transaction(
                conn,
                wallet_id=str(wallet["id"]),
                user_id=user_id,
                amount=amount,
                transaction_type=TransactionType.DEBIT.value,
                status=TransactionStatus.COMPLETED.value,
                transaction_ref=reference,
                service_order_id=service_order_id,
                metadata={
                    "serviceType": service_type,
                    "voucherCode": voucher_code,
                    **(breakdown or {}),
                },
            )

        await log_info(
            f"С кошелька пользователя {user_id} списано {amount} за заказ {service_order_id}",
            type_msg=TypeMsg.INFO,
        )
        return transaction

    async def refund_to_wallet(
        self,
        conn: Connection,
        user_id: str,
        amount: Decimal,
        service_order_id: str,
        reference: str,
    ) -> WalletTransaction:
        """
        Возвращает сумму на кошелёк в рамках открытой транзакции отмены.

        Raises:
            ApiError: WALLET_NOT_FOUND
        """
        wallet = await self._wallets.lock_wallet(conn, user_id)
        if wallet is None:
            raise ApiError.not_found(
                "Wallet not found", ErrorCodes.WALLET_NOT_FOUND, {"userId": user_id}
            )

        await self._wallets.adjust_balance(conn, str(wallet["id"]), amount)
        return await self._wallets.insert_transaction(
            conn,
            wallet_id=str(wallet["id"]),
            user_id=user_id,
            amount=amount,
            transaction_type=TransactionType.REFUND.value,
            status=TransactionStatus.COMPLETED.value,
            transaction_ref=reference,
            service_order_id=service_order_id,
            metadata={"reason": "service_order_cancelled"},
        )

    async def find_transaction(
        self,
        reference: str,
        conn: Connection | None = None,
    ) -> Optional[WalletTransaction]:
        """Операция по ссылке (для сверки зависших намерений)."""
        return await self._wallets.get_transaction_by_ref(reference, conn=conn)
