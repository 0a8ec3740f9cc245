# src/core/payments/reconciler.py
"""
Сверка зависших платёжных намерений.

Намерение остаётся PENDING, если процесс упал между фиксацией заказа и
оплатой или шлюз ответил "в обработке". Обходчик периодически спрашивает
итоговый статус и применяет его тем же идемпотентным переходом, что и
основной поток создания заказа.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Awaitable, Callable

from src.common.constants import PaymentMethod, TransactionStatus, TypeMsg
from src.common.logger import log_error, log_info
from src.core.payments.gateway import PaymentGateway
from src.core.payments.models import PaymentIntent, PaymentResult
from src.core.payments.repository import PaymentIntentRepository
from src.core.payments.wallet import WalletService

ApplyResult = Callable[[str, PaymentResult], Awaitable[Any]]


@dataclass
class SweepReport:
    """Итог одного прохода сверки."""
    checked: int = 0
    completed: int = 0
    failed: int = 0
    pending: int = 0
    errors: int = 0


class PaymentReconciler:
    """Периодическая сверка платёжных намерений."""

    def __init__(
        self,
        intents: PaymentIntentRepository,
        gateway: PaymentGateway,
        wallet: WalletService,
        apply_result: ApplyResult,
        stale_after_seconds: int = 120,
        batch_size: int = 50,
        max_attempts: int = 10,
    ) -> None:
        """
        Args:
            intents: Репозиторий намерений
            gateway: Платёжный шлюз (verify_transaction)
            wallet: Сервис кошелька (поиск списания по ссылке)
            apply_result: Идемпотентное применение результата к заказу
            stale_after_seconds: Через сколько секунд намерение считается зависшим
            batch_size: Размер пачки за один проход
            max_attempts: После стольких попыток намерение считается неуспешным
        """
        self._intents = intents
        self._gateway = gateway
        self._wallet = wallet
        self._apply_result = apply_result
        self._stale_after = stale_after_seconds
        self._batch_size = batch_size
        self._max_attempts = max_attempts

    async def sweep(self) -> SweepReport:
        """Один проход сверки."""
        report = SweepReport()
        intents = await self._intents.claim_stale(self._stale_after, self._batch_size)

        for intent in intents:
            report.checked += 1
            try:
                result = await self._resolve(intent)
                await self._apply_result(intent.id, result)
            except Exception as e:
                report.errors += 1
                await log_error(f"Ошибка сверки намерения {intent.id}: {e}", exc_info=True)
                continue

            if result.is_completed:
                report.completed += 1
            elif result.is_failed:
                report.failed += 1
            else:
                report.pending += 1

        if report.checked:
            await log_info(
                f"Сверка платежей: проверено {report.checked}, завершено {report.completed}, "
                f"отклонено {report.failed}, в ожидании {report.pending}, ошибок {report.errors}",
                type_msg=TypeMsg.INFO,
            )
        return report

    async def _resolve(self, intent: PaymentIntent) -> PaymentResult:
        """Определяет текущий результат оплаты по намерению."""
        if intent.attempts >= self._max_attempts:
            return PaymentResult(
                transaction_id=intent.transaction_id,
                status=TransactionStatus.FAILED.value,
                error=f"Payment not confirmed after {intent.attempts} attempts",
            )

        if intent.payment_method == PaymentMethod.WALLET:
            transaction = await self._wallet.find_transaction(intent.id)
            if transaction is None:
                return PaymentResult(
                    transaction_id=None,
                    status=TransactionStatus.FAILED.value,
                    error="Wallet debit was never made",
                )
            return PaymentResult(transaction_id=transaction.id, status=transaction.status)

        try:
            return await self._gateway.verify_transaction(intent.id)
        except Exception as e:
            await log_info(
                f"Шлюз не ответил по намерению {intent.id}: {e}",
                type_msg=TypeMsg.WARNING,
            )
            return PaymentResult(
                transaction_id=intent.transaction_id,
                status=TransactionStatus.PENDING.value,
                error=str(e),
            )
