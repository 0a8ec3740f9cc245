# src/worker/reconciliation.py
"""
Воркер сверки зависших платёжных намерений.
"""

from __future__ import annotations

from src.common.constants import TypeMsg
from src.common.logger import log_info
from src.core.payments.reconciler import PaymentReconciler
from src.worker.base import BaseWorker


class ReconciliationWorker(BaseWorker):
    """Периодически вызывает PaymentReconciler.sweep()."""

    def __init__(self, reconciler: PaymentReconciler, interval_seconds: float = 60) -> None:
        super().__init__(interval_seconds)
        self._reconciler = reconciler

    @property
    def name(self) -> str:
        return "ReconciliationWorker"

    async def run_once(self) -> None:
        report = await self._reconciler.sweep()
        if report.checked:
            await log_info(
                f"Сверка: проверено {report.checked}, оплачено {report.completed}, "
                f"отклонено {report.failed}, ожидает {report.pending}, ошибок {report.errors}",
                type_msg=TypeMsg.INFO,
            )
