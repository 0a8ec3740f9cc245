# src/worker/__init__.py
"""
Фоновые воркеры: периодическая сверка платёжных намерений.
"""

from src.worker.base import BaseWorker
from src.worker.reconciliation import ReconciliationWorker

__all__ = ["BaseWorker", "ReconciliationWorker"]
