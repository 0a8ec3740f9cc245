# src/core/vouchers/__init__.py
"""
Ваучеры: проверка, расчёт скидки, погашение.
"""

from src.core.vouchers.models import Voucher
from src.core.vouchers.repository import VoucherRepository
from src.core.vouchers.service import VoucherValidator

__all__ = ["Voucher", "VoucherRepository", "VoucherValidator"]
