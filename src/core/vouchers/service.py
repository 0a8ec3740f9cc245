# src/core/vouchers/service.py
"""
Проверка и погашение ваучеров.

Проверка (validate) не бросает ошибок: любая причина отказа логируется,
а вызывающий код считает, что скидки нет. Погашение (redeem) выполняется
внутри транзакции создания заказа под блокировкой строки ваучера.
"""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

from asyncpg import Connection

from src.common.constants import TypeMsg, VoucherType
from src.common.errors import ApiError, ErrorCodes
from src.common.logger import log_info
from src.core.users.repository import UserRepository
from src.core.vouchers.models import Voucher
from src.core.vouchers.repository import VoucherRepository

_ZERO = Decimal("0")
_HUNDRED = Decimal("100")


class VoucherValidator:
    """Валидатор ваучеров."""

    def __init__(self, vouchers: VoucherRepository, users: UserRepository) -> None:
        """
        Args:
            vouchers: Репозиторий ваучеров
            users: Репозиторий пользователей (для проверки роли)
        """
        self._vouchers = vouchers
        self._users = users

    async def validate(self, code: str, user_id: str) -> Optional[Voucher]:
        """
        Проверяет, может ли пользователь применить ваучер.

        Проверки по порядку: существует и активен, не истёк, у пользователя
        есть роль и она разрешена, не исчерпан общий лимит, не исчерпан
        лимит пользователя.

        Args:
            code: Код ваучера
            user_id: ID пользователя

        Returns:
            Ваучер или None при любом отказе
        """
        voucher = await self._vouchers.get_by_code(code)
        if voucher is None or not voucher.is_active:
            await self._reject(code, "не найден или неактивен")
            return None

        if voucher.valid_until < datetime.now(timezone.utc):
            await self._reject(code, "срок действия истёк")
            return None

        user = await self._users.get_by_id(user_id)
        if user is None or not user.has_role:
            await self._reject(code, f"у пользователя {user_id} нет роли")
            return None

        if voucher.is_role_restricted and user.role_id not in voucher.role_ids:
            await self._reject(code, f"роль {user.role_name} не допускается")
            return None

        if voucher.max_uses is not None:
            used = await self._vouchers.count_usages(voucher.id)
            if used >= voucher.max_uses:
                await self._reject(code, "исчерпан общий лимит использований")
                return None

        if voucher.max_uses_per_user is not None:
            used_by_user = await self._vouchers.count_user_usages(voucher.id, user_id)
            if used_by_user >= voucher.max_uses_per_user:
                await self._reject(code, f"исчерпан лимит для пользователя {user_id}")
                return None

        return voucher

    @staticmethod
    def calculate_discount(voucher: Voucher, subtotal: Decimal) -> Decimal:
        """
        Сумма скидки по ваучеру.

        FIXED: max(0, discount), но не больше subtotal.
        PERCENTAGE: clamp(discount, 0, 100) процентов от subtotal, 0 если subtotal <= 0.
        """
        if voucher.type == VoucherType.FIXED:
            return min(max(_ZERO, voucher.discount), max(subtotal, _ZERO))

        if subtotal <= _ZERO:
            return _ZERO

        percent = min(max(voucher.discount, _ZERO), _HUNDRED)
        return (subtotal * percent / _HUNDRED).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)

    async def redeem(
        self,
        conn: Connection,
        voucher_id: str,
        user_id: str,
        service_order_id: str,
    ) -> None:
        """
        Погашает ваучер в транзакции создания заказа.

        Строка ваучера блокируется, лимиты пересчитываются, затем
        записывается факт использования.

        Raises:
            ApiError: 409 VOUCHER_USAGE_LIMIT_REACHED, если лимит исчерпан
                параллельным заказом
        """
        voucher = await self._vouchers.lock(conn, voucher_id)
        if voucher is None or not voucher.is_active:
            raise ApiError.conflict(
                "Voucher is no longer available",
                ErrorCodes.VOUCHER_USAGE_LIMIT_REACHED,
                {"voucherId": voucher_id},
            )

        if voucher.max_uses is not None:
            used = await self._vouchers.count_usages(voucher_id, conn=conn)
            if used >= voucher.max_uses:
                raise ApiError.conflict(
                    "Voucher usage limit reached",
                    ErrorCodes.VOUCHER_USAGE_LIMIT_REACHED,
                    {"voucherId": voucher_id, "maxUses": voucher.max_uses},
                )

        if voucher.max_uses_per_user is not None:
            used_by_user = await self._vouchers.count_user_usages(voucher_id, user_id, conn=conn)
            if used_by_user >= voucher.max_uses_per_user:
                raise ApiError.conflict(
                    "Voucher usage limit per user reached",
                    ErrorCodes.VOUCHER_USAGE_LIMIT_REACHED,
                    {"voucherId": voucher_id, "maxUsesPerUser": voucher.max_uses_per_user},
                )

        await self._vouchers.insert_usage(conn, voucher_id, user_id, service_order_id)
        await log_info(
            f"Ваучер {voucher.code} погашен заказом {service_order_id}",
            type_msg=TypeMsg.INFO,
        )

    @staticmethod
    async def _reject(code: str, reason: str) -> None:
        await log_info(f"Ваучер {code} отклонён: {reason}", type_msg=TypeMsg.INFO)
