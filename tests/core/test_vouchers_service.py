# tests/core/test_vouchers_service.py
"""
Тесты для валидатора ваучеров.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from unittest.mock import AsyncMock

import pytest

from src.common.constants import VoucherType
from src.common.errors import ApiError, ErrorCodes
from src.core.users.models import UserAccount
from src.core.vouchers.models import Voucher
from src.core.vouchers.service import VoucherValidator


def make_voucher(**overrides) -> Voucher:
    data = {
        "id": "v-1",
        "code": "SAVE10",
        "type": VoucherType.PERCENTAGE,
        "discount": Decimal("10"),
        "valid_until": datetime.now(timezone.utc) + timedelta(days=7),
    }
    data.update(overrides)
    return Voucher(**data)


@pytest.fixture
def repo() -> AsyncMock:
    vouchers = AsyncMock()
    vouchers.get_by_code = AsyncMock(return_value=make_voucher())
    vouchers.lock = AsyncMock(return_value=make_voucher())
    vouchers.count_usages = AsyncMock(return_value=0)
    vouchers.count_user_usages = AsyncMock(return_value=0)
    return vouchers


@pytest.fixture
def users(sample_user) -> AsyncMock:
    repo = AsyncMock()
    repo.get_by_id = AsyncMock(return_value=sample_user)
    return repo


@pytest.fixture
def validator(repo: AsyncMock, users: AsyncMock) -> VoucherValidator:
    return VoucherValidator(repo, users)


class TestCalculateDiscount:
    """Расчёт суммы скидки."""

    def test_percentage(self) -> None:
        assert VoucherValidator.calculate_discount(make_voucher(), Decimal("2000")) == Decimal("200.00")

    def test_percentage_clamped_to_hundred(self) -> None:
        voucher = make_voucher(discount=Decimal("150"))
        assert VoucherValidator.calculate_discount(voucher, Decimal("2000")) == Decimal("2000.00")

    def test_negative_percentage(self) -> None:
        voucher = make_voucher(discount=Decimal("-5"))
        assert VoucherValidator.calculate_discount(voucher, Decimal("2000")) == Decimal("0.00")

    def test_percentage_of_empty_subtotal(self) -> None:
        assert VoucherValidator.calculate_discount(make_voucher(), Decimal("0")) == Decimal("0")

    def test_fixed_clamped_to_zero(self) -> None:
        voucher = make_voucher(type=VoucherType.FIXED, discount=Decimal("-10"))
        assert VoucherValidator.calculate_discount(voucher, Decimal("1000")) == Decimal("0")

    def test_fixed_capped_at_subtotal(self) -> None:
        voucher = make_voucher(type=VoucherType.FIXED, discount=Decimal("2000"))
        assert VoucherValidator.calculate_discount(voucher, Decimal("500")) == Decimal("500")


class TestValidate:
    """Проверка ваучера перед расчётом."""

    @pytest.mark.asyncio
    async def test_valid(self, validator: VoucherValidator) -> None:
        voucher = await validator.validate("SAVE10", "u-1")

        assert voucher is not None
        assert voucher.code == "SAVE10"

    @pytest.mark.asyncio
    async def test_unknown_code(self, validator: VoucherValidator, repo: AsyncMock) -> None:
        repo.get_by_code = AsyncMock(return_value=None)

        assert await validator.validate("NOPE", "u-1") is None

    @pytest.mark.asyncio
    async def test_inactive(self, validator: VoucherValidator, repo: AsyncMock) -> None:
        repo.get_by_code = AsyncMock(return_value=make_voucher(is_active=False))

        assert await validator.validate("SAVE10", "u-1") is None

    @pytest.mark.asyncio
    async def test_expired(self, validator: VoucherValidator, repo: AsyncMock) -> None:
        repo.get_by_code = AsyncMock(
            return_value=make_voucher(valid_until=datetime.now(timezone.utc) - timedelta(minutes=1))
        )

        assert await validator.validate("SAVE10", "u-1") is None

    @pytest.mark.asyncio
    async def test_user_without_role(self, validator: VoucherValidator, users: AsyncMock) -> None:
        users.get_by_id = AsyncMock(return_value=UserAccount(id="u-1"))

        assert await validator.validate("SAVE10", "u-1") is None

    @pytest.mark.asyncio
    async def test_role_not_allowed(self, validator: VoucherValidator, repo: AsyncMock) -> None:
        repo.get_by_code = AsyncMock(return_value=make_voucher(role_ids=["role-provider"]))

        assert await validator.validate("SAVE10", "u-1") is None

    @pytest.mark.asyncio
    async def test_role_allowed(self, validator: VoucherValidator, repo: AsyncMock) -> None:
        repo.get_by_code = AsyncMock(return_value=make_voucher(role_ids=["role-customer"]))

        assert await validator.validate("SAVE10", "u-1") is not None

    @pytest.mark.asyncio
    async def test_global_limit(self, validator: VoucherValidator, repo: AsyncMock) -> None:
        repo.get_by_code = AsyncMock(return_value=make_voucher(max_uses=3))
        repo.count_usages = AsyncMock(return_value=3)

        assert await validator.validate("SAVE10", "u-1") is None

    @pytest.mark.asyncio
    async def test_per_user_limit(self, validator: VoucherValidator, repo: AsyncMock) -> None:
        repo.get_by_code = AsyncMock(return_value=make_voucher(max_uses_per_user=1))
        repo.count_user_usages = AsyncMock(return_value=1)

        assert await validator.validate("SAVE10", "u-1") is None


class TestRedeem:
    """Погашение ваучера в транзакции."""

    @pytest.mark.asyncio
    async def test_records_usage(self, validator: VoucherValidator, repo: AsyncMock, mock_conn) -> None:
        await validator.redeem(mock_conn, "v-1", "u-1", "o-1")

        repo.lock.assert_awaited_once_with(mock_conn, "v-1")
        repo.insert_usage.assert_awaited_once_with(mock_conn, "v-1", "u-1", "o-1")

    @pytest.mark.asyncio
    async def test_limit_reached_concurrently(
        self, validator: VoucherValidator, repo: AsyncMock, mock_conn
    ) -> None:
        repo.lock = AsyncMock(return_value=make_voucher(max_uses=1))
        repo.count_usages = AsyncMock(return_value=1)

        with pytest.raises(ApiError) as exc_info:
            await validator.redeem(mock_conn, "v-1", "u-1", "o-1")

        assert exc_info.value.status_code == 409
        assert exc_info.value.error_code == ErrorCodes.VOUCHER_USAGE_LIMIT_REACHED
        repo.insert_usage.assert_not_called()

    @pytest.mark.asyncio
    async def test_per_user_limit_reached(
        self, validator: VoucherValidator, repo: AsyncMock, mock_conn
    ) -> None:
        repo.lock = AsyncMock(return_value=make_voucher(max_uses_per_user=2))
        repo.count_user_usages = AsyncMock(return_value=2)

        with pytest.raises(ApiError):
            await validator.redeem(mock_conn, "v-1", "u-1", "o-1")

    @pytest.mark.asyncio
    async def test_deactivated_voucher(self, validator: VoucherValidator, repo: AsyncMock, mock_conn) -> None:
        repo.lock = AsyncMock(return_value=None)

        with pytest.raises(ApiError) as exc_info:
            await validator.redeem(mock_conn, "v-1", "u-1", "o-1")

        assert exc_info.value.status_code == 409
