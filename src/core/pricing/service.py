# src/core/pricing/service.py
"""
Калькулятор стоимости заказа услуги.

subtotal = сервисный сбор + стоимость услуги + доставка + доплата за расстояние
           + налог на топливо - скидка
total    = subtotal + subtotal * НДС
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

from src.common.errors import ApiError, ErrorCodes
from src.common.logger import log_error
from src.core.availability.service import AvailabilityChecker
from src.core.catalog.models import ServiceListing
from src.core.catalog.repository import ServiceCatalogRepository
from src.core.pricing.models import OrderTotals, PriceQuote
from src.core.pricing.repository import AdminSettingsRepository
from src.core.users.models import CustomerAddress
from src.core.users.repository import UserRepository
from src.core.vouchers.models import Voucher
from src.core.vouchers.service import VoucherValidator

_CENT = Decimal("0.01")
_ZERO = Decimal("0")


def _money(value: Decimal) -> Decimal:
    return value.quantize(_CENT, rounding=ROUND_HALF_UP)


def compute_totals(
    price_per_unit: Decimal,
    unit_quantity: Decimal,
    service_fee: Decimal,
    delivery_fee: Decimal,
    additional_fee: Decimal,
    vat_rate: Decimal,
    petroleum_tax_rate: Decimal = _ZERO,
    voucher: Optional[Voucher] = None,
) -> OrderTotals:
    """
    Чистый расчёт суммы заказа без обращения к БД.

    Args:
        price_per_unit: Цена за единицу услуги
        unit_quantity: Количество единиц
        service_fee: Фиксированный сервисный сбор
        delivery_fee: Фиксированная стоимость доставки услуги
        additional_fee: Доплата за расстояние сверх радиуса
        vat_rate: Ставка НДС (доля)
        petroleum_tax_rate: Ставка налога на топливо (0 для нетопливных услуг)
        voucher: Проверенный ваучер (скидка считается от стоимости услуги)

    Returns:
        OrderTotals
    """
    service_subtotal = _money(price_per_unit * unit_quantity)
    petroleum_tax = _money(service_subtotal * petroleum_tax_rate)

    discount_amount = _ZERO
    if voucher is not None:
        discount_amount = _money(VoucherValidator.calculate_discount(voucher, service_subtotal))

    subtotal = (
        service_fee
        + service_subtotal
        + delivery_fee
        + additional_fee
        + petroleum_tax
        - discount_amount
    )
    subtotal = max(subtotal, _ZERO)
    vat_amount = _money(subtotal * vat_rate)

    return OrderTotals(
        service_fee=service_fee,
        service_subtotal=service_subtotal,
        delivery_fee=delivery_fee,
        additional_fee=additional_fee,
        petroleum_tax=petroleum_tax,
        discount_amount=discount_amount,
        subtotal=_money(subtotal),
        vat_rate=vat_rate,
        vat_amount=vat_amount,
        total_amount=_money(subtotal + vat_amount),
    )


class PricingCalculator:
    """Расчёт стоимости заказа по услуге, адресу и количеству."""

    def __init__(
        self,
        catalog: ServiceCatalogRepository,
        users: UserRepository,
        availability: AvailabilityChecker,
        admin_settings: AdminSettingsRepository,
        vouchers: VoucherValidator,
        petroleum_taxed_types: list[str] | None = None,
    ) -> None:
        self._catalog = catalog
        self._users = users
        self._availability = availability
        self._admin_settings = admin_settings
        self._vouchers = vouchers
        self._petroleum_taxed_types = {
            t.lower() for t in (petroleum_taxed_types or ["petrol", "diesel"])
        }

    def is_petroleum_taxed(self, service: ServiceListing) -> bool:
        return service.type_key in self._petroleum_taxed_types

    async def calculate(
        self,
        service_id: str,
        address_id: str,
        unit_quantity: Decimal,
        voucher_code: str | None = None,
        user_id: str | None = None,
    ) -> PriceQuote:
        """
        Рассчитывает стоимость заказа без побочных эффектов.

        Raises:
            ApiError: INVALID_INPUT, SERVICE_NOT_FOUND, SERVICE_INVALID_STATUS,
                SERVICE_LOCATION_NOT_FOUND, ADDRESS_LOCATION_NOT_FOUND,
                CALCULATION_FAILED
        """
        try:
            if unit_quantity <= 0:
                raise ApiError.bad_request(
                    "Unit quantity must be greater than 0", ErrorCodes.INVALID_INPUT
                )

            service = await self._catalog.get_service(service_id)
            if service is None:
                raise ApiError.not_found(
                    "Service not found", ErrorCodes.SERVICE_NOT_FOUND, {"serviceId": service_id}
                )
            if not service.is_orderable:
                raise ApiError.bad_request(
                    "Service is not active",
                    ErrorCodes.SERVICE_INVALID_STATUS,
                    {"serviceId": service_id, "status": service.status},
                )
            if not service.has_location:
                raise ApiError.not_found(
                    "Service location or radius not found",
                    ErrorCodes.SERVICE_LOCATION_NOT_FOUND,
                    {"serviceId": service_id},
                )

            address = await self._users.get_address(address_id)
            if address is None or not address.has_location:
                raise ApiError.not_found(
                    "Delivery address location not found",
                    ErrorCodes.ADDRESS_LOCATION_NOT_FOUND,
                    {"addressId": address_id},
                )

            return await self.quote(service, address, unit_quantity, voucher_code, user_id)
        except ApiError:
            raise
        except Exception as e:
            await log_error(f"Ошибка расчёта стоимости заказа услуги {service_id}: {e}", exc_info=True)
            raise ApiError.internal("Failed to calculate order total", ErrorCodes.CALCULATION_FAILED)

    async def quote(
        self,
        service: ServiceListing,
        address: CustomerAddress,
        unit_quantity: Decimal,
        voucher_code: str | None = None,
        user_id: str | None = None,
    ) -> PriceQuote:
        """
        Расчёт для уже загруженных и проверенных услуги и адреса.
        Используется также при создании заказа.
        """
        availability = await self._availability.check_for(service, address)
        admin = await self._admin_settings.get()

        voucher: Optional[Voucher] = None
        if voucher_code and user_id:
            voucher = await self._vouchers.validate(voucher_code, user_id)

        totals = compute_totals(
            price_per_unit=service.price_per_unit,
            unit_quantity=unit_quantity,
            service_fee=admin.service_charge,
            delivery_fee=service.delivery_cost,
            additional_fee=availability.additional_fee,
            vat_rate=admin.vat_rate,
            petroleum_tax_rate=admin.petroleum_tax_rate if self.is_petroleum_taxed(service) else _ZERO,
            voucher=voucher,
        )

        return PriceQuote(
            **totals.model_dump(),
            service_id=service.id,
            service_type=service.type_key,
            price_per_unit=service.price_per_unit,
            unit_quantity=unit_quantity,
            distance_km=availability.distance_km,
            service_radius_km=availability.service_radius_km,
            is_available=availability.is_available,
            duration_seconds=availability.duration_seconds,
            voucher_id=voucher.id if voucher else None,
            voucher_code=voucher.code if voucher else None,
            suggested_services=availability.suggested_services,
        )
