# src/core/listings/service.py
"""
Цена витрины коммунальной услуги.

Для физического топлива (бензин, дизель, газ, керосин) налог на топливо и
НДС включаются в цену за единицу при создании витрины. Это отдельная точка
налогообложения, независимая от налога на топливо при оформлении заказа.
Верификация бизнеса обязательна для любого типа услуги.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

from src.common.constants import DocumentStatus, TypeMsg
from src.common.errors import ApiError, ErrorCodes
from src.common.logger import log_info
from src.core.listings.repository import ProviderDocumentsRepository
from src.core.pricing.repository import AdminSettingsRepository


_ONE = Decimal("1")
_MONEY_PRECISION = Decimal("0.01")


@dataclass(frozen=True)
class PreparedListingPrice:
    """Цена за единицу с включёнными налогами."""
    base_price: Decimal
    vat_rate: Decimal
    fuel_tax_rate: Decimal
    price_per_unit: Decimal


class ListingTaxService:
    """Проверка документов и расчёт цены витрины."""

    def __init__(
        self,
        documents: ProviderDocumentsRepository,
        admin_settings: AdminSettingsRepository,
        physical_fuel_types: list[str] | None = None,
    ) -> None:
        self._documents = documents
        self._admin_settings = admin_settings
        self._physical_fuel_types = {
            t.lower() for t in (physical_fuel_types or ["petrol", "diesel", "gas", "kerosene"])
        }

    def is_physical_fuel(self, service_type: str) -> bool:
        return service_type.strip().lower() in self._physical_fuel_types

    @staticmethod
    def apply_taxes(price: Decimal, vat_rate: Decimal, fuel_tax_rate: Decimal = Decimal("0")) -> Decimal:
        """price × (1 + vat_rate + fuel_tax_rate), округление до копеек."""
        return (price * (_ONE + vat_rate + fuel_tax_rate)).quantize(
            _MONEY_PRECISION, rounding=ROUND_HALF_UP
        )

    async def ensure_business_verified(self, provider_id: str) -> None:
        """
        Верификация бизнеса поставщика должна быть одобрена.

        Raises:
            ApiError: BUSINESS_VERIFICATION_FAILED
        """
        status = await self._documents.get_business_verification_status(provider_id)
        if status != DocumentStatus.APPROVED.value:
            raise ApiError.bad_request(
                "Business verification is not approved",
                ErrorCodes.BUSINESS_VERIFICATION_FAILED,
                {"providerId": provider_id, "status": status},
            )

    async def ensure_vehicles(self, provider_id: str, vehicle_ids: list[str]) -> None:
        """Все переданные транспортные средства должны быть одобрены."""
        approved_vehicles = await self._documents.count_approved_vehicles(provider_id, vehicle_ids)
        if approved_vehicles != len(set(vehicle_ids)):
            raise ApiError.bad_request(
                "All vehicles must be approved",
                ErrorCodes.BUSINESS_VERIFICATION_FAILED,
                {"approved": approved_vehicles, "supplied": len(set(vehicle_ids))},
            )

    async def ensure_documents(
        self,
        provider_id: str,
        license_ids: list[str],
        vehicle_ids: list[str],
    ) -> None:
        """
        Проверяет документы поставщика физического топлива.

        Требуется одобренная верификация бизнеса и хотя бы одна лицензия
        и одно транспортное средство; все переданные ID должны быть одобрены.

        Raises:
            ApiError: BUSINESS_VERIFICATION_FAILED
        """
        await self.ensure_business_verified(provider_id)

        if not license_ids:
            raise ApiError.bad_request(
                "At least one approved handling license is required",
                ErrorCodes.BUSINESS_VERIFICATION_FAILED,
            )
        approved_licenses = await self._documents.count_approved_licenses(provider_id, license_ids)
        if approved_licenses != len(set(license_ids)):
            raise ApiError.bad_request(
                "All licenses must be approved",
                ErrorCodes.BUSINESS_VERIFICATION_FAILED,
                {"approved": approved_licenses, "supplied": len(set(license_ids))},
            )

        if not vehicle_ids:
            raise ApiError.bad_request(
                "At least one approved vehicle is required",
                ErrorCodes.BUSINESS_VERIFICATION_FAILED,
            )
        await self.ensure_vehicles(provider_id, vehicle_ids)

    async def prepare_price(
        self,
        provider_id: str,
        service_type: str,
        base_price: Decimal,
        license_ids: list[str] | None = None,
        vehicle_ids: list[str] | None = None,
    ) -> PreparedListingPrice:
        """
        Готовит цену витрины коммунальной услуги.

        Args:
            provider_id: ID поставщика
            service_type: Имя типа услуги
            base_price: Цена за единицу без налогов
            license_ids: Лицензии на обращение с топливом
            vehicle_ids: Транспортные средства доставки

        Returns:
            PreparedListingPrice с ценой, в которую включены налоги

        Raises:
            ApiError: INVALID_INPUT, BUSINESS_VERIFICATION_FAILED
        """
        if base_price <= 0:
            raise ApiError.bad_request("Price must be greater than 0", ErrorCodes.INVALID_INPUT)

        admin = await self._admin_settings.get()

        if self.is_physical_fuel(service_type):
            await self.ensure_documents(provider_id, license_ids or [], vehicle_ids or [])
            fuel_tax_rate = admin.petroleum_tax_rate
        else:
            await self.ensure_business_verified(provider_id)
            if vehicle_ids:
                await self.ensure_vehicles(provider_id, vehicle_ids)
            fuel_tax_rate = Decimal("0")

        price = self.apply_taxes(base_price, admin.vat_rate, fuel_tax_rate)
        await log_info(
            f"Цена витрины {service_type} поставщика {provider_id}: {base_price} -> {price}",
            type_msg=TypeMsg.DEBUG,
        )
        return PreparedListingPrice(
            base_price=base_price,
            vat_rate=admin.vat_rate,
            fuel_tax_rate=fuel_tax_rate,
            price_per_unit=price,
        )
