# src/core/pricing/repository.py
"""
Чтение административных настроек тарификации.
Отсутствующие значения заменяются значениями по умолчанию из конфига.
"""

from __future__ import annotations

from decimal import Decimal

from src.common.logger import log_warning
from src.core.pricing.models import AdminSettings
from src.infra.database import DatabaseManager


class AdminSettingsRepository:
    """Единственная строка admin_settings с запасными значениями."""

    def __init__(
        self,
        db: DatabaseManager,
        default_service_charge: Decimal = Decimal("700"),
        default_vat_rate: Decimal = Decimal("0.075"),
        default_petroleum_tax_rate: Decimal = Decimal("0.05"),
    ) -> None:
        self._db = db
        self._default_service_charge = default_service_charge
        self._default_vat_rate = default_vat_rate
        self._default_petroleum_tax_rate = default_petroleum_tax_rate

    async def get(self) -> AdminSettings:
        """
        Загружает настройки на момент расчёта.

        Returns:
            AdminSettings, где каждое отсутствующее поле заменено значением
            по умолчанию (с предупреждением в логе)
        """
        row = await self._db.fetchrow(
            """
            SELECT default_service_charge, default_vat_rate, default_petroleum_tax_rate
            FROM admin_settings
            ORDER BY id
            LIMIT 1
            """
        )
        row = row or {}

        service_charge = row.get("default_service_charge")
        if service_charge is None:
            await log_warning(
                f"Сервисный сбор не настроен, используется {self._default_service_charge}"
            )
            service_charge = self._default_service_charge

        vat_rate = row.get("default_vat_rate")
        if vat_rate is None:
            await log_warning(f"Ставка НДС не настроена, используется {self._default_vat_rate}")
            vat_rate = self._default_vat_rate

        petroleum_tax_rate = row.get("default_petroleum_tax_rate")
        if petroleum_tax_rate is None:
            await log_warning(
                f"Ставка налога на топливо не настроена, используется {self._default_petroleum_tax_rate}"
            )
            petroleum_tax_rate = self._default_petroleum_tax_rate

        return AdminSettings(
            service_charge=Decimal(service_charge),
            vat_rate=Decimal(vat_rate),
            petroleum_tax_rate=Decimal(petroleum_tax_rate),
        )
