# src/core/listings/repository.py
"""
Документы поставщика: верификация бизнеса, лицензии, транспорт.
"""

from __future__ import annotations

from typing import Optional

from src.common.constants import DocumentStatus
from src.infra.database import DatabaseManager


class ProviderDocumentsRepository:
    """Статусы документов поставщика."""

    def __init__(self, db: DatabaseManager) -> None:
        self._db = db

    async def get_business_verification_status(self, provider_id: str) -> Optional[str]:
        """Статус последней верификации бизнеса или None."""
        return await self._db.fetchval(
            """
            SELECT status FROM business_verifications
            WHERE provider_id = $1
            ORDER BY (status = $2) DESC
            LIMIT 1
            """,
            provider_id,
            DocumentStatus.APPROVED.value,
        )

    async def count_approved_licenses(self, provider_id: str, license_ids: list[str]) -> int:
        """Сколько из переданных лицензий поставщика одобрено."""
        return await self._db.fetchval(
            """
            SELECT COUNT(*) FROM licenses
            WHERE provider_id = $1 AND id = ANY($2::uuid[]) AND status = $3
            """,
            provider_id,
            license_ids,
            DocumentStatus.APPROVED.value,
        )

    async def count_approved_vehicles(self, provider_id: str, vehicle_ids: list[str]) -> int:
        """Сколько из переданных транспортных средств поставщика одобрено."""
        return await self._db.fetchval(
            """
            SELECT COUNT(*) FROM vehicles
            WHERE provider_id = $1 AND id = ANY($2::uuid[]) AND status = $3
            """,
            provider_id,
            vehicle_ids,
            DocumentStatus.APPROVED.value,
        )
