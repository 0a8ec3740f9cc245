# src/core/listings/__init__.py
"""
Подготовка витрин коммунальных услуг: проверка документов поставщика
и включение налогов в цену за единицу.
"""

from src.core.listings.repository import ProviderDocumentsRepository
from src.core.listings.service import ListingTaxService, PreparedListingPrice

__all__ = [
    "ListingTaxService",
    "PreparedListingPrice",
    "ProviderDocumentsRepository",
]
