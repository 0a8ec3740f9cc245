# src/core/catalog/__init__.py
"""
Каталог услуг поставщиков.
"""

from src.core.catalog.models import NearbyService, ServiceListing
from src.core.catalog.repository import ServiceCatalogRepository

__all__ = [
    "NearbyService",
    "ServiceListing",
    "ServiceCatalogRepository",
]
