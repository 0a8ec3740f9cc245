# src/core/pricing/__init__.py
"""
Тарификация заказов услуг.
"""

from src.core.pricing.models import AdminSettings, OrderTotals, PriceQuote
from src.core.pricing.repository import AdminSettingsRepository
from src.core.pricing.service import PricingCalculator, compute_totals

__all__ = [
    "AdminSettings",
    "AdminSettingsRepository",
    "OrderTotals",
    "PriceQuote",
    "PricingCalculator",
    "compute_totals",
]
