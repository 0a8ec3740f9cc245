# src/core/revenue/__init__.py
"""
Выручка и рейтинг услуг.
"""

from src.core.revenue.service import RevenueAggregator

__all__ = ["RevenueAggregator"]
