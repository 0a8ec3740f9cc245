# src/core/availability/__init__.py
"""
Проверка доступности услуги по расстоянию.
"""

from src.core.availability.service import (
    AvailabilityChecker,
    AvailabilityResult,
    DistanceMeasurement,
    evaluate_surcharge,
)

__all__ = [
    "AvailabilityChecker",
    "AvailabilityResult",
    "DistanceMeasurement",
    "evaluate_surcharge",
]
