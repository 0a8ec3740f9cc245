# src/shared/models/__init__.py
"""
Pydantic-модели границы HTTP: запросы, команды, общие ответы.
"""

from src.shared.models.commands import (
    CalculateTotalRequest,
    CancelOrderRequest,
    CompleteDeliveryRequest,
    CreateServiceOrderCommand,
    CreateServiceOrderRequest,
    PrepareListingPriceRequest,
    RateOrderRequest,
    RejectOrderRequest,
    UpdatePickupLocationRequest,
    ValidateConfirmationCodeRequest,
)
from src.shared.models.common import (
    ApiResponse,
    ErrorResponse,
    HealthStatus,
)

__all__ = [
    # Commands
    "CalculateTotalRequest",
    "CancelOrderRequest",
    "CompleteDeliveryRequest",
    "CreateServiceOrderCommand",
    "CreateServiceOrderRequest",
    "PrepareListingPriceRequest",
    "RateOrderRequest",
    "RejectOrderRequest",
    "UpdatePickupLocationRequest",
    "ValidateConfirmationCodeRequest",
    # Common
    "ApiResponse",
    "ErrorResponse",
    "HealthStatus",
]
