# src/common/errors.py
"""
Доменные ошибки с HTTP-статусом и стабильным кодом.

Сервисы пробрасывают ApiError без изменений, а любые другие исключения
оборачивают в ближайшую по смыслу доменную ошибку.
"""

from __future__ import annotations

from typing import Any


class ErrorCodes:
    """Стабильные коды ошибок, видимые клиенту."""
    # Общие
    VALIDATION_ERROR = "server/validation-error"
    MISSING_FIELDS = "server/missing-fields"
    INTERNAL_ERROR = "server/internal-error"
    NOT_FOUND = "server/not-found"
    INVALID_INPUT = "voucher/invalid-input"

    # Доступ
    UNAUTHORIZED = "auth/unauthorized"
    FORBIDDEN = "auth/forbidden"

    # Внешние сервисы
    SERVICE_UNAVAILABLE = "gateway/service-unavailable"

    # Заказы
    ORDER_NOT_FOUND = "order/not-found"
    INVALID_ORDER_STATUS = "order/invalid-order-status"
    ORDER_CANCELLATION_FAILED = "order/cancellation-failed"
    ORDER_CREATION_FAILED = "order/creation-failed"
    CALCULATION_FAILED = "order/calculation-failed"
    ORDER_ALREADY_RATED = "order/already-rated"

    # Услуги
    SERVICE_NOT_FOUND = "service/not-found"
    SERVICE_INVALID_STATUS = "service/invalid-status"
    SERVICE_LOCATION_NOT_FOUND = "service/location-not-found"
    GEOSPATIAL_CALCULATION_FAILED = "service/geospatial-calculation-failed"
    BUSINESS_VERIFICATION_FAILED = "service/business-verification-failed"

    # Пользователи
    USER_NOT_FOUND = "user/not-found"
    ADDRESS_NOT_FOUND = "user/address-not-found"
    ADDRESS_LOCATION_NOT_FOUND = "user/address-location-not-found"

    # Платежи
    PAYMENT_PROCESSING_FAILED = "payment/processing-failed"
    PAYMENT_METHOD_NOT_AVAILABLE = "payment/method-not-available"
    INVALID_CONFIRMATION_CODE = "payment/invalid-confirmation-code"
    PAYMENT_INTENT_NOT_PENDING = "payment/intent-not-pending"

    # Кошелёк
    WALLET_NOT_FOUND = "wallet/not-found"
    INSUFFICIENT_BALANCE = "wallet/insufficient-balance"

    # Ваучеры
    VOUCHER_USAGE_LIMIT_REACHED = "voucher/usage-limit-reached"


class ApiError(Exception):
    """
    Ошибка уровня API.

    Attributes:
        status_code: HTTP статус ответа
        message: Сообщение для клиента
        error_code: Стабильный код из ErrorCodes
        details: Структурированные подробности (опционально)
        is_operational: False для непредвиденных (внутренних) ошибок
    """

    def __init__(
        self,
        status_code: int,
        message: str,
        error_code: str = ErrorCodes.INTERNAL_ERROR,
        details: dict[str, Any] | None = None,
        is_operational: bool = True,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.message = message
        self.error_code = error_code
        self.details = details
        self.is_operational = is_operational

    def __repr__(self) -> str:
        return f"ApiError({self.status_code}, {self.error_code!r}, {self.message!r})"

    def to_response(self) -> dict[str, Any]:
        """Тело ответа для клиента (без трейсбеков)."""
        body: dict[str, Any] = {
            "success": False,
            "message": self.message,
            "errorCode": self.error_code,
        }
        if self.details:
            body["details"] = self.details
        return body

    # =========================================================================
    # ФАБРИКИ
    # =========================================================================

    @classmethod
    def bad_request(
        cls,
        message: str,
        error_code: str = ErrorCodes.VALIDATION_ERROR,
        details: dict[str, Any] | None = None,
    ) -> "ApiError":
        return cls(400, message, error_code, details)

    @classmethod
    def unauthorized(
        cls,
        message: str = "Unauthorized",
        error_code: str = ErrorCodes.UNAUTHORIZED,
        details: dict[str, Any] | None = None,
    ) -> "ApiError":
        return cls(401, message, error_code, details)

    @classmethod
    def forbidden(
        cls,
        message: str = "Forbidden",
        error_code: str = ErrorCodes.FORBIDDEN,
        details: dict[str, Any] | None = None,
    ) -> "ApiError":
        return cls(403, message, error_code, details)

    @classmethod
    def not_found(
        cls,
        message: str,
        error_code: str = ErrorCodes.NOT_FOUND,
        details: dict[str, Any] | None = None,
    ) -> "ApiError":
        return cls(404, message, error_code, details)

    @classmethod
    def conflict(
        cls,
        message: str,
        error_code: str,
        details: dict[str, Any] | None = None,
    ) -> "ApiError":
        return cls(409, message, error_code, details)

    @classmethod
    def internal(
        cls,
        message: str = "Internal server error",
        error_code: str = ErrorCodes.INTERNAL_ERROR,
        details: dict[str, Any] | None = None,
    ) -> "ApiError":
        return cls(500, message, error_code, details, is_operational=False)

    @classmethod
    def service_unavailable(
        cls,
        message: str = "Service currently unavailable",
        error_code: str = ErrorCodes.SERVICE_UNAVAILABLE,
        details: dict[str, Any] | None = None,
    ) -> "ApiError":
        return cls(503, message, error_code, details)
