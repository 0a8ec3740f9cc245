# tests/conftest.py
"""
Общие фикстуры и настройки для тестов.
"""

from __future__ import annotations

import json
import os
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from decimal import Decimal
from pathlib import Path
from typing import Any, Callable
from unittest.mock import AsyncMock, MagicMock

import pytest

# Устанавливаем переменные окружения перед импортом модулей
os.environ.setdefault("DB_PASSWORD", "test_password")
os.environ.setdefault("REDIS_PASSWORD", "")

from src.common.constants import PaymentMethod, PaymentStatus, ServiceOrderStatus
from src.core.catalog.models import NearbyService, ServiceListing
from src.core.orders.models import ServiceOrder
from src.core.users.models import CustomerAddress, UserAccount


PROVIDER_ID = "11111111-1111-1111-1111-111111111111"
CUSTOMER_ID = "22222222-2222-2222-2222-222222222222"
SERVICE_ID = "33333333-3333-3333-3333-333333333333"
ADDRESS_ID = "44444444-4444-4444-4444-444444444444"
ORDER_ID = "55555555-5555-5555-5555-555555555555"


# =============================================================================
# ФИКСТУРЫ КОНФИГУРАЦИИ
# =============================================================================

@pytest.fixture(scope="session")
def project_root() -> Path:
    """Корневая директория проекта."""
    return Path(__file__).parent.parent


@pytest.fixture(scope="session")
def config_path(project_root: Path) -> Path:
    """Путь к файлу конфигурации."""
    return project_root / "config" / "config.json"


@pytest.fixture
def mock_config() -> dict[str, Any]:
    """Мок конфигурации для тестов (плоский формат config.json)."""
    return {
        "PROJECT_NAME": "service_marketplace_test",
        "VERSION": "1.0.0-test",
        "DEBUG": True,
        "LOG_LEVEL": "DEBUG",
        "ENVIRONMENT": "test",
        "ORDERS_SERVICE_PORT": 9095,
        "LOG_TO_FILE": False,
        "LOG_FORMAT": "json",
        "GOOGLE_MAPS_API_KEY": "",
        "DB_HOST": "localhost",
        "DB_PORT": 5432,
        "DB_NAME": "marketplace_test",
        "DB_USER": "postgres",
        "DB_PASSWORD": "test_password",
        "DB_MIN_POOL_SIZE": 2,
        "DB_MAX_POOL_SIZE": 5,
        "REDIS_HOST": "localhost",
        "REDIS_PORT": 6379,
        "REDIS_DB": 1,
        "REDIS_NAMESPACE": "marketplace_test",
        "NEARBY_SERVICES_TTL": 60,
        "ORDER_TTL": 120,
        "RABBITMQ_HOST": "localhost",
        "RABBITMQ_EXCHANGE": "marketplace.test",
        "DEFAULT_SERVICE_CHARGE": "700",
        "DEFAULT_VAT_RATE": "0.075",
        "DEFAULT_PETROLEUM_TAX_RATE": "0.05",
        "SURCHARGE_RADIUS_FACTOR": "1.5",
        "PETROLEUM_TAXED_TYPES": ["petrol", "diesel"],
        "ELECTRICITY_TYPE": "electricity",
        "PAYMENT_GATEWAY_BASE_URL": "http://gateway.test",
        "RECONCILE_INTENT_STALE_AFTER": 90,
        "RECONCILE_MAX_ATTEMPTS": 5,
    }


@pytest.fixture
def temp_config_file(tmp_path: Path, mock_config: dict[str, Any]) -> Path:
    """Создаёт временный файл конфигурации."""
    config_file = tmp_path / "config.json"
    config_file.write_text(json.dumps(mock_config, ensure_ascii=False, indent=2))
    return config_file


# =============================================================================
# ФИКСТУРЫ ИНФРАСТРУКТУРЫ (МОКИ)
# =============================================================================

@pytest.fixture
def mock_conn() -> AsyncMock:
    """Мок соединения внутри транзакции."""
    conn = AsyncMock()
    conn.fetchrow = AsyncMock(return_value=None)
    conn.fetch = AsyncMock(return_value=[])
    conn.fetchval = AsyncMock(return_value=None)
    conn.execute = AsyncMock(return_value="UPDATE 1")
    return conn


@pytest.fixture
def mock_db(mock_conn: AsyncMock) -> MagicMock:
    """
    Мок менеджера базы данных.
    transaction() отдаёт mock_conn; исключение внутри блока пробрасывается.
    """
    db = MagicMock()
    db.fetchrow = AsyncMock(return_value=None)
    db.fetch = AsyncMock(return_value=[])
    db.execute = AsyncMock(return_value="INSERT 0 1")
    db.fetchval = AsyncMock(return_value=None)

    @asynccontextmanager
    async def transaction():
        yield mock_conn

    db.transaction = MagicMock(side_effect=transaction)
    return db


@pytest.fixture
def mock_redis() -> AsyncMock:
    """Мок клиента Redis."""
    redis = AsyncMock()
    redis.get = AsyncMock(return_value=None)
    redis.set = AsyncMock(return_value=True)
    redis.delete = AsyncMock(return_value=1)
    redis.get_json = AsyncMock(return_value=None)
    redis.set_json = AsyncMock(return_value=True)
    redis.get_model = AsyncMock(return_value=None)
    redis.set_model = AsyncMock(return_value=True)
    return redis


@pytest.fixture
def mock_event_bus() -> AsyncMock:
    """Мок шины событий."""
    event_bus = AsyncMock()
    event_bus.publish = AsyncMock(return_value=None)
    event_bus.subscribe = AsyncMock(return_value=None)
    event_bus.is_connected = True
    return event_bus


# =============================================================================
# ФИКСТУРЫ МОДЕЛЕЙ
# =============================================================================

@pytest.fixture
def sample_service() -> ServiceListing:
    """Активная услуга доставки бензина с радиусом 10 км."""
    return ServiceListing(
        id=SERVICE_ID,
        provider_id=PROVIDER_ID,
        service_type_id="type-petrol",
        service_type_name="Petrol",
        name="Fuel Express",
        price_per_unit=Decimal("1000"),
        delivery_cost=Decimal("100"),
        service_radius=Decimal("10"),
        latitude=6.5244,
        longitude=3.3792,
        status="ACTIVE",
        is_active=True,
        avg_rating=Decimal("4.50"),
        rating_count=12,
    )


@pytest.fixture
def sample_address() -> CustomerAddress:
    """Адрес доставки клиента с координатами."""
    return CustomerAddress(
        id=ADDRESS_ID,
        user_id=CUSTOMER_ID,
        address="12 Marina Road",
        latitude=6.4550,
        longitude=3.3841,
    )


@pytest.fixture
def sample_user() -> UserAccount:
    """Клиент с ролью."""
    return UserAccount(
        id=CUSTOMER_ID,
        role_id="role-customer",
        role_name="CUSTOMER",
        email="customer@example.com",
        full_name="Ada Customer",
    )


@pytest.fixture
def sample_nearby() -> list[NearbyService]:
    """Альтернативные услуги поблизости."""
    return [
        NearbyService(
            id="alt-1",
            name="Fuel Near",
            service_type_id="type-petrol",
            price_per_unit=Decimal("990"),
            avg_rating=Decimal("4.9"),
            distance_km=3.2,
        ),
    ]


@pytest.fixture
def make_order() -> Callable[..., ServiceOrder]:
    """Фабрика заказов с разумными значениями по умолчанию."""
    def factory(**overrides: Any) -> ServiceOrder:
        data: dict[str, Any] = {
            "id": ORDER_ID,
            "user_id": CUSTOMER_ID,
            "delivery_address_id": ADDRESS_ID,
            "service_id": SERVICE_ID,
            "provider_id": PROVIDER_ID,
            "order_quantity": Decimal("2"),
            "customer_reference": "ORD-test-1700000000000",
            "service_fee": Decimal("700"),
            "delivery_fee": Decimal("100"),
            "vat": Decimal("210.00"),
            "amount_due": Decimal("3010.00"),
            "payment_method": PaymentMethod.WALLET,
            "payment_status": PaymentStatus.PENDING,
            "status": ServiceOrderStatus.PENDING,
            "confirmation_code": "4821",
            "delivery_distance": Decimal("7.700"),
            "created_at": datetime(2026, 10, 1, 12, 0, tzinfo=timezone.utc),
        }
        data.update(overrides)
        return ServiceOrder(**data)

    return factory


@pytest.fixture
def sample_order_row() -> dict[str, Any]:
    """Строка service_orders с JOIN services (provider_id)."""
    now = datetime(2026, 10, 1, 12, 0, tzinfo=timezone.utc)
    return {
        "id": ORDER_ID,
        "user_id": CUSTOMER_ID,
        "delivery_address_id": ADDRESS_ID,
        "service_id": SERVICE_ID,
        "provider_id": PROVIDER_ID,
        "order_quantity": Decimal("2"),
        "customer_reference": "ORD-test-1700000000000",
        "service_fee": Decimal("700"),
        "delivery_fee": Decimal("100"),
        "vat": Decimal("210.00"),
        "amount_due": Decimal("3010.00"),
        "payment_method": "WALLET",
        "payment_status": "PENDING",
        "status": "PENDING",
        "confirmation_code": "4821",
        "voucher_id": None,
        "delivery_distance": Decimal("7.700"),
        "electricity_token": None,
        "pickup_latitude": None,
        "pickup_longitude": None,
        "created_at": now,
        "updated_at": now,
    }


@pytest.fixture
def sample_service_row() -> dict[str, Any]:
    """Строка services с JOIN service_types."""
    return {
        "id": SERVICE_ID,
        "provider_id": PROVIDER_ID,
        "service_type_id": "type-petrol",
        "service_type_name": "Petrol",
        "name": "Fuel Express",
        "price_per_unit": Decimal("1000"),
        "delivery_cost": Decimal("100"),
        "service_radius": Decimal("10"),
        "latitude": 6.5244,
        "longitude": 3.3792,
        "status": "ACTIVE",
        "is_active": True,
        "avg_rating": Decimal("4.50"),
        "rating_count": 12,
    }
