# src/services/orders_service/dependencies.py
"""
Зависимости сервиса заказов.

Инфраструктурные клиенты создаются в lifespan из настроек и передаются
в компоненты явно. Маршруты получают компоненты через get_* функции
(FastAPI Depends), которые в тестах подменяются через dependency_overrides.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from fastapi import Header

from src.common.constants import TypeMsg
from src.common.errors import ApiError
from src.common.logger import log_info
from src.config.loader import Settings
from src.core.availability.service import AvailabilityChecker
from src.core.catalog.repository import ServiceCatalogRepository
from src.core.geo.service import GeoService
from src.core.listings.repository import ProviderDocumentsRepository
from src.core.listings.service import ListingTaxService
from src.core.notifications.service import NotificationDispatcher
from src.core.orders.repository import ServiceOrderRepository
from src.core.orders.service import ServiceOrderManager
from src.core.payments.dispatcher import PaymentDispatcher
from src.core.payments.gateway import HttpPaymentGateway
from src.core.payments.reconciler import PaymentReconciler
from src.core.payments.repository import PaymentIntentRepository, WalletRepository
from src.core.payments.wallet import WalletService
from src.core.pricing.repository import AdminSettingsRepository
from src.core.pricing.service import PricingCalculator
from src.core.revenue.service import RevenueAggregator
from src.core.users.repository import UserRepository
from src.core.vouchers.repository import VoucherRepository
from src.core.vouchers.service import VoucherValidator
from src.infra.database import DatabaseManager
from src.infra.event_bus import EventBus
from src.infra.redis_client import RedisClient


@dataclass
class OrderComponents:
    """Собранные компоненты ядра заказов."""
    availability: AvailabilityChecker
    pricing: PricingCalculator
    orders: ServiceOrderManager
    revenue: RevenueAggregator
    listings: ListingTaxService
    notifications: NotificationDispatcher
    reconciler: PaymentReconciler


def build_components(
    config: Settings,
    db: DatabaseManager,
    redis: RedisClient,
    event_bus: EventBus,
    geo: GeoService,
    gateway: HttpPaymentGateway,
) -> OrderComponents:
    """
    Собирает граф компонентов поверх подключённых клиентов.
    Используется и HTTP сервисом, и воркером сверки.
    """
    users = UserRepository(db)
    catalog = ServiceCatalogRepository(db, redis, nearby_ttl=config.redis_ttl.NEARBY_SERVICES_TTL)
    orders_repo = ServiceOrderRepository(db)
    intents = PaymentIntentRepository(db)
    admin_settings = AdminSettingsRepository(
        db,
        default_service_charge=config.pricing.DEFAULT_SERVICE_CHARGE,
        default_vat_rate=config.pricing.DEFAULT_VAT_RATE,
        default_petroleum_tax_rate=config.pricing.DEFAULT_PETROLEUM_TAX_RATE,
    )

    availability = AvailabilityChecker(
        catalog,
        users,
        geo,
        radius_factor=config.pricing.SURCHARGE_RADIUS_FACTOR,
        suggestions_limit=config.pricing.NEARBY_SUGGESTIONS_LIMIT,
    )
    vouchers = VoucherValidator(VoucherRepository(db), users)
    pricing = PricingCalculator(
        catalog,
        users,
        availability,
        admin_settings,
        vouchers,
        petroleum_taxed_types=config.pricing.PETROLEUM_TAXED_TYPES,
    )

    wallet = WalletService(db, WalletRepository(db), intents)
    payments = PaymentDispatcher(gateway, wallet, electricity_type=config.pricing.ELECTRICITY_TYPE)
    revenue = RevenueAggregator(db, orders_repo, catalog)
    notifications = NotificationDispatcher(event_bus)

    orders = ServiceOrderManager(
        db=db,
        redis=redis,
        orders=orders_repo,
        users=users,
        catalog=catalog,
        pricing=pricing,
        vouchers=vouchers,
        intents=intents,
        payments=payments,
        wallet=wallet,
        revenue=revenue,
        notifications=notifications,
        order_ttl=config.redis_ttl.ORDER_TTL,
    )

    reconciler = PaymentReconciler(
        intents,
        gateway,
        wallet,
        apply_result=orders.apply_payment_result,
        stale_after_seconds=config.reconciliation.RECONCILE_INTENT_STALE_AFTER,
        batch_size=config.reconciliation.RECONCILE_BATCH_SIZE,
        max_attempts=config.reconciliation.RECONCILE_MAX_ATTEMPTS,
    )

    listings = ListingTaxService(
        ProviderDocumentsRepository(db),
        admin_settings,
        physical_fuel_types=config.pricing.PHYSICAL_FUEL_TYPES,
    )

    return OrderComponents(
        availability=availability,
        pricing=pricing,
        orders=orders,
        revenue=revenue,
        listings=listings,
        notifications=notifications,
        reconciler=reconciler,
    )


# =============================================================================
# ЖИЗНЕННЫЙ ЦИКЛ
# =============================================================================

_db: Optional[DatabaseManager] = None
_redis: Optional[RedisClient] = None
_event_bus: Optional[EventBus] = None
_geo: Optional[GeoService] = None
_gateway: Optional[HttpPaymentGateway] = None
_components: Optional[OrderComponents] = None


async def init_dependencies(config: Settings) -> None:
    """Подключает инфраструктуру и собирает компоненты."""
    global _db, _redis, _event_bus, _geo, _gateway, _components

    _db = DatabaseManager(config.database)
    await _db.connect()

    _redis = RedisClient(config.redis)
    await _redis.connect()

    _event_bus = EventBus(config.rabbitmq)
    await _event_bus.connect()

    _geo = GeoService(
        config.google_maps.GOOGLE_MAPS_API_KEY,
        timeout=config.google_maps.DISTANCE_MATRIX_TIMEOUT,
    )
    _gateway = HttpPaymentGateway(
        config.payment_gateway.PAYMENT_GATEWAY_BASE_URL,
        secret_key=config.payment_gateway.PAYMENT_GATEWAY_SECRET_KEY,
        timeout=config.payment_gateway.PAYMENT_GATEWAY_TIMEOUT,
    )

    _components = build_components(config, _db, _redis, _event_bus, _geo, _gateway)
    await log_info("Зависимости сервиса заказов инициализированы", type_msg=TypeMsg.INFO)


async def cleanup_dependencies() -> None:
    """Дожидается уведомлений и закрывает клиентов в обратном порядке."""
    global _db, _redis, _event_bus, _geo, _gateway, _components

    if _components is not None:
        await _components.notifications.drain()
        _components = None
    if _gateway is not None:
        await _gateway.close()
        _gateway = None
    if _geo is not None:
        await _geo.close()
        _geo = None
    if _event_bus is not None:
        await _event_bus.disconnect()
        _event_bus = None
    if _redis is not None:
        await _redis.disconnect()
        _redis = None
    if _db is not None:
        await _db.disconnect()
        _db = None

    await log_info("Зависимости сервиса заказов закрыты", type_msg=TypeMsg.INFO)


# =============================================================================
# ПРОВАЙДЕРЫ ДЛЯ FASTAPI
# =============================================================================

def get_db() -> DatabaseManager:
    if _db is None:
        raise RuntimeError("DatabaseManager не инициализирован")
    return _db


def get_redis() -> RedisClient:
    if _redis is None:
        raise RuntimeError("RedisClient не инициализирован")
    return _redis


def get_event_bus() -> EventBus:
    if _event_bus is None:
        raise RuntimeError("EventBus не инициализирован")
    return _event_bus


def _get_components() -> OrderComponents:
    if _components is None:
        raise RuntimeError("Компоненты сервиса заказов не инициализированы")
    return _components


def get_order_manager() -> ServiceOrderManager:
    return _get_components().orders


def get_pricing_calculator() -> PricingCalculator:
    return _get_components().pricing


def get_availability_checker() -> AvailabilityChecker:
    return _get_components().availability


def get_revenue_aggregator() -> RevenueAggregator:
    return _get_components().revenue


def get_listing_tax_service() -> ListingTaxService:
    return _get_components().listings


async def get_current_user_id(
    x_user_id: Optional[str] = Header(None, alias="X-User-Id"),
) -> str:
    """
    ID вызывающего пользователя из заголовка X-User-Id.
    Заголовок выставляет шлюз аутентификации перед сервисом.

    Raises:
        ApiError: 401, если заголовок отсутствует
    """
    if not x_user_id or not x_user_id.strip():
        raise ApiError.unauthorized("Missing X-User-Id header")
    return x_user_id.strip()


async def get_optional_user_id(
    x_user_id: Optional[str] = Header(None, alias="X-User-Id"),
) -> Optional[str]:
    """ID пользователя, если заголовок передан (расчёт стоимости с ваучером)."""
    if x_user_id and x_user_id.strip():
        return x_user_id.strip()
    return None
