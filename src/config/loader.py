# src/config/loader.py
"""
Загрузчик конфигурации проекта.
Единственный источник истины: config/config.json.
Секретные данные переопределяются из переменных окружения.
"""

from __future__ import annotations

import json
import os
from decimal import Decimal
from functools import lru_cache
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


# =============================================================================
# ОПРЕДЕЛЕНИЕ ПУТЕЙ
# =============================================================================

def get_project_root() -> Path:
    """Возвращает корневую директорию проекта."""
    return Path(__file__).parent.parent.parent


def get_config_path() -> Path:
    """Возвращает путь к файлу конфигурации."""
    return get_project_root() / "config" / "config.json"


def load_config_json(path: Path | None = None) -> dict[str, Any]:
    """Загружает config.json и возвращает словарь без ключей-комментариев."""
    config_path = path or get_config_path()
    if not config_path.exists():
        raise FileNotFoundError(f"Файл конфигурации не найден: {config_path}")

    with open(config_path, "r", encoding="utf-8") as f:
        data = json.load(f)

    return {k: v for k, v in data.items() if not k.startswith("_comment_")}


# =============================================================================
# PYDANTIC МОДЕЛИ КОНФИГУРАЦИИ
# =============================================================================

class SystemSettings(BaseModel):
    """Системные настройки."""
    PROJECT_NAME: str = "service_marketplace"
    VERSION: str = "1.0.0"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"
    ENVIRONMENT: str = "development"
    COMPONENT_MODE: str = "all"


class DeploymentSettings(BaseModel):
    """Настройки развертывания компонентов."""
    ORDERS_SERVICE_HOST: str = "0.0.0.0"
    ORDERS_SERVICE_PORT: int = 8095


class LoggingSettings(BaseModel):
    """Настройки логирования."""
    LOG_LEVEL: str = "INFO"
    LOG_TO_FILE: bool = False
    LOG_FILE_PATH: str = "logs/app.log"
    LOG_FORMAT: str = "colored"
    LOG_MAX_BYTES: int = 10485760


class GoogleMapsSettings(BaseModel):
    """Настройки Google Distance Matrix API."""
    GOOGLE_MAPS_API_KEY: str = ""
    DISTANCE_MATRIX_TIMEOUT: float = 10.0


class DatabaseSettings(BaseModel):
    """Настройки PostgreSQL."""
    DB_HOST: str = "localhost"
    DB_PORT: int = 5432
    DB_NAME: str = "marketplace"
    DB_USER: str = "postgres"
    DB_PASSWORD: str = ""
    DB_MIN_POOL_SIZE: int = 5
    DB_MAX_POOL_SIZE: int = 20
    DB_COMMAND_TIMEOUT: int = 60
    DB_RETRY_ATTEMPTS: int = 3
    DB_RETRY_DELAY: float = 1.0

    @property
    def dsn(self) -> str:
        """Возвращает DSN для подключения к PostgreSQL."""
        return (
            f"postgresql://{self.DB_USER}:{self.DB_PASSWORD}"
            f"@{self.DB_HOST}:{self.DB_PORT}/{self.DB_NAME}"
        )


class RedisSettings(BaseModel):
    """Настройки Redis."""
    REDIS_HOST: str = "localhost"
    REDIS_PORT: int = 6379
    REDIS_DB: int = 0
    REDIS_PASSWORD: str = ""
    REDIS_NAMESPACE: str = "marketplace"
    REDIS_MAX_CONNECTIONS: int = 50

    @property
    def url(self) -> str:
        """Возвращает URL для подключения к Redis."""
        auth = f":{self.REDIS_PASSWORD}@" if self.REDIS_PASSWORD else ""
        return f"redis://{auth}{self.REDIS_HOST}:{self.REDIS_PORT}/{self.REDIS_DB}"


class RedisTTLSettings(BaseModel):
    """Настройки TTL кэша."""
    NEARBY_SERVICES_TTL: int = 60
    ORDER_TTL: int = 300


class RabbitMQSettings(BaseModel):
    """Настройки RabbitMQ."""
    RABBITMQ_HOST: str = "localhost"
    RABBITMQ_PORT: int = 5672
    RABBITMQ_USER: str = "guest"
    RABBITMQ_PASSWORD: str = "guest"
    RABBITMQ_VHOST: str = "/"
    RABBITMQ_EXCHANGE: str = "marketplace.events"
    RABBITMQ_PREFETCH_COUNT: int = 10

    @property
    def url(self) -> str:
        """Возвращает URL для подключения к RabbitMQ."""
        return (
            f"amqp://{self.RABBITMQ_USER}:{self.RABBITMQ_PASSWORD}"
            f"@{self.RABBITMQ_HOST}:{self.RABBITMQ_PORT}{self.RABBITMQ_VHOST}"
        )


class PricingSettings(BaseModel):
    """
    Параметры ценообразования.
    DEFAULT_* используются, только если в admin_settings нет значения.
    """
    DEFAULT_SERVICE_CHARGE: Decimal = Decimal("700")
    DEFAULT_VAT_RATE: Decimal = Decimal("0.075")
    DEFAULT_PETROLEUM_TAX_RATE: Decimal = Decimal("0.05")
    SURCHARGE_RADIUS_FACTOR: Decimal = Decimal("1.5")
    NEARBY_SUGGESTIONS_LIMIT: int = 5
    PETROLEUM_TAXED_TYPES: list[str] = Field(default_factory=lambda: ["petrol", "diesel"])
    PHYSICAL_FUEL_TYPES: list[str] = Field(
        default_factory=lambda: ["petrol", "diesel", "gas", "kerosene"]
    )
    ELECTRICITY_TYPE: str = "electricity"


class PaymentGatewaySettings(BaseModel):
    """Настройки платёжного шлюза."""
    PAYMENT_GATEWAY_BASE_URL: str = "http://localhost:8087"
    PAYMENT_GATEWAY_SECRET_KEY: str = ""
    PAYMENT_GATEWAY_TIMEOUT: float = 30.0


class ReconciliationSettings(BaseModel):
    """Настройки сверки платёжных намерений."""
    RECONCILE_SWEEP_INTERVAL: int = 60
    RECONCILE_INTENT_STALE_AFTER: int = 120
    RECONCILE_BATCH_SIZE: int = 50
    RECONCILE_MAX_ATTEMPTS: int = 10


# Переменные окружения, которые перекрывают значения из config.json
_ENV_OVERRIDES: tuple[str, ...] = (
    "COMPONENT_MODE",
    "LOG_LEVEL",
    "ORDERS_SERVICE_HOST",
    "GOOGLE_MAPS_API_KEY",
    "DB_HOST",
    "DB_PORT",
    "DB_NAME",
    "DB_USER",
    "DB_PASSWORD",
    "REDIS_HOST",
    "REDIS_PORT",
    "REDIS_PASSWORD",
    "RABBITMQ_HOST",
    "RABBITMQ_PORT",
    "RABBITMQ_USER",
    "RABBITMQ_PASSWORD",
    "PAYMENT_GATEWAY_BASE_URL",
    "PAYMENT_GATEWAY_SECRET_KEY",
)


def _section(model: type[BaseModel], data: dict[str, Any]) -> BaseModel:
    """Собирает секцию настроек из плоского словаря по именам полей модели."""
    values = {name: data[name] for name in model.model_fields if name in data}
    return model(**values)


# =============================================================================
# ГЛАВНЫЙ КЛАСС НАСТРОЕК
# =============================================================================

class Settings(BaseSettings):
    """
    Главный класс настроек приложения.
    Агрегирует все секции конфигурации.
    """
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    system: SystemSettings = Field(default_factory=SystemSettings)
    deployment: DeploymentSettings = Field(default_factory=DeploymentSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    google_maps: GoogleMapsSettings = Field(default_factory=GoogleMapsSettings)
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    redis: RedisSettings = Field(default_factory=RedisSettings)
    redis_ttl: RedisTTLSettings = Field(default_factory=RedisTTLSettings)
    rabbitmq: RabbitMQSettings = Field(default_factory=RabbitMQSettings)
    pricing: PricingSettings = Field(default_factory=PricingSettings)
    payment_gateway: PaymentGatewaySettings = Field(default_factory=PaymentGatewaySettings)
    reconciliation: ReconciliationSettings = Field(default_factory=ReconciliationSettings)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Settings":
        """
        Создаёт Settings из плоского словаря (формат config.json).
        Переменные окружения из _ENV_OVERRIDES имеют приоритет.
        """
        merged = dict(data)
        for key in _ENV_OVERRIDES:
            env_value = os.getenv(key)
            if env_value:
                merged[key] = env_value

        return cls(
            system=_section(SystemSettings, merged),
            deployment=_section(DeploymentSettings, merged),
            logging=_section(LoggingSettings, merged),
            google_maps=_section(GoogleMapsSettings, merged),
            database=_section(DatabaseSettings, merged),
            redis=_section(RedisSettings, merged),
            redis_ttl=_section(RedisTTLSettings, merged),
            rabbitmq=_section(RabbitMQSettings, merged),
            pricing=_section(PricingSettings, merged),
            payment_gateway=_section(PaymentGatewaySettings, merged),
            reconciliation=_section(ReconciliationSettings, merged),
        )

    @classmethod
    def from_config_json(cls) -> "Settings":
        """Создаёт объект Settings из config.json."""
        return cls.from_dict(load_config_json())


@lru_cache()
def get_settings() -> Settings:
    """
    Возвращает настройки приложения.
    Использует кэширование: config.json читается один раз на процесс.
    """
    from dotenv import load_dotenv

    env_path = get_project_root() / ".env"
    if env_path.exists():
        load_dotenv(env_path)

    return Settings.from_config_json()


settings = get_settings()
