# src/infra/redis_client.py
"""
Клиент Redis для кэширования.
Используется как простое key/value хранилище с TTL; кэш носит
рекомендательный характер и не инвалидируется синхронно при записи в БД.
"""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any, Type, TypeVar

import redis.asyncio as redis
from pydantic import BaseModel

from src.common.constants import TypeMsg
from src.common.logger import log_error, log_info

if TYPE_CHECKING:
    from src.config.loader import RedisSettings

T = TypeVar("T", bound=BaseModel)


class RedisClient:
    """
    Асинхронный клиент Redis с пространством имён ключей.
    Поддерживает строки, JSON и Pydantic модели.
    """

    def __init__(self, config: "RedisSettings") -> None:
        """
        Args:
            config: Секция redis из настроек
        """
        self._config = config
        self._namespace = config.REDIS_NAMESPACE
        self._client: redis.Redis | None = None

    @property
    def client(self) -> redis.Redis:
        """Возвращает клиент Redis."""
        if self._client is None:
            raise RuntimeError("Redis клиент не инициализирован. Вызовите connect() сначала.")
        return self._client

    def _make_key(self, key: str) -> str:
        """Добавляет namespace к ключу."""
        return f"{self._namespace}:{key}"

    async def connect(self) -> None:
        """Подключается к Redis и проверяет соединение."""
        if self._client is not None:
            return

        await log_info("Подключение к Redis...", type_msg=TypeMsg.INFO)
        self._client = redis.from_url(
            self._config.url,
            max_connections=self._config.REDIS_MAX_CONNECTIONS,
            decode_responses=True,
        )
        await self._client.ping()
        await log_info("Подключение к Redis установлено", type_msg=TypeMsg.INFO)

    async def disconnect(self) -> None:
        """Закрывает соединение с Redis."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None
            await log_info("Соединение с Redis закрыто", type_msg=TypeMsg.INFO)

    # =========================================================================
    # БАЗОВЫЕ ОПЕРАЦИИ
    # =========================================================================

    async def get(self, key: str) -> str | None:
        """Получает значение по ключу."""
        return await self.client.get(self._make_key(key))

    async def set(self, key: str, value: str, ttl: int | None = None) -> bool:
        """
        Устанавливает значение.

        Args:
            key: Ключ
            value: Значение
            ttl: Время жизни в секундах
        """
        return bool(await self.client.set(self._make_key(key), value, ex=ttl))

    async def delete(self, key: str) -> int:
        """Удаляет ключ."""
        return await self.client.delete(self._make_key(key))

    # =========================================================================
    # JSON И PYDANTIC
    # =========================================================================

    async def get_json(self, key: str) -> Any:
        """Получает и парсит JSON. Битые данные считаются промахом."""
        data = await self.get(key)
        if data is None:
            return None
        try:
            return json.loads(data)
        except json.JSONDecodeError:
            return None

    async def set_json(self, key: str, data: Any, ttl: int | None = None) -> bool:
        """Сериализует и сохраняет JSON."""
        return await self.set(key, json.dumps(data, ensure_ascii=False, default=str), ttl=ttl)

    async def get_model(self, key: str, model_class: Type[T]) -> T | None:
        """
        Получает и десериализует Pydantic модель.

        Returns:
            Экземпляр модели или None
        """
        data = await self.get(key)
        if data is None:
            return None
        try:
            return model_class.model_validate_json(data)
        except Exception as e:
            await log_error(f"Ошибка десериализации модели {model_class.__name__}: {e}")
            return None

    async def set_model(self, key: str, model: BaseModel, ttl: int | None = None) -> bool:
        """Сериализует и сохраняет Pydantic модель."""
        return await self.set(key, model.model_dump_json(), ttl=ttl)

    async def health_check(self) -> bool:
        """Проверяет здоровье подключения к Redis."""
        try:
            return bool(await self.client.ping())
        except Exception as e:
            await log_error(f"Health check Redis failed: {e}")
            return False
