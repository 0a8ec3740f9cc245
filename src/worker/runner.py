# src/worker/runner.py
"""
Запускалка воркеров.
"""

from __future__ import annotations

import asyncio
from typing import List

from src.common.constants import TypeMsg
from src.common.logger import log_error, log_info, setup_logging
from src.config import settings
from src.config.loader import Settings
from src.core.geo.service import GeoService
from src.core.payments.gateway import HttpPaymentGateway
from src.infra.database import DatabaseManager
from src.infra.event_bus import EventBus
from src.infra.redis_client import RedisClient
from src.services.orders_service.dependencies import build_components
from src.worker.base import BaseWorker
from src.worker.reconciliation import ReconciliationWorker


async def run_workers(config: Settings = settings) -> None:
    """
    Подключает инфраструктуру и запускает ReconciliationWorker.
    Работает до отмены задачи (SIGINT/SIGTERM в main.py).
    """
    await log_info("Запуск воркеров...", type_msg=TypeMsg.INFO)

    db = DatabaseManager(config.database)
    redis = RedisClient(config.redis)
    event_bus = EventBus(config.rabbitmq)
    geo = GeoService(
        config.google_maps.GOOGLE_MAPS_API_KEY,
        timeout=config.google_maps.DISTANCE_MATRIX_TIMEOUT,
    )
    gateway = HttpPaymentGateway(
        config.payment_gateway.PAYMENT_GATEWAY_BASE_URL,
        secret_key=config.payment_gateway.PAYMENT_GATEWAY_SECRET_KEY,
        timeout=config.payment_gateway.PAYMENT_GATEWAY_TIMEOUT,
    )

    workers: List[BaseWorker] = []
    components = None
    try:
        await db.connect()
        await redis.connect()
        await event_bus.connect()

        components = build_components(config, db, redis, event_bus, geo, gateway)
        workers.append(
            ReconciliationWorker(
                components.reconciler,
                interval_seconds=config.reconciliation.RECONCILE_SWEEP_INTERVAL,
            )
        )

        for worker in workers:
            await worker.start()

        await log_info(f"Запущено {len(workers)} воркеров", type_msg=TypeMsg.INFO)

        while True:
            await asyncio.sleep(1)

    except asyncio.CancelledError:
        await log_info("Получен сигнал остановки", type_msg=TypeMsg.INFO)
    except Exception as e:
        await log_error(f"Критическая ошибка воркеров: {e}", exc_info=True)
        raise
    finally:
        for worker in workers:
            await worker.stop()

        if components is not None:
            await components.notifications.drain()
        await gateway.close()
        await geo.close()
        await event_bus.disconnect()
        await redis.disconnect()
        await db.disconnect()

        await log_info("Воркеры остановлены", type_msg=TypeMsg.INFO)


def main() -> None:
    """Точка входа."""
    setup_logging()
    try:
        asyncio.run(run_workers())
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
