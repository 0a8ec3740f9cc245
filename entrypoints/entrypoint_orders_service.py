#!/usr/bin/env python3
# entrypoint_orders_service.py
"""
Точка входа для Orders Service.
Порт: ORDERS_SERVICE_PORT (по умолчанию 8095)
"""

import asyncio
import sys
from pathlib import Path

# Добавляем корневую директорию в путь
sys.path.insert(0, str(Path(__file__).parent.parent.resolve()))

import uvicorn

from src.config import settings
from src.common.logger import log_info, setup_logging
from src.common.constants import TypeMsg


async def main() -> None:
    """Запуск Orders Service."""
    setup_logging()
    await log_info(
        f"Запуск Orders Service на порту {settings.deployment.ORDERS_SERVICE_PORT}",
        type_msg=TypeMsg.INFO,
    )

    config = uvicorn.Config(
        "src.services.orders_service.app:app",
        host=settings.deployment.ORDERS_SERVICE_HOST,
        port=settings.deployment.ORDERS_SERVICE_PORT,
        reload=settings.system.DEBUG,
        log_level="debug" if settings.system.DEBUG else "info",
    )

    server = uvicorn.Server(config)
    await server.serve()


if __name__ == "__main__":
    asyncio.run(main())
