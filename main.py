#!/usr/bin/env python3
# main.py
"""
Главная точка входа маркетплейса услуг.
Запускает HTTP сервис заказов, воркер сверки платежей или оба компонента.
"""

from __future__ import annotations

import asyncio
import signal
import sys

from src.config import settings
from src.common.logger import setup_logging, log_info, log_error
from src.common.constants import TypeMsg


VALID_MODES = ("api", "worker", "all")

_shutdown_event: asyncio.Event | None = None
_running_tasks: list[asyncio.Task] = []


def setup_signal_handlers() -> None:
    """Настраивает обработчики SIGINT и SIGTERM для graceful shutdown."""
    global _shutdown_event
    _shutdown_event = asyncio.Event()

    def signal_handler(sig: int) -> None:
        if _shutdown_event and not _shutdown_event.is_set():
            print(f"\nПолучен сигнал остановки (sig={sig}), завершаем работу...")
            _shutdown_event.set()
            for task in _running_tasks:
                if not task.done():
                    task.cancel()

    try:
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, lambda s=sig: signal_handler(s))
    except NotImplementedError:
        # Windows не поддерживает add_signal_handler
        signal.signal(signal.SIGINT, lambda s, f: signal_handler(s))
        signal.signal(signal.SIGTERM, lambda s, f: signal_handler(s))


async def run_orders_service() -> None:
    """Запускает HTTP сервис заказов (uvicorn)."""
    import uvicorn

    await log_info(
        f"Запуск Orders Service на порту {settings.deployment.ORDERS_SERVICE_PORT}...",
        type_msg=TypeMsg.INFO,
    )

    config = uvicorn.Config(
        "src.services.orders_service.app:app",
        host=settings.deployment.ORDERS_SERVICE_HOST,
        port=settings.deployment.ORDERS_SERVICE_PORT,
        log_level="debug" if settings.system.DEBUG else "info",
    )

    server = uvicorn.Server(config)
    try:
        await server.serve()
    except asyncio.CancelledError:
        await log_info("Orders Service: graceful shutdown", type_msg=TypeMsg.DEBUG)
        await server.shutdown()


async def run_reconciliation_worker() -> None:
    """Запускает воркер сверки платёжных намерений."""
    from src.worker.runner import run_workers

    await run_workers(settings)


async def main(mode: str | None = None) -> None:
    """
    Главная функция запуска.

    Args:
        mode: api, worker или all. Если None, берётся COMPONENT_MODE из настроек.
    """
    global _running_tasks

    setup_logging()
    setup_signal_handlers()

    if mode is None:
        mode = settings.system.COMPONENT_MODE if settings.system.COMPONENT_MODE in VALID_MODES else "all"

    await log_info(
        f"Service Marketplace v{settings.system.VERSION}, режим '{mode}'",
        type_msg=TypeMsg.INFO,
    )

    try:
        if mode == "api":
            _running_tasks = [asyncio.create_task(run_orders_service())]
        elif mode == "worker":
            _running_tasks = [asyncio.create_task(run_reconciliation_worker())]
        elif mode == "all":
            _running_tasks = [
                asyncio.create_task(run_orders_service()),
                asyncio.create_task(run_reconciliation_worker()),
            ]
        else:
            await log_error(f"Неизвестный режим: {mode}")
            return

        await asyncio.gather(*_running_tasks, return_exceptions=True)

    except asyncio.CancelledError:
        await log_info("Задача отменена, выполняется graceful shutdown", type_msg=TypeMsg.INFO)
    except Exception as e:
        await log_error(f"Критическая ошибка: {e}", exc_info=True)
        raise
    finally:
        if _running_tasks:
            for task in _running_tasks:
                if not task.done():
                    task.cancel()
            await asyncio.gather(*_running_tasks, return_exceptions=True)
            _running_tasks.clear()

        await log_info("Приложение остановлено", type_msg=TypeMsg.INFO)


def print_usage() -> None:
    """Выводит справку по использованию."""
    print("""
Service Marketplace: заказы коммунальных услуг с доставкой

Использование:
    python main.py [mode]

Режимы:
    api       HTTP сервис заказов (ORDERS_SERVICE_PORT)
    worker    Воркер сверки платёжных намерений
    all       Оба компонента в одном процессе
""")


if __name__ == "__main__":
    mode = None

    if len(sys.argv) > 1:
        arg = sys.argv[1].lower()
        if arg in ("--help", "-h"):
            print_usage()
            sys.exit(0)
        elif arg in VALID_MODES:
            mode = arg
        else:
            print(f"Ошибка: неизвестный режим '{arg}'")
            print_usage()
            sys.exit(1)

    try:
        asyncio.run(main(mode))
    except KeyboardInterrupt:
        pass
