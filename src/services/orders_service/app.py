# src/services/orders_service/app.py
"""
FastAPI приложение сервиса заказов услуг.
"""

from __future__ import annotations

import time
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from src.common.constants import TypeMsg
from src.common.errors import ApiError, ErrorCodes
from src.common.logger import log_error, log_info, log_warning, setup_logging
from src.config import settings
from src.config.loader import get_project_root
from src.services.orders_service.dependencies import (
    cleanup_dependencies,
    get_db,
    get_event_bus,
    get_redis,
    init_dependencies,
)
from src.services.orders_service.routes import listings_router, router
from src.shared.models.common import HealthStatus

_started_at = time.monotonic()


# =============================================================================
# LIFESPAN
# =============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Жизненный цикл приложения."""
    setup_logging()
    await log_info("Orders Service запускается...", type_msg=TypeMsg.INFO)

    await init_dependencies(settings)
    await get_db().apply_schema(get_project_root() / "migrations" / "init.sql")

    yield

    await cleanup_dependencies()
    await log_info("Orders Service остановлен", type_msg=TypeMsg.INFO)


# =============================================================================
# ПРИЛОЖЕНИЕ
# =============================================================================

app = FastAPI(
    title="Service Orders",
    description="Заказы услуг: расчёт стоимости, оплата, жизненный цикл доставки",
    version=settings.system.VERSION,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(router, prefix="/api/v1")
app.include_router(listings_router, prefix="/api/v1")


# =============================================================================
# ОБРАБОТЧИКИ ОШИБОК
# =============================================================================

@app.exception_handler(ApiError)
async def api_error_handler(request: Request, exc: ApiError) -> JSONResponse:
    message = f"{request.method} {request.url.path} -> {exc.status_code} {exc.error_code}: {exc.message}"
    if exc.is_operational:
        await log_warning(message)
    else:
        await log_error(message)
    return JSONResponse(status_code=exc.status_code, content=jsonable_encoder(exc.to_response()))


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = [
        {"field": ".".join(str(p) for p in err.get("loc", ())), "message": err.get("msg", "")}
        for err in exc.errors()
    ]
    return JSONResponse(
        status_code=422,
        content={
            "success": False,
            "message": "Validation failed",
            "errorCode": ErrorCodes.VALIDATION_ERROR,
            "details": {"errors": errors},
        },
    )


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    await log_error(f"Необработанная ошибка {request.method} {request.url.path}: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={
            "success": False,
            "message": "Internal server error",
            "errorCode": ErrorCodes.INTERNAL_ERROR,
        },
    )


# =============================================================================
# HEALTH CHECK
# =============================================================================

@app.get("/health", response_model=HealthStatus, tags=["Health"])
async def health_check() -> HealthStatus:
    """Проверка здоровья сервиса."""
    deps = {}

    try:
        deps["postgres"] = "healthy" if await get_db().health_check() else "unhealthy"
    except RuntimeError:
        deps["postgres"] = "unhealthy"

    try:
        deps["redis"] = "healthy" if await get_redis().health_check() else "unhealthy"
    except RuntimeError:
        deps["redis"] = "unhealthy"

    try:
        deps["rabbitmq"] = "healthy" if await get_event_bus().health_check() else "unhealthy"
    except RuntimeError:
        deps["rabbitmq"] = "unhealthy"

    overall = "healthy" if all(v == "healthy" for v in deps.values()) else "degraded"

    return HealthStatus(
        service="orders_service",
        status=overall,
        version=settings.system.VERSION,
        uptime_seconds=round(time.monotonic() - _started_at, 1),
        dependencies=deps,
    )
