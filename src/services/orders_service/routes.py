# src/services/orders_service/routes.py
"""
HTTP маршруты сервиса заказов услуг.

Вызывающий пользователь определяется заголовком X-User-Id. Тела запросов
проверяются схемами из src.shared.models.commands до вызова ядра.
Код подтверждения отдаётся только клиенту: при создании заказа и в /mine.
"""

from __future__ import annotations

from dataclasses import asdict
from typing import Any, Optional

from fastapi import APIRouter, Depends, Query, Request, status

from src.common.constants import ServiceOrderStatus
from src.core.availability.service import AvailabilityChecker
from src.core.listings.service import ListingTaxService
from src.core.orders.models import (
    CreateOrderResult,
    DashboardStats,
    OrderDetails,
    ServiceOrder,
    ServiceOrderView,
)
from src.core.orders.service import ServiceOrderManager
from src.core.pricing.models import PriceQuote
from src.core.pricing.service import PricingCalculator
from src.core.revenue.service import RevenueAggregator
from src.services.orders_service.dependencies import (
    get_availability_checker,
    get_current_user_id,
    get_listing_tax_service,
    get_optional_user_id,
    get_order_manager,
    get_pricing_calculator,
    get_revenue_aggregator,
)
from src.shared.models.commands import (
    CalculateTotalRequest,
    CancelOrderRequest,
    CompleteDeliveryRequest,
    CreateServiceOrderRequest,
    PrepareListingPriceRequest,
    RateOrderRequest,
    RejectOrderRequest,
    UpdatePickupLocationRequest,
    ValidateConfirmationCodeRequest,
)
from src.shared.models.common import ApiResponse

router = APIRouter(prefix="/service-orders", tags=["service-orders"])
listings_router = APIRouter(prefix="/listings", tags=["listings"])


# =============================================================================
# РАСЧЁТ И ДОСТУПНОСТЬ
# =============================================================================

@router.post("/calculate-total", response_model=ApiResponse[PriceQuote])
async def calculate_total(
    body: CalculateTotalRequest,
    user_id: Optional[str] = Depends(get_optional_user_id),
    pricing: PricingCalculator = Depends(get_pricing_calculator),
):
    quote = await pricing.calculate(
        body.service_id,
        body.address_id,
        body.unit_quantity,
        voucher_code=body.voucher_code,
        user_id=user_id,
    )
    return ApiResponse(data=quote)


@router.get("/availability", response_model=ApiResponse[dict[str, Any]])
async def check_availability(
    service_id: str = Query(..., alias="serviceId"),
    address_id: str = Query(..., alias="addressId"),
    availability: AvailabilityChecker = Depends(get_availability_checker),
):
    result = await availability.check(service_id, address_id)
    return ApiResponse(data=asdict(result))


# =============================================================================
# СОЗДАНИЕ
# =============================================================================

@router.post(
    "",
    response_model=ApiResponse[CreateOrderResult],
    status_code=status.HTTP_201_CREATED,
)
async def create_service_order(
    body: CreateServiceOrderRequest,
    request: Request,
    user_id: str = Depends(get_current_user_id),
    manager: ServiceOrderManager = Depends(get_order_manager),
):
    client_ip = request.client.host if request.client else None
    result = await manager.create_order(body.to_command(user_id, client_ip))
    return ApiResponse(message="Service order created successfully", data=result)


# =============================================================================
# ЗАПРОСЫ ПОСТАВЩИКА И КЛИЕНТА
# =============================================================================

@router.get("/provider/dashboard", response_model=ApiResponse[DashboardStats])
async def provider_dashboard(
    provider_id: str = Depends(get_current_user_id),
    manager: ServiceOrderManager = Depends(get_order_manager),
):
    return ApiResponse(data=await manager.get_provider_dashboard_stats(provider_id))


@router.get("/provider", response_model=ApiResponse[list[ServiceOrderView]])
async def provider_orders(
    order_status: Optional[ServiceOrderStatus] = Query(None, alias="status"),
    provider_id: str = Depends(get_current_user_id),
    manager: ServiceOrderManager = Depends(get_order_manager),
):
    return ApiResponse(data=await manager.get_provider_orders(provider_id, order_status))


@router.get("/provider/pending", response_model=ApiResponse[list[ServiceOrderView]])
async def provider_pending_orders(
    provider_id: str = Depends(get_current_user_id),
    manager: ServiceOrderManager = Depends(get_order_manager),
):
    return ApiResponse(data=await manager.get_provider_pending_orders(provider_id))


@router.get("/provider/completed", response_model=ApiResponse[list[ServiceOrderView]])
async def provider_completed_orders(
    provider_id: str = Depends(get_current_user_id),
    manager: ServiceOrderManager = Depends(get_order_manager),
):
    return ApiResponse(data=await manager.get_provider_completed_orders(provider_id))


@router.get("/provider/cancelled", response_model=ApiResponse[list[ServiceOrderView]])
async def provider_cancelled_orders(
    provider_id: str = Depends(get_current_user_id),
    manager: ServiceOrderManager = Depends(get_order_manager),
):
    return ApiResponse(data=await manager.get_provider_cancelled_orders(provider_id))


@router.get("/provider/customers/{customer_id}", response_model=ApiResponse[list[ServiceOrderView]])
async def provider_customer_orders(
    customer_id: str,
    order_status: Optional[ServiceOrderStatus] = Query(None, alias="status"),
    provider_id: str = Depends(get_current_user_id),
    manager: ServiceOrderManager = Depends(get_order_manager),
):
    orders = await manager.get_user_orders(customer_id, order_status, provider_id=provider_id)
    return ApiResponse(data=orders)


@router.get("/mine", response_model=ApiResponse[list[ServiceOrder]])
async def my_orders(
    order_status: Optional[ServiceOrderStatus] = Query(None, alias="status"),
    user_id: str = Depends(get_current_user_id),
    manager: ServiceOrderManager = Depends(get_order_manager),
):
    return ApiResponse(data=await manager.get_user_orders(user_id, order_status))


@router.get("/{order_id}", response_model=ApiResponse[ServiceOrderView])
async def get_service_order(
    order_id: str,
    user_id: str = Depends(get_current_user_id),
    manager: ServiceOrderManager = Depends(get_order_manager),
):
    return ApiResponse(data=await manager.get_order(order_id, user_id))


@router.get("/{order_id}/details", response_model=ApiResponse[OrderDetails])
async def get_service_order_details(
    order_id: str,
    user_id: str = Depends(get_current_user_id),
    manager: ServiceOrderManager = Depends(get_order_manager),
):
    return ApiResponse(data=await manager.get_order_details(order_id, user_id))


# =============================================================================
# ПЕРЕХОДЫ СТАТУСОВ
# =============================================================================

@router.post("/{order_id}/approve", response_model=ApiResponse[ServiceOrderView])
async def approve_order(
    order_id: str,
    provider_id: str = Depends(get_current_user_id),
    manager: ServiceOrderManager = Depends(get_order_manager),
):
    order = await manager.approve_order(order_id, provider_id)
    return ApiResponse(message="Order approved", data=order)


@router.post("/{order_id}/reject", response_model=ApiResponse[ServiceOrderView])
async def reject_order(
    order_id: str,
    body: RejectOrderRequest,
    provider_id: str = Depends(get_current_user_id),
    manager: ServiceOrderManager = Depends(get_order_manager),
):
    order = await manager.reject_order(order_id, provider_id, body.reason)
    return ApiResponse(message="Order rejected", data=order)


@router.post("/{order_id}/assign-agent", response_model=ApiResponse[ServiceOrderView])
async def assign_agent(
    order_id: str,
    provider_id: str = Depends(get_current_user_id),
    manager: ServiceOrderManager = Depends(get_order_manager),
):
    order = await manager.assign_agent(order_id, provider_id)
    return ApiResponse(message="Delivery agent assigned", data=order)


@router.post("/{order_id}/out-for-delivery", response_model=ApiResponse[ServiceOrderView])
async def mark_out_for_delivery(
    order_id: str,
    provider_id: str = Depends(get_current_user_id),
    manager: ServiceOrderManager = Depends(get_order_manager),
):
    order = await manager.mark_out_for_delivery(order_id, provider_id)
    return ApiResponse(message="Order is out for delivery", data=order)


@router.post("/{order_id}/complete", response_model=ApiResponse[ServiceOrderView])
async def complete_delivery(
    order_id: str,
    body: CompleteDeliveryRequest,
    provider_id: str = Depends(get_current_user_id),
    manager: ServiceOrderManager = Depends(get_order_manager),
):
    order = await manager.complete_delivery(
        order_id, provider_id, body.confirmation_code, body.dispute_reason
    )
    return ApiResponse(message="Delivery completed", data=order)


@router.post("/{order_id}/cancel", response_model=ApiResponse[ServiceOrderView])
async def cancel_order(
    order_id: str,
    body: CancelOrderRequest,
    user_id: str = Depends(get_current_user_id),
    manager: ServiceOrderManager = Depends(get_order_manager),
):
    order = await manager.cancel_order(order_id, user_id, body.reason)
    return ApiResponse(message="Order cancelled", data=order)


# =============================================================================
# ПРОЧЕЕ
# =============================================================================

@router.post("/{order_id}/rating", response_model=ApiResponse[None])
async def rate_order(
    order_id: str,
    body: RateOrderRequest,
    user_id: str = Depends(get_current_user_id),
    revenue: RevenueAggregator = Depends(get_revenue_aggregator),
):
    result = await revenue.add_service_order_rating(order_id, user_id, body.rating, body.comment)
    return ApiResponse(message=result["message"])


@router.patch("/{order_id}/pickup-location", response_model=ApiResponse[ServiceOrderView])
async def update_pickup_location(
    order_id: str,
    body: UpdatePickupLocationRequest,
    user_id: str = Depends(get_current_user_id),
    manager: ServiceOrderManager = Depends(get_order_manager),
):
    order = await manager.update_pickup_location(order_id, user_id, body.latitude, body.longitude)
    return ApiResponse(message="Pickup location updated", data=order)


@router.post("/{order_id}/validate-code", response_model=ApiResponse[dict[str, bool]])
async def validate_confirmation_code(
    order_id: str,
    body: ValidateConfirmationCodeRequest,
    user_id: str = Depends(get_current_user_id),
    manager: ServiceOrderManager = Depends(get_order_manager),
):
    is_valid = await manager.validate_confirmation_code(order_id, user_id, body.confirmation_code)
    return ApiResponse(data={"isValid": is_valid})


@listings_router.post("/prepare-price", response_model=ApiResponse[dict[str, Any]])
async def prepare_listing_price(
    body: PrepareListingPriceRequest,
    provider_id: str = Depends(get_current_user_id),
    listings: ListingTaxService = Depends(get_listing_tax_service),
):
    prepared = await listings.prepare_price(
        provider_id,
        body.service_type,
        body.price_per_unit,
        license_ids=body.license_ids,
        vehicle_ids=body.vehicle_ids,
    )
    return ApiResponse(data=asdict(prepared))
