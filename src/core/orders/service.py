# src/core/orders/service.py
"""
Менеджер жизненного цикла заказов услуг.

Создание заказа идёт в два шага: заказ, журнал, погашение ваучера и
платёжное намерение фиксируются одной транзакцией, затем после commit
проводится оплата, и её результат применяется идемпотентным переходом
apply_payment_result. Тот же переход использует фоновая сверка платежей.
"""

from __future__ import annotations

import secrets
import time
from dataclasses import asdict
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional
from uuid import uuid4

from asyncpg import Connection

from src.common.constants import (
    PaymentIntentStatus,
    PaymentMethod,
    PaymentStatus,
    ServiceOrderStatus,
    TransactionStatus,
    TypeMsg,
)
from src.common.errors import ApiError, ErrorCodes
from src.common.logger import log_error, log_info, log_warning
from src.core.catalog.repository import ServiceCatalogRepository
from src.core.notifications.service import NotificationDispatcher
from src.core.orders.models import (
    CreateOrderResult,
    DashboardStats,
    OrderDetails,
    ServiceOrder,
)
from src.core.orders.repository import ServiceOrderRepository
from src.core.orders.state_machine import CANCELLABLE_STATUSES, can_transition, ensure_transition
from src.core.payments.dispatcher import PaymentDispatcher
from src.core.payments.models import PaymentRequest, PaymentResult
from src.core.payments.repository import PaymentIntentRepository
from src.core.payments.wallet import WalletService
from src.core.pricing.service import PricingCalculator
from src.core.revenue.service import RevenueAggregator
from src.core.users.repository import UserRepository
from src.core.vouchers.service import VoucherValidator
from src.infra.database import DatabaseManager
from src.infra.redis_client import RedisClient
from src.shared.models.commands import CreateServiceOrderCommand


def generate_customer_reference() -> str:
    """Внешняя ссылка заказа: ORD-<uuid>-<миллисекунды>."""
    return f"ORD-{uuid4()}-{int(time.time() * 1000)}"


def generate_confirmation_code() -> str:
    """Четырёхзначный код подтверждения доставки (1000..9999)."""
    return str(1000 + secrets.randbelow(9000))


class ServiceOrderManager:
    """
    Сервис заказов услуг.
    Управляет созданием, сменой статусов, отменой и запросами заказов.
    """

    def __init__(
        self,
        db: DatabaseManager,
        redis: RedisClient,
        orders: ServiceOrderRepository,
        users: UserRepository,
        catalog: ServiceCatalogRepository,
        pricing: PricingCalculator,
        vouchers: VoucherValidator,
        intents: PaymentIntentRepository,
        payments: PaymentDispatcher,
        wallet: WalletService,
        revenue: RevenueAggregator,
        notifications: NotificationDispatcher,
        order_ttl: int = 300,
    ) -> None:
        self._db = db
        self._redis = redis
        self._orders = orders
        self._users = users
        self._catalog = catalog
        self._pricing = pricing
        self._vouchers = vouchers
        self._intents = intents
        self._payments = payments
        self._wallet = wallet
        self._revenue = revenue
        self._notifications = notifications
        self._order_ttl = order_ttl

    def _order_cache_key(self, order_id: str) -> str:
        return f"service_order:{order_id}"

    async def _invalidate(self, order_id: str) -> None:
        await self._redis.delete(self._order_cache_key(order_id))

    # =========================================================================
    # СОЗДАНИЕ ЗАКАЗА
    # =========================================================================

    async def create_order(self, command: CreateServiceOrderCommand) -> CreateOrderResult:
        """
        Создаёт заказ и проводит оплату.

        Args:
            command: Проверенная команда создания заказа

        Returns:
            Заказ, результат оплаты и данные о расстоянии

        Raises:
            ApiError: INVALID_INPUT, USER_NOT_FOUND, ADDRESS_NOT_FOUND,
                SERVICE_NOT_FOUND, SERVICE_INVALID_STATUS, SERVICE_UNAVAILABLE,
                PAYMENT_METHOD_NOT_AVAILABLE, VOUCHER_USAGE_LIMIT_REACHED,
                ORDER_CREATION_FAILED и ошибки оплаты
        """
        try:
            return await self._create_order(command)
        except ApiError:
            raise
        except Exception as e:
            await log_error(f"Ошибка создания заказа услуги {command.service_id}: {e}", exc_info=True)
            raise ApiError.internal("Failed to create service order", ErrorCodes.ORDER_CREATION_FAILED)

    async def _create_order(self, command: CreateServiceOrderCommand) -> CreateOrderResult:
        if command.unit_quantity <= 0:
            raise ApiError.bad_request(
                "Unit quantity must be greater than 0", ErrorCodes.INVALID_INPUT
            )
        if command.payment_method == PaymentMethod.CARD and command.card_details is None:
            raise ApiError.bad_request(
                "Card details are required for CARD payment method", ErrorCodes.INVALID_INPUT
            )

        user = await self._users.get_by_id(command.user_id)
        if user is None:
            raise ApiError.not_found("User not found", ErrorCodes.USER_NOT_FOUND)

        address = await self._users.get_address(command.address_id)
        if address is None:
            raise ApiError.not_found("Address not found", ErrorCodes.ADDRESS_NOT_FOUND)

        service = await self._catalog.get_service(command.service_id)
        if service is None:
            raise ApiError.not_found("Service not found", ErrorCodes.SERVICE_NOT_FOUND)
        if not service.is_orderable:
            raise ApiError.bad_request("Service is not active", ErrorCodes.SERVICE_INVALID_STATUS)
        if not service.has_location:
            raise ApiError.not_found(
                "Service location or radius not found", ErrorCodes.SERVICE_LOCATION_NOT_FOUND
            )
        if not address.has_location:
            raise ApiError.not_found(
                "Delivery address location not found", ErrorCodes.ADDRESS_LOCATION_NOT_FOUND
            )

        needs_bank_details = (
            self._payments.is_bill_payment(service.type_key)
            and command.payment_method not in (PaymentMethod.WALLET, PaymentMethod.PAY_ON_DELIVERY)
        )
        if needs_bank_details and not (
            command.destination_bank_code and command.destination_account_number
        ):
            raise ApiError.bad_request(
                "destinationBankCode and destinationAccountNumber are required for electricity payments",
                ErrorCodes.INVALID_INPUT,
            )

        quote = await self._pricing.quote(
            service,
            address,
            command.unit_quantity,
            voucher_code=command.voucher_code,
            user_id=command.user_id,
        )
        if not quote.is_available:
            raise ApiError.bad_request(
                f"Service is not available in your location. Distance: {quote.distance_km}km, "
                f"Service Radius: {quote.service_radius_km}km",
                ErrorCodes.SERVICE_UNAVAILABLE,
                {
                    "distanceKm": str(quote.distance_km),
                    "serviceRadiusKm": str(quote.service_radius_km),
                    "suggestedServices": [
                        s.model_dump(mode="json") for s in quote.suggested_services
                    ],
                },
            )

        voucher_id = quote.voucher_id if quote.discount_amount > 0 else None
        order = ServiceOrder(
            id=str(uuid4()),
            user_id=command.user_id,
            delivery_address_id=command.address_id,
            service_id=service.id,
            provider_id=service.provider_id,
            order_quantity=command.unit_quantity,
            customer_reference=generate_customer_reference(),
            service_fee=quote.service_fee,
            delivery_fee=quote.delivery_fee + quote.additional_fee,
            vat=quote.vat_amount,
            amount_due=quote.total_amount,
            payment_method=command.payment_method,
            payment_status=PaymentStatus.PENDING,
            status=ServiceOrderStatus.PENDING,
            confirmation_code=generate_confirmation_code(),
            voucher_id=voucher_id,
            delivery_distance=quote.distance_km,
        )
        intent_id = None if order.is_pay_on_delivery else str(uuid4())

        async with self._db.transaction() as conn:
            await self._orders.create(conn, order)
            await self._orders.add_history(
                conn, order.id, ServiceOrderStatus.PENDING, command.user_id, "Order created"
            )
            if voucher_id:
                await self._vouchers.redeem(conn, voucher_id, command.user_id, order.id)
            if intent_id:
                await self._intents.create(
                    conn, intent_id, order.id, order.payment_method, order.amount_due
                )

        await log_info(
            f"Заказ {order.id} создан: услуга {service.id}, сумма {order.amount_due}, "
            f"оплата {order.payment_method.value}",
            type_msg=TypeMsg.INFO,
        )
        self._notifications.order_created(order)

        payment_result: Optional[PaymentResult] = None
        if intent_id:
            request = PaymentRequest(
                intent_id=intent_id,
                service_order_id=order.id,
                customer_reference=order.customer_reference,
                user_id=command.user_id,
                service_id=service.id,
                service_type=service.type_key,
                payment_method=command.payment_method,
                amount=order.amount_due,
                breakdown={
                    "serviceSubtotal": str(quote.service_subtotal),
                    "serviceFee": str(quote.service_fee),
                    "vatRate": str(quote.vat_rate),
                    "vat": str(quote.vat_amount),
                    "petroleumTax": str(quote.petroleum_tax),
                    "voucherDiscount": str(quote.discount_amount),
                },
                card_details=command.card_details,
                client_ip=command.client_ip,
                voucher_code=quote.voucher_code,
                destination_bank_code=command.destination_bank_code,
                destination_account_number=command.destination_account_number,
            )
            try:
                payment_result = await self._payments.dispatch(request)
            except ApiError as e:
                # 5xx: исход неизвестен, намерение остаётся PENDING для сверки
                if e.status_code < 500:
                    await self.apply_payment_result(
                        intent_id,
                        PaymentResult(
                            transaction_id=None,
                            status=TransactionStatus.FAILED.value,
                            error=e.message,
                        ),
                    )
                raise

            if payment_result is not None:
                order = await self.apply_payment_result(intent_id, payment_result) or order

        return CreateOrderResult(
            service_order=order,
            payment_result=asdict(payment_result) if payment_result else None,
            suggested_services=quote.suggested_services,
            distance_km=quote.distance_km,
            service_radius_km=quote.service_radius_km,
        )

    # =========================================================================
    # ПРИМЕНЕНИЕ РЕЗУЛЬТАТА ОПЛАТЫ
    # =========================================================================

    async def apply_payment_result(
        self,
        intent_id: str,
        result: PaymentResult,
    ) -> Optional[ServiceOrder]:
        """
        Применяет результат оплаты к намерению и заказу.

        Идемпотентно: действует только пока намерение в статусе PENDING,
        повторные вызовы возвращают текущий заказ без изменений.

        Args:
            intent_id: ID платёжного намерения
            result: Результат оплаты (синхронный или из сверки)

        Returns:
            Заказ после применения или None, если намерение не найдено
        """
        async with self._db.transaction() as conn:
            intent = await self._intents.lock(conn, intent_id)
            if intent is None:
                await log_warning(f"Платёжное намерение {intent_id} не найдено")
                return None

            order = await self._orders.lock(conn, intent.service_order_id)
            if order is None:
                await log_warning(f"Заказ намерения {intent_id} не найден")
                return None

            if not intent.is_pending:
                await log_info(
                    f"Намерение {intent_id} уже в статусе {intent.status.value}, повтор пропущен",
                    type_msg=TypeMsg.DEBUG,
                )
                return order

            if result.is_failed and intent.payment_method == PaymentMethod.WALLET:
                # Списание могло пройти после того, как сверка сочла его несостоявшимся
                debit = await self._wallet.find_transaction(intent_id, conn=conn)
                if debit is not None and debit.status == TransactionStatus.COMPLETED.value:
                    result = PaymentResult(transaction_id=debit.id, status=debit.status)

            if result.is_completed:
                order = await self._complete_payment(conn, order, intent_id, result)
                outcome = PaymentIntentStatus.COMPLETED
            elif result.is_failed:
                await self._intents.mark(
                    conn, intent_id, PaymentIntentStatus.FAILED, result.transaction_id, result.error
                )
                await self._orders.update_status(
                    conn, order.id, payment_status=PaymentStatus.FAILED
                )
                order = order.model_copy(update={"payment_status": PaymentStatus.FAILED})
                outcome = PaymentIntentStatus.FAILED
            else:
                await self._intents.register_attempt(conn, intent_id, result.error)
                outcome = PaymentIntentStatus.PENDING

        await self._invalidate(order.id)

        if outcome == PaymentIntentStatus.COMPLETED:
            self._notifications.payment_completed(order)
        elif outcome == PaymentIntentStatus.FAILED:
            await log_warning(f"Оплата заказа {order.id} не прошла: {result.error}")
            self._notifications.payment_failed(order, result.error)

        return order

    async def _complete_payment(
        self,
        conn: Connection,
        order: ServiceOrder,
        intent_id: str,
        result: PaymentResult,
    ) -> ServiceOrder:
        await self._intents.mark(
            conn, intent_id, PaymentIntentStatus.COMPLETED, result.transaction_id
        )

        new_status = (
            ServiceOrderStatus.PROCESSING
            if can_transition(order.status, ServiceOrderStatus.PROCESSING)
            else None
        )
        await self._orders.update_status(
            conn,
            order.id,
            new_status,
            payment_status=PaymentStatus.COMPLETED,
            electricity_token=result.electricity_token,
        )

        if new_status is not None:
            notes = f"Payment completed via {order.payment_method.value}"
            if result.electricity_token:
                notes += " with electricity token"
            await self._orders.add_history(conn, order.id, new_status, order.user_id, notes)

        await self._revenue.update_service_revenue(conn, order)

        update = {"payment_status": PaymentStatus.COMPLETED}
        if new_status is not None:
            update["status"] = new_status
        if result.electricity_token:
            update["electricity_token"] = result.electricity_token
        return order.model_copy(update=update)

    # =========================================================================
    # ПЕРЕХОДЫ СО СТОРОНЫ ПОСТАВЩИКА
    # =========================================================================

    async def approve_order(self, order_id: str, provider_id: str) -> ServiceOrder:
        """PENDING -> PROCESSING."""
        order = await self._provider_transition(
            order_id,
            provider_id,
            ServiceOrderStatus.PROCESSING,
            "Order approved by service provider",
        )
        self._notifications.order_approved(order)
        return order

    async def reject_order(self, order_id: str, provider_id: str, reason: str) -> ServiceOrder:
        """
        -> REJECTED. Оплаченный заказ получает компенсирующий возврат
        в той же транзакции.
        """
        order = await self._provider_transition(
            order_id,
            provider_id,
            ServiceOrderStatus.REJECTED,
            f"Order rejected by service provider. Reason: {reason}",
            refund=True,
        )
        self._notifications.order_rejected(order, reason)
        return order

    async def assign_agent(self, order_id: str, provider_id: str) -> ServiceOrder:
        """PROCESSING -> AGENT_ASSIGNED."""
        order = await self._provider_transition(
            order_id,
            provider_id,
            ServiceOrderStatus.AGENT_ASSIGNED,
            "Delivery agent assigned",
        )
        self._notifications.agent_assigned(order)
        return order

    async def mark_out_for_delivery(self, order_id: str, provider_id: str) -> ServiceOrder:
        """-> OUT_FOR_DELIVERY."""
        order = await self._provider_transition(
            order_id,
            provider_id,
            ServiceOrderStatus.OUT_FOR_DELIVERY,
            "Order is out for delivery",
        )
        self._notifications.out_for_delivery(order)
        return order

    async def complete_delivery(
        self,
        order_id: str,
        provider_id: str,
        confirmation_code: str,
        dispute_reason: str | None = None,
    ) -> ServiceOrder:
        """
        OUT_FOR_DELIVERY -> DELIVERED по коду подтверждения клиента.

        Со спором создаётся запись Dispute, автоматическое завершение оплаты
        при получении и учёт выручки пропускаются.

        Raises:
            ApiError: ORDER_NOT_FOUND, UNAUTHORIZED (403),
                INVALID_CONFIRMATION_CODE, INVALID_ORDER_STATUS
        """
        try:
            async with self._db.transaction() as conn:
                order = await self._lock_order(conn, order_id)
                self._ensure_provider(order, provider_id, "complete")

                if order.confirmation_code != confirmation_code:
                    raise ApiError.bad_request(
                        "Invalid confirmation code", ErrorCodes.INVALID_CONFIRMATION_CODE
                    )

                ensure_transition(order.id, order.status, ServiceOrderStatus.DELIVERED)

                settle_on_delivery = order.is_pay_on_delivery and not dispute_reason
                payment_status = PaymentStatus.COMPLETED if settle_on_delivery else None

                await self._orders.update_status(
                    conn, order.id, ServiceOrderStatus.DELIVERED, payment_status=payment_status
                )
                await self._orders.add_history(
                    conn,
                    order.id,
                    ServiceOrderStatus.DELIVERED,
                    provider_id,
                    "Completed with dispute" if dispute_reason else "Delivered successfully",
                )

                if dispute_reason:
                    await self._orders.create_dispute(
                        conn, order.id, order.user_id, provider_id, dispute_reason
                    )
                elif settle_on_delivery:
                    await self._revenue.update_service_revenue(conn, order)

            update = {"status": ServiceOrderStatus.DELIVERED}
            if payment_status is not None:
                update["payment_status"] = payment_status
            order = order.model_copy(update=update)
        except ApiError:
            raise
        except Exception as e:
            await log_error(f"Ошибка завершения доставки заказа {order_id}: {e}", exc_info=True)
            raise ApiError.internal("Failed to complete delivery")

        await self._invalidate(order_id)
        await log_info(
            f"Заказ {order_id} доставлен{' со спором' if dispute_reason else ''}",
            type_msg=TypeMsg.INFO,
        )
        self._notifications.order_delivered(order, dispute_reason)
        return order

    async def _provider_transition(
        self,
        order_id: str,
        provider_id: str,
        target: ServiceOrderStatus,
        notes: str,
        refund: bool = False,
    ) -> ServiceOrder:
        """Проверяет владельца и переход, затем меняет статус с записью в журнал."""
        try:
            async with self._db.transaction() as conn:
                order = await self._lock_order(conn, order_id)
                self._ensure_provider(order, provider_id, "update")
                ensure_transition(order.id, order.status, target)

                refunded = refund and await self._refund(conn, order)
                payment_status = PaymentStatus.REFUNDED if refunded else None

                await self._orders.update_status(conn, order.id, target, payment_status=payment_status)
                await self._orders.add_history(conn, order.id, target, provider_id, notes)
        except ApiError:
            raise
        except Exception as e:
            await log_error(f"Ошибка смены статуса заказа {order_id} на {target.value}: {e}", exc_info=True)
            raise ApiError.internal("Failed to update order status")

        await self._invalidate(order_id)
        await log_info(f"Заказ {order_id}: {order.status.value} -> {target.value}", type_msg=TypeMsg.INFO)

        update = {"status": target}
        if payment_status is not None:
            update["payment_status"] = payment_status
            self._notifications.payment_refunded(order)
        return order.model_copy(update=update)

    # =========================================================================
    # ОТМЕНА КЛИЕНТОМ
    # =========================================================================

    async def cancel_order(self, order_id: str, user_id: str, reason: str) -> ServiceOrder:
        """
        Отменяет заказ по запросу клиента (только из PENDING и PROCESSING).
        Оплаченный заказ получает компенсирующий возврат.

        Raises:
            ApiError: ORDER_NOT_FOUND, UNAUTHORIZED (403), INVALID_ORDER_STATUS,
                WALLET_NOT_FOUND, ORDER_CANCELLATION_FAILED
        """
        try:
            async with self._db.transaction() as conn:
                order = await self._lock_order(conn, order_id)

                if order.user_id != user_id:
                    raise ApiError.forbidden(
                        "You are not authorized to cancel this order", ErrorCodes.UNAUTHORIZED
                    )

                if order.status not in CANCELLABLE_STATUSES:
                    raise ApiError.bad_request(
                        "Order cannot be cancelled in its current state",
                        ErrorCodes.INVALID_ORDER_STATUS,
                        {"currentStatus": order.status.value},
                    )

                refunded = await self._refund(conn, order)
                payment_status = PaymentStatus.REFUNDED if refunded else None

                await self._orders.update_status(
                    conn, order.id, ServiceOrderStatus.CANCELLED, payment_status=payment_status
                )
                await self._orders.add_history(
                    conn,
                    order.id,
                    ServiceOrderStatus.CANCELLED,
                    user_id,
                    f"Order cancelled by customer. Reason: {reason}",
                )
        except ApiError:
            raise
        except Exception as e:
            await log_error(f"Ошибка отмены заказа {order_id}: {e}", exc_info=True)
            raise ApiError.internal("Failed to cancel order", ErrorCodes.ORDER_CANCELLATION_FAILED)

        await self._invalidate(order_id)
        await log_info(f"Заказ {order_id} отменён клиентом", type_msg=TypeMsg.INFO)

        update = {"status": ServiceOrderStatus.CANCELLED}
        if payment_status is not None:
            update["payment_status"] = payment_status
        order = order.model_copy(update=update)

        self._notifications.order_cancelled(order, reason)
        if refunded:
            self._notifications.payment_refunded(order)
        return order

    async def _refund(self, conn: Connection, order: ServiceOrder) -> bool:
        """
        Компенсирующий возврат оплаченного заказа.

        Returns:
            True, если возврат выполнен
        """
        if not order.is_paid or order.is_pay_on_delivery:
            return False

        if order.payment_method == PaymentMethod.WALLET:
            await self._wallet.refund_to_wallet(
                conn,
                user_id=order.user_id,
                amount=order.amount_due,
                service_order_id=order.id,
                reference=f"REFUND-{order.id}",
            )
        else:
            intent = await self._intents.find_completed_for_order(order.id, conn=conn)
            reference = intent.id if intent else order.customer_reference
            await self._payments.refund(reference, order.user_id, order.amount_due)

        await log_info(
            f"Возврат {order.amount_due} по заказу {order.id} ({order.payment_method.value})",
            type_msg=TypeMsg.INFO,
        )
        return True

    # =========================================================================
    # ЗАПРОСЫ
    # =========================================================================

    async def get_order(self, order_id: str, user_id: str) -> ServiceOrder:
        """
        Получает заказ по ID (через кэш).

        Args:
            order_id: ID заказа
            user_id: Вызывающий пользователь (клиент или поставщик заказа)

        Raises:
            ApiError: ORDER_NOT_FOUND, FORBIDDEN
        """
        cache_key = self._order_cache_key(order_id)
        order = await self._redis.get_model(cache_key, ServiceOrder)
        if order is None:
            order = await self._orders.get_by_id(order_id)
            if order is None:
                raise ApiError.not_found("Service order not found", ErrorCodes.ORDER_NOT_FOUND)
            await self._redis.set_model(cache_key, order, ttl=self._order_ttl)

        self._ensure_party(order, user_id)
        return order

    async def get_order_details(self, order_id: str, user_id: str) -> OrderDetails:
        """Заказ вместе с услугой, адресом, клиентом и журналом статусов."""
        try:
            order = await self._orders.get_by_id(order_id)
            if order is None:
                raise ApiError.not_found("Service order not found", ErrorCodes.ORDER_NOT_FOUND)
            self._ensure_party(order, user_id)

            service = await self._catalog.get_service(order.service_id)
            address = await self._users.get_address(order.delivery_address_id)
            customer = await self._users.get_by_id(order.user_id)
            history = await self._orders.get_history(order_id)

            return OrderDetails(
                order=order,
                service=service.model_dump(mode="json") if service else None,
                delivery_address=address.model_dump(mode="json") if address else None,
                customer=customer.model_dump(mode="json") if customer else None,
                status_history=history,
                estimated_distance_km=order.delivery_distance,
            )
        except ApiError:
            raise
        except Exception as e:
            await log_error(f"Ошибка получения деталей заказа {order_id}: {e}", exc_info=True)
            raise ApiError.internal("Failed to get order details")

    async def get_provider_orders(
        self,
        provider_id: str,
        status: ServiceOrderStatus | None = None,
    ) -> list[ServiceOrder]:
        """Заказы по услугам поставщика."""
        try:
            return await self._orders.list_by_provider(provider_id, status)
        except Exception as e:
            await log_error(f"Ошибка получения заказов поставщика {provider_id}: {e}", exc_info=True)
            raise ApiError.internal("Failed to get provider service orders")

    async def get_provider_pending_orders(self, provider_id: str) -> list[ServiceOrder]:
        return await self.get_provider_orders(provider_id, ServiceOrderStatus.PENDING)

    async def get_provider_completed_orders(self, provider_id: str) -> list[ServiceOrder]:
        return await self.get_provider_orders(provider_id, ServiceOrderStatus.DELIVERED)

    async def get_provider_cancelled_orders(self, provider_id: str) -> list[ServiceOrder]:
        return await self.get_provider_orders(provider_id, ServiceOrderStatus.CANCELLED)

    async def get_user_orders(
        self,
        user_id: str,
        status: ServiceOrderStatus | None = None,
        provider_id: str | None = None,
    ) -> list[ServiceOrder]:
        """
        Заказы клиента. Если указан provider_id, все заказы должны быть
        по услугам этого поставщика.

        Raises:
            ApiError: FORBIDDEN, INTERNAL_ERROR
        """
        try:
            orders = await self._orders.list_by_user(user_id, status)
            if provider_id and any(order.provider_id != provider_id for order in orders):
                await log_warning(f"Поставщик {provider_id} запросил чужие заказы клиента {user_id}")
                raise ApiError.forbidden(
                    "Provider not authorized to access these orders", ErrorCodes.FORBIDDEN
                )
            return orders
        except ApiError:
            raise
        except Exception as e:
            await log_error(f"Ошибка получения заказов клиента {user_id}: {e}", exc_info=True)
            raise ApiError.internal("Failed to get user orders")

    async def validate_confirmation_code(self, order_id: str, user_id: str, code: str) -> bool:
        """
        Совпадает ли код подтверждения доставки.
        Проверять код могут только клиент и поставщик заказа.

        Raises:
            ApiError: ORDER_NOT_FOUND, FORBIDDEN
        """
        order = await self.get_order(order_id, user_id)
        return order.confirmation_code == code

    async def update_pickup_location(
        self,
        order_id: str,
        user_id: str,
        latitude: float,
        longitude: float,
    ) -> ServiceOrder:
        """
        Обновляет точку, откуда клиент заберёт заказ.

        Raises:
            ApiError: INVALID_INPUT, ORDER_NOT_FOUND, UNAUTHORIZED (403)
        """
        if latitude < -90 or latitude > 90:
            raise ApiError.bad_request("Invalid latitude value", ErrorCodes.INVALID_INPUT)
        if longitude < -180 or longitude > 180:
            raise ApiError.bad_request("Invalid longitude value", ErrorCodes.INVALID_INPUT)

        try:
            order = await self._orders.get_by_id(order_id)
            if order is None:
                raise ApiError.not_found("Service order not found", ErrorCodes.ORDER_NOT_FOUND)
            if order.user_id != user_id:
                raise ApiError.forbidden(
                    "You are not authorized to update this order", ErrorCodes.UNAUTHORIZED
                )

            await self._orders.update_pickup_location(order_id, latitude, longitude)
        except ApiError:
            raise
        except Exception as e:
            await log_error(f"Ошибка обновления точки выдачи заказа {order_id}: {e}", exc_info=True)
            raise ApiError.internal("Failed to update pickup location")

        await self._invalidate(order_id)
        return order.model_copy(
            update={"pickup_latitude": latitude, "pickup_longitude": longitude}
        )

    async def get_provider_dashboard_stats(self, provider_id: str) -> DashboardStats:
        """Сводка по заказам и выручке поставщика."""
        try:
            now = datetime.now(timezone.utc)
            day_start = now.replace(hour=0, minute=0, second=0, microsecond=0)
            row = await self._orders.dashboard_stats(provider_id, day_start)
            if row is None:
                return DashboardStats()
            return DashboardStats(
                total_orders=row["total_orders"],
                pending_orders=row["pending_orders"],
                processing_orders=row["processing_orders"],
                completed_orders=row["completed_orders"],
                cancelled_orders=row["cancelled_orders"],
                total_revenue=Decimal(row["total_revenue"]),
                revenue_today=Decimal(row["revenue_today"]),
            )
        except Exception as e:
            await log_error(f"Ошибка сводки поставщика {provider_id}: {e}", exc_info=True)
            raise ApiError.internal("Failed to get dashboard stats")

    # =========================================================================
    # ВСПОМОГАТЕЛЬНЫЕ
    # =========================================================================

    async def _lock_order(self, conn: Connection, order_id: str) -> ServiceOrder:
        order = await self._orders.lock(conn, order_id)
        if order is None:
            raise ApiError.not_found("Service order not found", ErrorCodes.ORDER_NOT_FOUND)
        return order

    @staticmethod
    def _ensure_party(order: ServiceOrder, user_id: str) -> None:
        if user_id not in (order.user_id, order.provider_id):
            raise ApiError.forbidden(
                "You are not authorized to access this order", ErrorCodes.FORBIDDEN
            )

    @staticmethod
    def _ensure_provider(order: ServiceOrder, provider_id: str, action: str) -> None:
        if order.provider_id is None or order.provider_id != provider_id:
            raise ApiError.forbidden(
                f"You are not authorized to {action} this order", ErrorCodes.UNAUTHORIZED
            )
