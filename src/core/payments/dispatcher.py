# src/core/payments/dispatcher.py
"""
Маршрутизация оплаты заказа: кошелёк, шлюз, оплата счёта за электроэнергию
или оплата при получении.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Optional

from src.common.constants import PaymentMethod, TypeMsg
from src.common.errors import ApiError, ErrorCodes
from src.common.logger import log_error, log_info
from src.core.payments.gateway import PaymentGateway
from src.core.payments.models import PaymentRequest, PaymentResult
from src.core.payments.wallet import WalletService


class PaymentDispatcher:
    """Выбирает способ проведения оплаты по методу и типу услуги."""

    def __init__(
        self,
        gateway: PaymentGateway,
        wallet: WalletService,
        electricity_type: str = "electricity",
    ) -> None:
        """
        Args:
            gateway: Клиент платёжного шлюза
            wallet: Сервис кошелька
            electricity_type: Имя типа услуги, оплачиваемой как счёт
        """
        self._gateway = gateway
        self._wallet = wallet
        self._electricity_type = electricity_type.lower()

    def is_bill_payment(self, service_type: str) -> bool:
        return service_type.lower() == self._electricity_type

    async def dispatch(self, request: PaymentRequest) -> Optional[PaymentResult]:
        """
        Проводит оплату заказа.

        Returns:
            PaymentResult или None для оплаты при получении

        Raises:
            ApiError: PAYMENT_METHOD_NOT_AVAILABLE, WALLET_NOT_FOUND,
                INSUFFICIENT_BALANCE, PAYMENT_PROCESSING_FAILED
        """
        if request.payment_method == PaymentMethod.PAY_ON_DELIVERY:
            return None

        try:
            if request.payment_method == PaymentMethod.WALLET:
                return await self._pay_with_wallet(request)

            is_enabled = await self._gateway.check_payment_method_status(request.payment_method.value)
            if not is_enabled:
                raise ApiError.bad_request(
                    f"Payment method {request.payment_method.value} is currently disabled",
                    ErrorCodes.PAYMENT_METHOD_NOT_AVAILABLE,
                )

            if self.is_bill_payment(request.service_type):
                return await self._gateway.process_bill_payment(
                    user_id=request.user_id,
                    amount=request.amount,
                    method=request.payment_method.value,
                    meter_number=request.customer_reference,
                    destination_bank_code=request.destination_bank_code or "",
                    destination_account_number=request.destination_account_number or "",
                    reference=request.intent_id,
                    card_details=request.card_details,
                    client_ip=request.client_ip,
                    voucher_code=request.voucher_code,
                )

            return await self._gateway.process_payment(
                user_id=request.user_id,
                amount=request.amount,
                method=request.payment_method.value,
                reference=request.intent_id,
                service_type=request.service_type,
                service_id=request.service_id,
                card_details=request.card_details,
                client_ip=request.client_ip,
                voucher_code=request.voucher_code,
            )
        except ApiError:
            raise
        except Exception as e:
            await log_error(
                f"Ошибка оплаты заказа {request.service_order_id} ({request.payment_method.value}): {e}",
                exc_info=True,
            )
            raise ApiError.internal("Failed to process payment", ErrorCodes.PAYMENT_PROCESSING_FAILED)

    async def refund(self, transaction_ref: str, user_id: str, amount: Decimal) -> None:
        """
        Возврат через шлюз для оплат не из кошелька.

        Raises:
            ApiError: PAYMENT_PROCESSING_FAILED
        """
        try:
            await self._gateway.process_refund(transaction_ref, user_id, amount)
        except Exception as e:
            await log_error(f"Ошибка возврата по {transaction_ref}: {e}", exc_info=True)
            raise ApiError.internal("Failed to process refund", ErrorCodes.PAYMENT_PROCESSING_FAILED)

    async def _pay_with_wallet(self, request: PaymentRequest) -> PaymentResult:
        transaction = await self._wallet.pay_with_wallet(
            user_id=request.user_id,
            amount=request.amount,
            service_order_id=request.service_order_id,
            reference=request.intent_id,
            service_type=request.service_type,
            breakdown=request.breakdown,
            voucher_code=request.voucher_code,
        )
        await log_info(
            f"Заказ {request.service_order_id} оплачен из кошелька: {transaction.status}",
            type_msg=TypeMsg.DEBUG,
        )
        return PaymentResult(
            transaction_id=transaction.id,
            status=transaction.status,
            payment_details={
                "paymentType": request.service_type or "wallet",
                "totalAmount": str(request.amount),
                "voucherCode": request.voucher_code,
                **request.breakdown,
                "transactions": [
                    {
                        "type": transaction.transaction_type,
                        "amount": str(transaction.amount),
                        "status": transaction.status,
                        "reference": transaction.transaction_ref,
                    }
                ],
            },
        )
