# src/core/payments/gateway.py
"""
Клиент внешнего платёжного шлюза.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any, Optional, Protocol

import httpx

from src.common.constants import TypeMsg
from src.common.logger import log_info
from src.core.payments.models import CardDetails, PaymentResult


class PaymentGateway(Protocol):
    """Операции платёжного шлюза, которые использует ядро."""

    async def check_payment_method_status(self, method: str) -> bool: ...

    async def process_payment(
        self,
        user_id: str,
        amount: Decimal,
        method: str,
        reference: str,
        service_type: str,
        service_id: str,
        card_details: Optional[CardDetails] = None,
        client_ip: Optional[str] = None,
        voucher_code: Optional[str] = None,
    ) -> PaymentResult: ...

    async def process_bill_payment(
        self,
        user_id: str,
        amount: Decimal,
        method: str,
        meter_number: str,
        destination_bank_code: str,
        destination_account_number: str,
        reference: str,
        card_details: Optional[CardDetails] = None,
        client_ip: Optional[str] = None,
        voucher_code: Optional[str] = None,
    ) -> PaymentResult: ...

    async def process_refund(self, transaction_ref: str, user_id: str, amount: Decimal) -> None: ...

    async def verify_transaction(self, reference: str) -> PaymentResult: ...


class HttpPaymentGateway:
    """HTTP клиент платёжного шлюза (JSON API, Bearer авторизация)."""

    def __init__(
        self,
        base_url: str,
        secret_key: str = "",
        timeout: float = 30.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """
        Args:
            base_url: Базовый URL шлюза
            secret_key: Секретный ключ (заголовок Authorization)
            timeout: Таймаут запроса в секундах
            client: Готовый HTTP клиент (для тестов)
        """
        headers = {"Authorization": f"Bearer {secret_key}"} if secret_key else {}
        self._client = client or httpx.AsyncClient(
            base_url=base_url,
            timeout=timeout,
            headers=headers,
        )

    async def close(self) -> None:
        await self._client.aclose()

    async def _get(self, path: str, params: dict[str, Any] | None = None) -> Any:
        response = await self._client.get(path, params=params)
        response.raise_for_status()
        return response.json()

    async def _post(self, path: str, json: dict[str, Any] | None = None) -> Any:
        response = await self._client.post(path, json=json)
        response.raise_for_status()
        return response.json()

    async def check_payment_method_status(self, method: str) -> bool:
        """Включён ли способ оплаты администратором."""
        data = await self._get(f"/payment-methods/{method}/status")
        return bool(data.get("isEnabled", False))

    async def process_payment(
        self,
        user_id: str,
        amount: Decimal,
        method: str,
        reference: str,
        service_type: str,
        service_id: str,
        card_details: Optional[CardDetails] = None,
        client_ip: Optional[str] = None,
        voucher_code: Optional[str] = None,
    ) -> PaymentResult:
        """Проводит обычную оплату услуги."""
        payload = {
            "userId": user_id,
            "amount": str(amount),
            "paymentMethod": method,
            "transactionRef": reference,
            "serviceType": service_type,
            "itemId": service_id,
            "clientIp": client_ip,
            "voucherCode": voucher_code,
        }
        if card_details is not None:
            payload["cardDetails"] = card_details.model_dump(exclude_none=True)

        data = await self._post("/payments", json=payload)
        result = PaymentResult.from_gateway(data)
        await log_info(
            f"Оплата {reference} через {method}: {result.status}",
            type_msg=TypeMsg.INFO,
        )
        return result

    async def process_bill_payment(
        self,
        user_id: str,
        amount: Decimal,
        method: str,
        meter_number: str,
        destination_bank_code: str,
        destination_account_number: str,
        reference: str,
        card_details: Optional[CardDetails] = None,
        client_ip: Optional[str] = None,
        voucher_code: Optional[str] = None,
    ) -> PaymentResult:
        """Проводит оплату счёта за электроэнергию, в ответе может быть токен."""
        payload = {
            "userId": user_id,
            "amount": str(amount),
            "paymentMethod": method,
            "meterNumber": meter_number,
            "destinationBankCode": destination_bank_code,
            "destinationAccountNumber": destination_account_number,
            "transactionRef": reference,
            "clientIp": client_ip,
            "voucherCode": voucher_code,
        }
        if card_details is not None:
            payload["cardDetails"] = card_details.model_dump(exclude_none=True)

        data = await self._post("/payments/bill", json=payload)
        result = PaymentResult.from_gateway(data)
        await log_info(
            f"Оплата счёта {reference} (счётчик {meter_number}): {result.status}",
            type_msg=TypeMsg.INFO,
        )
        return result

    async def process_refund(self, transaction_ref: str, user_id: str, amount: Decimal) -> None:
        """Возврат средств по ссылке транзакции."""
        await self._post(
            "/refunds",
            json={"transactionRef": transaction_ref, "userId": user_id, "amount": str(amount)},
        )
        await log_info(f"Возврат по {transaction_ref} на сумму {amount} отправлен", type_msg=TypeMsg.INFO)

    async def verify_transaction(self, reference: str) -> PaymentResult:
        """Текущий статус транзакции по её ссылке."""
        data = await self._get(f"/payments/{reference}")
        return PaymentResult.from_gateway(data)
