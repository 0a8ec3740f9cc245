# tests/shared/test_commands.py
"""
Тесты схем входящих запросов.
"""

from __future__ import annotations

from decimal import Decimal

import pytest
from pydantic import ValidationError

from src.common.constants import PaymentMethod
from src.shared.models.commands import (
    CalculateTotalRequest,
    CompleteDeliveryRequest,
    CreateServiceOrderRequest,
    RateOrderRequest,
    UpdatePickupLocationRequest,
)


CARD = {"cardno": "5399838383838381", "cvv": "470", "expirymonth": "10", "expiryyear": "31"}


class TestCreateServiceOrderRequest:

    def test_camel_case_body(self) -> None:
        request = CreateServiceOrderRequest.model_validate({
            "addressId": "a-1",
            "serviceId": "s-1",
            "unitQuantity": "2.5",
            "paymentMethod": "WALLET",
            "voucherCode": " SAVE10 ",
        })

        assert request.unit_quantity == Decimal("2.5")
        assert request.voucher_code == "SAVE10"

    def test_to_command(self) -> None:
        request = CreateServiceOrderRequest.model_validate({
            "addressId": "a-1",
            "serviceId": "s-1",
            "paymentMethod": "CARD",
            "cardDetails": CARD,
            "voucherCode": "",
        })

        command = request.to_command("u-1", "10.0.0.1")

        assert command.user_id == "u-1"
        assert command.unit_quantity == Decimal("1")
        assert command.payment_method == PaymentMethod.CARD
        assert command.card_details.cardno == CARD["cardno"]
        assert command.voucher_code is None
        assert command.client_ip == "10.0.0.1"

    def test_card_requires_details(self) -> None:
        with pytest.raises(ValidationError):
            CreateServiceOrderRequest.model_validate({
                "addressId": "a-1", "serviceId": "s-1", "paymentMethod": "CARD",
            })

    @pytest.mark.parametrize("quantity", ["0", "-1"])
    def test_quantity_positive(self, quantity: str) -> None:
        with pytest.raises(ValidationError):
            CreateServiceOrderRequest.model_validate({
                "addressId": "a-1", "serviceId": "s-1",
                "unitQuantity": quantity, "paymentMethod": "WALLET",
            })

    def test_unknown_fields_rejected(self) -> None:
        with pytest.raises(ValidationError):
            CreateServiceOrderRequest.model_validate({
                "addressId": "a-1", "serviceId": "s-1",
                "paymentMethod": "WALLET", "amountDue": "1",
            })

    def test_unknown_payment_method(self) -> None:
        with pytest.raises(ValidationError):
            CreateServiceOrderRequest.model_validate({
                "addressId": "a-1", "serviceId": "s-1", "paymentMethod": "CASH",
            })


class TestOtherRequests:

    def test_calculate_defaults(self) -> None:
        request = CalculateTotalRequest.model_validate({"serviceId": "s-1", "addressId": "a-1"})
        assert request.unit_quantity == Decimal("1")
        assert request.voucher_code is None

    @pytest.mark.parametrize("code", ["123", "12345", "abcd"])
    def test_confirmation_code_pattern(self, code: str) -> None:
        with pytest.raises(ValidationError):
            CompleteDeliveryRequest.model_validate({"confirmationCode": code})

    def test_dispute_optional(self) -> None:
        request = CompleteDeliveryRequest.model_validate({"confirmationCode": "0042"})
        assert request.dispute_reason is None

    @pytest.mark.parametrize("rating", [0, 6])
    def test_rating_range(self, rating: int) -> None:
        with pytest.raises(ValidationError):
            RateOrderRequest.model_validate({"rating": rating})

    def test_pickup_latitude_range(self) -> None:
        with pytest.raises(ValidationError):
            UpdatePickupLocationRequest.model_validate({"latitude": 91, "longitude": 0})
