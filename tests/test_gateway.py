"""Tests for the Razorpay client wrapper."""
from unittest.mock import MagicMock

import pytest

from coursemart.errors import GatewayError
from coursemart.purchases.gateway import PaymentGateway, build_receipt, to_minor_units


def test_to_minor_units():
    assert to_minor_units(499) == 49900
    assert to_minor_units(1) == 100


def test_build_receipt_is_short_label():
    receipt = build_receipt("64b7f0c2a1b2c3d4e5f60718", "64b7f0c2a1b2c3d4e5f6aabb")
    assert receipt == "rcpt_f60718_f6aabb"
    assert len(receipt) <= 40


async def test_create_order_sends_order_data():
    rzp = MagicMock()
    rzp.order.create.return_value = {"id": "order_123", "amount": 49900, "currency": "INR"}
    gateway = PaymentGateway("rzp_test_key", "secret", client=rzp)

    order = await gateway.create_order(49900, "INR", "rcpt_a_b", {"courseId": "c1"})

    assert order["id"] == "order_123"
    rzp.order.create.assert_called_once_with(data={
        "amount": 49900,
        "currency": "INR",
        "receipt": "rcpt_a_b",
        "notes": {"courseId": "c1"},
    })


async def test_create_order_sdk_failure_raises_gateway_error():
    rzp = MagicMock()
    rzp.order.create.side_effect = Exception("BadRequestError")
    gateway = PaymentGateway("rzp_test_key", "secret", client=rzp)

    with pytest.raises(GatewayError):
        await gateway.create_order(49900, "INR", "rcpt", {})


async def test_create_order_without_id_raises_gateway_error():
    rzp = MagicMock()
    rzp.order.create.return_value = {"status": "created"}
    gateway = PaymentGateway("rzp_test_key", "secret", client=rzp)

    with pytest.raises(GatewayError):
        await gateway.create_order(49900, "INR", "rcpt", {})
