"""
Razorpay client wrapper
Creates remote orders; everything else about the payment lives on Razorpay.
"""

import logging
from typing import Optional

import razorpay
from fastapi.concurrency import run_in_threadpool

from coursemart import config
from coursemart.errors import GatewayError

logger = logging.getLogger(__name__)


def to_minor_units(amount: int) -> int:
    """Rupees -> paise"""
    return int(amount) * 100


def build_receipt(course_id: str, user_id: str) -> str:
    """
    Operator-facing receipt label (Razorpay caps it at 40 chars).
    Not unique across retries; never use it as an idempotency key.
    """
    return f"rcpt_{course_id[-6:]}_{user_id[-6:]}"


class PaymentGateway:
    def __init__(self, key_id: str, key_secret: str, client: Optional[razorpay.Client] = None):
        self.key_id = key_id
        self.client = client or razorpay.Client(auth=(key_id, key_secret))

    async def create_order(self, amount: int, currency: str, receipt: str, notes: dict) -> dict:
        """Create a Razorpay order for `amount` minor units"""
        order_data = {
            "amount": amount,
            "currency": currency,
            "receipt": receipt,
            "notes": notes,
        }
        try:
            order = await run_in_threadpool(self.client.order.create, data=order_data)
        except Exception as e:
            logger.error("Razorpay order creation failed (receipt=%s): %s", receipt, e)
            raise GatewayError("Error creating Razorpay order")

        if not order or not order.get("id"):
            logger.error("Razorpay returned no order id (receipt=%s)", receipt)
            raise GatewayError("Error while creating order")

        return order


_gateway: Optional[PaymentGateway] = None


def get_gateway() -> PaymentGateway:
    """Gateway dependency"""
    global _gateway
    if _gateway is None:
        _gateway = PaymentGateway(config.RAZORPAY_KEY_ID, config.RAZORPAY_KEY_SECRET)
    return _gateway
