"""
Razorpay signature checks
Client callback: HMAC-SHA256(key_secret, "<order_id>|<payment_id>")
Webhook:         HMAC-SHA256(webhook_secret, <raw request body>)
Both hex encoded, compared in constant time.
"""

import hashlib
import hmac
import logging
from typing import Optional, Union

logger = logging.getLogger(__name__)


def compute_signature(secret: str, message: Union[str, bytes]) -> str:
    if isinstance(message, str):
        message = message.encode()
    return hmac.new(secret.encode(), message, hashlib.sha256).hexdigest()


def _matches(expected: str, supplied: Optional[str]) -> bool:
    if not supplied:
        return False
    return hmac.compare_digest(expected.encode(), supplied.strip().encode())


def verify_razorpay_signature(order_id: str, payment_id: str, signature: Optional[str], secret: str) -> bool:
    """Verify the signature the checkout widget hands back to the client"""
    if not secret:
        logger.error("Razorpay key secret is not configured")
        return False
    return _matches(compute_signature(secret, f"{order_id}|{payment_id}"), signature)


def verify_webhook_signature(body: bytes, signature: Optional[str], secret: str) -> bool:
    """Verify x-razorpay-signature against the unparsed body"""
    if not secret:
        return False
    return _matches(compute_signature(secret, body), signature)
