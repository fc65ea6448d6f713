"""Tests for Razorpay signature verification."""
import hashlib
import hmac
import json

from coursemart.purchases.signatures import (
    compute_signature, verify_razorpay_signature, verify_webhook_signature
)

SECRET = "test_key_secret"


def _expected(secret, message: bytes) -> str:
    return hmac.new(secret.encode(), message, hashlib.sha256).hexdigest()


def test_compute_signature_matches_hmac_sha256_hex():
    assert compute_signature(SECRET, "order_1|pay_1") == _expected(SECRET, b"order_1|pay_1")


def test_checkout_signature_accepted():
    signature = _expected(SECRET, b"order_abc|pay_xyz")
    assert verify_razorpay_signature("order_abc", "pay_xyz", signature, SECRET) is True


def test_checkout_signature_rejected_when_payment_id_swapped():
    signature = _expected(SECRET, b"order_abc|pay_xyz")
    assert verify_razorpay_signature("order_abc", "pay_other", signature, SECRET) is False


def test_checkout_signature_rejected_with_wrong_secret():
    signature = _expected("someone-else", b"order_abc|pay_xyz")
    assert verify_razorpay_signature("order_abc", "pay_xyz", signature, SECRET) is False


def test_checkout_signature_missing_or_unconfigured():
    signature = _expected(SECRET, b"order_abc|pay_xyz")
    assert verify_razorpay_signature("order_abc", "pay_xyz", None, SECRET) is False
    assert verify_razorpay_signature("order_abc", "pay_xyz", "", SECRET) is False
    assert verify_razorpay_signature("order_abc", "pay_xyz", signature, "") is False


def test_webhook_signature_covers_raw_bytes():
    body = b'{"event":"payment.captured","payload":{}}'
    signature = _expected("whsec", body)
    assert verify_webhook_signature(body, signature, "whsec") is True

    # same JSON, different bytes
    reserialized = json.dumps(json.loads(body)).encode()
    assert reserialized != body
    assert verify_webhook_signature(reserialized, signature, "whsec") is False


def test_webhook_signature_missing():
    body = b"{}"
    assert verify_webhook_signature(body, None, "whsec") is False
    assert verify_webhook_signature(body, _expected("whsec", body), "") is False
