"""Razorpay signature checks.

Both are pure functions of their inputs and a secret: HMAC-SHA256, hex
digest, compared in constant time.
"""

import hashlib
import hmac
from typing import Optional, Union


def payment_signature(order_id: str, payment_id: str, secret: str) -> str:
    """Signature Razorpay Checkout returns for ``order_id|payment_id``."""
    message = f"{order_id}|{payment_id}".encode("utf-8")
    return hmac.new(secret.encode("utf-8"), message, hashlib.sha256).hexdigest()


def verify_payment_signature(
    order_id: str, payment_id: str, signature: Optional[str], secret: str
) -> bool:
    if not signature or not secret:
        return False
    expected = payment_signature(order_id, payment_id, secret)
    return hmac.compare_digest(expected.encode("utf-8"), signature.encode("utf-8"))


def webhook_signature(raw_body: Union[bytes, str], secret: str) -> str:
    if isinstance(raw_body, str):
        raw_body = raw_body.encode("utf-8")
    return hmac.new(secret.encode("utf-8"), raw_body, hashlib.sha256).hexdigest()


def verify_webhook_signature(
    raw_body: Union[bytes, str], signature: Optional[str], secret: str
) -> bool:
    """Check ``X-Razorpay-Signature`` against the exact request body bytes."""
    if not signature or not secret:
        return False
    expected = webhook_signature(raw_body, secret)
    return hmac.compare_digest(expected.encode("utf-8"), signature.encode("utf-8"))
