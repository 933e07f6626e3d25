# ====================================================
# utils/signer.py
# ====================================================
"""
Razorpay checkout signature scheme:

    signature = hex(HMAC-SHA256(key_secret, f"{order_id}|{payment_id}"))

The checkout widget hands this signature to the browser after a payment
completes; it is the only proof that the (order, payment) pair came from
the gateway.
"""

import hmac
import hashlib

from config import RAZORPAY_KEY_SECRET


def payment_signature(order_id: str, payment_id: str, secret: str | None = None) -> str:
    """Return the hex HMAC-SHA256 the gateway computes for this order/payment pair."""
    key = (secret if secret is not None else RAZORPAY_KEY_SECRET).encode("utf-8")
    message = f"{order_id}|{payment_id}".encode("utf-8")
    return hmac.new(key, message, digestmod=hashlib.sha256).hexdigest()


def verify_payment_signature(
    order_id: str,
    payment_id: str,
    signature: str,
    secret: str | None = None,
) -> bool:
    """True only if ``signature`` equals the expected hex digest exactly."""
    if not order_id or not payment_id or not signature:
        return False
    expected = payment_signature(order_id, payment_id, secret)
    # Use hmac.compare_digest to avoid timing attacks
    return hmac.compare_digest(expected.encode("utf-8"), signature.encode("utf-8"))
