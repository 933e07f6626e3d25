# ================================================================
# services/razorpay.py
# ================================================================
import logging
import time
from decimal import Decimal, ROUND_HALF_UP

import httpx

from config import (
    RAZORPAY_BASE_URL,
    RAZORPAY_KEY_ID,
    RAZORPAY_KEY_SECRET,
    CURRENCY,
)
from errors import GatewayError
from helpers import mask_sensitive

logger = logging.getLogger(__name__)

GATEWAY_TIMEOUT_SECONDS = 15.0
MAX_RECEIPT_LENGTH = 40


def to_minor_units(amount) -> int:
    """₹1.005 → 101 paise. Rounds half-up like the checkout widget."""
    value = Decimal(str(amount)) * 100
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def build_receipt(quiz_id) -> str:
    receipt = f"quiz_{str(quiz_id).replace('-', '')[:12]}_{int(time.time() * 1000)}"
    return receipt[:MAX_RECEIPT_LENGTH]


async def create_razorpay_order(
    *,
    amount_minor: int,
    receipt: str,
    notes: dict | None = None,
    currency: str = CURRENCY,
    client: httpx.AsyncClient | None = None,
) -> dict:
    """
    Create a Razorpay order for an exact amount in minor units.

    Returns the gateway's order object ({"id", "amount", "currency", ...}).
    Raises GatewayError on any transport failure, non-2xx answer, or a
    response without an order id. There is no retry.
    """
    if not isinstance(amount_minor, int) or amount_minor <= 0:
        raise GatewayError(f"Invalid order amount: {amount_minor!r}")

    payload = {
        "amount": amount_minor,
        "currency": currency,
        "receipt": receipt,
        "notes": notes or {},
    }

    owns_client = client is None
    if owns_client:
        client = httpx.AsyncClient(timeout=GATEWAY_TIMEOUT_SECONDS)

    try:
        response = await client.post(
            f"{RAZORPAY_BASE_URL}/orders",
            json=payload,
            auth=(RAZORPAY_KEY_ID, RAZORPAY_KEY_SECRET),
        )
        response.raise_for_status()
        data = response.json()
    except httpx.HTTPStatusError as e:
        logger.error(f"🚫 Razorpay order failed [{e.response.status_code}]: {e.response.text}")
        raise GatewayError(f"Razorpay returned {e.response.status_code}") from e
    except (httpx.HTTPError, ValueError) as e:
        logger.error(f"⚠️ Razorpay order request error for receipt {receipt}: {e}")
        raise GatewayError(str(e)) from e
    finally:
        if owns_client:
            await client.aclose()

    order_id = data.get("id") if isinstance(data, dict) else None
    if not order_id:
        logger.error(f"🚫 Invalid Razorpay response structure: {data}")
        raise GatewayError("Razorpay response missing order id")

    logger.info(f"✅ Razorpay order {mask_sensitive(order_id)} created ({amount_minor} {currency})")
    return data
