# ========================================================
# tasks/sweeper.py
# ========================================================
"""
Sweeper task: fail pending payments whose checkout was abandoned.

A pending row blocks new orders for its (quiz, identity) pair, so a
player who closes the Razorpay window would otherwise be stuck until
they report the failure themselves.
"""
import asyncio
import logging
from datetime import timedelta

from config import PENDING_PAYMENT_TTL_MINUTES, SWEEPER_INTERVAL_SECONDS
from db import get_async_session
from services.payments import expire_stale_payments

logger = logging.getLogger(__name__)


async def expire_pending_payments_loop():
    """Loop that periodically fails pending payments older than the TTL."""
    while True:
        try:
            await expire_pending_payments()
        except Exception as e:
            logger.exception(f"Sweeper task error: {e}")
        await asyncio.sleep(SWEEPER_INTERVAL_SECONDS)


async def expire_pending_payments(ttl_minutes: int = PENDING_PAYMENT_TTL_MINUTES) -> int:
    async with get_async_session() as session:
        expired = await expire_stale_payments(session, timedelta(minutes=ttl_minutes))
    if expired:
        logger.info(f"🧹 Failed {expired} abandoned pending payments.")
    else:
        logger.debug("No pending payments to expire.")
    return expired
