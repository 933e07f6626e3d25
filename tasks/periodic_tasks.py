# ========================================================
# tasks/periodic_tasks.py
# ========================================================
"""
Periodic background task manager.

Currently a single loop: the sweeper that closes abandoned Razorpay
checkouts so the (quiz, identity) pair can start a fresh order.
"""
import asyncio
import logging

from . import sweeper

logger = logging.getLogger(__name__)


async def start_all_tasks(loop: asyncio.AbstractEventLoop = None) -> list[asyncio.Task]:
    """Boot all repeating service loops (non-blocking)."""
    if loop is None:
        loop = asyncio.get_running_loop()

    tasks = [
        loop.create_task(sweeper.expire_pending_payments_loop(), name="SweeperLoop"),
    ]

    logger.info("🚀 All periodic background tasks are now running")
    return tasks
