# ====================================================================
# tasks/__init__.py
# ===================================================================
"""
Background loops for the quiz API, started and stopped with the app.

Today this is only the checkout sweeper, which fails pending Razorpay
orders older than PENDING_PAYMENT_TTL_MINUTES.
"""
import asyncio
import logging
from typing import List

from . import periodic_tasks

__all__ = ["start_background_tasks", "stop_background_tasks"]

logger = logging.getLogger(__name__)

_running_tasks: List[asyncio.Task] = []


async def start_background_tasks() -> None:
    global _running_tasks
    if _running_tasks:
        logger.warning("⚠️ Background tasks already running; start ignored.")
        return
    _running_tasks = await periodic_tasks.start_all_tasks(asyncio.get_running_loop())
    names = ", ".join(t.get_name() for t in _running_tasks)
    logger.info(f"✅ {len(_running_tasks)} background task(s) started: {names}")


async def stop_background_tasks() -> None:
    if not _running_tasks:
        return
    logger.info(f"🛑 Stopping {len(_running_tasks)} background task(s)...")

    for task in _running_tasks:
        task.cancel()
    results = await asyncio.gather(*_running_tasks, return_exceptions=True)
    for task, outcome in zip(_running_tasks, results):
        if isinstance(outcome, asyncio.CancelledError):
            logger.debug(f"✅ Task '{task.get_name()}' cancelled cleanly.")
        elif isinstance(outcome, Exception):
            logger.error(f"⚠️ Task '{task.get_name()}' ended with an error: {outcome}")

    _running_tasks.clear()
    logger.info("✅ Quiz background tasks stopped.")
