"""
Tests for the abandoned-checkout sweeper task.
"""
import asyncio
from contextlib import asynccontextmanager
from datetime import timedelta

import pytest
from sqlalchemy import select

import tasks
from helpers import utcnow
from models import Payment, PAYMENT_FAILED, PAYMENT_PENDING, PAYMENT_SUCCESS
from services.identity import Identity
from tasks import sweeper


@pytest.fixture
def sweeper_sessions(session_factory, monkeypatch):
    @asynccontextmanager
    async def _session():
        async with session_factory() as session:
            yield session

    monkeypatch.setattr(sweeper, "get_async_session", _session)


async def test_sweeper_fails_only_old_pending(session, quiz, make_payment, sweeper_sessions):
    old = utcnow() - timedelta(hours=1)
    await make_payment(quiz, Identity(device_fingerprint="fp_old_pending"), status=PAYMENT_PENDING,
                       order_id="order_OLD", created_at=old)
    await make_payment(quiz, Identity(device_fingerprint="fp_old_success"), status=PAYMENT_SUCCESS,
                       order_id="order_PAID", created_at=old)
    await make_payment(quiz, Identity(device_fingerprint="fp_new_pending"), status=PAYMENT_PENDING,
                       order_id="order_FRESH", created_at=utcnow())

    assert await sweeper.expire_pending_payments(ttl_minutes=30) == 1

    session.expire_all()
    rows = dict((await session.execute(select(Payment.order_id, Payment.status))).all())
    assert rows == {"order_OLD": PAYMENT_FAILED, "order_PAID": PAYMENT_SUCCESS, "order_FRESH": PAYMENT_PENDING}


async def test_sweeper_with_nothing_to_do(quiz, sweeper_sessions):
    assert await sweeper.expire_pending_payments() == 0


async def test_background_tasks_start_and_stop(monkeypatch):
    ran = asyncio.Event()

    async def fake_loop():
        ran.set()
        await asyncio.sleep(3600)

    monkeypatch.setattr(sweeper, "expire_pending_payments_loop", fake_loop)

    await tasks.start_background_tasks()
    await asyncio.wait_for(ran.wait(), timeout=1)
    await tasks.stop_background_tasks()

    assert tasks._running_tasks == []
