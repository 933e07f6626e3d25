"""
Pytest configuration and fixtures for the daily quiz tests.

Every test gets a fresh in-memory SQLite database built from the models,
and a Razorpay client backed by httpx.MockTransport.
"""
import json
import os
import sys
import uuid
from datetime import date, time
from decimal import Decimal

# Required settings must exist before config.py is imported
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("RAZORPAY_KEY_ID", "rzp_test_abcdef123456")
os.environ.setdefault("RAZORPAY_KEY_SECRET", "test_key_secret")
os.environ.setdefault("AUTH_SIGNING_SECRET", "test_auth_secret")

# Add project root to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import httpx
import pytest
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from base import Base
from models import DailyQuiz, Payment, QuizQuestion, User, PAYMENT_PENDING, PAYMENT_SUCCESS
from services.identity import GuestContact, Identity


@pytest.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(bind=engine, expire_on_commit=False, class_=AsyncSession)


@pytest.fixture
async def session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
async def quiz(session):
    """Quiz on 2024-01-15, results at 21:00 (+05:30), answer key A, B, C."""
    quiz = DailyQuiz(
        quiz_date=date(2024, 1, 15),
        title="Monday General Knowledge",
        entry_fee=Decimal("49.00"),
        prize_amount=Decimal("1000.00"),
        results_time=time(21, 0),
        is_active=True,
    )
    session.add(quiz)
    await session.flush()
    for order, correct in enumerate(["A", "B", "C"], start=1):
        session.add(
            QuizQuestion(
                quiz_id=quiz.id,
                question_order=order,
                question_text=f"Question {order}?",
                option_a="Alpha",
                option_b="Bravo",
                option_c="Charlie",
                option_d="Delta",
                correct_option=correct,
                category="general",
            )
        )
    await session.commit()
    return quiz


@pytest.fixture
async def questions(session, quiz):
    result = await session.execute(
        select(QuizQuestion).where(QuizQuestion.quiz_id == quiz.id).order_by(QuizQuestion.question_order)
    )
    return list(result.scalars().all())


@pytest.fixture
async def user(session):
    user = User(email="asha@example.com", full_name="Asha Rao", phone="9876543210")
    session.add(user)
    await session.commit()
    return user


@pytest.fixture
def user_identity(user):
    return Identity(user_id=user.id, display_name=user.full_name)


@pytest.fixture
def guest_identity():
    return Identity(device_fingerprint="fp_device_0001")


@pytest.fixture
def guest():
    return GuestContact(name="Ravi Kumar", email="ravi@example.com", phone="9123456780")


@pytest.fixture
def gateway_requests():
    return []


@pytest.fixture
def gateway_client(gateway_requests):
    """Razorpay client that answers every order with the requested amount."""

    def handler(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        gateway_requests.append({"url": str(request.url), "headers": request.headers, "body": body})
        return httpx.Response(
            200,
            json={
                "id": f"order_{uuid.uuid4().hex[:14]}",
                "entity": "order",
                "amount": body["amount"],
                "currency": body["currency"],
                "receipt": body["receipt"],
                "status": "created",
            },
        )

    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


@pytest.fixture
def make_payment(session):
    """Insert a payment row directly, bypassing the gateway."""

    async def _make(quiz, identity, status=PAYMENT_SUCCESS, order_id=None, payment_id=None, **extra):
        payment = Payment(
            quiz_id=quiz.id,
            identity_key=identity.key,
            user_id=identity.user_id,
            device_fingerprint=identity.device_fingerprint,
            is_anonymous=identity.is_anonymous,
            order_id=order_id or f"order_{uuid.uuid4().hex[:14]}",
            payment_id=payment_id if status != PAYMENT_PENDING else None,
            amount=quiz.entry_fee,
            currency="INR",
            status=status,
            **extra,
        )
        if status == PAYMENT_SUCCESS and payment.payment_id is None:
            payment.payment_id = f"pay_{uuid.uuid4().hex[:14]}"
        session.add(payment)
        await session.commit()
        return payment

    return _make
