"""
Tests for order issuance, signature verification and failed checkouts.
"""
import json
from datetime import timedelta
from decimal import Decimal

import httpx
import pytest
from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError

from errors import (
    AlreadyPaid,
    InvalidGuestDetails,
    InvalidSignature,
    OrderCreationFailed,
    PaymentInProgress,
    PaymentRecordNotFound,
    QuizInactive,
    QuizNotFound,
)
from helpers import utcnow
from models import Payment, TransactionLog, PAYMENT_FAILED, PAYMENT_PENDING, PAYMENT_SUCCESS
from services.identity import GuestContact, Identity
from services.payments import (
    create_order,
    expire_stale_payments,
    mark_payment_failed,
    verify_payment,
)
from services.razorpay import build_receipt, to_minor_units
from utils.signer import payment_signature


async def _count(session, model, *criteria):
    result = await session.execute(select(func.count()).select_from(model).where(*criteria))
    return result.scalar()


# ---------------------------------------------------------
# Amount helpers
# ---------------------------------------------------------
@pytest.mark.parametrize(
    "amount, minor",
    [(Decimal("49.00"), 4900), (Decimal("1.005"), 101), (Decimal("0.01"), 1), ("99.99", 9999)],
)
def test_to_minor_units(amount, minor):
    assert to_minor_units(amount) == minor


def test_receipt_fits_gateway_limit():
    receipt = build_receipt("3f2b8c1e-0000-4000-8000-1234567890ab")
    assert receipt.startswith("quiz_3f2b8c1e0000_")
    assert len(receipt) <= 40


# ---------------------------------------------------------
# Order Issuer
# ---------------------------------------------------------
async def test_order_uses_stored_entry_fee(session, quiz, user_identity, gateway_client, gateway_requests):
    order = await create_order(session, quiz.id, user_identity, http_client=gateway_client)

    assert order["amount"] == 4900
    assert order["currency"] == "INR"
    assert order["key_id"] == "rzp_test_abcdef123456"
    assert gateway_requests[0]["body"]["amount"] == 4900
    assert gateway_requests[0]["url"].endswith("/orders")
    assert gateway_requests[0]["headers"]["authorization"].startswith("Basic ")

    payment = (await session.execute(select(Payment).where(Payment.order_id == order["order_id"]))).scalar_one()
    assert payment.status == PAYMENT_PENDING
    assert payment.amount == Decimal("49.00")
    assert str(payment.id) == order["payment_record_id"]
    assert payment.user_id == user_identity.user_id


async def test_guest_order_stores_contact(session, quiz, guest_identity, guest, gateway_client):
    order = await create_order(session, quiz.id, guest_identity, guest, http_client=gateway_client)
    payment = (await session.execute(select(Payment).where(Payment.order_id == order["order_id"]))).scalar_one()
    assert payment.is_anonymous
    assert payment.device_fingerprint == "fp_device_0001"
    assert payment.guest_email == "ravi@example.com"


async def test_guest_without_contact_rejected(session, quiz, guest_identity, gateway_client, gateway_requests):
    with pytest.raises(InvalidGuestDetails):
        await create_order(session, quiz.id, guest_identity, http_client=gateway_client)
    assert gateway_requests == []


async def test_unknown_quiz(session, user_identity, gateway_client):
    with pytest.raises(QuizNotFound):
        await create_order(session, "not-a-uuid", user_identity, http_client=gateway_client)


async def test_inactive_quiz(session, quiz, user_identity, gateway_client):
    quiz.is_active = False
    await session.commit()
    with pytest.raises(QuizInactive):
        await create_order(session, quiz.id, user_identity, http_client=gateway_client)


async def test_already_paid_short_circuits(session, quiz, user_identity, gateway_client, gateway_requests, make_payment):
    await make_payment(quiz, user_identity, status=PAYMENT_SUCCESS)
    with pytest.raises(AlreadyPaid):
        await create_order(session, quiz.id, user_identity, http_client=gateway_client)
    assert gateway_requests == []


async def test_pending_order_blocks_new_one(session, quiz, user_identity, gateway_client, make_payment):
    await make_payment(quiz, user_identity, status=PAYMENT_PENDING)
    with pytest.raises(PaymentInProgress):
        await create_order(session, quiz.id, user_identity, http_client=gateway_client)


async def test_failed_payment_allows_new_order(session, quiz, user_identity, gateway_client, make_payment):
    await make_payment(quiz, user_identity, status=PAYMENT_FAILED)
    order = await create_order(session, quiz.id, user_identity, http_client=gateway_client)
    assert order["order_id"].startswith("order_")


async def test_gateway_error_leaves_no_row(session, quiz, user_identity):
    def handler(request):
        return httpx.Response(500, json={"error": {"description": "boom"}})

    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    with pytest.raises(OrderCreationFailed):
        await create_order(session, quiz.id, user_identity, http_client=client)
    assert await _count(session, Payment) == 0


async def test_gateway_timeout_is_order_creation_failed(session, quiz, user_identity):
    def handler(request):
        raise httpx.ConnectTimeout("timed out", request=request)

    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    with pytest.raises(OrderCreationFailed):
        await create_order(session, quiz.id, user_identity, http_client=client)
    assert await _count(session, Payment) == 0


async def test_gateway_response_without_id_rejected(session, quiz, user_identity):
    client = httpx.AsyncClient(transport=httpx.MockTransport(lambda r: httpx.Response(200, json={"amount": 4900})))
    with pytest.raises(OrderCreationFailed):
        await create_order(session, quiz.id, user_identity, http_client=client)


async def test_gateway_amount_mismatch_rejected(session, quiz, user_identity):
    client = httpx.AsyncClient(
        transport=httpx.MockTransport(lambda r: httpx.Response(200, json={"id": "order_X", "amount": 100}))
    )
    with pytest.raises(OrderCreationFailed):
        await create_order(session, quiz.id, user_identity, http_client=client)
    assert await _count(session, Payment) == 0


async def test_live_payment_index_rejects_second_live_row(session, quiz, user_identity, make_payment):
    await make_payment(quiz, user_identity, status=PAYMENT_PENDING)
    with pytest.raises(IntegrityError):
        await make_payment(quiz, user_identity, status=PAYMENT_PENDING)
    await session.rollback()


async def test_concurrent_order_becomes_payment_in_progress(session, session_factory, quiz, user_identity):
    """A second request records its pending order while ours waits on the gateway."""
    quiz_id = quiz.id

    async def handler(request):
        body = json.loads(request.content)
        async with session_factory() as other:
            other.add(
                Payment(
                    quiz_id=quiz_id,
                    identity_key=user_identity.key,
                    user_id=user_identity.user_id,
                    is_anonymous=False,
                    order_id="order_WINNER",
                    amount=Decimal("49.00"),
                    currency="INR",
                    status=PAYMENT_PENDING,
                )
            )
            await other.commit()
        return httpx.Response(200, json={"id": "order_LOSER", "amount": body["amount"], "currency": "INR"})

    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    with pytest.raises(PaymentInProgress):
        await create_order(session, quiz_id, user_identity, http_client=client)

    rows = (await session.execute(select(Payment.order_id))).scalars().all()
    assert rows == ["order_WINNER"]


# ---------------------------------------------------------
# Payment Verifier
# ---------------------------------------------------------
async def test_verify_marks_success(session, quiz, user_identity, make_payment):
    pending = await make_payment(quiz, user_identity, status=PAYMENT_PENDING, order_id="order_V1")
    sig = payment_signature("order_V1", "pay_V1")

    payment = await verify_payment(session, "order_V1", "pay_V1", sig, user_identity)

    assert payment.id == pending.id
    assert payment.status == PAYMENT_SUCCESS
    assert payment.payment_id == "pay_V1"
    assert payment.signature == sig
    assert await _count(session, TransactionLog, TransactionLog.outcome == "verified") == 1


async def test_bad_signature_mutates_nothing(session, quiz, user_identity, make_payment):
    await make_payment(quiz, user_identity, status=PAYMENT_PENDING, order_id="order_V2")
    with pytest.raises(InvalidSignature):
        await verify_payment(session, "order_V2", "pay_V2", "0" * 64, user_identity)

    payment = (await session.execute(select(Payment).where(Payment.order_id == "order_V2"))).scalar_one()
    await session.refresh(payment)
    assert payment.status == PAYMENT_PENDING
    assert payment.payment_id is None
    assert await _count(session, TransactionLog, TransactionLog.outcome == "invalid_signature") == 1


async def test_signed_but_unknown_order_rejected(session, quiz, user_identity):
    sig = payment_signature("order_NEVER", "pay_1")
    with pytest.raises(PaymentRecordNotFound):
        await verify_payment(session, "order_NEVER", "pay_1", sig, user_identity)


async def test_other_identity_cannot_verify(session, quiz, user_identity, guest_identity, make_payment):
    await make_payment(quiz, user_identity, status=PAYMENT_PENDING, order_id="order_V3")
    sig = payment_signature("order_V3", "pay_V3")
    with pytest.raises(PaymentRecordNotFound):
        await verify_payment(session, "order_V3", "pay_V3", sig, guest_identity)


async def test_replayed_verification_returns_stored_payment(session, quiz, user_identity, make_payment):
    await make_payment(quiz, user_identity, status=PAYMENT_PENDING, order_id="order_V4")
    sig = payment_signature("order_V4", "pay_V4")
    first = await verify_payment(session, "order_V4", "pay_V4", sig, user_identity)
    second = await verify_payment(session, "order_V4", "pay_V4", sig, user_identity)

    assert second.id == first.id
    assert second.status == PAYMENT_SUCCESS
    assert await _count(session, Payment, Payment.status == PAYMENT_SUCCESS) == 1


async def test_success_cannot_be_rewritten_with_other_payment(session, quiz, user_identity, make_payment):
    await make_payment(quiz, user_identity, status=PAYMENT_PENDING, order_id="order_V5")
    await verify_payment(session, "order_V5", "pay_V5", payment_signature("order_V5", "pay_V5"), user_identity)

    with pytest.raises(PaymentRecordNotFound):
        await verify_payment(
            session, "order_V5", "pay_OTHER", payment_signature("order_V5", "pay_OTHER"), user_identity
        )
    payment = (await session.execute(select(Payment).where(Payment.order_id == "order_V5"))).scalar_one()
    assert payment.payment_id == "pay_V5"


async def test_failed_payment_cannot_be_verified(session, quiz, user_identity, make_payment):
    await make_payment(quiz, user_identity, status=PAYMENT_FAILED, order_id="order_V6")
    with pytest.raises(PaymentRecordNotFound):
        await verify_payment(session, "order_V6", "pay_V6", payment_signature("order_V6", "pay_V6"), user_identity)


async def test_verify_backfills_missing_guest_contact(session, quiz, guest_identity, make_payment):
    await make_payment(quiz, guest_identity, status=PAYMENT_PENDING, order_id="order_V7", guest_name="Ravi")
    late = GuestContact(name="Someone Else", email="late@example.com", phone="9000000000")

    payment = await verify_payment(
        session, "order_V7", "pay_V7", payment_signature("order_V7", "pay_V7"), guest_identity, late
    )
    assert payment.guest_name == "Ravi"
    assert payment.guest_email == "late@example.com"
    assert payment.guest_phone == "9000000000"


async def _settle_elsewhere(session_factory, order_id, payment_id):
    """Flip the row to success from another session, leaving ours holding the stale pending copy."""
    async with session_factory() as other:
        await other.execute(
            update(Payment)
            .where(Payment.order_id == order_id)
            .values(status=PAYMENT_SUCCESS, payment_id=payment_id, signature=payment_signature(order_id, payment_id))
        )
        await other.commit()


async def test_lost_verify_race_same_payment_returns_success(session, session_factory, quiz, user_identity, make_payment):
    pending = await make_payment(quiz, user_identity, status=PAYMENT_PENDING, order_id="order_R1")
    await _settle_elsewhere(session_factory, "order_R1", "pay_R1")
    assert pending.status == PAYMENT_PENDING

    sig = payment_signature("order_R1", "pay_R1")
    payment = await verify_payment(session, "order_R1", "pay_R1", sig, user_identity)

    assert payment.id == pending.id
    assert payment.status == PAYMENT_SUCCESS
    assert payment.payment_id == "pay_R1"


async def test_lost_verify_race_other_payment_rejected(session, session_factory, quiz, user_identity, make_payment):
    await make_payment(quiz, user_identity, status=PAYMENT_PENDING, order_id="order_R2")
    await _settle_elsewhere(session_factory, "order_R2", "pay_R2")

    with pytest.raises(PaymentRecordNotFound):
        await verify_payment(
            session, "order_R2", "pay_OTHER", payment_signature("order_R2", "pay_OTHER"), user_identity
        )

    stored = (await session.execute(select(Payment.payment_id).where(Payment.order_id == "order_R2"))).scalar_one()
    assert stored == "pay_R2"


# ---------------------------------------------------------
# Failed checkout + sweeper
# ---------------------------------------------------------
async def test_mark_failed_frees_identity_for_new_order(session, quiz, user_identity, gateway_client, make_payment):
    await make_payment(quiz, user_identity, status=PAYMENT_PENDING, order_id="order_F1")
    payment = await mark_payment_failed(session, "order_F1", user_identity, "dismissed")
    assert payment.status == PAYMENT_FAILED

    order = await create_order(session, quiz.id, user_identity, http_client=gateway_client)
    assert order["order_id"] != "order_F1"


async def test_mark_failed_never_touches_success(session, quiz, user_identity, make_payment):
    await make_payment(quiz, user_identity, status=PAYMENT_SUCCESS, order_id="order_F2")
    payment = await mark_payment_failed(session, "order_F2", user_identity)
    assert payment.status == PAYMENT_SUCCESS


async def test_mark_failed_requires_own_order(session, quiz, user_identity, guest_identity, make_payment):
    await make_payment(quiz, user_identity, status=PAYMENT_PENDING, order_id="order_F3")
    with pytest.raises(PaymentRecordNotFound):
        await mark_payment_failed(session, "order_F3", guest_identity)


async def test_expire_stale_payments(session, quiz, user_identity, make_payment):
    other = Identity(device_fingerprint="fp_device_0002")
    await make_payment(quiz, user_identity, status=PAYMENT_PENDING, order_id="order_OLD",
                       created_at=utcnow() - timedelta(hours=2))
    await make_payment(quiz, other, status=PAYMENT_PENDING, order_id="order_NEW", created_at=utcnow())

    expired = await expire_stale_payments(session, timedelta(minutes=30))

    assert expired == 1
    rows = (await session.execute(select(Payment.order_id, Payment.status))).all()
    assert dict(rows) == {"order_OLD": PAYMENT_FAILED, "order_NEW": PAYMENT_PENDING}
