# ================================================================
# services/payments.py
# ================================================================
import logging
from datetime import timedelta

import httpx
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from config import CURRENCY, RAZORPAY_KEY_ID
from errors import (
    AlreadyPaid,
    GatewayError,
    InvalidGuestDetails,
    InvalidSignature,
    OrderCreationFailed,
    PaymentInProgress,
    PaymentRecordNotFound,
)
from helpers import mask_sensitive, utcnow
from models import (
    Payment,
    TransactionLog,
    PAYMENT_PENDING,
    PAYMENT_SUCCESS,
    PAYMENT_FAILED,
)
from services.identity import GuestContact, Identity
from services.quizzes import get_active_quiz
from services.razorpay import build_receipt, create_razorpay_order, to_minor_units
from utils.signer import verify_payment_signature

logger = logging.getLogger(__name__)

PROVIDER = "razorpay"


# ------------------------------------------------------
# 1. Create Order (Order Issuer)
# ------------------------------------------------------
async def create_order(
    session: AsyncSession,
    quiz_id,
    identity: Identity,
    guest: GuestContact | None = None,
    *,
    http_client: httpx.AsyncClient | None = None,
) -> dict:
    """
    Issue a Razorpay order for one quiz entry.

    The charge is always the quiz's stored entry fee. A (quiz, identity)
    pair that already paid gets AlreadyPaid; one with an open order gets
    PaymentInProgress. The gateway is called before anything is written,
    so a gateway failure leaves no Payment row behind.
    """
    quiz = await get_active_quiz(session, quiz_id)
    quiz_uuid = quiz.id

    if identity.is_anonymous and guest is None:
        raise InvalidGuestDetails()

    # ✅ 1. Duplicate guards
    result = await session.execute(
        select(Payment.status).where(
            Payment.quiz_id == quiz_uuid,
            Payment.identity_key == identity.key,
            Payment.status.in_([PAYMENT_PENDING, PAYMENT_SUCCESS]),
        )
    )
    live_statuses = set(result.scalars().all())
    if PAYMENT_SUCCESS in live_statuses:
        raise AlreadyPaid()
    if PAYMENT_PENDING in live_statuses:
        raise PaymentInProgress()

    # ✅ 2. Amount comes from the quiz row only
    amount = quiz.entry_fee
    amount_minor = to_minor_units(amount)

    # ✅ 3. Gateway order first
    try:
        order = await create_razorpay_order(
            amount_minor=amount_minor,
            receipt=build_receipt(quiz_uuid),
            notes={
                "quiz_id": str(quiz_uuid),
                "player": "guest" if identity.is_anonymous else "registered",
            },
            client=http_client,
        )
    except GatewayError as e:
        logger.error(f"❌ Order creation failed for quiz {quiz_uuid} ({identity}): {e}")
        raise OrderCreationFailed() from e

    charged_minor = order.get("amount", amount_minor)
    if charged_minor != amount_minor:
        logger.error(
            f"🚫 Razorpay order {mask_sensitive(order['id'])} amount {charged_minor} "
            f"!= expected {amount_minor}; refusing to record it"
        )
        raise OrderCreationFailed()

    # ✅ 4. Record pending payment
    payment = Payment(
        quiz_id=quiz_uuid,
        identity_key=identity.key,
        user_id=identity.user_id,
        device_fingerprint=identity.device_fingerprint,
        is_anonymous=identity.is_anonymous,
        guest_name=guest.name if guest else None,
        guest_email=guest.email if guest else None,
        guest_phone=guest.phone if guest else None,
        order_id=order["id"],
        amount=amount,
        currency=order.get("currency", CURRENCY),
        status=PAYMENT_PENDING,
    )
    session.add(payment)
    try:
        await session.commit()
    except IntegrityError:
        # A concurrent request for the same (quiz, identity) got there first.
        await session.rollback()
        logger.warning(f"🔁 Concurrent order issuance for quiz {quiz_uuid} ({identity})")
        raise PaymentInProgress()
    except SQLAlchemyError as e:
        await session.rollback()
        logger.exception(f"❌ Could not persist order {mask_sensitive(order['id'])}: {e}")
        raise OrderCreationFailed() from e

    logger.info(
        f"🧾 Order {mask_sensitive(payment.order_id)} issued for quiz {quiz_uuid} "
        f"({identity}, {amount_minor} {payment.currency})"
    )
    return {
        "order_id": payment.order_id,
        "amount": amount_minor,
        "currency": payment.currency,
        "key_id": RAZORPAY_KEY_ID,
        "payment_record_id": str(payment.id),
    }


# ------------------------------------------------------
# 2. Verify Payment (Payment Verifier)
# ------------------------------------------------------
async def verify_payment(
    session: AsyncSession,
    order_id: str,
    payment_id: str,
    signature: str,
    identity: Identity,
    guest: GuestContact | None = None,
) -> Payment:
    """
    Check the checkout signature and flip the caller's pending Payment to
    success exactly once.

    - Signature mismatch → InvalidSignature, nothing mutated.
    - No pending row for (order, identity) → PaymentRecordNotFound.
    - The same (order, payment, signature) replayed after success returns
      the stored Payment unchanged.
    """
    callback = {
        "order_id": order_id,
        "payment_id": payment_id,
        "signature": mask_sensitive(signature),
        "identity": str(identity),
    }

    if not verify_payment_signature(order_id, payment_id, signature):
        logger.warning(f"⚠️ Invalid Razorpay signature for order {mask_sensitive(order_id)} ({identity})")
        await log_transaction(session, order_id, "invalid_signature", callback)
        raise InvalidSignature()

    result = await session.execute(
        select(Payment).where(
            Payment.order_id == order_id,
            Payment.identity_key == identity.key,
        )
    )
    payment = result.scalar_one_or_none()

    if payment is not None and _is_same_success(payment, payment_id, signature):
        logger.info(f"🔁 Duplicate verification ignored for order {mask_sensitive(order_id)}")
        await log_transaction(session, order_id, "replayed", callback)
        return payment

    if payment is None or payment.status != PAYMENT_PENDING:
        logger.warning(f"⚠️ No pending payment for order {mask_sensitive(order_id)} ({identity})")
        await log_transaction(session, order_id, "not_found", callback)
        raise PaymentRecordNotFound()

    values = {
        "status": PAYMENT_SUCCESS,
        "payment_id": payment_id,
        "signature": signature,
        "updated_at": utcnow(),
    }
    # Guest contact captured late is stored as a convenience only.
    if guest is not None and payment.is_anonymous:
        if not payment.guest_name:
            values["guest_name"] = guest.name
        if not payment.guest_email:
            values["guest_email"] = guest.email
        if not payment.guest_phone:
            values["guest_phone"] = guest.phone

    pending_id = payment.id
    try:
        outcome = await session.execute(
            update(Payment)
            .where(Payment.id == pending_id, Payment.status == PAYMENT_PENDING)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        if outcome.rowcount != 1:
            await session.rollback()
            return await _resolve_lost_race(session, pending_id, payment_id, signature, order_id)
        await session.commit()
    except IntegrityError:
        # payment_id is unique: the same gateway payment cannot settle two orders
        await session.rollback()
        logger.warning(f"🚫 Gateway payment {mask_sensitive(payment_id)} already used on another order")
        raise PaymentRecordNotFound()

    await session.refresh(payment)
    logger.info(f"✅ Payment verified: order={mask_sensitive(order_id)}, payment={mask_sensitive(payment_id)}")
    await log_transaction(session, order_id, "verified", callback)
    return payment


def _is_same_success(payment: Payment, payment_id: str, signature: str) -> bool:
    return (
        payment.status == PAYMENT_SUCCESS
        and payment.payment_id == payment_id
        and payment.signature == signature
    )


async def _resolve_lost_race(session, pending_id, payment_id, signature, order_id) -> Payment:
    """Another verifier updated the row first; accept it only if it is our payment."""
    payment = await session.get(Payment, pending_id, populate_existing=True)
    if payment is not None and _is_same_success(payment, payment_id, signature):
        logger.info(f"🔁 Concurrent verification settled order {mask_sensitive(order_id)}")
        return payment
    raise PaymentRecordNotFound()


# ------------------------------------------------------
# 3. Mark Payment Failed (checkout dismissed / failed)
# ------------------------------------------------------
async def mark_payment_failed(
    session: AsyncSession,
    order_id: str,
    identity: Identity,
    reason: str | None = None,
) -> Payment:
    """Close the caller's own pending order so a new one can be issued. Success is never touched."""
    result = await session.execute(
        select(Payment).where(
            Payment.order_id == order_id,
            Payment.identity_key == identity.key,
        )
    )
    payment = result.scalar_one_or_none()
    if payment is None:
        raise PaymentRecordNotFound()

    if payment.status != PAYMENT_PENDING:
        return payment

    await session.execute(
        update(Payment)
        .where(Payment.id == payment.id, Payment.status == PAYMENT_PENDING)
        .values(status=PAYMENT_FAILED, updated_at=utcnow())
        .execution_options(synchronize_session=False)
    )
    await session.commit()
    await session.refresh(payment)

    logger.info(f"❌ Payment {mask_sensitive(order_id)} marked as {payment.status} ({reason or 'no reason given'})")
    await log_transaction(session, order_id, "checkout_failed", {"order_id": order_id, "reason": reason})
    return payment


# ------------------------------------------------------
# 4. Expire abandoned pending payments (sweeper)
# ------------------------------------------------------
async def expire_stale_payments(session: AsyncSession, older_than: timedelta) -> int:
    """Mark pending payments created before ``now - older_than`` as failed."""
    cutoff = utcnow() - older_than
    result = await session.execute(
        update(Payment)
        .where(Payment.status == PAYMENT_PENDING, Payment.created_at < cutoff)
        .values(status=PAYMENT_FAILED, updated_at=utcnow())
        .execution_options(synchronize_session=False)
    )
    await session.commit()
    return result.rowcount or 0


# ------------------------------------------------------
# 5. Log Raw Callback Payload
# ------------------------------------------------------
async def log_transaction(session: AsyncSession, order_id: str | None, outcome: str, payload: dict):
    """Append a callback record in its own commit; failures here never block the caller's outcome."""
    session.add(TransactionLog(provider=PROVIDER, order_id=order_id, outcome=outcome, payload=payload))
    try:
        await session.commit()
    except SQLAlchemyError as e:
        await session.rollback()
        logger.warning(f"⚠️ Could not write transaction log for {mask_sensitive(order_id)}: {e}")
