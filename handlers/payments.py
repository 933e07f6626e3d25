# ===============================================================
# handlers/payments.py
# ===============================================================
import logging

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from db import get_session
from handlers.deps import current_identity, guest_contact
from schemas import CreateOrderRequest, PaymentFailedRequest, VerifyPaymentRequest
from services.identity import Identity
from services.payments import create_order, mark_payment_failed, verify_payment

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/payments", tags=["payments"])


# ------------------------------------------------------
# Start checkout: issue a Razorpay order
# ------------------------------------------------------
@router.post("/orders")
async def create_payment_order(
    body: CreateOrderRequest,
    identity: Identity = Depends(current_identity),
    session: AsyncSession = Depends(get_session),
):
    order = await create_order(session, body.quiz_id, identity, guest_contact(body.guest))
    return {"success": True, **order}


# ------------------------------------------------------
# Checkout handler callback: verify signature
# ------------------------------------------------------
@router.post("/verify")
async def verify_payment_callback(
    body: VerifyPaymentRequest,
    identity: Identity = Depends(current_identity),
    session: AsyncSession = Depends(get_session),
):
    payment = await verify_payment(
        session,
        body.order_id,
        body.payment_id,
        body.signature,
        identity,
        guest_contact(body.guest),
    )
    return {
        "success": True,
        "payment_record_id": str(payment.id),
        "quiz_id": str(payment.quiz_id),
        "status": payment.status,
    }


# ------------------------------------------------------
# Checkout dismissed or failed on the client
# ------------------------------------------------------
@router.post("/failed")
async def payment_failed_callback(
    body: PaymentFailedRequest,
    identity: Identity = Depends(current_identity),
    session: AsyncSession = Depends(get_session),
):
    payment = await mark_payment_failed(session, body.order_id, identity, body.reason)
    return {"success": True, "order_id": payment.order_id, "status": payment.status}
