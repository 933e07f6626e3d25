# ===============================================================
# schemas.py — request bodies for the quiz/payment API
# ===============================================================
from typing import Any, Optional

from pydantic import BaseModel, Field


class GuestDetails(BaseModel):
    """Contact block a guest supplies when paying without an account."""
    name: str = Field(..., description="Display name, 1-100 characters")
    email: str
    phone: str = Field(..., description="10-digit mobile number (+91 prefix allowed)")


class CreateOrderRequest(BaseModel):
    quiz_id: str
    guest: Optional[GuestDetails] = None


class VerifyPaymentRequest(BaseModel):
    order_id: str = Field(..., min_length=1)
    payment_id: str = Field(..., min_length=1)
    signature: str = Field(..., min_length=1)
    guest: Optional[GuestDetails] = None


class PaymentFailedRequest(BaseModel):
    order_id: str = Field(..., min_length=1)
    reason: Optional[str] = Field(None, max_length=255)


class SubmitQuizRequest(BaseModel):
    payment_record_id: str
    # Option letters keyed by question id. Shape is checked when scoring so a
    # non-object reports invalid_answers_format rather than invalid_request.
    answers: Any
    time_spent_seconds: float = 0
