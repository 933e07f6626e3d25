# ===============================================================
# errors.py — structured failures for the quiz/payment core
# ===============================================================
"""
Every failure the core can report is a QuizServiceError subclass with a
stable machine-readable ``code`` and the HTTP status the API answers with.
Services raise these after rolling back; app.py renders them as
``{"success": false, "error": code, "message": text}``.
"""


class QuizServiceError(Exception):
    """Base class for all expected, client-facing failures."""

    code = "error"
    status_code = 400
    default_message = "Request could not be completed"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {"success": False, "error": self.code, "message": self.message}


# ---------------------------------------------------------------
# Identity
# ---------------------------------------------------------------
class Unauthenticated(QuizServiceError):
    code = "unauthenticated"
    status_code = 401
    default_message = "Sign in or continue as a guest to play"


class InvalidGuestDetails(QuizServiceError):
    code = "invalid_guest_details"
    status_code = 422
    default_message = "Guest name, email and a 10-digit phone number are required"


# ---------------------------------------------------------------
# Quiz lookup
# ---------------------------------------------------------------
class QuizNotFound(QuizServiceError):
    code = "quiz_not_found"
    status_code = 404
    default_message = "Quiz not found"


class QuizInactive(QuizServiceError):
    code = "quiz_inactive"
    status_code = 409
    default_message = "Quiz is not active"


# ---------------------------------------------------------------
# Order issuance
# ---------------------------------------------------------------
class AlreadyPaid(QuizServiceError):
    code = "already_paid"
    status_code = 409
    default_message = "You have already paid for this quiz"


class PaymentInProgress(QuizServiceError):
    code = "payment_in_progress"
    status_code = 409
    default_message = "A payment for this quiz is already in progress"


class OrderCreationFailed(QuizServiceError):
    code = "order_creation_failed"
    status_code = 502
    default_message = "Could not create payment order, please try again"


class GatewayError(Exception):
    """Raised by the Razorpay client; never shown to clients directly."""


# ---------------------------------------------------------------
# Verification
# ---------------------------------------------------------------
class InvalidSignature(QuizServiceError):
    code = "invalid_signature"
    status_code = 400
    default_message = "Invalid payment signature"


class PaymentRecordNotFound(QuizServiceError):
    code = "payment_record_not_found"
    status_code = 404
    default_message = "No pending payment found for this order"


# ---------------------------------------------------------------
# Submission
# ---------------------------------------------------------------
class PaymentRequired(QuizServiceError):
    code = "payment_required"
    status_code = 402
    default_message = "Invalid or unpaid quiz access"


class InvalidAnswersFormat(QuizServiceError):
    code = "invalid_answers_format"
    status_code = 422
    default_message = "Invalid answers format"


class AlreadySubmitted(QuizServiceError):
    code = "already_submitted"
    status_code = 409
    default_message = "You have already submitted this quiz"
