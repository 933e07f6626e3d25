# ================================================================
# services/attempts.py
# ================================================================
"""
Attempt Scorer & Recorder.

The client only ever sends its chosen options and a claimed duration.
The score is recomputed here from the stored answer key, and the
(quiz, identity) pair can hold exactly one attempt: a second submission
is rejected with AlreadySubmitted, never merged or overwritten.
"""
import logging
import math
from collections.abc import Mapping

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from config import MAX_TIME_SPENT_SECONDS
from errors import (
    AlreadySubmitted,
    InvalidAnswersFormat,
    PaymentRequired,
    QuizNotFound,
)
from helpers import parse_uuid, utcnow
from models import OPTION_KEYS, Payment, QuizAttempt, QuizQuestion, PAYMENT_SUCCESS
from services.identity import Identity
from services.quizzes import find_attempt

logger = logging.getLogger(__name__)


# ---------------------------------------------------------
# 🧮 Pure helpers
# ---------------------------------------------------------
def sanitize_answers(answers, questions) -> dict[str, str]:
    """
    Keep only answers that target a real question with a value in A-D.
    Anything else is dropped silently; a non-mapping is rejected.
    """
    if not isinstance(answers, Mapping):
        raise InvalidAnswersFormat()

    cleaned = {}
    for q in questions:
        key = str(q.id)
        choice = answers.get(key, answers.get(q.id))
        if isinstance(choice, str) and choice in OPTION_KEYS:
            cleaned[key] = choice
    return cleaned


def score_answers(answers: dict[str, str], questions) -> int:
    return sum(1 for q in questions if answers.get(str(q.id)) == q.correct_option)


def clamp_time_spent(seconds, upper: int = MAX_TIME_SPENT_SECONDS) -> int:
    """-5 → 0, 999999 → 86400, garbage → 0."""
    try:
        value = float(seconds)
    except (TypeError, ValueError):
        return 0
    if math.isnan(value):
        return 0
    return int(min(max(value, 0), upper))


# ---------------------------------------------------------
# 📝 Submit
# ---------------------------------------------------------
async def submit_attempt(
    session: AsyncSession,
    quiz_id,
    payment_record_id,
    identity: Identity,
    answers,
    time_spent_seconds,
) -> dict:
    quiz_uuid = parse_uuid(quiz_id)
    payment_uuid = parse_uuid(payment_record_id)
    if quiz_uuid is None or payment_uuid is None:
        raise PaymentRequired()

    # ✅ 1. Access gate: a success payment for this quiz and this identity
    result = await session.execute(
        select(Payment).where(
            Payment.id == payment_uuid,
            Payment.quiz_id == quiz_uuid,
            Payment.identity_key == identity.key,
            Payment.status == PAYMENT_SUCCESS,
        )
    )
    payment = result.scalar_one_or_none()
    if payment is None:
        logger.warning(f"🔒 Submission without a successful payment by {identity} for quiz {quiz_uuid}")
        raise PaymentRequired()

    # ✅ 2. Authoritative answer key
    result = await session.execute(
        select(QuizQuestion)
        .where(QuizQuestion.quiz_id == quiz_uuid)
        .order_by(QuizQuestion.question_order)
    )
    questions = list(result.scalars().all())
    if not questions:
        raise QuizNotFound("Quiz has no questions")

    # ✅ 3. One terminal attempt per (quiz, identity)
    if await find_attempt(session, quiz_uuid, identity) is not None:
        raise AlreadySubmitted()

    cleaned = sanitize_answers(answers, questions)
    score = score_answers(cleaned, questions)

    attempt = QuizAttempt(
        quiz_id=quiz_uuid,
        payment_id=payment.id,
        identity_key=identity.key,
        user_id=identity.user_id,
        device_fingerprint=identity.device_fingerprint,
        is_anonymous=identity.is_anonymous,
        display_name=payment.guest_name or identity.display_name,
        answers=cleaned,
        score=score,
        total_questions=len(questions),
        time_spent_seconds=clamp_time_spent(time_spent_seconds),
        submitted_at=utcnow(),
    )
    session.add(attempt)
    try:
        await session.commit()
    except IntegrityError:
        await session.rollback()
        logger.info(f"🔁 Concurrent second submission rejected for {identity} on quiz {quiz_uuid}")
        raise AlreadySubmitted()

    logger.info(
        f"🏁 Attempt recorded: quiz={quiz_uuid} {identity} "
        f"score={score}/{len(questions)} time={attempt.time_spent_seconds}s"
    )
    return {"attempt": attempt, "score": score, "total_questions": len(questions)}
