# ==================================================================
# services/quizzes.py — quiz lookup and payment-gated content
# ==================================================================
import logging
from datetime import datetime

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from config import RESULTS_TZ
from errors import QuizNotFound, QuizInactive, PaymentRequired
from helpers import parse_uuid, utcnow
from models import DailyQuiz, QuizQuestion, Payment, QuizAttempt, PAYMENT_SUCCESS
from services.identity import Identity
from services.leaderboard import results_published_at

logger = logging.getLogger(__name__)


async def get_quiz(session: AsyncSession, quiz_id) -> DailyQuiz:
    """Fetch a quiz by id or raise QuizNotFound."""
    quiz_uuid = parse_uuid(quiz_id)
    if quiz_uuid is None:
        raise QuizNotFound()
    quiz = await session.get(DailyQuiz, quiz_uuid)
    if quiz is None:
        raise QuizNotFound()
    return quiz


async def get_active_quiz(session: AsyncSession, quiz_id) -> DailyQuiz:
    quiz = await get_quiz(session, quiz_id)
    if not quiz.is_active:
        raise QuizInactive()
    return quiz


async def get_today_quiz(session: AsyncSession, now: datetime | None = None) -> DailyQuiz:
    """The active quiz for today's civil date in the results timezone."""
    today = (now or utcnow()).astimezone(RESULTS_TZ).date()
    result = await session.execute(
        select(DailyQuiz).where(DailyQuiz.quiz_date == today, DailyQuiz.is_active.is_(True))
    )
    quiz = result.scalars().first()
    if quiz is None:
        raise QuizNotFound("No quiz available today")
    return quiz


async def count_questions(session: AsyncSession, quiz_id) -> int:
    result = await session.execute(
        select(func.count(QuizQuestion.id)).where(QuizQuestion.quiz_id == quiz_id)
    )
    return result.scalar() or 0


async def find_success_payment(session: AsyncSession, quiz_id, identity: Identity) -> Payment | None:
    result = await session.execute(
        select(Payment).where(
            Payment.quiz_id == quiz_id,
            Payment.identity_key == identity.key,
            Payment.status == PAYMENT_SUCCESS,
        )
    )
    return result.scalar_one_or_none()


async def find_attempt(session: AsyncSession, quiz_id, identity: Identity) -> QuizAttempt | None:
    result = await session.execute(
        select(QuizAttempt).where(
            QuizAttempt.quiz_id == quiz_id,
            QuizAttempt.identity_key == identity.key,
        )
    )
    return result.scalar_one_or_none()


async def get_paid_questions(session: AsyncSession, quiz_id, identity: Identity) -> list[QuizQuestion]:
    """
    Questions for a quiz the identity has paid for.

    Callers must serialise these without ``correct_option``; the answer key
    only ever leaves the database inside the scoring step.
    """
    quiz = await get_active_quiz(session, quiz_id)
    if await find_success_payment(session, quiz.id, identity) is None:
        logger.info(f"🔒 Question fetch without payment by {identity} for quiz {quiz.id}")
        raise PaymentRequired()

    result = await session.execute(
        select(QuizQuestion)
        .where(QuizQuestion.quiz_id == quiz.id)
        .order_by(QuizQuestion.question_order)
    )
    questions = list(result.scalars().all())
    if not questions:
        raise QuizNotFound("Quiz has no questions yet")
    return questions


async def get_player_status(
    session: AsyncSession,
    quiz_id,
    identity: Identity,
    now: datetime | None = None,
) -> dict:
    """Has this identity paid, played, and are results out yet?"""
    quiz = await get_quiz(session, quiz_id)
    payment = await find_success_payment(session, quiz.id, identity)
    attempt = await find_attempt(session, quiz.id, identity)
    published_at = results_published_at(quiz.quiz_date, quiz.results_time)

    return {
        "quiz_id": str(quiz.id),
        "paid": payment is not None,
        "payment_record_id": str(payment.id) if payment else None,
        "submitted": attempt is not None,
        "score": attempt.score if attempt else None,
        "total_questions": attempt.total_questions if attempt else None,
        "results_published": (now or utcnow()) >= published_at,
        "results_published_at": published_at.isoformat(),
    }
