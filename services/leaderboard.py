# ===============================================================
# services/leaderboard.py — time-gated quiz leaderboard
# ===============================================================
import logging
from datetime import date, datetime, time, tzinfo

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from config import LEADERBOARD_SIZE, RESULTS_TZ
from helpers import utcnow
from models import DailyQuiz, QuizAttempt

logger = logging.getLogger(__name__)


# ---------------------------------------------------------
# 📆 Publication time (pure)
# ---------------------------------------------------------
def results_published_at(quiz_date, results_time, tz: tzinfo = RESULTS_TZ) -> datetime:
    """
    The instant results go public: ``quiz_date`` at ``results_time`` on the
    wall clock of ``tz`` (fixed +05:30 by default).
    Accepts date/time objects or ISO strings ("2024-01-15", "21:00:00").
    """
    if isinstance(quiz_date, str):
        quiz_date = date.fromisoformat(quiz_date)
    if isinstance(results_time, str):
        results_time = time.fromisoformat(results_time)
    return datetime.combine(quiz_date, results_time.replace(tzinfo=None), tzinfo=tz)


def is_results_published(quiz_date, results_time, now: datetime | None = None, tz: tzinfo = RESULTS_TZ) -> bool:
    """True once ``now`` (timezone-aware) has reached the publication instant."""
    now = now or utcnow()
    if now.tzinfo is None:
        raise ValueError("now must be timezone-aware")
    return now >= results_published_at(quiz_date, results_time, tz)


# ---------------------------------------------------------
# 🏆 Ranked results
# ---------------------------------------------------------
async def get_leaderboard(
    session: AsyncSession,
    quiz: DailyQuiz,
    now: datetime | None = None,
    limit: int = LEADERBOARD_SIZE,
) -> dict:
    """
    Before publication only the publication instant is revealed.
    Afterwards: top ``limit`` attempts by score desc, then time asc
    (faster wins a tie), then earliest submission.
    """
    published_at = results_published_at(quiz.quiz_date, quiz.results_time)
    board = {
        "quiz_id": str(quiz.id),
        "published": is_results_published(quiz.quiz_date, quiz.results_time, now),
        "published_at": published_at.isoformat(),
        "entries": [],
    }
    if not board["published"]:
        return board

    result = await session.execute(
        select(QuizAttempt)
        .where(QuizAttempt.quiz_id == quiz.id, QuizAttempt.submitted_at.is_not(None))
        .order_by(
            QuizAttempt.score.desc(),
            QuizAttempt.time_spent_seconds.asc(),
            QuizAttempt.submitted_at.asc(),
        )
        .limit(limit)
    )
    board["entries"] = [
        {
            "rank": position,
            "display_name": attempt.display_name or "Anonymous",
            "is_guest": attempt.is_anonymous,
            "score": attempt.score,
            "total_questions": attempt.total_questions,
            "time_spent_seconds": attempt.time_spent_seconds,
        }
        for position, attempt in enumerate(result.scalars().all(), start=1)
    ]
    logger.info(f"🏆 Leaderboard served for quiz {quiz.id}: {len(board['entries'])} entries")
    return board
