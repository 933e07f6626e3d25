# ===============================================================
# handlers/quiz.py — quiz content and submission routes
# ===============================================================
import logging

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from db import get_session
from handlers.deps import current_identity
from schemas import SubmitQuizRequest
from services.attempts import submit_attempt
from services.identity import Identity
from services.leaderboard import results_published_at
from services.quizzes import count_questions, get_paid_questions, get_player_status, get_today_quiz

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/quizzes", tags=["quizzes"])


@router.get("/today")
async def today_quiz(session: AsyncSession = Depends(get_session)):
    """Public summary of today's quiz. Never includes questions."""
    quiz = await get_today_quiz(session)
    return {
        "success": True,
        "quiz": {
            "id": str(quiz.id),
            "quiz_date": quiz.quiz_date.isoformat(),
            "title": quiz.title,
            "description": quiz.description,
            "entry_fee": str(quiz.entry_fee),
            "prize_amount": str(quiz.prize_amount),
            "total_questions": await count_questions(session, quiz.id),
            "results_published_at": results_published_at(quiz.quiz_date, quiz.results_time).isoformat(),
        },
    }


@router.get("/{quiz_id}/status")
async def player_status(
    quiz_id: str,
    identity: Identity = Depends(current_identity),
    session: AsyncSession = Depends(get_session),
):
    status = await get_player_status(session, quiz_id, identity)
    return {"success": True, **status}


@router.get("/{quiz_id}/questions")
async def paid_questions(
    quiz_id: str,
    identity: Identity = Depends(current_identity),
    session: AsyncSession = Depends(get_session),
):
    questions = await get_paid_questions(session, quiz_id, identity)
    # correct_option stays server-side
    return {
        "success": True,
        "questions": [
            {
                "id": q.id,
                "order": q.question_order,
                "question": q.question_text,
                "options": q.options,
                "category": q.category,
            }
            for q in questions
        ],
    }


@router.post("/{quiz_id}/submit")
async def submit_quiz(
    quiz_id: str,
    body: SubmitQuizRequest,
    identity: Identity = Depends(current_identity),
    session: AsyncSession = Depends(get_session),
):
    result = await submit_attempt(
        session,
        quiz_id,
        body.payment_record_id,
        identity,
        body.answers,
        body.time_spent_seconds,
    )
    attempt = result["attempt"]
    return {
        "success": True,
        "attempt_id": str(attempt.id),
        "score": result["score"],
        "total_questions": result["total_questions"],
        "time_spent_seconds": attempt.time_spent_seconds,
        "submitted_at": attempt.submitted_at.isoformat(),
    }
