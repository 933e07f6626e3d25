# ===============================================================
# handlers/leaderboard.py — public, time-gated leaderboard
# ===============================================================
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from db import get_session
from services.leaderboard import get_leaderboard
from services.quizzes import get_quiz

router = APIRouter(prefix="/api/quizzes", tags=["leaderboard"])


@router.get("/{quiz_id}/leaderboard")
async def quiz_leaderboard(quiz_id: str, session: AsyncSession = Depends(get_session)):
    quiz = await get_quiz(session, quiz_id)
    board = await get_leaderboard(session, quiz)
    return {"success": True, **board}
