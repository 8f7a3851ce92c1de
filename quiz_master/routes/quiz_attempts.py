# routes/quiz_attempts.py
from fastapi import APIRouter, HTTPException, Depends
from typing import List
import logging

from ..dependencies import get_storage
from ..models.attempt import QuizAttempt, QuizAttemptCreate
from ..models.user import User
from ..storage import QuizStorage
from .auth import get_current_user

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/quiz-attempts", tags=["quiz-attempts"])

@router.post("", response_model=QuizAttempt, status_code=201)
async def create_quiz_attempt(
    attempt: QuizAttemptCreate,
    current_user: User = Depends(get_current_user),
    storage: QuizStorage = Depends(get_storage),
):
    logger.info(f"Recording attempt on quiz {attempt.quizId}, current_user: {current_user.id}")
    quiz = await storage.get_quiz(attempt.quizId)
    if not quiz:
        raise HTTPException(status_code=404, detail="Quiz not found")
    return await storage.create_quiz_attempt(
        user_id=current_user.id,
        quiz_id=attempt.quizId,
        quiz_data=quiz.quizData,
        score=attempt.score,
    )

@router.get("", response_model=List[QuizAttempt])
async def get_quiz_attempts(
    current_user: User = Depends(get_current_user),
    storage: QuizStorage = Depends(get_storage),
):
    return await storage.get_quiz_attempts(current_user.id)
