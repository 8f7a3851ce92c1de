# routes/quiz_submissions.py
from fastapi import APIRouter, HTTPException, Depends
from typing import List
import logging

from ..dependencies import get_storage
from ..models.submission import QuizSubmission, QuizSubmissionCreate
from ..models.user import User
from ..storage import QuizStorage
from .auth import get_current_user

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/quiz-submissions", tags=["quiz-submissions"])

@router.post("", response_model=QuizSubmission, status_code=201)
async def create_quiz_submission(
    submission: QuizSubmissionCreate,
    current_user: User = Depends(get_current_user),
    storage: QuizStorage = Depends(get_storage),
):
    logger.info(f"Submission '{submission.quizTitle}' score={submission.score}, current_user: {current_user.id}")
    if submission.correctAnswers > submission.totalQuestions:
        raise HTTPException(status_code=400, detail="correctAnswers cannot exceed totalQuestions")
    return await storage.create_quiz_submission(current_user.id, submission)

@router.get("", response_model=List[QuizSubmission])
async def get_quiz_submissions(
    current_user: User = Depends(get_current_user),
    storage: QuizStorage = Depends(get_storage),
):
    return await storage.get_quiz_submissions(current_user.id)

@router.get("/{submission_id}", response_model=QuizSubmission)
async def get_quiz_submission(
    submission_id: int,
    current_user: User = Depends(get_current_user),
    storage: QuizStorage = Depends(get_storage),
):
    submission = await storage.get_quiz_submission(submission_id)
    if not submission:
        raise HTTPException(status_code=404, detail="Quiz submission not found")
    if submission.userId != current_user.id:
        logger.warning(f"User {current_user.id} denied access to submission {submission_id}")
        raise HTTPException(status_code=403, detail="Access denied")
    return submission
