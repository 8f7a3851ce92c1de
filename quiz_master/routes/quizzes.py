# routes/quizzes.py
from fastapi import APIRouter, HTTPException, Depends
from pydantic import ValidationError
from typing import List
import logging

from ..dependencies import get_storage
from ..models.quiz import QuizCreate, QuizRecord, validate_quiz_data
from ..models.user import User
from ..storage import QuizStorage
from .auth import get_current_user

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/quizzes", tags=["quizzes"])

def _validation_errors(error: ValidationError) -> List[dict]:
    return [
        {"path": list(err["loc"]), "message": err["msg"], "type": err["type"]}
        for err in error.errors()
    ]

@router.post("", response_model=QuizRecord, status_code=201)
async def create_quiz(
    quiz: QuizCreate,
    current_user: User = Depends(get_current_user),
    storage: QuizStorage = Depends(get_storage),
):
    logger.info(f"Creating quiz '{quiz.title}', current_user: {current_user.id}")
    try:
        quiz_data = validate_quiz_data(quiz.quizData)
    except ValidationError as e:
        raise HTTPException(
            status_code=400,
            detail={"message": "Invalid quiz data format", "errors": _validation_errors(e)},
        )
    except ValueError as e:
        raise HTTPException(
            status_code=400,
            detail={"message": "Invalid quiz data format", "errors": [{"path": [], "message": str(e)}]},
        )
    return await storage.create_quiz(
        title=quiz.title,
        description=quiz.description,
        subject=quiz.subject,
        quiz_data=quiz_data,
        created_by=current_user.id,
    )

@router.get("", response_model=List[QuizRecord])
async def get_quizzes(storage: QuizStorage = Depends(get_storage)):
    return await storage.get_quizzes()

@router.get("/{quiz_id}", response_model=QuizRecord)
async def get_quiz(
    quiz_id: int,
    current_user: User = Depends(get_current_user),
    storage: QuizStorage = Depends(get_storage),
):
    quiz = await storage.get_quiz(quiz_id)
    if not quiz:
        raise HTTPException(status_code=404, detail="Quiz not found")
    return quiz

@router.delete("/{quiz_id}")
async def delete_quiz(
    quiz_id: int,
    current_user: User = Depends(get_current_user),
    storage: QuizStorage = Depends(get_storage),
):
    # No creator check: any authenticated user may retire any quiz
    if not await storage.delete_quiz(quiz_id, current_user.id):
        raise HTTPException(status_code=404, detail="Quiz not found or already deleted")
    return {"message": "Quiz deleted successfully"}
