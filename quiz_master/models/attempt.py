# models/attempt.py
from pydantic import BaseModel, Field
from datetime import datetime
from typing import Any, List, Optional

class QuizAttemptCreate(BaseModel):
    quizId: int
    score: int = Field(ge=0, le=100)

class QuizAttempt(BaseModel):
    id: int
    userId: str
    quizId: int
    quizData: List[Any]  # Snapshot of the quiz, always in list form
    score: int
    timestamp: Optional[datetime] = None
    quizTitle: Optional[str] = None  # Joined from quizzes when listing
    quizSubject: Optional[str] = None
