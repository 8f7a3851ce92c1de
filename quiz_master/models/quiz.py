# models/quiz.py
from pydantic import BaseModel, TypeAdapter
from datetime import datetime
from typing import Any, List, Optional, Union

class QuizQuestion(BaseModel):
    question: str
    options: List[str]  # Duplicates allowed
    correctAnswer: str  # Should equal exactly one of options
    explanation: str

class Chapter(BaseModel):
    chapterName: str
    quizQuestions: List[QuizQuestion]

class QuizContent(BaseModel):
    subject: str
    chapters: List[Chapter]

# Authored quizzes come in as a single subject or as a list of subjects
QuizPayload = Union[QuizContent, List[QuizContent]]
QuizData = List[QuizContent]

quiz_payload_adapter = TypeAdapter(QuizPayload)

def validate_quiz_data(quiz_data: Any) -> QuizPayload:
    """Validate raw quiz content, keeping the authored shape.

    Raises pydantic.ValidationError when the shape does not match either
    variant, or ValueError for an empty subject list.
    """
    parsed = quiz_payload_adapter.validate_python(quiz_data)
    if isinstance(parsed, list) and not parsed:
        raise ValueError("Quiz must contain at least one subject")
    return parsed

def normalize_quiz_data(quiz_data: Any) -> QuizData:
    """Validate raw quiz content and return it in list form."""
    parsed = validate_quiz_data(quiz_data)
    return parsed if isinstance(parsed, list) else [parsed]

def dump_quiz_data(quiz_data: Any) -> Any:
    """Serialize validated quiz content back to plain JSON-compatible data."""
    if isinstance(quiz_data, list):
        return [dump_quiz_data(item) for item in quiz_data]
    if isinstance(quiz_data, BaseModel):
        return quiz_data.model_dump()
    return quiz_data

class QuizCreate(BaseModel):
    title: str
    description: Optional[str] = None
    subject: str
    quizData: Any  # Checked by normalize_quiz_data so shape errors map to 400

class QuizRecord(BaseModel):
    id: int
    title: str
    description: Optional[str] = None
    subject: str
    quizData: Any  # Stored as authored: object or list
    createdBy: str
    isActive: bool = True
    createdAt: Optional[datetime] = None
    updatedAt: Optional[datetime] = None
