# models/submission.py
from enum import Enum
from pydantic import BaseModel, Field
from datetime import datetime
from typing import List, Optional

class DifficultyLevel(str, Enum):
    easy = "easy"
    medium = "medium"
    hard = "hard"

class MasteryLevel(str, Enum):
    developing = "developing"
    proficient = "proficient"
    mastered = "mastered"

class QuestionResult(BaseModel):
    """Snapshot of one question as it was shown during the attempt."""

    question: str
    correctAnswer: str
    userAnswer: str
    isCorrect: bool
    explanation: str
    options: List[str]

class QuestionAnalytics(BaseModel):
    questionIndex: int = Field(ge=1)  # 1-based
    timeSpent: int = Field(ge=0)  # Seconds
    attempts: int = Field(ge=1)
    isCorrect: bool
    isFirstAttemptCorrect: bool
    difficulty: DifficultyLevel
    confidenceLevel: int = Field(ge=2, le=5)

class LearningObjectiveMastery(BaseModel):
    subject: str
    chapter: str
    masteryLevel: MasteryLevel
    conceptsStruggled: List[int] = []  # 1-based question indices

class SubmissionAnalytics(BaseModel):
    totalTimeSpent: Optional[int] = Field(default=None, ge=0)
    averageTimePerQuestion: Optional[float] = Field(default=None, ge=0)
    difficultyLevel: DifficultyLevel = DifficultyLevel.medium
    completionPercentage: float = Field(default=100.0, ge=0, le=100)
    streakCorrect: int = Field(default=0, ge=0)
    streakIncorrect: int = Field(default=0, ge=0)
    firstAttemptCorrect: int = Field(default=0, ge=0)
    questionsSkipped: int = Field(default=0, ge=0)
    hintsUsed: int = Field(default=0, ge=0)
    reviewCount: int = Field(default=0, ge=0)
    confidenceScore: Optional[float] = Field(default=None, ge=0, le=5)
    learningObjectiveMastery: Optional[LearningObjectiveMastery] = None
    questionAnalytics: List[QuestionAnalytics] = []

class QuizSubmissionCreate(SubmissionAnalytics):
    quizTitle: str
    subject: str
    chapter: str
    totalQuestions: int = Field(ge=0)
    correctAnswers: int = Field(ge=0)
    score: int = Field(ge=0, le=100)  # Percentage
    submissionData: List[QuestionResult]

class QuizSubmission(QuizSubmissionCreate):
    id: int
    userId: str
    submittedAt: Optional[datetime] = None
