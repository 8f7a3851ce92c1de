# storage.py
import json
import logging
from typing import Any, Dict, List, Optional

from sqlalchemy import func, insert, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine

from .database import metadata, quiz_attempts, quiz_submissions, quizzes, users
from .models.attempt import QuizAttempt
from .models.quiz import QuizRecord, dump_quiz_data
from .models.submission import QuizSubmission, QuizSubmissionCreate
from .models.user import ProviderUser, User

logger = logging.getLogger(__name__)

class StorageError(SQLAlchemyError):
    """A stored row could not be read back."""

def _as_list(value: Any) -> List[Any]:
    """Return stored JSON content in list form (quiz snapshots, submission rows)."""
    if isinstance(value, str):
        try:
            value = json.loads(value)
        except json.JSONDecodeError as e:
            raise StorageError(f"Stored JSON could not be decoded: {e}") from e
    if value is None:
        return []
    return value if isinstance(value, list) else [value]

def _user_from_row(row) -> User:
    return User(
        id=row.id,
        email=row.email,
        username=row.username,
        createdAt=row.created_at,
        updatedAt=row.updated_at,
    )

def _quiz_from_row(row) -> QuizRecord:
    return QuizRecord(
        id=row.id,
        title=row.title,
        description=row.description,
        subject=row.subject,
        quizData=row.quiz_data,
        createdBy=row.created_by,
        isActive=bool(row.is_active),
        createdAt=row.created_at,
        updatedAt=row.updated_at,
    )

def _submission_from_row(row) -> QuizSubmission:
    return QuizSubmission(
        id=row.id,
        userId=row.user_id,
        quizTitle=row.quiz_title,
        subject=row.subject,
        chapter=row.chapter,
        totalQuestions=row.total_questions,
        correctAnswers=row.correct_answers,
        score=row.score,
        submissionData=_as_list(row.submission_data),
        submittedAt=row.submitted_at,
        totalTimeSpent=row.total_time_spent,
        averageTimePerQuestion=row.average_time_per_question,
        difficultyLevel=row.difficulty_level or "medium",
        completionPercentage=row.completion_percentage if row.completion_percentage is not None else 100.0,
        streakCorrect=row.streak_correct or 0,
        streakIncorrect=row.streak_incorrect or 0,
        firstAttemptCorrect=row.first_attempt_correct or 0,
        questionsSkipped=row.questions_skipped or 0,
        hintsUsed=row.hints_used or 0,
        reviewCount=row.review_count or 0,
        confidenceScore=row.confidence_score,
        learningObjectiveMastery=row.learning_objective_mastery or None,
        questionAnalytics=_as_list(row.question_analytics),
    )

class QuizStorage:
    """Owns every durable row: users, quizzes, attempts and submissions.

    Each write is a single INSERT or UPDATE statement, so there is no
    multi-statement transaction to protect.
    """

    def __init__(self, engine: AsyncEngine) -> None:
        self.engine = engine

    async def create_tables(self) -> None:
        async with self.engine.begin() as conn:
            await conn.run_sync(metadata.create_all)

    async def close(self) -> None:
        await self.engine.dispose()

    async def table_counts(self) -> Dict[str, int]:
        counts = {}
        async with self.engine.connect() as conn:
            for table in metadata.sorted_tables:
                result = await conn.execute(select(func.count()).select_from(table))
                counts[table.name] = result.scalar_one()
        return counts

    # --- Users ---

    async def get_user(self, user_id: str) -> Optional[User]:
        async with self.engine.connect() as conn:
            result = await conn.execute(select(users).where(users.c.id == user_id))
            row = result.first()
        return _user_from_row(row) if row else None

    async def get_user_by_email(self, email: str) -> Optional[User]:
        async with self.engine.connect() as conn:
            result = await conn.execute(select(users).where(users.c.email == email))
            row = result.first()
        return _user_from_row(row) if row else None

    async def get_user_by_username(self, username: str) -> Optional[User]:
        async with self.engine.connect() as conn:
            result = await conn.execute(select(users).where(users.c.username == username))
            row = result.first()
        return _user_from_row(row) if row else None

    async def create_user(self, user_id: str, email: str, username: Optional[str] = None) -> User:
        if not user_id:
            raise ValueError("User ID is required")
        async with self.engine.begin() as conn:
            result = await conn.execute(
                insert(users)
                .values(id=user_id, email=email, username=username or None)
                .returning(*users.c)
            )
            row = result.one()
        logger.info(f"Created user {user_id}")
        return _user_from_row(row)

    async def update_username(self, user_id: str, username: str) -> Optional[User]:
        async with self.engine.begin() as conn:
            result = await conn.execute(
                update(users)
                .where(users.c.id == user_id)
                .values(username=username, updated_at=func.now())
                .returning(*users.c)
            )
            row = result.first()
        return _user_from_row(row) if row else None

    async def sync_user(self, provider_user: ProviderUser) -> User:
        """Return the local row for a verified identity, creating it on first sight."""
        user = await self.get_user(provider_user.id)
        if user:
            return user
        try:
            return await self.create_user(provider_user.id, provider_user.email, provider_user.username)
        except IntegrityError:
            # A concurrent request may have created the row first
            user = await self.get_user(provider_user.id)
            if user is None:
                raise
            return user

    # --- Quizzes ---

    async def create_quiz(
        self,
        title: str,
        subject: str,
        quiz_data: Any,
        created_by: str,
        description: Optional[str] = None,
    ) -> QuizRecord:
        async with self.engine.begin() as conn:
            result = await conn.execute(
                insert(quizzes)
                .values(
                    title=title,
                    description=description or None,
                    subject=subject,
                    quiz_data=dump_quiz_data(quiz_data),
                    created_by=created_by,
                    is_active=True,
                )
                .returning(*quizzes.c)
            )
            row = result.one()
        logger.info(f"Created quiz {row.id} '{title}' by {created_by}")
        return _quiz_from_row(row)

    async def get_quizzes(self) -> List[QuizRecord]:
        async with self.engine.connect() as conn:
            result = await conn.execute(
                select(quizzes)
                .where(quizzes.c.is_active.is_(True))
                .order_by(quizzes.c.created_at.desc(), quizzes.c.id.desc())
            )
            rows = result.all()
        return [_quiz_from_row(row) for row in rows]

    async def get_quiz(self, quiz_id: int) -> Optional[QuizRecord]:
        async with self.engine.connect() as conn:
            result = await conn.execute(
                select(quizzes).where(quizzes.c.id == quiz_id, quizzes.c.is_active.is_(True))
            )
            row = result.first()
        return _quiz_from_row(row) if row else None

    async def delete_quiz(self, quiz_id: int, user_id: str) -> bool:
        """Soft delete. Any caller may delete any active quiz."""
        async with self.engine.begin() as conn:
            result = await conn.execute(
                update(quizzes)
                .where(quizzes.c.id == quiz_id, quizzes.c.is_active.is_(True))
                .values(is_active=False, updated_at=func.now())
            )
            deleted = result.rowcount > 0
        logger.info(f"Delete quiz {quiz_id} requested by {user_id}: {'deleted' if deleted else 'not found'}")
        return deleted

    # --- Attempts ---

    async def create_quiz_attempt(self, user_id: str, quiz_id: int, quiz_data: Any, score: int) -> QuizAttempt:
        snapshot = _as_list(dump_quiz_data(quiz_data))
        async with self.engine.begin() as conn:
            result = await conn.execute(
                insert(quiz_attempts)
                .values(user_id=user_id, quiz_id=quiz_id, quiz_data=snapshot, score=score)
                .returning(*quiz_attempts.c)
            )
            row = result.one()
        return QuizAttempt(
            id=row.id,
            userId=row.user_id,
            quizId=row.quiz_id,
            quizData=_as_list(row.quiz_data),
            score=row.score,
            timestamp=row.timestamp,
        )

    async def get_quiz_attempts(self, user_id: str) -> List[QuizAttempt]:
        query = (
            select(
                quiz_attempts,
                quizzes.c.title.label("quiz_title"),
                quizzes.c.subject.label("quiz_subject"),
            )
            .select_from(quiz_attempts.outerjoin(quizzes, quiz_attempts.c.quiz_id == quizzes.c.id))
            .where(quiz_attempts.c.user_id == user_id)
            .order_by(quiz_attempts.c.timestamp.desc(), quiz_attempts.c.id.desc())
        )
        async with self.engine.connect() as conn:
            result = await conn.execute(query)
            rows = result.all()
        return [
            QuizAttempt(
                id=row.id,
                userId=row.user_id,
                quizId=row.quiz_id,
                quizData=_as_list(row.quiz_data),
                score=row.score,
                timestamp=row.timestamp,
                quizTitle=row.quiz_title,
                quizSubject=row.quiz_subject,
            )
            for row in rows
        ]

    # --- Submissions ---

    async def create_quiz_submission(self, user_id: str, submission: QuizSubmissionCreate) -> QuizSubmission:
        data = submission.model_dump(mode="json")
        async with self.engine.begin() as conn:
            result = await conn.execute(
                insert(quiz_submissions)
                .values(
                    user_id=user_id,
                    quiz_title=data["quizTitle"],
                    subject=data["subject"],
                    chapter=data["chapter"],
                    total_questions=data["totalQuestions"],
                    correct_answers=data["correctAnswers"],
                    score=data["score"],
                    submission_data=data["submissionData"],
                    total_time_spent=data["totalTimeSpent"],
                    average_time_per_question=data["averageTimePerQuestion"],
                    difficulty_level=data["difficultyLevel"],
                    completion_percentage=data["completionPercentage"],
                    streak_correct=data["streakCorrect"],
                    streak_incorrect=data["streakIncorrect"],
                    first_attempt_correct=data["firstAttemptCorrect"],
                    questions_skipped=data["questionsSkipped"],
                    hints_used=data["hintsUsed"],
                    review_count=data["reviewCount"],
                    confidence_score=data["confidenceScore"],
                    learning_objective_mastery=data["learningObjectiveMastery"],
                    question_analytics=data["questionAnalytics"],
                )
                .returning(*quiz_submissions.c)
            )
            row = result.one()
        logger.info(f"Stored submission {row.id} for user {user_id} with score {row.score}")
        return _submission_from_row(row)

    async def get_quiz_submissions(self, user_id: str) -> List[QuizSubmission]:
        async with self.engine.connect() as conn:
            result = await conn.execute(
                select(quiz_submissions)
                .where(quiz_submissions.c.user_id == user_id)
                .order_by(quiz_submissions.c.submitted_at.desc(), quiz_submissions.c.id.desc())
            )
            rows = result.all()
        return [_submission_from_row(row) for row in rows]

    async def get_quiz_submission(self, submission_id: int) -> Optional[QuizSubmission]:
        """Fetch by id without any ownership filter; callers check userId."""
        async with self.engine.connect() as conn:
            result = await conn.execute(select(quiz_submissions).where(quiz_submissions.c.id == submission_id))
            row = result.first()
        return _submission_from_row(row) if row else None
