# database.py
from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    MetaData,
    Numeric,
    String,
    Table,
    Text,
    func,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

metadata = MetaData()

# JSONB on PostgreSQL, plain JSON text elsewhere
JSONType = JSON().with_variant(JSONB(), "postgresql")

users = Table(
    "users",
    metadata,
    Column("id", String(64), primary_key=True),  # Identity provider subject
    Column("email", Text, nullable=False, unique=True),
    Column("username", Text, unique=True),
    Column("created_at", DateTime(timezone=True), server_default=func.now()),
    Column("updated_at", DateTime(timezone=True), server_default=func.now()),
)

quizzes = Table(
    "quizzes",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("title", Text, nullable=False),
    Column("description", Text),
    Column("subject", Text, nullable=False),
    Column("quiz_data", JSONType, nullable=False),
    Column("created_by", String(64), ForeignKey("users.id"), nullable=False),
    Column("created_at", DateTime(timezone=True), server_default=func.now()),
    Column("updated_at", DateTime(timezone=True), server_default=func.now()),
    Column("is_active", Boolean, nullable=False, default=True),
)

quiz_attempts = Table(
    "quiz_attempts",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("user_id", String(64), ForeignKey("users.id"), nullable=False),
    Column("quiz_id", Integer, ForeignKey("quizzes.id"), nullable=False),
    Column("quiz_data", JSONType, nullable=False),  # Snapshot at attempt time
    Column("score", Integer, nullable=False),
    Column("timestamp", DateTime(timezone=True), server_default=func.now()),
)

quiz_submissions = Table(
    "quiz_submissions",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("user_id", String(64), ForeignKey("users.id"), nullable=False),
    Column("quiz_title", Text, nullable=False),
    Column("subject", Text, nullable=False),
    Column("chapter", Text, nullable=False),
    Column("total_questions", Integer, nullable=False),
    Column("correct_answers", Integer, nullable=False),
    Column("score", Integer, nullable=False),
    Column("submission_data", JSONType, nullable=False),
    Column("submitted_at", DateTime(timezone=True), server_default=func.now()),
    # Analytics
    Column("total_time_spent", Integer),
    Column("average_time_per_question", Numeric(10, 2, asdecimal=False)),
    Column("difficulty_level", Text, default="medium"),
    Column("completion_percentage", Numeric(5, 2, asdecimal=False), default=100.0),
    Column("streak_correct", Integer, default=0),
    Column("streak_incorrect", Integer, default=0),
    Column("first_attempt_correct", Integer, default=0),
    Column("questions_skipped", Integer, default=0),
    Column("hints_used", Integer, default=0),
    Column("review_count", Integer, default=0),
    Column("confidence_score", Numeric(5, 2, asdecimal=False)),
    Column("learning_objective_mastery", JSONType),
    Column("question_analytics", JSONType),
)

def create_engine(database_url: str, pool_size: int = 1) -> AsyncEngine:
    """Build the async engine handed to QuizStorage at startup."""
    options = {}
    if not database_url.startswith("sqlite"):
        options["pool_size"] = pool_size
        options["pool_pre_ping"] = True
    return create_async_engine(database_url, **options)
