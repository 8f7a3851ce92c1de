# cli.py
import argparse
import asyncio
import logging
from typing import Callable, Optional

import httpx

from .client import QuizMasterClient
from .config import Settings
from .database import create_engine
from .models.user import ProviderUser
from .quiz_session import QuizSession, QuizSessionError, SessionState, SubmissionDurability, SubmissionFailed
from .storage import QuizStorage

logger = logging.getLogger(__name__)

DEMO_USER = ProviderUser(
    id="550e8400-e29b-41d4-a716-446655440000",
    email="test@example.com",
    username="testuser",
)

DEMO_QUIZ = {
    "subject": "Mathematics",
    "chapters": [
        {
            "chapterName": "Basic Arithmetic",
            "quizQuestions": [
                {
                    "question": "What is 2 + 2?",
                    "options": ["3", "4", "5", "6"],
                    "correctAnswer": "4",
                    "explanation": "2 + 2 equals 4",
                },
                {
                    "question": "What is 5 × 3?",
                    "options": ["12", "15", "18", "20"],
                    "correctAnswer": "15",
                    "explanation": "5 × 3 equals 15",
                },
            ],
        }
    ],
}

HELP = "Enter an option number to answer, n=next, p=previous, r=reveal answer, s=submit, q=quit"

def _choose(prompt: str, names, ask: Callable[[str], str], out: Callable[[str], None]) -> str:
    for i, name in enumerate(names, start=1):
        out(f"  {i}. {name}")
    while True:
        reply = ask(f"{prompt} [1-{len(names)}]: ").strip()
        if reply.isdigit() and 1 <= int(reply) <= len(names):
            return names[int(reply) - 1]
        out("Invalid choice")

def run_quiz(session: QuizSession, ask: Callable[[str], str] = input, out: Callable[[str], None] = print) -> Optional[int]:
    """Drive a session from the terminal. Returns the score, or None if the taker quit."""
    if session.state == SessionState.selecting:
        if len(session.subjects) > 1 and not session.subject_locked:
            session.select_subject(_choose("Subject", [s.subject for s in session.subjects], ask, out))
        chapters = [c.chapterName for c in session.current_subject.chapters]
        if len(chapters) > 1:
            session.select_chapter(_choose("Chapter", chapters, ask, out))

    out(HELP)
    while session.state != SessionState.complete:
        question = session.current_question
        if question is None:
            out("This chapter has no questions.")
        else:
            out(f"\nQuestion {session.current_index + 1} of {len(session.questions)}")
            out(question.question)
            selected = session.answers.get(session.current_index)
            for i, option in enumerate(question.options, start=1):
                marker = "*" if option == selected else " "
                out(f" {marker}{i}. {option}")
            if session.show_answer:
                out(f"Correct answer: {question.correctAnswer}")
                out(f"Explanation: {question.explanation}")

        command = ask("> ").strip().lower()
        try:
            if command.isdigit() and question is not None:
                position = int(command) - 1
                if not 0 <= position < len(question.options):
                    out("No such option")
                    continue
                session.answer(question.options[position])
            elif command == "n":
                session.go_next()
            elif command == "p":
                session.go_previous()
            elif command == "r":
                session.reveal_answer()
            elif command == "s":
                session.submit()
            elif command == "q":
                return None
            else:
                out(HELP)
        except QuizSessionError as e:
            out(str(e))
        except SubmissionFailed as e:
            out(f"Results could not be saved: {e}")
            out("Press s to try again or q to quit.")

    result = session.result
    out(f"\nFinal Score: {result.score}%")
    for i, item in enumerate(result.submissionData, start=1):
        mark = "correct" if item.isCorrect else "wrong"
        out(f"Question {i}: your answer {item.userAnswer} ({mark}), correct answer {item.correctAnswer}")
    if session.persisted is False:
        out("Results could not be saved.")
    return result.score

async def _with_storage(settings: Settings, action):
    storage = QuizStorage(create_engine(settings.database_url, settings.db_pool_size))
    try:
        await storage.create_tables()
        return await action(storage)
    finally:
        await storage.close()

async def _seed(storage: QuizStorage):
    user = await storage.sync_user(DEMO_USER)
    quiz = await storage.create_quiz(
        title="Basic Math Quiz",
        description="A simple quiz to test basic arithmetic skills",
        subject="Mathematics",
        quiz_data=DEMO_QUIZ,
        created_by=user.id,
    )
    logger.info(f"Test quiz created: {quiz.id}")
    return quiz

async def _counts(storage: QuizStorage):
    return await storage.table_counts()

def take_quiz(
    client: QuizMasterClient,
    quiz_id: int,
    durability: str,
    ask: Callable[[str], str] = input,
    out: Callable[[str], None] = print,
) -> Optional[int]:
    record = client.get_quiz(quiz_id)
    session = QuizSession(record.quizData, submitter=client.submit, durability=SubmissionDurability(durability))
    score = run_quiz(session, ask=ask, out=out)
    if score is not None:
        try:
            client.record_attempt(quiz_id, score)
        except httpx.HTTPError as e:
            logger.error(f"Failed to record attempt on quiz {quiz_id}: {e}")
            out("Attempt could not be recorded.")
    return score

def take(settings: Settings, quiz_id: int, token: str, durability: str) -> Optional[int]:
    with QuizMasterClient(settings.api_url, token=token) as client:
        return take_quiz(client, quiz_id, durability)

def main(argv=None):
    parser = argparse.ArgumentParser(prog="quiz-master", description="Quiz Master service and tools")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    commands = parser.add_subparsers(dest="command", required=True)

    serve = commands.add_parser("serve", help="Run the API server")
    serve.add_argument("--host")
    serve.add_argument("--port", type=int)

    commands.add_parser("init-db", help="Create tables if they do not exist")
    commands.add_parser("check-db", help="Show row counts per table")
    commands.add_parser("seed", help="Add a demo user and the Basic Math Quiz")

    take_cmd = commands.add_parser("take", help="Take a quiz in the terminal")
    take_cmd.add_argument("quiz_id", type=int)
    take_cmd.add_argument("--token", required=True, help="Bearer token from the identity provider")
    take_cmd.add_argument(
        "--durability",
        choices=[d.value for d in SubmissionDurability],
        help="Whether results must be stored before they are shown",
    )

    args = parser.parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO)
    settings = Settings.from_env()

    if args.command == "serve":
        import uvicorn

        uvicorn.run("quiz_master.main:app", host=args.host or settings.host, port=args.port or settings.port)
    elif args.command == "init-db":
        asyncio.run(_with_storage(settings, lambda storage: storage.create_tables()))
        print("Tables created")
    elif args.command == "check-db":
        counts = asyncio.run(_with_storage(settings, _counts))
        for table, count in counts.items():
            print(f"{table}: {count}")
    elif args.command == "seed":
        quiz = asyncio.run(_with_storage(settings, _seed))
        print(f"Created quiz {quiz.id}: {quiz.title}")
    elif args.command == "take":
        take(settings, args.quiz_id, args.token, args.durability or settings.submission_durability)

if __name__ == "__main__":
    main()
