"""Shared fixtures: an isolated SQLite database per test and locally signed tokens."""

import asyncio
import time

import pytest
from fastapi.testclient import TestClient
from jose import jwt

from quiz_master.config import Settings
from quiz_master.database import create_engine
from quiz_master.main import create_app
from quiz_master.storage import QuizStorage

JWT_SECRET = "test-secret-with-enough-length-for-hs256"

ARITHMETIC_QUIZ = {
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

def make_token(user_id, email, username=None, secret=JWT_SECRET, expires_in=3600):
    now = int(time.time())
    claims = {
        "sub": user_id,
        "email": email,
        "aud": "authenticated",
        "iat": now,
        "exp": now + expires_in,
        "user_metadata": {"username": username} if username else {},
    }
    return jwt.encode(claims, secret, algorithm="HS256")

def auth_headers(user_id="user-a", email="a@example.com", username=None):
    return {"Authorization": f"Bearer {make_token(user_id, email, username)}"}

class FakeClock:
    def __init__(self, start=1_000.0):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds

@pytest.fixture
def clock():
    return FakeClock()

@pytest.fixture
def database_url(tmp_path):
    return f"sqlite+aiosqlite:///{tmp_path / 'quiz_master.db'}"

@pytest.fixture
def settings(database_url):
    return Settings(database_url=database_url, supabase_jwt_secret=JWT_SECRET)

@pytest.fixture
def client(settings):
    with TestClient(create_app(settings)) as c:
        yield c

@pytest.fixture
def run_storage(database_url):
    """Run ``action(storage)`` against a fresh storage inside one event loop."""

    def run(action):
        async def scenario():
            storage = QuizStorage(create_engine(database_url))
            try:
                await storage.create_tables()
                return await action(storage)
            finally:
                await storage.close()

        return asyncio.run(scenario())

    return run
