"""HTTP API tests through FastAPI's TestClient."""

import httpx
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError

from quiz_master.database import create_engine, quiz_submissions
from quiz_master.identity import SupabaseIdentity
from quiz_master.main import create_app
from quiz_master.models.quiz import normalize_quiz_data
from quiz_master.storage import QuizStorage
from quiz_master.submission_builder import build_submission

from conftest import ARITHMETIC_QUIZ, JWT_SECRET, auth_headers, make_token

ALICE = auth_headers("user-a", "a@example.com", "alice")
BOB = auth_headers("user-b", "b@example.com")

def create_quiz(client, headers=ALICE, quiz_data=ARITHMETIC_QUIZ, title="Arithmetic"):
    return client.post(
        "/api/quizzes",
        json={"title": title, "subject": "Mathematics", "quizData": quiz_data},
        headers=headers,
    )

def provider_identity(handler):
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return SupabaseIdentity(
        url="https://project.supabase.co",
        service_role_key="service-key",
        jwt_secret=JWT_SECRET,
        http_client=client,
    )

def submission_payload(answers=("4", "15")):
    chapter = normalize_quiz_data(ARITHMETIC_QUIZ)[0].chapters[0]
    answers = dict(enumerate(answers))
    result = build_submission("Mathematics", chapter, answers, answers, {}, {0: 3, 1: 5}, 0, 0, 0.0, 8.0)
    return result.model_dump(mode="json")

class TestAuthentication:
    @pytest.mark.parametrize(
        "headers",
        [
            {},
            {"Authorization": "Basic dXNlcjpwYXNz"},
            {"Authorization": "Bearer not-a-jwt"},
            {"Authorization": f"Bearer {make_token('user-a', 'a@example.com', expires_in=-60)}"},
            {"Authorization": f"Bearer {make_token('user-a', 'a@example.com', secret='some-other-secret-value')}"},
        ],
    )
    def test_uniform_401(self, client, headers):
        response = client.get("/api/user", headers=headers)
        assert response.status_code == 401
        assert response.json() == {"detail": "Invalid token"}

    def test_health_is_public(self, client):
        response = client.get("/api/health")
        assert response.status_code == 200
        assert response.json()["status"] == "ok"

    def test_first_request_creates_local_user(self, client):
        response = client.get("/api/user", headers=ALICE)
        assert response.status_code == 200
        body = response.json()
        assert body["id"] == "user-a"
        assert body["email"] == "a@example.com"
        assert body["username"] == "alice"
        again = client.get("/api/user", headers=ALICE)
        assert again.json()["createdAt"] == body["createdAt"]

class TestProfile:
    def test_update_username(self, client):
        response = client.put("/api/user/profile", json={"username": "alice2"}, headers=ALICE)
        assert response.status_code == 200
        assert response.json()["message"] == "Profile updated successfully"
        assert response.json()["user"]["username"] == "alice2"
        assert client.get("/api/user", headers=ALICE).json()["username"] == "alice2"

    def test_missing_username(self, client):
        response = client.put("/api/user/profile", json={}, headers=ALICE)
        assert response.status_code == 400

    def test_username_taken(self, client):
        client.get("/api/user", headers=ALICE)
        response = client.put("/api/user/profile", json={"username": "alice"}, headers=BOB)
        assert response.status_code == 400
        assert response.json()["detail"] == "Username already taken"

    def test_provider_rejection_leaves_local_row(self, settings):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(500, text="provider down")

        identity = provider_identity(handler)
        with TestClient(create_app(settings, identity=identity)) as client:
            response = client.put("/api/user/profile", json={"username": "renamed"}, headers=ALICE)
            current = client.get("/api/user", headers=ALICE).json()
        assert response.status_code == 400
        assert len(calls) == 1
        assert current["username"] == "alice"

    def test_taken_username_never_reaches_provider(self, settings):
        calls = []

        def handler(request):
            calls.append(request.url.path)
            return httpx.Response(200, json={"id": "user-a"})

        identity = provider_identity(handler)
        with TestClient(create_app(settings, identity=identity)) as client:
            client.get("/api/user", headers=ALICE)
            taken = client.put("/api/user/profile", json={"username": "alice"}, headers=BOB)
            renamed = client.put("/api/user/profile", json={"username": "alice2"}, headers=ALICE)
        assert taken.status_code == 400
        assert renamed.status_code == 200
        assert renamed.json()["user"]["username"] == "alice2"
        # The taken name never reached the provider
        assert calls == ["/auth/v1/admin/users/user-a"]

class TestQuizzes:
    def test_create_and_fetch(self, client):
        response = create_quiz(client)
        assert response.status_code == 201
        quiz = response.json()
        assert quiz["createdBy"] == "user-a"
        assert quiz["isActive"] is True
        assert quiz["quizData"] == ARITHMETIC_QUIZ

        fetched = client.get(f"/api/quizzes/{quiz['id']}", headers=BOB)
        assert fetched.status_code == 200
        assert fetched.json()["quizData"] == ARITHMETIC_QUIZ

    def test_list_is_public_and_newest_first(self, client):
        first = create_quiz(client, title="First").json()
        second = create_quiz(client, quiz_data=[ARITHMETIC_QUIZ], title="Second").json()
        listed = client.get("/api/quizzes")
        assert listed.status_code == 200
        assert [q["id"] for q in listed.json()] == [second["id"], first["id"]]
        assert listed.json()[0]["quizData"] == [ARITHMETIC_QUIZ]

    def test_fetch_requires_auth(self, client):
        quiz = create_quiz(client).json()
        assert client.get(f"/api/quizzes/{quiz['id']}").status_code == 401

    def test_create_requires_auth(self, client):
        response = client.post("/api/quizzes", json={"title": "t", "subject": "s", "quizData": ARITHMETIC_QUIZ})
        assert response.status_code == 401

    def test_invalid_quiz_data(self, client):
        broken = {"subject": "Math", "chapters": [{"chapterName": "One", "quizQuestions": [{"question": "?"}]}]}
        response = create_quiz(client, quiz_data=broken)
        assert response.status_code == 400
        detail = response.json()["detail"]
        assert detail["message"] == "Invalid quiz data format"
        assert detail["errors"]
        assert client.get("/api/quizzes").json() == []

    def test_empty_subject_list(self, client):
        response = create_quiz(client, quiz_data=[])
        assert response.status_code == 400
        assert response.json()["detail"]["message"] == "Invalid quiz data format"

    def test_missing_title_is_422(self, client):
        response = client.post("/api/quizzes", json={"subject": "s", "quizData": ARITHMETIC_QUIZ}, headers=ALICE)
        assert response.status_code == 422

    def test_missing_quiz(self, client):
        assert client.get("/api/quizzes/999", headers=ALICE).status_code == 404

    def test_soft_delete(self, client):
        quiz = create_quiz(client).json()
        # Any authenticated user may delete
        response = client.delete(f"/api/quizzes/{quiz['id']}", headers=BOB)
        assert response.status_code == 200
        assert response.json() == {"message": "Quiz deleted successfully"}
        assert client.get("/api/quizzes").json() == []
        assert client.get(f"/api/quizzes/{quiz['id']}", headers=ALICE).status_code == 404
        again = client.delete(f"/api/quizzes/{quiz['id']}", headers=BOB)
        assert again.status_code == 404
        assert again.json()["detail"] == "Quiz not found or already deleted"

class TestAttempts:
    def test_record_and_list(self, client):
        quiz = create_quiz(client).json()
        response = client.post("/api/quiz-attempts", json={"quizId": quiz["id"], "score": 50}, headers=BOB)
        assert response.status_code == 201
        attempt = response.json()
        assert attempt["userId"] == "user-b"
        assert attempt["quizData"] == [ARITHMETIC_QUIZ]

        listed = client.get("/api/quiz-attempts", headers=BOB).json()
        assert [a["id"] for a in listed] == [attempt["id"]]
        assert listed[0]["quizTitle"] == "Arithmetic"
        assert client.get("/api/quiz-attempts", headers=ALICE).json() == []

    def test_snapshot_survives_delete(self, client):
        quiz = create_quiz(client).json()
        client.post("/api/quiz-attempts", json={"quizId": quiz["id"], "score": 100}, headers=ALICE)
        client.delete(f"/api/quizzes/{quiz['id']}", headers=ALICE)
        listed = client.get("/api/quiz-attempts", headers=ALICE).json()
        assert listed[0]["quizData"] == [ARITHMETIC_QUIZ]
        assert listed[0]["score"] == 100

    def test_unknown_quiz(self, client):
        response = client.post("/api/quiz-attempts", json={"quizId": 999, "score": 10}, headers=ALICE)
        assert response.status_code == 404
        assert response.json()["detail"] == "Quiz not found"

    def test_score_out_of_range(self, client):
        quiz = create_quiz(client).json()
        response = client.post("/api/quiz-attempts", json={"quizId": quiz["id"], "score": 101}, headers=ALICE)
        assert response.status_code == 422

class TestSubmissions:
    def test_create_list_and_get(self, client):
        response = client.post("/api/quiz-submissions", json=submission_payload(("4", "12")), headers=ALICE)
        assert response.status_code == 201
        created = response.json()
        assert created["userId"] == "user-a"
        assert created["score"] == 50
        assert created["quizTitle"] == "Mathematics - Basic Arithmetic"
        assert created["questionAnalytics"][1]["timeSpent"] == 5

        listed = client.get("/api/quiz-submissions", headers=ALICE).json()
        assert [s["id"] for s in listed] == [created["id"]]

        fetched = client.get(f"/api/quiz-submissions/{created['id']}", headers=ALICE)
        assert fetched.status_code == 200
        assert fetched.json()["submissionData"][1]["userAnswer"] == "12"

    def test_other_users_submission_is_forbidden(self, client):
        created = client.post("/api/quiz-submissions", json=submission_payload(), headers=ALICE).json()
        response = client.get(f"/api/quiz-submissions/{created['id']}", headers=BOB)
        assert response.status_code == 403
        assert response.json()["detail"] == "Access denied"
        assert client.get("/api/quiz-submissions", headers=BOB).json() == []

    def test_missing_submission(self, client):
        response = client.get("/api/quiz-submissions/999", headers=ALICE)
        assert response.status_code == 404
        assert response.json()["detail"] == "Quiz submission not found"

    def test_correct_cannot_exceed_total(self, client):
        payload = submission_payload()
        payload["correctAnswers"] = 3
        response = client.post("/api/quiz-submissions", json=payload, headers=ALICE)
        assert response.status_code == 400

    def test_bad_analytics_shape(self, client):
        payload = submission_payload()
        payload["difficultyLevel"] = "impossible"
        response = client.post("/api/quiz-submissions", json=payload, headers=ALICE)
        assert response.status_code == 422

class BrokenStorage(QuizStorage):
    async def get_quizzes(self):
        raise SQLAlchemyError("connection lost")

def test_storage_failure_is_500(settings, caplog):
    storage = BrokenStorage(create_engine(settings.database_url))
    with TestClient(create_app(settings, storage=storage)) as client:
        response = client.get("/api/quizzes")
    assert response.status_code == 500
    assert response.json() == {"detail": "Server error"}
    assert "connection lost" in caplog.text

def test_provider_non_json_body_is_401(settings):
    client = httpx.AsyncClient(
        transport=httpx.MockTransport(lambda request: httpx.Response(200, text="<html>maintenance</html>"))
    )
    identity = SupabaseIdentity(url="https://project.supabase.co", http_client=client)
    with TestClient(create_app(settings, identity=identity)) as api:
        response = api.get("/api/user", headers={"Authorization": "Bearer opaque-token"})
    assert response.status_code == 401
    assert response.json() == {"detail": "Invalid token"}

def test_corrupt_stored_submission_is_500(client, run_storage):
    created = client.post("/api/quiz-submissions", json=submission_payload(), headers=ALICE).json()

    async def corrupt(storage):
        async with storage.engine.begin() as conn:
            await conn.execute(
                update(quiz_submissions)
                .where(quiz_submissions.c.id == created["id"])
                .values(submission_data="{not json")
            )

    run_storage(corrupt)
    response = client.get(f"/api/quiz-submissions/{created['id']}", headers=ALICE)
    assert response.status_code == 500
    assert response.json() == {"detail": "Server error"}
