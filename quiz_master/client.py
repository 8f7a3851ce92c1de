# client.py
from typing import Any, Dict, List, Optional
import logging

import httpx

from .models.attempt import QuizAttempt
from .models.quiz import QuizRecord
from .models.submission import QuizSubmission, QuizSubmissionCreate
from .models.user import User

logger = logging.getLogger(__name__)

class QuizMasterClient:
    """Synchronous client for the Quiz Master HTTP API."""

    def __init__(
        self,
        base_url: str,
        token: Optional[str] = None,
        transport: Optional[httpx.BaseTransport] = None,
        timeout: float = 10.0,
    ) -> None:
        headers = {"Authorization": f"Bearer {token}"} if token else {}
        self.http = httpx.Client(base_url=base_url, headers=headers, transport=transport, timeout=timeout)

    def close(self) -> None:
        self.http.close()

    def __enter__(self) -> "QuizMasterClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def _request(self, method: str, path: str, **kwargs) -> Any:
        response = self.http.request(method, path, **kwargs)
        if response.is_error:
            logger.error(f"{method} {path} failed with {response.status_code}: {response.text}")
        response.raise_for_status()
        return response.json()

    def current_user(self) -> User:
        return User(**self._request("GET", "/api/user"))

    def list_quizzes(self) -> List[QuizRecord]:
        return [QuizRecord(**q) for q in self._request("GET", "/api/quizzes")]

    def get_quiz(self, quiz_id: int) -> QuizRecord:
        return QuizRecord(**self._request("GET", f"/api/quizzes/{quiz_id}"))

    def create_quiz(self, title: str, subject: str, quiz_data: Any, description: Optional[str] = None) -> QuizRecord:
        body: Dict[str, Any] = {"title": title, "subject": subject, "quizData": quiz_data}
        if description is not None:
            body["description"] = description
        return QuizRecord(**self._request("POST", "/api/quizzes", json=body))

    def delete_quiz(self, quiz_id: int) -> None:
        self._request("DELETE", f"/api/quizzes/{quiz_id}")

    def record_attempt(self, quiz_id: int, score: int) -> QuizAttempt:
        return QuizAttempt(**self._request("POST", "/api/quiz-attempts", json={"quizId": quiz_id, "score": score}))

    def list_attempts(self) -> List[QuizAttempt]:
        return [QuizAttempt(**a) for a in self._request("GET", "/api/quiz-attempts")]

    def submit(self, submission: QuizSubmissionCreate) -> QuizSubmission:
        payload = submission.model_dump(mode="json")
        return QuizSubmission(**self._request("POST", "/api/quiz-submissions", json=payload))

    def list_submissions(self) -> List[QuizSubmission]:
        return [QuizSubmission(**s) for s in self._request("GET", "/api/quiz-submissions")]

    def get_submission(self, submission_id: int) -> QuizSubmission:
        return QuizSubmission(**self._request("GET", f"/api/quiz-submissions/{submission_id}"))
