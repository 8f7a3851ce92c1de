# quiz_session.py
"""State machine for one quiz run.

A session moves through ``selecting`` (picking subject and chapter when the
quiz offers a choice), ``answering`` and ``revealed`` (the correct answer of
the current question is shown) until ``complete``. All bookkeeping for the
run lives here and is discarded with the session.
"""
from enum import Enum
from typing import Any, Callable, Dict, List, Optional
import logging
import time

from .models.quiz import Chapter, QuizContent, QuizQuestion, normalize_quiz_data
from .models.submission import QuizSubmissionCreate
from .submission_builder import build_submission, calculate_score

logger = logging.getLogger(__name__)

class SessionState(str, Enum):
    selecting = "selecting"
    answering = "answering"
    revealed = "revealed"
    complete = "complete"

class SubmissionDurability(str, Enum):
    best_effort = "best_effort"  # Results shown even if storing them fails
    required = "required"  # Complete only once the submission is stored

class QuizSessionError(Exception):
    """An operation was attempted in a state that does not allow it."""

class SubmissionFailed(Exception):
    """The submitter failed while durability is ``required``."""

Submitter = Callable[[QuizSubmissionCreate], Any]

class QuizSession:
    def __init__(
        self,
        quiz: Any,
        subject: Optional[str] = None,
        submitter: Optional[Submitter] = None,
        durability: SubmissionDurability = SubmissionDurability.best_effort,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.subjects: List[QuizContent] = normalize_quiz_data(quiz)
        self.submitter = submitter
        self.durability = SubmissionDurability(durability)
        self.clock = clock

        self.subject_locked = subject is not None
        self.selected_subject = subject if subject is not None else self.subjects[0].subject
        if self.current_subject is None:
            raise QuizSessionError(f"Unknown subject: {subject}")
        chapters = self.current_subject.chapters
        self.selected_chapter = chapters[0].chapterName if chapters else None

        self.current_index = 0
        self.answers: Dict[int, str] = {}
        self.first_answers: Dict[int, str] = {}
        self.attempts: Dict[int, int] = {}
        self.question_times: Dict[int, int] = {}
        self.hints_used = 0
        self.review_count = 0
        self.show_answer = False
        self.started_at = self.clock()
        self.question_started_at = self.started_at
        self.finished_at: Optional[float] = None  # Set by the first submit, kept for retries
        self.result: Optional[QuizSubmissionCreate] = None
        self.persisted: Optional[bool] = None  # None until a submitter has run

        self.state = SessionState.selecting if self.has_choices else SessionState.answering

    # --- Derived views ---

    @property
    def current_subject(self) -> Optional[QuizContent]:
        return next((s for s in self.subjects if s.subject == self.selected_subject), None)

    @property
    def current_chapter(self) -> Optional[Chapter]:
        subject = self.current_subject
        if subject is None:
            return None
        return next((c for c in subject.chapters if c.chapterName == self.selected_chapter), None)

    @property
    def questions(self) -> List[QuizQuestion]:
        chapter = self.current_chapter
        return chapter.quizQuestions if chapter else []

    @property
    def current_question(self) -> Optional[QuizQuestion]:
        questions = self.questions
        return questions[self.current_index] if self.current_index < len(questions) else None

    @property
    def has_choices(self) -> bool:
        subject = self.current_subject
        many_subjects = len(self.subjects) > 1 and not self.subject_locked
        return many_subjects or (subject is not None and len(subject.chapters) > 1)

    @property
    def all_answered(self) -> bool:
        return all(i in self.answers for i in range(len(self.questions)))

    @property
    def score(self) -> int:
        return calculate_score(self.questions, self.answers)[1]

    # --- Transitions ---

    def _require(self, *states: SessionState) -> None:
        if self.state not in states:
            allowed = ", ".join(s.value for s in states)
            raise QuizSessionError(f"Not allowed in state {self.state.value} (needs {allowed})")

    def _leave_selection(self) -> None:
        if self.state == SessionState.selecting:
            self.state = SessionState.answering

    def _clear_reveal(self) -> None:
        self.show_answer = False
        if self.state == SessionState.revealed:
            self.state = SessionState.answering

    def select_subject(self, name: str) -> None:
        self._require(SessionState.selecting)
        if self.subject_locked:
            raise QuizSessionError("Subject was fixed when the session started")
        subject = next((s for s in self.subjects if s.subject == name), None)
        if subject is None:
            raise QuizSessionError(f"Unknown subject: {name}")
        self.selected_subject = name
        self.selected_chapter = subject.chapters[0].chapterName if subject.chapters else None
        self.current_index = 0

    def select_chapter(self, name: str) -> None:
        self._require(SessionState.selecting)
        subject = self.current_subject
        if subject is None or not any(c.chapterName == name for c in subject.chapters):
            raise QuizSessionError(f"Unknown chapter: {name}")
        self.selected_chapter = name
        self.current_index = 0

    def answer(self, option: str, question_index: Optional[int] = None) -> None:
        """Record an answer. The first answer for a question is frozen separately."""
        self._require(SessionState.selecting, SessionState.answering, SessionState.revealed)
        index = self.current_index if question_index is None else question_index
        if not 0 <= index < len(self.questions):
            raise QuizSessionError(f"No question at index {index}")
        self._leave_selection()
        if index not in self.answers:
            self.first_answers[index] = option
            self.attempts[index] = 1
        else:
            self.attempts[index] = self.attempts.get(index, 0) + 1
        self.answers[index] = option
        self._clear_reveal()

    def reveal_answer(self) -> QuizQuestion:
        """Show the current question's answer. Every call counts as a hint."""
        self._require(SessionState.answering, SessionState.revealed)
        if self.current_index not in self.answers:
            raise QuizSessionError("Answer the question before revealing it")
        self.show_answer = True
        self.hints_used += 1
        self.state = SessionState.revealed
        return self.current_question

    def _record_time(self) -> None:
        now = self.clock()
        self.finished_at = None
        self.question_times[self.current_index] = max(0, int(now - self.question_started_at))
        self.question_started_at = now

    def go_next(self) -> None:
        self._require(SessionState.selecting, SessionState.answering, SessionState.revealed)
        if self.current_index >= len(self.questions) - 1:
            raise QuizSessionError("Already at the last question")
        self._leave_selection()
        self._record_time()
        self.current_index += 1
        self._clear_reveal()

    def go_previous(self) -> None:
        self._require(SessionState.selecting, SessionState.answering, SessionState.revealed)
        if self.current_index == 0:
            raise QuizSessionError("Already at the first question")
        self._leave_selection()
        self._record_time()
        self.current_index -= 1
        self.review_count += 1
        self._clear_reveal()

    def submit(self) -> QuizSubmissionCreate:
        """Score the run, derive analytics and hand the result to the submitter.

        Under ``best_effort`` the session is complete before the submitter
        runs and a submitter failure is only logged. Under ``required`` the
        failure raises SubmissionFailed and the session can be submitted again.
        """
        self._require(SessionState.selecting, SessionState.answering, SessionState.revealed)
        if not self.all_answered:
            raise QuizSessionError("Every question must be answered before submitting")
        if self.finished_at is None:
            if self.questions:
                self._record_time()
            self.finished_at = self.clock()
        result = build_submission(
            subject=self.selected_subject,
            chapter=self.current_chapter,
            answers=self.answers,
            first_answers=self.first_answers,
            attempts=self.attempts,
            question_times=self.question_times,
            hints_used=self.hints_used,
            review_count=self.review_count,
            started_at=self.started_at,
            finished_at=self.finished_at,
        )

        if self.durability == SubmissionDurability.required:
            self._persist(result, swallow=False)
            self._complete(result)
        else:
            self._complete(result)
            self._persist(result, swallow=True)
        return result

    def _complete(self, result: QuizSubmissionCreate) -> None:
        self.result = result
        self.show_answer = True
        self.state = SessionState.complete

    def _persist(self, result: QuizSubmissionCreate, swallow: bool) -> None:
        if self.submitter is None:
            return
        try:
            self.submitter(result)
        except Exception as e:
            self.persisted = False
            if not swallow:
                raise SubmissionFailed(str(e)) from e
            logger.error(f"Failed to submit quiz: {e}")
            return
        self.persisted = True
