# submission_builder.py
"""Derive the persisted submission record from a finished quiz run.

Everything here is a pure function of the recorded answers, attempt counts and
timings; nothing mutates its inputs. The per-question snapshots copy the
question text, options and explanation so the stored record does not depend
on the quiz it came from.
"""
import math
from typing import List, Mapping, Optional, Sequence, Tuple

from .models.quiz import Chapter, QuizQuestion
from .models.submission import (
    DifficultyLevel,
    LearningObjectiveMastery,
    MasteryLevel,
    QuestionAnalytics,
    QuestionResult,
    QuizSubmissionCreate,
)

HARD_TIME_FACTOR = 1.5
EASY_TIME_FACTOR = 0.5
DEFAULT_CONFIDENCE = 3

def round_half_up(value: float, digits: int = 0):
    """Round .5 away from zero for positive values (Python's round() is banker's)."""
    factor = 10 ** digits
    rounded = math.floor(value * factor + 0.5) / factor
    return int(rounded) if digits == 0 else rounded

def is_correct(question: QuizQuestion, answer: Optional[str]) -> bool:
    # Exact string equality, no whitespace or case normalization
    return answer is not None and question.correctAnswer == answer

def calculate_score(questions: Sequence[QuizQuestion], answers: Mapping[int, str]) -> Tuple[int, int]:
    """Return (correct count, integer percentage). An empty chapter scores 0."""
    correct = sum(1 for i, q in enumerate(questions) if is_correct(q, answers.get(i)))
    if not questions:
        return correct, 0
    return correct, round_half_up(100 * correct / len(questions))

def streaks(outcomes: Sequence[bool]) -> Tuple[int, int]:
    """Longest runs of correct and incorrect outcomes, in question order."""
    current_correct = current_incorrect = 0
    max_correct = max_incorrect = 0
    for outcome in outcomes:
        if outcome:
            current_correct += 1
            current_incorrect = 0
            max_correct = max(max_correct, current_correct)
        else:
            current_incorrect += 1
            current_correct = 0
            max_incorrect = max(max_incorrect, current_incorrect)
    return max_correct, max_incorrect

def question_difficulty(time_spent: float, average: float) -> DifficultyLevel:
    if time_spent > average * HARD_TIME_FACTOR:
        return DifficultyLevel.hard
    if time_spent < average * EASY_TIME_FACTOR:
        return DifficultyLevel.easy
    return DifficultyLevel.medium

def confidence_level(attempts: int) -> int:
    """Fewer answer changes mean more confidence: 1 -> 5, 2 -> 4, 3 -> 3, 4+ -> 2."""
    if attempts <= 1:
        return 5
    if attempts == 2:
        return 4
    if attempts == 3:
        return 3
    return 2

def overall_difficulty(score: int) -> DifficultyLevel:
    if score >= 80:
        return DifficultyLevel.easy
    if score >= 60:
        return DifficultyLevel.medium
    return DifficultyLevel.hard

def mastery_level(score: int) -> MasteryLevel:
    if score >= 80:
        return MasteryLevel.mastered
    if score >= 60:
        return MasteryLevel.proficient
    return MasteryLevel.developing

def average_time(question_times: Mapping[int, int], total_questions: int, total_time: int) -> float:
    if total_questions == 0:
        return 0.0
    if question_times:
        return sum(question_times.get(i, 0) for i in range(total_questions)) / total_questions
    return total_time / total_questions

def build_submission(
    subject: str,
    chapter: Optional[Chapter],
    answers: Mapping[int, str],
    first_answers: Mapping[int, str],
    attempts: Mapping[int, int],
    question_times: Mapping[int, int],
    hints_used: int,
    review_count: int,
    started_at: float,
    finished_at: float,
) -> QuizSubmissionCreate:
    questions: List[QuizQuestion] = list(chapter.quizQuestions) if chapter else []
    chapter_name = chapter.chapterName if chapter else ""
    total = len(questions)

    correct_count, score = calculate_score(questions, answers)
    outcomes = [is_correct(q, answers.get(i)) for i, q in enumerate(questions)]
    first_outcomes = [is_correct(q, first_answers.get(i)) for i, q in enumerate(questions)]
    streak_correct, streak_incorrect = streaks(outcomes)

    total_time = max(0, int(finished_at - started_at))
    average = average_time(question_times, total, total_time)

    question_analytics: List[QuestionAnalytics] = []
    for i in range(total):
        time_spent = question_times.get(i, 0)
        attempt_count = attempts.get(i, 1)
        # A question never navigated away from has no time slot
        if i in question_times:
            difficulty = question_difficulty(time_spent, average)
        else:
            difficulty = DifficultyLevel.medium
        question_analytics.append(
            QuestionAnalytics(
                questionIndex=i + 1,
                timeSpent=time_spent,
                attempts=attempt_count,
                isCorrect=outcomes[i],
                isFirstAttemptCorrect=first_outcomes[i],
                difficulty=difficulty,
                confidenceLevel=confidence_level(attempt_count),
            )
        )

    if question_analytics:
        confidence = sum(q.confidenceLevel for q in question_analytics) / len(question_analytics)
    else:
        confidence = DEFAULT_CONFIDENCE

    submission_data = [
        QuestionResult(
            question=q.question,
            correctAnswer=q.correctAnswer,
            userAnswer=answers.get(i, ""),
            isCorrect=outcomes[i],
            explanation=q.explanation,
            options=list(q.options),
        )
        for i, q in enumerate(questions)
    ]

    return QuizSubmissionCreate(
        quizTitle=f"{subject} - {chapter_name}",
        subject=subject,
        chapter=chapter_name,
        totalQuestions=total,
        correctAnswers=correct_count,
        score=score,
        submissionData=submission_data,
        totalTimeSpent=total_time,
        averageTimePerQuestion=round_half_up(average, 2),
        difficultyLevel=overall_difficulty(score),
        completionPercentage=100.0,
        streakCorrect=streak_correct,
        streakIncorrect=streak_incorrect,
        firstAttemptCorrect=sum(first_outcomes),
        questionsSkipped=0,
        hintsUsed=hints_used,
        reviewCount=review_count,
        confidenceScore=round_half_up(confidence, 2),
        learningObjectiveMastery=LearningObjectiveMastery(
            subject=subject,
            chapter=chapter_name,
            masteryLevel=mastery_level(score),
            conceptsStruggled=[q.questionIndex for q in question_analytics if not q.isCorrect],
        ),
        questionAnalytics=question_analytics,
    )
