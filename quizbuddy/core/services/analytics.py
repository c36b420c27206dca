"""Aggregate performance analytics over the submissions for a quiz."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Sequence

from quizbuddy.core.models import Question, Quiz, Submission
from quizbuddy.core.services.grading_engine import is_answer_correct


@dataclass(frozen=True, slots=True)
class QuestionStats:
    """Class-wide outcome for one question."""

    question_id: str
    text: str
    attempted: int
    correct: int
    incorrect: int
    accuracy_percentage: float


@dataclass(frozen=True, slots=True)
class QuizAnalytics:
    """Snapshot returned to the instructor view."""

    quiz_id: str
    title: str
    submission_count: int
    questions: tuple[QuestionStats, ...]
    average_score_percentage: float | None
    ranked_submissions: tuple[Submission, ...]


def class_average_percentage(submissions: Iterable[Submission]) -> float | None:
    """Mean of each submission's percentage, or None when there is nothing to average."""
    percentages = [submission.percentage for submission in submissions]
    if not percentages:
        return None
    return sum(percentages) / len(percentages)


def rank_submissions(submissions: Iterable[Submission]) -> list[Submission]:
    return sorted(submissions, key=lambda s: -s.score)


def summarize_question(question: Question, submissions: Sequence[Submission]) -> QuestionStats:
    attempted = 0
    correct = 0
    for submission in submissions:
        selected = submission.selected_for(question.id)
        if selected:
            attempted += 1
        # Verdicts are recomputed from the stored answers, never read from a cache.
        if is_answer_correct(question, selected):
            correct += 1
    total = len(submissions)
    return QuestionStats(
        question_id=question.id,
        text=question.text,
        attempted=attempted,
        correct=correct,
        incorrect=total - correct,
        accuracy_percentage=100.0 * correct / max(total, 1),
    )


def summarize_quiz(quiz: Quiz, submissions: Iterable[Submission]) -> QuizAnalytics:
    """Summarize the submissions that reference ``quiz``; others are ignored."""
    relevant = [submission for submission in submissions if submission.quiz_id == quiz.id]
    return QuizAnalytics(
        quiz_id=quiz.id,
        title=quiz.title,
        submission_count=len(relevant),
        questions=tuple(summarize_question(question, relevant) for question in quiz.questions),
        average_score_percentage=class_average_percentage(relevant),
        ranked_submissions=tuple(rank_submissions(relevant)),
    )
