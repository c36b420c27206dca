"""Read-only snapshots for the result view and the two dashboards."""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime
from typing import Sequence

from quizbuddy.core.models import Quiz, Submission, utc_now
from quizbuddy.core.services.analytics import class_average_percentage
from quizbuddy.core.services.grading_engine import is_answer_correct


@dataclass(frozen=True, slots=True)
class QuestionReview:
    question_id: str
    text: str
    options: tuple[str, ...]
    selected: tuple[int, ...]
    correct_answers: tuple[int, ...]
    is_correct: bool


@dataclass(frozen=True, slots=True)
class SubmissionResult:
    submission: Submission
    quiz: Quiz
    percentage: int
    correct_count: int
    incorrect_count: int
    reviews: tuple[QuestionReview, ...]


@dataclass(frozen=True, slots=True)
class QuizSummaryRow:
    quiz: Quiz
    submission_count: int


@dataclass(frozen=True, slots=True)
class FacultyDashboard:
    total_quizzes: int
    total_submissions: int
    average_score_percentage: float | None
    quizzes: tuple[QuizSummaryRow, ...]


@dataclass(frozen=True, slots=True)
class AvailableQuiz:
    quiz: Quiz
    is_overdue: bool


@dataclass(frozen=True, slots=True)
class CompletedAttempt:
    submission: Submission
    quiz_title: str | None


@dataclass(frozen=True, slots=True)
class StudentDashboard:
    available: tuple[AvailableQuiz, ...]
    completed: tuple[CompletedAttempt, ...]
    average_score_percentage: float | None


def build_submission_result(quiz: Quiz, submission: Submission) -> SubmissionResult:
    """Per-question review of a submission, regraded from its stored answers."""
    reviews = []
    for question in quiz.questions:
        selected = submission.selected_for(question.id) or ()
        reviews.append(
            QuestionReview(
                question_id=question.id,
                text=question.text,
                options=question.options,
                selected=tuple(selected),
                correct_answers=tuple(sorted(question.correct_answers)),
                is_correct=is_answer_correct(question, selected),
            )
        )
    return SubmissionResult(
        submission=submission,
        quiz=quiz,
        percentage=math.floor(submission.percentage + 0.5),
        correct_count=submission.score,
        incorrect_count=submission.incorrect_count,
        reviews=tuple(reviews),
    )


def build_faculty_dashboard(quizzes: Sequence[Quiz], submissions: Sequence[Submission]) -> FacultyDashboard:
    counts: dict[str, int] = {}
    for submission in submissions:
        counts[submission.quiz_id] = counts.get(submission.quiz_id, 0) + 1
    return FacultyDashboard(
        total_quizzes=len(quizzes),
        total_submissions=len(submissions),
        average_score_percentage=class_average_percentage(submissions),
        quizzes=tuple(QuizSummaryRow(quiz=quiz, submission_count=counts.get(quiz.id, 0)) for quiz in quizzes),
    )


def build_student_dashboard(
    student_id: str,
    quizzes: Sequence[Quiz],
    submissions: Sequence[Submission],
    now: datetime | None = None,
) -> StudentDashboard:
    now = now or utc_now()
    own = [submission for submission in submissions if submission.student_id == student_id]
    submitted_quiz_ids = {submission.quiz_id for submission in own}
    titles = {quiz.id: quiz.title for quiz in quizzes}
    return StudentDashboard(
        available=tuple(
            AvailableQuiz(quiz=quiz, is_overdue=quiz.is_overdue(now))
            for quiz in quizzes
            if quiz.id not in submitted_quiz_ids
        ),
        completed=tuple(CompletedAttempt(submission=s, quiz_title=titles.get(s.quiz_id)) for s in own),
        average_score_percentage=class_average_percentage(own),
    )
