"""Exact-set grading of learner selections."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Mapping, Sequence

from quizbuddy.core.models import Question


@dataclass(frozen=True, slots=True)
class GradeReport:
    """Per-question verdicts in quiz order plus the aggregate score."""

    verdicts: dict[str, bool]
    score: int
    total_possible: int

    @property
    def percentage(self) -> float:
        if self.total_possible <= 0:
            return 0.0
        return 100.0 * self.score / self.total_possible


def is_answer_correct(question: Question, selected: Iterable[int] | None) -> bool:
    """Return True when the selected indices equal the correct set exactly.

    Order and repeated indices are ignored. ``None`` (unattempted) grades the
    same as an empty selection. A question without correct answers never
    grades correct, so an unattempted question cannot match it by accident.
    """
    if not question.correct_answers:
        return False
    chosen = frozenset(selected) if selected is not None else frozenset()
    return chosen == question.correct_answers


def grade_answers(
    questions: Sequence[Question],
    answers: Mapping[str, Iterable[int]],
) -> GradeReport:
    """Grade an answer mapping against the questions of a quiz."""
    verdicts = {question.id: is_answer_correct(question, answers.get(question.id)) for question in questions}
    return GradeReport(
        verdicts=verdicts,
        score=sum(1 for verdict in verdicts.values() if verdict),
        total_possible=len(questions),
    )
