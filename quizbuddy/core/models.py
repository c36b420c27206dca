"""Domain models for quizzes, questions and graded submissions.

Records are persisted as JSON blobs using camelCase keys, so every model
provides a ``to_record``/``from_record`` pair alongside its Python fields.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from types import MappingProxyType
from typing import Any, Iterable, Mapping

from quizbuddy.core.errors import QuizValidationError


class QuestionType(str, Enum):
    SINGLE = "single"
    MULTIPLE = "multiple"


class UserRole(str, Enum):
    FACULTY = "FACULTY"
    STUDENT = "STUDENT"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def format_timestamp(value: datetime) -> str:
    """Serialize a datetime as an ISO-8601 UTC string with a ``Z`` suffix."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


def parse_timestamp(value: str) -> datetime:
    parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


@dataclass(frozen=True, slots=True)
class User:
    """The single fixed-identity actor for a role."""

    id: str
    name: str
    role: UserRole

    def to_record(self) -> dict[str, Any]:
        return {"id": self.id, "name": self.name, "role": self.role.value}

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> User:
        return cls(id=str(record["id"]), name=str(record["name"]), role=UserRole(record["role"]))


FACULTY_USER = User(id="u1", name="Dr. Smith", role=UserRole.FACULTY)
STUDENT_USER = User(id="u2", name="Alex Student", role=UserRole.STUDENT)


@dataclass(frozen=True, slots=True)
class Question:
    """Multiple-choice question with one or more correct options."""

    id: str
    text: str
    type: QuestionType
    options: tuple[str, ...]
    correct_answers: frozenset[int]

    def __post_init__(self) -> None:
        object.__setattr__(self, "type", QuestionType(self.type))
        object.__setattr__(self, "options", tuple(self.options))
        object.__setattr__(self, "correct_answers", frozenset(self.correct_answers))

        if not self.correct_answers:
            raise QuizValidationError(f"Question {self.id} must have at least one correct answer.")
        for index in self.correct_answers:
            if not 0 <= index < len(self.options):
                raise QuizValidationError(
                    f"Question {self.id} marks option {index} correct but has {len(self.options)} options."
                )
        if self.type is QuestionType.SINGLE and len(self.correct_answers) != 1:
            raise QuizValidationError(
                f"Single-choice question {self.id} must have exactly one correct answer."
            )

    def to_record(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "text": self.text,
            "type": self.type.value,
            "options": list(self.options),
            "correctAnswers": sorted(self.correct_answers),
        }

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> Question:
        return cls(
            id=str(record["id"]),
            text=str(record["text"]),
            type=QuestionType(record["type"]),
            options=tuple(str(option) for option in record["options"]),
            correct_answers=frozenset(int(index) for index in record["correctAnswers"]),
        )


@dataclass(frozen=True, slots=True)
class Quiz:
    """A published assessment. Question order is the display and scoring order."""

    id: str
    title: str
    topic: str
    duration_minutes: int
    due_date: datetime
    created_at: datetime
    questions: tuple[Question, ...]
    created_by: str

    def __post_init__(self) -> None:
        object.__setattr__(self, "questions", tuple(self.questions))
        if self.duration_minutes <= 0:
            raise QuizValidationError("Quiz duration must be a positive number of minutes.")
        question_ids = [question.id for question in self.questions]
        if len(set(question_ids)) != len(question_ids):
            raise QuizValidationError("Question identifiers must be unique within a quiz.")

    @property
    def is_takeable(self) -> bool:
        return bool(self.title.strip()) and bool(self.questions)

    @property
    def question_count(self) -> int:
        return len(self.questions)

    def get_question(self, question_id: str) -> Question | None:
        return next((q for q in self.questions if q.id == question_id), None)

    def is_overdue(self, now: datetime | None = None) -> bool:
        return self.due_date < (now or utc_now())

    def to_record(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "topic": self.topic,
            "durationMinutes": self.duration_minutes,
            "dueDate": format_timestamp(self.due_date),
            "createdAt": format_timestamp(self.created_at),
            "questions": [question.to_record() for question in self.questions],
            "createdBy": self.created_by,
        }

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> Quiz:
        return cls(
            id=str(record["id"]),
            title=str(record["title"]),
            topic=str(record.get("topic", "")),
            duration_minutes=int(record["durationMinutes"]),
            due_date=parse_timestamp(record["dueDate"]),
            created_at=parse_timestamp(record["createdAt"]),
            questions=tuple(Question.from_record(item) for item in record["questions"]),
            created_by=str(record["createdBy"]),
        )


def _normalize_answers(answers: Mapping[str, Iterable[int]]) -> Mapping[str, tuple[int, ...]]:
    normalized = {str(question_id): tuple(int(i) for i in selected) for question_id, selected in answers.items()}
    return MappingProxyType(normalized)


@dataclass(frozen=True, slots=True)
class Submission:
    """A graded attempt. A question missing from ``answers`` was never attempted.

    ``answers`` is a read-only view over a private copy of the selections.
    """

    id: str
    quiz_id: str
    student_id: str
    student_name: str
    answers: Mapping[str, tuple[int, ...]]
    score: int
    total_possible: int
    timestamp: datetime
    completed: bool = True

    def __post_init__(self) -> None:
        object.__setattr__(self, "answers", _normalize_answers(self.answers))
        if not 0 <= self.score <= self.total_possible:
            raise QuizValidationError(
                f"Score {self.score} is outside the range 0..{self.total_possible}."
            )

    @property
    def percentage(self) -> float:
        if self.total_possible <= 0:
            return 0.0
        return 100.0 * self.score / self.total_possible

    @property
    def incorrect_count(self) -> int:
        return self.total_possible - self.score

    def selected_for(self, question_id: str) -> tuple[int, ...] | None:
        return self.answers.get(question_id)

    def to_record(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "quizId": self.quiz_id,
            "studentId": self.student_id,
            "studentName": self.student_name,
            "answers": {question_id: list(selected) for question_id, selected in self.answers.items()},
            "score": self.score,
            "totalPossible": self.total_possible,
            "timestamp": format_timestamp(self.timestamp),
            "completed": self.completed,
        }

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> Submission:
        return cls(
            id=str(record["id"]),
            quiz_id=str(record["quizId"]),
            student_id=str(record["studentId"]),
            student_name=str(record["studentName"]),
            answers=record.get("answers") or {},
            score=int(record["score"]),
            total_possible=int(record["totalPossible"]),
            timestamp=parse_timestamp(record["timestamp"]),
            completed=bool(record.get("completed", True)),
        )
