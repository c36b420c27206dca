"""Parse-or-reject validation for generated question payloads.

The question source is untrusted: its output is decoded, then every item is
checked against the generated-question schema and the Question invariants.
Items that fail are dropped individually; nothing missing is filled in with
a default.

Expected item shape::

    {
      "text": "What does HTTP stand for?",
      "type": "single",
      "options": ["...", "...", "...", "..."],
      "correctAnswers": [1]
    }
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from typing import Callable, Literal
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from quizbuddy.constants.quiz_constants import AUTHORING_OPTION_COUNT
from quizbuddy.core.errors import QuestionGenerationError, QuizValidationError
from quizbuddy.core.models import Question, QuestionType

logger = logging.getLogger(__name__)

_FENCE_PATTERN = re.compile(r"^```(?:json)?|```$", flags=re.IGNORECASE | re.MULTILINE)


class GeneratedQuestionPayload(BaseModel):
    """Schema for one generated question."""

    model_config = ConfigDict(strict=True, extra="ignore")

    text: str
    type: Literal["single", "multiple"]
    options: list[str] = Field(min_length=AUTHORING_OPTION_COUNT, max_length=AUTHORING_OPTION_COUNT)
    correct_answers: list[int] = Field(alias="correctAnswers", min_length=1)

    @field_validator("text")
    @classmethod
    def _text_not_blank(cls, value: str) -> str:
        cleaned = value.strip()
        if not cleaned:
            raise ValueError("Question text must not be empty.")
        return cleaned

    @field_validator("options")
    @classmethod
    def _options_not_blank(cls, value: list[str]) -> list[str]:
        cleaned = [option.strip() for option in value]
        if any(not option for option in cleaned):
            raise ValueError("Option text cannot be empty.")
        return cleaned

    @field_validator("correct_answers")
    @classmethod
    def _answers_in_range(cls, value: list[int]) -> list[int]:
        for index in value:
            if not 0 <= index < AUTHORING_OPTION_COUNT:
                raise ValueError(f"Correct answer index {index} is out of range.")
        return value

    @model_validator(mode="after")
    def _single_has_one_answer(self) -> GeneratedQuestionPayload:
        if self.type == "single" and len(set(self.correct_answers)) != 1:
            raise ValueError("Single-choice questions need exactly one correct answer.")
        return self

    def to_question(self, question_id: str) -> Question:
        return Question(
            id=question_id,
            text=self.text,
            type=QuestionType(self.type),
            options=tuple(self.options),
            correct_answers=frozenset(self.correct_answers),
        )


@dataclass(slots=True)
class ValidatedBatch:
    questions: list[Question] = field(default_factory=list)
    rejected: int = 0


def decode_generated_text(raw_text: str) -> object:
    """Decode model output into JSON, tolerating markdown code fences."""
    cleaned = _FENCE_PATTERN.sub("", raw_text.strip()).strip()
    if not cleaned:
        return []
    try:
        return json.loads(cleaned)
    except json.JSONDecodeError as exc:
        raise QuestionGenerationError(f"Question source returned invalid JSON: {exc}") from exc


def validate_generated_questions(
    items: object,
    id_factory: Callable[[], str] = lambda: uuid4().hex,
) -> ValidatedBatch:
    """Keep the items that pass validation and attach fresh question ids."""
    if not isinstance(items, list):
        raise QuestionGenerationError(
            f"Question source returned a {type(items).__name__}; expected a list of questions."
        )

    batch = ValidatedBatch()
    for position, item in enumerate(items):
        try:
            payload = GeneratedQuestionPayload.model_validate(item)
            batch.questions.append(payload.to_question(id_factory()))
        except (ValidationError, QuizValidationError) as exc:
            batch.rejected += 1
            logger.warning("Discarding generated question #%d: %s", position, exc)
    return batch
