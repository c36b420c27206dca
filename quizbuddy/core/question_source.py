"""Question sources for AI-assisted authoring.

A source turns a topic into a candidate list of questions. Sources are
external collaborators: ``generate_questions`` treats whatever they return
as untrusted, validates it item by item and never lets a source failure
reach the caller as an exception.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field

from google import genai
from google.genai import types

from quizbuddy.constants.quiz_constants import (
    AUTHORING_OPTION_COUNT,
    DEFAULT_GEMINI_MODEL,
    DEFAULT_GENERATED_QUESTION_COUNT,
    MAX_GENERATED_QUESTION_COUNT,
)
from quizbuddy.core.models import Question
from quizbuddy.core.question_validator import decode_generated_text, validate_generated_questions

logger = logging.getLogger(__name__)


class QuestionSource(ABC):
    """Produces raw candidate questions (JSON text or decoded items) for a topic."""

    @abstractmethod
    def generate(self, topic: str, count: int) -> str | list[object]:
        raise NotImplementedError


_RESPONSE_SCHEMA = types.Schema(
    type=types.Type.ARRAY,
    items=types.Schema(
        type=types.Type.OBJECT,
        properties={
            "text": types.Schema(type=types.Type.STRING, description="The question text"),
            "type": types.Schema(
                type=types.Type.STRING,
                enum=["single", "multiple"],
                description="Question type",
            ),
            "options": types.Schema(
                type=types.Type.ARRAY,
                items=types.Schema(type=types.Type.STRING),
                description=f"Exactly {AUTHORING_OPTION_COUNT} options",
            ),
            "correctAnswers": types.Schema(
                type=types.Type.ARRAY,
                items=types.Schema(type=types.Type.INTEGER),
                description=f"Indices (0-{AUTHORING_OPTION_COUNT - 1}) of correct answers",
            ),
        },
        required=["text", "type", "options", "correctAnswers"],
    ),
)


class GeminiQuestionSource(QuestionSource):
    """Generates questions with Gemini using a JSON response schema."""

    def __init__(
        self,
        api_key: str | None = None,
        model: str = DEFAULT_GEMINI_MODEL,
        client: genai.Client | None = None,
    ) -> None:
        self._client = client or genai.Client(api_key=api_key)
        self._model = model

    def generate(self, topic: str, count: int) -> str:
        prompt = (
            f'Generate {count} high-quality quiz questions about "{topic}". '
            "Include a mix of single-choice and multiple-choice questions."
        )
        response = self._client.models.generate_content(
            model=self._model,
            contents=prompt,
            config=types.GenerateContentConfig(
                response_mime_type="application/json",
                response_schema=_RESPONSE_SCHEMA,
            ),
        )
        return response.text or "[]"


@dataclass(slots=True)
class GenerationResult:
    """Validated questions plus a caller-visible failure indicator."""

    questions: list[Question] = field(default_factory=list)
    rejected: int = 0
    failed: bool = False
    error: str | None = None


def generate_questions(
    source: QuestionSource | None,
    topic: str,
    count: int = DEFAULT_GENERATED_QUESTION_COUNT,
) -> GenerationResult:
    topic = topic.strip()
    if not topic:
        return GenerationResult(failed=True, error="Please enter a topic first.")
    if source is None:
        return GenerationResult(failed=True, error="Question generation is not configured.")
    count = max(1, min(count, MAX_GENERATED_QUESTION_COUNT))

    try:
        raw = source.generate(topic, count)
        items = decode_generated_text(raw) if isinstance(raw, str) else raw
        batch = validate_generated_questions(items)
    except Exception as exc:
        # Any source failure degrades to an empty result.
        logger.warning("Question generation for %r failed: %s", topic, exc)
        return GenerationResult(failed=True, error="Failed to generate questions. Please try again.")

    logger.info(
        "Generated %d questions for %r (%d rejected)", len(batch.questions), topic, batch.rejected
    )
    if not batch.questions:
        return GenerationResult(
            rejected=batch.rejected,
            failed=True,
            error="No usable questions were generated. Please try again.",
        )
    return GenerationResult(questions=batch.questions, rejected=batch.rejected)
