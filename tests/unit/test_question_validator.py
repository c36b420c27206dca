import json
from itertools import count
from unittest.mock import MagicMock

import pytest

from conftest import FakeQuestionSource
from quizbuddy.core.errors import QuestionGenerationError
from quizbuddy.core.models import QuestionType
from quizbuddy.core.question_source import GeminiQuestionSource, QuestionSource, generate_questions
from quizbuddy.core.question_validator import decode_generated_text, validate_generated_questions


def _item(**overrides):
    item = {
        "text": "What does HTTP stand for?",
        "type": "single",
        "options": ["HyperText Transfer Protocol", "High Transfer", "Host Text", "None"],
        "correctAnswers": [0],
    }
    item.update(overrides)
    return item


def _sequential_ids():
    counter = count(1)
    return lambda: f"gen-{next(counter)}"


class TestDecode:
    """Decoding raw model text"""

    def test_plain_json(self):
        assert decode_generated_text('[{"a": 1}]') == [{"a": 1}]

    def test_code_fenced_json(self):
        raw = '```json\n[{"a": 1}]\n```'
        assert decode_generated_text(raw) == [{"a": 1}]

    def test_empty_text_is_empty_list(self):
        assert decode_generated_text("   ") == []

    def test_invalid_json_raises(self):
        with pytest.raises(QuestionGenerationError):
            decode_generated_text("Sure! Here are your questions:")


class TestValidateItems:
    """Each generated item is accepted or dropped on its own"""

    def test_valid_item_becomes_question(self):
        batch = validate_generated_questions([_item()], id_factory=_sequential_ids())
        assert batch.rejected == 0
        [question] = batch.questions
        assert question.id == "gen-1"
        assert question.type is QuestionType.SINGLE
        assert question.correct_answers == frozenset({0})

    def test_fresh_ids_for_every_question(self):
        batch = validate_generated_questions([_item(), _item()], id_factory=_sequential_ids())
        assert [q.id for q in batch.questions] == ["gen-1", "gen-2"]

    @pytest.mark.parametrize(
        "bad",
        [
            _item(options=["a", "b", "c"]),
            _item(options=["a", "b", "c", "d", "e"]),
            _item(options=["a", " ", "c", "d"]),
            _item(correctAnswers=[4]),
            _item(correctAnswers=[-1]),
            _item(correctAnswers=[]),
            _item(correctAnswers=[0, 1]),
            _item(type="essay"),
            _item(text="   "),
            _item(correctAnswers=["0"]),
            {"text": "missing everything"},
            "not an object",
        ],
    )
    def test_malformed_item_is_rejected(self, bad):
        batch = validate_generated_questions([bad, _item()])
        assert batch.rejected == 1
        assert len(batch.questions) == 1

    def test_multiple_with_several_answers(self):
        batch = validate_generated_questions([_item(type="multiple", correctAnswers=[1, 3])])
        [question] = batch.questions
        assert question.type is QuestionType.MULTIPLE
        assert question.correct_answers == frozenset({1, 3})

    def test_text_and_options_are_trimmed(self):
        batch = validate_generated_questions([_item(text="  Spaced  ", options=[" a ", "b", "c", "d"])])
        assert batch.questions[0].text == "Spaced"
        assert batch.questions[0].options[0] == "a"

    def test_unknown_fields_are_ignored(self):
        batch = validate_generated_questions([_item(explanation="because")])
        assert len(batch.questions) == 1

    def test_non_list_payload_is_an_error(self):
        with pytest.raises(QuestionGenerationError):
            validate_generated_questions({"questions": [_item()]})


class TestGenerateQuestions:
    """Generation never raises to the caller"""

    def test_valid_output(self):
        source = FakeQuestionSource(response=json.dumps([_item(), _item(correctAnswers=[9])]))
        result = generate_questions(source, " HTTP ", 2)
        assert not result.failed
        assert len(result.questions) == 1
        assert result.rejected == 1
        assert source.calls == [("HTTP", 2)]

    def test_already_decoded_output(self):
        result = generate_questions(FakeQuestionSource(response=[_item()]), "HTTP")
        assert len(result.questions) == 1

    def test_blank_topic(self):
        source = FakeQuestionSource(response="[]")
        result = generate_questions(source, "  ")
        assert result.failed
        assert result.error == "Please enter a topic first."
        assert source.calls == []

    def test_missing_source(self):
        result = generate_questions(None, "HTTP")
        assert result.failed
        assert result.error == "Question generation is not configured."

    def test_source_exception_degrades(self):
        result = generate_questions(FakeQuestionSource(error=RuntimeError("quota")), "HTTP")
        assert result.failed
        assert result.questions == []
        assert result.error == "Failed to generate questions. Please try again."

    def test_unparseable_text_degrades(self):
        result = generate_questions(FakeQuestionSource(response="oops"), "HTTP")
        assert result.failed
        assert result.questions == []

    def test_wrapped_object_is_reported_as_failure(self):
        source = FakeQuestionSource(response=json.dumps({"questions": [_item()]}))
        result = generate_questions(source, "HTTP")
        assert result.failed
        assert result.questions == []
        assert result.error == "Failed to generate questions. Please try again."

    def test_all_items_rejected_is_reported_as_failure(self):
        source = FakeQuestionSource(response=json.dumps([_item(correctAnswers=[7]), _item(options=["a"])]))
        result = generate_questions(source, "HTTP")
        assert result.failed
        assert result.rejected == 2
        assert result.error == "No usable questions were generated. Please try again."

    def test_empty_list_is_reported_as_failure(self):
        result = generate_questions(FakeQuestionSource(response="[]"), "HTTP")
        assert result.failed
        assert result.rejected == 0

    @pytest.mark.parametrize("requested,expected", [(0, 1), (-3, 1), (5, 5), (500, 20)])
    def test_count_is_clamped(self, requested, expected):
        source = FakeQuestionSource(response="[]")
        generate_questions(source, "HTTP", requested)
        assert source.calls == [("HTTP", expected)]


class TestGeminiQuestionSource:
    """Gemini requests use a JSON response schema"""

    def test_generate_calls_model(self):
        client = MagicMock()
        client.models.generate_content.return_value.text = json.dumps([_item()])
        source = GeminiQuestionSource(model="test-model", client=client)

        raw = source.generate("DNS", 3)

        assert json.loads(raw)[0]["type"] == "single"
        kwargs = client.models.generate_content.call_args.kwargs
        assert kwargs["model"] == "test-model"
        assert "3" in kwargs["contents"] and "DNS" in kwargs["contents"]
        assert kwargs["config"].response_mime_type == "application/json"

    def test_empty_response_text(self):
        client = MagicMock()
        client.models.generate_content.return_value.text = None
        assert GeminiQuestionSource(client=client).generate("DNS", 1) == "[]"

    def test_end_to_end_with_generate_questions(self):
        client = MagicMock()
        client.models.generate_content.return_value.text = "```json\n" + json.dumps([_item()]) + "\n```"
        result = generate_questions(GeminiQuestionSource(client=client), "DNS", 1)
        assert len(result.questions) == 1


def test_source_without_generate_cannot_be_created():
    class SilentSource(QuestionSource):
        pass

    with pytest.raises(TypeError):
        SilentSource()
