from datetime import datetime, timedelta, timezone

import pytest

from quizbuddy.core.errors import StorageError
from quizbuddy.core.models import (
    STUDENT_USER,
    Question,
    QuestionType,
    Quiz,
    Submission,
)
from quizbuddy.core.question_source import QuestionSource
from quizbuddy.core.quiz_manager import QuizManager
from quizbuddy.core.scheduling import Ticker
from quizbuddy.core.services.quiz_catalog import QuizCatalog
from quizbuddy.core.storage import InMemoryStore

FIXED_NOW = datetime(2025, 1, 15, 12, 0, tzinfo=timezone.utc)


def fixed_clock() -> datetime:
    return FIXED_NOW


class ManualTicker(Ticker):
    """Ticker driven by the test instead of a timer."""

    def __init__(self, interval_seconds, callback):
        self.interval_seconds = interval_seconds
        self.callback = callback
        self.started = False
        self.cancelled = False

    def start(self):
        self.started = True

    def cancel(self):
        self.cancelled = True

    def is_active(self):
        return self.started and not self.cancelled

    def fire(self, times=1):
        for _ in range(times):
            self.callback()


class ManualTickerFactory:
    def __init__(self):
        self.tickers = []

    def __call__(self, interval_seconds, callback):
        ticker = ManualTicker(interval_seconds, callback)
        self.tickers.append(ticker)
        return ticker

    @property
    def last(self):
        return self.tickers[-1]


class FlakyStore(InMemoryStore):
    """In-memory store whose writes fail while ``failing`` is set."""

    def __init__(self):
        super().__init__()
        self.failing = False

    def put(self, key, value):
        if self.failing:
            raise StorageError("disk full")
        super().put(key, value)


class FakeQuestionSource(QuestionSource):
    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.calls = []

    def generate(self, topic, count):
        self.calls.append((topic, count))
        if self.error is not None:
            raise self.error
        return self.response


def make_question(question_id, correct, question_type=QuestionType.SINGLE, options=None, text=None):
    return Question(
        id=question_id,
        text=text or f"Question {question_id}",
        type=question_type,
        options=tuple(options or ("A", "B", "C", "D")),
        correct_answers=frozenset(correct),
    )


def make_quiz(questions, quiz_id="quiz-1", title="Networking Basics", duration_minutes=10):
    return Quiz(
        id=quiz_id,
        title=title,
        topic="networking",
        duration_minutes=duration_minutes,
        due_date=FIXED_NOW + timedelta(days=1),
        created_at=FIXED_NOW,
        questions=tuple(questions),
        created_by="u1",
    )


def make_submission(quiz_id, score, total, answers=None, submission_id=None, student_id="u2", name="Alex Student"):
    return Submission(
        id=submission_id or f"sub-{quiz_id}-{score}-{student_id}",
        quiz_id=quiz_id,
        student_id=student_id,
        student_name=name,
        answers=answers or {},
        score=score,
        total_possible=total,
        timestamp=FIXED_NOW,
        completed=True,
    )


@pytest.fixture
def single_question():
    return make_question("q1", {1})


@pytest.fixture
def multiple_question():
    return make_question("q2", {0, 2}, QuestionType.MULTIPLE)


@pytest.fixture
def two_question_quiz(single_question, multiple_question):
    """Q1 single with correct {1}, Q2 multiple with correct {0, 2}."""
    return make_quiz([single_question, multiple_question])


@pytest.fixture
def learner():
    return STUDENT_USER


@pytest.fixture
def ticker_factory():
    return ManualTickerFactory()


@pytest.fixture
def store():
    return FlakyStore()


@pytest.fixture
def catalog(store):
    return QuizCatalog(store)


@pytest.fixture
def question_source():
    return FakeQuestionSource(response="[]")


@pytest.fixture
def quiz_manager(catalog, question_source, ticker_factory):
    return QuizManager(
        catalog=catalog,
        question_source=question_source,
        ticker_factory=ticker_factory,
        clock=fixed_clock,
    )


@pytest.fixture
def authored_questions():
    return [
        Question(
            id="net-1",
            text="Which layer does IP operate on?",
            type=QuestionType.SINGLE,
            options=("Physical", "Network", "Transport", "Session"),
            correct_answers=frozenset({1}),
        ),
        Question(
            id="net-2",
            text="Which of these are transport protocols?",
            type=QuestionType.MULTIPLE,
            options=("TCP", "HTTP", "UDP", "ARP"),
            correct_answers=frozenset({0, 2}),
        ),
    ]
