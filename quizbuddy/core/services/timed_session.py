"""Service that controls one learner's timed attempt at one quiz."""

from __future__ import annotations

import logging
from datetime import datetime
from enum import Enum, auto
from threading import Lock
from typing import Callable
from uuid import uuid4

from quizbuddy.constants.quiz_constants import LOW_TIME_WARNING_SECONDS, TICK_INTERVAL_SECONDS
from quizbuddy.core.errors import QuizValidationError
from quizbuddy.core.models import QuestionType, Quiz, Submission, User, utc_now
from quizbuddy.core.scheduling import Ticker, TickerFactory
from quizbuddy.core.services.grading_engine import GradeReport, grade_answers

logger = logging.getLogger(__name__)


class SessionState(Enum):
    ACTIVE = auto()
    FINALIZING = auto()
    FINISHED = auto()
    CANCELLED = auto()


def format_time_left(seconds: int) -> str:
    minutes, secs = divmod(max(0, seconds), 60)
    return f"{minutes}:{secs:02d}"


class TimedSession:
    """Holds working answers, runs the countdown and grades the attempt once.

    ``expire()`` and ``finish()`` both go through the same guarded transition:
    whichever observes ``ACTIVE`` first moves the session to ``FINALIZING`` and
    grades; every later call is ignored. Selections outside ``ACTIVE`` are
    ignored the same way, since a click can race the final tick.
    """

    def __init__(
        self,
        quiz: Quiz,
        learner: User,
        on_finished: Callable[[Submission], None] | None = None,
        ticker_factory: TickerFactory | None = None,
        clock: Callable[[], datetime] = utc_now,
        session_id: str | None = None,
    ) -> None:
        if not quiz.is_takeable:
            raise QuizValidationError("Quiz needs a title and at least one question before it can be taken.")
        self._id = session_id or uuid4().hex
        self._quiz = quiz
        self._learner = learner
        self._on_finished = on_finished
        self._ticker_factory = ticker_factory
        self._clock = clock
        self._lock = Lock()

        self._state = SessionState.ACTIVE
        self._remaining_seconds = quiz.duration_minutes * 60
        self._answers: dict[str, list[int]] = {}
        self._ticker: Ticker | None = None
        self._submission: Submission | None = None
        self._grade_report: GradeReport | None = None
        self._started_at = clock()

    # --- Lifecycle ---

    def start(self) -> None:
        """Start the countdown. Without a ticker factory the owner drives ``tick()``."""
        with self._lock:
            if self._state is not SessionState.ACTIVE or self._ticker is not None:
                return
            if self._ticker_factory is None:
                return
            self._ticker = self._ticker_factory(TICK_INTERVAL_SECONDS, self.tick)
            ticker = self._ticker
        ticker.start()
        logger.debug("Session %s started with %ss on the clock", self._id, self._remaining_seconds)

    def tick(self) -> None:
        with self._lock:
            if self._state is not SessionState.ACTIVE:
                return
            self._remaining_seconds = max(0, self._remaining_seconds - 1)
            expired = self._remaining_seconds == 0
        if expired:
            self.expire()

    def expire(self) -> Submission | None:
        return self._finalize("expire")

    def finish(self) -> Submission | None:
        return self._finalize("finish")

    def cancel(self) -> bool:
        """Tear down the countdown without grading, e.g. when the learner navigates away."""
        with self._lock:
            if self._state is not SessionState.ACTIVE:
                return False
            self._state = SessionState.CANCELLED
        self._stop_ticker()
        logger.info("Session %s for quiz %s cancelled", self._id, self._quiz.id)
        return True

    # --- Answers ---

    def select(self, question_id: str, option_index: int) -> bool:
        """Apply a selection. Returns False when it was ignored."""
        with self._lock:
            if self._state is not SessionState.ACTIVE:
                logger.debug("Ignoring selection in session %s while %s", self._id, self._state.name)
                return False
            question = self._quiz.get_question(question_id)
            if question is None or not 0 <= option_index < len(question.options):
                logger.debug("Ignoring selection %s/%s in session %s", question_id, option_index, self._id)
                return False

            if question.type is QuestionType.SINGLE:
                self._answers[question_id] = [option_index]
            else:
                current = self._answers.setdefault(question_id, [])
                if option_index in current:
                    current.remove(option_index)
                else:
                    current.append(option_index)
            return True

    def is_selected(self, question_id: str, option_index: int) -> bool:
        with self._lock:
            return option_index in self._answers.get(question_id, ())

    def is_answered(self, question_id: str) -> bool:
        with self._lock:
            return bool(self._answers.get(question_id))

    # --- Read accessors ---

    @property
    def id(self) -> str:
        return self._id

    @property
    def quiz(self) -> Quiz:
        return self._quiz

    @property
    def learner(self) -> User:
        return self._learner

    @property
    def state(self) -> SessionState:
        with self._lock:
            return self._state

    @property
    def started_at(self) -> datetime:
        return self._started_at

    @property
    def remaining_seconds(self) -> int:
        with self._lock:
            return self._remaining_seconds

    @property
    def time_left_display(self) -> str:
        return format_time_left(self.remaining_seconds)

    @property
    def is_low_on_time(self) -> bool:
        return self.remaining_seconds < LOW_TIME_WARNING_SECONDS

    @property
    def answers(self) -> dict[str, tuple[int, ...]]:
        with self._lock:
            return {question_id: tuple(selected) for question_id, selected in self._answers.items()}

    @property
    def attempted_count(self) -> int:
        with self._lock:
            return sum(1 for selected in self._answers.values() if selected)

    @property
    def remaining_count(self) -> int:
        return self._quiz.question_count - self.attempted_count

    @property
    def submission(self) -> Submission | None:
        with self._lock:
            return self._submission

    @property
    def grade_report(self) -> GradeReport | None:
        with self._lock:
            return self._grade_report

    # --- Internals ---

    def _finalize(self, trigger: str) -> Submission | None:
        with self._lock:
            if self._state is not SessionState.ACTIVE:
                logger.debug("Ignoring %s for session %s while %s", trigger, self._id, self._state.name)
                return None
            self._state = SessionState.FINALIZING
            frozen_answers = {question_id: list(selected) for question_id, selected in self._answers.items()}

        self._stop_ticker()
        report = grade_answers(self._quiz.questions, frozen_answers)

        with self._lock:
            submission = Submission(
                id=uuid4().hex,
                quiz_id=self._quiz.id,
                student_id=self._learner.id,
                student_name=self._learner.name,
                answers=frozen_answers,
                score=report.score,
                total_possible=report.total_possible,
                timestamp=self._clock(),
                completed=True,
            )
            self._submission = submission
            self._grade_report = report
            self._state = SessionState.FINISHED

        logger.info(
            "Session %s %s: %s scored %d/%d on quiz %s",
            self._id,
            "expired" if trigger == "expire" else "submitted",
            self._learner.name,
            report.score,
            report.total_possible,
            self._quiz.id,
        )
        if self._on_finished is not None:
            self._on_finished(submission)
        return submission

    def _stop_ticker(self) -> None:
        with self._lock:
            ticker = self._ticker
        if ticker is not None:
            ticker.cancel()
