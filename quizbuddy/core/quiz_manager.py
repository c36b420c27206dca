"""Application context shared by the HTTP surface and any other front-end."""

from __future__ import annotations

import logging
from collections import OrderedDict
from datetime import datetime, timedelta, timezone
from threading import Lock
from typing import Callable, Sequence
from uuid import uuid4

from quizbuddy.constants.quiz_constants import (
    AUTHORING_OPTION_COUNT,
    DEFAULT_DUE_OFFSET_HOURS,
    DEFAULT_DURATION_MINUTES,
    DEFAULT_GENERATED_QUESTION_COUNT,
    FINISHED_SESSION_HISTORY,
)
from quizbuddy.core.errors import QuizInUseError, QuizValidationError, StorageError
from quizbuddy.core.models import (
    FACULTY_USER,
    STUDENT_USER,
    Question,
    QuestionType,
    Quiz,
    Submission,
    User,
    UserRole,
    utc_now,
)
from quizbuddy.core.question_source import GenerationResult, QuestionSource, generate_questions
from quizbuddy.core.scheduling import TickerFactory
from quizbuddy.core.services.analytics import QuizAnalytics, summarize_quiz
from quizbuddy.core.services.quiz_catalog import QuizCatalog
from quizbuddy.core.services.reports import (
    FacultyDashboard,
    StudentDashboard,
    SubmissionResult,
    build_faculty_dashboard,
    build_student_dashboard,
    build_submission_result,
)
from quizbuddy.core.services.timed_session import TimedSession

logger = logging.getLogger(__name__)


class QuizManager:
    """Facade over the catalog, live sessions and question generation.

    Owns the current user and every live ``TimedSession``. A session is
    released once it is graded or cancelled. Submissions that
    could not be written to the catalog are kept in memory and retried by
    ``retry_pending_submissions()`` so a storage failure never loses an
    attempt.
    """

    def __init__(
        self,
        catalog: QuizCatalog,
        question_source: QuestionSource | None = None,
        ticker_factory: TickerFactory | None = None,
        clock: Callable[[], datetime] = utc_now,
        generated_question_count: int = DEFAULT_GENERATED_QUESTION_COUNT,
    ) -> None:
        self._lock = Lock()
        self._catalog = catalog
        self._question_source = question_source
        self._ticker_factory = ticker_factory
        self._clock = clock
        self._generated_question_count = generated_question_count
        self._sessions: dict[str, TimedSession] = {}
        self._finished_sessions: OrderedDict[str, str] = OrderedDict()
        self._pending_submissions: list[Submission] = []

        try:
            stored_user = catalog.load_user()
        except StorageError as exc:
            logger.warning("Ignoring stored user: %s", exc)
            stored_user = None
        self._current_user = stored_user or FACULTY_USER

    # --- Current user ---

    @property
    def current_user(self) -> User:
        with self._lock:
            return self._current_user

    def switch_role(self) -> User:
        with self._lock:
            is_faculty = self._current_user.role is UserRole.FACULTY
            self._current_user = STUDENT_USER if is_faculty else FACULTY_USER
            user = self._current_user
        try:
            self._catalog.save_user(user)
        except StorageError as exc:
            logger.warning("Could not persist role switch: %s", exc)
        logger.info("Switched to %s (%s)", user.name, user.role.value)
        return user

    # --- Authoring ---

    @staticmethod
    def new_blank_question() -> Question:
        return Question(
            id=uuid4().hex,
            text="",
            type=QuestionType.SINGLE,
            options=("",) * AUTHORING_OPTION_COUNT,
            correct_answers=frozenset({0}),
        )

    def create_quiz(
        self,
        title: str,
        questions: Sequence[Question],
        topic: str = "",
        duration_minutes: int = DEFAULT_DURATION_MINUTES,
        due_date: datetime | None = None,
    ) -> Quiz:
        cleaned_title = title.strip()
        if not cleaned_title or not questions:
            raise QuizValidationError("Please fill in the title and add at least one question.")
        prepared = [self._prepare_question(question) for question in questions]

        now = self._clock()
        if due_date is not None and due_date.tzinfo is None:
            due_date = due_date.replace(tzinfo=timezone.utc)
        quiz = Quiz(
            id=uuid4().hex,
            title=cleaned_title,
            topic=topic.strip(),
            duration_minutes=duration_minutes,
            due_date=due_date or now + timedelta(hours=DEFAULT_DUE_OFFSET_HOURS),
            created_at=now,
            questions=tuple(prepared),
            created_by=self.current_user.id,
        )
        with self._lock:
            self._catalog.add_quiz(quiz)
        logger.info("Created quiz %s (%r) with %d questions", quiz.id, quiz.title, quiz.question_count)
        return quiz

    def delete_quiz(self, quiz_id: str) -> bool:
        """Delete a quiz nobody has taken. Pending submissions and unrecorded sessions count as taken."""
        with self._lock:
            if any(submission.quiz_id == quiz_id for submission in self._pending_submissions):
                raise QuizInUseError("Quiz has submissions waiting to be stored.")
            if any(session.quiz.id == quiz_id for session in self._sessions.values()):
                raise QuizInUseError("Quiz is being taken right now.")
            return self._catalog.delete_quiz(quiz_id)

    def generate_questions(self, topic: str, count: int | None = None) -> GenerationResult:
        return generate_questions(
            self._question_source,
            topic,
            count if count is not None else self._generated_question_count,
        )

    # --- Catalog reads ---

    def list_quizzes(self) -> list[Quiz]:
        with self._lock:
            return self._catalog.list_quizzes()

    def get_quiz(self, quiz_id: str) -> Quiz | None:
        with self._lock:
            return self._catalog.get_quiz(quiz_id)

    def get_submission(self, submission_id: str) -> Submission | None:
        with self._lock:
            submission = self._catalog.get_submission(submission_id)
            if submission is None:
                submission = next((s for s in self._pending_submissions if s.id == submission_id), None)
            return submission

    # --- Sessions ---

    def start_session(self, quiz_id: str, learner: User | None = None) -> TimedSession | None:
        learner = learner or self.current_user
        session_id = uuid4().hex
        with self._lock:
            quiz = self._catalog.get_quiz(quiz_id)
            if quiz is None:
                return None
            session = TimedSession(
                quiz=quiz,
                learner=learner,
                on_finished=lambda submission: self._on_session_finished(session_id, submission),
                ticker_factory=self._ticker_factory,
                clock=self._clock,
                session_id=session_id,
            )
            self._sessions[session.id] = session
        session.start()
        logger.info("Started session %s for %s on quiz %s", session.id, session.learner.name, quiz.id)
        return session

    def get_session(self, session_id: str) -> TimedSession | None:
        with self._lock:
            return self._sessions.get(session_id)

    def select_answer(self, session_id: str, question_id: str, option_index: int) -> bool:
        session = self.get_session(session_id)
        if session is None:
            return False
        return session.select(question_id, option_index)

    def finish_session(self, session_id: str) -> Submission | None:
        session = self.get_session(session_id)
        if session is None:
            return self.finished_submission(session_id)
        return session.finish() or session.submission

    def finished_submission(self, session_id: str) -> Submission | None:
        """Submission produced by a session that has already ended and been released."""
        with self._lock:
            submission_id = self._finished_sessions.get(session_id)
        if submission_id is None:
            return None
        return self.get_submission(submission_id)

    def cancel_session(self, session_id: str) -> bool:
        """Discard a session, stopping its countdown if it is still running."""
        with self._lock:
            session = self._sessions.pop(session_id, None)
        if session is None:
            return False
        session.cancel()
        return True

    # --- Ledger ---

    @property
    def pending_submissions(self) -> list[Submission]:
        with self._lock:
            return list(self._pending_submissions)

    @property
    def persist_failed(self) -> bool:
        """True while at least one finished attempt is waiting to be stored."""
        with self._lock:
            return bool(self._pending_submissions)

    def retry_pending_submissions(self) -> int:
        """Write queued submissions to the catalog. Returns how many were stored."""
        stored = 0
        with self._lock:
            while self._pending_submissions:
                submission = self._pending_submissions[0]
                try:
                    self._catalog.append_submission(submission)
                except StorageError as exc:
                    logger.warning("Submission %s still not stored: %s", submission.id, exc)
                    break
                self._pending_submissions.pop(0)
                stored += 1
        return stored

    def _on_session_finished(self, session_id: str, submission: Submission) -> None:
        with self._lock:
            self._sessions.pop(session_id, None)
            self._finished_sessions[session_id] = submission.id
            while len(self._finished_sessions) > FINISHED_SESSION_HISTORY:
                self._finished_sessions.popitem(last=False)
            try:
                self._catalog.append_submission(submission)
            except StorageError as exc:
                logger.error("Could not store submission %s, keeping it for retry: %s", submission.id, exc)
                self._pending_submissions.append(submission)

    # --- Reports ---

    def get_result(self, submission_id: str) -> SubmissionResult | None:
        submission = self.get_submission(submission_id)
        if submission is None:
            return None
        quiz = self.get_quiz(submission.quiz_id)
        if quiz is None:
            return None
        return build_submission_result(quiz, submission)

    def quiz_analytics(self, quiz_id: str) -> QuizAnalytics | None:
        with self._lock:
            quiz = self._catalog.get_quiz(quiz_id)
            if quiz is None:
                return None
            submissions = self._catalog.list_submissions(quiz_id)
        return summarize_quiz(quiz, submissions)

    def faculty_dashboard(self) -> FacultyDashboard:
        with self._lock:
            quizzes = self._catalog.list_quizzes()
            submissions = self._catalog.list_submissions()
        return build_faculty_dashboard(quizzes, submissions)

    def student_dashboard(self, student: User | None = None) -> StudentDashboard:
        student = student or self.current_user
        with self._lock:
            quizzes = self._catalog.list_quizzes()
            submissions = self._catalog.submissions_for_student(student.id)
        return build_student_dashboard(student.id, quizzes, submissions, now=self._clock())

    # --- Internals ---

    @staticmethod
    def _prepare_question(question: Question) -> Question:
        """Validate authored text before publishing."""
        cleaned_text = question.text.strip()
        if not cleaned_text:
            raise QuizValidationError("Question text must not be empty.")
        cleaned_options = tuple(option.strip() for option in question.options)
        if any(not option for option in cleaned_options):
            raise QuizValidationError("Option text cannot be empty.")
        return Question(
            id=question.id,
            text=cleaned_text,
            type=question.type,
            options=cleaned_options,
            correct_answers=question.correct_answers,
        )
