"""Service for storing quizzes, the submission ledger and the current user."""

from __future__ import annotations

import json
import logging
from typing import Any, Callable, TypeVar

from quizbuddy.constants.storage_constants import QUIZZES_KEY, SUBMISSIONS_KEY, USER_KEY
from quizbuddy.core.errors import QuizInUseError, QuizValidationError, StorageError
from quizbuddy.core.models import Quiz, Submission, User
from quizbuddy.core.storage import KeyValueStore

logger = logging.getLogger(__name__)

_T = TypeVar("_T")


class QuizCatalog:
    """Quizzes and the append-only submission ledger, persisted as JSON blobs.

    Everything is read once by ``load()``; each mutation writes the affected
    blob back before returning. A failed write rolls the in-memory change
    back and raises ``StorageError``.
    """

    def __init__(self, store: KeyValueStore) -> None:
        self._store = store
        self._quizzes: list[Quiz] = []
        self._submissions: list[Submission] = []
        self.load()

    def load(self) -> None:
        self._quizzes = self._read_list(QUIZZES_KEY, Quiz.from_record)
        self._submissions = self._read_list(SUBMISSIONS_KEY, Submission.from_record)
        logger.info("Loaded %d quizzes and %d submissions", len(self._quizzes), len(self._submissions))

    # --- Quizzes ---

    def list_quizzes(self) -> list[Quiz]:
        """Return all quizzes, newest first."""
        return list(self._quizzes)

    def get_quiz(self, quiz_id: str) -> Quiz | None:
        return next((quiz for quiz in self._quizzes if quiz.id == quiz_id), None)

    def add_quiz(self, quiz: Quiz) -> None:
        if self.get_quiz(quiz.id) is not None:
            raise QuizValidationError(f"A quiz with id {quiz.id} already exists.")
        previous = self._quizzes
        self._quizzes = [quiz, *previous]
        try:
            self._write_quizzes()
        except StorageError:
            self._quizzes = previous
            raise

    def delete_quiz(self, quiz_id: str) -> bool:
        """Delete a quiz that no submission references. Returns False if it does not exist."""
        if self.get_quiz(quiz_id) is None:
            return False
        if any(submission.quiz_id == quiz_id for submission in self._submissions):
            raise QuizInUseError("Quiz has submissions and is kept for historical analytics.")
        previous = self._quizzes
        self._quizzes = [quiz for quiz in previous if quiz.id != quiz_id]
        try:
            self._write_quizzes()
        except StorageError:
            self._quizzes = previous
            raise
        return True

    # --- Submissions ---

    def append_submission(self, submission: Submission) -> None:
        if not submission.completed:
            raise QuizValidationError("Only completed submissions can be recorded.")
        self._submissions.append(submission)
        try:
            self._write_submissions()
        except StorageError:
            self._submissions.pop()
            raise

    def list_submissions(self, quiz_id: str | None = None) -> list[Submission]:
        if quiz_id is None:
            return list(self._submissions)
        return [submission for submission in self._submissions if submission.quiz_id == quiz_id]

    def get_submission(self, submission_id: str) -> Submission | None:
        return next((s for s in self._submissions if s.id == submission_id), None)

    def submissions_for_student(self, student_id: str) -> list[Submission]:
        return [submission for submission in self._submissions if submission.student_id == student_id]

    # --- Current user ---

    def load_user(self) -> User | None:
        raw = self._store.get(USER_KEY)
        if raw is None:
            return None
        try:
            return User.from_record(json.loads(raw))
        except (json.JSONDecodeError, KeyError, TypeError, ValueError) as exc:
            raise StorageError(f"Stored user record is malformed: {exc}") from exc

    def save_user(self, user: User) -> None:
        self._store.put(USER_KEY, json.dumps(user.to_record()))

    # --- Internals ---

    def _write_quizzes(self) -> None:
        self._store.put(QUIZZES_KEY, json.dumps([quiz.to_record() for quiz in self._quizzes]))

    def _write_submissions(self) -> None:
        self._store.put(SUBMISSIONS_KEY, json.dumps([s.to_record() for s in self._submissions]))

    def _read_list(self, key: str, parse: Callable[[dict[str, Any]], _T]) -> list[_T]:
        raw = self._store.get(key)
        if raw is None:
            return []
        try:
            records = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise StorageError(f"Stored {key} blob is not valid JSON: {exc}") from exc
        if not isinstance(records, list):
            raise StorageError(f"Stored {key} blob must be a JSON array.")
        try:
            return [parse(record) for record in records]
        except (KeyError, TypeError, ValueError) as exc:
            raise StorageError(f"Stored {key} blob contains a malformed record: {exc}") from exc
