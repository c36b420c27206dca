"""Logical keys and locations used by the quiz catalog store."""

from pathlib import Path

USER_KEY: str = "user"
QUIZZES_KEY: str = "quizzes"
SUBMISSIONS_KEY: str = "submissions"

DEFAULT_DATA_DIR: Path = Path.home() / ".quizbuddy"
