"""Environment-driven settings for QuizBuddy."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic import SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

from quizbuddy.constants.network_constants import DEFAULT_HOST, DEFAULT_PORT
from quizbuddy.constants.quiz_constants import (
    DEFAULT_GEMINI_MODEL,
    DEFAULT_GENERATED_QUESTION_COUNT,
)
from quizbuddy.constants.storage_constants import DEFAULT_DATA_DIR


class QuizBuddySettings(BaseSettings):
    """Settings read from ``QUIZBUDDY_*`` environment variables or a ``.env`` file."""

    model_config = SettingsConfigDict(
        env_prefix="QUIZBUDDY_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    app_name: str = "QuizBuddy API"
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    log_level: str = "INFO"

    # Storage
    data_dir: Path = DEFAULT_DATA_DIR

    # Question generation
    gemini_api_key: SecretStr | None = None
    gemini_model: str = DEFAULT_GEMINI_MODEL
    generated_question_count: int = DEFAULT_GENERATED_QUESTION_COUNT

    @property
    def generation_enabled(self) -> bool:
        return self.gemini_api_key is not None and bool(self.gemini_api_key.get_secret_value())


@lru_cache
def get_settings() -> QuizBuddySettings:
    return QuizBuddySettings()
