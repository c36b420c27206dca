"""Application entry point for the QuizBuddy API."""

from __future__ import annotations

from quizbuddy.config import QuizBuddySettings, get_settings
from quizbuddy.core.question_source import GeminiQuestionSource
from quizbuddy.core.quiz_manager import QuizManager
from quizbuddy.core.scheduling import thread_ticker_factory
from quizbuddy.core.services.quiz_catalog import QuizCatalog
from quizbuddy.core.storage import JsonFileStore
from quizbuddy.server.api_server import run_api_server
from quizbuddy.utils.logging_config import configure_logging


def build_quiz_manager(settings: QuizBuddySettings) -> QuizManager:
    """Wire the catalog, question source and countdown scheduler from settings."""
    catalog = QuizCatalog(JsonFileStore(settings.data_dir))
    question_source = None
    if settings.generation_enabled:
        question_source = GeminiQuestionSource(
            api_key=settings.gemini_api_key.get_secret_value(),
            model=settings.gemini_model,
        )
    return QuizManager(
        catalog=catalog,
        question_source=question_source,
        ticker_factory=thread_ticker_factory,
        generated_question_count=settings.generated_question_count,
    )


def main() -> None:
    """Initialize logging, load the catalog and serve the API."""
    settings = get_settings()
    logger = configure_logging(settings.log_level)
    logger.info("Starting QuizBuddy with data in %s", settings.data_dir)
    if not settings.generation_enabled:
        logger.info("No Gemini API key configured; question generation is disabled")

    quiz_manager = build_quiz_manager(settings)
    logger.info("API listening on http://%s:%d/", settings.host, settings.port)
    run_api_server(quiz_manager=quiz_manager, host=settings.host, port=settings.port)


if __name__ == "__main__":
    main()
