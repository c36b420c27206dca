"""Quiz-related constants shared across the core and server layers."""

DEFAULT_DURATION_MINUTES: int = 30
DEFAULT_DUE_OFFSET_HOURS: int = 24
AUTHORING_OPTION_COUNT: int = 4

TICK_INTERVAL_SECONDS: float = 1.0
LOW_TIME_WARNING_SECONDS: int = 5 * 60

DEFAULT_GENERATED_QUESTION_COUNT: int = 5
MAX_GENERATED_QUESTION_COUNT: int = 20
DEFAULT_GEMINI_MODEL: str = "gemini-2.0-flash"

FINISHED_SESSION_HISTORY: int = 1000
