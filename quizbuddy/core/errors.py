"""Exceptions raised by the QuizBuddy core."""


class QuizValidationError(ValueError):
    """Raised when a quiz, question or submission violates a domain invariant."""


class QuizInUseError(RuntimeError):
    """Raised when deleting a quiz that submissions still reference."""


class StorageError(RuntimeError):
    """Raised when the backing key-value store cannot be read or written."""


class QuestionGenerationError(RuntimeError):
    """Raised when the question source returns something that cannot be decoded."""
