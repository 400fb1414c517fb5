"""Typed failures raised by the quiz core.

The core never logs or swallows these; ``quizbank.main`` translates them into
the standard error envelope at the HTTP boundary.
"""

from typing import Any


class QuizError(Exception):
    """Base class for every domain failure."""

    error_code = "QUIZ_ERROR"
    status_code = 500

    def __init__(
        self,
        message: str,
        *,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        if error_code is not None:
            self.error_code = error_code
        self.details = details


class NotFoundError(QuizError):
    """Missing resource, or one the caller does not own (same response)."""

    error_code = "NOT_FOUND"
    status_code = 404

    def __init__(self, resource: str) -> None:
        super().__init__(f"{resource} not found")


class InvalidStateError(QuizError):
    error_code = "INVALID_STATE"
    status_code = 400


class BankUnavailableError(InvalidStateError):
    error_code = "BANK_NOT_AVAILABLE"
    status_code = 403


class NoQuestionsError(InvalidStateError):
    error_code = "NO_QUESTIONS"


class AttemptNotInProgressError(InvalidStateError):
    error_code = "ATTEMPT_NOT_IN_PROGRESS"


class AttemptNotCompletedError(InvalidStateError):
    error_code = "ATTEMPT_NOT_COMPLETED"


class AttemptAlreadyCompletedError(InvalidStateError):
    error_code = "ATTEMPT_ALREADY_COMPLETED"
    status_code = 409


class AttemptInProgressError(InvalidStateError):
    error_code = "ATTEMPT_IN_PROGRESS"
    status_code = 409


class AttemptTimedOutError(InvalidStateError):
    """The time limit expired; the attempt has been finalised as TIMED_OUT."""

    error_code = "ATTEMPT_TIMED_OUT"


class LimitExceededError(QuizError):
    error_code = "MAX_ATTEMPTS_REACHED"
    status_code = 403


class ValidationError(QuizError):
    error_code = "VALIDATION_ERROR"
    status_code = 422


class RateLimitedError(QuizError):
    error_code = "RATE_LIMITED"
    status_code = 429
