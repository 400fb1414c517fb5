"""Pydantic schemas — re‑exported for convenience."""

from quizbank.schemas.common import ErrorResponse, PageMeta  # noqa: F401
from quizbank.schemas.quiz import (  # noqa: F401
    QuizQuestionRead,
    StartQuizResult,
)
from quizbank.schemas.attempt import (  # noqa: F401
    AttemptPage,
    AttemptState,
    AttemptSummary,
    ImmediateFeedback,
    QuestionResult,
    QuizResults,
    SaveProgressRequest,
    SaveProgressResult,
)
