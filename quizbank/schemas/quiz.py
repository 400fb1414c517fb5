"""Quiz delivery schemas — what the player sees (never any answers)."""

import uuid
from typing import Any

from pydantic import BaseModel

from quizbank.db.models import FeedbackTimingEnum, QuestionTypeEnum


class QuizQuestionRead(BaseModel):
    """Single question as delivered to the quiz player."""

    id: uuid.UUID
    type: QuestionTypeEnum
    prompt: str
    prompt_image: str | None = None
    options: Any = None


class StartQuizResult(BaseModel):
    """POST /api/quizzes/{bank_id}/start"""

    attempt_id: uuid.UUID
    bank_title: str
    time_limit: int
    question_count: int
    feedback_timing: FeedbackTimingEnum
    questions: list[QuizQuestionRead]
