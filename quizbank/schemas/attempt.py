"""Attempt schemas."""

import uuid
from datetime import datetime
from typing import Any

from pydantic import BaseModel

from quizbank.db.models import AttemptStatusEnum, FeedbackTimingEnum, QuestionTypeEnum
from quizbank.schemas.common import PageMeta
from quizbank.schemas.quiz import QuizQuestionRead


class AttemptState(BaseModel):
    """GET /api/attempts/{id} — resume view, answer-free."""

    id: uuid.UUID
    bank_id: uuid.UUID
    bank_title: str
    status: AttemptStatusEnum
    started_at: datetime
    expires_at: datetime | None = None
    time_spent: int
    time_limit: int
    feedback_timing: FeedbackTimingEnum
    question_count: int
    questions: list[QuizQuestionRead]
    responses: dict[str, Any] = {}


class SaveProgressRequest(BaseModel):
    """PATCH /api/attempts/{id} — auto-save.

    Negative ``time_spent`` is clamped to 0 and fractions are truncated by
    the service.
    """

    responses: dict[str, Any]
    time_spent: float


class ImmediateFeedback(BaseModel):
    """Per-question feedback surfaced mid-attempt (IMMEDIATE banks only)."""

    question_id: uuid.UUID
    correct_answer: Any
    feedback: str
    feedback_image: str | None = None
    score: float
    is_correct: bool


class SaveProgressResult(BaseModel):
    saved_at: datetime
    immediate_feedback: list[ImmediateFeedback] | None = None


class QuestionResult(BaseModel):
    """Single question within a results view, with answer and feedback."""

    id: uuid.UUID
    type: QuestionTypeEnum
    prompt: str
    prompt_image: str | None = None
    options: Any = None
    correct_answer: Any
    feedback: str
    feedback_image: str | None = None
    reference_link: str | None = None
    user_response: Any = None
    score: float
    is_correct: bool


class QuizResults(BaseModel):
    """Final, frozen outcome of a terminal attempt."""

    id: uuid.UUID
    bank_id: uuid.UUID
    bank_title: str
    status: AttemptStatusEnum
    score: float
    max_score: float
    percentage: int
    passed: bool
    time_spent: int
    started_at: datetime
    completed_at: datetime | None = None
    feedback_timing: FeedbackTimingEnum
    questions: list[QuestionResult] = []


class AttemptSummary(BaseModel):
    """One row of GET /api/attempts/mine. Scores are null until terminal."""

    id: uuid.UUID
    bank_id: uuid.UUID
    bank_title: str
    status: AttemptStatusEnum
    score: float | None = None
    max_score: float | None = None
    percentage: int | None = None
    passed: bool | None = None
    started_at: datetime
    completed_at: datetime | None = None
    time_spent: int


class AttemptPage(BaseModel):
    data: list[AttemptSummary]
    meta: PageMeta
