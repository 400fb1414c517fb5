"""SQLAlchemy ORM models for the quiz platform.

Tables
------
- users           – learner / editor / admin identities (owned by the auth service)
- question_banks  – deliverable assessments and their delivery configuration
- questions       – assessable units inside a bank, with canonical answers
- quiz_attempts   – one learner's run through a bank, frozen at start
"""

import enum
import uuid
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from quizbank.db.session import Base


# ── helpers ───────────────────────────────────────────────────────────────────


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _uuid() -> uuid.UUID:
    return uuid.uuid4()


# JSONB on PostgreSQL, plain JSON everywhere else (SQLite in tests)
JSONType = JSON().with_variant(JSONB(), "postgresql")


# ── Enums (stored as VARCHAR via SQLAlchemy Enum) ─────────────────────────────


class RoleEnum(str, enum.Enum):
    USER = "USER"
    EDITOR = "EDITOR"
    ADMIN = "ADMIN"


class BankStatusEnum(str, enum.Enum):
    DRAFT = "DRAFT"
    OPEN = "OPEN"
    PUBLIC = "PUBLIC"
    ARCHIVED = "ARCHIVED"


class FeedbackTimingEnum(str, enum.Enum):
    IMMEDIATE = "IMMEDIATE"
    END = "END"
    NONE = "NONE"


class QuestionTypeEnum(str, enum.Enum):
    MULTIPLE_CHOICE_SINGLE = "MULTIPLE_CHOICE_SINGLE"
    MULTIPLE_CHOICE_MULTI = "MULTIPLE_CHOICE_MULTI"
    TRUE_FALSE = "TRUE_FALSE"
    DRAG_ORDER = "DRAG_ORDER"
    IMAGE_MAP = "IMAGE_MAP"
    SLIDER = "SLIDER"


class AttemptStatusEnum(str, enum.Enum):
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    TIMED_OUT = "TIMED_OUT"
    ABANDONED = "ABANDONED"  # reserved, never reached by the normal flow


# ── Users ─────────────────────────────────────────────────────────────────────


class User(Base):
    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=_uuid
    )
    email: Mapped[str] = mapped_column(String(255), unique=True, index=True)
    full_name: Mapped[str] = mapped_column(String(255))
    role: Mapped[RoleEnum] = mapped_column(
        Enum(RoleEnum, name="role_enum"), default=RoleEnum.USER
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow
    )

    attempts: Mapped[list["QuizAttempt"]] = relationship(back_populates="user")


# ── Question banks ────────────────────────────────────────────────────────────


class QuestionBank(Base):
    __tablename__ = "question_banks"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=_uuid
    )
    title: Mapped[str] = mapped_column(String(500))
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[BankStatusEnum] = mapped_column(
        Enum(BankStatusEnum, name="bank_status_enum"), default=BankStatusEnum.DRAFT
    )
    time_limit: Mapped[int] = mapped_column(Integer, default=0)  # minutes, 0 = unlimited
    random_questions: Mapped[bool] = mapped_column(Boolean, default=True)
    random_answers: Mapped[bool] = mapped_column(Boolean, default=True)
    passing_score: Mapped[int] = mapped_column(Integer, default=80)  # percent
    feedback_timing: Mapped[FeedbackTimingEnum] = mapped_column(
        Enum(FeedbackTimingEnum, name="feedback_timing_enum"),
        default=FeedbackTimingEnum.END,
    )
    question_count: Mapped[int] = mapped_column(Integer, default=10)  # 0 = all
    max_attempts: Mapped[int] = mapped_column(Integer, default=0)  # 0 = unlimited
    created_by_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id")
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow
    )

    creator: Mapped["User"] = relationship("User")
    questions: Mapped[list["Question"]] = relationship(
        back_populates="bank",
        cascade="all, delete-orphan",
        order_by="Question.order",
    )
    # No cascade: deleting a bank that still has attempts must fail.
    attempts: Mapped[list["QuizAttempt"]] = relationship(back_populates="bank")


# ── Questions ─────────────────────────────────────────────────────────────────


class Question(Base):
    __tablename__ = "questions"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=_uuid
    )
    bank_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("question_banks.id", ondelete="CASCADE"), index=True
    )
    type: Mapped[QuestionTypeEnum] = mapped_column(
        Enum(QuestionTypeEnum, name="question_type_enum")
    )
    prompt: Mapped[str] = mapped_column(Text)  # sanitized upstream
    prompt_image: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    options: Mapped[Any] = mapped_column(JSONType)  # list of choices, or a config object
    correct_answer: Mapped[dict] = mapped_column(JSONType)  # canonical shape per type
    feedback: Mapped[str] = mapped_column(Text, default="")
    feedback_image: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    reference_link: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    order: Mapped[int] = mapped_column(Integer, default=0)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow
    )

    bank: Mapped["QuestionBank"] = relationship(back_populates="questions")


# ── Attempts ──────────────────────────────────────────────────────────────────


class QuizAttempt(Base):
    """One learner's attempt at a bank.

    ``question_order`` is frozen at creation and is the only valid key set for
    ``responses``. The scoring fields and ``question_results`` stay null until
    the attempt reaches a terminal status and never change afterwards.
    """

    __tablename__ = "quiz_attempts"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=_uuid
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id")
    )
    bank_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("question_banks.id", ondelete="RESTRICT")
    )
    status: Mapped[AttemptStatusEnum] = mapped_column(
        Enum(AttemptStatusEnum, name="attempt_status_enum"),
        default=AttemptStatusEnum.IN_PROGRESS,
    )
    score: Mapped[float | None] = mapped_column(Float, nullable=True)
    max_score: Mapped[float | None] = mapped_column(Float, nullable=True)
    percentage: Mapped[int | None] = mapped_column(Integer, nullable=True)
    passed: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    started_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow
    )
    completed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    time_spent: Mapped[int] = mapped_column(Integer, default=0)  # seconds
    question_order: Mapped[list] = mapped_column(JSONType)  # list[str] question ids
    responses: Mapped[dict] = mapped_column(JSONType, default=dict)
    question_results: Mapped[dict | None] = mapped_column(JSONType, nullable=True)

    user: Mapped["User"] = relationship(back_populates="attempts")
    bank: Mapped["QuestionBank"] = relationship(back_populates="attempts")

    __table_args__ = (
        Index("ix_quiz_attempts_user_bank_status", "user_id", "bank_id", "status"),
    )
