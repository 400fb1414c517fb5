"""Storage primitives used by the quiz session service.

Thin wrappers over the ORM so the service reads as a sequence of
check-then-act steps. Nothing here commits; the caller owns the unit of work.
"""

import uuid
from typing import Any, Iterable

from sqlalchemy import func
from sqlalchemy.orm import Session

from quizbank.db.models import (
    AttemptStatusEnum,
    Question,
    QuestionBank,
    QuizAttempt,
)

_TERMINAL = (AttemptStatusEnum.COMPLETED, AttemptStatusEnum.TIMED_OUT)


def _as_uuid(value: uuid.UUID | str) -> uuid.UUID:
    return value if isinstance(value, uuid.UUID) else uuid.UUID(str(value))


# ── Banks & questions (read-only here) ───────────────────────────────────────


def get_bank(db: Session, bank_id: uuid.UUID) -> QuestionBank | None:
    return db.query(QuestionBank).filter(QuestionBank.id == bank_id).first()


def get_bank_questions(db: Session, bank_id: uuid.UUID) -> list[Question]:
    """All questions of a bank in display order."""
    return (
        db.query(Question)
        .filter(Question.bank_id == bank_id)
        .order_by(Question.order, Question.created_at)
        .all()
    )


def get_questions(db: Session, ids: Iterable[str]) -> dict[str, Question]:
    """Fetch questions by id, keyed by ``str(id)``. Missing ids are absent."""
    wanted = [_as_uuid(qid) for qid in ids]
    if not wanted:
        return {}
    rows = db.query(Question).filter(Question.id.in_(wanted)).all()
    return {str(q.id): q for q in rows}


# ── Attempts ─────────────────────────────────────────────────────────────────


def create_attempt(
    db: Session,
    user_id: uuid.UUID,
    bank_id: uuid.UUID,
    question_order: list[str],
) -> QuizAttempt:
    attempt = QuizAttempt(
        user_id=user_id,
        bank_id=bank_id,
        status=AttemptStatusEnum.IN_PROGRESS,
        question_order=list(question_order),
        responses={},
    )
    db.add(attempt)
    db.flush()
    return attempt


def read_attempt(db: Session, attempt_id: uuid.UUID, user_id: uuid.UUID) -> QuizAttempt | None:
    """Owner-scoped read: another learner's attempt looks exactly like a missing one."""
    return (
        db.query(QuizAttempt)
        .filter(QuizAttempt.id == attempt_id, QuizAttempt.user_id == user_id)
        .first()
    )


def update_attempt(db: Session, attempt: QuizAttempt, patch: dict[str, Any]) -> bool:
    """Apply *patch* only while the attempt is still IN_PROGRESS.

    The status guard lives in the UPDATE's WHERE clause, so a concurrent
    submit/timeout can not be overwritten. Returns False when no row matched.
    """
    updated = (
        db.query(QuizAttempt)
        .filter(
            QuizAttempt.id == attempt.id,
            QuizAttempt.status == AttemptStatusEnum.IN_PROGRESS,
        )
        .update(patch, synchronize_session=False)
    )
    db.flush()
    db.refresh(attempt)
    return updated > 0


def count_terminal_attempts(db: Session, user_id: uuid.UUID, bank_id: uuid.UUID) -> int:
    return (
        db.query(func.count(QuizAttempt.id))
        .filter(
            QuizAttempt.user_id == user_id,
            QuizAttempt.bank_id == bank_id,
            QuizAttempt.status.in_(_TERMINAL),
        )
        .scalar()
    )


def find_in_progress_attempt(
    db: Session, user_id: uuid.UUID, bank_id: uuid.UUID
) -> QuizAttempt | None:
    return (
        db.query(QuizAttempt)
        .filter(
            QuizAttempt.user_id == user_id,
            QuizAttempt.bank_id == bank_id,
            QuizAttempt.status == AttemptStatusEnum.IN_PROGRESS,
        )
        .order_by(QuizAttempt.started_at.desc())
        .first()
    )


def list_attempts(
    db: Session,
    user_id: uuid.UUID,
    bank_id: uuid.UUID | None,
    skip: int,
    limit: int,
) -> tuple[list[QuizAttempt], int]:
    """One page of a learner's attempts, newest first, plus the total count."""
    q = db.query(QuizAttempt).filter(QuizAttempt.user_id == user_id)
    if bank_id is not None:
        q = q.filter(QuizAttempt.bank_id == bank_id)
    total = q.count()
    rows = (
        q.order_by(QuizAttempt.started_at.desc())
        .offset(skip)
        .limit(limit)
        .all()
    )
    return rows, total
