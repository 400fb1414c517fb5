"""Attempt lifecycle rules.

    IN_PROGRESS ──submit──▶ COMPLETED
         │
         └──time limit──▶ TIMED_OUT

Both targets are terminal: once an attempt leaves IN_PROGRESS its responses,
scores and ``completed_at`` are frozen, and any further mutation is a
domain error rather than a silent no-op. Timeout is detected lazily by
whichever call touches the attempt next.
"""

from __future__ import annotations

import math
from datetime import datetime, timedelta, timezone
from typing import Any, Mapping

from quizbank.core.errors import AttemptNotInProgressError, ValidationError
from quizbank.db.models import AttemptStatusEnum, QuizAttempt
from quizbank.services.scoring import ScoringResult, TotalScore

TERMINAL_STATUSES = frozenset({AttemptStatusEnum.COMPLETED, AttemptStatusEnum.TIMED_OUT})


def as_utc(value: datetime) -> datetime:
    """SQLite hands back naive datetimes; everything stored is UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def is_terminal(status: AttemptStatusEnum) -> bool:
    return status in TERMINAL_STATUSES


def ensure_in_progress(attempt: QuizAttempt) -> None:
    """Guard every mutating transition."""
    if attempt.status != AttemptStatusEnum.IN_PROGRESS:
        raise AttemptNotInProgressError("This attempt is no longer in progress")


def expires_at(started_at: datetime, time_limit_minutes: int) -> datetime | None:
    if time_limit_minutes <= 0:
        return None
    return as_utc(started_at) + timedelta(minutes=time_limit_minutes)


def has_expired(started_at: datetime, time_limit_minutes: int, now: datetime) -> bool:
    """Server-side check; the client's ``time_spent`` is never consulted."""
    deadline = expires_at(started_at, time_limit_minutes)
    return deadline is not None and now > deadline


def elapsed_seconds(started_at: datetime, now: datetime) -> int:
    return max(0, round((now - as_utc(started_at)).total_seconds()))


def filter_responses(question_order: list[str], submitted: Mapping[str, Any]) -> dict[str, Any]:
    """Keep only keys that belong to the attempt's frozen question order."""
    allowed = set(question_order)
    return {qid: answer for qid, answer in submitted.items() if qid in allowed}


def merge_responses(
    existing: Mapping[str, Any] | None,
    accepted: Mapping[str, Any],
) -> tuple[dict[str, Any], list[str]]:
    """Merge *accepted* over *existing*.

    Returns the merged map and the ids answered for the first time.
    """
    existing = dict(existing or {})
    newly_answered = [qid for qid in accepted if qid not in existing]
    return {**existing, **accepted}, newly_answered


def clamp_time_spent(submitted: Any, current: int = 0) -> int:
    """Negative elapsed time is clamped to 0; the stored value never decreases.

    Raises:
        ValidationError: *submitted* is not a finite number.
    """
    if isinstance(submitted, bool) or not isinstance(submitted, (int, float)):
        raise ValidationError("time_spent must be a number of seconds")
    if not math.isfinite(submitted):
        raise ValidationError("time_spent must be a finite number of seconds")
    return max(current or 0, max(0, int(submitted)))


def terminal_patch(
    status: AttemptStatusEnum,
    total: TotalScore,
    per_question: Mapping[str, ScoringResult],
    completed_at: datetime,
    time_spent: int,
) -> dict[str, Any]:
    """Column values written by the single IN_PROGRESS → terminal update."""
    if status not in TERMINAL_STATUSES:
        raise ValueError(f"{status} is not a terminal status")
    return {
        "status": status,
        "score": total.score,
        "max_score": total.max_score,
        "percentage": total.percentage,
        "passed": total.passed,
        "completed_at": completed_at,
        "time_spent": time_spent,
        "question_results": {
            qid: {"score": r.score, "isCorrect": r.is_correct}
            for qid, r in per_question.items()
        },
    }
