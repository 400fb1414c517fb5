"""Unit tests for the attempt lifecycle rules."""

import math
from datetime import datetime, timedelta, timezone

import pytest

from quizbank.core.errors import AttemptNotInProgressError, ValidationError
from quizbank.db.models import AttemptStatusEnum, QuizAttempt
from quizbank.services.attempt_state import (
    as_utc,
    clamp_time_spent,
    elapsed_seconds,
    ensure_in_progress,
    expires_at,
    filter_responses,
    has_expired,
    merge_responses,
    terminal_patch,
)
from quizbank.services.scoring import ScoringResult, TotalScore

START = datetime(2026, 3, 1, 9, 0, tzinfo=timezone.utc)


class TestTimeLimit:
    def test_unlimited_never_expires(self):
        assert expires_at(START, 0) is None
        assert not has_expired(START, 0, START + timedelta(days=365))

    def test_deadline(self):
        assert expires_at(START, 30) == START + timedelta(minutes=30)

    def test_expiry_is_strictly_after_deadline(self):
        assert not has_expired(START, 30, START + timedelta(minutes=30))
        assert has_expired(START, 30, START + timedelta(minutes=30, seconds=1))

    def test_forty_five_minutes_into_thirty(self):
        assert has_expired(START, 30, START + timedelta(minutes=45))

    def test_naive_start_treated_as_utc(self):
        naive = START.replace(tzinfo=None)
        assert as_utc(naive) == START
        assert has_expired(naive, 1, START + timedelta(minutes=2))

    def test_elapsed_seconds(self):
        assert elapsed_seconds(START, START + timedelta(seconds=90)) == 90
        assert elapsed_seconds(START, START - timedelta(seconds=5)) == 0


class TestResponses:
    ORDER = ["q1", "q2", "q3"]

    def test_foreign_keys_dropped(self):
        kept = filter_responses(self.ORDER, {"q1": {"value": True}, "qForeign": {"value": True}})
        assert kept == {"q1": {"value": True}}

    def test_merge_overwrites_and_reports_new(self):
        merged, new = merge_responses(
            {"q1": {"value": True}},
            {"q1": {"value": False}, "q2": {"value": True}},
        )
        assert merged == {"q1": {"value": False}, "q2": {"value": True}}
        assert new == ["q2"]

    def test_merge_with_nothing_stored(self):
        merged, new = merge_responses(None, {"q3": {"value": True}})
        assert merged == {"q3": {"value": True}}
        assert new == ["q3"]


class TestClampTimeSpent:
    def test_negative_clamped_to_zero(self):
        assert clamp_time_spent(-50) == 0

    def test_never_decreases(self):
        assert clamp_time_spent(30, current=120) == 120
        assert clamp_time_spent(150, current=120) == 150

    def test_float_truncated(self):
        assert clamp_time_spent(12.9) == 12

    @pytest.mark.parametrize("bad", ["60", None, True, math.inf, float("nan"), [1]])
    def test_non_numeric_rejected(self, bad):
        with pytest.raises(ValidationError):
            clamp_time_spent(bad)


class TestTransitions:
    def test_ensure_in_progress(self):
        ensure_in_progress(QuizAttempt(status=AttemptStatusEnum.IN_PROGRESS))
        for status in (AttemptStatusEnum.COMPLETED, AttemptStatusEnum.TIMED_OUT):
            with pytest.raises(AttemptNotInProgressError):
                ensure_in_progress(QuizAttempt(status=status))

    def test_terminal_patch_freezes_everything(self):
        total = TotalScore(score=1.5, max_score=2.0, percentage=75, passed=False)
        now = START + timedelta(minutes=5)
        patch = terminal_patch(
            AttemptStatusEnum.COMPLETED,
            total,
            {"q1": ScoringResult(1.0, True), "q2": ScoringResult(0.5, False)},
            now,
            300,
        )
        assert patch["status"] is AttemptStatusEnum.COMPLETED
        assert (patch["score"], patch["max_score"], patch["percentage"], patch["passed"]) == (
            1.5, 2.0, 75, False,
        )
        assert patch["completed_at"] == now
        assert patch["question_results"]["q2"] == {"score": 0.5, "isCorrect": False}

    def test_terminal_patch_rejects_non_terminal_status(self):
        total = TotalScore(0.0, 0.0, 0, False)
        with pytest.raises(ValueError):
            terminal_patch(AttemptStatusEnum.IN_PROGRESS, total, {}, START, 0)
