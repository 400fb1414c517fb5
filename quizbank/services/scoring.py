"""Scoring engine — one pure function per question type.

Every scorer takes a canonical correct answer and a canonical response and
returns a score in [0, 1] plus a correctness flag. All types are binary
except MULTIPLE_CHOICE_MULTI, which awards fractional credit:

    score = max(0, (|C ∩ R| - |R \\ C|) / |C|)

so wrong selections cost as much as right ones earn, and "select
everything" trends toward 0. Unanswered or malformed input always scores 0.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Callable, Iterable

from quizbank.db.models import QuestionTypeEnum
from quizbank.schemas.answers import (
    CircleRegion,
    DragOrderCorrect,
    DragOrderResponse,
    ImageMapCorrect,
    ImageMapResponse,
    MultiChoiceCorrect,
    MultiChoiceResponse,
    RectRegion,
    SingleChoiceAnswer,
    SliderCorrect,
    SliderResponse,
    TrueFalseAnswer,
)
from quizbank.services.answer_format import (
    parse_correct_answer,
    parse_image_regions,
    parse_response,
)


@dataclass(frozen=True)
class ScoringResult:
    score: float
    is_correct: bool


@dataclass(frozen=True)
class TotalScore:
    score: float
    max_score: float
    percentage: int
    passed: bool


UNANSWERED = ScoringResult(score=0.0, is_correct=False)
_CORRECT = ScoringResult(score=1.0, is_correct=True)


def _binary(hit: bool) -> ScoringResult:
    return _CORRECT if hit else UNANSWERED


# ── Per-type scorers ──────────────────────────────────────────────────────────


def score_single_choice(correct: SingleChoiceAnswer, response: SingleChoiceAnswer) -> ScoringResult:
    return _binary(response.option_id == correct.option_id)


def score_true_false(correct: TrueFalseAnswer, response: TrueFalseAnswer) -> ScoringResult:
    return _binary(response.value is correct.value)


def score_multi_choice(correct: MultiChoiceCorrect, response: MultiChoiceResponse) -> ScoringResult:
    """Fractional credit; ``is_correct`` only on exact set equality."""
    correct_set = set(correct.option_ids)
    selected = set(response.option_ids)
    hits = len(correct_set & selected)
    misses = len(selected - correct_set)
    score = max(0.0, (hits - misses) / len(correct_set))
    return ScoringResult(score=score, is_correct=selected == correct_set)


def score_drag_order(correct: DragOrderCorrect, response: DragOrderResponse) -> ScoringResult:
    # Full-length, index-by-index match only; no partial credit.
    return _binary(list(response.ordered_ids) == list(correct.ordered_ids))


def region_contains(region: CircleRegion | RectRegion, x: float, y: float) -> bool:
    if isinstance(region, CircleRegion):
        return (x - region.cx) ** 2 + (y - region.cy) ** 2 <= region.r ** 2
    return (
        region.x <= x <= region.x + region.width
        and region.y <= y <= region.y + region.height
    )


def score_image_map(
    correct: ImageMapCorrect,
    response: ImageMapResponse,
    options: Any = None,
) -> ScoringResult:
    region = parse_image_regions(options).get(correct.region_id)
    if region is None:
        return UNANSWERED
    return _binary(region_contains(region, response.x, response.y))


def score_slider(correct: SliderCorrect, response: SliderResponse) -> ScoringResult:
    # Tolerance is inclusive.
    return _binary(abs(response.value - correct.value) <= correct.tolerance)


_SCORERS: dict[QuestionTypeEnum, Callable[..., ScoringResult]] = {
    QuestionTypeEnum.MULTIPLE_CHOICE_SINGLE: score_single_choice,
    QuestionTypeEnum.MULTIPLE_CHOICE_MULTI: score_multi_choice,
    QuestionTypeEnum.TRUE_FALSE: score_true_false,
    QuestionTypeEnum.DRAG_ORDER: score_drag_order,
    QuestionTypeEnum.SLIDER: score_slider,
}


# ── Main entry points ─────────────────────────────────────────────────────────


def score_question(
    question_type: QuestionTypeEnum | str,
    correct_answer: Any,
    response: Any,
    options: Any = None,
) -> ScoringResult:
    """Score one stored response against its question's stored correct answer.

    Both values are run through the normaliser first; anything absent or
    malformed scores 0 and is never correct.

    Args:
        question_type: The question's declared type (dispatch tag).
        correct_answer: Deserialised ``questions.correct_answer``.
        response: Deserialised learner response, or None when unanswered.
        options: Question options; only IMAGE_MAP reads them (region geometry).
    """
    if response is None:
        return UNANSWERED
    correct = parse_correct_answer(question_type, correct_answer)
    answer = parse_response(question_type, response)
    if correct is None or answer is None:
        return UNANSWERED

    qtype = QuestionTypeEnum(question_type)
    if qtype is QuestionTypeEnum.IMAGE_MAP:
        return score_image_map(correct, answer, options)
    return _SCORERS[qtype](correct, answer)


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def calculate_total_score(results: Iterable[ScoringResult], passing_score: int) -> TotalScore:
    """Aggregate per-question results: one point per question.

    ``percentage`` is rounded half-up to a whole number and ``passed`` is
    ``percentage >= passing_score``. An empty set scores 0%.
    """
    results = list(results)
    max_score = float(len(results))
    score = float(sum(r.score for r in results))
    percentage = _round_half_up(100 * score / max_score) if max_score else 0
    return TotalScore(
        score=score,
        max_score=max_score,
        percentage=percentage,
        passed=percentage >= passing_score,
    )
