"""Quiz session service — attempt lifecycle orchestration.

Flow:
  1. start_attempt   → freeze a question order, create an IN_PROGRESS attempt
  2. get_attempt     → resume view of an attempt (answer-free)
  3. save_progress   → merge partial responses, optional immediate feedback
  4. submit_attempt  → score every question once and freeze the result
  5. get_results     → read the frozen result, gated by feedback timing
  6. list_attempts   → paginated summaries of a learner's attempts

Every call that touches a single attempt first re-checks the bank's time
limit against ``started_at`` and finalises an expired attempt as TIMED_OUT.
There is no background sweep; timeout happens at the next touchpoint.
"""

import logging
import math
import random
import uuid
from datetime import datetime, timezone
from typing import Any, Mapping

from sqlalchemy.orm import Session

from quizbank.config import settings
from quizbank.core.errors import (
    AttemptAlreadyCompletedError,
    AttemptInProgressError,
    AttemptNotCompletedError,
    AttemptNotInProgressError,
    AttemptTimedOutError,
    BankUnavailableError,
    LimitExceededError,
    NoQuestionsError,
    NotFoundError,
    ValidationError,
)
from quizbank.db import repository
from quizbank.db.models import (
    AttemptStatusEnum,
    BankStatusEnum,
    FeedbackTimingEnum,
    Question,
    QuestionBank,
    QuestionTypeEnum,
    QuizAttempt,
    RoleEnum,
)
from quizbank.db.session import serializable_transaction
from quizbank.schemas.attempt import (
    AttemptPage,
    AttemptState,
    AttemptSummary,
    ImmediateFeedback,
    QuestionResult,
    QuizResults,
    SaveProgressResult,
)
from quizbank.schemas.common import PageMeta
from quizbank.schemas.quiz import QuizQuestionRead, StartQuizResult
from quizbank.services.answer_format import is_valid_response
from quizbank.services.attempt_state import (
    as_utc,
    clamp_time_spent,
    elapsed_seconds,
    ensure_in_progress,
    expires_at,
    filter_responses,
    has_expired,
    is_terminal,
    merge_responses,
    terminal_patch,
)
from quizbank.services.scoring import (
    ScoringResult,
    TotalScore,
    calculate_total_score,
    score_question,
)

logger = logging.getLogger(__name__)

_rng = random.SystemRandom()

_AVAILABLE_STATUSES = (BankStatusEnum.OPEN, BankStatusEnum.PUBLIC)
_SHUFFLED_OPTION_TYPES = (
    QuestionTypeEnum.MULTIPLE_CHOICE_SINGLE,
    QuestionTypeEnum.MULTIPLE_CHOICE_MULTI,
    QuestionTypeEnum.DRAG_ORDER,
)


def _now() -> datetime:
    return datetime.now(timezone.utc)


# ── Helpers ───────────────────────────────────────────────────────────────────


def _to_quiz_question(question: Question, randomize_answers: bool) -> QuizQuestionRead:
    """Strip answers/feedback; shuffle options where the type allows it."""
    options = question.options
    if (
        randomize_answers
        and question.type in _SHUFFLED_OPTION_TYPES
        and isinstance(options, list)
    ):
        options = list(options)
        _rng.shuffle(options)
    return QuizQuestionRead(
        id=question.id,
        type=question.type,
        prompt=question.prompt,
        prompt_image=question.prompt_image,
        options=options,
    )


def _select_questions(bank: QuestionBank, questions: list[Question]) -> list[Question]:
    """Random sample of ``question_count`` or the first ``question_count`` in order."""
    limit = bank.question_count if bank.question_count > 0 else len(questions)
    limit = min(limit, len(questions))
    if bank.random_questions:
        return _rng.sample(questions, limit)
    return questions[:limit]


def _load_owned_attempt(db: Session, attempt_id: uuid.UUID, user_id: uuid.UUID) -> QuizAttempt:
    attempt = repository.read_attempt(db, attempt_id, user_id)
    if attempt is None:
        raise NotFoundError("Quiz attempt")
    return attempt


def _score_attempt(db: Session, attempt: QuizAttempt) -> tuple[dict[str, ScoringResult], TotalScore]:
    """Score every question in the frozen order; unanswered questions score 0."""
    questions = repository.get_questions(db, attempt.question_order)
    responses = attempt.responses or {}
    per_question: dict[str, ScoringResult] = {}
    for qid in attempt.question_order:
        question = questions.get(qid)
        if question is None:
            # deleted from the bank after the attempt started
            continue
        per_question[qid] = score_question(
            question.type, question.correct_answer, responses.get(qid), question.options
        )
    total = calculate_total_score(per_question.values(), attempt.bank.passing_score)
    return per_question, total


def _finalize(
    db: Session,
    attempt: QuizAttempt,
    status: AttemptStatusEnum,
    now: datetime,
) -> bool:
    """IN_PROGRESS → *status*. Returns False if another call got there first."""
    per_question, total = _score_attempt(db, attempt)
    if status == AttemptStatusEnum.TIMED_OUT:
        time_spent = max(attempt.time_spent or 0, attempt.bank.time_limit * 60)
    else:
        time_spent = max(attempt.time_spent or 0, elapsed_seconds(attempt.started_at, now))
    patch = terminal_patch(status, total, per_question, now, time_spent)
    return repository.update_attempt(db, attempt, patch)


def _expire_if_due(db: Session, attempt: QuizAttempt, now: datetime) -> bool:
    """Finalise an expired IN_PROGRESS attempt as TIMED_OUT (caller commits).

    Returns True when the attempt has just been timed out.
    """
    if attempt.status != AttemptStatusEnum.IN_PROGRESS:
        return False
    if not has_expired(attempt.started_at, attempt.bank.time_limit, now):
        return False
    if _finalize(db, attempt, AttemptStatusEnum.TIMED_OUT, now):
        logger.info(
            "Quiz attempt auto-timed-out: attempt=%s score=%s/%s",
            attempt.id, attempt.score, attempt.max_score,
        )
    return True


def _build_results(db: Session, attempt: QuizAttempt) -> QuizResults:
    """Assemble the result view from the frozen per-question scores."""
    bank = attempt.bank
    questions: list[QuestionResult] = []

    if bank.feedback_timing != FeedbackTimingEnum.NONE:
        frozen = attempt.question_results or {}
        responses = attempt.responses or {}
        rows = repository.get_questions(db, attempt.question_order)
        for qid in attempt.question_order:
            question = rows.get(qid)
            scored = frozen.get(qid)
            if question is None or scored is None:
                continue
            questions.append(
                QuestionResult(
                    id=question.id,
                    type=question.type,
                    prompt=question.prompt,
                    prompt_image=question.prompt_image,
                    options=question.options,
                    correct_answer=question.correct_answer,
                    feedback=question.feedback,
                    feedback_image=question.feedback_image,
                    reference_link=question.reference_link,
                    user_response=responses.get(qid),
                    score=scored["score"],
                    is_correct=scored["isCorrect"],
                )
            )

    return QuizResults(
        id=attempt.id,
        bank_id=attempt.bank_id,
        bank_title=bank.title,
        status=attempt.status,
        score=attempt.score,
        max_score=attempt.max_score,
        percentage=attempt.percentage,
        passed=attempt.passed,
        time_spent=attempt.time_spent,
        started_at=as_utc(attempt.started_at),
        completed_at=as_utc(attempt.completed_at) if attempt.completed_at else None,
        feedback_timing=bank.feedback_timing,
        questions=questions,
    )


# ── Service operations ────────────────────────────────────────────────────────


def start_attempt(
    db: Session,
    bank_id: uuid.UUID,
    user_id: uuid.UUID,
    role: RoleEnum | str = RoleEnum.USER,
) -> StartQuizResult:
    """Start a new attempt against a bank.

    The limit check and the insert run in one SERIALIZABLE transaction so
    two concurrent starts can not both see "under the limit". A learner may
    hold at most one IN_PROGRESS attempt per bank. An expired one is timed
    out and committed in its own unit first, so it stays TIMED_OUT and
    counts toward the limit even when this start is then refused.

    Raises:
        NotFoundError: the bank does not exist.
        BankUnavailableError: DRAFT/ARCHIVED bank and the caller neither owns
            nor administers it.
        NoQuestionsError: the bank has no questions.
        AttemptInProgressError: a live attempt already exists; resume it.
        LimitExceededError: ``max_attempts`` terminal attempts already exist.
    """
    now = _now()
    with serializable_transaction(db):
        stale = repository.find_in_progress_attempt(db, user_id, bank_id)
        if stale is not None:
            _expire_if_due(db, stale, now)

    with serializable_transaction(db):
        bank = repository.get_bank(db, bank_id)
        if bank is None:
            raise NotFoundError("Question bank")

        privileged = role == RoleEnum.ADMIN or bank.created_by_id == user_id
        if bank.status not in _AVAILABLE_STATUSES and not privileged:
            raise BankUnavailableError("This quiz is not currently available")

        questions = repository.get_bank_questions(db, bank.id)
        if not questions:
            raise NoQuestionsError("This quiz has no questions")

        existing = repository.find_in_progress_attempt(db, user_id, bank.id)
        if existing is not None and not _expire_if_due(db, existing, now):
            raise AttemptInProgressError(
                "You already have an in-progress attempt for this quiz",
                details={"attempt_id": str(existing.id)},
            )

        if bank.max_attempts > 0:
            used = repository.count_terminal_attempts(db, user_id, bank.id)
            if used >= bank.max_attempts:
                raise LimitExceededError(
                    f"You have reached the maximum number of attempts "
                    f"({bank.max_attempts}) for this quiz"
                )

        selected = _select_questions(bank, questions)
        attempt = repository.create_attempt(
            db, user_id, bank.id, [str(q.id) for q in selected]
        )
        attempt_id = attempt.id

    logger.info(
        "Quiz attempt started: attempt=%s bank=%s user=%s questions=%d",
        attempt_id, bank_id, user_id, len(selected),
    )
    return StartQuizResult(
        attempt_id=attempt_id,
        bank_title=bank.title,
        time_limit=bank.time_limit,
        question_count=len(selected),
        feedback_timing=bank.feedback_timing,
        questions=[_to_quiz_question(q, bank.random_answers) for q in selected],
    )


def get_attempt(db: Session, attempt_id: uuid.UUID, user_id: uuid.UUID) -> AttemptState:
    """Explicit resume: current state plus the frozen questions, answer-free."""
    attempt = _load_owned_attempt(db, attempt_id, user_id)
    if _expire_if_due(db, attempt, _now()):
        db.commit()

    bank = attempt.bank
    rows = repository.get_questions(db, attempt.question_order)
    questions = [
        _to_quiz_question(rows[qid], bank.random_answers)
        for qid in attempt.question_order
        if qid in rows
    ]
    return AttemptState(
        id=attempt.id,
        bank_id=attempt.bank_id,
        bank_title=bank.title,
        status=attempt.status,
        started_at=as_utc(attempt.started_at),
        expires_at=expires_at(attempt.started_at, bank.time_limit),
        time_spent=attempt.time_spent,
        time_limit=bank.time_limit,
        feedback_timing=bank.feedback_timing,
        question_count=len(questions),
        questions=questions,
        responses=attempt.responses or {},
    )


def save_progress(
    db: Session,
    attempt_id: uuid.UUID,
    user_id: uuid.UUID,
    responses: Mapping[str, Any],
    time_spent: Any,
) -> SaveProgressResult:
    """Auto-save: merge *responses* into the attempt.

    Keys outside the frozen question order and values that do not match the
    question's canonical shape are dropped without comment. With IMMEDIATE
    feedback, each question answered for the first time in this call is
    scored and returned; terminal fields are untouched.

    Raises:
        NotFoundError: unknown attempt, or not the caller's.
        AttemptNotInProgressError: the attempt is already terminal.
        AttemptTimedOutError: the time limit had passed; the attempt has been
            finalised as TIMED_OUT and nothing from this call was stored.
        ValidationError: *responses* is not a mapping or *time_spent* is not
            a number.
    """
    if not isinstance(responses, Mapping):
        raise ValidationError("responses must be an object keyed by question id")

    attempt = _load_owned_attempt(db, attempt_id, user_id)
    ensure_in_progress(attempt)

    now = _now()
    if _expire_if_due(db, attempt, now):
        db.commit()
        raise AttemptTimedOutError(
            "This attempt has timed out",
            details={
                "status": attempt.status.value,
                "completed_at": as_utc(attempt.completed_at).isoformat(),
            },
        )

    new_time_spent = clamp_time_spent(time_spent, attempt.time_spent)
    keyed = filter_responses(attempt.question_order, responses)
    questions = repository.get_questions(db, keyed)
    accepted = {
        qid: answer
        for qid, answer in keyed.items()
        if qid in questions and is_valid_response(questions[qid].type, answer)
    }
    merged, newly_answered = merge_responses(attempt.responses, accepted)
    feedback_timing = attempt.bank.feedback_timing

    if not repository.update_attempt(
        db, attempt, {"responses": merged, "time_spent": new_time_spent}
    ):
        db.rollback()
        raise AttemptNotInProgressError("This attempt is no longer in progress")
    db.commit()

    result = SaveProgressResult(saved_at=now)
    if feedback_timing == FeedbackTimingEnum.IMMEDIATE and newly_answered:
        feedback = []
        for qid in newly_answered:
            question = questions[qid]
            scoring = score_question(
                question.type, question.correct_answer, accepted[qid], question.options
            )
            feedback.append(
                ImmediateFeedback(
                    question_id=question.id,
                    correct_answer=question.correct_answer,
                    feedback=question.feedback,
                    feedback_image=question.feedback_image,
                    score=scoring.score,
                    is_correct=scoring.is_correct,
                )
            )
        result.immediate_feedback = feedback
    return result


def submit_attempt(db: Session, attempt_id: uuid.UUID, user_id: uuid.UUID) -> QuizResults:
    """IN_PROGRESS → COMPLETED (or TIMED_OUT when past the limit), scored once.

    Raises:
        NotFoundError: unknown attempt, or not the caller's.
        AttemptNotInProgressError: the attempt is already terminal.
        AttemptAlreadyCompletedError: a concurrent call finalised it first.
    """
    attempt = _load_owned_attempt(db, attempt_id, user_id)
    ensure_in_progress(attempt)

    now = _now()
    status = (
        AttemptStatusEnum.TIMED_OUT
        if has_expired(attempt.started_at, attempt.bank.time_limit, now)
        else AttemptStatusEnum.COMPLETED
    )
    if not _finalize(db, attempt, status, now):
        db.rollback()
        raise AttemptAlreadyCompletedError(
            "This quiz attempt has already been submitted or timed out"
        )
    db.commit()

    logger.info(
        "Quiz attempt submitted: attempt=%s user=%s bank=%s score=%s/%s "
        "percentage=%s passed=%s status=%s",
        attempt.id, user_id, attempt.bank_id, attempt.score, attempt.max_score,
        attempt.percentage, attempt.passed, attempt.status.value,
    )
    return _build_results(db, attempt)


def get_results(db: Session, attempt_id: uuid.UUID, user_id: uuid.UUID) -> QuizResults:
    """Frozen results of a terminal attempt; per-question detail unless NONE.

    Raises:
        NotFoundError: unknown attempt, or not the caller's.
        AttemptNotCompletedError: still IN_PROGRESS (no partial scores).
    """
    attempt = _load_owned_attempt(db, attempt_id, user_id)
    if _expire_if_due(db, attempt, _now()):
        db.commit()
    if not is_terminal(attempt.status):
        raise AttemptNotCompletedError("This attempt has not been completed yet")
    return _build_results(db, attempt)


def list_attempts(
    db: Session,
    user_id: uuid.UUID,
    bank_id: uuid.UUID | None = None,
    page: int = 1,
    page_size: int | None = None,
) -> AttemptPage:
    """Paginated summaries of the learner's attempts, newest first."""
    page_size = page_size or settings.ATTEMPTS_PAGE_SIZE
    if page < 1 or page_size < 1:
        raise ValidationError("page and page_size must be positive integers")
    page_size = min(page_size, settings.ATTEMPTS_MAX_PAGE_SIZE)

    rows, total = repository.list_attempts(
        db, user_id, bank_id, skip=(page - 1) * page_size, limit=page_size
    )
    data = [
        AttemptSummary(
            id=a.id,
            bank_id=a.bank_id,
            bank_title=a.bank.title,
            status=a.status,
            score=a.score,
            max_score=a.max_score,
            percentage=a.percentage,
            passed=a.passed,
            started_at=as_utc(a.started_at),
            completed_at=as_utc(a.completed_at) if a.completed_at else None,
            time_spent=a.time_spent,
        )
        for a in rows
    ]
    return AttemptPage(
        data=data,
        meta=PageMeta(
            page=page,
            page_size=page_size,
            total_count=total,
            total_pages=math.ceil(total / page_size),
        ),
    )
