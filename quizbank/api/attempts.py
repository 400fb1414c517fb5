"""Attempt resume, auto-save, submission and results routes."""

import uuid

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from quizbank.api.deps import get_current_user, require_autosave_rate_limit
from quizbank.db.models import User
from quizbank.db.session import get_db
from quizbank.schemas.attempt import (
    AttemptPage,
    AttemptState,
    QuizResults,
    SaveProgressRequest,
    SaveProgressResult,
)
from quizbank.services import quiz_session

router = APIRouter()


# Declared before /{attempt_id} so "mine" is not parsed as an id.
@router.get("/mine", response_model=AttemptPage)
def list_my_attempts(
    bank_id: uuid.UUID | None = None,
    page: int = Query(1, ge=1),
    page_size: int | None = Query(None, ge=1),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Current learner's attempts, newest first."""
    return quiz_session.list_attempts(
        db, current_user.id, bank_id=bank_id, page=page, page_size=page_size
    )


@router.get("/{attempt_id}", response_model=AttemptState)
def get_attempt(
    attempt_id: uuid.UUID,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return quiz_session.get_attempt(db, attempt_id, current_user.id)


@router.patch("/{attempt_id}", response_model=SaveProgressResult)
def save_progress(
    attempt_id: uuid.UUID,
    body: SaveProgressRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    _rl: None = Depends(require_autosave_rate_limit),
):
    """Auto-save partial responses and elapsed time."""
    return quiz_session.save_progress(
        db, attempt_id, current_user.id, body.responses, body.time_spent
    )


@router.post("/{attempt_id}/submit", response_model=QuizResults)
def submit_attempt(
    attempt_id: uuid.UUID,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Finalise and score the attempt."""
    return quiz_session.submit_attempt(db, attempt_id, current_user.id)


@router.get("/{attempt_id}/results", response_model=QuizResults)
def get_results(
    attempt_id: uuid.UUID,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return quiz_session.get_results(db, attempt_id, current_user.id)
