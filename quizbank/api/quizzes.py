"""Quiz start route."""

import uuid

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from quizbank.api.deps import get_current_user
from quizbank.db.models import User
from quizbank.db.session import get_db
from quizbank.schemas.quiz import StartQuizResult
from quizbank.services import quiz_session

router = APIRouter()


@router.post(
    "/{bank_id}/start",
    response_model=StartQuizResult,
    status_code=status.HTTP_201_CREATED,
)
def start_quiz(
    bank_id: uuid.UUID,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Start a new attempt; returns the frozen questions without answers."""
    return quiz_session.start_attempt(db, bank_id, current_user.id, current_user.role)
