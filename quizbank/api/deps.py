"""FastAPI dependencies shared across routes."""

import uuid

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.orm import Session

from quizbank.core.security import decode_access_token
from quizbank.db.models import User
from quizbank.db.session import get_db
from quizbank.services import rate_limiter

# Tokens are minted by the auth service; tokenUrl only feeds the OpenAPI docs.
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login")


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def get_current_user(
    token: str = Depends(oauth2_scheme),
    db: Session = Depends(get_db),
) -> User:
    """Decode JWT and return the authenticated user, or 401."""
    payload = decode_access_token(token)
    if payload is None:
        raise _unauthorized("Invalid or expired token")
    user_id = payload.get("sub")
    if user_id is None:
        raise _unauthorized("Invalid token payload")
    try:
        user_uuid = uuid.UUID(str(user_id))
    except ValueError:
        raise _unauthorized("Invalid token payload")
    user = db.query(User).filter(User.id == user_uuid).first()
    if user is None or not user.is_active:
        raise _unauthorized("User not found or inactive")
    return user


def require_autosave_rate_limit(
    attempt_id: uuid.UUID,
    current_user: User = Depends(get_current_user),
) -> None:
    """Throttle auto-saves per learner and attempt (429 when exhausted)."""
    rate_limiter.check_autosave(current_user.id, attempt_id)
