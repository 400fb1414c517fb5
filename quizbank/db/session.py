"""SQLAlchemy engine & session factory."""

from contextlib import contextmanager
from typing import Iterator, Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

from quizbank.config import settings

# Lazy initialization - only create engine when first needed
_engine: Optional[Engine] = None
_SessionLocal: Optional[sessionmaker] = None  # type: ignore[type-arg]


def get_engine() -> Engine:
    """Get or create SQLAlchemy engine."""
    global _engine
    if _engine is None:
        _engine = create_engine(
            settings.DATABASE_URL,
            echo=settings.DATABASE_ECHO,
            pool_pre_ping=True,
        )
    return _engine


def get_session_factory():
    """Get or create session factory."""
    global _SessionLocal
    if _SessionLocal is None:
        engine = get_engine()
        _SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    return _SessionLocal


class Base(DeclarativeBase):
    """Shared declarative base for all ORM models."""


def get_db() -> Session:  # type: ignore[misc]
    """FastAPI dependency — yields a DB session and closes it after the request."""
    factory = get_session_factory()
    db = factory()
    try:
        yield db  # type: ignore[misc]
    finally:
        db.close()


@contextmanager
def serializable_transaction(db: Session) -> Iterator[Session]:
    """Run the enclosed block as a single SERIALIZABLE transaction.

    Isolation level can only be chosen when the session procures its
    connection, so any unit of work already open on *db* (typically the
    identity lookup done by the auth dependency) is committed first.
    Commits on success, rolls back and re-raises on any error.
    """
    if db.in_transaction():
        db.commit()
    db.connection(execution_options={"isolation_level": "SERIALIZABLE"})
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
