"""Tests for the SERIALIZABLE unit-of-work helper."""

import uuid
from unittest.mock import patch

import pytest

from quizbank.core.errors import LimitExceededError
from quizbank.db.models import RoleEnum, User
from quizbank.db.session import serializable_transaction


def _user() -> User:
    return User(
        email=f"tx_{uuid.uuid4().hex[:8]}@ex.com",
        full_name="Tx User",
        role=RoleEnum.USER,
        is_active=True,
    )


class TestSerializableTransaction:
    def test_commits_on_success(self, db):
        user = _user()
        with serializable_transaction(db):
            db.add(user)
        assert not db.in_transaction()
        assert db.query(User).filter(User.email == user.email).count() == 1

    def test_rolls_back_on_domain_error(self, db):
        user = _user()
        with pytest.raises(LimitExceededError):
            with serializable_transaction(db):
                db.add(user)
                db.flush()
                raise LimitExceededError("no more attempts")
        assert db.query(User).filter(User.email == user.email).count() == 0

    def test_commits_open_work_before_switching_isolation(self, db):
        earlier = _user()
        db.add(earlier)
        db.flush()
        with pytest.raises(RuntimeError):
            with serializable_transaction(db):
                raise RuntimeError("boom")
        # Work from before the block is not part of the rolled back unit.
        assert db.query(User).filter(User.email == earlier.email).count() == 1

    def test_requests_serializable_isolation(self, db):
        real_connection = db.connection
        with patch.object(db, "connection", side_effect=real_connection) as spy:
            with serializable_transaction(db):
                pass
        spy.assert_called_once_with(execution_options={"isolation_level": "SERIALIZABLE"})
