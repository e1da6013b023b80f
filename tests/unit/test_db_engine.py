"""Tests for the database layer: engine lifecycle, session scope, column types."""

from datetime import datetime, timedelta, timezone
from uuid import uuid4

import pytest

from market_kernel.db.engine import (
    create_tables,
    get_engine,
    get_session_factory,
    init_engine_from_url,
    is_postgres,
    reset_engine,
    session_scope,
)
from market_kernel.models.account import UserAccount


@pytest.fixture
def module_engine(tmp_path):
    reset_engine()
    engine = init_engine_from_url(f"sqlite:///{tmp_path / 'scope.db'}")
    create_tables()
    yield engine
    reset_engine()


def _account(created_at=None) -> UserAccount:
    now = created_at or datetime(2024, 1, 1, 12, tzinfo=timezone.utc)
    return UserAccount(
        email=f"{uuid4().hex[:8]}@campus.edu",
        full_name="Scope Test",
        role="STUDENT",
        created_at=now,
        updated_at=now,
    )


class TestEngineLifecycle:
    def test_uninitialized_engine_raises(self):
        reset_engine()

        with pytest.raises(RuntimeError, match="not initialized"):
            get_engine()
        with pytest.raises(RuntimeError):
            get_session_factory()

    def test_initialized_engine(self, module_engine):
        assert get_engine() is module_engine
        assert not is_postgres()
        assert module_engine.dialect.name == "sqlite"


class TestSessionScope:
    def test_commits_on_success(self, module_engine):
        account = _account()
        with session_scope() as session:
            session.add(account)

        with session_scope() as session:
            assert session.get(UserAccount, account.id) is not None

    def test_rolls_back_on_error(self, module_engine):
        account = _account()
        with pytest.raises(RuntimeError, match="abort"):
            with session_scope() as session:
                session.add(account)
                session.flush()
                raise RuntimeError("abort")

        with session_scope(get_session_factory()) as session:
            assert session.get(UserAccount, account.id) is None


class TestColumnTypes:
    def test_datetimes_round_trip_as_aware_utc(self, module_engine):
        local = timezone(timedelta(hours=-5))
        account = _account(created_at=datetime(2024, 3, 1, 7, 30, tzinfo=local))
        with session_scope() as session:
            session.add(account)

        with session_scope() as session:
            loaded = session.get(UserAccount, account.id)
            assert loaded.created_at.tzinfo is not None
            assert loaded.created_at == datetime(2024, 3, 1, 12, 30, tzinfo=timezone.utc)

    def test_uuid_primary_key_round_trip(self, module_engine):
        account = _account()
        with session_scope() as session:
            session.add(account)

        with session_scope() as session:
            loaded = session.get(UserAccount, account.id)
            assert loaded.id == account.id
            assert type(loaded.id) is type(account.id)
