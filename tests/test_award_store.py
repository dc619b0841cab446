"""
tests/test_award_store.py — SqlAwardStore Tests
================================================

Exercises the ``uq_user_badges_active`` partial unique index on SQLite:
idempotent inserts, revocation history, and re-award after revoke.
"""

from __future__ import annotations

from datetime import timedelta
from unittest.mock import patch

import pytest
from conftest import NOW, add_badge, add_user, run_async
from sqlalchemy import select
from sqlalchemy.exc import OperationalError

from accolade.database.models import UserBadge
from accolade.engine.badges import InsertOutcome
from accolade.engine.contracts import AwardStore
from accolade.errors import NotFoundError, TransientStoreError
from accolade.services.award_store import SqlAwardStore


@pytest.fixture
def store(db_engine):
    add_user(db_engine, "u1")
    add_user(db_engine, "u2")
    add_badge(db_engine, "welcome")
    add_badge(db_engine, "pioneer")
    return SqlAwardStore(db_engine)


class TestTryInsert:
    def test_satisfies_protocol(self, store):
        assert isinstance(store, AwardStore)

    def test_first_insert_created(self, store, db_session):
        outcome = run_async(store.try_insert("u1", "welcome", NOW, "USER_REGISTERED"))
        assert outcome == InsertOutcome.CREATED
        row = db_session.scalar(select(UserBadge))
        assert (row.user_id, row.badge_id, row.reason) == ("u1", "welcome", "USER_REGISTERED")
        assert row.revoked_at is None
        assert row.is_visible is True

    def test_duplicate_is_already_exists(self, store, db_session):
        run_async(store.try_insert("u1", "welcome", NOW, "first"))
        outcome = run_async(store.try_insert("u1", "welcome", NOW, "second"))
        assert outcome == InsertOutcome.ALREADY_EXISTS
        assert len(db_session.scalars(select(UserBadge)).all()) == 1

    def test_pairs_are_independent(self, store):
        assert run_async(store.try_insert("u1", "welcome", NOW, "r")) == InsertOutcome.CREATED
        assert run_async(store.try_insert("u2", "welcome", NOW, "r")) == InsertOutcome.CREATED
        assert run_async(store.try_insert("u1", "pioneer", NOW, "r")) == InsertOutcome.CREATED

    def test_database_failure_is_error(self, store):
        with patch(
            "accolade.services.award_store.get_session",
            side_effect=OperationalError("INSERT", {}, Exception("disk I/O error")),
        ):
            outcome = run_async(store.try_insert("u1", "welcome", NOW, "r"))
        assert outcome == InsertOutcome.ERROR


class TestExistsAndRevoke:
    def test_exists_tracks_active_award(self, store):
        assert run_async(store.exists("u1", "welcome")) is False
        run_async(store.try_insert("u1", "welcome", NOW, "r"))
        assert run_async(store.exists("u1", "welcome")) is True

    def test_revoke_keeps_history(self, store):
        run_async(store.try_insert("u1", "welcome", NOW, "r"))
        run_async(store.revoke("u1", "welcome"))

        assert run_async(store.exists("u1", "welcome")) is False
        assert run_async(store.exists("u1", "welcome", include_revoked=True)) is True
        [award] = run_async(store.history("u1", "welcome"))
        assert award.is_revoked
        assert award.earned_at == NOW

    def test_reaward_after_revoke_inserts_new_row(self, store):
        run_async(store.try_insert("u1", "welcome", NOW, "first"))
        run_async(store.revoke("u1", "welcome"))
        later = NOW + timedelta(days=1)
        outcome = run_async(store.try_insert("u1", "welcome", later, "second"))

        assert outcome == InsertOutcome.CREATED
        history = run_async(store.history("u1", "welcome"))
        assert [a.reason for a in history] == ["first", "second"]
        assert [a.is_revoked for a in history] == [True, False]

    def test_revoke_without_active_award(self, store):
        with pytest.raises(NotFoundError):
            run_async(store.revoke("u1", "welcome"))

    def test_read_failure_is_transient(self, store):
        with patch(
            "accolade.services.award_store.Session",
            side_effect=OperationalError("SELECT", {}, Exception("gone")),
        ):
            with pytest.raises(TransientStoreError):
                run_async(store.exists("u1", "welcome"))

    def test_awards_for_user(self, store):
        run_async(store.try_insert("u1", "welcome", NOW, "r"))
        run_async(store.try_insert("u1", "pioneer", NOW + timedelta(hours=1), "r"))
        run_async(store.revoke("u1", "welcome"))

        active = run_async(store.awards_for_user("u1"))
        everything = run_async(store.awards_for_user("u1", include_revoked=True))
        assert [a.badge_id for a in active] == ["pioneer"]
        assert [a.badge_id for a in everything] == ["pioneer", "welcome"]
