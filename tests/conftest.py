"""
tests/conftest.py — Shared Test Fixtures
=========================================

SQLite engines for the SQL services, in-memory fakes for the engine's
collaborators, and a ``run_async`` helper (no pytest-asyncio).
"""

from __future__ import annotations

import asyncio
from datetime import UTC, datetime

import pytest
from sqlalchemy import Engine, create_engine

# ---------------------------------------------------------------------------
# Make JSONB columns work in SQLite for testing.
# SQLite doesn't support JSONB natively, but SQLAlchemy's JSON type works.
# We register a custom type compiler so SQLite renders JSONB as TEXT.
# ---------------------------------------------------------------------------
from sqlalchemy.dialects.postgresql import JSONB as PG_JSONB
from sqlalchemy.orm import Session
from sqlalchemy.pool import StaticPool

from accolade.database.models import Base, Badge, User
from accolade.engine.badges import Award, BadgeDefinition, InsertOutcome
from accolade.engine.context import UserContextData
from accolade.engine.events import EventType
from accolade.errors import NotFoundError

_jsonb_sqlite_registered = False


def _register_jsonb_sqlite_compat():
    """Register SQLite compilation for the PG JSONB type (idempotent)."""
    global _jsonb_sqlite_registered
    if _jsonb_sqlite_registered:
        return
    from sqlalchemy.ext.compiler import compiles

    @compiles(PG_JSONB, "sqlite")
    def _compile_jsonb_as_text(type_, compiler, **kw):
        return "TEXT"

    _jsonb_sqlite_registered = True


_register_jsonb_sqlite_compat()


# Helper to run async tests without pytest-asyncio
def run_async(coro):
    """Run an async coroutine in a new event loop."""
    loop = asyncio.new_event_loop()
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


NOW = datetime(2026, 6, 1, 12, 0, tzinfo=UTC)


# ---------------------------------------------------------------------------
# Database fixtures
# ---------------------------------------------------------------------------
@pytest.fixture
def db_engine() -> Engine:
    """In-memory SQLite engine with all Accolade tables.

    Uses StaticPool so the worker threads behind ``run_db`` share the same
    in-memory database.
    """
    engine = create_engine(
        "sqlite://",
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    return engine


@pytest.fixture
def db_session(db_engine: Engine):
    """Provide a session that rolls back after each test."""
    with Session(db_engine) as session:
        yield session
        session.rollback()


def add_user(engine: Engine, user_id: str = "u1", **fields) -> None:
    """Insert a ``users`` row with sensible defaults."""
    fields.setdefault("email", f"{user_id}@example.org")
    fields.setdefault("created_at", NOW)
    with Session(engine) as session:
        session.add(User(id=user_id, **fields))
        session.commit()


def add_badge(engine: Engine, badge_id: str, **fields) -> None:
    """Insert a ``badges`` row with sensible defaults."""
    fields.setdefault("title", badge_id.replace("_", " ").title())
    fields.setdefault("trigger_events", [])
    with Session(engine) as session:
        session.add(Badge(id=badge_id, **fields))
        session.commit()


# ---------------------------------------------------------------------------
# In-memory collaborators
# ---------------------------------------------------------------------------
class FakeCatalog:
    """BadgeCatalog over a fixed list of definitions."""

    def __init__(self, badges: list[BadgeDefinition]) -> None:
        self.badges = list(badges)

    async def active_badges(self, event_type: EventType | None = None) -> list[BadgeDefinition]:
        return [
            b for b in self.badges
            if b.is_active and (event_type is None or b.listens_to(event_type))
        ]

    async def get_badge(self, badge_id: str) -> BadgeDefinition | None:
        return next((b for b in self.badges if b.id == badge_id), None)


class FakeAwardStore:
    """AwardStore that mimics the partial unique index in memory.

    ``try_insert`` yields to the loop before its check-and-insert so
    concurrent callers genuinely interleave.
    """

    def __init__(self) -> None:
        self.rows: list[Award] = []
        self.insert_calls = 0

    def _active(self, user_id: str, badge_id: str) -> Award | None:
        return next(
            (r for r in self.rows
             if r.user_id == user_id and r.badge_id == badge_id and r.revoked_at is None),
            None,
        )

    async def try_insert(self, user_id, badge_id, earned_at, reason) -> InsertOutcome:
        self.insert_calls += 1
        await asyncio.sleep(0)
        if self._active(user_id, badge_id) is not None:
            return InsertOutcome.ALREADY_EXISTS
        self.rows.append(Award(user_id=user_id, badge_id=badge_id, earned_at=earned_at, reason=reason))
        return InsertOutcome.CREATED

    async def exists(self, user_id, badge_id, *, include_revoked=False) -> bool:
        await asyncio.sleep(0)
        if include_revoked:
            return any(r.user_id == user_id and r.badge_id == badge_id for r in self.rows)
        return self._active(user_id, badge_id) is not None

    async def revoke(self, user_id, badge_id) -> None:
        row = self._active(user_id, badge_id)
        if row is None:
            raise NotFoundError(f"no active award {badge_id!r} for {user_id!r}")
        idx = self.rows.index(row)
        self.rows[idx] = Award(
            user_id=row.user_id,
            badge_id=row.badge_id,
            earned_at=row.earned_at,
            reason=row.reason,
            revoked_at=NOW,
        )

    async def history(self, user_id, badge_id) -> list[Award]:
        return [r for r in self.rows if r.user_id == user_id and r.badge_id == badge_id]


class FakeMetrics:
    """MetricsProvider serving prepared snapshots and counting fetches."""

    def __init__(self, snapshots: dict[str, UserContextData] | None = None) -> None:
        self.snapshots = dict(snapshots or {})
        self.calls = 0

    async def snapshot(self, user_id: str) -> UserContextData:
        self.calls += 1
        await asyncio.sleep(0)
        try:
            return self.snapshots[user_id]
        except KeyError:
            raise NotFoundError(f"User {user_id!r} not found") from None

    async def has_user(self, user_id: str) -> bool:
        return user_id in self.snapshots


def make_snapshot(user_id: str = "u1", *, metrics=None, profile=None) -> UserContextData:
    """Snapshot with every vocabulary name present (zero / False / None)."""
    base_metrics = {"posts_published": 0, "places_owned": 0, "reviews_written": 0,
                    "account_age_days": 0}
    base_profile = {"email_verified": False, "banned": False, "is_public": False,
                    "profile_complete": False, "created_at": NOW, "last_login_at": None}
    base_metrics.update(metrics or {})
    base_profile.update(profile or {})
    return UserContextData(
        user_id=user_id, metrics=base_metrics, profile=base_profile, captured_at=NOW,
    )
