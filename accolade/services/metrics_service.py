"""
accolade.services.metrics_service — SQL Metrics Snapshot Provider
==================================================================

Builds a :class:`~accolade.engine.context.UserContextData` from the
``users`` and ``user_metrics`` tables.

* Every counter in :data:`~accolade.constants.COUNTER_METRICS` is present,
  defaulting to 0 when the host application never wrote it.
* ``account_age_days`` is derived from ``users.created_at``.
* Profile completion flags are derived from the profile text fields:

  - ``profile_basic``    — at least two of bio / first name / last name
  - ``profile_complete`` — all three
  - ``ambassador``       — complete, public, and at least one social link

The host application owns the counters; :func:`increment_metric` and
:func:`set_metric` are the helpers it calls when content changes.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from accolade.constants import COUNTER_METRICS, PROFILE_COMPLETION_FIELDS
from accolade.database.engine import get_session, run_db
from accolade.database.models import User, UserMetric
from accolade.engine.context import ProfileValue, UserContextData, as_utc
from accolade.errors import MetricsUnavailableError, NotFoundError

if TYPE_CHECKING:
    from sqlalchemy import Engine

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Profile derivation (pure)
# ---------------------------------------------------------------------------
def profile_completion(user: User) -> tuple[bool, bool, bool]:
    """Return ``(basic, complete, ambassador)`` for *user*."""
    filled = sum(
        1 for name in PROFILE_COMPLETION_FIELDS
        if (getattr(user, name) or "").strip()
    )
    basic = filled >= 2
    complete = filled == len(PROFILE_COMPLETION_FIELDS)
    ambassador = complete and bool(user.is_public) and _has_socials(user.socials)
    return basic, complete, ambassador


def _has_socials(socials: Mapping[str, Any] | None) -> bool:
    if not socials:
        return False
    return any(str(v).strip() for v in socials.values() if v)


def build_snapshot(
    user: User, counters: Mapping[str, int], now: datetime,
) -> UserContextData:
    """Assemble the snapshot for *user* from its ORM row and counter rows."""
    metrics: dict[str, int | float] = dict.fromkeys(COUNTER_METRICS, 0)
    metrics.update(counters)

    created_at = as_utc(user.created_at) if user.created_at else None
    metrics["account_age_days"] = (now - created_at).days if created_at else 0

    basic, complete, ambassador = profile_completion(user)
    profile: dict[str, ProfileValue] = {
        "email_verified": bool(user.email_verified),
        "banned": bool(user.banned),
        "is_public": bool(user.is_public),
        "profile_basic": basic,
        "profile_complete": complete,
        "ambassador": ambassador,
        "created_at": created_at,
        "last_login_at": as_utc(user.last_login_at) if user.last_login_at else None,
    }
    return UserContextData(
        user_id=user.id, metrics=metrics, profile=profile, captured_at=now,
    )


# ---------------------------------------------------------------------------
# Synchronous workers
# ---------------------------------------------------------------------------
def _load_snapshot(engine: Engine, user_id: str) -> UserContextData:
    with Session(engine) as session:
        user = session.get(User, user_id)
        if user is None:
            raise NotFoundError(f"User {user_id!r} not found")
        rows = session.scalars(
            select(UserMetric).where(UserMetric.user_id == user_id)
        ).all()
        counters = {row.metric: row.value for row in rows}
        return build_snapshot(user, counters, datetime.now(UTC))


def _user_exists(engine: Engine, user_id: str) -> bool:
    with Session(engine) as session:
        return session.get(User, user_id) is not None


def increment_metric(engine: Engine, user_id: str, metric: str, delta: int = 1) -> int:
    """Add *delta* to a user's counter, creating it at 0 first.  Returns the new value."""
    with get_session(engine) as session:
        row = session.get(UserMetric, (user_id, metric))
        if row is None:
            row = UserMetric(user_id=user_id, metric=metric, value=0)
            session.add(row)
        row.value = max(0, row.value + delta)
        logger.debug("Metric %s for user %s → %d", metric, user_id, row.value)
        return row.value


def set_metric(engine: Engine, user_id: str, metric: str, value: int) -> None:
    """Overwrite a user's counter (used by backfills)."""
    with get_session(engine) as session:
        row = session.get(UserMetric, (user_id, metric))
        if row is None:
            session.add(UserMetric(user_id=user_id, metric=metric, value=value))
        else:
            row.value = value


# ---------------------------------------------------------------------------
# MetricsProvider implementation
# ---------------------------------------------------------------------------
class SqlMetricsProvider:
    """Reads snapshots straight from the database on every call.

    Wrap it in :class:`~accolade.engine.cache.CachedMetricsProvider` to
    reuse snapshots across reconciliation sweeps.
    """

    def __init__(self, engine: Engine) -> None:
        self._engine = engine

    async def snapshot(self, user_id: str) -> UserContextData:
        try:
            return await run_db(_load_snapshot, self._engine, user_id)
        except SQLAlchemyError as exc:
            logger.warning("Metrics snapshot for user %s failed: %s", user_id, exc)
            raise MetricsUnavailableError(
                f"Could not read metrics for user {user_id!r}: {exc}"
            ) from exc

    async def has_user(self, user_id: str) -> bool:
        try:
            return await run_db(_user_exists, self._engine, user_id)
        except SQLAlchemyError as exc:
            raise MetricsUnavailableError(
                f"Could not look up user {user_id!r}: {exc}"
            ) from exc
