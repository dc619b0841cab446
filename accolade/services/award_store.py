"""
accolade.services.award_store — SQL Award Store
================================================

Implements :class:`~accolade.engine.contracts.AwardStore` on the
``user_badges`` table.

Idempotency lives entirely in the database: the partial unique index
``uq_user_badges_active`` allows one non-revoked row per (user, badge).
Concurrent inserts race on that index; the loser gets an
``IntegrityError`` and reports ``ALREADY_EXISTS``.  No application lock is
taken.

Each write runs in its own short transaction on a worker thread via
:func:`~accolade.database.engine.run_db`.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from accolade.database.engine import get_session, run_db
from accolade.database.models import UserBadge
from accolade.engine.badges import Award, InsertOutcome
from accolade.engine.context import as_utc
from accolade.errors import NotFoundError, TransientStoreError

if TYPE_CHECKING:
    from sqlalchemy import Engine

logger = logging.getLogger(__name__)


def _active(user_id: str, badge_id: str):
    return select(UserBadge).where(
        UserBadge.user_id == user_id,
        UserBadge.badge_id == badge_id,
        UserBadge.revoked_at.is_(None),
    )


# ---------------------------------------------------------------------------
# Synchronous workers (run on a thread)
# ---------------------------------------------------------------------------
def _insert_award(
    engine: Engine, user_id: str, badge_id: str, earned_at: datetime, reason: str,
) -> InsertOutcome:
    try:
        with get_session(engine) as session:
            session.add(UserBadge(
                user_id=user_id,
                badge_id=badge_id,
                earned_at=earned_at,
                reason=reason,
            ))
            session.flush()
        return InsertOutcome.CREATED
    except IntegrityError:
        # Either the partial index caught a duplicate, or a foreign key failed.
        pass
    except SQLAlchemyError:
        logger.exception("Failed to insert award %s for user %s", badge_id, user_id)
        return InsertOutcome.ERROR

    try:
        with Session(engine) as session:
            held = session.scalar(_active(user_id, badge_id)) is not None
    except SQLAlchemyError:
        logger.exception("Failed to re-check award %s for user %s", badge_id, user_id)
        return InsertOutcome.ERROR

    if held:
        logger.debug("Duplicate award skipped: badge=%s user=%s", badge_id, user_id)
        return InsertOutcome.ALREADY_EXISTS
    logger.warning(
        "Award %s for user %s violated a constraint other than uniqueness",
        badge_id, user_id,
    )
    return InsertOutcome.ERROR


def _to_award(row: UserBadge) -> Award:
    return Award(
        user_id=row.user_id,
        badge_id=row.badge_id,
        earned_at=as_utc(row.earned_at),
        reason=row.reason,
        is_visible=row.is_visible,
        revoked_at=as_utc(row.revoked_at) if row.revoked_at else None,
    )


def _award_exists(
    engine: Engine, user_id: str, badge_id: str, include_revoked: bool,
) -> bool:
    stmt = select(func.count()).select_from(UserBadge).where(
        UserBadge.user_id == user_id,
        UserBadge.badge_id == badge_id,
    )
    if not include_revoked:
        stmt = stmt.where(UserBadge.revoked_at.is_(None))
    with Session(engine) as session:
        return (session.scalar(stmt) or 0) > 0


def _revoke_award(engine: Engine, user_id: str, badge_id: str, revoked_at: datetime) -> None:
    with get_session(engine) as session:
        row = session.scalar(_active(user_id, badge_id))
        if row is None:
            raise NotFoundError(
                f"User {user_id!r} holds no active award for badge {badge_id!r}"
            )
        row.revoked_at = revoked_at


def _award_history(engine: Engine, user_id: str, badge_id: str) -> list[Award]:
    with Session(engine) as session:
        rows = session.scalars(
            select(UserBadge)
            .where(UserBadge.user_id == user_id, UserBadge.badge_id == badge_id)
            .order_by(UserBadge.earned_at, UserBadge.id)
        ).all()
        return [_to_award(row) for row in rows]


def _user_awards(engine: Engine, user_id: str, include_revoked: bool) -> list[Award]:
    stmt = select(UserBadge).where(UserBadge.user_id == user_id)
    if not include_revoked:
        stmt = stmt.where(UserBadge.revoked_at.is_(None))
    with Session(engine) as session:
        rows = session.scalars(stmt.order_by(UserBadge.earned_at.desc())).all()
        return [_to_award(row) for row in rows]


# ---------------------------------------------------------------------------
# AwardStore implementation
# ---------------------------------------------------------------------------
class SqlAwardStore:
    """Award store backed by ``user_badges``.

    Usage::

        store = SqlAwardStore(engine)
        outcome = await store.try_insert("u1", "welcome", now, "USER_REGISTERED")
    """

    def __init__(self, engine: Engine) -> None:
        self._engine = engine

    async def try_insert(
        self, user_id: str, badge_id: str, earned_at: datetime, reason: str,
    ) -> InsertOutcome:
        return await run_db(_insert_award, self._engine, user_id, badge_id, earned_at, reason)

    async def exists(
        self, user_id: str, badge_id: str, *, include_revoked: bool = False,
    ) -> bool:
        try:
            return await run_db(
                _award_exists, self._engine, user_id, badge_id, include_revoked,
            )
        except SQLAlchemyError as exc:
            raise TransientStoreError(f"Award lookup failed: {exc}") from exc

    async def revoke(self, user_id: str, badge_id: str) -> None:
        try:
            await run_db(_revoke_award, self._engine, user_id, badge_id, datetime.now(UTC))
        except SQLAlchemyError as exc:
            raise TransientStoreError(f"Award revocation failed: {exc}") from exc

    async def history(self, user_id: str, badge_id: str) -> list[Award]:
        try:
            return await run_db(_award_history, self._engine, user_id, badge_id)
        except SQLAlchemyError as exc:
            raise TransientStoreError(f"Award history lookup failed: {exc}") from exc

    async def awards_for_user(
        self, user_id: str, *, include_revoked: bool = False,
    ) -> list[Award]:
        """Every award the user holds, newest first."""
        try:
            return await run_db(_user_awards, self._engine, user_id, include_revoked)
        except SQLAlchemyError as exc:
            raise TransientStoreError(f"Award listing failed: {exc}") from exc
