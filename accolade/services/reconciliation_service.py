"""
accolade.services.reconciliation_service — Full-Catalog Badge Sweep
====================================================================

Periodic job that re-evaluates the whole active catalog for many users.

No domain event fires when a member passes their 90-day or one-year
anniversary, so tenure badges are only ever granted here.  The sweep also
repairs missed awards after an outage, since evaluation is idempotent.

How it works:
    1. For each user id, call :meth:`BadgeEngine.reconcile` (a
       RECONCILIATION event, i.e. the full active catalog).
    2. At most ``concurrency`` users are evaluated at once.
    3. A user whose evaluation raises is recorded in ``failed_users``; the
       sweep carries on with the others.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from sqlalchemy import Engine, select
from sqlalchemy.orm import Session

from accolade.database.models import User

if TYPE_CHECKING:
    from accolade.engine.badge_engine import BadgeEngine
    from accolade.engine.badges import AwardResult

logger = logging.getLogger(__name__)


def all_user_ids(engine: Engine, *, include_banned: bool = False) -> list[str]:
    """Ids of every user the sweep should visit, oldest account first."""
    stmt = select(User.id).order_by(User.created_at, User.id)
    if not include_banned:
        stmt = stmt.where(User.banned.is_(False))
    with Session(engine) as session:
        return list(session.scalars(stmt).all())


async def reconcile_users(
    badge_engine: BadgeEngine,
    user_ids: Iterable[str],
    *,
    concurrency: int = 5,
    timeout: float | None = None,
) -> dict:
    """Run a full sweep for every user in *user_ids*.

    Returns ``{"checked": N, "awarded": M, "errors": E, "failed_users": [...],
    "timestamp": iso8601}`` where ``errors`` counts per-badge failures and
    ``failed_users`` lists users whose whole evaluation raised.
    """
    semaphore = asyncio.Semaphore(max(1, concurrency))
    failed_users: list[str] = []

    async def _one(user_id: str) -> list[AwardResult]:
        async with semaphore:
            try:
                return await badge_engine.reconcile(user_id, timeout=timeout)
            except Exception as exc:
                logger.warning("Badge sweep failed for user %s: %s", user_id, exc)
                failed_users.append(user_id)
                return []

    ids = list(user_ids)
    batches = await asyncio.gather(*(_one(uid) for uid in ids))

    awarded = sum(1 for results in batches for r in results if r.awarded)
    errors = sum(1 for results in batches for r in results if r.error is not None)

    if failed_users or errors:
        logger.warning(
            "Badge sweep: %d users checked, %d badges awarded, "
            "%d badge errors, %d users failed",
            len(ids), awarded, errors, len(failed_users),
        )
    else:
        logger.info(
            "Badge sweep: %d users checked, %d badges awarded", len(ids), awarded,
        )

    return {
        "checked": len(ids),
        "awarded": awarded,
        "errors": errors,
        "failed_users": failed_users,
        "timestamp": datetime.now(UTC).isoformat(),
    }
