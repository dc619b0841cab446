"""
accolade.services.stats_service — Catalog Statistics
=====================================================

Aggregate numbers for admin dashboards and the ``stats`` CLI command.
"""

from __future__ import annotations

import logging

from sqlalchemy import Engine, func, select
from sqlalchemy.orm import Session

from accolade.database.models import Badge, UserBadge

logger = logging.getLogger(__name__)


def badge_stats(engine: Engine) -> dict:
    """Return catalog and award counts.

    Keys: ``total``, ``active``, ``inactive``, ``total_awarded`` (active
    awards only), ``revoked``, ``by_category`` and ``by_rarity`` (active
    badges per value), ``top_badges`` (active award count per badge id,
    most awarded first).
    """
    with Session(engine) as session:
        total = session.scalar(select(func.count()).select_from(Badge)) or 0
        active = session.scalar(
            select(func.count()).select_from(Badge).where(Badge.is_active.is_(True))
        ) or 0

        awarded = session.scalar(
            select(func.count()).select_from(UserBadge)
            .where(UserBadge.revoked_at.is_(None))
        ) or 0
        revoked = session.scalar(
            select(func.count()).select_from(UserBadge)
            .where(UserBadge.revoked_at.isnot(None))
        ) or 0

        by_category = dict(session.execute(
            select(Badge.category, func.count())
            .where(Badge.is_active.is_(True))
            .group_by(Badge.category)
        ).all())
        by_rarity = dict(session.execute(
            select(Badge.rarity, func.count())
            .where(Badge.is_active.is_(True))
            .group_by(Badge.rarity)
        ).all())

        top_rows = session.execute(
            select(UserBadge.badge_id, func.count().label("n"))
            .where(UserBadge.revoked_at.is_(None))
            .group_by(UserBadge.badge_id)
            .order_by(func.count().desc(), UserBadge.badge_id)
        ).all()

    logger.debug("Badge stats: %d badges, %d active awards", total, awarded)
    return {
        "total": total,
        "active": active,
        "inactive": total - active,
        "total_awarded": awarded,
        "revoked": revoked,
        "by_category": by_category,
        "by_rarity": by_rarity,
        "top_badges": {row.badge_id: row.n for row in top_rows},
    }
