"""
accolade.services.catalog_service — SQL Badge Catalog
======================================================

In-memory, thread-safe cache of the ``badges`` table implementing the
:class:`~accolade.engine.contracts.BadgeCatalog` contract.  Rows are parsed
into :class:`~accolade.engine.badges.BadgeDefinition` once per load, so
evaluations never touch the database for catalog reads.

Usage::

    catalog = SqlBadgeCatalog(engine)
    catalog.load_all()                       # on startup
    badges = await catalog.active_badges(EventType.PLACE_CREATED)
    catalog.reload()                         # after an admin edits a badge
"""

from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING

from sqlalchemy import select
from sqlalchemy.orm import Session

from accolade.database.engine import run_db
from accolade.database.models import Badge
from accolade.engine.badges import BadgeDefinition
from accolade.engine.events import EventType
from accolade.errors import ConfigurationError

if TYPE_CHECKING:
    from sqlalchemy import Engine

logger = logging.getLogger(__name__)


def badge_from_row(row: Badge) -> BadgeDefinition:
    """Convert an ORM row into the engine's definition type.

    A row whose identity fields can't be parsed (unknown category or
    rarity) still yields a definition, flagged with ``config_error``.
    """
    data = {
        "id": row.id,
        "title": row.title,
        "description": row.description,
        "category": row.category,
        "rarity": row.rarity,
        "color": row.color,
        "icon": row.icon,
        "is_active": row.is_active,
        "criteria": row.criteria,
        "triggers": row.trigger_events or [],
    }
    try:
        return BadgeDefinition.from_mapping(data)
    except ConfigurationError as exc:
        logger.warning("Badge %r could not be loaded: %s", row.id, exc)
        return BadgeDefinition(
            id=row.id,
            title=row.title,
            is_active=row.is_active,
            config_error=str(exc),
        )


class SqlBadgeCatalog:
    """Badge catalog backed by the ``badges`` table."""

    def __init__(self, engine: Engine) -> None:
        self._engine = engine
        self._lock = threading.Lock()
        self._loaded = False
        # badge_id → definition, in catalog order
        self._badges: dict[str, BadgeDefinition] = {}

    # -------------------------------------------------------------------
    # Loading (synchronous; call directly or via run_db)
    # -------------------------------------------------------------------
    def load_all(self) -> None:
        """Load every badge, active or not.  Call on startup."""
        with Session(self._engine) as session:
            rows = session.scalars(
                select(Badge).order_by(Badge.created_at, Badge.id)
            ).all()
            badges = {row.id: badge_from_row(row) for row in rows}

        with self._lock:
            self._badges = badges
            self._loaded = True

        broken = sum(1 for b in badges.values() if b.config_error is not None)
        logger.info(
            "Badge catalog loaded: %d badges (%d active, %d misconfigured)",
            len(badges),
            sum(1 for b in badges.values() if b.is_active),
            broken,
        )

    def reload(self) -> None:
        """Re-read the table after catalog edits."""
        self.load_all()

    async def _ensure_loaded(self) -> None:
        if not self._loaded:
            await run_db(self.load_all)

    # -------------------------------------------------------------------
    # BadgeCatalog contract
    # -------------------------------------------------------------------
    async def active_badges(
        self, event_type: EventType | None = None,
    ) -> list[BadgeDefinition]:
        await self._ensure_loaded()
        with self._lock:
            badges = list(self._badges.values())
        return [
            b for b in badges
            if b.is_active and (event_type is None or b.listens_to(event_type))
        ]

    async def get_badge(self, badge_id: str) -> BadgeDefinition | None:
        await self._ensure_loaded()
        with self._lock:
            return self._badges.get(badge_id)

    def all_badges(self) -> list[BadgeDefinition]:
        """Snapshot of the loaded catalog, inactive badges included."""
        with self._lock:
            return list(self._badges.values())
