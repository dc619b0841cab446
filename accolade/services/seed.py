"""
accolade.services.seed — Badge Catalog Seed Service
====================================================

Seeds the default badge catalog from ``seeds/badges.yaml``.

Seeding is idempotent: only badges whose id is not in the table yet are
inserted, so admin edits to existing badges survive a re-seed.  Every
entry is validated first; one bad entry aborts the whole seed before
anything is written.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import yaml
from sqlalchemy import Engine, select

from accolade.constants import DATE_FIELDS, FLAG_FIELDS, VALID_METRICS
from accolade.database.engine import get_session
from accolade.database.models import Badge
from accolade.engine.badges import BadgeDefinition
from accolade.engine.conditions import (
    condition_to_dict,
    referenced_fields,
    referenced_metrics,
)
from accolade.errors import ConfigurationError

logger = logging.getLogger(__name__)

# Resolve the seeds directory relative to the project root
_SEEDS_DIR = Path(__file__).resolve().parent.parent.parent / "seeds"


def _load_yaml(path: Path) -> Any:
    if not path.exists():
        logger.warning("Seed file not found: %s", path)
        return {}
    with open(path, encoding="utf-8") as fh:
        return yaml.safe_load(fh) or {}


def validate_definition(badge: BadgeDefinition) -> None:
    """Reject a seed entry whose condition is malformed or reads unknown names.

    Raises
    ------
    ConfigurationError
    """
    if badge.config_error is not None:
        raise ConfigurationError(f"Badge {badge.id!r}: {badge.config_error}")
    if badge.condition is None:
        return

    unknown_metrics = referenced_metrics(badge.condition) - VALID_METRICS
    if unknown_metrics:
        raise ConfigurationError(
            f"Badge {badge.id!r} references unknown metrics: {sorted(unknown_metrics)}"
        )
    unknown_fields = referenced_fields(badge.condition) - FLAG_FIELDS - DATE_FIELDS
    if unknown_fields:
        raise ConfigurationError(
            f"Badge {badge.id!r} references unknown profile fields: {sorted(unknown_fields)}"
        )


def load_seed_badges(path: str | Path | None = None) -> list[BadgeDefinition]:
    """Parse and validate every entry of the seed file."""
    data = _load_yaml(Path(path) if path else _SEEDS_DIR / "badges.yaml")
    entries = (data.get("badges") or []) if isinstance(data, dict) else []

    badges: list[BadgeDefinition] = []
    seen: set[str] = set()
    for entry in entries:
        badge = BadgeDefinition.from_mapping(entry)
        validate_definition(badge)
        if badge.id in seen:
            raise ConfigurationError(f"Duplicate badge id in seed file: {badge.id!r}")
        seen.add(badge.id)
        badges.append(badge)
    return badges


def seed_badges(engine: Engine, path: str | Path | None = None) -> int:
    """Insert seed badges that don't exist yet.  Returns how many were added."""
    badges = load_seed_badges(path)
    if not badges:
        return 0

    count = 0
    with get_session(engine) as session:
        existing = set(session.scalars(select(Badge.id)).all())
        for badge in badges:
            if badge.id in existing:
                continue
            session.add(Badge(
                id=badge.id,
                title=badge.title,
                description=badge.description,
                category=badge.category.value,
                rarity=badge.rarity.value,
                color=badge.color,
                icon=badge.icon,
                is_active=badge.is_active,
                criteria=(
                    condition_to_dict(badge.condition)
                    if badge.condition is not None else None
                ),
                trigger_events=sorted(e.value for e in badge.trigger_events),
            ))
            count += 1

    if count:
        logger.info("Seeded %d badges (%d already present).", count, len(badges) - count)
    else:
        logger.info("Badge catalog already seeded — skipping.")
    return count
