"""
accolade.engine.badges — Badge Definitions & Award Results
===========================================================

Plain data carried between the catalog, the award store, and the engine.
Nothing here touches the database; the SQL services convert ORM rows into
these types at the boundary.
"""

from __future__ import annotations

import enum
import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from accolade.engine.conditions import Condition, parse_condition
from accolade.engine.events import EventType
from accolade.errors import ConfigurationError, ErrorKind

logger = logging.getLogger(__name__)

__all__ = [
    "Award",
    "AwardResult",
    "BadgeCategory",
    "BadgeDefinition",
    "BadgeRarity",
    "InsertOutcome",
]


class BadgeCategory(enum.StrEnum):
    ACHIEVEMENT = "ACHIEVEMENT"
    COMMUNITY = "COMMUNITY"
    SPECIAL = "SPECIAL"
    TIME = "TIME"


class BadgeRarity(enum.StrEnum):
    COMMON = "COMMON"
    UNCOMMON = "UNCOMMON"
    RARE = "RARE"
    EPIC = "EPIC"
    LEGENDARY = "LEGENDARY"


class InsertOutcome(enum.StrEnum):
    """Result of :meth:`AwardStore.try_insert`."""
    CREATED = "CREATED"
    ALREADY_EXISTS = "ALREADY_EXISTS"
    ERROR = "ERROR"


# ---------------------------------------------------------------------------
# BadgeDefinition — what the catalog hands the engine
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class BadgeDefinition:
    """One version of a badge as the engine sees it.

    ``condition`` is ``None`` for manual-only badges, which are never
    awarded automatically.  ``config_error`` is set instead when the stored
    condition could not be parsed; the engine reports such a badge as a
    configuration failure rather than dropping it silently.
    """

    id: str
    title: str
    description: str = ""
    category: BadgeCategory = BadgeCategory.ACHIEVEMENT
    rarity: BadgeRarity = BadgeRarity.COMMON
    color: str | None = None
    icon: str | None = None
    is_active: bool = True
    condition: Condition | None = None
    trigger_events: frozenset[EventType] = field(default_factory=frozenset)
    config_error: str | None = None

    @property
    def is_automatic(self) -> bool:
        return self.condition is not None or self.config_error is not None

    def listens_to(self, event_type: EventType) -> bool:
        return event_type in self.trigger_events

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> BadgeDefinition:
        """Build a definition from a stored row / seed entry.

        Accepts the JSON shape used in ``seeds/badges.yaml``: ``criteria``
        holds the condition tree, ``triggers`` the event affinity.  A bad
        condition or an unknown trigger name is recorded on
        ``config_error``; bad identity fields (missing id, unknown
        category/rarity) raise :class:`ConfigurationError`.
        """
        try:
            badge_id = str(data["id"])
            title = str(data["title"])
            category = BadgeCategory(str(data.get("category", "ACHIEVEMENT")).upper())
            rarity = BadgeRarity(str(data.get("rarity", "COMMON")).upper())
        except (KeyError, ValueError) as exc:
            raise ConfigurationError(f"Invalid badge definition {dict(data)!r}: {exc}") from exc

        condition: Condition | None = None
        config_error: str | None = None
        triggers: frozenset[EventType] = frozenset()
        try:
            triggers = _parse_triggers(data.get("triggers") or ())
            criteria = data.get("criteria")
            if criteria is not None:
                condition = parse_condition(criteria)
        except ConfigurationError as exc:
            config_error = str(exc)
            logger.warning("Badge %r has an invalid configuration: %s", badge_id, exc)

        return cls(
            id=badge_id,
            title=title,
            description=str(data.get("description") or ""),
            category=category,
            rarity=rarity,
            color=data.get("color"),
            icon=data.get("icon"),
            is_active=bool(data.get("is_active", True)),
            condition=condition,
            trigger_events=triggers,
            config_error=config_error,
        )


def _parse_triggers(names: Iterable[str]) -> frozenset[EventType]:
    triggers = set()
    for name in names:
        try:
            triggers.add(EventType(str(name).upper()))
        except ValueError as exc:
            raise ConfigurationError(f"Unknown trigger event: {name!r}") from exc
    return frozenset(triggers)


# ---------------------------------------------------------------------------
# Award records and results
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class Award:
    """A persisted (user, badge) award, active or revoked."""

    user_id: str
    badge_id: str
    earned_at: datetime
    reason: str | None = None
    is_visible: bool = True
    revoked_at: datetime | None = None

    @property
    def is_revoked(self) -> bool:
        return self.revoked_at is not None


@dataclass(frozen=True, slots=True)
class AwardResult:
    """Outcome of one badge inside an evaluation or a manual award."""

    badge_id: str
    awarded: bool = False
    already_had: bool = False
    error: ErrorKind | None = None
    detail: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def created(cls, badge_id: str) -> AwardResult:
        return cls(badge_id=badge_id, awarded=True)

    @classmethod
    def held(cls, badge_id: str) -> AwardResult:
        return cls(badge_id=badge_id, already_had=True)

    @classmethod
    def not_eligible(cls, badge_id: str) -> AwardResult:
        return cls(badge_id=badge_id)

    @classmethod
    def failed(cls, badge_id: str, kind: ErrorKind, detail: str) -> AwardResult:
        return cls(badge_id=badge_id, error=kind, detail=detail)
