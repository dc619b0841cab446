"""
accolade.engine.contracts — Collaborator Interfaces
=====================================================

The three externally-owned resources the engine depends on.  The SQL
implementations live in :mod:`accolade.services`; tests substitute
in-memory fakes or mocks.

Every method is a coroutine: fetching metrics and writing awards are the
only places an evaluation may suspend.
"""

from __future__ import annotations

from datetime import datetime
from typing import Protocol, runtime_checkable

from accolade.engine.badges import Award, BadgeDefinition, InsertOutcome
from accolade.engine.context import UserContextData
from accolade.engine.events import EventType


@runtime_checkable
class MetricsProvider(Protocol):
    async def snapshot(self, user_id: str) -> UserContextData:
        """Return the user's current counters and profile fields.

        Must be side-effect free.  May be slightly stale.  Raises
        :class:`~accolade.errors.NotFoundError` for an unknown user.
        """
        ...

    async def has_user(self, user_id: str) -> bool:
        ...


@runtime_checkable
class BadgeCatalog(Protocol):
    async def active_badges(
        self, event_type: EventType | None = None,
    ) -> list[BadgeDefinition]:
        """Active badges interested in *event_type*, or all of them when ``None``."""
        ...

    async def get_badge(self, badge_id: str) -> BadgeDefinition | None:
        """Any badge by id, active or not."""
        ...


@runtime_checkable
class AwardStore(Protocol):
    async def try_insert(
        self, user_id: str, badge_id: str, earned_at: datetime, reason: str,
    ) -> InsertOutcome:
        """Insert an award unless an active one exists for the pair.

        Implementations may raise :class:`~accolade.errors.ConflictError`
        instead of returning ``ALREADY_EXISTS``, and
        :class:`~accolade.errors.TransientStoreError` instead of ``ERROR``.
        """
        ...

    async def exists(
        self, user_id: str, badge_id: str, *, include_revoked: bool = False,
    ) -> bool:
        ...

    async def revoke(self, user_id: str, badge_id: str) -> None:
        """Mark the active award revoked; ``NotFoundError`` if there is none."""
        ...

    async def history(self, user_id: str, badge_id: str) -> list[Award]:
        """Every award row for the pair, oldest first, revoked ones included."""
        ...
