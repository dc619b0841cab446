"""
accolade.engine.context — User Context Snapshot
================================================

The read-only view of one user that conditions are evaluated against.
A snapshot is assembled fresh by a metrics provider for each evaluation
call and reused for every candidate badge in that call.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from types import MappingProxyType

__all__ = ["ProfileValue", "UserContextData", "as_utc"]

ProfileValue = bool | datetime | None


def as_utc(value: datetime) -> datetime:
    """Return *value* as an aware UTC datetime (naive values are taken as UTC)."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


@dataclass(frozen=True, slots=True)
class UserContextData:
    """Point-in-time snapshot of one user's counters and profile fields.

    Parameters
    ----------
    user_id : The user this snapshot describes.
    metrics : Named numeric counters (e.g. ``{"posts_published": 4}``).
    profile : Boolean flags and dates referenced by FLAG / DATE_WINDOW
        conditions.  ``None`` means "not set".
    captured_at : When the provider read the data.
    as_of : The instant DATE_WINDOW conditions measure against.  Defaults
        to ``captured_at``; the engine rebinds it to the event time.
    """

    user_id: str
    metrics: Mapping[str, int | float] = field(default_factory=dict)
    profile: Mapping[str, ProfileValue] = field(default_factory=dict)
    captured_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    as_of: datetime | None = None

    def __post_init__(self) -> None:
        # Freeze the mappings so handlers can't mutate a shared snapshot.
        object.__setattr__(self, "metrics", MappingProxyType(dict(self.metrics)))
        object.__setattr__(self, "profile", MappingProxyType(dict(self.profile)))
        if self.as_of is None:
            object.__setattr__(self, "as_of", self.captured_at)

    def at(self, instant: datetime) -> UserContextData:
        """Return a copy of this snapshot measured at *instant*."""
        return replace(self, as_of=instant)
