"""
accolade.engine.events — EventContext and EventType
=====================================================

The event envelope the badge engine consumes.  Domain events from the host
application are normalized into an :class:`EventContext` by the trigger
adapter (:mod:`accolade.services.trigger_service`) before the engine sees
them.  The engine never persists events.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import UTC, datetime

__all__ = ["EventContext", "EventType", "FULL_SWEEP_EVENTS"]


class EventType(enum.StrEnum):
    """Domain events that can make a user eligible for a badge."""
    USER_REGISTERED = "USER_REGISTERED"
    PROFILE_UPDATED = "PROFILE_UPDATED"
    POST_CREATED = "POST_CREATED"
    CONTENT_PUBLISHED = "CONTENT_PUBLISHED"
    PLACE_CREATED = "PLACE_CREATED"
    PLACE_CLAIMED = "PLACE_CLAIMED"
    REVIEW_SUBMITTED = "REVIEW_SUBMITTED"
    EVENT_CREATED = "EVENT_CREATED"
    PRODUCT_CREATED = "PRODUCT_CREATED"
    SERVICE_CREATED = "SERVICE_CREATED"
    MANUAL = "MANUAL"
    RECONCILIATION = "RECONCILIATION"


# Event types that evaluate the whole active catalog instead of the
# badges declaring an affinity for the event.
FULL_SWEEP_EVENTS: frozenset[EventType] = frozenset({
    EventType.MANUAL,
    EventType.RECONCILIATION,
})


@dataclass(frozen=True, slots=True)
class EventContext:
    """Normalized event handed to :meth:`BadgeEngine.evaluate`.

    ``payload`` carries producer-specific details (content id, place id…)
    and ends up in the award's ``reason`` text only.
    """

    event_type: EventType
    user_id: str
    occurred_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    payload: dict = field(default_factory=dict)

    @property
    def is_full_sweep(self) -> bool:
        return self.event_type in FULL_SWEEP_EVENTS

    def describe(self) -> str:
        """Human-readable reason text stored on awards earned from this event."""
        details = ", ".join(f"{k}={v}" for k, v in sorted(self.payload.items()))
        if details:
            return f"{self.event_type.value} ({details})"
        return self.event_type.value
