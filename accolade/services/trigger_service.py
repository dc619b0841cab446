"""
accolade.services.trigger_service — Domain Event → Badge Evaluation
====================================================================

The single adapter the host application calls after a domain action
succeeds.  Each method builds exactly one
:class:`~accolade.engine.events.EventContext` and hands it to
:meth:`BadgeEngine.evaluate`.

Award-granting is best-effort: every failure is logged and swallowed so a
badge problem never blocks a registration, a post, or a place edit.  All
methods are safe to call more than once for the same action (duplicate
delivery yields ``already_had`` results, never a second award).

Usage::

    triggers = BadgeTriggerService(engine)
    await triggers.on_content_published(user.id, post_id=post.id)
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

from accolade.engine.badge_engine import BadgeEngine
from accolade.engine.badges import AwardResult
from accolade.engine.events import EventContext, EventType
from accolade.errors import AccoladeError

logger = logging.getLogger(__name__)


class BadgeTriggerService:
    """One method per domain event."""

    def __init__(self, engine: BadgeEngine) -> None:
        self._engine = engine

    async def _fire(
        self,
        event_type: EventType,
        user_id: str,
        occurred_at: datetime | None = None,
        **payload: Any,
    ) -> list[AwardResult]:
        kwargs: dict[str, Any] = {
            "payload": {k: v for k, v in payload.items() if v is not None},
        }
        if occurred_at is not None:
            kwargs["occurred_at"] = occurred_at
        event = EventContext(event_type=event_type, user_id=user_id, **kwargs)

        try:
            results = await self._engine.evaluate(event)
        except AccoladeError as exc:
            logger.warning(
                "Badge check skipped for %s: %s", event.describe(), exc,
            )
            return []
        except Exception:
            logger.exception("Badge check failed for %s", event.describe())
            return []

        awarded = [r.badge_id for r in results if r.awarded]
        if awarded:
            logger.info(
                "%s for user %s earned %d badge(s): %s",
                event_type.value, user_id, len(awarded), ", ".join(awarded),
            )
        return results

    # -------------------------------------------------------------------
    # Domain events
    # -------------------------------------------------------------------
    async def on_user_registered(
        self, user_id: str, *, occurred_at: datetime | None = None,
    ) -> list[AwardResult]:
        return await self._fire(EventType.USER_REGISTERED, user_id, occurred_at)

    async def on_profile_updated(
        self, user_id: str, *, occurred_at: datetime | None = None,
    ) -> list[AwardResult]:
        return await self._fire(EventType.PROFILE_UPDATED, user_id, occurred_at)

    async def on_post_created(
        self,
        user_id: str,
        *,
        post_id: str | None = None,
        occurred_at: datetime | None = None,
    ) -> list[AwardResult]:
        """A draft was saved; publishing fires :meth:`on_content_published`."""
        return await self._fire(
            EventType.POST_CREATED, user_id, occurred_at, post_id=post_id,
        )

    async def on_content_published(
        self,
        user_id: str,
        *,
        post_id: str | None = None,
        occurred_at: datetime | None = None,
    ) -> list[AwardResult]:
        return await self._fire(
            EventType.CONTENT_PUBLISHED, user_id, occurred_at, post_id=post_id,
        )

    async def on_place_created(
        self,
        user_id: str,
        *,
        place_id: str | None = None,
        occurred_at: datetime | None = None,
    ) -> list[AwardResult]:
        return await self._fire(
            EventType.PLACE_CREATED, user_id, occurred_at, place_id=place_id,
        )

    async def on_place_claimed(
        self,
        user_id: str,
        *,
        place_id: str | None = None,
        occurred_at: datetime | None = None,
    ) -> list[AwardResult]:
        return await self._fire(
            EventType.PLACE_CLAIMED, user_id, occurred_at, place_id=place_id,
        )

    async def on_review_submitted(
        self,
        user_id: str,
        *,
        place_id: str | None = None,
        occurred_at: datetime | None = None,
    ) -> list[AwardResult]:
        return await self._fire(
            EventType.REVIEW_SUBMITTED, user_id, occurred_at, place_id=place_id,
        )

    async def on_event_created(
        self,
        user_id: str,
        *,
        event_id: str | None = None,
        occurred_at: datetime | None = None,
    ) -> list[AwardResult]:
        return await self._fire(
            EventType.EVENT_CREATED, user_id, occurred_at, event_id=event_id,
        )

    async def on_product_created(
        self,
        user_id: str,
        *,
        product_id: str | None = None,
        occurred_at: datetime | None = None,
    ) -> list[AwardResult]:
        return await self._fire(
            EventType.PRODUCT_CREATED, user_id, occurred_at, product_id=product_id,
        )

    async def on_service_created(
        self,
        user_id: str,
        *,
        service_id: str | None = None,
        occurred_at: datetime | None = None,
    ) -> list[AwardResult]:
        return await self._fire(
            EventType.SERVICE_CREATED, user_id, occurred_at, service_id=service_id,
        )

    # -------------------------------------------------------------------
    # Sweeps and manual grants
    # -------------------------------------------------------------------
    async def check_all_badges(self, user_id: str) -> list[AwardResult]:
        """Evaluate the whole active catalog for *user_id*."""
        return await self._fire(EventType.RECONCILIATION, user_id)

    async def award_special_badge(self, user_id: str, badge_id: str, reason: str) -> bool:
        """Grant a manual-only badge (e.g. ``pioneer``).

        Returns ``True`` when a new award was created, ``False`` when the
        user already held it or the grant failed.
        """
        try:
            result = await self._engine.award_manually(user_id, badge_id, reason)
        except AccoladeError as exc:
            logger.warning("Special badge %r for user %s refused: %s", badge_id, user_id, exc)
            return False
        except Exception:
            logger.exception("Special badge %r for user %s failed", badge_id, user_id)
            return False

        if result.error is not None:
            logger.warning(
                "Special badge %r for user %s not granted: %s (%s)",
                badge_id, user_id, result.error, result.detail,
            )
        return result.awarded
