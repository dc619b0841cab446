"""
accolade.engine.badge_engine — Badge Evaluation & Award Orchestration
======================================================================

Pipeline for one event::

    EventContext → candidate badges → already held? → snapshot → evaluate
                 → conditional insert → AwardResult

Stages:

1. **Candidates** — badges whose trigger affinity includes the event type,
   or the whole active catalog for MANUAL / RECONCILIATION events.
2. **Existence check** — an active award short-circuits to ``already_had``
   before any evaluation work.
3. **Snapshot** — fetched lazily, once per call, and shared by every
   candidate that needs it.  Domain events bypass any cached snapshot.
4. **Evaluation** — :func:`~accolade.engine.conditions.evaluate_condition`.
5. **Conditional insert** — the store's uniqueness constraint is the only
   serialization point; losing a race is reported as ``already_had``.

Failures are isolated per badge and aggregated into the returned list.
Only caller-level failures (the snapshot can't be fetched at all) raise.
No lock is taken: concurrent calls for the same user are safe because the
award store, not the engine, decides who wins.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime
from typing import TypeVar

from accolade.engine.badges import AwardResult, BadgeDefinition, InsertOutcome
from accolade.engine.cache import CachedMetricsProvider
from accolade.engine.conditions import evaluate_condition
from accolade.engine.context import UserContextData
from accolade.engine.contracts import AwardStore, BadgeCatalog, MetricsProvider
from accolade.engine.events import EventContext, EventType
from accolade.errors import (
    ConfigurationError,
    ConflictError,
    ErrorKind,
    MetricsUnavailableError,
    NotFoundError,
    TransientStoreError,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _utcnow() -> datetime:
    return datetime.now(UTC)


# ---------------------------------------------------------------------------
# Per-call helpers
# ---------------------------------------------------------------------------
class _Deadline:
    """Remaining-time budget shared by every suspending call in one evaluation."""

    def __init__(self, timeout: float | None) -> None:
        loop = asyncio.get_running_loop()
        self._loop = loop
        self._expires = None if timeout is None else loop.time() + timeout

    async def run(self, awaitable: Awaitable[T]) -> T:
        if self._expires is None:
            return await awaitable
        remaining = self._expires - self._loop.time()
        if remaining <= 0:
            # Never started: close the coroutine so it isn't left un-awaited.
            if asyncio.iscoroutine(awaitable):
                awaitable.close()
            raise TimeoutError("evaluation deadline exceeded")
        return await asyncio.wait_for(awaitable, remaining)


class _SnapshotLoader:
    """Fetches the user's snapshot at most once per evaluation call."""

    def __init__(self, metrics: MetricsProvider, user_id: str, as_of: datetime) -> None:
        self._metrics = metrics
        self._user_id = user_id
        self._as_of = as_of
        self._ctx: UserContextData | None = None
        self._timed_out = False

    async def get(self, deadline: _Deadline) -> UserContextData:
        if self._ctx is not None:
            return self._ctx
        if self._timed_out:
            raise TimeoutError("metrics snapshot timed out earlier in this call")
        try:
            ctx = await deadline.run(self._metrics.snapshot(self._user_id))
        except TimeoutError:
            self._timed_out = True
            logger.warning("Metrics snapshot for user %s timed out", self._user_id)
            raise
        except (NotFoundError, MetricsUnavailableError):
            raise
        except Exception as exc:
            raise MetricsUnavailableError(
                f"Could not fetch metrics for user {self._user_id}: {exc}"
            ) from exc
        self._ctx = ctx.at(self._as_of)
        return self._ctx


# ---------------------------------------------------------------------------
# BadgeEngine
# ---------------------------------------------------------------------------
class BadgeEngine:
    """Decides and persists badge awards for domain events.

    Usage::

        engine = BadgeEngine(catalog, store, metrics, default_timeout=10)
        results = await engine.evaluate(
            EventContext(EventType.CONTENT_PUBLISHED, user_id="u1"),
        )
        new = [r.badge_id for r in results if r.awarded]
    """

    def __init__(
        self,
        catalog: BadgeCatalog,
        store: AwardStore,
        metrics: MetricsProvider,
        *,
        default_timeout: float | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._catalog = catalog
        self._store = store
        self._metrics = metrics
        self._default_timeout = default_timeout
        self._clock = clock

    # -------------------------------------------------------------------
    # Automatic evaluation
    # -------------------------------------------------------------------
    async def evaluate(
        self, event: EventContext, *, timeout: float | None = None,
    ) -> list[AwardResult]:
        """Evaluate every candidate badge for *event* and award the eligible ones.

        Parameters
        ----------
        event : The normalized domain event.
        timeout : Seconds allowed for the whole call (falls back to the
            engine's ``default_timeout``).  A badge whose store call or
            snapshot fetch runs past it gets an ``ErrorKind.TIMEOUT`` result.

        Returns
        -------
        One :class:`AwardResult` per candidate badge, in catalog order.

        Raises
        ------
        NotFoundError
            The metrics provider doesn't know the user.
        MetricsUnavailableError
            The snapshot fetch failed outright.
        """
        if not event.is_full_sweep and isinstance(self._metrics, CachedMetricsProvider):
            # A domain event means the host just changed this user's counters.
            self._metrics.invalidate(event.user_id)

        deadline = _Deadline(timeout if timeout is not None else self._default_timeout)
        candidates = await self._candidates(event)
        loader = _SnapshotLoader(self._metrics, event.user_id, event.occurred_at)

        results: list[AwardResult] = []
        for badge in candidates:
            results.append(await self._evaluate_badge(badge, event, loader, deadline))

        self._log_summary(event, results)
        return results

    async def reconcile(
        self, user_id: str, *, timeout: float | None = None,
    ) -> list[AwardResult]:
        """Full-catalog sweep for one user (picks up time-based badges)."""
        event = EventContext(
            event_type=EventType.RECONCILIATION,
            user_id=user_id,
            occurred_at=self._clock(),
        )
        return await self.evaluate(event, timeout=timeout)

    async def _candidates(self, event: EventContext) -> list[BadgeDefinition]:
        if event.is_full_sweep:
            badges = await self._catalog.active_badges(None)
        else:
            badges = await self._catalog.active_badges(event.event_type)
        # Manual-only badges are never awarded by evaluation.
        return [b for b in badges if b.is_automatic]

    async def _evaluate_badge(
        self,
        badge: BadgeDefinition,
        event: EventContext,
        loader: _SnapshotLoader,
        deadline: _Deadline,
    ) -> AwardResult:
        if badge.config_error is not None or badge.condition is None:
            logger.warning(
                "Skipping badge %r: invalid configuration (%s)",
                badge.id, badge.config_error,
            )
            return AwardResult.failed(
                badge.id, ErrorKind.CONFIGURATION, badge.config_error or "no condition",
            )

        try:
            if await deadline.run(self._store.exists(event.user_id, badge.id)):
                return AwardResult.held(badge.id)

            ctx = await loader.get(deadline)
            if not evaluate_condition(badge.condition, ctx):
                return AwardResult.not_eligible(badge.id)

            return await self._insert(
                event.user_id, badge, event.occurred_at, event.describe(), deadline,
            )
        except (NotFoundError, MetricsUnavailableError):
            raise
        except ConfigurationError as exc:
            logger.warning("Badge %r has an invalid condition: %s", badge.id, exc)
            return AwardResult.failed(badge.id, ErrorKind.CONFIGURATION, str(exc))
        except TimeoutError:
            logger.warning(
                "Badge %r for user %s timed out", badge.id, event.user_id,
            )
            return AwardResult.failed(badge.id, ErrorKind.TIMEOUT, "timed out")
        except TransientStoreError as exc:
            logger.warning(
                "Award store unavailable for badge %r, user %s: %s",
                badge.id, event.user_id, exc,
            )
            return AwardResult.failed(badge.id, ErrorKind.TRANSIENT_STORE, str(exc))
        except Exception as exc:
            logger.exception(
                "Unexpected award store failure for badge %r, user %s",
                badge.id, event.user_id,
            )
            return AwardResult.failed(badge.id, ErrorKind.TRANSIENT_STORE, str(exc))

    async def _insert(
        self,
        user_id: str,
        badge: BadgeDefinition,
        earned_at: datetime,
        reason: str,
        deadline: _Deadline,
    ) -> AwardResult:
        """Conditional insert; losing a uniqueness race counts as success."""
        try:
            outcome = await deadline.run(
                self._store.try_insert(user_id, badge.id, earned_at, reason)
            )
        except ConflictError:
            return AwardResult.held(badge.id)

        if outcome == InsertOutcome.CREATED:
            logger.info(
                "Badge awarded: %s (%s) to user %s, reason: %s",
                badge.title, badge.id, user_id, reason,
            )
            return AwardResult.created(badge.id)
        if outcome == InsertOutcome.ALREADY_EXISTS:
            return AwardResult.held(badge.id)
        raise TransientStoreError(f"award store rejected insert for badge {badge.id!r}")

    # -------------------------------------------------------------------
    # Administrative operations
    # -------------------------------------------------------------------
    async def award_manually(
        self,
        user_id: str,
        badge_id: str,
        reason: str,
        *,
        timeout: float | None = None,
    ) -> AwardResult:
        """Grant *badge_id* to *user_id* without evaluating its condition.

        Goes through the same conditional insert as automatic awards, so a
        repeated grant returns ``already_had``.  An inactive badge is
        reported as a configuration failure.

        Raises
        ------
        NotFoundError
            Unknown badge or user.
        """
        badge = await self._catalog.get_badge(badge_id)
        if badge is None:
            raise NotFoundError(f"Badge {badge_id!r} not found")
        if not await self._metrics.has_user(user_id):
            raise NotFoundError(f"User {user_id!r} not found")
        if not badge.is_active:
            return AwardResult.failed(
                badge_id, ErrorKind.CONFIGURATION, "badge is not active",
            )

        deadline = _Deadline(timeout if timeout is not None else self._default_timeout)
        try:
            return await self._insert(user_id, badge, self._clock(), reason, deadline)
        except TimeoutError:
            logger.warning("Manual award of %r to user %s timed out", badge_id, user_id)
            return AwardResult.failed(badge_id, ErrorKind.TIMEOUT, "timed out")
        except TransientStoreError as exc:
            logger.warning("Manual award of %r to user %s failed: %s", badge_id, user_id, exc)
            return AwardResult.failed(badge_id, ErrorKind.TRANSIENT_STORE, str(exc))

    async def revoke(self, user_id: str, badge_id: str) -> None:
        """Mark the user's active award for *badge_id* as revoked.

        Conditions are not re-run; the badge can be earned again by a later
        evaluation or manual award.

        Raises
        ------
        NotFoundError
            Unknown badge, or the user holds no active award for it.
        """
        badge = await self._catalog.get_badge(badge_id)
        if badge is None:
            raise NotFoundError(f"Badge {badge_id!r} not found")
        await self._store.revoke(user_id, badge_id)
        logger.info("Badge revoked: %s (%s) from user %s", badge.title, badge_id, user_id)

    # -------------------------------------------------------------------
    # Logging
    # -------------------------------------------------------------------
    @staticmethod
    def _log_summary(event: EventContext, results: list[AwardResult]) -> None:
        awarded = [r.badge_id for r in results if r.awarded]
        held = sum(1 for r in results if r.already_had)
        failed = [r for r in results if r.error is not None]
        logger.info(
            "Badge evaluation %s for user %s: %d candidates, %d awarded %s, "
            "%d already held, %d errors",
            event.event_type.value, event.user_id, len(results),
            len(awarded), awarded or "", held, len(failed),
        )
        for result in failed:
            logger.warning(
                "Badge %r failed for user %s: %s (%s)",
                result.badge_id, event.user_id, result.error, result.detail,
            )
