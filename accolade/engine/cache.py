"""
accolade.engine.cache — Short-Lived Metrics Snapshot Cache
============================================================

Optional wrapper around a :class:`~accolade.engine.contracts.MetricsProvider`
that reuses a user's snapshot for ``ttl_seconds``.  Useful for repeated
sweeps and manual grants over the same users.

:class:`~accolade.engine.badge_engine.BadgeEngine` calls
:meth:`CachedMetricsProvider.invalidate` before every domain event, since
the host application has just changed that user's counters.  Expired
entries are dropped on read and whenever a new snapshot is stored.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable

from accolade.engine.context import UserContextData
from accolade.engine.contracts import MetricsProvider

logger = logging.getLogger(__name__)


class CachedMetricsProvider:
    """Thread-safe TTL cache in front of a metrics provider.

    Usage:
        metrics = CachedMetricsProvider(SqlMetricsProvider(engine), ttl_seconds=300)
        ctx = await metrics.snapshot("user-1")     # provider hit
        ctx = await metrics.snapshot("user-1")     # cached
        metrics.invalidate("user-1")
    """

    def __init__(
        self,
        provider: MetricsProvider,
        *,
        ttl_seconds: float = 300.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._provider = provider
        self._ttl = ttl_seconds
        self._clock = clock
        self._lock = threading.Lock()
        # user_id → (expires_at, snapshot)
        self._entries: dict[str, tuple[float, UserContextData]] = {}

    async def snapshot(self, user_id: str) -> UserContextData:
        if self._ttl <= 0:
            return await self._provider.snapshot(user_id)

        now = self._clock()
        with self._lock:
            entry = self._entries.get(user_id)
            if entry is not None:
                if entry[0] > now:
                    return entry[1]
                del self._entries[user_id]

        ctx = await self._provider.snapshot(user_id)
        now = self._clock()
        with self._lock:
            self._drop_expired(now)
            self._entries[user_id] = (now + self._ttl, ctx)
        return ctx

    async def has_user(self, user_id: str) -> bool:
        # Always asks the provider: a cached snapshot may outlive the user row.
        return await self._provider.has_user(user_id)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def invalidate(self, user_id: str | None = None) -> None:
        """Drop one user's cached snapshot, or every entry when *user_id* is None."""
        with self._lock:
            if user_id is None:
                self._entries.clear()
            else:
                self._entries.pop(user_id, None)

    def purge_expired(self) -> int:
        """Remove expired entries; returns how many were dropped."""
        with self._lock:
            dropped = self._drop_expired(self._clock())
        if dropped:
            logger.debug("Purged %d expired metrics snapshots", dropped)
        return dropped

    def _drop_expired(self, now: float) -> int:
        # Caller holds self._lock.
        stale = [uid for uid, (expires, _) in self._entries.items() if expires <= now]
        for uid in stale:
            del self._entries[uid]
        return len(stale)
