"""
tests/test_cache.py — CachedMetricsProvider Unit Tests
=======================================================

TTL reuse, invalidation, expiry eviction, and the disabled (ttl=0) mode,
driven by a fake monotonic clock.
"""

from __future__ import annotations

import pytest
from conftest import FakeMetrics, make_snapshot, run_async

from accolade.engine.cache import CachedMetricsProvider
from accolade.engine.contracts import MetricsProvider
from accolade.errors import NotFoundError


class _Clock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def clock():
    return _Clock()


@pytest.fixture
def inner():
    return FakeMetrics({"u1": make_snapshot("u1"), "u2": make_snapshot("u2")})


class TestSnapshotCaching:
    def test_satisfies_provider_protocol(self, inner, clock):
        assert isinstance(CachedMetricsProvider(inner, clock=clock), MetricsProvider)

    def test_reuses_snapshot_within_ttl(self, inner, clock):
        cache = CachedMetricsProvider(inner, ttl_seconds=60, clock=clock)
        first = run_async(cache.snapshot("u1"))
        clock.now += 59
        second = run_async(cache.snapshot("u1"))
        assert first is second
        assert inner.calls == 1

    def test_refetches_after_expiry(self, inner, clock):
        cache = CachedMetricsProvider(inner, ttl_seconds=60, clock=clock)
        run_async(cache.snapshot("u1"))
        clock.now += 60
        run_async(cache.snapshot("u1"))
        assert inner.calls == 2

    def test_zero_ttl_disables_cache(self, inner, clock):
        cache = CachedMetricsProvider(inner, ttl_seconds=0, clock=clock)
        run_async(cache.snapshot("u1"))
        run_async(cache.snapshot("u1"))
        assert inner.calls == 2

    def test_invalidate_one_user(self, inner, clock):
        cache = CachedMetricsProvider(inner, ttl_seconds=60, clock=clock)
        run_async(cache.snapshot("u1"))
        run_async(cache.snapshot("u2"))
        cache.invalidate("u1")
        run_async(cache.snapshot("u1"))
        run_async(cache.snapshot("u2"))
        assert inner.calls == 3

    def test_invalidate_all(self, inner, clock):
        cache = CachedMetricsProvider(inner, ttl_seconds=60, clock=clock)
        run_async(cache.snapshot("u1"))
        cache.invalidate()
        run_async(cache.snapshot("u1"))
        assert inner.calls == 2

    def test_errors_are_not_cached(self, inner, clock):
        cache = CachedMetricsProvider(inner, ttl_seconds=60, clock=clock)
        with pytest.raises(NotFoundError):
            run_async(cache.snapshot("ghost"))
        inner.snapshots["ghost"] = make_snapshot("ghost")
        assert run_async(cache.snapshot("ghost")).user_id == "ghost"

    def test_purge_expired(self, inner, clock):
        cache = CachedMetricsProvider(inner, ttl_seconds=60, clock=clock)
        run_async(cache.snapshot("u1"))
        clock.now += 30
        run_async(cache.snapshot("u2"))
        clock.now += 31
        assert cache.purge_expired() == 1
        assert cache.purge_expired() == 0

    def test_expired_entry_evicted_on_read(self, inner, clock):
        cache = CachedMetricsProvider(inner, ttl_seconds=60, clock=clock)
        run_async(cache.snapshot("u1"))
        clock.now += 61
        inner.snapshots.pop("u1")
        with pytest.raises(NotFoundError):
            run_async(cache.snapshot("u1"))
        assert len(cache) == 0


class TestBoundedSize:
    """Expired snapshots don't pile up for users who never come back."""

    def test_store_drops_expired_entries(self, clock):
        inner = FakeMetrics({f"u{i}": make_snapshot(f"u{i}") for i in range(50)})
        cache = CachedMetricsProvider(inner, ttl_seconds=60, clock=clock)
        for i in range(49):
            run_async(cache.snapshot(f"u{i}"))
        assert len(cache) == 49

        clock.now += 61
        run_async(cache.snapshot("u49"))
        assert len(cache) == 1

    def test_purge_without_new_writes(self, inner, clock):
        cache = CachedMetricsProvider(inner, ttl_seconds=60, clock=clock)
        run_async(cache.snapshot("u1"))
        run_async(cache.snapshot("u2"))
        clock.now += 60
        assert cache.purge_expired() == 2
        assert len(cache) == 0


class TestHasUser:
    def test_deleted_user_not_reported_from_cache(self, inner, clock):
        cache = CachedMetricsProvider(inner, ttl_seconds=60, clock=clock)
        run_async(cache.snapshot("u1"))
        inner.snapshots.clear()
        assert run_async(cache.has_user("u1")) is False

    def test_delegates_for_unknown(self, inner, clock):
        cache = CachedMetricsProvider(inner, ttl_seconds=60, clock=clock)
        assert run_async(cache.has_user("u2")) is True
        assert run_async(cache.has_user("ghost")) is False
