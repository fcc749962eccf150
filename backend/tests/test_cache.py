"""Tests for the in-memory TTL cache."""

from datetime import datetime, timedelta, timezone

from app.core.cache import InMemoryTTLCache


class FakeClock:
    def __init__(self):
        self.now = datetime(2026, 1, 1, tzinfo=timezone.utc)

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


class TestInMemoryTTLCache:

    def test_set_get_delete(self):
        cache = InMemoryTTLCache()
        cache.set("u1", "SECRET", timedelta(minutes=10))
        assert cache.get("u1") == "SECRET"
        cache.delete("u1")
        assert cache.get("u1") is None
        cache.delete("u1")

    def test_expiry_is_lazy(self):
        clock = FakeClock()
        cache = InMemoryTTLCache(clock=clock)
        cache.set("u1", "SECRET", timedelta(minutes=10))
        clock.advance(minutes=9)
        assert cache.get("u1") == "SECRET"
        clock.advance(minutes=1)
        assert cache.get("u1") is None
        assert len(cache) == 0

    def test_set_overwrites(self):
        cache = InMemoryTTLCache()
        cache.set("u1", "OLD", timedelta(minutes=10))
        cache.set("u1", "NEW", timedelta(minutes=10))
        assert cache.get("u1") == "NEW"

    def test_purge_expired(self):
        clock = FakeClock()
        cache = InMemoryTTLCache(clock=clock)
        cache.set("a", "1", timedelta(minutes=1))
        cache.set("b", "2", timedelta(minutes=5))
        clock.advance(minutes=2)
        assert cache.purge_expired() == 1
        assert len(cache) == 1
        assert cache.get("b") == "2"

    def test_clear(self):
        cache = InMemoryTTLCache()
        cache.set("a", "1", timedelta(minutes=1))
        cache.clear()
        assert len(cache) == 0
