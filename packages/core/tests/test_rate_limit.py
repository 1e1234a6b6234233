"""Tests for TTLStore and RateLimiter with an injected clock."""

import pytest

from billport_core.exceptions import ValidationError
from billport_core.rate_limit import RateLimiter, TTLStore

DAY = 24 * 60 * 60


class TestTTLStore:
    """Test suite for TTLStore."""

    def test_entries_expire(self, clock):
        store = TTLStore(60, clock=clock)
        store.set("a@example.com", 1)

        clock.advance(59)
        assert store.get("a@example.com") == 1
        assert store.expires_in("a@example.com") == 1

        clock.advance(1)
        assert store.get("a@example.com") is None
        assert "a@example.com" not in store

    def test_per_entry_ttl(self, clock):
        store = TTLStore(60, clock=clock)
        store.set("short", "x", ttl_seconds=5)
        clock.advance(10)
        assert store.get("short", "gone") == "gone"

    def test_purge_and_len(self, clock):
        store = TTLStore(10, clock=clock)
        store.set("a", 1)
        clock.advance(5)
        store.set("b", 2)
        clock.advance(5)

        assert store.purge() == 1
        assert len(store) == 1

    def test_expired_keys_swept_on_write(self, clock):
        """Writes sweep expired entries so unique keys do not pile up."""
        store = TTLStore(10, clock=clock)
        for i in range(1000):
            store.set(f"user_{i}", i)

        clock.advance(10)
        store.set("fresh", 1)

        assert store.purge() == 0
        assert len(store) == 1

    def test_delete(self, clock):
        store = TTLStore(10, clock=clock)
        store.set("a", 1)
        store.delete("a")
        assert store.get("a") is None

    def test_invalid_ttl(self):
        with pytest.raises(ValidationError):
            TTLStore(0)


class TestRateLimiter:
    """Test suite for RateLimiter."""

    def test_daily_extraction_limit(self, clock):
        """Ten scans per day, then denied until the window resets."""
        limiter = RateLimiter(10, DAY, clock=clock)

        results = [limiter.check("user_1") for _ in range(10)]
        assert all(r.allowed for r in results)
        assert [r.remaining for r in results] == list(range(9, -1, -1))

        clock.advance(3600)
        denied = limiter.check("user_1")
        assert not denied.allowed
        assert denied.remaining == 0
        assert denied.resets_in == DAY - 3600

        clock.advance(DAY - 3600)
        assert limiter.check("user_1").allowed

    def test_keys_are_independent(self, clock):
        limiter = RateLimiter(1, 60, clock=clock)
        assert limiter.check("a").allowed
        assert limiter.check("b").allowed
        assert not limiter.check("a").allowed

    def test_denied_requests_do_not_extend_window(self, clock):
        limiter = RateLimiter(1, 60, clock=clock)
        limiter.check("a")
        clock.advance(30)
        limiter.check("a")
        clock.advance(30)
        assert limiter.check("a").allowed

    def test_reset_and_purge(self, clock):
        limiter = RateLimiter(1, 60, clock=clock)
        limiter.check("a")
        limiter.reset("a")
        assert limiter.check("a").allowed

        limiter.check("b")
        clock.advance(60)
        assert limiter.purge() == 2

    def test_ended_windows_swept_on_check(self, clock):
        """Checks sweep ended windows so one-off keys do not pile up."""
        limiter = RateLimiter(1, 60, clock=clock)
        for i in range(1000):
            limiter.check(f"ip_10.0.{i // 256}.{i % 256}")

        clock.advance(60)
        assert limiter.check("ip_10.9.9.9").allowed
        assert limiter.purge() == 0

    @pytest.mark.parametrize("max_requests,window", [(0, 60), (1, 0)])
    def test_invalid_settings(self, max_requests, window):
        with pytest.raises(ValidationError):
            RateLimiter(max_requests, window)
