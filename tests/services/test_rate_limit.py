"""Tests for inbound rate limiting backends."""
from unittest.mock import MagicMock

import redis

from genstudio.services.rate_limit import (
    SCOPE_STATUS,
    SCOPE_TEST_KEY,
    InboundRateLimits,
    InMemoryRateLimiter,
    NullRateLimiter,
    RedisRateLimiter,
    build_rate_limiter,
    get_client_ip,
)


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


class TestInMemory:
    def test_allows_up_to_limit_then_blocks(self):
        limiter = InMemoryRateLimiter(limit=3, window_seconds=60, clock=FakeClock())
        assert [limiter.check_and_increment("ip") for _ in range(4)] == [True, True, True, False]

    def test_window_resets_lazily(self):
        clock = FakeClock()
        limiter = InMemoryRateLimiter(limit=1, window_seconds=60, clock=clock)
        assert limiter.check_and_increment("ip")
        assert not limiter.check_and_increment("ip")
        clock.now += 60
        assert limiter.check_and_increment("ip")

    def test_keys_are_independent(self):
        limiter = InMemoryRateLimiter(limit=1, window_seconds=60, clock=FakeClock())
        assert limiter.check_and_increment("a")
        assert limiter.check_and_increment("b")
        assert not limiter.check_and_increment("a")

    def test_expired_windows_are_dropped(self):
        clock = FakeClock()
        limiter = InMemoryRateLimiter(limit=5, window_seconds=60, clock=clock)
        for n in range(100):
            limiter.check_and_increment(f"10.0.0.{n}")
        assert limiter.tracked_keys() == 100

        clock.now += 61
        assert limiter.check_and_increment("10.0.1.1")
        assert limiter.tracked_keys() == 1

    def test_live_windows_survive_sweep(self):
        clock = FakeClock()
        limiter = InMemoryRateLimiter(limit=1, window_seconds=60, clock=clock)
        clock.now += 30
        assert limiter.check_and_increment("busy")
        clock.now += 31
        assert limiter.check_and_increment("other")
        # "busy" started 31s ago: still counted after the sweep
        assert not limiter.check_and_increment("busy")
        assert limiter.tracked_keys() == 2


class TestRedis:
    def test_incr_and_expire_on_first_hit(self):
        client = MagicMock()
        client.incr.return_value = 1
        limiter = RedisRateLimiter(client, limit=5, window_seconds=60)
        assert limiter.check_and_increment("status:1.2.3.4")
        client.incr.assert_called_once_with("rate_limit:status:1.2.3.4")
        client.expire.assert_called_once_with("rate_limit:status:1.2.3.4", 60)

    def test_over_limit(self):
        client = MagicMock()
        client.incr.return_value = 6
        limiter = RedisRateLimiter(client, limit=5, window_seconds=60)
        assert not limiter.check_and_increment("k")
        client.expire.assert_not_called()

    def test_fails_open_when_redis_down(self):
        client = MagicMock()
        client.incr.side_effect = redis.ConnectionError("down")
        limiter = RedisRateLimiter(client, limit=1, window_seconds=60)
        assert limiter.check_and_increment("k")


def test_build_rate_limiter_backends():
    assert isinstance(build_rate_limiter(5, 60, redis_url=""), InMemoryRateLimiter)
    assert isinstance(build_rate_limiter(5, 60, redis_url="redis://localhost:6379/0"), RedisRateLimiter)


def test_null_limiter_always_allows():
    limiter = NullRateLimiter()
    assert all(limiter.check_and_increment("k") for _ in range(100))


class TestInboundRateLimits:
    def test_scopes_are_counted_separately(self):
        limits = InboundRateLimits({
            SCOPE_STATUS: InMemoryRateLimiter(limit=1, window_seconds=60),
            SCOPE_TEST_KEY: InMemoryRateLimiter(limit=1, window_seconds=60),
        })
        assert limits.allow(SCOPE_STATUS, "1.2.3.4")
        assert limits.allow(SCOPE_TEST_KEY, "1.2.3.4")
        assert not limits.allow(SCOPE_STATUS, "1.2.3.4")
        assert limits.allow(SCOPE_STATUS, "5.6.7.8")

    def test_disabled(self):
        limits = InboundRateLimits.disabled()
        assert all(limits.allow(SCOPE_STATUS, "ip") for _ in range(50))


class TestClientIp:
    def _request(self, host, forwarded=None):
        request = MagicMock()
        request.client.host = host
        request.headers = {"X-Forwarded-For": forwarded} if forwarded else {}
        return request

    def test_direct_client(self):
        assert get_client_ip(self._request("10.0.0.5")) == "10.0.0.5"

    def test_forwarded_header_ignored_outside_production(self):
        assert get_client_ip(self._request("10.0.0.5", "1.1.1.1")) == "10.0.0.5"
