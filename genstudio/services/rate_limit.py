"""
Inbound rate limiting for the generation API.
Fixed window, fixed threshold, keyed by scope + client IP. The counter backend
is injected: in-process (single worker), Redis (shared across workers) or a
no-op limiter for tests.
"""
import logging
import threading
import time
from abc import ABC, abstractmethod
from typing import Callable

import redis
from starlette.requests import Request

from genstudio.core.config import settings
from genstudio.utils.metrics import rate_limit_rejections_total

logger = logging.getLogger(__name__)

SCOPE_GENERATE_IMAGE = "generate_image"
SCOPE_GENERATE_VIDEO = "generate_video"
SCOPE_STATUS = "status"
SCOPE_TEST_KEY = "test_key"


def get_client_ip(request: Request) -> str:
    """Client IP (supports X-Forwarded-For from proxy)."""
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded and settings.app_env == "production":
        trusted = settings.trusted_proxy_ips_set
        if trusted and request.client and request.client.host in trusted:
            return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "127.0.0.1"


class RateLimiter(ABC):
    """Counter abstraction: one call = one counted request."""

    @abstractmethod
    def check_and_increment(self, key: str) -> bool:
        """Count a request for key. True if it is within the limit."""


class NullRateLimiter(RateLimiter):
    def check_and_increment(self, key: str) -> bool:
        return True


class InMemoryRateLimiter(RateLimiter):
    """Per-process counters. Expired windows are swept on write, at most once per window."""

    def __init__(self, limit: int, window_seconds: int, clock: Callable[[], float] = time.monotonic) -> None:
        self.limit = limit
        self.window_seconds = window_seconds
        self._clock = clock
        self._lock = threading.Lock()
        self._windows: dict[str, tuple[float, int]] = {}
        self._last_sweep = clock()

    def tracked_keys(self) -> int:
        return len(self._windows)

    def _sweep(self, now: float) -> None:
        if now - self._last_sweep < self.window_seconds:
            return
        self._windows = {
            key: window for key, window in self._windows.items() if now - window[0] < self.window_seconds
        }
        self._last_sweep = now

    def check_and_increment(self, key: str) -> bool:
        now = self._clock()
        with self._lock:
            self._sweep(now)
            started, count = self._windows.get(key, (now, 0))
            if now - started >= self.window_seconds:
                started, count = now, 0
            count += 1
            self._windows[key] = (started, count)
        return count <= self.limit


class RedisRateLimiter(RateLimiter):
    """INCR + EXPIRE per key; INCR is atomic across workers. Fails open if Redis is down."""

    def __init__(self, client: redis.Redis, limit: int, window_seconds: int, prefix: str = "rate_limit") -> None:
        self.client = client
        self.limit = limit
        self.window_seconds = window_seconds
        self.prefix = prefix

    def check_and_increment(self, key: str) -> bool:
        redis_key = f"{self.prefix}:{key}"
        try:
            current = self.client.incr(redis_key)
            if current == 1:
                self.client.expire(redis_key, self.window_seconds)
            return current <= self.limit
        except redis.RedisError as e:
            logger.warning("rate_limit_redis_error", extra={"error": str(e)})
            return True  # Fail open - allow the request if Redis is down


def build_rate_limiter(limit: int, window_seconds: int | None = None, redis_url: str | None = None) -> RateLimiter:
    """Redis-backed when a Redis URL is configured, in-process otherwise."""
    window_seconds = window_seconds or settings.rate_limit_window_seconds
    url = settings.redis_url if redis_url is None else redis_url
    if url:
        client = redis.Redis.from_url(url, decode_responses=True)
        return RedisRateLimiter(client, limit, window_seconds)
    return InMemoryRateLimiter(limit, window_seconds)


class InboundRateLimits:
    """One limiter per API scope."""

    def __init__(self, limiters: dict[str, RateLimiter]) -> None:
        self.limiters = limiters

    @classmethod
    def from_settings(cls, app_settings=None) -> "InboundRateLimits":
        app_settings = app_settings or settings
        window = app_settings.rate_limit_window_seconds
        url = app_settings.redis_url
        return cls({
            SCOPE_GENERATE_IMAGE: build_rate_limiter(app_settings.rate_limit_generate_image, window, url),
            SCOPE_GENERATE_VIDEO: build_rate_limiter(app_settings.rate_limit_generate_video, window, url),
            SCOPE_STATUS: build_rate_limiter(app_settings.rate_limit_status, window, url),
            SCOPE_TEST_KEY: build_rate_limiter(app_settings.rate_limit_test_key, window, url),
        })

    @classmethod
    def disabled(cls) -> "InboundRateLimits":
        return cls({})

    def allow(self, scope: str, client_ip: str) -> bool:
        limiter = self.limiters.get(scope)
        if limiter is None or limiter.check_and_increment(f"{scope}:{client_ip}"):
            return True
        rate_limit_rejections_total.labels(scope=scope).inc()
        logger.warning("rate_limited", extra={"scope": scope, "client_ip": client_ip})
        return False
