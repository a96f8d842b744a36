"""Fixed-window rate limiting for the auth and public verification endpoints.

Counters live in Redis when ``REDIS_URL`` is configured so that several app
instances share them; otherwise each process keeps its own in-memory window.
"""

from __future__ import annotations

import logging
import time
from collections import defaultdict, deque
from threading import Lock
from typing import Deque, DefaultDict, Dict, Protocol, Tuple
from urllib.parse import urlsplit

from redis import Redis, from_url
from redis.exceptions import RedisError

from academy.core.settings import settings

logger = logging.getLogger(__name__)


class RateLimiter(Protocol):
    def register_attempt(self, key: str) -> Tuple[bool, float | None]: ...


def _mask_redis_url(url: str) -> str:
    try:
        parsed = urlsplit(url)
    except ValueError:
        return "redis://<invalid>"

    host = parsed.hostname or "localhost"
    port = f":{parsed.port}" if parsed.port else ""
    scheme = parsed.scheme or "redis"
    return f"{scheme}://{host}{port}{parsed.path or ''}"


class FixedWindowRateLimiter:
    """Track attempts per key within a rolling time window (in-memory)."""

    def __init__(self, max_attempts: int, window_seconds: int) -> None:
        self._max_attempts = max_attempts
        self._window = float(window_seconds)
        self._hits: DefaultDict[str, Deque[float]] = defaultdict(deque)
        self._lock = Lock()

    def register_attempt(self, key: str) -> Tuple[bool, float | None]:
        """Record a hit; returns (allowed, seconds until the next allowed hit)."""

        now = time.monotonic()
        cutoff = now - self._window
        with self._lock:
            bucket = self._hits[key]
            while bucket and bucket[0] <= cutoff:
                bucket.popleft()
            if len(bucket) >= self._max_attempts:
                retry_after = bucket[0] + self._window - now
                return False, max(retry_after, 0.0)
            bucket.append(now)
            return True, None

    def reset(self) -> None:
        with self._lock:
            self._hits.clear()


_RATE_LIMIT_LUA = """
local key = KEYS[1]
local now = tonumber(ARGV[1])
local window = tonumber(ARGV[2])
local limit = tonumber(ARGV[3])

redis.call('ZREMRANGEBYSCORE', key, '-inf', now - window)
local count = redis.call('ZCARD', key)
if count >= limit then
  local oldest = redis.call('ZRANGE', key, 0, 0, 'WITHSCORES')
  local retry_after = window
  if oldest[2] then
    retry_after = oldest[2] + window - now
  end
  return {0, tostring(retry_after)}
end

redis.call('ZADD', key, now, now)
redis.call('EXPIRE', key, math.ceil(window))
return {1, '0'}
"""


class RedisFixedWindowRateLimiter:
    """Same window semantics, backed by a Redis sorted set per key."""

    def __init__(
        self,
        client: Redis,
        max_attempts: int,
        window_seconds: int,
        *,
        namespace: str,
    ) -> None:
        self._max_attempts = int(max_attempts)
        self._window = float(window_seconds)
        self._namespace = namespace
        self._script = client.register_script(_RATE_LIMIT_LUA)

    def _key(self, key: str) -> str:
        return f"academy:rate:{self._namespace}:{key}"

    def register_attempt(self, key: str) -> Tuple[bool, float | None]:
        allowed, retry_after = self._script(
            keys=[self._key(key)],
            args=[time.time(), self._window, self._max_attempts],
        )
        if int(allowed):
            return True, None
        return False, max(float(retry_after), 0.0)


def build_rate_limiter(
    namespace: str, *, max_attempts: int, window_seconds: int
) -> RateLimiter:
    if settings.redis_url:
        try:
            client = from_url(settings.redis_url, decode_responses=True)
            limiter = RedisFixedWindowRateLimiter(
                client,
                max_attempts=max_attempts,
                window_seconds=window_seconds,
                namespace=namespace,
            )
            logger.info(
                "Using Redis at %s for %s rate limiting",
                _mask_redis_url(settings.redis_url),
                namespace,
            )
            return limiter
        except RedisError as exc:
            logger.warning(
                "Could not initialise Redis for %s rate limiting; using memory",
                namespace,
                exc_info=exc,
            )
    return FixedWindowRateLimiter(max_attempts=max_attempts, window_seconds=window_seconds)


_limiters: Dict[str, RateLimiter] = {
    "auth": build_rate_limiter(
        "auth",
        max_attempts=settings.auth_rate_limit_max_attempts,
        window_seconds=settings.auth_rate_limit_window_seconds,
    ),
    "verify": build_rate_limiter(
        "verify",
        max_attempts=settings.verify_rate_limit_max_attempts,
        window_seconds=settings.verify_rate_limit_window_seconds,
    ),
}


def check_rate_limit(scope: str, identifier: str) -> float | None:
    """Return None when allowed, otherwise the seconds to wait."""

    allowed, retry_after = _limiters[scope].register_attempt(identifier)
    if allowed:
        return None
    return retry_after or 0.0


def check_auth_rate_limit(identifier: str) -> float | None:
    return check_rate_limit("auth", identifier)


def reset_memory_limiters() -> None:
    for limiter in _limiters.values():
        if isinstance(limiter, FixedWindowRateLimiter):
            limiter.reset()
