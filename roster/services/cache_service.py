"""Redis cache service backing the role -> permission cache."""

import json
import logging
import time
from typing import Optional, Any
import redis

from roster.core.config import settings

logger = logging.getLogger("roster.cache")

_REDIS_ERRORS = (redis.ConnectionError, redis.TimeoutError)


class CacheService:
    """Redis-backed caching service. Every failure is treated as a miss.

    After a connection error Redis is skipped for ``retry_after_seconds``, so
    an outage costs one socket timeout per window instead of one per call.
    """

    def __init__(self, url: Optional[str] = None, retry_after_seconds: Optional[int] = None):
        self._url = url or settings.REDIS_URL
        self._client: Optional[redis.Redis] = None
        self.retry_after_seconds = (
            settings.CACHE_RETRY_AFTER_SECONDS if retry_after_seconds is None else retry_after_seconds
        )
        self._unavailable_until = 0.0

    @property
    def client(self) -> redis.Redis:
        if self._client is None:
            self._client = redis.from_url(
                self._url,
                decode_responses=True,
                socket_connect_timeout=1,
                socket_timeout=1,
            )
        return self._client

    @property
    def available(self) -> bool:
        return time.monotonic() >= self._unavailable_until

    def _mark_unavailable(self, exc: Exception) -> None:
        if self.available:
            logger.warning("Redis unavailable (%s), skipping cache for %ss", exc, self.retry_after_seconds)
        self._unavailable_until = time.monotonic() + self.retry_after_seconds

    def get(self, key: str) -> Optional[str]:
        """Get a cached value by key."""
        if not self.available:
            return None
        try:
            return self.client.get(key)
        except _REDIS_ERRORS as e:
            self._mark_unavailable(e)
            return None

    def set(self, key: str, value: str, ttl_seconds: int = 600) -> None:
        """Set a cached value with TTL."""
        if not self.available:
            return
        try:
            self.client.setex(key, ttl_seconds, value)
        except _REDIS_ERRORS as e:
            self._mark_unavailable(e)

    def get_json(self, key: str) -> Optional[Any]:
        """Get and parse a JSON cached value."""
        raw = self.get(key)
        if raw:
            return json.loads(raw)
        return None

    def set_json(self, key: str, value: Any, ttl_seconds: int = 600) -> None:
        """Serialize and cache a JSON value."""
        self.set(key, json.dumps(value, default=str), ttl_seconds)

    def delete(self, key: str) -> None:
        """Delete a cached key."""
        try:
            self.client.delete(key)
        except _REDIS_ERRORS as e:
            self._mark_unavailable(e)

    def invalidate_pattern(self, pattern: str) -> None:
        """Delete all keys matching a pattern."""
        try:
            keys = list(self.client.scan_iter(match=pattern))
            if keys:
                self.client.delete(*keys)
        except _REDIS_ERRORS as e:
            logger.warning("Could not invalidate cache pattern %s", pattern)
            self._mark_unavailable(e)

    def health_check(self) -> bool:
        """Check if Redis is reachable."""
        try:
            return bool(self.client.ping())
        except _REDIS_ERRORS as e:
            self._mark_unavailable(e)
            return False


cache_service = CacheService()
