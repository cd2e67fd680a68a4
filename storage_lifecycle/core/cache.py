"""
Redis caching layer for the lifecycle engine.
Caches analytics aggregates for fixed windows so repeated dashboard
reads do not rescan the metadata store.
"""
import json
import logging
from datetime import datetime
from typing import Any, Optional

import redis

logger = logging.getLogger(__name__)


class CacheManager:
    """Manages Redis caching for the application."""

    def __init__(self, redis_client: redis.Redis, default_ttl: int = 300):
        """
        Initialize cache manager.

        Args:
            redis_client: Redis client instance
            default_ttl: Default TTL in seconds (5 minutes)
        """
        self.redis = redis_client
        self.default_ttl = default_ttl
        self.prefix = "storage_lifecycle:"

    @classmethod
    def from_url(cls, url: str, default_ttl: int = 300) -> "CacheManager":
        return cls(redis.Redis.from_url(url, decode_responses=True), default_ttl)

    def _make_key(self, namespace: str, key: str) -> str:
        return f"{self.prefix}{namespace}:{key}"

    def get(self, namespace: str, key: str) -> Optional[Any]:
        """
        Get value from cache.

        Cache failures are logged and treated as misses.

        Returns:
            Cached value or None if not found
        """
        try:
            value = self.redis.get(self._make_key(namespace, key))
            if value is None:
                return None
            return json.loads(value)
        except (redis.RedisError, json.JSONDecodeError) as e:
            logger.warning(f"Cache get error: {e}")
            return None

    def set(self, namespace: str, key: str, value: Any, ttl: Optional[int] = None) -> bool:
        """Set a JSON-serializable value; returns False on failure."""
        try:
            self.redis.setex(self._make_key(namespace, key), ttl or self.default_ttl, json.dumps(value))
            return True
        except (redis.RedisError, TypeError) as e:
            logger.warning(f"Cache set error: {e}")
            return False

    def delete(self, namespace: str, key: str) -> bool:
        try:
            self.redis.delete(self._make_key(namespace, key))
            return True
        except redis.RedisError as e:
            logger.warning(f"Cache delete error: {e}")
            return False

    def invalidate_namespace(self, namespace: str) -> int:
        """
        Invalidate all keys in a namespace.

        Returns:
            Number of keys deleted
        """
        try:
            keys = list(self.redis.scan_iter(match=f"{self.prefix}{namespace}:*"))
            if not keys:
                return 0
            return self.redis.delete(*keys)
        except redis.RedisError as e:
            logger.warning(f"Cache invalidate error: {e}")
            return 0


class AggregateCache:
    """Cache utilities for usage aggregates keyed by period window."""

    def __init__(self, cache: CacheManager, ttl: Optional[int] = None):
        self.cache = cache
        self.namespace = "aggregates"
        self.ttl = ttl

    @staticmethod
    def window_key(period: str, start: datetime, end: datetime) -> str:
        return f"{period}:{start.isoformat()}:{end.isoformat()}"

    def get_aggregate(self, period: str, start: datetime, end: datetime) -> Optional[dict]:
        return self.cache.get(self.namespace, self.window_key(period, start, end))

    def set_aggregate(self, period: str, start: datetime, end: datetime, payload: dict) -> bool:
        return self.cache.set(self.namespace, self.window_key(period, start, end), payload, self.ttl)

    def invalidate(self) -> int:
        """Drop every cached aggregate (call after lifecycle jobs mutate data)."""
        return self.cache.invalidate_namespace(self.namespace)
