import logging
from typing import Any, Optional, Dict
from redis import asyncio as aioredis
from redis.exceptions import RedisError

from ..core.exceptions import CacheUnavailable
from .base import BaseCacheBackend


class RedisCacheBackend(BaseCacheBackend):
    """
    Redis-based cache backend shared by runners on different machines.

    Keys are namespaced with ``key_prefix``. ``add`` maps to SET NX which
    makes it usable as a write lock between runners.
    """

    def __init__(self, url: str = 'redis://localhost:6379',
                 ttl: Optional[int] = 7 * 24 * 3600,
                 key_prefix: str = 'apkgate:cache:',
                 max_connections: int = 10):
        """
        Initialize Redis cache backend.

        Args:
            url: Redis connection URL
            ttl: Default time-to-live in seconds
            key_prefix: Prefix for all cache keys (namespace isolation)
            max_connections: Max connections in pool
        """
        self.url = url
        self.default_ttl = ttl
        self.key_prefix = key_prefix
        self.max_connections = max_connections
        self.redis: Optional[aioredis.Redis] = None
        self.logger = logging.getLogger(__name__)

        # Approximate, as Redis is shared
        self.stats = {
            'hits': 0,
            'misses': 0,
            'sets': 0,
            'deletes': 0
        }

    def _make_key(self, key: str) -> str:
        return f"{self.key_prefix}{key}"

    def _require_connection(self) -> aioredis.Redis:
        if not self.redis:
            raise RuntimeError("Redis not connected. Call connect() first.")
        return self.redis

    async def connect(self):
        """Initialize Redis connection pool"""
        self.redis = aioredis.from_url(
            self.url,
            decode_responses=False,
            max_connections=self.max_connections
        )

    async def disconnect(self):
        """Close Redis connection"""
        if self.redis:
            await self.redis.aclose()
            self.redis = None

    async def get(self, key: str) -> Optional[bytes]:
        redis = self._require_connection()

        try:
            data = await redis.get(self._make_key(key))
        except RedisError as e:
            # Unreachable cache degrades to a miss
            self.logger.warning(f"Redis get failed for {key}: {e}")
            self.stats['misses'] += 1
            return None

        if data is None:
            self.stats['misses'] += 1
            return None

        self.stats['hits'] += 1
        return data

    async def set(self, key: str, value: bytes, ttl: Optional[int] = None):
        redis = self._require_connection()
        ttl = ttl if ttl is not None else self.default_ttl

        try:
            if ttl:
                await redis.setex(self._make_key(key), ttl, value)
            else:
                await redis.set(self._make_key(key), value)
        except RedisError as e:
            self.logger.error(f"Redis set failed for {key}: {e}")
            raise CacheUnavailable(f"set {key}", e) from e

        self.stats['sets'] += 1

    async def add(self, key: str, value: bytes, ttl: Optional[int] = None) -> bool:
        redis = self._require_connection()
        ttl = ttl if ttl is not None else self.default_ttl

        try:
            stored = await redis.set(self._make_key(key), value, nx=True, ex=ttl or None)
        except RedisError as e:
            # Treated as a lock held elsewhere, the write is skipped
            self.logger.warning(f"Redis add failed for {key}: {e}")
            return False

        if stored:
            self.stats['sets'] += 1
        return bool(stored)

    async def exists(self, key: str) -> bool:
        redis = self._require_connection()
        try:
            return await redis.exists(self._make_key(key)) > 0
        except RedisError as e:
            self.logger.warning(f"Redis exists failed for {key}: {e}")
            return False

    async def delete(self, key: str):
        redis = self._require_connection()
        try:
            await redis.delete(self._make_key(key))
        except RedisError as e:
            self.logger.warning(f"Redis delete failed for {key}: {e}")
            raise CacheUnavailable(f"delete {key}", e) from e
        self.stats['deletes'] += 1

    def get_stats(self) -> Dict[str, Any]:
        lookups = self.stats['hits'] + self.stats['misses']
        return {
            **self.stats,
            'type': 'redis',
            'url': self.url,
            'key_prefix': self.key_prefix,
            'hit_rate': self.stats['hits'] / lookups if lookups > 0 else 0.0
        }
