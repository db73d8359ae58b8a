import asyncio
from typing import Any, Optional, Dict
from collections import OrderedDict
from datetime import datetime
from cachetools import LRUCache, LFUCache

from .base import BaseCacheBackend, CacheEntry


class InMemoryCacheBackend(BaseCacheBackend):
    """
    In-memory cache backend with LRU, LFU or FIFO eviction.

    Only shared within one process, which is enough for local runs and tests.
    Uses asyncio.Lock for concurrent access.
    """

    def __init__(self, max_size: int = 1000, policy: str = 'lru', ttl: Optional[int] = None):
        """
        Initialize in-memory cache.

        Args:
            max_size: Maximum number of entries
            policy: Eviction policy ('lru', 'lfu', 'fifo')
            ttl: Default time-to-live in seconds (None = no expiration)
        """
        if max_size < 1:
            raise ValueError(f"max_size must be at least 1, got {max_size}")
        self.max_size = max_size
        self.policy = policy.lower()
        self.default_ttl = ttl
        self.lock = asyncio.Lock()
        self.stats = self._empty_stats()

        if self.policy == 'lru':
            self._cache: Dict[str, CacheEntry] = LRUCache(maxsize=max_size)
        elif self.policy == 'lfu':
            self._cache: Dict[str, CacheEntry] = LFUCache(maxsize=max_size)
        elif self.policy == 'fifo':
            self._cache: Dict[str, CacheEntry] = OrderedDict()
        else:
            raise ValueError(f"Unsupported eviction policy: {policy}. Use 'lru', 'lfu', or 'fifo'")

    @staticmethod
    def _empty_stats() -> Dict[str, int]:
        return {
            'hits': 0,
            'misses': 0,
            'evictions': 0,
            'sets': 0,
            'deletes': 0,
            'expired': 0
        }

    def _evict_if_needed(self):
        """Evict entries if cache is full (for FIFO policy only)"""
        if self.policy == 'fifo' and len(self._cache) >= self.max_size:
            self._cache.popitem(last=False)
            self.stats['evictions'] += 1

    def _live_entry(self, key: str) -> Optional[CacheEntry]:
        # Caller holds self.lock
        entry = self._cache.get(key)
        if entry is not None and entry.is_expired():
            del self._cache[key]
            self.stats['expired'] += 1
            return None
        return entry

    def _store(self, key: str, value: bytes, ttl: Optional[int]):
        # Caller holds self.lock
        if self.policy == 'fifo' and key not in self._cache:
            self._evict_if_needed()
        self._cache[key] = CacheEntry(
            value=value,
            created_at=datetime.now(),
            ttl=ttl if ttl is not None else self.default_ttl
        )
        self.stats['sets'] += 1

    async def get(self, key: str) -> Optional[bytes]:
        async with self.lock:
            entry = self._live_entry(key)

            if entry is None:
                self.stats['misses'] += 1
                return None

            self.stats['hits'] += 1
            return entry.value

    async def set(self, key: str, value: bytes, ttl: Optional[int] = None):
        async with self.lock:
            self._store(key, value, ttl)

    async def add(self, key: str, value: bytes, ttl: Optional[int] = None) -> bool:
        async with self.lock:
            if self._live_entry(key) is not None:
                return False
            self._store(key, value, ttl)
            return True

    async def exists(self, key: str) -> bool:
        async with self.lock:
            return self._live_entry(key) is not None

    async def delete(self, key: str):
        async with self.lock:
            if key in self._cache:
                del self._cache[key]
                self.stats['deletes'] += 1

    async def connect(self):
        """No connection needed for in-memory cache"""
        pass

    async def disconnect(self):
        """Entries outlive the connection so other runs in this process can reuse them"""
        pass

    def get_stats(self) -> Dict[str, Any]:
        lookups = self.stats['hits'] + self.stats['misses']
        return {
            **self.stats,
            'size': len(self._cache),
            'max_size': self.max_size,
            'policy': self.policy,
            'hit_rate': self.stats['hits'] / lookups if lookups > 0 else 0.0
        }
