from abc import ABC, abstractmethod
from typing import Any, Optional, Dict
from dataclasses import dataclass
from datetime import datetime


@dataclass
class CacheEntry:
    """Cache entry with metadata"""
    value: bytes
    created_at: datetime
    ttl: Optional[int] = None  # Time to live in seconds

    def is_expired(self) -> bool:
        """Check if entry has expired based on TTL"""
        if self.ttl is None:
            return False

        elapsed = (datetime.now() - self.created_at).total_seconds()
        return elapsed > self.ttl


class BaseCacheBackend(ABC):
    """
    Base class for shared build cache backends.

    Values are opaque byte strings (packed directories, validity markers).
    Backends are shared between runs, possibly across machines, so writers
    coordinate through ``add`` which only succeeds for absent keys.
    """

    @abstractmethod
    async def get(self, key: str) -> Optional[bytes]:
        """
        Get value from cache.

        Returns:
            Cached value or None if not found/expired
        """
        pass

    @abstractmethod
    async def set(self, key: str, value: bytes, ttl: Optional[int] = None):
        """
        Set value in cache.

        Args:
            key: Cache key
            value: Value to cache
            ttl: Optional time-to-live in seconds (overrides default)
        """
        pass

    @abstractmethod
    async def add(self, key: str, value: bytes, ttl: Optional[int] = None) -> bool:
        """
        Set value only if the key does not exist.

        Returns:
            True if the value was stored
        """
        pass

    @abstractmethod
    async def exists(self, key: str) -> bool:
        """Check whether a live entry exists"""
        pass

    @abstractmethod
    async def delete(self, key: str):
        """Delete entry from cache"""
        pass

    @abstractmethod
    async def connect(self):
        """Initialize connection (for external caches like Redis)"""
        pass

    @abstractmethod
    async def disconnect(self):
        """Close connection and cleanup resources"""
        pass

    @abstractmethod
    def get_stats(self) -> Dict[str, Any]:
        """Get cache statistics (hits, misses, size, ...)"""
        pass
