from .base import BaseCacheBackend
from .memory import InMemoryCacheBackend
from .redis import RedisCacheBackend
from .store import CacheStore, compute_fingerprint
from .session import CacheSession, grant_cache_access
from .archive import pack_paths, unpack_paths


def get_cache_backend(cache_type: str, config: dict) -> BaseCacheBackend:
    """
    Factory function to create cache backend instances.

    Args:
        cache_type: Type of cache ('memory', 'redis')
        config: Configuration dict with cache-specific settings

    Example config:
        {
            'policy': 'lru',  # or 'lfu', 'fifo'
            'max_size': 1000,
            'ttl': 604800  # seconds
        }
    """
    cache_type = cache_type.lower()

    if cache_type == 'memory':
        return InMemoryCacheBackend(
            max_size=config.get('max_size', 1000),
            policy=config.get('policy', 'lru'),
            ttl=config.get('ttl')
        )
    elif cache_type == 'redis':
        return RedisCacheBackend(
            url=config.get('url', 'redis://localhost:6379'),
            ttl=config.get('ttl', 7 * 24 * 3600),
            key_prefix=config.get('key_prefix', 'apkgate:cache:')
        )
    else:
        raise ValueError(f"Unsupported cache type: {cache_type}. Supported: 'memory', 'redis'")


__all__ = [
    'BaseCacheBackend',
    'InMemoryCacheBackend',
    'RedisCacheBackend',
    'CacheStore',
    'compute_fingerprint',
    'CacheSession',
    'grant_cache_access',
    'pack_paths',
    'unpack_paths',
    'get_cache_backend',
]
