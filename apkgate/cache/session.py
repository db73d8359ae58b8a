"""
Per-run cache access.

A run is granted read-only or read-write access according to its provenance.
Writes are staged and only reach the store when the run finishes cleanly.
"""
import logging
from typing import Dict, Optional, Tuple

from ..core.enums import CacheAccess, Provenance
from ..core.exceptions import CacheUnavailable, CacheWriteDenied
from .store import CacheStore


def grant_cache_access(provenance: Provenance) -> CacheAccess:
    """Trusted runs may write shared caches, everyone may read"""
    if provenance == Provenance.TRUSTED:
        return CacheAccess.READ_WRITE
    return CacheAccess.READ_ONLY


class CacheSession:
    """
    Cache capability handed to a single run.

    Usage:
        async with CacheSession(store, access, owner=run_id) as cache:
            payload = await cache.restore("npm", fp)
            ...
            await cache.save("npm", fp, packed)
    """

    def __init__(self, store: Optional[CacheStore], access: CacheAccess, owner: str):
        self.store = store
        self.access = access
        self.owner = owner
        self._staged: Dict[Tuple[str, str], bytes] = {}
        self._locks: Dict[Tuple[str, str], bool] = {}
        self.committed = False
        self.logger = logging.getLogger(__name__)

    @property
    def writable(self) -> bool:
        return self.access == CacheAccess.READ_WRITE

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        if exc_type is None:
            await self.commit()
        else:
            # Covers failures and cancellation alike
            await self.discard()
        return False

    async def restore(self, name: str, fingerprint: str) -> Optional[bytes]:
        if self.store is None:
            return None
        payload = await self.store.read(name, fingerprint)
        if payload is not None:
            self.logger.info(f"Cache hit for {name} ({fingerprint[:12]})")
        return payload

    async def save(self, name: str, fingerprint: str, payload: bytes) -> bool:
        """
        Stage a cache write.

        Returns:
            True if staged, False if the entry already exists or another
            run holds its write lock

        Raises:
            CacheWriteDenied: If this session is read-only
        """
        key = CacheStore.entry_key(name, fingerprint)
        if not self.writable:
            raise CacheWriteDenied(key)
        if self.store is None:
            return False

        if await self.store.is_valid(name, fingerprint):
            self.logger.debug(f"Cache entry {key} already valid, not rewriting")
            return False

        if (name, fingerprint) not in self._locks:
            if not await self.store.acquire_write_lock(name, fingerprint, self.owner):
                return False
            self._locks[(name, fingerprint)] = True

        self._staged[(name, fingerprint)] = payload
        return True

    async def commit(self):
        """Write staged entries and mark their fingerprints valid"""
        written = 0
        try:
            for (name, fingerprint), payload in self._staged.items():
                try:
                    await self.store.write(name, fingerprint, payload)
                except CacheUnavailable as e:
                    # The marker goes last, so a failed write leaves the entry invalid
                    self.logger.warning(f"Skipping cache entry {name}:{fingerprint[:12]}: {e}")
                    continue
                written += 1
            self.committed = written > 0
        finally:
            self._staged.clear()
            await self._release_locks()

    async def discard(self):
        """Drop staged entries without marking anything valid"""
        if self._staged:
            self.logger.warning(
                f"Discarding {len(self._staged)} staged cache entries for run {self.owner}"
            )
        self._staged.clear()
        await self._release_locks()

    async def _release_locks(self):
        for name, fingerprint in list(self._locks):
            try:
                await self.store.release_write_lock(name, fingerprint, self.owner)
            except Exception as e:
                # Lock expires through its TTL
                self.logger.error(f"Failed to release cache lock {name}:{fingerprint}: {e}")
        self._locks.clear()
