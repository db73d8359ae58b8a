"""
Fingerprint-keyed cache store on top of a cache backend.

Layout per cache name and fingerprint:
- ``{name}:{fp}:data``   payload bytes
- ``{name}:{fp}:valid``  validity marker, written only after the payload
- ``{name}:{fp}:lock``   write lock holder
"""
import hashlib
import logging
from pathlib import Path
from typing import Iterable, Optional, Union

from .base import BaseCacheBackend


def compute_fingerprint(key_files: Iterable[str], root: Union[str, Path] = ".") -> str:
    """
    Hash the names and contents of key files (lockfiles, gradle scripts).

    Missing files are part of the fingerprint too, so adding a lockfile
    changes the key.
    """
    root = Path(root)
    hash_obj = hashlib.sha256()
    for name in key_files:
        hash_obj.update(name.encode('utf-8'))
        hash_obj.update(b'\0')
        path = root / name
        if path.is_file():
            with open(path, 'rb') as f:
                for chunk in iter(lambda: f.read(65536), b''):
                    hash_obj.update(chunk)
        else:
            hash_obj.update(b'<missing>')
        hash_obj.update(b'\0')
    return hash_obj.hexdigest()


class CacheStore:
    """Read/write access to fingerprinted cache entries"""

    def __init__(self, backend: BaseCacheBackend, lock_ttl: int = 3600):
        self.backend = backend
        self.lock_ttl = lock_ttl
        self.logger = logging.getLogger(__name__)

    @staticmethod
    def entry_key(name: str, fingerprint: str) -> str:
        return f"{name}:{fingerprint}"

    async def is_valid(self, name: str, fingerprint: str) -> bool:
        return await self.backend.exists(f"{self.entry_key(name, fingerprint)}:valid")

    async def read(self, name: str, fingerprint: str) -> Optional[bytes]:
        """Return the payload only if its fingerprint has been marked valid"""
        key = self.entry_key(name, fingerprint)
        if not await self.is_valid(name, fingerprint):
            self.logger.debug(f"Cache miss for {key}")
            return None
        payload = await self.backend.get(f"{key}:data")
        if payload is None:
            self.logger.warning(f"Cache marker present without payload for {key}")
        return payload

    async def write(self, name: str, fingerprint: str, payload: bytes):
        """Store the payload, then mark the fingerprint valid"""
        key = self.entry_key(name, fingerprint)
        await self.backend.set(f"{key}:data", payload)
        await self.backend.set(f"{key}:valid", b"1")
        self.logger.info(f"Cache entry {key} written ({len(payload)} bytes)")

    async def acquire_write_lock(self, name: str, fingerprint: str, owner: str) -> bool:
        key = f"{self.entry_key(name, fingerprint)}:lock"
        acquired = await self.backend.add(key, owner.encode('utf-8'), ttl=self.lock_ttl)
        if acquired:
            self.logger.debug(f"Acquired cache write lock {key} for {owner}")
        else:
            self.logger.info(f"Cache write lock {key} held by another run")
        return acquired

    async def release_write_lock(self, name: str, fingerprint: str, owner: str):
        key = f"{self.entry_key(name, fingerprint)}:lock"
        holder = await self.backend.get(key)
        if holder == owner.encode('utf-8'):
            await self.backend.delete(key)
            self.logger.debug(f"Released cache write lock {key}")
