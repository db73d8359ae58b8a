"""
File lock guarding shared local state (the build number registry).
"""
import asyncio
import time
from pathlib import Path
import logging
import os
import fcntl


class FileLockManager:
    """
    Exclusive lock on a file in the state directory.
    Works across processes on the same host via flock.
    """

    def __init__(self, state_dir: Path, name: str = "build", timeout: int = 30):
        """
        Args:
            state_dir: Directory holding the lock file
            name: Lock name, the file is ``.{name}.lock``
            timeout: Lock acquisition timeout in seconds
        """
        self.state_dir = Path(state_dir)
        self.timeout = timeout
        self.lock_file_path = self.state_dir / f".{name}.lock"
        self.lock_file = None
        self.logger = logging.getLogger(__name__)

        self.state_dir.mkdir(parents=True, exist_ok=True)

    async def __aenter__(self):
        await self.acquire()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.release()
        return False

    async def acquire(self):
        """
        Acquire lock with timeout.

        Raises:
            TimeoutError: If lock cannot be acquired within timeout
        """
        start_time = time.time()

        self.logger.debug(f"Attempting to acquire lock: {self.lock_file_path}")

        while True:
            self.lock_file = open(self.lock_file_path, 'a')
            try:
                fcntl.flock(self.lock_file.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)
            except BlockingIOError:
                self.lock_file.close()
                self.lock_file = None
                elapsed = time.time() - start_time

                if elapsed >= self.timeout:
                    self.logger.error(f"Failed to acquire lock after {self.timeout}s timeout")
                    raise TimeoutError(
                        f"Could not acquire {self.lock_file_path} within {self.timeout}s. "
                        "Another run may be holding it."
                    )

                self.logger.debug(
                    f"Lock held by another process, retrying... "
                    f"({elapsed:.1f}s / {self.timeout}s)"
                )
                await asyncio.sleep(0.2)
                continue

            self.lock_file.write(f"{os.getpid()}\n")
            self.lock_file.flush()
            self.logger.debug(f"Lock acquired: {self.lock_file_path}")
            return

    async def release(self):
        if not self.lock_file:
            return

        fcntl.flock(self.lock_file.fileno(), fcntl.LOCK_UN)
        self.lock_file.close()
        self.lock_file = None
        self.logger.debug(f"Lock released: {self.lock_file_path}")
