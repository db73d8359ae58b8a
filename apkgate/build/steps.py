"""
Delegated build steps.

Each step is opaque to the orchestrator: it either completes or raises
StepFailed with a reference to its captured output.
"""
import asyncio
import logging
import os
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional

from ..cache.archive import pack_paths, unpack_paths
from ..cache.session import CacheSession
from ..cache.store import compute_fingerprint
from ..config.global_config_loader import StepCacheConfig, StepConfig
from ..core.exceptions import CacheWriteDenied, StepFailed
from ..monitoring.logs_storage import RunLogsStorage


@dataclass
class StepContext:
    """Everything a step may touch during a run"""
    run_id: str
    workdir: Path
    logs_storage: RunLogsStorage
    cache: CacheSession
    env: Dict[str, str] = field(default_factory=dict)


class BuildStep(ABC):
    """A single externally-delegated build step"""

    name: str

    @abstractmethod
    async def run(self, context: StepContext) -> None:
        """
        Execute the step.

        Raises:
            StepFailed: If the step did not complete successfully
        """
        pass


class CommandStep(BuildStep):
    """Runs a command as a subprocess, with optional directory caching"""

    def __init__(
        self,
        name: str,
        command: List[str],
        cwd: str = ".",
        env: Optional[Dict[str, str]] = None,
        cache: Optional[StepCacheConfig] = None
    ):
        self.name = name
        self.command = list(command)
        self.cwd = cwd
        self.env = dict(env or {})
        self.cache = cache
        self.logger = logging.getLogger(__name__)

    @classmethod
    def from_config(cls, config: StepConfig) -> 'CommandStep':
        return cls(
            name=config.name,
            command=config.command,
            cwd=config.cwd,
            env=config.env,
            cache=config.cache,
        )

    async def run(self, context: StepContext) -> None:
        step_dir = (context.workdir / self.cwd).resolve()
        fingerprint = None

        if self.cache:
            fingerprint = compute_fingerprint(self.cache.key_files, root=step_dir)
            if await self._restore_cache(context, step_dir, fingerprint) and self.cache.skip_step_on_hit:
                self.logger.info(f"[{self.name}] cache hit, skipping command")
                return

        await self._execute(context, step_dir)

        if self.cache:
            await self._save_cache(context, step_dir, fingerprint)

    async def _restore_cache(self, context: StepContext, step_dir: Path, fingerprint: str) -> bool:
        payload = await context.cache.restore(self.cache.name, fingerprint)
        if payload is None:
            self.logger.info(f"[{self.name}] no cache entry for {self.cache.name}")
            return False
        restored = unpack_paths(step_dir, payload)
        self.logger.info(f"[{self.name}] restored {len(restored)} cached entries")
        return True

    async def _save_cache(self, context: StepContext, step_dir: Path, fingerprint: str):
        try:
            payload = pack_paths(step_dir, self.cache.paths)
            await context.cache.save(self.cache.name, fingerprint, payload)
        except CacheWriteDenied as e:
            # Untrusted runs build without writing shared caches
            self.logger.warning(f"[{self.name}] {e}")

    async def _execute(self, context: StepContext, step_dir: Path):
        log_path = context.logs_storage.step_log_path(context.run_id, self.name)
        env = {**os.environ, **context.env, **self.env}

        self.logger.info(f"[{self.name}] running {' '.join(self.command)} in {step_dir}")

        with open(log_path, 'wb') as log_file:
            try:
                process = await asyncio.create_subprocess_exec(
                    *self.command,
                    cwd=str(step_dir),
                    env=env,
                    stdout=log_file,
                    stderr=asyncio.subprocess.STDOUT,
                )
            except (FileNotFoundError, PermissionError, NotADirectoryError) as e:
                self.logger.error(f"[{self.name}] could not start: {e}")
                raise StepFailed(self.name, diagnostic_ref=str(log_path), reason=str(e)) from e

            try:
                returncode = await process.wait()
            except asyncio.CancelledError:
                # Timeout or superseded run: do not leave the tool running
                self.logger.warning(f"[{self.name}] cancelled, killing pid {process.pid}")
                if process.returncode is None:
                    process.kill()
                    await process.wait()
                raise

        if returncode != 0:
            self.logger.error(f"[{self.name}] exited with code {returncode}")
            raise StepFailed(self.name, diagnostic_ref=str(log_path), reason=f"exit code {returncode}")

        self.logger.info(f"[{self.name}] completed")
