"""
Collects changed paths from git for a trigger.
"""
import asyncio
import logging
from pathlib import Path
from typing import List, Optional, Union

from ..core.exceptions import StepFailed

ZERO_SHA = "0" * 40


class GitDiffCollector:
    """Runs ``git diff --name-only`` in a repository checkout"""

    def __init__(self, repo_dir: Union[str, Path] = ".", git_binary: str = "git"):
        self.repo_dir = Path(repo_dir)
        self.git_binary = git_binary
        self.logger = logging.getLogger(__name__)

    async def changed_paths(self, head: str, base: Optional[str] = None) -> List[str]:
        """
        List paths changed between base and head.

        Args:
            head: Head commit or ref
            base: Base commit or ref. When missing (first push of a branch),
                  the parent of head is used.

        Returns:
            Repository-relative paths, in git's order
        """
        if base and base != ZERO_SHA:
            revision = f"{base}...{head}"
        else:
            revision = f"{head}~1..{head}"

        args = [self.git_binary, "diff", "--name-only", revision]
        self.logger.debug(f"Running {' '.join(args)} in {self.repo_dir}")

        process = await asyncio.create_subprocess_exec(
            *args,
            cwd=str(self.repo_dir),
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        stdout, stderr = await process.communicate()

        if process.returncode != 0:
            reason = stderr.decode("utf-8", errors="replace").strip()
            self.logger.error(f"git diff failed for {revision}: {reason}")
            raise StepFailed("collect_changes", reason=reason or f"exit code {process.returncode}")

        paths = [line.strip() for line in stdout.decode("utf-8").splitlines() if line.strip()]
        self.logger.info(f"Collected {len(paths)} changed paths for {revision}")
        return paths
