"""
Monotonic build number registry.
"""
import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional

from ..core.exceptions import NumberConflict
from .lock import FileLockManager


class BuildNumberRegistry:
    """
    Issues unique, increasing build numbers scoped to the pipeline history.

    State lives in ``<state_dir>/build_numbers.json`` and every update happens
    under a file lock, so concurrent runs on one host never share a number.
    """

    def __init__(self, state_dir: Path, lock_timeout: int = 30):
        self.state_dir = Path(state_dir)
        self.state_path = self.state_dir / "build_numbers.json"
        self.lock_manager = FileLockManager(self.state_dir, name="build_numbers", timeout=lock_timeout)
        self.logger = logging.getLogger(__name__)

    def _load(self) -> Dict[str, Any]:
        if not self.state_path.exists():
            return {'last': 0, 'issued': []}
        with open(self.state_path, 'r') as f:
            return json.load(f)

    def _save(self, state: Dict[str, Any]):
        tmp_path = self.state_path.with_suffix('.json.tmp')
        with open(tmp_path, 'w') as f:
            json.dump(state, f, indent=2)
        os.replace(tmp_path, self.state_path)

    async def issue(self, requested: Optional[int] = None) -> int:
        """
        Issue a build number.

        Args:
            requested: Number supplied by the CI platform (e.g. its run number).
                       When None the next number after the last issued is used.

        Raises:
            NumberConflict: If the requested number was already issued
        """
        async with self.lock_manager:
            state = self._load()
            issued = set(state.get('issued', []))

            if requested is None:
                number = state.get('last', 0) + 1
            else:
                number = int(requested)

            if number in issued or number < 1:
                self.logger.error(f"Build number {number} conflicts with run history")
                raise NumberConflict(number)

            issued.add(number)
            state['issued'] = sorted(issued)
            state['last'] = max(state.get('last', 0), number)
            self._save(state)

        self.logger.info(f"Issued build number {number}")
        return number

    def last_issued(self) -> int:
        return self._load().get('last', 0)
