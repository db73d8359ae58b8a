"""
Cross-run concurrency control.

- Runs sharing a concurrency key (branch, pr_number) supersede each other:
  a newer dispatch cancels the in-flight one (last writer wins).
- Dispatches sharing a dispatch key (commit_sha, event_type) are the same
  run: the second caller receives the first run's result.
"""
import asyncio
import logging
from collections import OrderedDict
from typing import Awaitable, Callable, Dict, Hashable, Optional

from ..core.enums import RunStatus
from ..core.models import ChangeEvent, PipelineResult

Runner = Callable[[ChangeEvent], Awaitable[PipelineResult]]


class RunCoordinator:
    """Serializes pipeline runs by cancellation"""

    def __init__(self, max_history: int = 1000):
        self.max_history = max_history
        self._in_flight: Dict[Hashable, asyncio.Task] = {}
        self._dispatches: "OrderedDict[Hashable, asyncio.Task]" = OrderedDict()
        self.logger = logging.getLogger(__name__)

    def is_running(self, event: ChangeEvent) -> bool:
        task = self._in_flight.get(event.concurrency_key)
        return task is not None and not task.done()

    async def dispatch(self, event: ChangeEvent, runner: Runner) -> PipelineResult:
        """
        Run ``runner(event)`` under the concurrency policy and wait for it.

        Returns:
            The run's result, or a CANCELLED result if a newer dispatch
            superseded it
        """
        dispatch_key = event.dispatch_key
        if event.commit_sha:
            existing = self._dispatches.get(dispatch_key)
            if existing is not None:
                self.logger.info(
                    f"Dispatch for {event.commit_sha[:12]}:{event.event_type.value} "
                    f"already exists, joining it"
                )
                return await self._wait(existing, owner=False)

        concurrency_key = event.concurrency_key
        previous = self._in_flight.get(concurrency_key)
        if previous is not None and not previous.done():
            self.logger.warning(f"Cancelling in-flight run for {concurrency_key}, superseded by a newer trigger")
            previous.cancel()

        task = asyncio.ensure_future(runner(event))
        self._in_flight[concurrency_key] = task
        if event.commit_sha:
            self._remember(dispatch_key, task)

        try:
            return await self._wait(task)
        finally:
            if self._in_flight.get(concurrency_key) is task:
                del self._in_flight[concurrency_key]

    async def _wait(self, task: asyncio.Task, owner: bool = True) -> PipelineResult:
        try:
            await asyncio.wait({task})
        except asyncio.CancelledError:
            # The dispatching caller went away, take the run down with it
            if owner:
                task.cancel()
            raise

        if task.cancelled():
            return PipelineResult(status=RunStatus.CANCELLED, error="Superseded by a newer run")
        return task.result()

    def _remember(self, key: Hashable, task: asyncio.Task):
        self._dispatches[key] = task
        self._dispatches.move_to_end(key)
        while len(self._dispatches) > self.max_history:
            self._dispatches.popitem(last=False)
