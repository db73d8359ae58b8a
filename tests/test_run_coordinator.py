"""
Test cases for cross-run cancellation and dispatch de-duplication.
"""

import asyncio

import pytest

from apkgate.core.enums import EventType, RunStatus
from apkgate.core.models import ChangeEvent, PipelineResult
from apkgate.scheduler.run_coordinator import RunCoordinator


def pr_event(sha: str, pr_number: int = 7, branch: str = "feature-x") -> ChangeEvent:
    return ChangeEvent(EventType.PULL_REQUEST, branch, commit_sha=sha, pr_number=pr_number)


class SlowRunner:
    """Runner that blocks until released and records what it saw"""

    def __init__(self):
        self.started = []
        self.finished = []
        self.cancelled = []
        self.release = asyncio.Event()

    async def __call__(self, event: ChangeEvent) -> PipelineResult:
        self.started.append(event.commit_sha)
        try:
            await self.release.wait()
        except asyncio.CancelledError:
            self.cancelled.append(event.commit_sha)
            raise
        self.finished.append(event.commit_sha)
        return PipelineResult(status=RunStatus.PUBLISHED, run_id=event.commit_sha)


@pytest.mark.asyncio
async def test_newer_trigger_supersedes_in_flight_run():
    coordinator = RunCoordinator()
    runner = SlowRunner()

    first = asyncio.ensure_future(coordinator.dispatch(pr_event("sha-1"), runner))
    await asyncio.sleep(0)
    await asyncio.sleep(0)
    assert coordinator.is_running(pr_event("sha-1"))

    second = asyncio.ensure_future(coordinator.dispatch(pr_event("sha-2"), runner))
    await asyncio.sleep(0)
    await asyncio.sleep(0)
    runner.release.set()

    first_result, second_result = await asyncio.gather(first, second)

    assert first_result.status == RunStatus.CANCELLED
    assert second_result.status == RunStatus.PUBLISHED
    assert second_result.run_id == "sha-2"
    assert runner.cancelled == ["sha-1"]
    assert runner.finished == ["sha-2"]
    assert not coordinator.is_running(pr_event("sha-2"))


@pytest.mark.asyncio
async def test_different_keys_run_concurrently():
    coordinator = RunCoordinator()
    runner = SlowRunner()

    first = asyncio.ensure_future(coordinator.dispatch(pr_event("sha-1", pr_number=7), runner))
    second = asyncio.ensure_future(coordinator.dispatch(pr_event("sha-2", pr_number=8), runner))
    await asyncio.sleep(0)
    await asyncio.sleep(0)
    runner.release.set()

    results = await asyncio.gather(first, second)
    assert [r.status for r in results] == [RunStatus.PUBLISHED, RunStatus.PUBLISHED]
    assert runner.cancelled == []


@pytest.mark.asyncio
async def test_duplicate_dispatch_joins_existing_run():
    coordinator = RunCoordinator()
    runner = SlowRunner()

    first = asyncio.ensure_future(coordinator.dispatch(pr_event("sha-1"), runner))
    await asyncio.sleep(0)
    duplicate = asyncio.ensure_future(coordinator.dispatch(pr_event("sha-1"), runner))
    await asyncio.sleep(0)
    runner.release.set()

    first_result, duplicate_result = await asyncio.gather(first, duplicate)

    assert runner.started == ["sha-1"]
    assert first_result is duplicate_result


@pytest.mark.asyncio
async def test_completed_dispatch_is_not_rerun():
    coordinator = RunCoordinator()
    runner = SlowRunner()
    runner.release.set()

    first = await coordinator.dispatch(pr_event("sha-1"), runner)
    again = await coordinator.dispatch(pr_event("sha-1"), runner)

    assert runner.started == ["sha-1"]
    assert again is first


@pytest.mark.asyncio
async def test_same_sha_different_event_type_is_a_new_run():
    coordinator = RunCoordinator()
    runner = SlowRunner()
    runner.release.set()

    await coordinator.dispatch(ChangeEvent(EventType.PUSH, "main", commit_sha="sha-1"), runner)
    await coordinator.dispatch(ChangeEvent(EventType.MANUAL, "main", commit_sha="sha-1"), runner)

    assert runner.started == ["sha-1", "sha-1"]


@pytest.mark.asyncio
async def test_cancelled_joiner_does_not_cancel_the_run():
    coordinator = RunCoordinator()
    runner = SlowRunner()

    owner = asyncio.ensure_future(coordinator.dispatch(pr_event("sha-1"), runner))
    await asyncio.sleep(0)
    joiner = asyncio.ensure_future(coordinator.dispatch(pr_event("sha-1"), runner))
    await asyncio.sleep(0)

    joiner.cancel()
    with pytest.raises(asyncio.CancelledError):
        await joiner

    runner.release.set()
    result = await owner
    assert result.status == RunStatus.PUBLISHED
    assert runner.cancelled == []


@pytest.mark.asyncio
async def test_history_is_bounded():
    coordinator = RunCoordinator(max_history=2)
    runner = SlowRunner()
    runner.release.set()

    for sha in ("sha-1", "sha-2", "sha-3"):
        await coordinator.dispatch(ChangeEvent(EventType.PUSH, "main", commit_sha=sha), runner)

    await coordinator.dispatch(ChangeEvent(EventType.PUSH, "main", commit_sha="sha-1"), runner)
    assert runner.started == ["sha-1", "sha-2", "sha-3", "sha-1"]
