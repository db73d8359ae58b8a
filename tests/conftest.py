"""Pytest configuration and fixtures for apkgate tests."""

import asyncio
import sys
from pathlib import Path
from typing import List, Optional

import pytest
import logging

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from apkgate.build.numbering import BuildNumberRegistry
from apkgate.build.orchestrator import BuildOrchestrator
from apkgate.build.steps import BuildStep, StepContext
from apkgate.cache import CacheStore, InMemoryCacheBackend
from apkgate.config.global_config_loader import BuildConfig
from apkgate.core.enums import EventType
from apkgate.core.exceptions import CacheWriteDenied, StepFailed
from apkgate.core.models import ChangeEvent
from apkgate.monitoring.logs_storage import RunLogsStorage

# Configure logging
logging.basicConfig(level=logging.INFO)

APK_OUTPUTS = "android/app/build/outputs/apk"


class FakeStep(BuildStep):
    """Build step that records its calls and can write a fake APK"""

    def __init__(
        self,
        name: str,
        apk_name: Optional[str] = None,
        fail: bool = False,
        delay: float = 0,
        cache_name: Optional[str] = None
    ):
        self.name = name
        self.apk_name = apk_name
        self.fail = fail
        self.delay = delay
        self.cache_name = cache_name
        self.calls: List[str] = []
        self.denied = False

    async def run(self, context: StepContext) -> None:
        self.calls.append(context.run_id)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail:
            raise StepFailed(self.name, diagnostic_ref=str(context.logs_storage.step_log_path(context.run_id, self.name)))
        if self.cache_name:
            try:
                await context.cache.save(self.cache_name, "fp-" + self.name, b"cached-" + self.name.encode())
            except CacheWriteDenied:
                self.denied = True
        if self.apk_name:
            output_dir = context.workdir / APK_OUTPUTS / "fdroid" / "debug"
            output_dir.mkdir(parents=True, exist_ok=True)
            (output_dir / self.apk_name).write_bytes(b"PK\x03\x04 fake apk " + self.name.encode())


@pytest.fixture
def workdir(tmp_path):
    path = tmp_path / "checkout"
    path.mkdir()
    (path / "package.json").write_text('{"name": "demo", "version": "1.0"}')
    return path


@pytest.fixture
def logs_storage(tmp_path):
    return RunLogsStorage(str(tmp_path / "logs"), max_runs=10)


@pytest.fixture
def registry(tmp_path):
    return BuildNumberRegistry(tmp_path / "state")


@pytest.fixture
def cache_backend():
    return InMemoryCacheBackend(max_size=100)


@pytest.fixture
def cache_store(cache_backend):
    return CacheStore(cache_backend)


@pytest.fixture
def build_config(workdir):
    return BuildConfig(workdir=str(workdir), timeout_minutes=1, outputs_dir=APK_OUTPUTS, steps=[])


@pytest.fixture
def make_orchestrator(build_config, registry, logs_storage, cache_store):
    def _make(steps, **overrides):
        return BuildOrchestrator(
            config=overrides.pop('config', build_config),
            registry=registry,
            logs_storage=logs_storage,
            cache_store=cache_store,
            protected_branches=["main"],
            steps=steps,
            **overrides
        )
    return _make


@pytest.fixture
def push_event():
    return ChangeEvent(
        event_type=EventType.PUSH,
        branch="main",
        changed_paths=frozenset({"src/App.tsx"}),
        commit_sha="a" * 40,
    )


@pytest.fixture
def pr_event():
    return ChangeEvent(
        event_type=EventType.PULL_REQUEST,
        branch="feature-x",
        changed_paths=frozenset({"android/app/build.gradle"}),
        commit_sha="b" * 40,
        pr_number=7,
    )


@pytest.fixture(autouse=True)
def no_github_env(monkeypatch):
    """Keep tests from writing to a real step summary or output file"""
    for name in ("GITHUB_STEP_SUMMARY", "GITHUB_OUTPUT", "GITHUB_TOKEN"):
        monkeypatch.delenv(name, raising=False)
