"""
Wires change detection, the build orchestrator and the router into one run.
"""
import logging
from pathlib import Path
from typing import Optional

from .build.numbering import BuildNumberRegistry
from .build.orchestrator import BuildOrchestrator, new_run_id
from .cache import CacheStore, get_cache_backend
from .cache.base import BaseCacheBackend
from .config.global_config_loader import GlobalConfig
from .config.version import resolve_app_version
from .core.enums import EventType, RunStatus
from .core.exceptions import BuildError
from .core.models import ChangeEvent, PipelineResult
from .gate.change_gate import ChangeGate
from .gate.git_diff import GitDiffCollector
from .gate.rules import PathRuleSet
from .monitoring.logs_storage import RunLogsStorage
from .publish.github import GitHubClient, GitHubCommentService, GitHubReleaseStore
from .publish.naming import validate_release_name
from .publish.router import Router
from .publish.stores import LocalArtifactStore, LocalReleaseStore, LogCommentService
from .publish.summary import COMMENT_MARKER, render_failure_summary
from .scheduler.run_coordinator import RunCoordinator


class Pipeline:
    """
    Entry point for a trigger: evaluate, build, publish.
    """

    def __init__(
        self,
        gate: ChangeGate,
        orchestrator: BuildOrchestrator,
        router: Router,
        coordinator: Optional[RunCoordinator] = None,
        diff_collector: Optional[GitDiffCollector] = None,
        cache_backend: Optional[BaseCacheBackend] = None,
        github_client: Optional[GitHubClient] = None
    ):
        self.gate = gate
        self.orchestrator = orchestrator
        self.router = router
        self.coordinator = coordinator or RunCoordinator()
        self.diff_collector = diff_collector
        self.cache_backend = cache_backend
        self.github_client = github_client
        self.logger = logging.getLogger(__name__)

    @classmethod
    async def from_config(cls, config: GlobalConfig) -> 'Pipeline':
        """Build a pipeline and its collaborators from global configuration"""
        logs_storage = RunLogsStorage(config.storage.logs_dir, config.storage.max_runs)
        registry = BuildNumberRegistry(Path(config.storage.state_dir))

        cache_backend = get_cache_backend(config.cache.type, config.cache.to_backend_dict())
        await cache_backend.connect()

        orchestrator = BuildOrchestrator(
            config=config.build,
            registry=registry,
            logs_storage=logs_storage,
            cache_store=CacheStore(cache_backend),
            protected_branches=config.app.protected_branches,
        )

        github_client = None
        token = config.publish.github_token()
        if config.publish.github_repository and token:
            github_client = GitHubClient(
                repository=config.publish.github_repository,
                token=token,
                api_url=config.publish.github_api_url,
            )
            release_store = GitHubReleaseStore(github_client)
            comment_service = GitHubCommentService(github_client)
        else:
            release_store = LocalReleaseStore(config.publish.release_dir)
            comment_service = LogCommentService()

        router = Router(
            app_name=config.app.name,
            app_version=resolve_app_version(config.app, config.build.workdir),
            artifact_store=LocalArtifactStore(config.publish.artifact_dir),
            release_store=release_store,
            comment_service=comment_service,
            protected_branches=config.app.protected_branches,
            retention_days=config.publish.retention_days,
            release_segment=config.publish.release_segment,
            release_manual_from_any_branch=config.publish.release_manual_from_any_branch,
        )

        return cls(
            gate=ChangeGate(PathRuleSet(config.gate.rules)),
            orchestrator=orchestrator,
            router=router,
            diff_collector=GitDiffCollector(config.build.workdir),
            cache_backend=cache_backend,
            github_client=github_client,
        )

    async def close(self):
        if self.cache_backend is not None:
            await self.cache_backend.disconnect()
        if self.github_client is not None:
            await self.github_client.close()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
        return False

    async def collect_changes(
        self,
        event: ChangeEvent,
        head: Optional[str] = None,
        base: Optional[str] = None
    ) -> ChangeEvent:
        """Fill the event's changed paths from git when it has none"""
        if event.changed_paths or self.diff_collector is None:
            return event
        head = head or event.commit_sha
        if not head:
            return event
        paths = await self.diff_collector.changed_paths(head, base)
        return event.with_paths(paths)

    async def handle(self, event: ChangeEvent, build_number: Optional[int] = None) -> PipelineResult:
        """Run the event under the cross-run concurrency policy"""
        return await self.coordinator.dispatch(
            event,
            lambda e: self.execute(e, build_number=build_number)
        )

    async def execute(self, event: ChangeEvent, build_number: Optional[int] = None) -> PipelineResult:
        """
        Evaluate, build and publish a single event.

        Build errors and unexpected errors are surfaced in the result, the
        run log and, for pull requests, as a comment. Cancellation propagates.
        """
        run_id = new_run_id()

        try:
            validate_release_name(event.release_name_override)
        except BuildError as e:
            self.logger.error(f"Rejected trigger: {e}")
            await self._report_failure(event, e, run_id)
            return PipelineResult(status=RunStatus.FAILED, error=str(e), run_id=run_id)

        decision = self.gate.evaluate_event(event)
        if not decision.should_build:
            return PipelineResult(status=RunStatus.SKIPPED, decision=decision, run_id=run_id)

        try:
            artifact = await self.orchestrator.run(event, run_id=run_id, build_number=build_number)
            receipts = await self.router.publish(artifact, event)
        except BuildError as e:
            self.logger.error(f"Run {run_id} failed: {e}")
            await self._report_failure(event, e, run_id)
            return PipelineResult(
                status=RunStatus.FAILED,
                decision=decision,
                error=str(e),
                run_id=run_id,
            )
        except Exception as e:
            self.logger.error(f"Run {run_id} failed unexpectedly: {e}", exc_info=True)
            await self._report_failure(event, e, run_id)
            return PipelineResult(
                status=RunStatus.FAILED,
                decision=decision,
                error=f"{type(e).__name__}: {e}",
                run_id=run_id,
            )

        return PipelineResult(
            status=RunStatus.PUBLISHED,
            decision=decision,
            artifact=artifact,
            receipts=receipts,
            run_id=run_id,
        )

    async def _report_failure(self, event: ChangeEvent, error: Exception, run_id: str):
        summary = render_failure_summary(error, run_id)
        self.router.write_step_summary(summary)

        if event.event_type != EventType.PULL_REQUEST or event.pr_number is None:
            return
        if self.router.comment_service is None:
            return
        try:
            await self.router.comment_service.upsert_comment(event.pr_number, COMMENT_MARKER, summary)
        except Exception as report_error:
            # Keep the original failure as the run's outcome
            self.logger.error(f"Failed to report failure on PR #{event.pr_number}: {report_error}")
