"""
Main build orchestrator: sequences delegated steps under a run timeout and
turns the produced APK into a BuildArtifact.
"""
import asyncio
import logging
import uuid
from pathlib import Path
from typing import Iterable, List, Optional

from ..cache.session import CacheSession, grant_cache_access
from ..cache.store import CacheStore
from ..config.global_config_loader import BuildConfig
from ..core.enums import Flavor
from ..core.exceptions import BuildTimeout, StepFailed
from ..core.models import BuildArtifact, ChangeEvent
from ..core.provenance import classify_provenance
from ..monitoring.logging_collector import LoggingCollector
from ..monitoring.logs_storage import RunLogsStorage
from ..publish.naming import validate_release_name
from .hasher import ArtifactHasher
from .numbering import BuildNumberRegistry
from .steps import BuildStep, CommandStep, StepContext


def new_run_id() -> str:
    return uuid.uuid4().hex[:12]


class BuildOrchestrator:
    """
    Runs one build attempt for a change event.
    """

    def __init__(
        self,
        config: BuildConfig,
        registry: BuildNumberRegistry,
        logs_storage: RunLogsStorage,
        cache_store: Optional[CacheStore] = None,
        protected_branches: Iterable[str] = ("main",),
        steps: Optional[List[BuildStep]] = None,
        hasher: Optional[ArtifactHasher] = None
    ):
        """
        Args:
            config: Build settings (workdir, timeout, flavor, steps)
            registry: Source of build numbers
            logs_storage: Run and step log storage
            cache_store: Shared cache, None disables caching
            protected_branches: Branches whose pushes are trusted
            steps: Explicit steps, defaults to the configured command steps
            hasher: Artifact hasher
        """
        self.config = config
        self.registry = registry
        self.logs_storage = logs_storage
        self.cache_store = cache_store
        self.protected_branches = list(protected_branches)
        self.steps = steps if steps is not None else [CommandStep.from_config(s) for s in config.steps]
        self.hasher = hasher or ArtifactHasher()
        self.flavor = Flavor(config.flavor)
        self.workdir = Path(config.workdir)
        self.logger = logging.getLogger(__name__)

    @property
    def timeout_seconds(self) -> float:
        return float(self.config.timeout_minutes) * 60

    async def run(
        self,
        event: ChangeEvent,
        run_id: Optional[str] = None,
        build_number: Optional[int] = None
    ) -> BuildArtifact:
        """
        Execute the build for an event.

        Args:
            event: Trigger being built
            run_id: Identifier used for logs and cache lock ownership
            build_number: Number supplied by the CI platform, if any

        Returns:
            BuildArtifact for the produced APK

        Raises:
            InvalidReleaseName: Before any step runs
            NumberConflict: If the build number was already issued
            StepFailed: If a step fails or no valid APK is produced
            BuildTimeout: If the run exceeds its time bound
        """
        validate_release_name(event.release_name_override)

        run_id = run_id or new_run_id()
        self.logs_storage.start_run(run_id)

        provenance = classify_provenance(event, self.protected_branches)
        access = grant_cache_access(provenance)

        with LoggingCollector(self.logs_storage) as collector:
            collector.start_run(run_id)
            self.logger.info(
                f"Starting build run {run_id} for {event.event_type.value} on {event.branch} "
                f"(provenance={provenance.value}, cache={access.value})"
            )

            number = await self.registry.issue(build_number)

            async with CacheSession(self.cache_store, access, owner=run_id) as cache:
                context = StepContext(
                    run_id=run_id,
                    workdir=self.workdir,
                    logs_storage=self.logs_storage,
                    cache=cache,
                    env={'APKGATE_BUILD_NUMBER': str(number), 'APKGATE_RUN_ID': run_id},
                )
                try:
                    artifact = await asyncio.wait_for(
                        self._build(context, number),
                        timeout=self.timeout_seconds
                    )
                except asyncio.TimeoutError:
                    log_ref = str(self.logs_storage.run_log_path(run_id))
                    self.logger.error(f"Build run {run_id} timed out after {self.timeout_seconds:.0f}s")
                    raise BuildTimeout(self.timeout_seconds, log_ref=log_ref)

            self.logger.info(
                f"Build run {run_id} produced {artifact.binary_path} "
                f"({artifact.size_bytes} bytes, sha256={artifact.sha256})"
            )
            return artifact

    async def _build(self, context: StepContext, build_number: int) -> BuildArtifact:
        for step in self.steps:
            self.logger.info(f"Step {step.name} starting")
            await step.run(context)

        binary = self.locate_binary()
        digest = self.hasher.compute_verified_hash(binary)

        return BuildArtifact(
            binary_path=str(binary),
            size_bytes=binary.stat().st_size,
            sha256=digest,
            build_number=build_number,
            flavor=self.flavor,
        )

    def locate_binary(self) -> Path:
        """
        Find the produced APK under ``{outputs_dir}/{flavor}/debug``.
        The newest file wins when several exist.
        """
        outputs_dir = self.workdir / self.config.outputs_dir
        candidates = [p for p in outputs_dir.glob(self.flavor.output_glob()) if p.is_file()]

        if not candidates:
            self.logger.error(f"No APK found under {outputs_dir}/{self.flavor.output_glob()}")
            raise StepFailed(
                "locate_artifact",
                diagnostic_ref=str(outputs_dir),
                reason="no APK produced"
            )

        return max(candidates, key=lambda p: p.stat().st_mtime)
