"""
Routes a build artifact to its publish targets based on trigger provenance.
"""
import logging
import os
from datetime import date
from typing import Callable, Iterable, List, Optional, Set

from ..core.enums import EventType, PublishTargetKind
from ..core.models import BuildArtifact, ChangeEvent, PublishReceipt, PublishTarget
from ..core.provenance import is_protected_branch
from .naming import DEFAULT_RELEASE_SEGMENT, artifact_name, release_tag, validate_release_name
from .stores import ArtifactStore, CommentService, ReleaseStore
from .summary import COMMENT_MARKER, render_artifact_summary, render_release_body


class Router:
    """
    Decides where an artifact goes and publishes it there.

    - pull_request: artifact store only, summary comment on the PR
    - push/manual on a protected branch: artifact store and a prerelease
    - anything else: artifact store only
    """

    def __init__(
        self,
        app_name: str,
        app_version: str,
        artifact_store: ArtifactStore,
        release_store: Optional[ReleaseStore] = None,
        comment_service: Optional[CommentService] = None,
        protected_branches: Iterable[str] = ("main",),
        retention_days: int = 30,
        release_segment: str = DEFAULT_RELEASE_SEGMENT,
        release_manual_from_any_branch: bool = False,
        today: Callable[[], date] = date.today,
        step_summary_path: Optional[str] = None
    ):
        self.app_name = app_name
        self.app_version = app_version
        self.artifact_store = artifact_store
        self.release_store = release_store
        self.comment_service = comment_service
        self.protected_branches = list(protected_branches)
        self.retention_days = retention_days
        self.release_segment = release_segment
        self.release_manual_from_any_branch = release_manual_from_any_branch
        self.today = today
        self.step_summary_path = step_summary_path or os.environ.get('GITHUB_STEP_SUMMARY')
        self.logger = logging.getLogger(__name__)

    def releases_for(self, event: ChangeEvent) -> bool:
        if event.event_type == EventType.PULL_REQUEST:
            return False
        if is_protected_branch(event.branch, self.protected_branches):
            return True
        return event.event_type == EventType.MANUAL and self.release_manual_from_any_branch

    def plan(self, artifact: BuildArtifact, event: ChangeEvent) -> List[PublishTarget]:
        """
        Compute publish targets for an artifact.

        Raises:
            InvalidReleaseName: If the event carries an unsafe override
        """
        override = validate_release_name(event.release_name_override)

        targets = [
            PublishTarget(
                kind=PublishTargetKind.ARTIFACT_STORE,
                tag=artifact_name(self.app_name, artifact.build_number),
                retention_days=self.retention_days,
            )
        ]

        if self.releases_for(event):
            segment = override if (override and event.event_type == EventType.MANUAL) else self.release_segment
            targets.append(
                PublishTarget(
                    kind=PublishTargetKind.RELEASE_STORE,
                    tag=release_tag(self.app_version, artifact.build_number, self.today(), segment),
                    prerelease=True,
                )
            )
        return targets

    async def publish(self, artifact: BuildArtifact, event: ChangeEvent) -> Set[PublishReceipt]:
        """
        Publish to every planned target.

        Returns:
            One receipt per target. Publishing the same artifact and event
            again overwrites the stored entries and yields the same receipts.
        """
        receipts: Set[PublishReceipt] = set()
        artifact_receipt = None

        for target in self.plan(artifact, event):
            if target.kind == PublishTargetKind.ARTIFACT_STORE:
                artifact_receipt = await self.artifact_store.upload(
                    target.tag, artifact, event, target.retention_days
                )
                receipts.add(artifact_receipt)
            elif target.kind == PublishTargetKind.RELEASE_STORE:
                if self.release_store is None:
                    self.logger.warning(f"No release store configured, skipping release {target.tag}")
                    continue
                receipt = await self.release_store.publish_release(
                    target.tag,
                    artifact,
                    event,
                    body=render_release_body(artifact, event),
                    prerelease=target.prerelease,
                )
                receipts.add(receipt)

        summary = render_artifact_summary(artifact, artifact_receipt, self.app_name)
        self.write_step_summary(summary)

        if event.event_type == EventType.PULL_REQUEST:
            await self.notify_change_request(event, summary)

        self.logger.info(
            f"Published build {artifact.build_number} to "
            f"{sorted(r.kind.value for r in receipts)}"
        )
        return receipts

    async def notify_change_request(self, event: ChangeEvent, body: str) -> Optional[str]:
        """Post or update the build comment on the originating pull request"""
        if self.comment_service is None or event.pr_number is None:
            self.logger.info("No comment service or PR number, not commenting")
            return None
        return await self.comment_service.upsert_comment(event.pr_number, COMMENT_MARKER, body)

    def write_step_summary(self, markdown: str):
        if not self.step_summary_path:
            return
        with open(self.step_summary_path, 'a', encoding='utf-8') as f:
            f.write(markdown + "\n")
