"""
Publish sinks: artifact store, release store and change request comments.

Every store keys its entries by (build_number, event_type) so that a retried
publish overwrites the previous entry instead of adding a second one.
"""
import json
import logging
import os
import shutil
from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from ..core.enums import PublishTargetKind
from ..core.models import BuildArtifact, ChangeEvent, PublishReceipt


def publish_key(build_number: int, event_type: str) -> str:
    return f"{build_number}:{event_type}"


class ArtifactStore(ABC):
    """Ephemeral storage with a retention period"""

    @abstractmethod
    async def upload(
        self,
        name: str,
        artifact: BuildArtifact,
        event: ChangeEvent,
        retention_days: int
    ) -> PublishReceipt:
        pass


class ReleaseStore(ABC):
    """Persistent, tagged releases"""

    @abstractmethod
    async def publish_release(
        self,
        tag: str,
        artifact: BuildArtifact,
        event: ChangeEvent,
        body: str,
        prerelease: bool = True
    ) -> PublishReceipt:
        pass


class CommentService(ABC):
    """Comments on the originating change request"""

    @abstractmethod
    async def upsert_comment(self, pr_number: int, marker: str, body: str) -> str:
        """
        Create the comment, or replace the existing one carrying marker.

        Returns:
            Identifier or URL of the comment
        """
        pass


class _JsonIndex:
    """Small JSON file mapping publish keys to entry names"""

    def __init__(self, path: Path):
        self.path = path

    def load(self) -> Dict[str, Any]:
        if not self.path.exists():
            return {}
        with open(self.path, 'r') as f:
            return json.load(f)

    def save(self, data: Dict[str, Any]):
        tmp_path = self.path.with_suffix('.tmp')
        with open(tmp_path, 'w') as f:
            json.dump(data, f, indent=2, sort_keys=True)
        os.replace(tmp_path, self.path)


class LocalArtifactStore(ArtifactStore):
    """Artifacts kept in a local directory, one subdirectory per artifact name"""

    def __init__(self, base_dir: str):
        self.base_dir = Path(base_dir)
        self.base_dir.mkdir(parents=True, exist_ok=True)
        self.index = _JsonIndex(self.base_dir / "index.json")
        self.logger = logging.getLogger(__name__)

    async def upload(
        self,
        name: str,
        artifact: BuildArtifact,
        event: ChangeEvent,
        retention_days: int
    ) -> PublishReceipt:
        key = publish_key(artifact.build_number, event.event_type.value)
        index = self.index.load()

        previous = index.get(key)
        if previous and previous != name:
            shutil.rmtree(self.base_dir / previous, ignore_errors=True)

        target_dir = self.base_dir / name
        if target_dir.exists():
            self.logger.info(f"Overwriting existing artifact {name}")
            shutil.rmtree(target_dir)
        target_dir.mkdir(parents=True)

        binary = Path(artifact.binary_path)
        target = target_dir / binary.name
        shutil.copy2(binary, target)

        now = datetime.now(timezone.utc)
        manifest = {
            'name': name,
            'build_number': artifact.build_number,
            'event_type': event.event_type.value,
            'file': binary.name,
            'size_bytes': artifact.size_bytes,
            'sha256': artifact.sha256,
            'uploaded_at': now.isoformat(),
            'expires_at': (now + timedelta(days=retention_days)).isoformat(),
        }
        with open(target_dir / "manifest.json", 'w') as f:
            json.dump(manifest, f, indent=2)

        index[key] = name
        self.index.save(index)

        self.logger.info(f"Uploaded artifact {name} ({retention_days} day retention)")
        return PublishReceipt(
            kind=PublishTargetKind.ARTIFACT_STORE,
            name=name,
            location=target.resolve().as_uri(),
            build_number=artifact.build_number,
            event_type=event.event_type,
            retention_days=retention_days,
        )

    def purge_expired(self, now: Optional[datetime] = None) -> List[str]:
        """Delete artifacts past their retention period"""
        now = now or datetime.now(timezone.utc)
        index = self.index.load()
        removed = []

        for key, name in list(index.items()):
            manifest_path = self.base_dir / name / "manifest.json"
            if not manifest_path.exists():
                del index[key]
                continue
            with open(manifest_path, 'r') as f:
                manifest = json.load(f)
            if datetime.fromisoformat(manifest['expires_at']) <= now:
                shutil.rmtree(self.base_dir / name, ignore_errors=True)
                del index[key]
                removed.append(name)
                self.logger.info(f"Purged expired artifact {name}")

        self.index.save(index)
        return removed


class LocalReleaseStore(ReleaseStore):
    """Releases kept in a local directory, one subdirectory per tag"""

    def __init__(self, base_dir: str):
        self.base_dir = Path(base_dir)
        self.base_dir.mkdir(parents=True, exist_ok=True)
        self.index = _JsonIndex(self.base_dir / "index.json")
        self.logger = logging.getLogger(__name__)

    async def publish_release(
        self,
        tag: str,
        artifact: BuildArtifact,
        event: ChangeEvent,
        body: str,
        prerelease: bool = True
    ) -> PublishReceipt:
        key = publish_key(artifact.build_number, event.event_type.value)
        index = self.index.load()

        previous = index.get(key)
        if previous and previous != tag:
            # Same build republished under a new date
            self.logger.info(f"Replacing release {previous} with {tag}")
            shutil.rmtree(self.base_dir / previous, ignore_errors=True)

        release_dir = self.base_dir / tag
        if release_dir.exists():
            shutil.rmtree(release_dir)
        release_dir.mkdir(parents=True)

        binary = Path(artifact.binary_path)
        shutil.copy2(binary, release_dir / binary.name)

        release = {
            'tag': tag,
            'name': tag,
            'prerelease': prerelease,
            'body': body,
            'build_number': artifact.build_number,
            'event_type': event.event_type.value,
            'target_commitish': event.commit_sha,
            'assets': [binary.name],
            'published_at': datetime.now(timezone.utc).isoformat(),
        }
        with open(release_dir / "release.json", 'w') as f:
            json.dump(release, f, indent=2)

        index[key] = tag
        self.index.save(index)

        self.logger.info(f"Published release {tag} (prerelease={prerelease})")
        return PublishReceipt(
            kind=PublishTargetKind.RELEASE_STORE,
            name=tag,
            location=release_dir.resolve().as_uri(),
            build_number=artifact.build_number,
            event_type=event.event_type,
            prerelease=prerelease,
        )


class LogCommentService(CommentService):
    """Offline comment sink: logs comments and keeps the latest per marker"""

    def __init__(self):
        self.comments: Dict[Tuple[int, str], str] = {}
        self.logger = logging.getLogger(__name__)

    async def upsert_comment(self, pr_number: int, marker: str, body: str) -> str:
        key = (pr_number, marker)
        action = "Updated" if key in self.comments else "Created"
        self.comments[key] = body
        self.logger.info(f"{action} comment on PR #{pr_number}:\n{body}")
        return f"pr-{pr_number}"
