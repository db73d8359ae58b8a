"""
Domain models shared by the gate, the build orchestrator and the router.
"""
from dataclasses import dataclass, field, asdict
from typing import Any, Dict, FrozenSet, Iterable, List, Optional, Set, Tuple

from .enums import EventType, Flavor, PublishTargetKind, RunStatus


@dataclass(frozen=True)
class ChangeEvent:
    """A single trigger of the pipeline. Consumed once."""
    event_type: EventType
    branch: str
    changed_paths: FrozenSet[str] = field(default_factory=frozenset)
    release_name_override: Optional[str] = None
    commit_sha: Optional[str] = None
    pr_number: Optional[int] = None

    def __post_init__(self):
        # Callers may hand in lists or sets
        if not isinstance(self.changed_paths, frozenset):
            object.__setattr__(self, 'changed_paths', frozenset(self.changed_paths))
        if not isinstance(self.event_type, EventType):
            object.__setattr__(self, 'event_type', EventType(self.event_type))

    @property
    def concurrency_key(self) -> Tuple[str, Optional[int]]:
        """Runs sharing this key supersede each other"""
        return (self.branch, self.pr_number)

    @property
    def dispatch_key(self) -> Tuple[Optional[str], EventType]:
        """Dispatches sharing this key are the same run"""
        return (self.commit_sha, self.event_type)

    def with_paths(self, paths: Iterable[str]) -> 'ChangeEvent':
        return ChangeEvent(
            event_type=self.event_type,
            branch=self.branch,
            changed_paths=frozenset(paths),
            release_name_override=self.release_name_override,
            commit_sha=self.commit_sha,
            pr_number=self.pr_number,
        )

    @classmethod
    def from_github(
        cls,
        event_name: str,
        payload: Dict[str, Any],
        ref_name: str,
        sha: Optional[str] = None,
        changed_paths: Iterable[str] = ()
    ) -> 'ChangeEvent':
        """
        Build an event from a GitHub Actions event name and payload.

        Args:
            event_name: GITHUB_EVENT_NAME
            payload: Parsed content of GITHUB_EVENT_PATH
            ref_name: GITHUB_REF_NAME
            sha: GITHUB_SHA
            changed_paths: Paths reported by the diff collaborator
        """
        event_type = EventType.from_github(event_name)
        branch = ref_name
        pr_number = None
        release_name = None

        if event_type == EventType.PULL_REQUEST:
            pr = payload.get('pull_request') or {}
            pr_number = pr.get('number') or payload.get('number')
            branch = (pr.get('head') or {}).get('ref') or ref_name
            sha = (pr.get('head') or {}).get('sha') or sha
        elif event_type == EventType.MANUAL:
            inputs = payload.get('inputs') or {}
            release_name = inputs.get('release_name') or None

        return cls(
            event_type=event_type,
            branch=branch,
            changed_paths=frozenset(changed_paths),
            release_name_override=release_name,
            commit_sha=sha,
            pr_number=int(pr_number) if pr_number is not None else None,
        )


@dataclass(frozen=True)
class BuildDecision:
    """Outcome of evaluating changed paths against the rule set"""
    should_build: bool
    matched_rules: FrozenSet[str] = field(default_factory=frozenset)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'should_build': self.should_build,
            'matched_rules': sorted(self.matched_rules),
        }


@dataclass(frozen=True)
class BuildArtifact:
    """Binary produced by a successful build"""
    binary_path: str
    size_bytes: int
    sha256: str
    build_number: int
    flavor: Flavor = Flavor.DEBUG_FDROID

    def to_dict(self) -> Dict[str, Any]:
        result = asdict(self)
        result['flavor'] = self.flavor.value
        return result


@dataclass(frozen=True)
class PublishTarget:
    """Where an artifact goes and how it is kept"""
    kind: PublishTargetKind
    tag: str
    retention_days: Optional[int] = None
    prerelease: bool = False


@dataclass(frozen=True)
class PublishReceipt:
    """Proof that an artifact reached a target"""
    kind: PublishTargetKind
    name: str
    location: str
    build_number: int
    event_type: EventType
    retention_days: Optional[int] = None
    prerelease: bool = False

    def to_dict(self) -> Dict[str, Any]:
        result = asdict(self)
        result['kind'] = self.kind.value
        result['event_type'] = self.event_type.value
        return result


@dataclass
class PipelineResult:
    """Outcome of one pipeline invocation"""
    status: RunStatus
    decision: Optional[BuildDecision] = None
    artifact: Optional[BuildArtifact] = None
    receipts: Set[PublishReceipt] = field(default_factory=set)
    error: Optional[str] = None
    run_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        receipts: List[Dict[str, Any]] = sorted(
            (r.to_dict() for r in self.receipts),
            key=lambda r: r['kind']
        )
        return {
            'status': self.status.value,
            'run_id': self.run_id,
            'decision': self.decision.to_dict() if self.decision else None,
            'artifact': self.artifact.to_dict() if self.artifact else None,
            'receipts': receipts,
            'error': self.error,
        }
