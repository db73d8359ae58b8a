"""
Publishing of build artifacts to artifact and release stores.
"""

from .naming import (
    RELEASE_NAME_PATTERN,
    DEFAULT_RELEASE_SEGMENT,
    validate_release_name,
    artifact_name,
    release_tag,
)
from .stores import (
    ArtifactStore,
    ReleaseStore,
    CommentService,
    LocalArtifactStore,
    LocalReleaseStore,
    LogCommentService,
)
from .github import GitHubClient, GitHubReleaseStore, GitHubCommentService
from .router import Router

__all__ = [
    'RELEASE_NAME_PATTERN',
    'DEFAULT_RELEASE_SEGMENT',
    'validate_release_name',
    'artifact_name',
    'release_tag',
    'ArtifactStore',
    'ReleaseStore',
    'CommentService',
    'LocalArtifactStore',
    'LocalReleaseStore',
    'LogCommentService',
    'GitHubClient',
    'GitHubReleaseStore',
    'GitHubCommentService',
    'Router',
]
