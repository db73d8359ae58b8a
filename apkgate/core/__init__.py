from .enums import EventType, Provenance, CacheAccess, Flavor, PublishTargetKind, RunStatus
from .models import (
    ChangeEvent,
    BuildDecision,
    BuildArtifact,
    PublishTarget,
    PublishReceipt,
    PipelineResult,
)
from .exceptions import (
    ApkGateError,
    ConfigError,
    BuildError,
    StepFailed,
    BuildTimeout,
    NumberConflict,
    InvalidReleaseName,
    CacheWriteDenied,
    CacheUnavailable,
)

__all__ = [
    'EventType',
    'Provenance',
    'CacheAccess',
    'Flavor',
    'PublishTargetKind',
    'RunStatus',
    'ChangeEvent',
    'BuildDecision',
    'BuildArtifact',
    'PublishTarget',
    'PublishReceipt',
    'PipelineResult',
    'ApkGateError',
    'ConfigError',
    'BuildError',
    'StepFailed',
    'BuildTimeout',
    'NumberConflict',
    'InvalidReleaseName',
    'CacheWriteDenied',
    'CacheUnavailable',
]
