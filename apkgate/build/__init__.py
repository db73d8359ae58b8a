"""
Build system for Android test APKs.
Sequences delegated steps, numbers builds and hashes the produced binary.
"""

from .hasher import ArtifactHasher
from .lock import FileLockManager
from .numbering import BuildNumberRegistry
from .steps import BuildStep, CommandStep, StepContext
from .orchestrator import BuildOrchestrator, new_run_id

__all__ = [
    'ArtifactHasher',
    'FileLockManager',
    'BuildNumberRegistry',
    'BuildStep',
    'CommandStep',
    'StepContext',
    'BuildOrchestrator',
    'new_run_id',
]
