"""
apkgate - change-gated Android test APK builds

Main modules:
- core: Events, artifacts, receipts and the error taxonomy
- gate: Path glob rules and change detection
- build: Step sequencing, build numbering and artifact hashing
- cache: Provenance-gated shared build caches
- publish: Artifact/release routing and GitHub integration
- scheduler: Cross-run cancellation and dispatch de-duplication
- config: YAML configuration loading
"""

from .core.models import ChangeEvent, BuildDecision, BuildArtifact, PublishReceipt, PipelineResult
from .core.enums import EventType
from .gate.change_gate import ChangeGate, evaluate
from .build.orchestrator import BuildOrchestrator
from .publish.router import Router
from .scheduler.run_coordinator import RunCoordinator
from .pipeline import Pipeline
from .config.global_config_loader import GlobalConfig, load_global_config

__version__ = "1.0.0"
__all__ = [
    'ChangeEvent',
    'BuildDecision',
    'BuildArtifact',
    'PublishReceipt',
    'PipelineResult',
    'EventType',
    'ChangeGate',
    'evaluate',
    'BuildOrchestrator',
    'Router',
    'RunCoordinator',
    'Pipeline',
    'GlobalConfig',
    'load_global_config',
]
