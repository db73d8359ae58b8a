from .global_config_loader import (
    AppConfig,
    GateConfig,
    StepCacheConfig,
    StepConfig,
    BuildConfig,
    CacheConfig,
    PublishConfig,
    StorageConfig,
    GlobalConfig,
    load_global_config,
)
from .version import resolve_app_version

__all__ = [
    'AppConfig',
    'GateConfig',
    'StepCacheConfig',
    'StepConfig',
    'BuildConfig',
    'CacheConfig',
    'PublishConfig',
    'StorageConfig',
    'GlobalConfig',
    'load_global_config',
    'resolve_app_version',
]
