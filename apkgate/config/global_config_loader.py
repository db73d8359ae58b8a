import os
import yaml
from pathlib import Path
from typing import Optional, Dict, Any, List
from dataclasses import dataclass, field

from ..core.enums import Flavor
from ..core.exceptions import ConfigError
from ..gate.rules import DEFAULT_RULES


@dataclass
class AppConfig:
    """Application identity"""
    name: str = "app"
    version: Optional[str] = None
    version_file: str = "package.json"
    protected_branches: List[str] = field(default_factory=lambda: ["main"])


@dataclass
class GateConfig:
    """Change detection rules"""
    rules: List[str] = field(default_factory=lambda: list(DEFAULT_RULES))


@dataclass
class StepCacheConfig:
    """Directories a step can restore from and save to the shared cache"""
    name: str
    paths: List[str]
    key_files: List[str]
    skip_step_on_hit: bool = False


@dataclass
class StepConfig:
    """One delegated build step"""
    name: str
    command: List[str]
    cwd: str = "."
    env: Dict[str, str] = field(default_factory=dict)
    cache: Optional[StepCacheConfig] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'StepConfig':
        data = dict(data)
        command = data.get('command')
        if isinstance(command, str):
            data['command'] = command.split()
        if not data.get('name') or not data.get('command'):
            raise ConfigError(f"Build step requires 'name' and 'command': {data}")
        cache_data = data.pop('cache', None)
        cache = StepCacheConfig(**cache_data) if cache_data else None
        return cls(cache=cache, **data)


def default_steps() -> List[StepConfig]:
    """Install JS dependencies, compile web assets, sync and package the APK"""
    return [
        StepConfig(
            name="install_dependencies",
            command=["npm", "ci"],
            cache=StepCacheConfig(
                name="npm",
                paths=["node_modules"],
                key_files=["package-lock.json"],
            ),
        ),
        StepConfig(name="build_frontend", command=["npm", "run", "build"]),
        StepConfig(name="sync_native", command=["npx", "cap", "sync", "android"]),
        StepConfig(
            name="package_native",
            command=["./gradlew", Flavor.DEBUG_FDROID.gradle_task, "--no-daemon"],
            cwd="android",
            cache=StepCacheConfig(
                name="gradle",
                paths=[".gradle"],
                key_files=[
                    "build.gradle",
                    "app/build.gradle",
                    "gradle/wrapper/gradle-wrapper.properties",
                ],
            ),
        ),
    ]


@dataclass
class BuildConfig:
    """Build orchestration settings"""
    workdir: str = "."
    timeout_minutes: float = 45
    flavor: str = Flavor.DEBUG_FDROID.value
    outputs_dir: str = "android/app/build/outputs/apk"
    steps: List[StepConfig] = field(default_factory=default_steps)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'BuildConfig':
        data = dict(data)
        steps_data = data.pop('steps', None)
        config = cls(**data)
        if steps_data is not None:
            config.steps = [StepConfig.from_dict(s) for s in steps_data]
        try:
            Flavor(config.flavor)
        except ValueError:
            raise ConfigError(f"Unsupported flavor: {config.flavor}")
        return config


@dataclass
class CacheConfig:
    """Shared build cache settings"""
    type: str = "memory"
    url: str = "redis://localhost:6379"
    key_prefix: str = "apkgate:cache:"
    ttl: Optional[int] = 7 * 24 * 3600
    max_size: int = 1000
    policy: str = "lru"

    def to_backend_dict(self) -> Dict[str, Any]:
        return {
            'url': self.url,
            'key_prefix': self.key_prefix,
            'ttl': self.ttl,
            'max_size': self.max_size,
            'policy': self.policy,
        }


@dataclass
class PublishConfig:
    """Artifact and release routing"""
    artifact_dir: str = "./data/artifacts"
    release_dir: str = "./data/releases"
    retention_days: int = 30
    release_segment: str = "test"
    release_manual_from_any_branch: bool = False
    github_repository: Optional[str] = None
    github_api_url: str = "https://api.github.com"
    github_token_env: str = "GITHUB_TOKEN"

    def github_token(self) -> Optional[str]:
        return os.environ.get(self.github_token_env)


@dataclass
class StorageConfig:
    """Local state and log storage"""
    state_dir: str = "./data/state"
    logs_dir: str = "./data/logs"
    max_runs: int = 50


@dataclass
class GlobalConfig:
    """Global configuration for apkgate"""
    app: AppConfig
    gate: GateConfig
    build: BuildConfig
    cache: CacheConfig
    publish: PublishConfig
    storage: StorageConfig

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'GlobalConfig':
        """Create GlobalConfig from dictionary"""
        try:
            return cls(
                app=AppConfig(**data.get('app', {})),
                gate=GateConfig(**data.get('gate', {})),
                build=BuildConfig.from_dict(data.get('build', {})),
                cache=CacheConfig(**data.get('cache', {})),
                publish=PublishConfig(**data.get('publish', {})),
                storage=StorageConfig(**data.get('storage', {})),
            )
        except TypeError as e:
            raise ConfigError(f"Invalid configuration: {e}") from e

    @classmethod
    def from_yaml(cls, yaml_path: str) -> 'GlobalConfig':
        """Load GlobalConfig from YAML file"""
        path = Path(yaml_path)
        if not path.exists():
            # Return default config if file doesn't exist
            return cls.default()

        try:
            with open(path, 'r') as f:
                data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigError(f"Failed to parse {yaml_path}: {e}") from e

        return cls.from_dict(data or {})

    @classmethod
    def default(cls) -> 'GlobalConfig':
        """Return default configuration"""
        return cls(
            app=AppConfig(),
            gate=GateConfig(),
            build=BuildConfig(),
            cache=CacheConfig(),
            publish=PublishConfig(),
            storage=StorageConfig(),
        )


def load_global_config(config_path: Optional[str] = None) -> GlobalConfig:
    """
    Load global configuration from YAML file.
    If no path provided, looks for apkgate.yaml in standard locations.
    """
    if config_path:
        return GlobalConfig.from_yaml(config_path)

    search_paths = [
        Path("./apkgate.yaml"),
        Path("./config/apkgate.yaml"),
        Path("/etc/apkgate/apkgate.yaml"),
    ]

    for path in search_paths:
        if path.exists():
            return GlobalConfig.from_yaml(str(path))

    return GlobalConfig.default()
