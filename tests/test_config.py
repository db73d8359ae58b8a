"""
Test cases for global configuration loading.
"""

import json

import pytest

from apkgate.config import resolve_app_version
from apkgate.config.global_config_loader import AppConfig, GlobalConfig, StepConfig, load_global_config
from apkgate.core.exceptions import ConfigError
from apkgate.gate.rules import DEFAULT_RULES


def test_defaults():
    config = GlobalConfig.default()
    assert config.app.protected_branches == ["main"]
    assert config.gate.rules == list(DEFAULT_RULES)
    assert config.build.timeout_minutes == 45
    assert config.publish.retention_days == 30
    assert config.publish.release_segment == "test"
    assert config.cache.type == "memory"


def test_missing_file_returns_default(tmp_path):
    config = GlobalConfig.from_yaml(str(tmp_path / "nope.yaml"))
    assert config.build.flavor == "debug_fdroid"


def test_load_yaml(tmp_path):
    path = tmp_path / "apkgate.yaml"
    path.write_text(
        "app:\n"
        "  name: myapp\n"
        "  protected_branches: [main, release]\n"
        "gate:\n"
        "  rules: ['android/**']\n"
        "build:\n"
        "  timeout_minutes: 30\n"
        "  steps:\n"
        "    - name: package_native\n"
        "      command: ./gradlew assembleFdroidDebug\n"
        "      cwd: android\n"
        "      cache:\n"
        "        name: gradle\n"
        "        paths: [.gradle]\n"
        "        key_files: [build.gradle]\n"
        "cache:\n"
        "  type: redis\n"
        "  url: redis://cache:6379\n"
        "publish:\n"
        "  github_repository: owner/app\n"
    )

    config = load_global_config(str(path))

    assert config.app.protected_branches == ["main", "release"]
    assert config.gate.rules == ["android/**"]
    assert config.build.timeout_minutes == 30
    step = config.build.steps[0]
    assert step.command == ["./gradlew", "assembleFdroidDebug"]
    assert step.cache.name == "gradle"
    assert config.cache.to_backend_dict()['url'] == "redis://cache:6379"
    assert config.publish.github_repository == "owner/app"


def test_each_load_returns_fresh_config(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    first = load_global_config()
    first.app.protected_branches.append("hotfix")

    second = load_global_config()

    assert second is not first
    assert "hotfix" not in second.app.protected_branches
    assert second.gate.rules == list(DEFAULT_RULES)


def test_invalid_yaml(tmp_path):
    path = tmp_path / "apkgate.yaml"
    path.write_text("app: [unclosed\n")
    with pytest.raises(ConfigError):
        GlobalConfig.from_yaml(str(path))


def test_unknown_key(tmp_path):
    with pytest.raises(ConfigError):
        GlobalConfig.from_dict({'app': {'colour': 'blue'}})


def test_unsupported_flavor():
    with pytest.raises(ConfigError):
        GlobalConfig.from_dict({'build': {'flavor': 'release_play'}})


def test_step_requires_command():
    with pytest.raises(ConfigError):
        StepConfig.from_dict({'name': 'broken'})


def test_github_token_from_env(monkeypatch):
    config = GlobalConfig.default()
    monkeypatch.setenv("GITHUB_TOKEN", "t0ken")
    assert config.publish.github_token() == "t0ken"


class TestResolveAppVersion:

    def test_explicit_version(self, tmp_path):
        assert resolve_app_version(AppConfig(version="3.1"), tmp_path) == "3.1"

    def test_from_package_json(self, tmp_path):
        (tmp_path / "package.json").write_text(json.dumps({'version': '1.4.2'}))
        assert resolve_app_version(AppConfig(), tmp_path) == "1.4.2"

    def test_missing_version(self, tmp_path):
        (tmp_path / "package.json").write_text(json.dumps({'name': 'x'}))
        with pytest.raises(ConfigError):
            resolve_app_version(AppConfig(), tmp_path)

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigError):
            resolve_app_version(AppConfig(), tmp_path)
