import json
import logging
from pathlib import Path
from typing import Union

from ..core.exceptions import ConfigError
from .global_config_loader import AppConfig

logger = logging.getLogger(__name__)


def resolve_app_version(app: AppConfig, workdir: Union[str, Path] = ".") -> str:
    """
    Return the configured version, or the ``version`` field of the
    app's version file (package.json) when none is configured.
    """
    if app.version:
        return str(app.version)

    version_path = Path(workdir) / app.version_file
    try:
        with open(version_path, 'r', encoding='utf-8') as f:
            data = json.load(f)
    except FileNotFoundError:
        raise ConfigError(f"No app.version configured and {version_path} does not exist")
    except json.JSONDecodeError as e:
        raise ConfigError(f"Failed to parse {version_path}: {e}") from e

    version = data.get('version')
    if not version:
        raise ConfigError(f"{version_path} has no 'version' field")

    logger.debug(f"Resolved app version {version} from {version_path}")
    return str(version)
