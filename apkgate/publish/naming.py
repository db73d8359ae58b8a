"""
Naming conventions for artifacts and releases.
"""
import re
from datetime import date
from typing import Optional

from ..core.exceptions import InvalidReleaseName

RELEASE_NAME_PATTERN = re.compile(r'^[A-Za-z0-9._-]+$')
DEFAULT_RELEASE_SEGMENT = "test"


def validate_release_name(value: Optional[str]) -> Optional[str]:
    """
    Check a release name override against the tag-safe character set.

    Args:
        value: Override supplied with a manual trigger, or None

    Returns:
        The value unchanged

    Raises:
        InvalidReleaseName: If it contains anything outside [A-Za-z0-9._-]
                            or a ``..`` sequence
    """
    if value is None:
        return None
    if not RELEASE_NAME_PATTERN.match(value) or '..' in value:
        raise InvalidReleaseName(value)
    return value


def artifact_name(app_name: str, build_number: int) -> str:
    return f"{app_name}-android-test-{build_number}"


def release_tag(
    version: str,
    build_number: int,
    on_date: date,
    segment: str = DEFAULT_RELEASE_SEGMENT
) -> str:
    """``v{version}-{segment}-{YYYYMMDD}-build{build_number}``"""
    version = version[1:] if version.startswith('v') else version
    return f"v{version}-{segment}-{on_date:%Y%m%d}-build{build_number}"
