"""
Test cases for artifact and release naming.
"""

from datetime import date

import pytest

from apkgate.core.exceptions import InvalidReleaseName
from apkgate.publish.naming import artifact_name, release_tag, validate_release_name


class TestValidateReleaseName:

    @pytest.mark.parametrize("value", ["beta", "rc.1", "qa_build-2", "v2.0.0-rc1"])
    def test_valid(self, value):
        assert validate_release_name(value) == value

    def test_none_passes(self):
        assert validate_release_name(None) is None

    @pytest.mark.parametrize("value", ["feature/x", "has space", "", "emoji🚀", "a;rm -rf", "..", "a..b"])
    def test_invalid(self, value):
        with pytest.raises(InvalidReleaseName) as exc_info:
            validate_release_name(value)
        assert exc_info.value.value == value

    def test_long_value_is_not_truncated(self):
        value = "x" * 200
        assert validate_release_name(value) == value


def test_artifact_name():
    assert artifact_name("myapp", 42) == "myapp-android-test-42"


class TestReleaseTag:

    def test_default_segment(self):
        assert release_tag("1.0", 42, date(2024, 3, 5)) == "v1.0-test-20240305-build42"

    def test_leading_v_is_not_doubled(self):
        assert release_tag("v2.1.0", 7, date(2024, 12, 31)) == "v2.1.0-test-20241231-build7"

    def test_custom_segment(self):
        assert release_tag("1.0", 3, date(2024, 1, 1), segment="beta") == "v1.0-beta-20240101-build3"
