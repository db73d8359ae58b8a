"""
Test cases for artifact hashing.
"""

import hashlib
from unittest.mock import patch

import pytest

from apkgate.build.hasher import ArtifactHasher
from apkgate.core.exceptions import StepFailed


@pytest.fixture
def apk_file(tmp_path):
    path = tmp_path / "app-fdroid-debug.apk"
    path.write_bytes(b"PK" + bytes(range(256)) * 50)
    return path


def test_compute_file_hash_matches_hashlib(apk_file):
    hasher = ArtifactHasher(chunk_size=100)
    assert hasher.compute_file_hash(apk_file) == hashlib.sha256(apk_file.read_bytes()).hexdigest()


def test_verified_hash(apk_file):
    digest = ArtifactHasher().compute_verified_hash(apk_file)
    assert digest == hashlib.sha256(apk_file.read_bytes()).hexdigest()
    assert len(digest) == 64


def test_verified_hash_mismatch_raises(apk_file):
    hasher = ArtifactHasher()
    with patch.object(hasher, 'compute_file_hash', side_effect=["a" * 64, "b" * 64]):
        with pytest.raises(StepFailed) as exc_info:
            hasher.compute_verified_hash(apk_file)
    assert exc_info.value.step_name == "verify_artifact"
    assert exc_info.value.diagnostic_ref == str(apk_file)
