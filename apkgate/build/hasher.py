"""
SHA256 computation for build artifacts.
"""
import hashlib
import logging
from pathlib import Path
from typing import Union

from ..core.exceptions import StepFailed


class ArtifactHasher:
    """Computes artifact digests by streaming the file from disk"""

    def __init__(self, chunk_size: int = 1024 * 1024):
        self.chunk_size = chunk_size
        self.logger = logging.getLogger(__name__)

    def compute_file_hash(self, file_path: Union[str, Path]) -> str:
        """
        Compute hash of raw file content.

        Args:
            file_path: Path to file

        Returns:
            SHA256 hash hex string
        """
        hash_obj = hashlib.sha256()
        with open(file_path, 'rb') as f:
            for chunk in iter(lambda: f.read(self.chunk_size), b''):
                hash_obj.update(chunk)
        return hash_obj.hexdigest()

    def compute_verified_hash(self, file_path: Union[str, Path]) -> str:
        """
        Hash the file in two independent passes and require them to agree.
        A mismatch means the file changed underneath us (partial write).

        Raises:
            StepFailed: If the passes disagree
        """
        first = self.compute_file_hash(file_path)
        second = self.compute_file_hash(file_path)

        if first != second:
            self.logger.error(f"Digest mismatch for {file_path}: {first} != {second}")
            raise StepFailed(
                "verify_artifact",
                diagnostic_ref=str(file_path),
                reason="sha256 changed between passes"
            )

        self.logger.debug(f"Verified sha256 {first} for {file_path}")
        return first
