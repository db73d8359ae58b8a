"""
Packs cached directories into gzip tarballs and restores them.
"""
import io
import logging
import tarfile
from pathlib import Path
from typing import Iterable, List, Union

logger = logging.getLogger(__name__)


def pack_paths(root: Union[str, Path], paths: Iterable[str]) -> bytes:
    """
    Archive the given paths (relative to root) into an in-memory tarball.
    Missing paths are skipped.
    """
    root = Path(root)
    buffer = io.BytesIO()
    packed: List[str] = []
    with tarfile.open(fileobj=buffer, mode='w:gz') as tar:
        for rel in paths:
            source = root / rel
            if not source.exists():
                logger.debug(f"Skipping missing cache path {source}")
                continue
            tar.add(str(source), arcname=rel)
            packed.append(rel)
    logger.debug(f"Packed {packed} from {root}")
    return buffer.getvalue()


def unpack_paths(root: Union[str, Path], payload: bytes) -> List[str]:
    """Extract a tarball produced by pack_paths under root"""
    root = Path(root)
    root.mkdir(parents=True, exist_ok=True)
    with tarfile.open(fileobj=io.BytesIO(payload), mode='r:gz') as tar:
        names = tar.getnames()
        if hasattr(tarfile, 'data_filter'):
            tar.extractall(str(root), filter='data')
        else:
            for member in tar.getmembers():
                target = (root / member.name).resolve()
                if root.resolve() not in target.parents and target != root.resolve():
                    raise ValueError(f"Refusing to extract {member.name} outside {root}")
            tar.extractall(str(root))
    return names
