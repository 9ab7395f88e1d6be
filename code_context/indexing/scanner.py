"""File collection and content hashing."""

import hashlib
import os
from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path

from ..indexer_logging import get_logger

logger = get_logger()


@dataclass(frozen=True)
class ScannedFile:
    """A source file read from disk with its content hash."""

    relative_path: str
    absolute_path: Path
    source: bytes
    hash: str


def compute_file_hash(content: bytes) -> str:
    """SHA-256 hex digest of file contents."""
    return hashlib.sha256(content).hexdigest()


def collect_files(
    root: Path,
    extensions: Iterable[str],
    exclude_dirs: Iterable[str] = (),
    max_file_size: int | None = None,
) -> list[str]:
    """Relative POSIX paths of indexable files under ``root``, sorted.

    Excluded directory names are pruned at any depth. Files larger than
    ``max_file_size`` bytes are skipped.
    """
    wanted = set(extensions)
    excluded = set(exclude_dirs)
    files = []

    for dirpath, dirnames, filenames in os.walk(root):
        dirnames[:] = sorted(d for d in dirnames if d not in excluded)
        for filename in filenames:
            path = Path(dirpath) / filename
            if path.suffix not in wanted or not path.is_file():
                continue
            if max_file_size is not None:
                size = path.stat().st_size
                if size > max_file_size:
                    logger.debug(f"Skipping {path}: {size} bytes exceeds {max_file_size}")
                    continue
            files.append(path.relative_to(root).as_posix())

    return sorted(files)


def read_file(root: Path, relative_path: str) -> ScannedFile:
    """Read one collected file and hash its bytes."""
    absolute_path = root / relative_path
    source = absolute_path.read_bytes()
    return ScannedFile(
        relative_path=relative_path,
        absolute_path=absolute_path,
        source=source,
        hash=compute_file_hash(source),
    )
