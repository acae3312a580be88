"""Persistence of segment fingerprints between runs."""

import logging
import os
import tempfile
from pathlib import Path
from typing import Dict, Mapping, Optional

from ..exceptions import StoreError

logger = logging.getLogger(__name__)


def read_fingerprint_file(store_path: Path) -> Dict[str, str]:
    """Read a ``name=value`` fingerprint file.

    Blank lines are ignored, lines without ``=`` are skipped with a warning and
    a repeated name keeps its last value. A missing file is an empty store.

    Args:
        store_path: Path to the fingerprint file

    Returns:
        Mapping of segment name to fingerprint

    Raises:
        StoreError: If the file exists but cannot be read
    """
    fingerprints: Dict[str, str] = {}

    if not store_path.exists():
        return fingerprints

    try:
        with open(store_path, 'r', encoding='utf-8') as f:
            lines = f.read().splitlines()
    except (OSError, UnicodeDecodeError) as e:
        raise StoreError(f"Failed to read fingerprint file {store_path}: {e}", store_path) from e

    for line_num, line in enumerate(lines, 1):
        line = line.strip()
        if not line:
            continue

        key, sep, value = line.partition('=')
        if not sep:
            logger.warning(f"Invalid line in fingerprint file (line {line_num}): {line}")
            continue

        key = key.strip()
        if key in fingerprints:
            logger.warning(f"Duplicate key '{key}' in fingerprint file (line {line_num}), keeping last value")
        fingerprints[key] = value.strip()

    return fingerprints


def write_fingerprint_file(store_path: Path, fingerprints: Mapping[str, str]) -> None:
    """Write fingerprints as ``name=value`` lines sorted by name.

    The file is written to a temporary sibling, synced to disk and then
    atomically moved into place; the directory is synced as well so the
    rename itself is durable.

    Raises:
        StoreError: If the file cannot be written
    """
    try:
        store_path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(prefix=f".{store_path.name}.", dir=store_path.parent)
        try:
            with os.fdopen(fd, 'w', encoding='utf-8') as f:
                for key in sorted(fingerprints):
                    f.write(f"{key}={fingerprints[key]}\n")
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_name, store_path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise
        _fsync_directory(store_path.parent)
    except OSError as e:
        raise StoreError(f"Failed to write fingerprint file {store_path}: {e}", store_path) from e


def _fsync_directory(directory: Path) -> None:
    """Flush a directory entry so a rename inside it survives a crash."""
    fd = os.open(directory, os.O_RDONLY)
    try:
        os.fsync(fd)
    finally:
        os.close(fd)


class FingerprintStore:
    """Fingerprint file bound to a path.

    A store without a path is a no-op: nothing is loaded and nothing is saved,
    so every run archives every segment.
    """

    def __init__(self, store_path: Optional[Path] = None):
        """Initialize fingerprint store.

        Args:
            store_path: Path to the fingerprint file (optional)
        """
        self.store_path = Path(store_path) if store_path else None

    def load(self) -> Dict[str, str]:
        """Load stored fingerprints, treating an unreadable file as empty."""
        if self.store_path is None:
            return {}
        try:
            fingerprints = read_fingerprint_file(self.store_path)
        except StoreError as e:
            logger.warning(f"{e} - treating as empty, all segments will be archived")
            return {}
        logger.info(f"Loaded {len(fingerprints)} fingerprints from {self.store_path}")
        return fingerprints

    def save(self, fingerprints: Mapping[str, str]) -> bool:
        """Persist fingerprints.

        Returns:
            True if the file was written (or there is no store), False on failure
        """
        if self.store_path is None:
            return True
        try:
            write_fingerprint_file(self.store_path, fingerprints)
        except StoreError as e:
            logger.info(f"New fingerprints (you can manually update the fingerprint file): {dict(fingerprints)}")
            logger.error(str(e))
            return False
        logger.info(f"Updated fingerprint file: {self.store_path}")
        return True
