"""Segment fingerprinting for change detection."""

import logging
import os
from pathlib import Path, PurePath
from typing import Optional, Sequence, Tuple

import xxhash

from ..exceptions import FingerprintError
from ..sources.segment_tree import (
    IgnoreMatcher,
    PathLike,
    is_filtered,
    normalize_path,
    scan_directory,
)

logger = logging.getLogger(__name__)

CHUNK_SIZE = 64 * 1024


def compute_segment_fingerprint(root: PathLike, exclusions: Sequence[Path] = (),
                                ignore_matcher: Optional[IgnoreMatcher] = None) -> str:
    """Compute the fingerprint of a segment tree.

    Every file (or symlink) contributes an xxh3-64 digest of its relative
    path followed by its content (or link target). Digests are combined with
    XOR, so the result does not depend on directory enumeration order, and
    since each digest covers its own path, identical files at different paths
    never cancel each other out.

    Args:
        root: Segment root directory
        exclusions: Nested segment paths to leave out
        ignore_matcher: Optional ignore globs

    Returns:
        16 lowercase hex characters

    Raises:
        FingerprintError: If the tree cannot be fully enumerated or read
    """
    root = normalize_path(root)
    combined, file_count = _hash_directory(root, root, exclusions, ignore_matcher)

    # An empty segment must not look like a degenerate all-zero result
    if file_count == 0:
        combined = xxhash.xxh3_64_intdigest(b"")

    logger.debug(f"Hashed {file_count} files under {root}")
    return f"{combined:016x}"


def _hash_directory(root: Path, current: Path, exclusions: Sequence[Path],
                    ignore_matcher: Optional[IgnoreMatcher]) -> Tuple[int, int]:
    """Return ``(combined_digest, file_count)`` for one subtree."""
    try:
        entries = scan_directory(current)
    except OSError as e:
        raise FingerprintError(f"Failed to list directory {current}: {e}", current) from e

    combined = 0
    file_count = 0
    for entry in entries:
        path = Path(entry.path)
        relative = path.relative_to(root)
        if is_filtered(path, relative, exclusions, ignore_matcher):
            continue

        try:
            is_link = entry.is_symlink()
            is_dir = entry.is_dir(follow_symlinks=False)
            is_file = entry.is_file(follow_symlinks=False)
        except OSError as e:
            raise FingerprintError(f"Failed to stat {path}: {e}", path) from e

        if is_dir:
            digest, count = _hash_directory(root, path, exclusions, ignore_matcher)
            combined ^= digest
            file_count += count
        elif is_link or is_file:
            combined ^= hash_file(path, relative, is_link)
            file_count += 1
        else:
            logger.warning(f"Skipping special file: {path}")

    return combined, file_count


def hash_file(path: Path, relative: PurePath, is_link: bool = False) -> int:
    """Hash a single file together with its relative path.

    Symlinks (broken ones included) are hashed by their link target string,
    never by the content they point at.

    Raises:
        FingerprintError: If the file or link cannot be read
    """
    hasher = xxhash.xxh3_64()
    hasher.update(os.fsencode(relative.as_posix()))

    try:
        if is_link:
            hasher.update(os.fsencode(os.readlink(path)))
        else:
            with open(path, 'rb') as f:
                for chunk in iter(lambda: f.read(CHUNK_SIZE), b""):
                    hasher.update(chunk)
    except OSError as e:
        raise FingerprintError(f"Failed to read file for hashing {path}: {e}", path) from e

    return hasher.intdigest()
