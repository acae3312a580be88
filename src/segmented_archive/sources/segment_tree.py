"""Segment tree filtering shared by fingerprinting and archiving.

Both the fingerprint engine and the archive builder walk a segment with the
helpers in this module. Keeping the filtering in one place is what keeps the
two walks from diverging: a path hidden from one must be hidden from the other.
"""

import fnmatch
import logging
import os
import re
from pathlib import Path, PurePath
from typing import Iterable, List, Optional, Sequence, Union

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


def normalize_path(path: PathLike) -> Path:
    """Return an absolute, normalized path without resolving symlinks."""
    return Path(os.path.abspath(os.fspath(path)))


def is_within(path: Path, parent: Path) -> bool:
    """Component-wise prefix test (``/data/sub`` is within ``/data``, ``/database`` is not)."""
    return path == parent or parent in path.parents


def get_exclusions(all_paths: Iterable[PathLike], path: PathLike) -> List[Path]:
    """Return the configured segment paths nested under ``path``.

    Args:
        all_paths: Paths of every configured segment (may include ``path``)
        path: Path of the segment being processed

    Returns:
        Normalized paths of the other segments that live strictly below
        ``path``. The segment itself is never part of its own exclusions.
    """
    current = normalize_path(path)
    exclusions = []
    for other in {normalize_path(p) for p in all_paths}:
        if other != current and is_within(other, current):
            exclusions.append(other)
    return sorted(exclusions)


class IgnoreMatcher:
    """Compiled set of shell-style ignore globs.

    Patterns use :mod:`fnmatch` syntax; ``*`` also matches ``/``. An entry is
    ignored when any pattern matches its absolute path, its path relative to
    the segment root, or its bare name.
    """

    def __init__(self, patterns: Sequence[str]):
        self.patterns = list(patterns)
        combined = "|".join(f"(?:{fnmatch.translate(p)})" for p in self.patterns)
        self._regex = re.compile(combined) if combined else None

    def matches(self, path: PathLike, relative: Optional[PurePath] = None) -> bool:
        if self._regex is None:
            return False
        candidates = [Path(path).as_posix(), Path(path).name]
        if relative is not None:
            candidates.append(relative.as_posix())
        return any(self._regex.match(candidate) for candidate in candidates)

    def __repr__(self) -> str:
        return f"IgnoreMatcher({self.patterns!r})"


def build_ignore_matcher(patterns: Optional[Sequence[str]]) -> Optional[IgnoreMatcher]:
    """Build an :class:`IgnoreMatcher`, or ``None`` when there is nothing to ignore."""
    if not patterns:
        return None
    return IgnoreMatcher(patterns)


def is_filtered(path: Path, relative: PurePath, exclusions: Sequence[Path],
                ignore_matcher: Optional[IgnoreMatcher]) -> bool:
    """Check whether an entry is hidden from both hashing and archiving.

    Args:
        path: Absolute path of the entry
        relative: Entry path relative to the segment root
        exclusions: Nested segment paths (see :func:`get_exclusions`)
        ignore_matcher: Optional ignore globs

    Returns:
        True if the entry (and everything below it) must be skipped
    """
    if any(is_within(path, excluded) for excluded in exclusions):
        logger.debug(f"Skipping excluded path recursively: {path}")
        return True
    if ignore_matcher is not None and ignore_matcher.matches(path, relative):
        logger.debug(f"Skipping ignored path: {path}")
        return True
    return False


def scan_directory(directory: Path) -> List[os.DirEntry]:
    """List a directory's entries sorted by name.

    Raises:
        OSError: If the directory cannot be listed
    """
    with os.scandir(directory) as it:
        return sorted(it, key=lambda entry: entry.name)
