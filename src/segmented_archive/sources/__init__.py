"""Segment sources: exclusion resolution and ignore filtering."""

from .segment_tree import (
    IgnoreMatcher,
    build_ignore_matcher,
    get_exclusions,
    is_filtered,
    normalize_path,
)

__all__ = [
    "IgnoreMatcher",
    "build_ignore_matcher",
    "get_exclusions",
    "is_filtered",
    "normalize_path",
]
