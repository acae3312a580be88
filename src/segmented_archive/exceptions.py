"""Error types raised by the segmented archive engine."""

from pathlib import Path
from typing import Optional, Union


class SegmentedArchiveError(Exception):
    """Base class for segmented archive errors.

    Every error carries the path it relates to (if any) so callers can log
    the failing segment, file or script without parsing the message.
    """

    def __init__(self, message: str, path: Optional[Union[str, Path]] = None):
        super().__init__(message)
        self.path = Path(path) if path is not None else None


class ConfigError(SegmentedArchiveError):
    """Configuration file is missing, unreadable or invalid."""


class PathError(SegmentedArchiveError):
    """A configured segment path does not exist."""


class FingerprintError(SegmentedArchiveError):
    """A segment tree could not be fully enumerated or read while hashing."""


class ArchiveError(SegmentedArchiveError):
    """Building, writing or restoring an archive failed."""


class ScriptError(SegmentedArchiveError):
    """An external script could not be started or exited fatally."""

    def __init__(self, message: str, path: Optional[Union[str, Path]] = None,
                 exit_code: Optional[int] = None):
        super().__init__(message, path)
        self.exit_code = exit_code


class StoreError(SegmentedArchiveError):
    """The fingerprint store could not be read or written."""
