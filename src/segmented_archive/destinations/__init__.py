"""Archive destinations: rolling part output, archive building and restore."""

from .archive_builder import ArchiveStats, archive_name, build_archive
from .restore import combine_parts, restore_archive, restore_directory
from .rolling_writer import RollingWriter

__all__ = [
    "ArchiveStats",
    "RollingWriter",
    "archive_name",
    "build_archive",
    "combine_parts",
    "restore_archive",
    "restore_directory",
]
