"""Segment archive creation (tar + gzip through a rolling writer)."""

import logging
import tarfile
import time
import zlib
from dataclasses import dataclass, field
from io import BytesIO
from pathlib import Path, PurePath
from typing import List, Optional, Sequence

from ..exceptions import ArchiveError, SegmentedArchiveError
from ..sources.segment_tree import (
    IgnoreMatcher,
    PathLike,
    is_filtered,
    is_within,
    normalize_path,
    scan_directory,
)
from .rolling_writer import PartListener, RollingWriter

logger = logging.getLogger(__name__)

PATH_FILE = ".seg_arc.path"
ARCHIVE_EXTENSION = ".tar.gz"
DEFAULT_COMPRESSION_LEVEL = 6


@dataclass
class ArchiveStats:
    """Summary of one archive build."""
    files: int = 0
    symlinks: int = 0
    directories: int = 0
    content_bytes: int = 0
    parts: List[Path] = field(default_factory=list)

    @property
    def entries(self) -> int:
        return self.files + self.symlinks + self.directories


class GzipWriter:
    """Write-only gzip stream on top of another binary writer.

    ``tell`` reports the uncompressed offset, which is all ``tarfile`` needs.
    Closing writes the gzip trailer but leaves the underlying writer open.
    """

    def __init__(self, sink, level: int = DEFAULT_COMPRESSION_LEVEL):
        self.sink = sink
        self._compressor = zlib.compressobj(level, zlib.DEFLATED, 31)
        self._offset = 0

    def write(self, data) -> int:
        size = len(data)
        self._offset += size
        compressed = self._compressor.compress(data)
        if compressed:
            self.sink.write(compressed)
        return size

    def tell(self) -> int:
        return self._offset

    def close(self) -> None:
        if self._compressor is None:
            return
        compressor, self._compressor = self._compressor, None
        self.sink.write(compressor.flush())


def archive_name(segment_name: str) -> str:
    """File name of a segment's archive (``<name>.tar.gz``)."""
    return f"{segment_name}{ARCHIVE_EXTENSION}"


def get_logical_path(source_root: PathLike, root_path: Optional[PathLike] = None) -> str:
    """Return the path recorded inside the archive for ``source_root``.

    Args:
        source_root: Segment directory
        root_path: Optional prefix to strip from it

    Raises:
        ArchiveError: If ``source_root`` is not below ``root_path``
    """
    source_root = normalize_path(source_root)
    if root_path is None:
        return source_root.as_posix()

    root_path = normalize_path(root_path)
    if not is_within(source_root, root_path):
        raise ArchiveError(f"Invalid root path {root_path} for segment {source_root}", source_root)
    relative = source_root.relative_to(root_path)
    return "" if relative == PurePath(".") else relative.as_posix()


def build_archive(source_root: PathLike, output_path: PathLike,
                  root_path: Optional[PathLike] = None,
                  exclusions: Sequence[Path] = (),
                  ignore_matcher: Optional[IgnoreMatcher] = None,
                  compression_level: Optional[int] = None,
                  max_size: Optional[int] = None,
                  post_part_hook: Optional[PartListener] = None) -> ArchiveStats:
    """Archive a segment directory into ``output_path``.

    The archive starts with a ``.seg_arc.path`` entry holding the segment's
    logical path, followed by every file, symlink and empty directory that
    survives exclusion and ignore filtering. Paths are relative to
    ``source_root``.

    Args:
        source_root: Segment directory to archive
        output_path: Final archive path (parts get ``.partNNN`` appended)
        root_path: Optional prefix stripped from the recorded logical path
        exclusions: Nested segment paths to leave out
        ignore_matcher: Optional ignore globs
        compression_level: gzip level 0-9 (default 6)
        max_size: Maximum bytes per output part, or None for a single file
        post_part_hook: Called with each finished part path

    Returns:
        Statistics about the written archive

    Raises:
        ArchiveError: On any failure; the archive must then be treated as invalid
    """
    level = DEFAULT_COMPRESSION_LEVEL if compression_level is None else compression_level
    if not 0 <= level <= 9:
        raise ArchiveError(f"Compression level must be between 0 and 9: {level}", output_path)

    source_root = normalize_path(source_root)
    logical_path = get_logical_path(source_root, root_path)

    try:
        sink = RollingWriter(output_path, max_size, post_part_hook)
    except (OSError, ValueError, SegmentedArchiveError) as e:
        raise ArchiveError(f"Failed to open archive output {output_path}: {e}", output_path) from e

    stats = ArchiveStats()
    try:
        compressor = GzipWriter(sink, level)
        tar = tarfile.open(fileobj=compressor, mode='w', format=tarfile.GNU_FORMAT)
        _add_path_file(tar, logical_path)
        _append_dir_contents(tar, source_root, source_root, exclusions, ignore_matcher, stats)

        tar.close()
        compressor.close()
        sink.close()
    except (OSError, ValueError, tarfile.TarError, SegmentedArchiveError) as e:
        sink.abort()
        raise ArchiveError(f"Failed to archive {source_root}: {e}", source_root) from e

    stats.parts = list(sink.parts)
    logger.info(f"Archived {stats.entries} entries ({stats.content_bytes} bytes) "
                f"from {source_root} into {len(stats.parts)} part(s)")
    return stats


def _add_path_file(tar: tarfile.TarFile, logical_path: str) -> None:
    data = logical_path.encode('utf-8')
    info = tarfile.TarInfo(PATH_FILE)
    info.size = len(data)
    info.mode = 0o644
    info.mtime = int(time.time())
    tar.addfile(info, BytesIO(data))


def _append_dir_contents(tar: tarfile.TarFile, base_dir: Path, current_dir: Path,
                         exclusions: Sequence[Path], ignore_matcher: Optional[IgnoreMatcher],
                         stats: ArchiveStats) -> int:
    """Recursively add a directory, returning how many entries it produced."""
    try:
        entries = scan_directory(current_dir)
    except OSError as e:
        raise ArchiveError(f"Failed to list directory {current_dir}: {e}", current_dir) from e

    emitted = 0
    for entry in entries:
        path = Path(entry.path)
        relative = path.relative_to(base_dir)
        if is_filtered(path, relative, exclusions, ignore_matcher):
            continue

        if entry.is_dir(follow_symlinks=False):
            emitted += _append_dir_contents(tar, base_dir, path, exclusions, ignore_matcher, stats)
        elif entry.is_symlink() or entry.is_file(follow_symlinks=False):
            _append_entry(tar, path, relative, stats)
            emitted += 1
        else:
            logger.warning(f"Skipping special file: {path}")

    # Keep empty directories; the segment root itself is implied
    if emitted == 0 and current_dir != base_dir:
        relative = current_dir.relative_to(base_dir)
        info = tar.gettarinfo(str(current_dir), arcname=relative.as_posix())
        tar.addfile(info)
        stats.directories += 1
        emitted = 1

    return emitted


def _append_entry(tar: tarfile.TarFile, path: Path, relative: PurePath, stats: ArchiveStats) -> None:
    info = tar.gettarinfo(str(path), arcname=relative.as_posix())

    if info.issym():
        tar.addfile(info)
        stats.symlinks += 1
        return

    with open(path, 'rb') as f:
        tar.addfile(info, f)
    stats.files += 1
    stats.content_bytes += info.size
