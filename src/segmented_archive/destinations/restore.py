"""Restore segment archives to their original locations."""

import logging
import re
import shutil
import tarfile
from pathlib import Path
from typing import List, Union

from ..exceptions import ArchiveError
from ..sources.segment_tree import is_within, normalize_path
from .archive_builder import ARCHIVE_EXTENSION, PATH_FILE

logger = logging.getLogger(__name__)

_PART_SUFFIX = re.compile(r"\.part(\d+)$")


def _part_number(path: Path) -> int:
    match = _PART_SUFFIX.search(path.name)
    return int(match.group(1)) if match else -1


def combine_parts(directory: Union[str, Path], keep_parts: bool = False) -> List[Path]:
    """Join multi-part archives in ``directory`` back into single files.

    Every ``<name>.tar.gz.part001`` starts a group; all of its parts are
    appended in numeric order to ``<name>.tar.gz``.

    Args:
        directory: Directory holding the archive parts
        keep_parts: Leave the part files in place after joining

    Returns:
        Paths of the combined archives

    Raises:
        ArchiveError: If a part cannot be read or the output cannot be written
    """
    directory = Path(directory)
    combined = []

    for first_part in sorted(directory.glob(f"*{ARCHIVE_EXTENSION}.part001")):
        base_file = first_part.with_name(first_part.name[:-len(".part001")])
        parts = sorted(
            (p for p in directory.glob(f"{base_file.name}.part*") if _part_number(p) > 0),
            key=_part_number,
        )

        logger.info(f"Combining {len(parts)} files into {base_file}")
        try:
            with open(base_file, 'wb') as out:
                for part in parts:
                    with open(part, 'rb') as f:
                        shutil.copyfileobj(f, out)
                    logger.debug(f"Moved {part} >> {base_file}")
                    if not keep_parts:
                        part.unlink()
        except OSError as e:
            raise ArchiveError(f"Failed to combine parts into {base_file}: {e}", base_file) from e
        combined.append(base_file)

    return combined


def read_logical_path(tar: tarfile.TarFile, archive: Path) -> str:
    """Read the segment path stored in an open archive."""
    try:
        member = tar.getmember(PATH_FILE)
    except KeyError as e:
        raise ArchiveError(f"Path file ({PATH_FILE}) not found in archive: {archive}", archive) from e
    with tar.extractfile(member) as f:
        return f.read().decode('utf-8')


def restore_archive(archive: Union[str, Path], restore_root: Union[str, Path]) -> Path:
    """Extract one archive below ``restore_root`` at its recorded logical path.

    Args:
        archive: A complete (combined) ``.tar.gz`` archive
        restore_root: Root directory to restore under

    Returns:
        Directory the segment was restored into

    Raises:
        ArchiveError: If the archive is unreadable, lacks its path file or
            records a path that leads outside ``restore_root``
    """
    archive = Path(archive)
    restore_root = Path(restore_root)

    try:
        with tarfile.open(archive, 'r:gz') as tar:
            logical_path = read_logical_path(tar, archive)
            destination = restore_root / logical_path.lstrip('/')
            if not is_within(normalize_path(destination), normalize_path(restore_root)):
                raise ArchiveError(f"Archive path {logical_path!r} points outside {restore_root}", archive)
            logger.info(f"Restoring {archive} to {destination}")
            destination.mkdir(parents=True, exist_ok=True)

            members = [m for m in tar.getmembers() if m.name != PATH_FILE]
            tar.extractall(destination, members=members, filter='tar')
    except (OSError, tarfile.TarError, EOFError, UnicodeDecodeError) as e:
        raise ArchiveError(f"Failed to restore {archive}: {e}", archive) from e

    return destination


def restore_directory(directory: Union[str, Path], restore_root: Union[str, Path],
                      keep_parts: bool = False) -> List[Path]:
    """Combine parts and restore every archive found in ``directory``."""
    directory = Path(directory)
    combine_parts(directory, keep_parts=keep_parts)

    restored = []
    for archive in sorted(directory.glob(f"*{ARCHIVE_EXTENSION}")):
        restored.append(restore_archive(archive, restore_root))
    return restored
