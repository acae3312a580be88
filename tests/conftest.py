"""Shared fixtures for the segmented archive tests."""

import logging
import stat
import sys
import tarfile
from pathlib import Path

import pytest

# Add src to Python path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))


def write_tree(root: Path, files: dict) -> Path:
    """Create ``{relative_path: content}`` below ``root``.

    A content of ``None`` creates an empty directory.
    """
    root.mkdir(parents=True, exist_ok=True)
    for relative, content in files.items():
        path = root / relative
        if content is None:
            path.mkdir(parents=True, exist_ok=True)
            continue
        path.parent.mkdir(parents=True, exist_ok=True)
        if isinstance(content, bytes):
            path.write_bytes(content)
        else:
            path.write_text(content, encoding='utf-8')
    return root


def write_script(path: Path, body: str) -> Path:
    """Write an executable shell script."""
    path.write_text(f"#!/bin/sh\n{body}\n", encoding='utf-8')
    path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return path


def archive_members(archive: Path) -> dict:
    """Map member names of a tar.gz archive to their TarInfo."""
    with tarfile.open(archive, 'r:gz') as tar:
        return {member.name: member for member in tar.getmembers()}


def read_member(archive: Path, name: str) -> bytes:
    with tarfile.open(archive, 'r:gz') as tar:
        with tar.extractfile(name) as f:
            return f.read()


@pytest.fixture
def segment_dir(tmp_path):
    """A small segment with files in nested directories."""
    return write_tree(tmp_path / "data", {
        "x.txt": "A",
        "y.txt": "B",
        "sub/z.txt": "C",
        "sub/deeper/w.bin": b"\x00\x01\x02",
    })


@pytest.fixture
def recording_script(tmp_path):
    """Script that appends its argument to a log file and exits with 0."""
    log = tmp_path / "script_calls.log"
    script = write_script(tmp_path / "record.sh", f'echo "$1" >> "{log}"\nexit 0')
    return script, log


@pytest.fixture(autouse=True)
def reset_logging():
    """Drop handlers installed by setup_logging between tests."""
    yield
    logger = logging.getLogger("segmented_archive")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.setLevel(logging.NOTSET)
