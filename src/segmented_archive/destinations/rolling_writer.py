"""Size-bounded rolling output for archive streams."""

import glob
import logging
import os
import re
from pathlib import Path
from typing import BinaryIO, Callable, Optional, Union

logger = logging.getLogger(__name__)

PartListener = Callable[[Path], object]


class RollingWriter:
    """A file-like object that splits data across numbered part files.

    Without ``max_size`` everything is written straight to ``final_path``.
    With ``max_size`` data goes to ``<final_path>.part001``, ``.part002``, ...
    each holding at most ``max_size`` bytes. If only one part was ever needed
    it is renamed to ``final_path`` on close, so small archives never carry a
    ``.part001`` suffix. Output of an earlier build at the same path (the final
    file or any ``.partNNN``) is deleted before the first part is opened, so a
    finished build leaves either one file or one numbered set, never a mix.

    The listener, if set, is called with the path of every part once that part
    is complete (after the rename for a lone part). Exceptions raised by the
    listener propagate out of :meth:`write` or :meth:`close`.
    """

    def __init__(self, final_path: Union[str, Path], max_size: Optional[int] = None,
                 listener: Optional[PartListener] = None):
        """Initialize rolling writer and open the first part.

        Args:
            final_path: Path of the complete output file
            max_size: Maximum size per part in bytes, or None for a single file
            listener: Called with each finalized part path

        Raises:
            ValueError: If ``max_size`` is not at least 1
            OSError: If old output cannot be removed or the first part cannot be created
        """
        if max_size is not None and max_size < 1:
            raise ValueError(f"max_size must be at least 1 byte: {max_size}")

        self.final_path = Path(final_path)
        self.max_size = max_size
        self.listener = listener
        self.part_count = 0
        self.bytes_written = 0
        self.parts = []

        self._file: Optional[BinaryIO] = None
        self._current_path: Optional[Path] = None
        self._current_size = 0
        self._closed = False
        self._broken = False

        self._guarded(self._remove_stale_output)
        self._guarded(self._open_new_part)

    @property
    def closed(self) -> bool:
        return self._closed

    def set_listener(self, listener: Optional[PartListener]) -> None:
        """Set the callback invoked whenever a part is finalized."""
        self.listener = listener

    def writable(self) -> bool:
        return True

    def write(self, data) -> int:
        """Write bytes, rolling over to new parts as needed."""
        self._check_usable()
        view = memoryview(data).cast('B')
        total = len(view)
        offset = 0

        while offset < total:
            if self.max_size is not None and self._current_size >= self.max_size:
                self._guarded(self._open_new_part)

            remaining = total - offset
            if self.max_size is None:
                chunk_len = remaining
            else:
                chunk_len = min(self.max_size - self._current_size, remaining)

            self._guarded(self._file.write, view[offset:offset + chunk_len])
            self._current_size += chunk_len
            self.bytes_written += chunk_len
            offset += chunk_len

        return total

    def flush(self) -> None:
        if self._file is not None and not self._broken:
            self._guarded(self._file.flush)

    def close(self) -> None:
        """Finalize the last part (renaming a lone part to the final path)."""
        if self._closed:
            return
        self._check_usable()
        self._guarded(self._finalize_current, True)
        self._closed = True

    def abort(self) -> None:
        """Close without finalizing and remove the unfinished part.

        Parts already handed to the listener are left alone.
        """
        self._broken = True
        self._closed = True
        if self._file is not None:
            file, self._file = self._file, None
            try:
                file.close()
            except OSError as e:
                logger.warning(f"Failed to close aborted part {self._current_path}: {e}")
        if self._current_path is not None:
            try:
                self._current_path.unlink(missing_ok=True)
                logger.info(f"Removed unfinished part: {self._current_path}")
            except OSError as e:
                logger.warning(f"Failed to remove unfinished part {self._current_path}: {e}")

    def __enter__(self) -> "RollingWriter":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if exc_type is None:
            self.close()
        else:
            self.abort()

    # --- Private methods --- #

    def _remove_stale_output(self) -> None:
        """Delete the final file and numbered parts left by an earlier build."""
        pattern = re.compile(re.escape(self.final_path.name) + r"(\.part\d{3,})?")
        for path in self.final_path.parent.glob(f"{glob.escape(self.final_path.name)}*"):
            if pattern.fullmatch(path.name) and not path.is_dir():
                logger.info(f"Removing output of a previous build: {path}")
                path.unlink()

    def _check_usable(self) -> None:
        if self._broken:
            raise ValueError("RollingWriter failed earlier and cannot be used")
        if self._closed:
            raise ValueError("I/O operation on closed RollingWriter")

    def _guarded(self, func, *args):
        """Run an I/O step, marking the writer broken if it fails."""
        try:
            return func(*args)
        except BaseException:
            self._broken = True
            if self._file is not None:
                file, self._file = self._file, None
                try:
                    file.close()
                except OSError as e:
                    logger.debug(f"Failed to close {self._current_path} after error: {e}")
            raise

    def _open_new_part(self) -> None:
        self._finalize_current(False)

        if self.max_size is None:
            if self.part_count > 0:
                raise RuntimeError("RollingWriter cannot open a second part in single-file mode")
            filename = self.final_path
        else:
            filename = Path(f"{self.final_path}.part{self.part_count + 1:03d}")

        logger.info(f"Opening new file part: {filename}")
        self._file = open(filename, 'wb')
        self.part_count += 1
        self._current_path = filename
        self._current_size = 0

    def _finalize_current(self, is_final: bool) -> None:
        if self._file is None:
            return

        file, self._file = self._file, None
        file.flush()
        os.fsync(file.fileno())
        file.close()

        part_path = self._current_path
        if is_final and self.max_size is not None and self.part_count == 1:
            logger.info(f"Renaming single part file to {self.final_path}")
            os.replace(part_path, self.final_path)
            part_path = self.final_path
        self._current_path = None
        self.parts.append(part_path)

        if self.listener is not None:
            self.listener(part_path)
