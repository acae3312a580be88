"""Logging configuration and utilities."""

import logging
import logging.handlers
import time
from datetime import datetime
from pathlib import Path
from typing import Optional

LOGGER_NAME = "segmented_archive"


def setup_logging(
    log_level: str = "INFO",
    log_file: Optional[Path] = None,
    log_to_console: bool = True,
    max_file_size: int = 10 * 1024 * 1024,  # 10MB
    backup_count: int = 5
) -> logging.Logger:
    """Setup logging configuration.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Path to log file (optional)
        log_to_console: Whether to log to console
        max_file_size: Maximum size of log file before rotation
        backup_count: Number of backup files to keep

    Returns:
        Configured logger
    """
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(logging.DEBUG if log_file else getattr(logging, log_level.upper()))

    # Clear existing handlers
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )

    if log_to_console:
        console_handler = logging.StreamHandler()
        console_handler.setLevel(getattr(logging, log_level.upper()))
        console_handler.setFormatter(formatter)
        logger.addHandler(console_handler)

    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.handlers.RotatingFileHandler(
            log_file,
            maxBytes=max_file_size,
            backupCount=backup_count,
            encoding='utf-8'
        )
        file_handler.setLevel(logging.DEBUG)  # Always log everything to file
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)
        logger.info(f"Saving log to file: {log_file}")

    return logger


class ContextualLogger(logging.LoggerAdapter):
    """Logger adapter that tags every message with the segment being processed.

    Messages come out as ``[segment=home] ...`` (extra context keys follow the
    segment, e.g. ``[segment=home | part=2]``).
    """

    def __init__(self, logger: logging.Logger, segment: str, **context):
        super().__init__(logger, {'segment': segment, **context})
        self.segment = segment

    def process(self, msg, kwargs):
        context_str = " | ".join(f"{k}={v}" for k, v in self.extra.items())
        return f"[{context_str}] {msg}", kwargs


class TimedOperation:
    """Context manager that logs the start, end and duration of a step.

    The measured time is kept in ``duration`` (seconds) so callers can report
    it, e.g. in the per-segment results table.
    """

    def __init__(self, logger, operation_name: str, log_level: str = "INFO"):
        """Initialize timed operation.

        Args:
            logger: Logger (or ContextualLogger) to use
            operation_name: Name of the operation
            log_level: Log level for timing messages
        """
        self.logger = logger
        self.operation_name = operation_name
        self.log_level = getattr(logging, log_level.upper())
        self.started_at: Optional[datetime] = None
        self.duration = 0.0
        self._start = 0.0

    def __enter__(self):
        self.started_at = datetime.now()
        self._start = time.monotonic()
        self.logger.log(self.log_level, f"Starting {self.operation_name}")
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.duration = time.monotonic() - self._start
        if exc_type is None:
            self.logger.log(self.log_level, f"Completed {self.operation_name} in {self.duration:.2f}s")
        else:
            self.logger.error(f"Failed {self.operation_name} after {self.duration:.2f}s: {exc_val}")
