"""Main backup manager orchestrating the per-segment backup process."""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

from ..config.settings import BackupConfig
from ..destinations.archive_builder import build_archive
from ..exceptions import ArchiveError, FingerprintError, PathError, SegmentedArchiveError
from ..sources.segment_tree import build_ignore_matcher, get_exclusions, normalize_path
from ..utils.logging import ContextualLogger, TimedOperation
from ..utils.scripts import ScriptHook
from .fingerprint import compute_segment_fingerprint
from .fingerprint_store import FingerprintStore

# Module logger
logger = logging.getLogger(__name__)


class SegmentStatus(str, Enum):
    """Outcome of processing one segment."""
    ARCHIVED = "archived"
    SKIPPED = "skipped"
    MISSING = "missing"
    FAILED = "failed"
    PENDING = "pending"  # Dry run: would be archived


@dataclass
class SegmentResult:
    """Result of processing a single segment."""
    name: str
    path: Path
    status: SegmentStatus
    fingerprint: Optional[str] = None
    fingerprint_error: Optional[str] = None
    archive_path: Optional[Path] = None
    parts: List[Path] = field(default_factory=list)
    duration: float = 0.0
    error: Optional[str] = None

    def apply(self, fingerprints: Mapping[str, str]) -> Dict[str, str]:
        """Return a copy of ``fingerprints`` updated with this result.

        A segment that could not be hashed loses its stored fingerprint, so it
        is archived again on every run until hashing succeeds. A successfully
        archived segment stores its new fingerprint. Anything else leaves the
        mapping untouched.
        """
        updated = dict(fingerprints)
        if self.fingerprint_error is not None:
            updated.pop(self.name, None)
        elif self.status == SegmentStatus.ARCHIVED and self.fingerprint is not None:
            updated[self.name] = self.fingerprint
        return updated


@dataclass
class BackupReport:
    """Results of a whole backup run."""
    results: List[SegmentResult] = field(default_factory=list)
    fingerprints: Dict[str, str] = field(default_factory=dict)
    aborted: bool = False
    error: Optional[str] = None

    def count(self, status: SegmentStatus) -> int:
        return len([r for r in self.results if r.status == status])

    def get_summary(self) -> Dict[str, Any]:
        """Generate summary of backup results."""
        return {
            'total_segments': len(self.results),
            'archived': self.count(SegmentStatus.ARCHIVED),
            'skipped': self.count(SegmentStatus.SKIPPED),
            'missing': self.count(SegmentStatus.MISSING),
            'failed': self.count(SegmentStatus.FAILED),
            'pending': self.count(SegmentStatus.PENDING),
            'total_parts': sum(len(r.parts) for r in self.results),
            'aborted': self.aborted,
            'backup_time': datetime.now().isoformat()
        }


class BackupManager:
    """Main backup manager that decides, per segment, whether to archive."""

    def __init__(self, config: BackupConfig, store: Optional[FingerprintStore] = None):
        """Initialize backup manager.

        Args:
            config: Backup configuration
            store: Fingerprint store (defaults to the configured fingerprint file)
        """
        self.config = config
        self.store = store if store is not None else FingerprintStore(config.fingerprint_file)
        self.ignore_matcher = build_ignore_matcher(config.ignore)
        self.all_paths = [normalize_path(p) for p in config.segments.values()]

        self.pre_hook = ScriptHook(config.pre_script, "pre-script") if config.pre_script else None
        self.post_hook = ScriptHook(config.post_script, "post-script") if config.post_script else None
        self.skip_hook = ScriptHook(config.skip_script, "skip-script") if config.skip_script else None

    def run(self, fingerprints: Optional[Mapping[str, str]] = None, dry_run: bool = False) -> BackupReport:
        """Process every configured segment in order.

        Args:
            fingerprints: Previously stored fingerprints (loaded from the store if None)
            dry_run: Only report what would be archived

        Returns:
            Report of all processed segments. ``aborted`` is set when a fatal
            error stopped the run; segments processed before it stay valid.

        Raises:
            ConfigError: If the output directory cannot be prepared
        """
        current = dict(self.store.load() if fingerprints is None else fingerprints)
        if not dry_run:
            self.config.prepare_output_path()

        report = BackupReport()
        logger.info(f"Processing {len(self.config.segments)} segments")

        for name, path in self.config.segments.items():
            logger.info(f"--- Processing segment: {name} at {path} ---")
            try:
                result = self.backup_segment(name, path, current, dry_run=dry_run)
            except SegmentedArchiveError as e:
                logger.error(f"Failed on segment '{name}': {e}")
                report.results.append(SegmentResult(name, Path(path), SegmentStatus.FAILED, error=str(e)))
                report.aborted = True
                report.error = f"Failed on segment '{name}': {e}"
                break

            report.results.append(result)
            current = result.apply(current)
            if result.status == SegmentStatus.ARCHIVED:
                self.store.save(current)

        report.fingerprints = current
        if report.aborted:
            logger.error("Backup process aborted.")
        else:
            logger.info("Backup process finished.")
        return report

    def backup_segment(self, name: str, path, fingerprints: Mapping[str, str],
                       dry_run: bool = False) -> SegmentResult:
        """Fingerprint a segment and archive it if it changed.

        Args:
            name: Segment name
            path: Segment source directory
            fingerprints: Stored fingerprints from previous runs (not modified)
            dry_run: Skip scripts and archive creation

        Returns:
            The segment result; apply it to the fingerprint mapping with
            :meth:`SegmentResult.apply`

        Raises:
            ArchiveError: If archiving fails and failures are not configured to continue
            FingerprintError: If hashing fails and failures are configured fatal
            ScriptError: If the pre- or skip-script fails fatally
        """
        seg_logger = ContextualLogger(logger, name)
        path = normalize_path(path)

        if not path.exists():
            error = PathError(f"Path not found, skipping: {path}", path)
            seg_logger.error(str(error))
            return SegmentResult(name, path, SegmentStatus.MISSING, error=str(error))

        archive_path = self.config.archive_path(name)
        exclusions = get_exclusions(self.all_paths, path)
        for excluded in exclusions:
            seg_logger.debug(f"Excluding nested segment: {excluded}")

        fingerprint = None
        fingerprint_error = None
        try:
            fingerprint = compute_segment_fingerprint(path, exclusions, self.ignore_matcher)
        except FingerprintError as e:
            seg_logger.error(f"Failed to compute fingerprint: {e}")
            if self.config.fail_on_fingerprint_error:
                raise
            seg_logger.info("Forcing backup due to fingerprint failure.")
            fingerprint_error = str(e)
        else:
            if fingerprints.get(name) == fingerprint:
                seg_logger.info("Segment has not changed, skipping")
                if self.skip_hook is not None and not dry_run:
                    self.skip_hook(archive_path)
                return SegmentResult(name, path, SegmentStatus.SKIPPED, fingerprint=fingerprint,
                                     archive_path=archive_path)
            seg_logger.info(f"Computed new fingerprint: {fingerprint}")

        if dry_run:
            return SegmentResult(name, path, SegmentStatus.PENDING, fingerprint=fingerprint,
                                 fingerprint_error=fingerprint_error, archive_path=archive_path)

        if self.pre_hook is not None:
            self.pre_hook(archive_path)

        try:
            with TimedOperation(seg_logger, f"archive of {path}") as timer:
                stats = build_archive(
                    path,
                    archive_path,
                    root_path=self.config.root_path,
                    exclusions=exclusions,
                    ignore_matcher=self.ignore_matcher,
                    compression_level=self.config.compression_level,
                    max_size=self.config.max_size_bytes,
                    post_part_hook=self.post_hook,
                )
        except ArchiveError as e:
            if not self.config.continue_on_archive_error:
                raise
            seg_logger.error(f"Continuing after archive failure: {e}")
            return SegmentResult(name, path, SegmentStatus.FAILED, fingerprint_error=fingerprint_error,
                                 archive_path=archive_path, error=str(e))

        seg_logger.info(f"Successfully created archive: {archive_path}")
        return SegmentResult(name, path, SegmentStatus.ARCHIVED, fingerprint=fingerprint,
                             fingerprint_error=fingerprint_error, archive_path=archive_path,
                             parts=stats.parts, duration=timer.duration)
