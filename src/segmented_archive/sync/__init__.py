"""Sync engine: fingerprinting, fingerprint persistence and backup orchestration."""

from .backup_manager import BackupManager, BackupReport, SegmentResult, SegmentStatus
from .fingerprint import compute_segment_fingerprint
from .fingerprint_store import FingerprintStore, read_fingerprint_file, write_fingerprint_file

__all__ = [
    "BackupManager",
    "BackupReport",
    "SegmentResult",
    "SegmentStatus",
    "FingerprintStore",
    "compute_segment_fingerprint",
    "read_fingerprint_file",
    "write_fingerprint_file",
]
