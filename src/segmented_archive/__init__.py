"""
Segmented Archive

Incremental, segment-based backup tool. Each configured directory is
fingerprinted on every run and packed into a (optionally split) tar.gz archive
only when its content changed since the last run.
"""

__version__ = "1.0.0"
__author__ = "Segmented Archive"
__description__ = "Incremental segment-based tar.gz backups with change detection"

from .config.settings import BackupConfig
from .sync.backup_manager import BackupManager

__all__ = ["BackupConfig", "BackupManager"]
