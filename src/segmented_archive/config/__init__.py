"""Configuration management for the segmented archive application."""

from .settings import BackupConfig

__all__ = ["BackupConfig"]
