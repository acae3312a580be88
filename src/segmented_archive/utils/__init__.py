"""Utility functions and helpers."""

from .logging import ContextualLogger, TimedOperation, setup_logging
from .scripts import ScriptHook, run_script

__all__ = ["setup_logging", "ContextualLogger", "TimedOperation", "ScriptHook", "run_script"]
