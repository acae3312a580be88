"""External script execution.

Scripts receive a single argument (an archive or archive part path) and
report back through their exit code:

    0        success, continue
    1..127   failure, logged, continue
    128+     fatal, abort the calling operation (also: killed by signal)
"""

import logging
import subprocess
from pathlib import Path
from typing import Union

from ..exceptions import ScriptError

logger = logging.getLogger(__name__)

FATAL_EXIT_CODE = 128


def run_script(script_path: Union[str, Path], argument: Union[str, Path], label: str = "script") -> int:
    """Run an external script synchronously with one argument.

    Args:
        script_path: Executable to run
        argument: The single argument passed to it
        label: Name used in log messages (e.g. ``post-script``)

    Returns:
        The exit code (0 or a non-fatal 1..127)

    Raises:
        ScriptError: If the script cannot be started, exits with 128 or more,
            or is killed by a signal
    """
    logger.info(f"Executing {label}: {script_path} {argument}")

    try:
        completed = subprocess.run([str(script_path), str(argument)], check=False)
    except FileNotFoundError as e:
        raise ScriptError(f"{label} not found: {script_path}", script_path) from e
    except PermissionError as e:
        raise ScriptError(f"Permission denied executing {label}: {script_path}", script_path) from e
    except OSError as e:
        raise ScriptError(f"Failed to start {label} {script_path}: {e}", script_path) from e

    exit_code = completed.returncode
    if exit_code == 0:
        logger.info(f"{label} finished successfully.")
        return 0
    if exit_code < 0:
        raise ScriptError(f"{label} {script_path} was killed by signal {-exit_code}",
                          script_path, exit_code=FATAL_EXIT_CODE - exit_code)
    if exit_code < FATAL_EXIT_CODE:
        logger.warning(f"{label} finished with error (exit code {exit_code}), continuing")
        return exit_code
    raise ScriptError(f"{label} {script_path} failed fatally (exit code {exit_code})",
                      script_path, exit_code=exit_code)


class ScriptHook:
    """Script bound to a path, callable with the filename to report."""

    def __init__(self, script_path: Union[str, Path], label: str = "script"):
        self.script_path = Path(script_path)
        self.label = label

    def __call__(self, filename: Union[str, Path]) -> int:
        return run_script(self.script_path, filename, self.label)

    def __repr__(self) -> str:
        return f"ScriptHook({str(self.script_path)!r}, label={self.label!r})"
