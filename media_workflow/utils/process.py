"""
This module runs external programs and manages temporary work directories.

`run_cmd` is the single place where the toolkit starts a subprocess. It is
synchronous: the caller blocks until the program exits. There is no timeout and
no retry. The result is returned as a `ProcessResult` with the exit code and the
two output streams kept apart.
"""

import os
import random
import shlex
import shutil
import string
import subprocess
import tempfile
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, List, Optional, Sequence, Union

from loguru import logger

from ..config.common import RANDOM_NAME_LENGTH, TEMP_DIR_PREFIX
from ..domain.exceptions import ExternalToolError
from ..services.logging_service import ErrorLog

# Exit status reported when the executable could not be started at all,
# matching the shell's "command not found".
COMMAND_NOT_FOUND_EXIT_CODE = 127
# Exit status for a program that exists but cannot be executed (permissions, bad format).
COMMAND_NOT_EXECUTABLE_EXIT_CODE = 126


@dataclass(frozen=True)
class ProcessResult:
    """
    The outcome of one external program run.

    Attributes:
        cmd: The executed argument list.
        exit_code: Process exit status (127 if the program was not found, 126 if it
            could not be executed).
        stdout: Captured standard output.
        stderr: Captured standard error.
    """

    cmd: List[str]
    exit_code: int
    stdout: str = ""
    stderr: str = ""

    @property
    def succeeded(self) -> bool:
        return self.exit_code == 0

    def __bool__(self) -> bool:
        return self.succeeded

    def check(self) -> "ProcessResult":
        """Returns self, or raises `ExternalToolError` when the run failed."""
        if not self.succeeded:
            raise ExternalToolError(self.cmd, self.exit_code, self.stderr)
        return self


def format_cmd(cmd_list: Sequence[str]) -> str:
    """Quotes an argument list for display, using the platform's conventions."""
    if os.name == "nt":
        return subprocess.list2cmdline(list(cmd_list))
    return shlex.join(cmd_list)


def run_cmd(
    cmd_parts: Sequence[Union[str, Path]],
    show_cmd: bool = False,
    cmd_log_file_path: Optional[Path] = None,
    error_log_dir: Optional[Path] = None,
    cwd: Optional[Path] = None,
) -> ProcessResult:
    """
    Executes an external command and captures its output.

    Args:
        cmd_parts: The program and its arguments. `Path` items are converted to
                   strings. A list is always used, never a shell string.
        show_cmd: If True, the command is logged at INFO level before execution;
                  otherwise at DEBUG.
        cmd_log_file_path: If provided, the executed command line is appended to
                           this file.
        error_log_dir: If provided, failures are also recorded in an `ErrorLog`
                       in this directory.
        cwd: Working directory for the program.

    Returns:
        A `ProcessResult`. A nonzero `exit_code` means failure; stderr is kept
        for diagnostics.
    """
    cmd_list = [str(part) for part in cmd_parts]
    if not cmd_list:
        raise ValueError("run_cmd received an empty command list.")

    display_cmd_str = format_cmd(cmd_list)
    if show_cmd:
        logger.info(f"Executing: {display_cmd_str}")
    else:
        logger.debug(f"Executing: {display_cmd_str}")

    if cmd_log_file_path:
        try:
            cmd_log_file_path.parent.mkdir(parents=True, exist_ok=True)
            with cmd_log_file_path.open("a", encoding="utf-8") as cmd_f:
                cmd_f.write(display_cmd_str + "\n")
        except OSError as e:
            logger.error(f"Failed to write command to log file {cmd_log_file_path}: {e}")

    try:
        completed = subprocess.run(
            cmd_list,
            capture_output=True,
            text=True,
            encoding="utf-8",
            errors="replace",
            cwd=str(cwd) if cwd else None,
        )
        result = ProcessResult(cmd_list, completed.returncode, completed.stdout or "", completed.stderr or "")
    except FileNotFoundError:
        logger.error(
            f"Command not found: '{cmd_list[0]}'. Ensure it's on your PATH or set "
            f"'paths.tools_dir' in config.user.yaml."
        )
        result = ProcessResult(
            cmd_list, COMMAND_NOT_FOUND_EXIT_CODE, "", f"{cmd_list[0]}: command not found"
        )
    except OSError as e:
        logger.error(f"Could not run '{cmd_list[0]}': {e}")
        result = ProcessResult(cmd_list, COMMAND_NOT_EXECUTABLE_EXIT_CODE, "", f"{cmd_list[0]}: {e}")

    if result.stdout:
        logger.trace(f"Command stdout: {result.stdout[:500]}")
    if result.succeeded:
        if result.stderr:
            logger.trace(f"Command stderr (rc=0): {result.stderr[:500]}")
        return result

    logger.debug(f"Command stderr (rc={result.exit_code}): {result.stderr}")
    if error_log_dir:
        ErrorLog(error_log_dir).write(
            f"Command failed with exit code {result.exit_code}",
            f"Command: {display_cmd_str}",
            f"stderr: {result.stderr.strip()}",
        )
    return result


def generate_random_string(length: int = RANDOM_NAME_LENGTH) -> str:
    """Generates a random string of uppercase letters and digits."""
    return "".join(random.choices(string.ascii_uppercase + string.digits, k=length))


@contextmanager
def temporary_work_dir(prefix: str = TEMP_DIR_PREFIX, base_dir: Optional[Path] = None) -> Iterator[Path]:
    """
    Creates a randomly named work directory and removes it on exit.

    The directory is removed on every exit path, including exceptions raised in
    the `with` block.

    Args:
        prefix: Directory name prefix; a random suffix is appended.
        base_dir: Parent directory. Defaults to the system temp directory.

    Yields:
        The path of the new, empty directory.
    """
    if base_dir is not None:
        base_dir.mkdir(parents=True, exist_ok=True)
    work_dir = Path(
        tempfile.mkdtemp(prefix=f"{prefix}{generate_random_string()}_", dir=str(base_dir) if base_dir else None)
    )
    logger.debug(f"Created temporary work directory {work_dir}")
    try:
        yield work_dir
    finally:
        shutil.rmtree(work_dir, ignore_errors=True)
        logger.debug(f"Removed temporary work directory {work_dir}")
