"""
This module provides the Tools class to locate and verify the external programs
the toolkit drives: FFmpeg, FFprobe, HandBrakeCLI, MKVToolNix, git and gh.
"""
import sys
from pathlib import Path
from typing import Dict, Iterable, List, Optional

from loguru import logger

from .process import run_cmd

# Executable name -> the argument that makes it print its version.
KNOWN_TOOLS: Dict[str, str] = {
    "ffmpeg": "-version",
    "ffprobe": "-version",
    "HandBrakeCLI": "--version",
    "mkvextract": "--version",
    "mkvmerge": "--version",
    "git": "--version",
    "gh": "--version",
}


class Tools:
    """
    Resolves executables from the configured `tools_dir`, falling back to PATH.

    The CLI creates one from the user config and passes it to the pipeline
    and to the services that need an executable path.
    """

    def __init__(self, tools_dir: Optional[Path] = None):
        self.tools_dir = tools_dir

    def path(self, name: str) -> str:
        """
        Determines the executable to run for `name`.

        The configured `tools_dir` wins when it holds the executable (".exe" is
        appended on Windows). Otherwise the bare name is returned so the system
        PATH is searched when the command runs.

        Returns:
            An absolute path or the bare command name.
        """
        exe_name = f"{name}.exe" if sys.platform == "win32" else name

        if self.tools_dir and self.tools_dir.is_dir():
            configured_path = self.tools_dir / exe_name
            if configured_path.is_file():
                logger.trace(f"Using {name} from configured path: '{configured_path}'")
                return str(configured_path)
            logger.debug(f"'{exe_name}' not found in '{self.tools_dir}'. Falling back to system PATH.")

        return name

    def verify(self, names: Iterable[str] = KNOWN_TOOLS) -> List[str]:
        """
        Runs each tool's version command and logs the first output line.

        Args:
            names: Tools to check. Unknown names are checked with "--version".

        Returns:
            The names of the tools that could not be run.
        """
        missing = []
        for name in names:
            version_flag = KNOWN_TOOLS.get(name, "--version")
            result = run_cmd([self.path(name), version_flag])
            if result.succeeded:
                output_lines = (result.stdout or result.stderr).splitlines()
                first_line = output_lines[0] if output_lines else ""
                logger.info(f"{name} version check successful: {first_line}")
            else:
                logger.error(
                    f"{name} could not be run (exit code {result.exit_code}). Add it to your PATH or "
                    f"set 'paths.tools_dir' in config.user.yaml."
                )
                missing.append(name)
        return missing
