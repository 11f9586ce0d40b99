"""
This module provides the console logger setup and the file-based run logs.

Console output goes through Loguru. In addition, two small file logs are kept
next to the outputs of a run:

- `ErrorLog`: a plain-text, append-only record of failed external commands.
- `SuccessLog`: a YAML list of completed conversions, one entry per output file.

Both are written synchronously; the toolkit never runs two writers at once.
"""

import sys
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional, Union

import yaml
from loguru import logger

from ..config.common import LOGGER_FORMAT, SUCCESS_LOG_YAML


def configure_logger(level: str = "INFO", log_file: Optional[Path] = None) -> None:
    """
    Replaces Loguru's default sink with the toolkit's console format.

    Args:
        level: Minimum level for the console sink.
        log_file: Optional file that receives everything from DEBUG upwards.
    """
    logger.remove()
    logger.add(sys.stderr, level=level, format=LOGGER_FORMAT)
    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        logger.add(log_file, level="DEBUG", format=LOGGER_FORMAT, encoding="utf-8")


class Log:
    """
    A base class for the file logs.

    Handles the log directory: if the given path is a directory, log files are
    created inside it; otherwise its parent is used. The directory is created
    if needed.
    """

    # A decorative separator line used in text-based logs for better readability.
    linesep_marker: str = "=" * 50

    def __init__(self, log_base_path: Path):
        self.log_file_path: Path
        if log_base_path.is_dir() or not log_base_path.suffix:
            self.log_dir: Path = log_base_path.resolve()
        else:
            self.log_dir = log_base_path.parent.resolve()
        self.log_dir.mkdir(parents=True, exist_ok=True)

    def write(self, log_content: Union[dict, list, str]):
        raise NotImplementedError("Subclasses must implement the write() method.")


class ErrorLog(Log):
    """
    Appends human-readable error messages to a text file.

    Each call to `write` adds a timestamped block closed by a separator, making the
    file a chronological record of failures.
    """

    DEFAULT_ERROR_FILENAME = "error.txt"

    def __init__(self, error_log_dir: Path, filename: str = DEFAULT_ERROR_FILENAME):
        super().__init__(error_log_dir)
        self.log_file_path = self.log_dir / filename

    def write(self, *error_messages: str):
        if not error_messages:
            return

        stamp = f"[{datetime.now().isoformat(timespec='seconds')}]"
        content_to_write = "\n".join((stamp, *error_messages, self.linesep_marker)) + "\n"
        try:
            with self.log_file_path.open("a", encoding="utf-8") as f:
                f.write(content_to_write)
        except OSError as e:
            # Fall back to the console so the message is not lost.
            logger.error(f"Failed to write to error log {self.log_file_path}: {e}")
            for msg in error_messages:
                logger.error(f"  - {msg}")


class SuccessLog(Log):
    """
    Structured YAML log of successful operations.

    The file always holds a YAML list. `write` reads the current list, appends
    the new entry with the next `index` and an `ended_datetime` stamp, and writes
    the whole list back.
    """

    def __init__(self, success_log_dir: Path, filename: str = SUCCESS_LOG_YAML):
        super().__init__(success_log_dir)
        self.log_file_path = self.log_dir / filename
        self.log_entries: List[Dict] = []

    def read(self) -> List[Dict]:
        if not self.log_file_path.is_file():
            return []
        try:
            with self.log_file_path.open("r", encoding="utf-8") as f:
                loaded_entries = yaml.safe_load(f)
        except (OSError, yaml.YAMLError) as e:
            logger.error(f"Error reading/parsing success log {self.log_file_path}: {e}. Starting a new log.")
            return []
        if loaded_entries is None:
            return []
        if not isinstance(loaded_entries, list):
            logger.warning(f"Success log {self.log_file_path} contained unexpected data. Starting a new log.")
            return []
        return loaded_entries

    def write(self, new_log_entry: dict):
        if not isinstance(new_log_entry, dict):
            logger.error("SuccessLog.write expects a dictionary as a log entry.")
            return

        self.log_entries = self.read()
        current_max_index = max(
            (entry.get("index", 0) for entry in self.log_entries if isinstance(entry, dict)),
            default=0,
        )
        entry = {"index": current_max_index + 1, **new_log_entry}
        entry.setdefault("ended_datetime", datetime.now().isoformat(timespec="seconds"))
        self.log_entries.append(entry)

        try:
            with self.log_file_path.open("w", encoding="utf-8") as f:
                yaml.dump(
                    self.log_entries,
                    f,
                    default_flow_style=False,
                    sort_keys=False,
                    allow_unicode=True,
                    indent=4,
                    width=220,
                )
        except OSError as e:
            logger.error(f"Failed to write to success log {self.log_file_path}: {e}")
