"""
This module contains helper functions for formatting data into human-readable strings.
These functions are used throughout the toolkit, particularly in logging, to
present information like durations and file sizes in a clear and consistent way.
It also parses the size arguments accepted on the command line ("100MB", "1.5G").
"""

import re
from datetime import timedelta
from typing import Union

_SIZE_UNITS = {
    "": 1,
    "B": 1,
    "K": 1024,
    "KB": 1024,
    "M": 1024 ** 2,
    "MB": 1024 ** 2,
    "G": 1024 ** 3,
    "GB": 1024 ** 3,
    "T": 1024 ** 4,
    "TB": 1024 ** 4,
}
_SIZE_PATTERN = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*([A-Za-z]*)\s*$")


def format_timedelta(td_object: timedelta) -> str:
    """
    Formats a timedelta object into a "HH:MM:SS" string.

    Args:
        td_object: The timedelta object to format.

    Returns:
        A string representing the timedelta in HH:MM:SS format.
        For example, a timedelta of 7261 seconds becomes "02:01:01".
        Returns "00:00:00" if the input is not a valid timedelta object.
    """
    if not isinstance(td_object, timedelta):
        return "00:00:00"

    total_seconds = int(td_object.total_seconds())
    hours, remainder = divmod(total_seconds, 3600)
    minutes, seconds = divmod(remainder, 60)
    return f"{hours:02}:{minutes:02}:{seconds:02}"


def formatted_size(size_bytes: Union[int, float]) -> str:
    """
    Converts a size in bytes to a human-readable string (e.g., B, KB, MB, GB, TB).

    Args:
        size_bytes: The size of the file in bytes.

    Returns:
        A formatted string with the appropriate unit.
        For example, 1536 becomes "1.50 KB", and 2097152 becomes "2 MB".
    """
    if size_bytes < 0:
        size_bytes = 0

    units = ["B", "KB", "MB", "GB", "TB", "PB"]
    factor = 1024.0

    if size_bytes == 0:
        return "0 B"

    for unit in units:
        if size_bytes < factor:
            if unit == "B":
                return f"{int(size_bytes)} {unit}"
            # Clean up ".00" for whole numbers (e.g., "2.00 MB" -> "2 MB").
            return f"{size_bytes:.2f} {unit}".replace(".00", "")
        size_bytes /= factor

    return f"{size_bytes:.2f} {units[-1]}".replace(".00", "")


def parse_size(value: Union[int, str]) -> int:
    """
    Parses a size such as "150MB", "1.5G" or "1048576" into bytes.

    Units are binary (1 KB = 1024 bytes) and case-insensitive. A plain number is
    taken as bytes.

    Raises:
        ValueError: If the value is negative or not a recognised size.
    """
    if isinstance(value, int) and not isinstance(value, bool):
        if value < 0:
            raise ValueError(f"Size cannot be negative: {value}")
        return value
    match = _SIZE_PATTERN.match(str(value))
    if not match:
        raise ValueError(f"Invalid size: {value!r}")
    number, unit = match.groups()
    unit = unit.upper()
    if unit not in _SIZE_UNITS:
        raise ValueError(f"Unknown size unit {unit!r} in {value!r}")
    return int(float(number) * _SIZE_UNITS[unit])
