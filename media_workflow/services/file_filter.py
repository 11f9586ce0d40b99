"""
Provides services for discovering the video files a workflow should process.

This module contains the logic for the first step of every workflow, where the
toolkit scans one or more directories for candidate files. It is responsible for:
- Finding all subdirectories of a source tree, excluding the toolkit's own
  working folders (chapters, captions, converted, temporary directories).
- Matching file names against glob patterns, case-insensitively.
- Rejecting files that are not larger than a minimum size, so menus, trailers
  and other small DVD titles are left out.
"""

import fnmatch
from pathlib import Path
from typing import Iterable, List, Optional, Sequence, Set

from loguru import logger

from ..config.common import MINIMUM_FILE_SIZE
from ..config.video import DEFAULT_FILE_PATTERNS, EXCEPT_FOLDERS_KEYWORDS
from ..utils.format_utils import formatted_size


def contains_excluded_keywords(path_to_check: Path, exclude_keywords: Iterable[str]) -> bool:
    return any(keyword.lower() in path_to_check.as_posix().lower() for keyword in exclude_keywords)


def discover_directories(
    root: Path,
    recursive: bool = True,
    exclude_keywords: Sequence[str] = EXCEPT_FOLDERS_KEYWORDS,
) -> List[Path]:
    """
    Lists the directories to scan below `root`, including `root` itself.

    Directories whose path contains one of `exclude_keywords` are skipped, so
    output folders written by an earlier run are never picked up as input.

    Args:
        root: The source directory. A file path is resolved to its parent.
        recursive: Whether to descend into subdirectories.
        exclude_keywords: Case-insensitive substrings that exclude a directory.

    Returns:
        The directories sorted by path, or an empty list if `root` does not exist.
    """
    root = root.resolve()
    if not root.exists():
        logger.error(f"Input path does not exist: {root}")
        return []
    if root.is_file():
        root = root.parent

    # Keywords are only checked below the root, so a source tree that happens to
    # live under e.g. ".../converted/" can still be scanned on purpose.
    discovered_dirs: Set[Path] = {root}
    if recursive:
        for d_path in root.rglob("*"):
            if d_path.is_dir() and not contains_excluded_keywords(d_path.relative_to(root), exclude_keywords):
                discovered_dirs.add(d_path.resolve())
    logger.debug(f"Set {len(discovered_dirs)} directories to scan under {root}")
    return sorted(discovered_dirs)


def get_filtered_video_files(
    directories: Iterable[Path],
    patterns: Sequence[str] = DEFAULT_FILE_PATTERNS,
    minimum_size: int = MINIMUM_FILE_SIZE,
) -> List[Path]:
    """
    Selects the files that match a pattern and are larger than `minimum_size`.

    Patterns are evaluated in order. A file is judged by the first pattern it
    matches; once accepted or rejected it is never looked at again, so a file
    matching several patterns appears at most once. Missing directories are
    logged and skipped.

    Args:
        directories: Directories to scan (not recursively; see `discover_directories`).
        patterns: Glob patterns matched case-insensitively against file names.
        minimum_size: Files must be strictly larger than this many bytes.

    Returns:
        Matching files, grouped by pattern and sorted by path within each group.
        An empty list if none of the directories exists.
    """
    existing_dirs = []
    for directory in directories:
        if directory.is_dir():
            existing_dirs.append(directory)
        else:
            logger.warning(f"Skipping missing directory: {directory}")
    if not existing_dirs:
        logger.error("None of the given directories exist. No files to process.")
        return []

    candidates = sorted({p for d in existing_dirs for p in d.iterdir() if p.is_file()})
    judged: Set[Path] = set()
    selected: List[Path] = []

    for pattern in patterns:
        pattern_lower = pattern.lower()
        for file_path in candidates:
            if file_path in judged or not fnmatch.fnmatchcase(file_path.name.lower(), pattern_lower):
                continue
            judged.add(file_path)
            size = file_path.stat().st_size
            if size <= minimum_size:
                logger.debug(
                    f"Excluding {file_path.name}: {formatted_size(size)} is not larger than "
                    f"{formatted_size(minimum_size)}"
                )
                continue
            selected.append(file_path)

    for file_path in candidates:
        if file_path not in judged:
            logger.trace(f"Excluding {file_path.name}: no pattern matched")

    logger.info(
        f"Selected {len(selected)} of {len(candidates)} files in {len(existing_dirs)} directories "
        f"(patterns: {', '.join(patterns)}, minimum size: {formatted_size(minimum_size)})"
    )
    return selected


class VideoFileFilter:
    """
    Discovers and filters the video files under a source path.

    Combines `discover_directories` and `get_filtered_video_files`: the
    directories are scanned once at construction, and `files` holds the result.

    Attributes:
        source_dir (Path | None): The root directory, or None if the path was invalid.
        dirs (List[Path]): Directories that were scanned.
        files (List[Path]): The selected video files.
    """

    def __init__(
        self,
        path: Path,
        patterns: Sequence[str] = DEFAULT_FILE_PATTERNS,
        minimum_size: int = MINIMUM_FILE_SIZE,
        recursive: bool = False,
        exclude_keywords: Sequence[str] = EXCEPT_FOLDERS_KEYWORDS,
    ):
        self.patterns = tuple(patterns)
        self.minimum_size = minimum_size
        self.source_dir: Optional[Path] = self._get_source_directory_from_path(path)
        self.dirs: List[Path] = []
        self.files: List[Path] = []

        if self.source_dir is None:
            logger.warning(f"No valid source file/directory found for path: {path}. Processing will be skipped.")
            return

        self.dirs = discover_directories(self.source_dir, recursive, exclude_keywords)
        self.files = get_filtered_video_files(self.dirs, self.patterns, self.minimum_size)

    @staticmethod
    def _get_source_directory_from_path(input_path: Path) -> Optional[Path]:
        """Resolves a file to its parent directory; returns None for a missing path."""
        resolved_path = input_path.resolve()
        if not resolved_path.exists():
            logger.error(f"Input path does not exist: {resolved_path}")
            return None
        if resolved_path.is_file():
            return resolved_path.parent
        return resolved_path

    def __len__(self) -> int:
        return len(self.files)

    def __iter__(self):
        return iter(self.files)
