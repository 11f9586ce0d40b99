"""
Value records shared by the pipeline and the metadata clients.
"""
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Tuple

from ..config.video import (
    EPISODE_FILE_TEMPLATE,
    INVALID_FILENAME_CHARS,
    PROCESSING_SUBDIRS,
    SEASON_DIR_TEMPLATE,
)


def sanitize_filename(name: str) -> str:
    """Remove invalid filesystem characters from a name."""
    translation_table = str.maketrans("", "", INVALID_FILENAME_CHARS)
    return " ".join(name.translate(translation_table).split())


@dataclass(frozen=True)
class Episode:
    """An episode as returned by the TVDb lookup. Only used to build file names."""

    id: int
    season_number: int
    episode_number: int
    title: str

    def file_stem(self, series_name: str) -> str:
        """e.g. "Firefly - s01e02 - The Train Job"."""
        stem = EPISODE_FILE_TEMPLATE.format(
            series=series_name,
            season=self.season_number,
            episode=self.episode_number,
            title=self.title or f"Episode {self.episode_number}",
        )
        return sanitize_filename(stem)


@dataclass(frozen=True)
class ProcessingDirectoryStructure:
    """
    Directories of one DVD processing run.

    Attributes:
        root_dir: Series directory below the destination.
        season_dir: "Season NN" directory holding the renamed episode files.
        sub_dirs: Working directories below the season directory, keyed by name
            ("chapters", "captions", "converted").
    """

    root_dir: Path
    season_dir: Path
    sub_dirs: Dict[str, Path] = field(default_factory=dict)

    @classmethod
    def for_season(
        cls, destination: Path, series_name: str, season: int, sub_dir_names: Tuple[str, ...] = PROCESSING_SUBDIRS
    ) -> "ProcessingDirectoryStructure":
        root_dir = destination / sanitize_filename(series_name)
        season_dir = root_dir / SEASON_DIR_TEMPLATE.format(season=season)
        return cls(root_dir, season_dir, {name: season_dir / name for name in sub_dir_names})

    def create(self) -> None:
        """Creates every directory. Existing directories are left as they are."""
        for directory in (self.root_dir, self.season_dir, *self.sub_dirs.values()):
            directory.mkdir(parents=True, exist_ok=True)
