"""
The DVD processing pipeline.

Turns a directory of ripped DVD titles into named episode files of one season:

    CREATE_DIRECTORIES -> RESOLVE_EPISODE_METADATA -> COPY_AND_RENAME_FILES
    -> [EXTRACT_CHAPTERS] -> [EXTRACT_CAPTIONS] -> [CONVERT_FILES]

Phases run strictly in this order, each exactly once. The first phase that
fails ends the run; nothing is rolled back and nothing is retried. The
optional phases are chosen when the pipeline is constructed. Invalid input
(a missing source directory, an empty series name) is reported as a failed
CREATE_DIRECTORIES before anything is created or looked up.
"""
import os
import shutil
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Callable, List, Optional, Sequence, Tuple

from loguru import logger

from ..config.common import LANGUAGE_WORDS, MAX_STREAMS_PER_LANGUAGE, MINIMUM_FILE_SIZE
from ..config.video import (
    CAPTIONS_SUBDIR,
    CAPTIONS_SUFFIX,
    CHAPTERS_SUBDIR,
    CONVERTED_SUBDIR,
    CONVERTED_SUFFIX,
    DEFAULT_CRF,
    DEFAULT_FILE_PATTERNS,
    DEFAULT_HANDBRAKE_VIDEO_ENCODER,
    DEFAULT_PRESET,
)
from ..domain.encoding import VideoEncodingConfig
from ..domain.exceptions import MediaProbeError
from ..domain.media import MediaFile
from ..domain.models import Episode, ProcessingDirectoryStructure, sanitize_filename
from ..services.file_filter import get_filtered_video_files
from ..services.handbrake import convert_with_handbrake, get_handbrake_options
from ..services import mkvtoolnix
from ..utils.process import run_cmd, temporary_work_dir
from ..utils.tools import Tools

# (series_id, season) -> episodes of that season in episode order.
EpisodeLookup = Callable[[int, int], Sequence[Episode]]


class ProcessingPhase(Enum):
    CREATE_DIRECTORIES = "CreateDirectories"
    RESOLVE_EPISODE_METADATA = "ResolveEpisodeMetadata"
    COPY_AND_RENAME_FILES = "CopyAndRenameFiles"
    EXTRACT_CHAPTERS = "ExtractChapters"
    EXTRACT_CAPTIONS = "ExtractCaptions"
    CONVERT_FILES = "ConvertFiles"


@dataclass(frozen=True)
class PipelineResult:
    """
    Outcome of one pipeline run.

    Attributes:
        success: True if every selected phase succeeded.
        failed_phase: The phase that ended the run, None on success.
        completed_phases: Phases that succeeded, in order.
        episode_files: Renamed episode files in the season directory.
    """

    success: bool
    failed_phase: Optional[ProcessingPhase] = None
    completed_phases: Tuple[ProcessingPhase, ...] = ()
    episode_files: Tuple[Path, ...] = ()

    def __bool__(self) -> bool:
        return self.success


def caption_command(ffmpeg_cmd: str, source_name: str, output_name: str) -> List[str]:
    """
    Extracts closed captions (EIA-608 in the video stream) to SRT.

    The lavfi `movie` source refers to the input by a plain file name, which is
    why the command runs inside a work directory holding a link to the input.
    """
    return [
        ffmpeg_cmd, "-hide_banner", "-y",
        "-f", "lavfi", "-i", f"movie={source_name}[out0+subcc]",
        "-map", "0:s", output_name,
    ]


class DvdProcessingPipeline:
    """
    Processes one season's DVD rip into a Plex-style season directory.

    Example:
        pipeline = DvdProcessingPipeline(
            Path("D:/rips/firefly_d1"), Path("D:/TV"), "Firefly", 1, 78874,
            episode_lookup=tvdb.get_season_episodes,
        )
        result = pipeline.run()
    """

    def __init__(
        self,
        source_dir: Path,
        destination_dir: Path,
        series_name: str,
        season: int,
        series_id: int,
        file_patterns: Sequence[str] = DEFAULT_FILE_PATTERNS,
        minimum_file_size: int = MINIMUM_FILE_SIZE,
        extract_chapters: bool = False,
        extract_captions: bool = False,
        convert: bool = False,
        video_config: Optional[VideoEncodingConfig] = None,
        episode_lookup: Optional[EpisodeLookup] = None,
        tools: Optional[Tools] = None,
        languages: Sequence[str] = LANGUAGE_WORDS,
        max_streams_per_language: int = MAX_STREAMS_PER_LANGUAGE,
    ):
        self.source_dir = source_dir
        self.destination_dir = destination_dir
        self.series_name = series_name
        self.season = season
        self.series_id = series_id
        self.file_patterns = tuple(file_patterns)
        self.minimum_file_size = minimum_file_size
        self.video_config = video_config or VideoEncodingConfig.crf_mode(
            DEFAULT_HANDBRAKE_VIDEO_ENCODER, DEFAULT_CRF, preset=DEFAULT_PRESET
        )
        self.episode_lookup = episode_lookup
        self.tools = tools or Tools()
        self.languages = tuple(languages)
        self.max_streams_per_language = max_streams_per_language

        # The toggles are read once here; they only decide which phases run.
        self.phases: List[Tuple[ProcessingPhase, Callable[[], bool]]] = [
            (ProcessingPhase.CREATE_DIRECTORIES, self.create_directories),
            (ProcessingPhase.RESOLVE_EPISODE_METADATA, self.resolve_episode_metadata),
            (ProcessingPhase.COPY_AND_RENAME_FILES, self.copy_and_rename_files),
        ]
        sub_dir_names = []
        if extract_chapters:
            self.phases.append((ProcessingPhase.EXTRACT_CHAPTERS, self.extract_chapters))
            sub_dir_names.append(CHAPTERS_SUBDIR)
        if extract_captions:
            self.phases.append((ProcessingPhase.EXTRACT_CAPTIONS, self.extract_captions))
            sub_dir_names.append(CAPTIONS_SUBDIR)
        if convert:
            self.phases.append((ProcessingPhase.CONVERT_FILES, self.convert_files))
            sub_dir_names.append(CONVERTED_SUBDIR)

        self.structure = ProcessingDirectoryStructure.for_season(
            destination_dir, series_name, season, tuple(sub_dir_names)
        )
        self.episodes: List[Episode] = []
        self.episode_files: List[Path] = []

    # --- Run ---

    def validate(self) -> List[str]:
        """Checks the inputs before anything is created or looked up. Returns the problems found."""
        problems = []
        if not self.source_dir.is_dir():
            problems.append(f"Source directory does not exist: {self.source_dir}")
        if not sanitize_filename(self.series_name or ""):
            problems.append("A series name is required.")
        if isinstance(self.season, bool) or not isinstance(self.season, int) or self.season < 0:
            problems.append(f"Invalid season number {self.season!r}.")
        if self.destination_dir.exists() and not self.destination_dir.is_dir():
            problems.append(f"Destination is not a directory: {self.destination_dir}")
        return problems

    def run(self) -> PipelineResult:
        problems = self.validate()
        if problems:
            for problem in problems:
                logger.error(problem)
            return PipelineResult(False, ProcessingPhase.CREATE_DIRECTORIES)

        phase_names = " -> ".join(phase.value for phase, _ in self.phases)
        logger.info(f"Processing {self.series_name} season {self.season} from {self.source_dir}: {phase_names}")

        completed: List[ProcessingPhase] = []
        for phase, action in self.phases:
            logger.info(f"Phase {phase.value} started")
            try:
                succeeded = action()
            except Exception as e:
                logger.exception(f"Phase {phase.value} raised an unexpected error: {e}")
                succeeded = False
            if not succeeded:
                logger.error(f"Phase {phase.value} failed. Stopping; completed phases are left as they are.")
                return PipelineResult(False, phase, tuple(completed), tuple(self.episode_files))
            completed.append(phase)
            logger.info(f"Phase {phase.value} completed")

        logger.success(
            f"Processed {len(self.episode_files)} episodes of {self.series_name} season {self.season} "
            f"into {self.structure.season_dir}"
        )
        return PipelineResult(True, None, tuple(completed), tuple(self.episode_files))

    # --- Phases ---

    def create_directories(self) -> bool:
        try:
            self.structure.create()
        except OSError as e:
            logger.error(f"Could not create {self.structure.season_dir}: {e}")
            return False
        logger.debug(f"Directories ready under {self.structure.season_dir}")
        return True

    def resolve_episode_metadata(self) -> bool:
        if self.episode_lookup is None:
            logger.error("No episode lookup configured. Set a TVDb API key.")
            return False
        self.episodes = list(self.episode_lookup(self.series_id, self.season))
        if not self.episodes:
            logger.error(f"No episodes found for series {self.series_id} season {self.season}.")
            return False
        logger.info(f"Resolved {len(self.episodes)} episodes for season {self.season}")
        return True

    def copy_and_rename_files(self) -> bool:
        """
        Copies the source titles to the season directory under episode names.

        Titles are sorted by file name and paired with the episodes in order.
        Titles beyond the last episode are reported and left in place.
        """
        source_files = sorted(
            get_filtered_video_files([self.source_dir], self.file_patterns, self.minimum_file_size),
            key=lambda p: p.name.lower(),
        )
        if not source_files:
            logger.error(f"No files in {self.source_dir} matched {', '.join(self.file_patterns)}.")
            return False

        for extra_file in source_files[len(self.episodes):]:
            logger.warning(f"No episode left for {extra_file.name}; not copied.")
        if len(self.episodes) > len(source_files):
            logger.warning(
                f"{len(self.episodes) - len(source_files)} episodes of season {self.season} have no source file."
            )

        for source_file, episode in zip(source_files, self.episodes):
            target = self.structure.season_dir / f"{episode.file_stem(self.series_name)}{source_file.suffix}"
            if target.exists() and target.stat().st_size == source_file.stat().st_size:
                logger.info(f"{target.name} already exists, skipping copy.")
            else:
                logger.info(f"Copying {source_file.name} -> {target.name}")
                try:
                    shutil.copy2(source_file, target)
                except OSError as e:
                    logger.error(f"Copy of {source_file.name} failed: {e}")
                    return False
            self.episode_files.append(target)
        return True

    def extract_chapters(self) -> bool:
        chapters_dir = self.structure.sub_dirs[CHAPTERS_SUBDIR]
        mkvextract_cmd = self.tools.path("mkvextract")
        failures = [
            f for f in self.episode_files
            if not mkvtoolnix.extract_chapters(f, chapters_dir, mkvextract_cmd, error_log_dir=chapters_dir).succeeded
        ]
        return not failures

    def extract_captions(self) -> bool:
        captions_dir = self.structure.sub_dirs[CAPTIONS_SUBDIR]
        ffmpeg_cmd = self.tools.path("ffmpeg")
        all_succeeded = True
        for episode_file in self.episode_files:
            output_file = captions_dir / f"{episode_file.stem}{CAPTIONS_SUFFIX}"
            with temporary_work_dir(base_dir=self.structure.season_dir) as work_dir:
                source_link = work_dir / f"source{episode_file.suffix}"
                try:
                    os.link(episode_file, source_link)
                except OSError:
                    shutil.copy2(episode_file, source_link)
                result = run_cmd(
                    caption_command(ffmpeg_cmd, source_link.name, "captions.srt"),
                    cwd=work_dir,
                    error_log_dir=captions_dir,
                )
                work_output = work_dir / "captions.srt"
                if not result.succeeded or not work_output.exists():
                    logger.error(f"Caption extraction failed for {episode_file.name} (exit code {result.exit_code})")
                    all_succeeded = False
                    continue
                shutil.move(str(work_output), str(output_file))
                logger.debug(f"Extracted captions: {output_file}")
        return all_succeeded

    def convert_files(self) -> bool:
        converted_dir = self.structure.sub_dirs[CONVERTED_SUBDIR]
        ffprobe_cmd = self.tools.path("ffprobe")
        handbrake_cmd = self.tools.path("HandBrakeCLI")
        all_succeeded = True
        for episode_file in self.episode_files:
            try:
                media_file = MediaFile(episode_file, ffprobe_cmd=ffprobe_cmd)
            except (FileNotFoundError, MediaProbeError) as e:
                logger.error(f"Cannot convert {episode_file.name}: {e}")
                all_succeeded = False
                continue
            options = get_handbrake_options(
                media_file, self.video_config, self.languages, self.max_streams_per_language
            )
            if options is None:
                continue
            output_file = converted_dir / f"{episode_file.stem}{CONVERTED_SUFFIX}"
            result = convert_with_handbrake(
                episode_file, output_file, options, handbrake_cmd, error_log_dir=converted_dir
            )
            all_succeeded = all_succeeded and result.succeeded
        return all_succeeded


def invoke_dvd_processing(**kwargs) -> PipelineResult:
    """Builds a `DvdProcessingPipeline` from keyword arguments and runs it."""
    return DvdProcessingPipeline(**kwargs).run()
