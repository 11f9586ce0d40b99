import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, FrozenSet, List, Optional

import ffmpeg
from loguru import logger

from .exceptions import MediaProbeError


def parse_duration(duration_str: str) -> float:
    """
    Parses a duration string into total seconds.

    This function is designed to handle two common duration formats provided by ffprobe:
    1. A simple string representing a floating-point number of seconds (e.g., "3600.5").
    2. A timecode string in the format 'HH:MM:SS.sss' (e.g., "01:00:00.500").
       Hours are optional in the timecode format.

    Args:
        duration_str: The string containing the duration to parse.

    Returns:
        The total duration in seconds as a float. Returns 0.0 if parsing fails.
    """
    if duration_str is None:
        return 0.0
    try:
        return float(duration_str)
    except (TypeError, ValueError):
        pattern = r"(?:(\d{1,2}):)?(\d{1,2}):(\d{1,2}(?:\.\d+)?)"
        match = re.fullmatch(pattern, str(duration_str))
        if match:
            hours_str, minutes_str, seconds_str = match.groups()
            hours = int(hours_str) if hours_str else 0
            return float(hours * 3600 + int(minutes_str) * 60 + float(seconds_str))
        logger.warning(f"Could not parse duration string: {duration_str}")
    return 0.0


@dataclass(frozen=True)
class MediaStreamInfo:
    """
    One stream of a probed file, as reported by `ffprobe -show_streams`.

    Attributes:
        source_file: The probed file.
        global_index: The stream's `index` across all streams (`-map 0:<n>`).
        type_index: Position among streams of the same `codec_type` (`-map 0:a:<n>`).
        codec_type: "video", "audio", "subtitle", "data" or "attachment".
        codec_name: e.g. "h264", "ac3", "dvd_subtitle".
        language: Lowercased `language` tag, "und" when missing.
        title: `title` tag, empty when missing.
        disposition_flags: Names of the disposition flags set to 1 ("default", "forced", ...).
        channels: Audio channel count, None for non-audio streams.
    """

    source_file: Path
    global_index: int
    type_index: int
    codec_type: str
    codec_name: str
    language: str = "und"
    title: str = ""
    disposition_flags: FrozenSet[str] = field(default_factory=frozenset)
    channels: Optional[int] = None

    @property
    def is_default(self) -> bool:
        return "default" in self.disposition_flags

    @property
    def is_forced(self) -> bool:
        return "forced" in self.disposition_flags

    @classmethod
    def from_probe_stream(cls, source_file: Path, stream: Dict[str, Any], type_index: int) -> "MediaStreamInfo":
        tags = {str(k).lower(): v for k, v in (stream.get("tags") or {}).items()}
        disposition = stream.get("disposition") or {}
        channels = stream.get("channels")
        return cls(
            source_file=source_file,
            global_index=int(stream.get("index", 0)),
            type_index=type_index,
            codec_type=str(stream.get("codec_type", "")),
            codec_name=str(stream.get("codec_name", "")).lower(),
            language=str(tags.get("language") or "und").lower().strip(),
            title=str(tags.get("title") or ""),
            disposition_flags=frozenset(k for k, v in disposition.items() if v == 1),
            channels=int(channels) if channels is not None else None,
        )


def parse_probe_streams(source_file: Path, streams: List[Dict[str, Any]]) -> List[MediaStreamInfo]:
    """Builds `MediaStreamInfo` records from the `streams` array of ffprobe JSON."""
    type_counters: Dict[str, int] = {}
    parsed = []
    for stream in sorted(streams, key=lambda s: int(s.get("index", 0))):
        codec_type = str(stream.get("codec_type", ""))
        type_index = type_counters.get(codec_type, 0)
        type_counters[codec_type] = type_index + 1
        parsed.append(MediaStreamInfo.from_probe_stream(source_file, stream, type_index))
    return parsed


class MediaFile:
    """
    Represents a single media file and provides a clean interface to its metadata.

    When instantiated with a file path, it uses `ffprobe` (via the ffmpeg-python
    library) with `-show_format -show_streams -show_chapters` and populates its
    attributes from the JSON output. The object is read-only after creation.

    Attributes:
        path (Path): The absolute path to the media file.
        filename (str): The name of the file, including its extension.
        stem (str): The filename without its extension.
        size (int): The size of the file in bytes.
        probe (dict): The raw `ffprobe` output as a nested dictionary.
        duration (float): The duration of the media in seconds.
        format_name (str): Container format reported by ffprobe (e.g. "matroska,webm").
        bit_rate (int): Overall bitrate in bits per second, 0 when unknown.
        streams (list): All streams as `MediaStreamInfo`.
        chapters (list): Chapter dictionaries with `start`, `end` (seconds) and `title`.
    """

    def __init__(self, path: Path, ffprobe_cmd: str = "ffprobe"):
        """
        Probes the file at the given path.

        Args:
            path: The media file.
            ffprobe_cmd: The ffprobe executable to run.

        Raises:
            FileNotFoundError: If the file does not exist at the given path.
            MediaProbeError: If ffprobe fails or cannot be started.
        """
        if not path.exists():
            logger.error(f"MediaFile initialization error: File does not exist at {path}")
            raise FileNotFoundError(f"Media file not found: {path}")

        self.path: Path = path.resolve()
        self.filename: str = self.path.name
        self.stem: str = self.path.stem
        self.size: int = self.path.stat().st_size

        try:
            self.probe: dict = ffmpeg.probe(str(self.path), cmd=ffprobe_cmd, show_chapters=None)
        except ffmpeg.Error as e:
            stderr = e.stderr.decode("utf-8", errors="replace") if isinstance(e.stderr, bytes) else e.stderr
            logger.error(f"ffprobe failed for {self.path}: {stderr}")
            raise MediaProbeError(f"Failed to probe media file {self.path}: {stderr}") from e
        except FileNotFoundError as e:
            logger.error(f"ffprobe executable '{ffprobe_cmd}' not found.")
            raise MediaProbeError(f"ffprobe executable '{ffprobe_cmd}' not found") from e

        format_info = self.probe.get("format") or {}
        self.duration: float = parse_duration(format_info.get("duration"))
        self.format_name: str = format_info.get("format_name", "")
        try:
            self.bit_rate: int = int(format_info.get("bit_rate") or 0)
        except ValueError:
            self.bit_rate = 0
        self.streams: List[MediaStreamInfo] = parse_probe_streams(self.path, self.probe.get("streams") or [])
        self.chapters: List[Dict[str, Any]] = [
            {
                "start": parse_duration(ch.get("start_time")),
                "end": parse_duration(ch.get("end_time")),
                "title": (ch.get("tags") or {}).get("title", ""),
            }
            for ch in self.probe.get("chapters") or []
        ]
        logger.debug(
            f"Probed {self.filename}: {len(self.streams)} streams, "
            f"{len(self.chapters)} chapters, {self.duration:.1f}s"
        )

    def _streams_of_type(self, codec_type: str) -> List[MediaStreamInfo]:
        return [s for s in self.streams if s.codec_type == codec_type]

    @property
    def video_streams(self) -> List[MediaStreamInfo]:
        return self._streams_of_type("video")

    @property
    def audio_streams(self) -> List[MediaStreamInfo]:
        return self._streams_of_type("audio")

    @property
    def subtitle_streams(self) -> List[MediaStreamInfo]:
        return self._streams_of_type("subtitle")

    def __repr__(self) -> str:
        return f"MediaFile({self.path})"
