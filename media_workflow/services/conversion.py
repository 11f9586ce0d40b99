"""
FFmpeg-based video conversion.

Builds FFmpeg command lines from the encoding configuration objects and runs
them one file at a time. Completed conversions are recorded in a YAML
`SuccessLog` in the output directory; failures go to the `ErrorLog` there.
"""
import platform
from datetime import datetime
from pathlib import Path
from typing import Iterable, List, Mapping, Optional, Sequence

from loguru import logger

from ..config.audio import AUDIO_BITRATES
from ..config.common import COMMAND_TEXT, MAX_STREAMS_PER_LANGUAGE
from ..config.video import CONVERTED_SUFFIX
from ..domain.encoding import (
    AudioStreamConfig,
    SubtitleTrackMapping,
    VideoEncodingConfig,
    build_ffmpeg_audio_args,
    build_ffmpeg_subtitle_args,
)
from ..domain.exceptions import InvalidEncodingConfigError, MediaProbeError
from ..domain.media import MediaFile, MediaStreamInfo
from ..utils.format_utils import format_timedelta, formatted_size
from ..utils.process import run_cmd
from .logging_service import SuccessLog
from .stream_filter import select_audio_streams

# Used when the caller does not choose streams: keep every audio and subtitle
# stream as it is. The "?" makes the map optional for files without them.
COPY_ALL_AUDIO_ARGS = ["-map", "0:a?", "-c:a", "copy"]
COPY_ALL_SUBTITLE_ARGS = ["-map", "0:s?", "-c:s", "copy"]


def build_ffmpeg_command(
    input_file: Path,
    output_file: Path,
    video_config: VideoEncodingConfig,
    audio_configs: Optional[Sequence[AudioStreamConfig]] = None,
    subtitle_mappings: Optional[Sequence[SubtitleTrackMapping]] = None,
    extra_args: Sequence[str] = (),
    ffmpeg_cmd: str = "ffmpeg",
    bitrate_table: Mapping[int, str] = AUDIO_BITRATES,
) -> List[str]:
    """
    Builds the complete FFmpeg argument list for one conversion.

    The layout is `ffmpeg -hide_banner -y -i <input> -map 0:v:0 <video>
    <audio> <subtitles> <extra> <output>`. `None` for audio or subtitles copies
    every stream of that type; an empty sequence drops them.

    Raises:
        UnsupportedChannelCountError: If an audio stream needs a table bitrate
            for a channel count the table does not have.
    """
    cmd = [ffmpeg_cmd, "-hide_banner", "-y", "-i", str(input_file), "-map", "0:v:0"]
    cmd += video_config.to_ffmpeg_args()
    cmd += COPY_ALL_AUDIO_ARGS if audio_configs is None else build_ffmpeg_audio_args(audio_configs, bitrate_table)
    cmd += COPY_ALL_SUBTITLE_ARGS if subtitle_mappings is None else build_ffmpeg_subtitle_args(subtitle_mappings)
    cmd += list(extra_args)
    cmd.append(str(output_file))
    return cmd


def audio_configs_for_streams(
    streams: Iterable[MediaStreamInfo],
    codec: Optional[str] = None,
) -> List[AudioStreamConfig]:
    """
    Turns selected ffprobe streams into output audio streams.

    Without `codec` the streams are copied; with it they are re-encoded and keep
    their channel count, so the bitrate comes from the lookup table.
    """
    configs = []
    for stream in streams:
        title = stream.title or stream.language
        if codec:
            configs.append(AudioStreamConfig.encode(
                stream.global_index, title, codec, channels=stream.channels, language=stream.language
            ))
        else:
            configs.append(AudioStreamConfig.copy(stream.global_index, title, language=stream.language))
    return configs


def output_path_for(input_file: Path, output_dir: Path, suffix: str = CONVERTED_SUFFIX) -> Path:
    return output_dir / f"{input_file.stem}{suffix}"


def _write_success_log(output_dir: Path, input_file: Path, output_file: Path,
                       video_config: VideoEncodingConfig, started: datetime) -> None:
    elapsed = datetime.now() - started
    original_size = input_file.stat().st_size
    converted_size = output_file.stat().st_size
    SuccessLog(output_dir).write({
        "input_file": str(input_file),
        "output_file": str(output_file),
        "video_config": str(video_config),
        "encode_time_formatted": format_timedelta(elapsed),
        "original_size_bytes": original_size,
        "original_size_formatted": formatted_size(original_size),
        "converted_size_bytes": converted_size,
        "converted_size_formatted": formatted_size(converted_size),
        "size_ratio_percent": round(converted_size / original_size * 100, 2) if original_size > 0 else "N/A",
        "platform_info": platform.platform(),
    })


def convert_video_files(
    files: Iterable[Path],
    output_dir: Path,
    video_config: VideoEncodingConfig,
    audio_configs: Optional[Sequence[AudioStreamConfig]] = None,
    subtitle_mappings: Optional[Sequence[SubtitleTrackMapping]] = None,
    languages: Optional[Sequence[str]] = None,
    max_streams_per_language: int = MAX_STREAMS_PER_LANGUAGE,
    audio_codec: Optional[str] = None,
    overwrite: bool = False,
    output_suffix: str = CONVERTED_SUFFIX,
    ffmpeg_cmd: str = "ffmpeg",
    ffprobe_cmd: str = "ffprobe",
    show_cmd: bool = False,
) -> List[Path]:
    """
    Converts each file with FFmpeg, sequentially.

    Audio streams are either the fixed `audio_configs` for every file, or, when
    `languages` is given, chosen per file from its probed streams (copied, or
    re-encoded with `audio_codec`). Without either, all audio is copied.

    An existing output is skipped unless `overwrite` is set. A failed file is
    logged, its partial output removed, and the loop continues.

    Returns:
        The output files that were written in this run.
    """
    output_dir.mkdir(parents=True, exist_ok=True)
    converted: List[Path] = []
    files = list(files)

    for position, input_file in enumerate(files, start=1):
        output_file = output_path_for(input_file, output_dir, output_suffix)
        if output_file.resolve() == input_file.resolve():
            logger.error(f"Output would overwrite the input for {input_file.name}. Choose another output directory.")
            continue
        if output_file.exists() and not overwrite:
            logger.info(f"[{position}/{len(files)}] Skipping {input_file.name}: {output_file.name} already exists")
            continue

        file_audio_configs = audio_configs
        if file_audio_configs is None and languages:
            try:
                streams = select_audio_streams(
                    MediaFile(input_file, ffprobe_cmd=ffprobe_cmd), languages, max_streams_per_language
                )
            except (FileNotFoundError, MediaProbeError) as e:
                logger.error(f"Skipping {input_file.name}: {e}")
                continue
            if streams is None:
                continue
            file_audio_configs = audio_configs_for_streams(streams, audio_codec)

        try:
            cmd = build_ffmpeg_command(
                input_file, output_file, video_config, file_audio_configs, subtitle_mappings,
                ffmpeg_cmd=ffmpeg_cmd,
            )
        except InvalidEncodingConfigError as e:
            logger.error(f"Skipping {input_file.name}: {e}")
            continue

        logger.info(f"[{position}/{len(files)}] Converting {input_file.name} -> {output_file.name}")
        started = datetime.now()
        result = run_cmd(cmd, show_cmd=show_cmd, cmd_log_file_path=output_dir / COMMAND_TEXT,
                         error_log_dir=output_dir)
        if not result.succeeded or not output_file.exists():
            logger.error(f"FFmpeg failed for {input_file.name} (exit code {result.exit_code})")
            output_file.unlink(missing_ok=True)
            continue

        try:
            _write_success_log(output_dir, input_file, output_file, video_config, started)
        except OSError as e:
            # The output is already written; only the bookkeeping is lost.
            logger.error(f"Failed to record {output_file.name} in the success log: {e}")
        logger.success(f"Converted {input_file.name} in {format_timedelta(datetime.now() - started)}")
        converted.append(output_file)

    logger.info(f"Converted {len(converted)} of {len(files)} files into {output_dir}")
    return converted
