"""
HandBrakeCLI option building and conversion.

`get_handbrake_options` looks at a probed file and decides which audio and
subtitle tracks to keep. When the file cannot be converted sensibly (no
wanted audio, too many candidate tracks, an unsupported channel layout) it
returns None and the caller skips the file.
"""
from pathlib import Path
from typing import List, Mapping, Optional, Sequence

from loguru import logger

from ..config.audio import (
    AUDIO_BITRATES,
    AUDIO_MIXDOWNS,
    DEFAULT_HANDBRAKE_AUDIO_ENCODER,
    HANDBRAKE_PASSTHRU_CODECS,
)
from ..config.common import LANGUAGE_WORDS, MAX_STREAMS_PER_LANGUAGE
from ..domain.encoding import (
    AudioTrackMapping,
    SubtitleTrackMapping,
    VideoEncodingConfig,
    bitrate_to_kbps,
    build_handbrake_audio_args,
    build_handbrake_subtitle_args,
)
from ..domain.exceptions import UnsupportedChannelCountError
from ..domain.media import MediaFile, MediaStreamInfo
from ..utils.process import ProcessResult, run_cmd
from .stream_filter import normalize_languages, select_audio_streams

# Encoder value that asks for passthrough of whatever the source codec is.
PASSTHRU_ENCODER = "copy"


def audio_track_mapping(
    stream: MediaStreamInfo,
    audio_encoder: str = DEFAULT_HANDBRAKE_AUDIO_ENCODER,
    bitrate_table: Mapping[int, str] = AUDIO_BITRATES,
    mixdown_table: Mapping[int, str] = AUDIO_MIXDOWNS,
) -> AudioTrackMapping:
    """
    Builds the HandBrake track for one source audio stream.

    With `audio_encoder="copy"` the stream is passed through when HandBrake
    supports its codec; other codecs fall back to the default encoder.

    Raises:
        UnsupportedChannelCountError: If the stream is re-encoded and its channel
            count has no bitrate or mixdown entry.
    """
    track_number = stream.type_index + 1
    name = stream.title or stream.language

    if audio_encoder == PASSTHRU_ENCODER:
        passthru = HANDBRAKE_PASSTHRU_CODECS.get(stream.codec_name)
        if passthru:
            return AudioTrackMapping(track_number, passthru, name=name)
        logger.debug(f"No passthru for codec '{stream.codec_name}' (track {track_number}), re-encoding.")
        audio_encoder = DEFAULT_HANDBRAKE_AUDIO_ENCODER

    channels = stream.channels or 2
    if channels not in bitrate_table or channels not in mixdown_table:
        raise UnsupportedChannelCountError(
            f"No bitrate/mixdown for {channels} channels (audio track {track_number} of {stream.source_file.name})."
        )
    return AudioTrackMapping(
        track_number,
        audio_encoder,
        bitrate=bitrate_to_kbps(bitrate_table[channels]),
        mixdown=mixdown_table[channels],
        name=name,
    )


def select_subtitle_tracks(
    media_file: MediaFile, subtitle_languages: Sequence[str]
) -> List[SubtitleTrackMapping]:
    """Subtitle tracks in the wanted languages, keeping their default/forced flags."""
    wanted = normalize_languages(subtitle_languages)
    return [
        SubtitleTrackMapping(
            input_stream_index=s.global_index,
            track_number=s.type_index + 1,
            language=s.language,
            title=s.title or None,
            default=s.is_default,
            forced=s.is_forced,
        )
        for s in media_file.subtitle_streams
        if s.language in wanted
    ]


def get_handbrake_options(
    media_file: MediaFile,
    video_config: VideoEncodingConfig,
    languages: Sequence[str] = LANGUAGE_WORDS,
    max_streams_per_language: int = MAX_STREAMS_PER_LANGUAGE,
    audio_encoder: str = DEFAULT_HANDBRAKE_AUDIO_ENCODER,
    subtitle_languages: Optional[Sequence[str]] = None,
) -> Optional[List[str]]:
    """
    Builds the HandBrakeCLI options for one file, excluding input and output.

    Args:
        media_file: The probed source.
        video_config: Video settings; its codec must be a HandBrake encoder name.
        languages: Audio languages to keep.
        max_streams_per_language: More matching audio tracks than this in one
            language skips the file.
        audio_encoder: HandBrake audio encoder, or "copy" for passthrough.
        subtitle_languages: Subtitle languages to keep. Defaults to `languages`.

    Returns:
        The option list, or None if the file should be skipped.
    """
    streams = select_audio_streams(media_file, languages, max_streams_per_language)
    if streams is None:
        return None
    if not streams:
        logger.warning(f"Skipping {media_file.filename}: no audio track to keep.")
        return None

    try:
        audio_mappings = [audio_track_mapping(s, audio_encoder) for s in streams]
    except UnsupportedChannelCountError as e:
        logger.warning(f"Skipping {media_file.filename}: {e}")
        return None

    subtitle_mappings = select_subtitle_tracks(
        media_file, subtitle_languages if subtitle_languages is not None else languages
    )

    options = ["--markers"]
    options += video_config.to_handbrake_args()
    options += build_handbrake_audio_args(audio_mappings)
    options += build_handbrake_subtitle_args(subtitle_mappings)
    logger.debug(
        f"HandBrake options for {media_file.filename}: {len(audio_mappings)} audio, "
        f"{len(subtitle_mappings)} subtitle tracks"
    )
    return options


def container_format_for(output_file: Path) -> str:
    return "av_mp4" if output_file.suffix.lower() in (".mp4", ".m4v") else "av_mkv"


def convert_with_handbrake(
    input_file: Path,
    output_file: Path,
    options: Sequence[str],
    handbrake_cmd: str = "HandBrakeCLI",
    show_cmd: bool = False,
    error_log_dir: Optional[Path] = None,
) -> ProcessResult:
    """Runs HandBrakeCLI for one file. The container format follows the output suffix."""
    output_file.parent.mkdir(parents=True, exist_ok=True)
    cmd = [
        handbrake_cmd,
        "--input", str(input_file),
        "--output", str(output_file),
        "--format", container_format_for(output_file),
        *options,
    ]
    result = run_cmd(cmd, show_cmd=show_cmd, error_log_dir=error_log_dir)
    if result.succeeded:
        logger.info(f"HandBrake finished: {output_file.name}")
    else:
        logger.error(f"HandBrake failed for {input_file.name} (exit code {result.exit_code})")
    return result
