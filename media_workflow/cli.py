"""
Command-Line Interface (CLI) for the media-workflow toolkit.

This module uses Python's `argparse` to define one subcommand per workflow
and dispatches the parsed arguments to the pipeline and services. Every
command handler returns a process exit code: 0 on success, 1 on failure.
"""
import argparse
import getpass
import sys
from pathlib import Path
from typing import List, Optional, Sequence

from loguru import logger

from .config.common import USER_CONFIG_PATH, UserConfig, load_user_config
from .config.video import (
    DEFAULT_CRF,
    DEFAULT_FILE_PATTERNS,
    DEFAULT_HANDBRAKE_VIDEO_ENCODER,
    DEFAULT_PRESET,
    DEFAULT_VIDEO_ENCODER,
)
from .domain.encoding import RateControlMode, VideoEncodingConfig
from .domain.exceptions import MediaProbeError, MediaWorkflowException
from .domain.media import MediaFile
from .pipeline.dvd_pipeline import invoke_dvd_processing
from .services.conversion import convert_video_files, output_path_for
from .services.file_filter import VideoFileFilter
from .services.git_workflow import GitWorkflow
from .services.handbrake import convert_with_handbrake, get_handbrake_options
from .services.logging_service import configure_logger
from .services.plex_client import PlexClient, sign_in
from .services.stream_filter import get_filtered_audio_streams
from .services.tvdb_client import TvdbClient
from .utils.format_utils import formatted_size, parse_size
from .utils.tools import KNOWN_TOOLS, Tools


def _size_arg(value: str) -> int:
    try:
        return parse_size(value)
    except ValueError as e:
        raise argparse.ArgumentTypeError(str(e)) from None


def _add_video_args(parser: argparse.ArgumentParser) -> None:
    group = parser.add_argument_group("video encoding")
    group.add_argument("--codec", default=None, help="Video encoder (default: x265 for HandBrake, libx265 for FFmpeg).")
    group.add_argument(
        "--rate-control", default="CRF", choices=[m.value for m in RateControlMode],
        type=str.upper, help="Rate-control mode.",
    )
    group.add_argument(
        "--quality", default=None,
        help=f"CRF/QP value (0-51, default {DEFAULT_CRF}) or bitrate for VBR (e.g. 5000k).",
    )
    group.add_argument("--preset", default=DEFAULT_PRESET, help="Encoder preset.")
    group.add_argument("--profile", default=None, help="Encoder profile, e.g. main10.")
    group.add_argument("--level", default=None, help="Encoder level, e.g. 4.1.")


def _add_filter_args(parser: argparse.ArgumentParser, default_min_size: int) -> None:
    parser.add_argument(
        "--pattern", dest="patterns", action="append", default=None,
        help=f"Glob pattern for file names; repeatable (default: {', '.join(DEFAULT_FILE_PATTERNS)}).",
    )
    parser.add_argument(
        "--min-size", type=_size_arg, default=default_min_size,
        help=f"Only files larger than this, e.g. 100MB (default: {formatted_size(default_min_size)}).",
    )


def build_parser(user_config: Optional[UserConfig] = None) -> argparse.ArgumentParser:
    """
    Builds the argument parser with all subcommands.

    Defaults that come from `config.user.yaml` (minimum file size, languages)
    are taken from `user_config`.
    """
    user_config = user_config or UserConfig()
    parser = argparse.ArgumentParser(
        prog="media-workflow",
        description="Media-management workflows: DVD processing, conversion, Plex and Git automation.",
    )
    parser.add_argument(
        "--log-level", type=str.upper, default="INFO",
        choices=["TRACE", "DEBUG", "INFO", "WARNING", "ERROR"], help="Set the logging level.",
    )
    parser.add_argument("--log-file", type=Path, default=None, help="Also write a DEBUG log to this file.")
    parser.add_argument(
        "--config", type=Path, default=USER_CONFIG_PATH, help="Path of the YAML user configuration."
    )
    parser.add_argument("--show-cmd", action="store_true", help="Log every external command before it runs.")
    parser.add_argument(
        "--languages", type=lambda s: [x.strip() for x in s.split(",") if x.strip()],
        default=list(user_config.languages), help="Comma-separated audio/subtitle languages to keep.",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    # --- dvd ---
    dvd = subparsers.add_parser("dvd", help="Copy, rename and post-process one season's DVD rip.")
    dvd.add_argument("source", type=Path, help="Directory with the ripped titles.")
    dvd.add_argument("destination", type=Path, help="Library root; '<Series>/Season NN' is created below it.")
    dvd.add_argument("--series", required=True, help="Series name used in folder and file names.")
    dvd.add_argument("--season", type=int, required=True, help="Season number.")
    dvd.add_argument("--series-id", type=int, required=True, help="TVDb series id.")
    _add_filter_args(dvd, user_config.minimum_file_size)
    dvd.add_argument("--chapters", action="store_true", help="Extract chapters with mkvextract.")
    dvd.add_argument("--captions", action="store_true", help="Extract closed captions to SRT.")
    dvd.add_argument("--convert", action="store_true", help="Convert the episodes with HandBrakeCLI.")
    _add_video_args(dvd)

    # --- filter ---
    filter_parser = subparsers.add_parser("filter", help="List video files by pattern and size.")
    filter_parser.add_argument("path", type=Path, help="Directory (or a file inside it) to scan.")
    _add_filter_args(filter_parser, user_config.minimum_file_size)
    filter_parser.add_argument("--recursive", action="store_true", help="Also scan subdirectories.")
    filter_parser.add_argument("--audio", action="store_true", help="Also list the audio streams in --languages.")

    # --- probe ---
    probe = subparsers.add_parser("probe", help="Show the streams and chapters of a media file.")
    probe.add_argument("file", type=Path)

    # --- convert ---
    convert = subparsers.add_parser("convert", help="Convert video files with FFmpeg or HandBrakeCLI.")
    convert.add_argument("path", type=Path, help="Directory (or a file inside it) to convert.")
    convert.add_argument("--output-dir", type=Path, required=True, help="Where the converted files go.")
    _add_filter_args(convert, user_config.minimum_file_size)
    convert.add_argument("--recursive", action="store_true", help="Also scan subdirectories.")
    convert.add_argument("--handbrake", action="store_true", help="Use HandBrakeCLI instead of FFmpeg.")
    convert.add_argument("--audio-codec", default=None, help="Re-encode audio with this encoder instead of copying.")
    convert.add_argument("--overwrite", action="store_true", help="Replace existing outputs.")
    _add_video_args(convert)

    # --- plex ---
    plex = subparsers.add_parser("plex", help="Plex Media Server operations.")
    plex_sub = plex.add_subparsers(dest="plex_command", required=True)
    plex_sub.add_parser("info", help="Show server name and version.")
    plex_sub.add_parser("libraries", help="List library sections.")
    items = plex_sub.add_parser("items", help="List the items of a library section.")
    items.add_argument("section", help="Library section key.")
    refresh = plex_sub.add_parser("refresh", help="Scan a library section for new files.")
    refresh.add_argument("section", help="Library section key.")
    search = plex_sub.add_parser("search", help="Search the server.")
    search.add_argument("query")
    sign_in_parser = plex_sub.add_parser("sign-in", help="Get an X-Plex-Token from plex.tv.")
    sign_in_parser.add_argument("--username", required=True)

    # --- git ---
    git = subparsers.add_parser("git", help="Branch and pull-request helpers.")
    git.add_argument("--repo", type=Path, default=Path.cwd(), help="Repository directory.")
    git_sub = git.add_subparsers(dest="git_command", required=True)
    feature = git_sub.add_parser("feature", help="Create a feature branch from an up-to-date base.")
    feature.add_argument("name")
    feature.add_argument("--base", default="main")
    feature.add_argument("--push", action="store_true", help="Push the new branch.")
    pr = git_sub.add_parser("pr", help="Push the current branch and open a pull request.")
    pr.add_argument("--title", required=True)
    pr.add_argument("--body", default="")
    pr.add_argument("--base", default=None)
    pr.add_argument("--draft", action="store_true")

    # --- tools ---
    tools = subparsers.add_parser("tools", help="Check that the external programs can be run.")
    tools.add_argument("names", nargs="*", default=list(KNOWN_TOOLS), help="Tools to check (default: all).")

    return parser


def build_video_config(args: argparse.Namespace, handbrake: bool) -> VideoEncodingConfig:
    codec = args.codec or (DEFAULT_HANDBRAKE_VIDEO_ENCODER if handbrake else DEFAULT_VIDEO_ENCODER)
    mode = RateControlMode.parse(args.rate_control)
    if args.quality is None:
        if mode is RateControlMode.VBR:
            raise MediaWorkflowException("--quality is required for VBR, e.g. --quality 5000k.")
        value = DEFAULT_CRF
    elif mode is RateControlMode.VBR:
        value = args.quality
    else:
        try:
            value = float(args.quality) if mode is RateControlMode.CRF else int(args.quality)
        except ValueError:
            raise MediaWorkflowException(f"--quality must be a number for {mode.value}, got {args.quality!r}.") from None
    return VideoEncodingConfig(codec, mode, value, preset=args.preset, profile=args.profile, level=args.level)


# --- Command handlers ---

def run_dvd(args: argparse.Namespace, user_config: UserConfig, tools: Tools) -> int:
    if not user_config.tvdb_api_key:
        logger.error("A TVDb API key is required: set tvdb.api_key in config.user.yaml or TVDB_API_KEY.")
        return 1
    tvdb = TvdbClient(user_config.tvdb_api_key, user_config.tvdb_pin)
    result = invoke_dvd_processing(
        source_dir=args.source,
        destination_dir=args.destination,
        series_name=args.series,
        season=args.season,
        series_id=args.series_id,
        file_patterns=args.patterns or DEFAULT_FILE_PATTERNS,
        minimum_file_size=args.min_size,
        extract_chapters=args.chapters,
        extract_captions=args.captions,
        convert=args.convert,
        video_config=build_video_config(args, handbrake=True),
        episode_lookup=tvdb.get_season_episodes,
        tools=tools,
        languages=args.languages,
    )
    if not result.success:
        logger.error(f"DVD processing stopped in phase {result.failed_phase.value}.")
        return 1
    return 0


def run_filter(args: argparse.Namespace, tools: Tools) -> int:
    video_filter = VideoFileFilter(
        args.path, args.patterns or DEFAULT_FILE_PATTERNS, args.min_size, recursive=args.recursive
    )
    if video_filter.source_dir is None:
        return 1
    for file_path in video_filter.files:
        print(f"{file_path}\t{formatted_size(file_path.stat().st_size)}")
    if args.audio:
        streams_by_file = get_filtered_audio_streams(video_filter.files, args.languages, ffprobe_cmd=tools.path("ffprobe"))
        for file_path, streams in streams_by_file.items():
            for stream in streams:
                print(f"{file_path.name}\t0:{stream.global_index}\t{stream.language}\t{stream.codec_name}"
                      f"\t{stream.channels}ch\t{stream.title}")
    return 0


def run_probe(args: argparse.Namespace, tools: Tools) -> int:
    try:
        media_file = MediaFile(args.file, ffprobe_cmd=tools.path("ffprobe"))
    except (FileNotFoundError, MediaProbeError) as e:
        logger.error(str(e))
        return 1
    print(f"{media_file.filename}: {media_file.format_name}, {media_file.duration:.1f}s, "
          f"{formatted_size(media_file.size)}")
    for stream in media_file.streams:
        flags = ",".join(sorted(stream.disposition_flags))
        channels = f" {stream.channels}ch" if stream.channels else ""
        print(f"  0:{stream.global_index} {stream.codec_type}:{stream.type_index} {stream.codec_name}"
              f"{channels} [{stream.language}] {stream.title} {flags}".rstrip())
    for number, chapter in enumerate(media_file.chapters, start=1):
        print(f"  chapter {number}: {chapter['start']:.1f}-{chapter['end']:.1f} {chapter['title']}")
    return 0


def run_convert(args: argparse.Namespace, tools: Tools) -> int:
    video_filter = VideoFileFilter(
        args.path, args.patterns or DEFAULT_FILE_PATTERNS, args.min_size, recursive=args.recursive
    )
    if not video_filter.files:
        logger.warning("No files to convert.")
        return 1 if video_filter.source_dir is None else 0
    video_config = build_video_config(args, handbrake=args.handbrake)

    if not args.handbrake:
        converted = convert_video_files(
            video_filter.files, args.output_dir, video_config,
            languages=args.languages, audio_codec=args.audio_codec, overwrite=args.overwrite,
            ffmpeg_cmd=tools.path("ffmpeg"), ffprobe_cmd=tools.path("ffprobe"), show_cmd=args.show_cmd,
        )
        logger.info(f"{len(converted)} files converted in this run.")
        # Skipped or failed files leave no output behind.
        return 0 if all(output_path_for(f, args.output_dir).exists() for f in video_filter.files) else 1

    failures = 0
    for input_file in video_filter.files:
        output_file = output_path_for(input_file, args.output_dir)
        if output_file.exists() and not args.overwrite:
            logger.info(f"Skipping {input_file.name}: {output_file.name} already exists")
            continue
        try:
            media_file = MediaFile(input_file, ffprobe_cmd=tools.path("ffprobe"))
        except (FileNotFoundError, MediaProbeError) as e:
            logger.error(str(e))
            failures += 1
            continue
        options = get_handbrake_options(
            media_file, video_config, args.languages,
            audio_encoder=args.audio_codec or "copy",
        )
        if options is None:
            continue
        result = convert_with_handbrake(
            input_file, output_file, options, tools.path("HandBrakeCLI"),
            show_cmd=args.show_cmd, error_log_dir=args.output_dir,
        )
        failures += 0 if result.succeeded else 1
    return 1 if failures else 0


def run_plex(args: argparse.Namespace, user_config: UserConfig) -> int:
    if args.plex_command == "sign-in":
        token = sign_in(args.username, getpass.getpass("plex.tv password: "))
        if not token:
            return 1
        print(token)
        return 0

    if not user_config.plex_url or not user_config.plex_token:
        logger.error("Set plex.url and plex.token in config.user.yaml, or PLEX_URL and PLEX_TOKEN.")
        return 1
    client = PlexClient(user_config.plex_url, user_config.plex_token)

    if args.plex_command == "info":
        info = client.get_server_info()
        if info is None:
            return 1
        print(f"{info.name} {info.version} ({info.platform}) {info.machine_identifier}")
    elif args.plex_command == "libraries":
        libraries = client.get_libraries()
        for library in libraries:
            print(f"{library.key}\t{library.type}\t{library.title}\t{'; '.join(library.locations)}")
    elif args.plex_command in ("items", "search"):
        found = client.get_library_items(args.section) if args.plex_command == "items" else client.search(args.query)
        for item in found:
            year = f" ({item.year})" if item.year else ""
            print(f"{item.rating_key}\t{item.type}\t{item.title}{year}")
    elif args.plex_command == "refresh":
        return 0 if client.refresh_library(args.section) else 1
    return 0


def run_git(args: argparse.Namespace, tools: Tools) -> int:
    workflow = GitWorkflow(args.repo, git_cmd=tools.path("git"), gh_cmd=tools.path("gh"))
    if args.git_command == "feature":
        if not workflow.start_feature(args.name, args.base):
            return 1
        return 0 if not args.push or workflow.push_branch(args.name) else 1
    if not workflow.push_branch():
        return 1
    url = workflow.create_pull_request(args.title, args.body, args.base, args.draft)
    if url is None:
        return 1
    print(url)
    return 0


def main(argv: Optional[Sequence[str]] = None) -> int:
    """
    Parses the command line, configures logging and runs one command.

    Returns:
        The process exit code.
    """
    argv = list(sys.argv[1:] if argv is None else argv)

    # The config file decides some parser defaults, so it is read before parsing.
    pre_parser = argparse.ArgumentParser(add_help=False)
    pre_parser.add_argument("--config", type=Path, default=USER_CONFIG_PATH)
    known_args, _ = pre_parser.parse_known_args(argv)
    user_config = load_user_config(known_args.config)

    args = build_parser(user_config).parse_args(argv)
    configure_logger(args.log_level, args.log_file)
    logger.debug(f"Parsed arguments: {args}")

    tools = Tools(user_config.tools_dir)
    try:
        if args.command == "dvd":
            return run_dvd(args, user_config, tools)
        if args.command == "filter":
            return run_filter(args, tools)
        if args.command == "probe":
            return run_probe(args, tools)
        if args.command == "convert":
            return run_convert(args, tools)
        if args.command == "plex":
            return run_plex(args, user_config)
        if args.command == "git":
            return run_git(args, tools)
        if args.command == "tools":
            missing: List[str] = tools.verify(args.names)
            return 1 if missing else 0
    except MediaWorkflowException as e:
        logger.error(str(e))
        return 1
    return 1
