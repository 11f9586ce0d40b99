"""
Selects audio streams by language from probed media files.

DVD rips often carry several audio tracks per language (main mix, commentary,
descriptive audio). A file with more same-language tracks than the caller
allows is ambiguous: it is skipped with a warning and the remaining files are
still processed.
"""
from collections import Counter
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence, Union

from loguru import logger

from ..config.common import LANGUAGE_WORDS, MAX_STREAMS_PER_LANGUAGE
from ..domain.exceptions import MediaProbeError
from ..domain.media import MediaFile, MediaStreamInfo


def normalize_languages(languages: Iterable[str]) -> frozenset:
    return frozenset(lang.strip().lower() for lang in languages if lang and lang.strip())


def select_audio_streams(
    media_file: MediaFile,
    languages: Sequence[str] = LANGUAGE_WORDS,
    max_streams_per_language: int = MAX_STREAMS_PER_LANGUAGE,
) -> Optional[List[MediaStreamInfo]]:
    """
    Returns the audio streams of one file whose language is wanted.

    Returns:
        The matching streams in stream order, or None when some language has
        more than `max_streams_per_language` matching streams.
    """
    wanted = normalize_languages(languages)
    matching = [s for s in media_file.audio_streams if s.language in wanted]
    counts = Counter(s.language for s in matching)
    over_limit = {lang: n for lang, n in counts.items() if n > max_streams_per_language}
    if over_limit:
        details = ", ".join(f"{lang}={n}" for lang, n in sorted(over_limit.items()))
        logger.warning(
            f"Skipping {media_file.filename}: more than {max_streams_per_language} audio streams "
            f"per language ({details})"
        )
        return None
    if not matching:
        logger.info(f"{media_file.filename}: no audio stream in {', '.join(sorted(wanted))}")
    return matching


def get_filtered_audio_streams(
    media_files: Iterable[Union[Path, MediaFile]],
    languages: Sequence[str] = LANGUAGE_WORDS,
    max_streams_per_language: int = MAX_STREAMS_PER_LANGUAGE,
    ffprobe_cmd: str = "ffprobe",
) -> Dict[Path, List[MediaStreamInfo]]:
    """
    Probes each file and keeps its audio streams in the wanted languages.

    Files that cannot be probed, and files with too many same-language streams,
    are logged and left out of the result. Files without any matching stream
    are kept with an empty list.

    Args:
        media_files: Paths or already probed `MediaFile` objects.
        languages: Language tags to keep, compared case-insensitively ("eng", "en", ...).
        max_streams_per_language: Upper bound of matching streams per language.
        ffprobe_cmd: ffprobe executable used for paths.

    Returns:
        A mapping of file path to the selected streams, in input order.
    """
    result: Dict[Path, List[MediaStreamInfo]] = {}
    for item in media_files:
        if isinstance(item, MediaFile):
            media_file = item
        else:
            try:
                media_file = MediaFile(item, ffprobe_cmd=ffprobe_cmd)
            except (FileNotFoundError, MediaProbeError) as e:
                logger.error(f"Skipping {item}: {e}")
                continue

        streams = select_audio_streams(media_file, languages, max_streams_per_language)
        if streams is None:
            continue
        result[media_file.path] = streams
    return result
