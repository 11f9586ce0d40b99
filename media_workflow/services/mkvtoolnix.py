"""
Thin wrappers around the MKVToolNix command-line programs.
"""
import json
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

from loguru import logger

from ..config.video import CHAPTERS_SUFFIX
from ..utils.process import ProcessResult, run_cmd


def chapters_path_for(mkv_file: Path, output_dir: Path) -> Path:
    return output_dir / f"{mkv_file.stem}{CHAPTERS_SUFFIX}"


def extract_chapters(
    mkv_file: Path,
    output_dir: Path,
    mkvextract_cmd: str = "mkvextract",
    error_log_dir: Optional[Path] = None,
) -> ProcessResult:
    """
    Writes the chapters of `mkv_file` in OGM ("simple") format.

    Runs `mkvextract <file> chapters --simple <output_dir>/<stem>.chapters.txt`.
    mkvextract exits 0 and writes nothing for files without chapters, so a
    successful result does not guarantee the file exists; see `chapters_path_for`.
    """
    output_dir.mkdir(parents=True, exist_ok=True)
    chapters_file = chapters_path_for(mkv_file, output_dir)
    result = run_cmd(
        [mkvextract_cmd, str(mkv_file), "chapters", "--simple", str(chapters_file)],
        error_log_dir=error_log_dir,
    )
    if not result.succeeded:
        logger.error(f"Chapter extraction failed for {mkv_file.name} (exit code {result.exit_code})")
    elif chapters_file.exists():
        logger.debug(f"Extracted chapters: {chapters_file}")
    else:
        logger.info(f"{mkv_file.name} has no chapters.")
    return result


def extract_tracks(
    mkv_file: Path,
    tracks: Mapping[int, Path],
    mkvextract_cmd: str = "mkvextract",
    error_log_dir: Optional[Path] = None,
) -> ProcessResult:
    """Runs `mkvextract <file> tracks <id>:<path> ...` for the given track ids."""
    cmd = [mkvextract_cmd, str(mkv_file), "tracks"]
    for track_id, output_path in sorted(tracks.items()):
        output_path.parent.mkdir(parents=True, exist_ok=True)
        cmd.append(f"{track_id}:{output_path}")
    result = run_cmd(cmd, error_log_dir=error_log_dir)
    if not result.succeeded:
        logger.error(f"Track extraction failed for {mkv_file.name} (exit code {result.exit_code})")
    return result


def identify(mkv_file: Path, mkvmerge_cmd: str = "mkvmerge") -> Optional[Dict[str, Any]]:
    """
    Returns the container description from `mkvmerge -J`, or None on failure.

    The JSON has `container`, `tracks` (with `id`, `type`, `codec`,
    `properties`) and `chapters` keys.
    """
    result = run_cmd([mkvmerge_cmd, "-J", str(mkv_file)])
    if not result.succeeded:
        logger.error(f"mkvmerge could not identify {mkv_file.name} (exit code {result.exit_code})")
        return None
    try:
        return json.loads(result.stdout)
    except json.JSONDecodeError as e:
        logger.error(f"Unexpected mkvmerge output for {mkv_file.name}: {e}")
        return None
