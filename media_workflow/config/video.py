"""
Configuration settings related to video processing.

This module defines constants for file patterns, encoder defaults,
the layout of a DVD processing run and the folders excluded from scans.
"""

# --- General Video Settings ---
DEFAULT_FILE_PATTERNS = ("*.mkv",)

# --- Encoder Settings ---
DEFAULT_VIDEO_ENCODER = "libx265"
DEFAULT_HANDBRAKE_VIDEO_ENCODER = "x265"
DEFAULT_PRESET = "slow"
DEFAULT_CRF = 20

# Valid quantizer range shared by CRF and constant-QP rate control (x264/x265).
MIN_QUALITY_VALUE = 0
MAX_QUALITY_VALUE = 51

# --- Processing Directory Layout ---
# Sub-directories created below the season directory of a DVD run.
CHAPTERS_SUBDIR = "chapters"
CAPTIONS_SUBDIR = "captions"
CONVERTED_SUBDIR = "converted"
PROCESSING_SUBDIRS = (CHAPTERS_SUBDIR, CAPTIONS_SUBDIR, CONVERTED_SUBDIR)

SEASON_DIR_TEMPLATE = "Season {season:02d}"
EPISODE_FILE_TEMPLATE = "{series} - s{season:02d}e{episode:02d} - {title}"

CHAPTERS_SUFFIX = ".chapters.txt"
CAPTIONS_SUFFIX = ".srt"
CONVERTED_SUFFIX = ".mkv"

# Keywords used to exclude certain folders from being scanned for media files.
EXCEPT_FOLDERS_KEYWORDS = (
    CHAPTERS_SUBDIR,
    CAPTIONS_SUBDIR,
    CONVERTED_SUBDIR,
    ".media_workflow_tmp_",
)

# Characters that are not allowed in file names on Windows and therefore
# stripped from episode titles.
INVALID_FILENAME_CHARS = '<>:"/\\|?*'
