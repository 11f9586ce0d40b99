"""
Common configuration settings used throughout the application.

This module contains globally shared configuration settings and constants that are
used across the whole toolkit. It centralizes parameters for logging, file and
directory management and the external services (Plex, TVDb).
It also handles the loading of user-specific configuration from an external
YAML file, so tool locations and API credentials never have to be hardcoded.
"""
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Tuple

import yaml
from loguru import logger

# --- User-Defined Configuration ---
# Settings are read from 'config.user.yaml' at the project root. The location
# can be overridden with the MEDIA_WORKFLOW_CONFIG environment variable.

PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
USER_CONFIG_PATH = Path(
    os.environ.get("MEDIA_WORKFLOW_CONFIG", PROJECT_ROOT / "config.user.yaml")
)


# --- Logging Configuration ---

# The format string for the Loguru logger.
LOGGER_FORMAT = (
    "<green>{time:MM-DD HH:mm:ss}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | "
    "<level>{message}</level>"
)

# The length of the random string used in temporary work directory names.
RANDOM_NAME_LENGTH = 10


# --- Directory and File Management ---

# The filename for the YAML log recording successful conversions.
SUCCESS_LOG_YAML = "success_log.yaml"

# The filename for the text file that logs every external command executed
# for an output directory.
COMMAND_TEXT = "cmd.txt"

# Prefix for temporary work directories created during a run.
TEMP_DIR_PREFIX = ".media_workflow_tmp_"

# Files at or below this size (100 MB) are considered menus, trailers or
# other DVD extras rather than episodes.
MINIMUM_FILE_SIZE = 100 * 1024 * 1024

# Preferred languages for audio and subtitle selection (ISO 639-1 / 639-2).
LANGUAGE_WORDS = ("en", "eng", "english")

# At most this many audio streams of one language are expected per file.
# Files with more are skipped, since the track order can no longer be trusted.
MAX_STREAMS_PER_LANGUAGE = 2


# --- External Services ---

PLEX_TV_SIGN_IN_URL = "https://plex.tv/users/sign_in.json"
PLEX_PRODUCT_NAME = "media-workflow"
TVDB_BASE_URL = "https://api4.thetvdb.com/v4"
HTTP_TIMEOUT_SECONDS = 10


@dataclass
class UserConfig:
    """
    Settings loaded from `config.user.yaml`.

    Attributes:
        tools_dir: Directory holding ffmpeg, HandBrakeCLI, mkvextract, etc.
            None means the executables are looked up on the system PATH.
        plex_url: Base URL of the Plex Media Server, e.g. "http://localhost:32400".
        plex_token: The X-Plex-Token used for every Plex request.
        tvdb_api_key: TVDb v4 project API key.
        tvdb_pin: Optional TVDb subscriber PIN.
        minimum_file_size: Size threshold (bytes) for episode files.
        languages: Preferred audio/subtitle languages.
    """

    tools_dir: Optional[Path] = None
    plex_url: Optional[str] = None
    plex_token: Optional[str] = None
    tvdb_api_key: Optional[str] = None
    tvdb_pin: Optional[str] = None
    minimum_file_size: int = MINIMUM_FILE_SIZE
    languages: Tuple[str, ...] = field(default_factory=lambda: LANGUAGE_WORDS)


def load_user_config(path: Path = USER_CONFIG_PATH) -> UserConfig:
    """
    Loads the user configuration file and applies environment overrides.

    A missing or unreadable file is not an error: the defaults are used and
    executables are expected on the system PATH. The environment variables
    PLEX_URL, PLEX_TOKEN and TVDB_API_KEY take precedence over the file.

    Args:
        path: Location of the YAML configuration file.

    Returns:
        A populated `UserConfig`.
    """
    config = UserConfig()
    if path.is_file():
        try:
            with path.open("r", encoding="utf-8") as f:
                user_config = yaml.safe_load(f) or {}
            paths_config = user_config.get("paths") or {}
            plex_config = user_config.get("plex") or {}
            tvdb_config = user_config.get("tvdb") or {}
            defaults_config = user_config.get("defaults") or {}

            if paths_config.get("tools_dir"):
                config.tools_dir = Path(paths_config["tools_dir"])
            config.plex_url = plex_config.get("url")
            config.plex_token = plex_config.get("token")
            config.tvdb_api_key = tvdb_config.get("api_key")
            config.tvdb_pin = tvdb_config.get("pin")
            if defaults_config.get("minimum_file_size") is not None:
                config.minimum_file_size = int(defaults_config["minimum_file_size"])
            if defaults_config.get("languages"):
                config.languages = tuple(
                    str(lang).lower() for lang in defaults_config["languages"]
                )
        except (OSError, yaml.YAMLError, ValueError, TypeError, AttributeError) as e:
            logger.warning(f"Could not load or parse '{path}': {e}")
    else:
        logger.debug(f"User config '{path}' not found. Using defaults and the system PATH.")

    config.plex_url = os.environ.get("PLEX_URL", config.plex_url)
    config.plex_token = os.environ.get("PLEX_TOKEN", config.plex_token)
    config.tvdb_api_key = os.environ.get("TVDB_API_KEY", config.tvdb_api_key)
    return config
