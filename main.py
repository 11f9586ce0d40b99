"""
Main entry point for the media-workflow toolkit.

This script sets up the console logger, parses the command line and runs the
selected workflow. The exit status is 0 on success and 1 on failure.

Examples:
    python main.py dvd D:/rips/firefly_d1 D:/TV --series Firefly --season 1 --series-id 78874 --chapters
    python main.py convert ./rips --output-dir ./converted --rate-control CRF --quality 22
    python main.py plex refresh 2
"""

import sys

from loguru import logger

from media_workflow.cli import main
from media_workflow.config.common import LOGGER_FORMAT

# Configure the logger for initial setup.
# The level is set again from the command-line arguments in `main`.
logger.remove()
logger.add(sys.stderr, level="INFO", format=LOGGER_FORMAT)


if __name__ == "__main__":
    sys.exit(main())
