"""
Utilities Package for the media-workflow toolkit.

This package contains helper modules that are not specific to any single
workflow but are used across the toolkit.

Modules:
    - process.py: Runs external programs (`run_cmd`) and provides scoped
      temporary work directories.
    - format_utils.py: Helper functions for formatting sizes and durations into
      human-readable strings, and for parsing size arguments.
    - tools.py: Locates and verifies the external executables (FFmpeg,
      HandBrakeCLI, MKVToolNix, git, gh).
"""
