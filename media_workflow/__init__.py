"""
media-workflow: automation for personal media-management workflows.

The package drives external tools (FFmpeg, FFprobe, HandBrakeCLI, MKVToolNix),
talks to the Plex Media Server and TVDb REST APIs, scripts Git/GitHub branch
and pull-request workflows, and orchestrates DVD processing runs.

Sub-packages:
    config: Constants and the user configuration loader.
    domain: Validated value objects and the ffprobe-backed media model.
    services: File/stream filters, converters and API clients.
    pipeline: The DVD processing pipeline.
    utils: Process execution, formatting and tool location helpers.
"""

__version__ = "0.1.0"
