"""
Services Package for the media-workflow toolkit.

A service performs one specific, high-level task on behalf of the pipeline or
the CLI. Services sit between the pipeline (the order of the work) and the
domain models plus external tools (the data and the executables).

- **File and stream filters (`file_filter`, `stream_filter`):**
  Discover candidate video files by pattern and size, and select audio streams
  by language from ffprobe output.

- **Conversion (`conversion`, `handbrake`):**
  Build and run FFmpeg and HandBrakeCLI commands from the encoding
  configuration objects.

- **MKVToolNix (`mkvtoolnix`):**
  Chapter and track extraction, container identification.

- **Remote APIs (`tvdb_client`, `plex_client`, `git_workflow`):**
  Episode metadata lookup, the Plex Media Server REST API, and Git/GitHub
  branch-and-PR automation.

- **Logging Service (`SuccessLog`, `ErrorLog`):**
  Structured file logs for successful conversions (YAML) and errors (plain
  text), separate from the real-time console logging.
"""
