"""
Configuration Package for media-workflow.

This package centralizes the static configuration of the toolkit. Keeping the
constants apart from the services means tool names, lookup tables and default
thresholds can be changed without touching the pipeline code.

This package includes settings for:
- Logging format and the user configuration file (`config.user.yaml`).
- Video file identification, default encoders and the processing directory layout.
- Audio bitrate and mixdown lookup tables keyed by channel count.
"""
