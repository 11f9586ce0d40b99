"""
This package contains the core domain models of the media-workflow toolkit.

The domain layer holds the value objects the rest of the toolkit passes around.
It depends only on the configuration package and on ffmpeg-python for probing;
it never runs external tools other than ffprobe and never talks to the network.

Modules:
    exceptions.py: Custom exception types, rooted at `MediaWorkflowException`.
    encoding.py: Validated encoding configuration objects (`VideoEncodingConfig`,
                 `AudioStreamConfig`, `AudioTrackMapping`, `SubtitleTrackMapping`)
                 and the builders that turn them into FFmpeg / HandBrakeCLI arguments.
    media.py: `MediaFile` and `MediaStreamInfo`, a read-only view of ffprobe output.
    models.py: `Episode` and `ProcessingDirectoryStructure` records used by the
               DVD processing pipeline.
"""
