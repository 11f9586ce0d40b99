"""
Defines custom exception types for the media-workflow toolkit.

These exceptions allow for specific error handling at the few places where the
toolkit raises instead of returning a sentinel: invalid configuration objects
are rejected at construction, and callers that want a hard failure from an
external tool can ask for one with `ProcessResult.check()`.

All custom exceptions inherit from the base `MediaWorkflowException`.
"""


class MediaWorkflowException(Exception):
    """Base class for all custom exceptions in the media-workflow toolkit."""

    pass


# --- Configuration / Argument Building Exceptions ---
class InvalidEncodingConfigError(MediaWorkflowException, ValueError):
    """
    Raised when an encoding configuration object is built with an invalid
    combination of values.

    Examples are an unknown rate-control mode, a CRF value outside 0-51, or an
    audio stream in copy mode that also names a codec. The error is raised at
    construction time so that an invalid config never reaches argument generation.
    """

    pass


class UnsupportedChannelCountError(InvalidEncodingConfigError):
    """
    Raised when an audio bitrate or mixdown has to be derived from a channel
    count that has no entry in the lookup table.

    There is no fallback value.
    """

    pass


# --- External Tool Exceptions ---
class ExternalToolError(MediaWorkflowException):
    """
    Raised when an external program exits with a nonzero status and the caller
    asked for an exception instead of a result object.

    Attributes:
        cmd: The executed argument list.
        exit_code: The process exit status.
        stderr: The captured standard error output, kept for diagnostics.
    """

    def __init__(self, cmd, exit_code: int, stderr: str = ""):
        self.cmd = list(cmd)
        self.exit_code = exit_code
        self.stderr = stderr
        program = self.cmd[0] if self.cmd else "<empty>"
        message = f"'{program}' failed with exit code {exit_code}"
        if stderr:
            message += f": {stderr.strip()[:500]}"
        super().__init__(message)


class MediaProbeError(MediaWorkflowException):
    """Raised when ffprobe cannot read a media file."""

    pass


# --- Metadata Lookup Exceptions ---
class MetadataLookupError(MediaWorkflowException):
    """
    Raised inside the HTTP clients when a remote API answers with an unusable
    response. The clients catch it themselves and return an empty sentinel.
    """

    pass
