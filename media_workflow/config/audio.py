"""
Configuration settings related to audio processing.

This module defines the lookup tables used when an audio stream is re-encoded
and the caller only supplied a channel count. Both tables are read-only
mappings; the argument builders receive them as explicit parameters so they can
be swapped in tests without touching module state.
"""
from types import MappingProxyType
from typing import Mapping

# ======================================================================================
# Bitrate Selection
# ======================================================================================

# Target bitrate per output channel count. These are fixed business rules, not a
# cost model: any channel count missing from this table is rejected.
AUDIO_BITRATES: Mapping[int, str] = MappingProxyType(
    {
        1: "80k",
        2: "160k",
        6: "384k",
        8: "512k",
    }
)

# ======================================================================================
# Mixdown Selection
# ======================================================================================

# HandBrakeCLI `--mixdown` names per channel count.
AUDIO_MIXDOWNS: Mapping[int, str] = MappingProxyType(
    {
        1: "mono",
        2: "stereo",
        6: "5point1",
        8: "7point1",
    }
)

# ======================================================================================
# Encoder Defaults
# ======================================================================================

# HandBrakeCLI audio encoder used when a stream is re-encoded.
DEFAULT_HANDBRAKE_AUDIO_ENCODER = "av_aac"

# Source codecs HandBrake can pass through untouched.
HANDBRAKE_PASSTHRU_CODECS: Mapping[str, str] = MappingProxyType(
    {
        "ac3": "copy:ac3",
        "eac3": "copy:eac3",
        "dts": "copy:dts",
        "truehd": "copy:truehd",
        "aac": "copy:aac",
    }
)
