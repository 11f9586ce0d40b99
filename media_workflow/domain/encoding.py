"""
Encoding configuration objects and their command-line argument builders.

Every conversion request is described by immutable value objects that are
validated once, when they are created, and then turned into ordered argument
lists for FFmpeg or HandBrakeCLI:

- `VideoEncodingConfig`: codec, rate control (VBR / CRF / CQP) and the optional
  preset, profile, level and container flags.
- `AudioStreamConfig`: one output audio stream, either copied or re-encoded.
- `AudioTrackMapping`: one HandBrakeCLI audio track.
- `SubtitleTrackMapping`: one subtitle stream for FFmpeg or HandBrakeCLI.

Invalid combinations raise `InvalidEncodingConfigError` at construction, so the
`to_*_args()` methods only ever see consistent data. The one rule that is
checked at build time is the audio bitrate lookup, because it depends on the
lookup table handed to the builder.
"""
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, List, Mapping, Optional, Tuple, Union

from ..config.audio import AUDIO_BITRATES
from ..config.video import MAX_QUALITY_VALUE, MIN_QUALITY_VALUE
from .exceptions import InvalidEncodingConfigError, UnsupportedChannelCountError

_BITRATE_PATTERN = re.compile(r"^(\d+(?:\.\d+)?)([kKmM]?)$")


class RateControlMode(Enum):
    """Video rate-control modes."""

    VBR = "VBR"  # bitrate-targeted
    CRF = "CRF"  # quality-targeted
    CQP = "CQP"  # quantizer-targeted

    @classmethod
    def parse(cls, value: Union["RateControlMode", str]) -> "RateControlMode":
        """Accepts an enum member or its name in any case ("crf", "Vbr", ...)."""
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            try:
                return cls[value.strip().upper()]
            except KeyError:
                pass
        valid = ", ".join(m.value for m in cls)
        raise InvalidEncodingConfigError(
            f"Unknown rate control mode {value!r}. Expected one of: {valid}."
        )


class AudioStreamMode(Enum):
    """Whether an audio stream is passed through or re-encoded."""

    COPY = "copy"
    ENCODE = "encode"

    @classmethod
    def parse(cls, value: Union["AudioStreamMode", str]) -> "AudioStreamMode":
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            for member in cls:
                if member.value == value.strip().lower():
                    return member
        raise InvalidEncodingConfigError(
            f"Unknown audio stream mode {value!r}. Expected 'copy' or 'encode'."
        )


def normalize_bitrate(value: Union[int, str]) -> str:
    """
    Normalizes a bitrate to FFmpeg notation.

    Integers are taken as kbit/s (`5000` -> "5000k"); strings must look like
    "5000k", "5M" or a plain number of bit/s.

    Raises:
        InvalidEncodingConfigError: If the value is not a positive bitrate.
    """
    if isinstance(value, bool):
        raise InvalidEncodingConfigError(f"Invalid bitrate {value!r}.")
    if isinstance(value, int):
        if value <= 0:
            raise InvalidEncodingConfigError(f"Bitrate must be positive, got {value}.")
        return f"{value}k"
    if isinstance(value, str):
        match = _BITRATE_PATTERN.match(value.strip())
        if match and float(match.group(1)) > 0:
            return value.strip()
    raise InvalidEncodingConfigError(
        f"Invalid bitrate {value!r}. Use kbit/s as an integer or a string like '5000k' or '5M'."
    )


def bitrate_to_kbps(bitrate: str) -> int:
    """Converts an FFmpeg-style bitrate string to whole kbit/s (HandBrake's unit)."""
    match = _BITRATE_PATTERN.match(bitrate)
    if not match:
        raise InvalidEncodingConfigError(f"Invalid bitrate {bitrate!r}.")
    number, unit = float(match.group(1)), match.group(2).lower()
    if unit == "m":
        return int(number * 1000)
    if unit == "k":
        return int(number)
    return max(1, int(number / 1000))


def _validate_quality(name: str, value) -> None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise InvalidEncodingConfigError(f"{name} must be a number, got {value!r}.")
    if not MIN_QUALITY_VALUE <= value <= MAX_QUALITY_VALUE:
        raise InvalidEncodingConfigError(
            f"{name} {value} is outside the valid range "
            f"{MIN_QUALITY_VALUE}-{MAX_QUALITY_VALUE}."
        )


def _format_number(value: Union[int, float]) -> str:
    # 23.0 -> "23", 18.5 -> "18.5"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


@dataclass(frozen=True)
class VideoEncodingConfig:
    """
    Immutable description of how the video stream is encoded.

    Exactly one rate value is stored; which of `bitrate`, `crf` or `qp` it
    represents is decided by `rate_control_mode`, so the "one and only one"
    invariant holds by construction.

    Attributes:
        codec: Encoder name as the target tool knows it ("libx265" for FFmpeg,
            "x265" for HandBrakeCLI).
        rate_control_mode: VBR, CRF or CQP. Strings are accepted and parsed.
        rate_value: Bitrate for VBR (int kbit/s or "5000k"/"5M"), CRF value
            (0-51, fractional allowed) or QP value (0-51, integer).
        preset: Encoder speed preset, e.g. "slow".
        profile: Encoder profile, e.g. "main10".
        level: Encoder level, e.g. "4.1".
        pixel_format: FFmpeg pixel format, e.g. "yuv420p10le".
        metadata: Global metadata tags written by FFmpeg.
        faststart: Move the MP4 index to the front (`-movflags +faststart`).
    """

    codec: str
    rate_control_mode: RateControlMode
    rate_value: Union[int, float, str]
    preset: Optional[str] = None
    profile: Optional[str] = None
    level: Optional[str] = None
    pixel_format: Optional[str] = None
    metadata: Tuple[Tuple[str, str], ...] = field(default_factory=tuple)
    faststart: bool = False

    def __post_init__(self):
        if not self.codec or not str(self.codec).strip():
            raise InvalidEncodingConfigError("A video codec is required.")
        mode = RateControlMode.parse(self.rate_control_mode)
        object.__setattr__(self, "rate_control_mode", mode)

        if mode is RateControlMode.VBR:
            object.__setattr__(self, "rate_value", normalize_bitrate(self.rate_value))
        elif mode is RateControlMode.CRF:
            _validate_quality("CRF", self.rate_value)
        else:
            if isinstance(self.rate_value, float) and not self.rate_value.is_integer():
                raise InvalidEncodingConfigError(
                    f"QP must be a whole number, got {self.rate_value}."
                )
            _validate_quality("QP", self.rate_value)
            object.__setattr__(self, "rate_value", int(self.rate_value))

        if isinstance(self.metadata, Mapping):
            object.__setattr__(self, "metadata", tuple(self.metadata.items()))
        else:
            object.__setattr__(self, "metadata", tuple(tuple(kv) for kv in self.metadata))

    # --- Factories ---

    @classmethod
    def crf_mode(cls, codec: str, crf: Union[int, float], **kwargs) -> "VideoEncodingConfig":
        return cls(codec, RateControlMode.CRF, crf, **kwargs)

    @classmethod
    def vbr_mode(cls, codec: str, bitrate: Union[int, str], **kwargs) -> "VideoEncodingConfig":
        return cls(codec, RateControlMode.VBR, bitrate, **kwargs)

    @classmethod
    def cqp_mode(cls, codec: str, qp: int, **kwargs) -> "VideoEncodingConfig":
        return cls(codec, RateControlMode.CQP, qp, **kwargs)

    # --- Rate accessors ---

    @property
    def bitrate(self) -> Optional[str]:
        return self.rate_value if self.rate_control_mode is RateControlMode.VBR else None

    @property
    def crf(self) -> Optional[Union[int, float]]:
        return self.rate_value if self.rate_control_mode is RateControlMode.CRF else None

    @property
    def qp(self) -> Optional[int]:
        return self.rate_value if self.rate_control_mode is RateControlMode.CQP else None

    # --- Argument builders ---

    def _rate_control_ffmpeg_args(self) -> List[str]:
        if self.rate_control_mode is RateControlMode.VBR:
            return ["-b:v", self.bitrate]
        if self.rate_control_mode is RateControlMode.CRF:
            return ["-crf", _format_number(self.crf)]
        return ["-qp", str(self.qp)]

    def to_ffmpeg_args(self) -> List[str]:
        """
        Builds the FFmpeg video arguments.

        The order is fixed: codec, preset, rate control, profile, level, pixel
        format, metadata tags, container flags. Optional values that are not set
        produce no flag at all.

        Returns:
            A new list of argument strings.
        """
        args = ["-c:v", self.codec]
        if self.preset:
            args += ["-preset", self.preset]
        args += self._rate_control_ffmpeg_args()
        if self.profile:
            args += ["-profile:v", self.profile]
        if self.level:
            args += ["-level:v", str(self.level)]
        if self.pixel_format:
            args += ["-pix_fmt", self.pixel_format]
        for key, value in self.metadata:
            args += ["-metadata", f"{key}={value}"]
        if self.faststart:
            args += ["-movflags", "+faststart"]
        return args

    def to_handbrake_args(self) -> List[str]:
        """
        Builds the HandBrakeCLI video arguments.

        CRF maps to `--quality`, VBR to `--vb` in kbit/s. HandBrake has no
        constant-QP switch, so CQP is passed to x264/x265 through `--encopts`.
        """
        args = ["--encoder", self.codec]
        if self.preset:
            args += ["--encoder-preset", self.preset]
        if self.rate_control_mode is RateControlMode.VBR:
            args += ["--vb", str(bitrate_to_kbps(self.bitrate))]
        elif self.rate_control_mode is RateControlMode.CRF:
            args += ["--quality", _format_number(self.crf)]
        else:
            args += ["--encopts", f"qp={self.qp}"]
        if self.profile:
            args += ["--encoder-profile", self.profile]
        if self.level:
            args += ["--encoder-level", str(self.level)]
        return args

    def __str__(self) -> str:
        if self.rate_control_mode is RateControlMode.VBR:
            rate = f"bitrate={self.bitrate}"
        elif self.rate_control_mode is RateControlMode.CRF:
            rate = f"crf={_format_number(self.crf)}"
        else:
            rate = f"qp={self.qp}"
        parts = [f"codec={self.codec}", f"mode={self.rate_control_mode.value}", rate]
        if self.preset:
            parts.append(f"preset={self.preset}")
        if self.profile:
            parts.append(f"profile={self.profile}")
        if self.level:
            parts.append(f"level={self.level}")
        return f"VideoEncodingConfig({', '.join(parts)})"


@dataclass(frozen=True)
class AudioStreamConfig:
    """
    One output audio stream.

    In COPY mode the stream is passed through and `codec`, `bitrate` and
    `channels` must stay unset. In ENCODE mode `codec` is required; when only
    `channels` is given, the bitrate comes from the lookup table passed to
    `to_ffmpeg_args`.

    Attributes:
        input_stream_index: Global stream index in the input file (`0:<index>`).
        title: Title tag written to the output stream.
        mode: COPY or ENCODE. Strings are accepted and parsed.
        codec: FFmpeg audio encoder, e.g. "aac" or "libopus".
        bitrate: Explicit bitrate ("192k" or int kbit/s).
        channels: Output channel count.
        language: Optional ISO 639-2 language tag.
    """

    input_stream_index: int
    title: str
    mode: AudioStreamMode = AudioStreamMode.COPY
    codec: Optional[str] = None
    bitrate: Optional[Union[int, str]] = None
    channels: Optional[int] = None
    language: Optional[str] = None

    def __post_init__(self):
        mode = AudioStreamMode.parse(self.mode)
        object.__setattr__(self, "mode", mode)
        if isinstance(self.input_stream_index, bool) or not isinstance(self.input_stream_index, int) \
                or self.input_stream_index < 0:
            raise InvalidEncodingConfigError(
                f"Invalid input stream index {self.input_stream_index!r}."
            )

        if mode is AudioStreamMode.COPY:
            if self.codec is not None or self.bitrate is not None or self.channels is not None:
                raise InvalidEncodingConfigError(
                    "An audio stream in copy mode cannot set codec, bitrate or channels."
                )
            return

        if not self.codec:
            raise InvalidEncodingConfigError("An audio stream in encode mode requires a codec.")
        if self.bitrate is not None:
            object.__setattr__(self, "bitrate", normalize_bitrate(self.bitrate))
        if self.channels is not None and (
            isinstance(self.channels, bool) or not isinstance(self.channels, int) or self.channels <= 0
        ):
            raise InvalidEncodingConfigError(f"Invalid channel count {self.channels!r}.")

    @classmethod
    def copy(cls, input_stream_index: int, title: str, language: Optional[str] = None) -> "AudioStreamConfig":
        return cls(input_stream_index, title, AudioStreamMode.COPY, language=language)

    @classmethod
    def encode(
        cls,
        input_stream_index: int,
        title: str,
        codec: str,
        bitrate: Optional[Union[int, str]] = None,
        channels: Optional[int] = None,
        language: Optional[str] = None,
    ) -> "AudioStreamConfig":
        return cls(input_stream_index, title, AudioStreamMode.ENCODE, codec, bitrate, channels, language)

    def resolve_bitrate(self, bitrate_table: Mapping[int, str] = AUDIO_BITRATES) -> Optional[str]:
        """
        Returns the explicit bitrate, or the table entry for `channels`.

        Raises:
            UnsupportedChannelCountError: If the bitrate has to come from the
                table and the channel count has no entry.
        """
        if self.mode is AudioStreamMode.COPY:
            return None
        if self.bitrate is not None:
            return self.bitrate
        if self.channels is None:
            return None
        try:
            return bitrate_table[self.channels]
        except KeyError:
            supported = ", ".join(str(c) for c in sorted(bitrate_table))
            raise UnsupportedChannelCountError(
                f"No default bitrate for {self.channels} channels "
                f"(stream {self.input_stream_index}). Supported: {supported}."
            ) from None

    def to_ffmpeg_args(self, output_index: int, bitrate_table: Mapping[int, str] = AUDIO_BITRATES) -> List[str]:
        """
        Builds the FFmpeg arguments mapping this stream to output audio stream
        `output_index`.

        Raises:
            UnsupportedChannelCountError: See `resolve_bitrate`.
        """
        args = ["-map", f"0:{self.input_stream_index}"]
        if self.mode is AudioStreamMode.COPY:
            args += [f"-c:a:{output_index}", "copy"]
        else:
            args += [f"-c:a:{output_index}", self.codec]
            bitrate = self.resolve_bitrate(bitrate_table)
            if bitrate:
                args += [f"-b:a:{output_index}", bitrate]
            if self.channels:
                args += [f"-ac:a:{output_index}", str(self.channels)]
        args += [f"-metadata:s:a:{output_index}", f"title={self.title}"]
        if self.language:
            args += [f"-metadata:s:a:{output_index}", f"language={self.language}"]
        return args


def build_ffmpeg_audio_args(
    configs: Iterable[AudioStreamConfig], bitrate_table: Mapping[int, str] = AUDIO_BITRATES
) -> List[str]:
    """Concatenates the arguments of several audio streams, numbering outputs from 0."""
    args: List[str] = []
    for output_index, config in enumerate(configs):
        args += config.to_ffmpeg_args(output_index, bitrate_table)
    return args


@dataclass(frozen=True)
class AudioTrackMapping:
    """
    One HandBrakeCLI audio track.

    Attributes:
        track_number: 1-based audio track number as HandBrake lists it.
        encoder: HandBrake audio encoder ("av_aac", "copy:ac3", ...).
        bitrate: Bitrate in kbit/s, ignored by passthru encoders.
        mixdown: HandBrake mixdown name ("stereo", "5point1", ...).
        name: Track name.
    """

    track_number: int
    encoder: str
    bitrate: Optional[int] = None
    mixdown: Optional[str] = None
    name: Optional[str] = None

    def __post_init__(self):
        if isinstance(self.track_number, bool) or not isinstance(self.track_number, int) or self.track_number < 1:
            raise InvalidEncodingConfigError(
                f"HandBrake audio track numbers start at 1, got {self.track_number!r}."
            )
        if not self.encoder:
            raise InvalidEncodingConfigError("An audio track mapping requires an encoder.")

    @property
    def is_passthru(self) -> bool:
        return self.encoder.startswith("copy")


def build_handbrake_audio_args(mappings: Iterable[AudioTrackMapping]) -> List[str]:
    """
    Joins per-track values into HandBrakeCLI's comma-separated audio options.

    Passthru tracks still need a placeholder in the bitrate and mixdown lists
    so positions line up; HandBrake ignores those entries.
    """
    mappings = list(mappings)
    if not mappings:
        return ["--audio", "none"]
    args = [
        "--audio", ",".join(str(m.track_number) for m in mappings),
        "--aencoder", ",".join(m.encoder for m in mappings),
    ]
    if any(m.bitrate for m in mappings if not m.is_passthru):
        args += ["--ab", ",".join(str(m.bitrate or 0) for m in mappings)]
    if any(m.mixdown for m in mappings if not m.is_passthru):
        args += ["--mixdown", ",".join(m.mixdown or "none" for m in mappings)]
    if any(m.name for m in mappings):
        args += ["--aname", ",".join((m.name or "").replace(",", " ") for m in mappings)]
    return args


@dataclass(frozen=True)
class SubtitleTrackMapping:
    """
    One subtitle stream.

    Attributes:
        input_stream_index: Global stream index in the input file (FFmpeg).
        track_number: 1-based subtitle track number (HandBrakeCLI).
        codec: FFmpeg subtitle codec, "copy" by default.
        language: ISO 639-2 language tag.
        title: Title tag.
        default: Mark as the default subtitle track.
        forced: Mark as forced.
    """

    input_stream_index: int
    track_number: Optional[int] = None
    codec: str = "copy"
    language: Optional[str] = None
    title: Optional[str] = None
    default: bool = False
    forced: bool = False

    def __post_init__(self):
        if isinstance(self.input_stream_index, bool) or not isinstance(self.input_stream_index, int) \
                or self.input_stream_index < 0:
            raise InvalidEncodingConfigError(
                f"Invalid subtitle stream index {self.input_stream_index!r}."
            )
        if self.track_number is not None and self.track_number < 1:
            raise InvalidEncodingConfigError(
                f"HandBrake subtitle track numbers start at 1, got {self.track_number}."
            )

    def to_ffmpeg_args(self, output_index: int) -> List[str]:
        args = ["-map", f"0:{self.input_stream_index}", f"-c:s:{output_index}", self.codec]
        if self.language:
            args += [f"-metadata:s:s:{output_index}", f"language={self.language}"]
        if self.title:
            args += [f"-metadata:s:s:{output_index}", f"title={self.title}"]
        dispositions = [d for d, on in (("default", self.default), ("forced", self.forced)) if on]
        args += [f"-disposition:s:{output_index}", "+".join(dispositions) if dispositions else "0"]
        return args


def build_ffmpeg_subtitle_args(mappings: Iterable[SubtitleTrackMapping]) -> List[str]:
    args: List[str] = []
    for output_index, mapping in enumerate(mappings):
        args += mapping.to_ffmpeg_args(output_index)
    return args


def build_handbrake_subtitle_args(mappings: Iterable[SubtitleTrackMapping]) -> List[str]:
    """
    Builds `--subtitle` and the default/forced flags for HandBrakeCLI.

    `--subtitle-default` and `--subtitle-forced` refer to the position within
    the `--subtitle` list, not to the source track number. HandBrakeCLI keeps
    only the last occurrence of each flag, so forced positions are joined into
    one comma list and only the first default track is marked.
    """
    mappings = [m for m in mappings if m.track_number is not None]
    if not mappings:
        return ["--subtitle", "none"]
    args = ["--subtitle", ",".join(str(m.track_number) for m in mappings)]
    default_positions = [p for p, m in enumerate(mappings, start=1) if m.default]
    forced_positions = [str(p) for p, m in enumerate(mappings, start=1) if m.forced]
    if default_positions:
        args.append(f"--subtitle-default={default_positions[0]}")
    if forced_positions:
        args.append(f"--subtitle-forced={','.join(forced_positions)}")
    return args
