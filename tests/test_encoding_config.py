"""Tests for VideoEncodingConfig."""

import dataclasses

import pytest

from media_workflow.domain.encoding import RateControlMode, VideoEncodingConfig
from media_workflow.domain.exceptions import InvalidEncodingConfigError


def test_crf_args_include_crf_and_preset_without_bitrate():
    config = VideoEncodingConfig.crf_mode("libx265", 23, preset="slow")
    args = config.to_ffmpeg_args()

    assert args[args.index("-crf") + 1] == "23"
    assert args[args.index("-preset") + 1] == "slow"
    assert "-b:v" not in args
    assert "-qp" not in args


def test_ffmpeg_args_follow_fixed_order():
    config = VideoEncodingConfig(
        "libx264", "vbr", "5000k",
        preset="medium", profile="high", level="4.1", pixel_format="yuv420p",
        metadata={"title": "Pilot"}, faststart=True,
    )
    assert config.to_ffmpeg_args() == [
        "-c:v", "libx264",
        "-preset", "medium",
        "-b:v", "5000k",
        "-profile:v", "high",
        "-level:v", "4.1",
        "-pix_fmt", "yuv420p",
        "-metadata", "title=Pilot",
        "-movflags", "+faststart",
    ]


def test_optional_fields_emit_no_flags():
    assert VideoEncodingConfig.cqp_mode("libx265", 28).to_ffmpeg_args() == ["-c:v", "libx265", "-qp", "28"]


def test_exactly_one_rate_value_is_exposed():
    vbr = VideoEncodingConfig.vbr_mode("libx264", 4000)
    assert (vbr.bitrate, vbr.crf, vbr.qp) == ("4000k", None, None)
    crf = VideoEncodingConfig.crf_mode("libx264", 18.5)
    assert (crf.bitrate, crf.crf, crf.qp) == (None, 18.5, None)
    cqp = VideoEncodingConfig.cqp_mode("libx264", 20)
    assert (cqp.bitrate, cqp.crf, cqp.qp) == (None, None, 20)


def test_mode_strings_are_parsed():
    assert VideoEncodingConfig("x265", "crf", 20).rate_control_mode is RateControlMode.CRF
    assert VideoEncodingConfig("x265", "Cqp", 20).rate_control_mode is RateControlMode.CQP


def test_unknown_mode_is_rejected():
    with pytest.raises(InvalidEncodingConfigError):
        VideoEncodingConfig("libx265", "ABR", 20)


@pytest.mark.parametrize("value", [-1, 52, 99.5])
def test_quality_outside_range_is_rejected(value):
    with pytest.raises(InvalidEncodingConfigError):
        VideoEncodingConfig.crf_mode("libx265", value)
    with pytest.raises(InvalidEncodingConfigError):
        VideoEncodingConfig.cqp_mode("libx265", value)


def test_quality_range_bounds_are_accepted():
    assert VideoEncodingConfig.crf_mode("libx265", 0).crf == 0
    assert VideoEncodingConfig.cqp_mode("libx265", 51).qp == 51


@pytest.mark.parametrize("bitrate", [0, -500, "fast", "", "0k"])
def test_invalid_vbr_bitrate_is_rejected(bitrate):
    with pytest.raises(InvalidEncodingConfigError):
        VideoEncodingConfig.vbr_mode("libx264", bitrate)


def test_fractional_qp_is_rejected():
    with pytest.raises(InvalidEncodingConfigError):
        VideoEncodingConfig.cqp_mode("libx265", 20.5)


def test_missing_codec_is_rejected():
    with pytest.raises(InvalidEncodingConfigError):
        VideoEncodingConfig.crf_mode("", 20)


def test_config_is_immutable():
    config = VideoEncodingConfig.crf_mode("libx265", 20)
    with pytest.raises(dataclasses.FrozenInstanceError):
        config.rate_value = 30


def test_handbrake_args():
    crf = VideoEncodingConfig.crf_mode("x265", 20, preset="slow", profile="main10", level="4.1")
    assert crf.to_handbrake_args() == [
        "--encoder", "x265", "--encoder-preset", "slow", "--quality", "20",
        "--encoder-profile", "main10", "--encoder-level", "4.1",
    ]
    assert VideoEncodingConfig.vbr_mode("x264", "5M").to_handbrake_args() == ["--encoder", "x264", "--vb", "5000"]
    assert VideoEncodingConfig.cqp_mode("x264", 22).to_handbrake_args() == ["--encoder", "x264", "--encopts", "qp=22"]


@pytest.mark.parametrize(
    "config, mode, rate",
    [
        (VideoEncodingConfig.crf_mode("libx265", 23, preset="slow"), "CRF", "23"),
        (VideoEncodingConfig.vbr_mode("libx264", "5000k"), "VBR", "5000k"),
        (VideoEncodingConfig.cqp_mode("libx264", 30), "CQP", "30"),
    ],
)
def test_str_names_mode_and_rate(config, mode, rate):
    text = str(config)
    assert mode in text
    assert rate in text


def test_args_are_new_lists():
    config = VideoEncodingConfig.crf_mode("libx265", 20)
    config.to_ffmpeg_args().append("-an")
    assert "-an" not in config.to_ffmpeg_args()
