"""Tests for FFmpeg command building and batch conversion."""

from pathlib import Path

import yaml

from conftest import audio_stream, failed, make_file, probe_result, video_stream

from media_workflow.domain.encoding import AudioStreamConfig, SubtitleTrackMapping, VideoEncodingConfig
from media_workflow.services import conversion as conversion_module
from media_workflow.services.conversion import build_ffmpeg_command, convert_video_files

VIDEO = VideoEncodingConfig.crf_mode("libx265", 22, preset="slow")


def test_command_layout():
    cmd = build_ffmpeg_command(
        Path("in.mkv"), Path("out.mkv"), VIDEO,
        [AudioStreamConfig.copy(1, "Main")], [SubtitleTrackMapping(3)], extra_args=["-max_muxing_queue_size", "1024"],
    )

    assert cmd[:7] == ["ffmpeg", "-hide_banner", "-y", "-i", "in.mkv", "-map", "0:v:0"]
    assert cmd[7:13] == ["-c:v", "libx265", "-preset", "slow", "-crf", "22"]
    assert cmd.index("-c:a:0") < cmd.index("-c:s:0") < cmd.index("-max_muxing_queue_size")
    assert cmd[-1] == "out.mkv"


def test_none_copies_all_streams_and_empty_drops_them():
    copy_all = build_ffmpeg_command(Path("in.mkv"), Path("out.mkv"), VIDEO)
    drop_all = build_ffmpeg_command(Path("in.mkv"), Path("out.mkv"), VIDEO, [], [])

    assert "0:a?" in copy_all and "0:s?" in copy_all
    assert "0:a?" not in drop_all and "-c:a" not in drop_all


def write_output(cmd, cwd):
    Path(cmd[-1]).write_bytes(b"converted")


def test_convert_writes_outputs_and_success_log(tmp_path, recorded_commands):
    sources = [make_file(tmp_path / "src" / f"ep{i}.mkv", 100) for i in (1, 2)]
    out_dir = tmp_path / "converted"
    recorded_commands.handler = write_output

    converted = convert_video_files(sources, out_dir, VIDEO, ffmpeg_cmd="/opt/ffmpeg")

    assert converted == [out_dir / "ep1.mkv", out_dir / "ep2.mkv"]
    assert recorded_commands[0][0] == "/opt/ffmpeg"
    entries = yaml.safe_load((out_dir / "success_log.yaml").read_text(encoding="utf-8"))
    assert [e["index"] for e in entries] == [1, 2]
    assert entries[0]["input_file"] == str(sources[0])
    assert "crf=22" in entries[0]["video_config"]
    assert entries[0]["platform_info"]
    assert (out_dir / "cmd.txt").is_file()


def test_existing_output_is_skipped_unless_overwrite(tmp_path, recorded_commands):
    source = make_file(tmp_path / "src" / "ep1.mkv", 100)
    out_dir = tmp_path / "converted"
    make_file(out_dir / "ep1.mkv", 10)
    recorded_commands.handler = write_output

    assert convert_video_files([source], out_dir, VIDEO) == []
    assert recorded_commands == []

    assert convert_video_files([source], out_dir, VIDEO, overwrite=True) == [out_dir / "ep1.mkv"]


def test_failed_conversion_continues_with_next_file(tmp_path, recorded_commands):
    sources = [make_file(tmp_path / "src" / f"ep{i}.mkv", 100) for i in (1, 2)]
    out_dir = tmp_path / "converted"

    def fail_first(cmd, cwd):
        if cmd[-1].endswith("ep1.mkv"):
            Path(cmd[-1]).write_bytes(b"partial")
            return failed(1, "Conversion failed!")
        write_output(cmd, cwd)
        return None

    recorded_commands.handler = fail_first

    converted = convert_video_files(sources, out_dir, VIDEO)

    assert converted == [out_dir / "ep2.mkv"]
    assert not (out_dir / "ep1.mkv").exists()
    assert "Conversion failed!" in (out_dir / "error.txt").read_text(encoding="utf-8")


def test_languages_choose_audio_per_file(tmp_path, recorded_commands, fake_probe):
    source = make_file(tmp_path / "src" / "ep1.mkv", 100)
    fake_probe.results["ep1.mkv"] = probe_result([video_stream(0), audio_stream(1, "jpn"), audio_stream(2, "eng", 6)])
    recorded_commands.handler = write_output

    convert_video_files([source], tmp_path / "out", VIDEO, languages=["eng"], audio_codec="aac")

    cmd = recorded_commands[0]
    assert cmd[cmd.index("-map", 7) + 1] == "0:2"
    assert cmd[cmd.index("-b:a:0") + 1] == "384k"


def test_success_log_failure_does_not_abort_batch(tmp_path, recorded_commands, monkeypatch, log_messages):
    sources = [make_file(tmp_path / "src" / f"ep{i}.mkv", 100) for i in (1, 2)]
    out_dir = tmp_path / "converted"
    recorded_commands.handler = write_output

    class ReadOnlySuccessLog:
        def __init__(self, log_dir):
            pass

        def write(self, entry):
            raise PermissionError(13, "Permission denied")

    monkeypatch.setattr(conversion_module, "SuccessLog", ReadOnlySuccessLog)

    converted = convert_video_files(sources, out_dir, VIDEO)

    assert converted == [out_dir / "ep1.mkv", out_dir / "ep2.mkv"]
    assert len(recorded_commands) == 2
    assert sum(1 for m in log_messages if m.startswith("ERROR") and "success log" in m) == 2
