"""Tests for run_cmd and temporary work directories."""

import sys
from pathlib import Path

import pytest

from conftest import failed, fake_subprocess, ok

from media_workflow.domain.exceptions import ExternalToolError
from media_workflow.utils import process as process_module
from media_workflow.utils.process import ProcessResult, run_cmd, temporary_work_dir


def test_success_captures_stdout(recorded_commands):
    recorded_commands.handler = lambda cmd, cwd: ok(stdout="ffmpeg version 7.0")

    result = run_cmd(["ffmpeg", Path("-version")])

    assert result.succeeded
    assert result.stdout == "ffmpeg version 7.0"
    assert recorded_commands == [["ffmpeg", "-version"]]


def test_nonzero_exit_is_failure_and_keeps_stderr(recorded_commands, tmp_path):
    recorded_commands.handler = lambda cmd, cwd: failed(2, "No such file")

    result = run_cmd(["mkvextract", "x.mkv"], error_log_dir=tmp_path)

    assert not result.succeeded
    assert result.exit_code == 2
    assert result.stderr == "No such file"
    error_text = (tmp_path / "error.txt").read_text(encoding="utf-8")
    assert "mkvextract x.mkv" in error_text
    assert "No such file" in error_text


def test_check_raises_with_stderr():
    result = ProcessResult(["HandBrakeCLI", "-i", "a"], 3, "", "Encode failed")

    with pytest.raises(ExternalToolError) as exc_info:
        result.check()
    assert exc_info.value.exit_code == 3
    assert exc_info.value.stderr == "Encode failed"
    assert ProcessResult(["true"], 0).check().succeeded


def test_missing_executable_returns_127(monkeypatch):
    def raise_not_found(*args, **kwargs):
        raise FileNotFoundError("no such file")

    monkeypatch.setattr(process_module, "subprocess", fake_subprocess(raise_not_found))

    result = run_cmd(["definitely-not-installed", "--version"])

    assert result.exit_code == 127
    assert "definitely-not-installed" in result.stderr


@pytest.mark.skipif(sys.platform == "win32", reason="POSIX execute permission")
def test_unexecutable_tool_returns_126(tmp_path, log_messages):
    tool = tmp_path / "ffmpeg"
    tool.write_text("not a program")
    tool.chmod(0o644)

    result = run_cmd([tool, "-version"], error_log_dir=tmp_path)

    assert result.exit_code == 126
    assert not result.succeeded
    assert result.stderr
    assert (tmp_path / "error.txt").is_file()
    assert any(m.startswith("ERROR") and str(tool) in m for m in log_messages)


def test_os_error_from_subprocess_returns_126(monkeypatch):
    def raise_permission(*args, **kwargs):
        raise PermissionError(13, "Permission denied")

    monkeypatch.setattr(process_module, "subprocess", fake_subprocess(raise_permission))

    result = run_cmd(["/opt/tools/HandBrakeCLI", "--version"])

    assert result.exit_code == 126
    assert "Permission denied" in result.stderr


def test_command_is_appended_to_log_file(recorded_commands, tmp_path):
    log_file = tmp_path / "logs" / "cmd.txt"

    run_cmd(["ffmpeg", "-i", "my file.mkv"], cmd_log_file_path=log_file)
    run_cmd(["ffmpeg", "-version"], cmd_log_file_path=log_file)

    lines = log_file.read_text(encoding="utf-8").splitlines()
    assert len(lines) == 2
    assert "my file.mkv" in lines[0]


def test_cwd_is_passed_through(recorded_commands, tmp_path):
    seen = []
    recorded_commands.handler = lambda cmd, cwd: seen.append(cwd)

    run_cmd(["git", "status"], cwd=tmp_path)

    assert seen == [str(tmp_path)]


def test_empty_command_is_rejected():
    with pytest.raises(ValueError):
        run_cmd([])


def test_temporary_work_dir_is_removed(tmp_path):
    with temporary_work_dir(base_dir=tmp_path) as work_dir:
        (work_dir / "scratch.txt").write_text("x")
        assert work_dir.is_dir()
        assert work_dir.parent == tmp_path
    assert not work_dir.exists()


def test_temporary_work_dir_is_removed_on_error(tmp_path):
    with pytest.raises(RuntimeError):
        with temporary_work_dir(base_dir=tmp_path) as work_dir:
            raise RuntimeError("phase failed")
    assert not work_dir.exists()


def test_temporary_work_dirs_are_unique(tmp_path):
    with temporary_work_dir(base_dir=tmp_path) as first, temporary_work_dir(base_dir=tmp_path) as second:
        assert first != second
