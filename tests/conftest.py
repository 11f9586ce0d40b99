"""Shared fixtures for the media-workflow tests."""

import subprocess
from pathlib import Path
from types import SimpleNamespace
from typing import Any, Dict, List, Optional

import pytest
import requests
from loguru import logger

from media_workflow.domain import media as media_module
from media_workflow.utils import process as process_module
from media_workflow.utils.process import ProcessResult

MB = 1024 * 1024


def make_file(path: Path, size: int) -> Path:
    """Creates a sparse file of exactly `size` bytes."""
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("wb") as f:
        f.truncate(size)
    return path


def audio_stream(index: int, language: str = "eng", channels: int = 2, codec: str = "ac3",
                 title: Optional[str] = None, default: int = 0) -> Dict[str, Any]:
    tags = {"language": language}
    if title:
        tags["title"] = title
    return {
        "index": index, "codec_type": "audio", "codec_name": codec, "channels": channels,
        "tags": tags, "disposition": {"default": default, "forced": 0},
    }


def video_stream(index: int = 0) -> Dict[str, Any]:
    return {"index": index, "codec_type": "video", "codec_name": "mpeg2video", "disposition": {"default": 1}}


def subtitle_stream(index: int, language: str = "eng", forced: int = 0, default: int = 0) -> Dict[str, Any]:
    return {
        "index": index, "codec_type": "subtitle", "codec_name": "dvd_subtitle",
        "tags": {"language": language}, "disposition": {"default": default, "forced": forced},
    }


def probe_result(streams: List[Dict[str, Any]], duration: str = "1320.5",
                 chapters: Optional[List[Dict[str, Any]]] = None) -> Dict[str, Any]:
    return {
        "format": {"duration": duration, "format_name": "matroska,webm", "bit_rate": "5000000"},
        "streams": streams,
        "chapters": chapters or [],
    }


@pytest.fixture
def fake_probe(monkeypatch):
    """Registers ffprobe output per file name; `ffmpeg.probe` returns it without running ffprobe."""
    results: Dict[str, Dict[str, Any]] = {}
    calls: List[Dict[str, Any]] = []

    def probe(filename, cmd="ffprobe", **kwargs):
        calls.append({"filename": filename, "cmd": cmd, **kwargs})
        return results[Path(filename).name]

    monkeypatch.setattr(media_module.ffmpeg, "probe", probe)
    probe.results = results
    probe.calls = calls
    return probe


def fake_subprocess(run) -> SimpleNamespace:
    """A stand-in for the `subprocess` module as seen by `run_cmd` only."""
    return SimpleNamespace(run=run, list2cmdline=subprocess.list2cmdline)


@pytest.fixture
def recorded_commands(monkeypatch):
    """
    Replaces `subprocess.run` inside `run_cmd` with a recorder.

    Each call is appended to the returned list. Set `.handler` to a function
    `(cmd, cwd) -> ProcessResult | None` to control results and side effects.
    Only the `subprocess` name in the process module is replaced, so other
    callers such as `platform.platform()` still reach the real module.
    """

    class CommandList(list):
        handler = None

    commands = CommandList()

    class Completed:
        def __init__(self, returncode=0, stdout="", stderr=""):
            self.returncode = returncode
            self.stdout = stdout
            self.stderr = stderr

    def fake_run(cmd, cwd=None, **kwargs):
        commands.append(list(cmd))
        result = commands.handler(list(cmd), cwd) if commands.handler else None
        if result is None:
            return Completed()
        return Completed(result.exit_code, result.stdout, result.stderr)

    monkeypatch.setattr(process_module, "subprocess", fake_subprocess(fake_run))
    return commands


@pytest.fixture
def log_messages():
    """Collects loguru messages as "LEVEL message" strings."""
    messages: List[str] = []
    handler_id = logger.add(lambda m: messages.append(f"{m.record['level'].name} {m.record['message']}"),
                            level="TRACE")
    yield messages
    logger.remove(handler_id)


def ok(stdout: str = "", stderr: str = "") -> ProcessResult:
    return ProcessResult([], 0, stdout, stderr)


def failed(exit_code: int = 1, stderr: str = "boom") -> ProcessResult:
    return ProcessResult([], exit_code, "", stderr)


class FakeResponse:
    """Minimal stand-in for `requests.Response`."""

    def __init__(self, json_data: Any = None, status_code: int = 200):
        self._json_data = json_data
        self.status_code = status_code

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.exceptions.HTTPError(f"{self.status_code} Error", response=self)

    def json(self):
        if self._json_data is None:
            raise ValueError("No JSON body")
        return self._json_data


class FakeSession:
    """
    Records requests and answers them from `routes`, keyed by (METHOD, url).

    A route value may be a `FakeResponse`, a list of them (served in order) or
    an exception instance to raise.
    """

    def __init__(self, routes: Optional[Dict] = None):
        self.routes = dict(routes or {})
        self.headers: Dict[str, str] = {}
        self.requests: List[Dict[str, Any]] = []

    def request(self, method, url, **kwargs):
        self.requests.append({"method": method, "url": url, **kwargs})
        answer = self.routes.get((method, url))
        if answer is None:
            return FakeResponse(status_code=404)
        if isinstance(answer, list):
            answer = answer.pop(0)
        if isinstance(answer, Exception):
            raise answer
        return answer

    def get(self, url, **kwargs):
        return self.request("GET", url, **kwargs)

    def post(self, url, **kwargs):
        return self.request("POST", url, **kwargs)
