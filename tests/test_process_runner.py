# tests/test_process_runner.py
import io
import threading

import pytest

import config
from utils import process_runner
from utils.error_handler import DependencyError, OperationCancelledError, ToolError, ToolTimeoutError
from utils.process_runner import ToolRunner, check_tools


class FakeProcess:
    """Minimal Popen double: finishes immediately or runs until terminated."""

    def __init__(self, command, stdout="", stderr="", returncode=0, finishes=True):
        self.command = command
        self.stdout = io.StringIO(stdout)
        self.stderr = io.StringIO(stderr)
        self.returncode = None
        self.pid = 4242
        self.terminated = False
        self._final_code = returncode
        self._finishes = finishes

    def poll(self):
        if self.terminated:
            self.returncode = -15
        elif self._finishes:
            self.returncode = self._final_code
        return self.returncode

    def wait(self, timeout=None):
        return self.poll()

    def terminate(self):
        self.terminated = True

    def kill(self):
        self.terminated = True


@pytest.fixture
def popen(monkeypatch):
    """Install a fake Popen; returns a dict to configure it and inspect the process."""
    state = {"kwargs": {}, "process": None}

    def fake_popen(command, **kwargs):
        state["process"] = FakeProcess(command, **state["kwargs"])
        return state["process"]

    monkeypatch.setattr(process_runner, "get_tool_path", lambda tool: f"/opt/tools/{tool}")
    monkeypatch.setattr(process_runner.subprocess, "Popen", fake_popen)
    monkeypatch.setitem(config.EXTRACTION_CONFIG, "process_poll_interval", 0.01)
    monkeypatch.setitem(config.EXTRACTION_CONFIG, "terminate_grace_seconds", 0.5)
    return state


def test_run_command_captures_output(popen):
    popen["kwargs"] = {"stdout": "12/40\n40/40\n", "stderr": ""}
    lines = []

    exit_code, stdout, stderr = ToolRunner.run_command("seconv", ["a.sup"], timeout=10, line_callback=lines.append)

    assert exit_code == 0
    assert stdout == "12/40\n40/40\n"
    assert lines == ["12/40", "40/40"]
    assert popen["process"].command == ["/opt/tools/seconv", "a.sup"]


def test_non_zero_exit_raises_tool_error(popen):
    popen["kwargs"] = {"stderr": "boom\n", "returncode": 2}

    with pytest.raises(ToolError) as excinfo:
        ToolRunner.run_command("mkvextract", ["tracks"], module="test")

    assert excinfo.value.exit_code == 2
    assert excinfo.value.output == "boom\n"


def test_non_zero_exit_without_check(popen):
    popen["kwargs"] = {"stdout": "{}", "returncode": 1}
    assert ToolRunner.run_command("mkvmerge", ["-J", "x.mkv"], check=False)[0] == 1


def test_timeout_terminates_process(popen):
    popen["kwargs"] = {"finishes": False}

    with pytest.raises(ToolTimeoutError):
        ToolRunner.run_command("ffmpeg", ["-i", "x"], timeout=0.05)

    assert popen["process"].terminated


def test_cancellation_terminates_process(popen):
    popen["kwargs"] = {"finishes": False}
    cancel = threading.Event()
    timer = threading.Timer(0.05, cancel.set)
    timer.start()

    try:
        with pytest.raises(OperationCancelledError):
            ToolRunner.run_command("ffmpeg", ["-i", "x"], timeout=30, cancel_event=cancel)
    finally:
        timer.cancel()

    assert popen["process"].terminated


def test_cancelled_before_start_never_spawns(popen):
    cancel = threading.Event()
    cancel.set()

    with pytest.raises(OperationCancelledError):
        ToolRunner.run_command("ffmpeg", [], cancel_event=cancel)

    assert popen["process"] is None


def test_missing_tool(monkeypatch):
    monkeypatch.setattr(process_runner, "get_tool_path", lambda tool: None)
    with pytest.raises(DependencyError) as excinfo:
        ToolRunner.run_command("seconv", [])
    assert "SUBFORGE_SECONV_PATH" in excinfo.value.message


def test_unstartable_tool(monkeypatch):
    def broken_popen(command, **kwargs):
        raise PermissionError("not executable")

    monkeypatch.setattr(process_runner, "get_tool_path", lambda tool: "/opt/tools/ffmpeg")
    monkeypatch.setattr(process_runner.subprocess, "Popen", broken_popen)
    with pytest.raises(DependencyError):
        ToolRunner.run_command("ffmpeg", [])


def test_check_tools(monkeypatch):
    monkeypatch.setattr(process_runner, "get_tool_path", lambda tool: None if tool == "seconv" else tool)
    tools = check_tools()
    assert tools["seconv"] is False
    assert tools["mkvmerge"] is True
    assert set(tools) == set(config.TOOL_EXECUTABLES)


def test_tool_path_environment_override(monkeypatch, tmp_path):
    executable = tmp_path / "my-mkvmerge"
    executable.write_text("")
    monkeypatch.setenv("SUBFORGE_MKVMERGE_PATH", str(executable))
    assert config.get_tool_path("mkvmerge") == str(executable)


def test_unknown_tool_key():
    with pytest.raises(ValueError):
        config.get_tool_path("vlc")
