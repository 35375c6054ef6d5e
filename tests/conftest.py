# tests/conftest.py
from pathlib import Path

import pytest

from core.track import SubtitleTrack
from utils.error_handler import OperationCancelledError

SAMPLE_SRT = (
    "1\n"
    "00:00:01,000 --> 00:00:03,000\n"
    "l'm not sure.\n"
    "\n"
    "2\n"
    "00:00:04,000 --> 00:00:06,000\n"
    "Hello there.\n"
)


def _output_of(tool, arguments):
    """Where a real tool invocation would write its result."""
    if tool == "mkvextract":
        return arguments[-1].split(":", 1)[1]
    if tool == "ffmpeg":
        return arguments[-1]
    if tool == "seconv":
        for argument in arguments:
            if argument.startswith("/outputfilename:"):
                return argument.split(":", 1)[1]
    return None


class FakeRunner:
    """
    Stands in for ToolRunner. Records every call and writes the file the
    real tool would have produced.

    ``responses`` maps a tool name to an (exit_code, stdout, stderr) tuple, an
    exception instance to raise, or a callable (arguments, line_callback)
    returning the tuple.
    """

    def __init__(self, responses=None, write_outputs=True, content=SAMPLE_SRT):
        self.responses = dict(responses or {})
        self.write_outputs = write_outputs
        self.content = content
        self.calls = []

    def run_command(self, tool, arguments, timeout=None, cancel_event=None,
                    line_callback=None, check=True, module=None):
        self.calls.append((tool, [str(a) for a in arguments]))
        if cancel_event is not None and cancel_event.is_set():
            raise OperationCancelledError(f"{tool} cancelled", module)

        response = self.responses.get(tool, (0, "", ""))
        if isinstance(response, Exception):
            raise response
        if callable(response):
            response = response(arguments, line_callback)

        output = _output_of(tool, [str(a) for a in arguments])
        if self.write_outputs and output:
            Path(output).parent.mkdir(parents=True, exist_ok=True)
            Path(output).write_text(self.content, encoding="utf-8")
        return response

    def tools_called(self):
        return [tool for tool, _ in self.calls]


@pytest.fixture
def fake_runner():
    return FakeRunner()


@pytest.fixture
def runner_factory():
    """FakeRunner class, for tests that need custom responses."""
    return FakeRunner


@pytest.fixture
def make_track():
    """Build a SubtitleTrack with sensible defaults."""
    def _make(track_id=0, codec="S_TEXT/UTF8", language="eng", **kwargs):
        return SubtitleTrack(id=track_id, codec=codec, language=language, **kwargs)
    return _make


@pytest.fixture
def container(tmp_path):
    """Create a dummy container file (content is never parsed)."""
    def _create(name="movie.mkv", size=2048, directory=None):
        folder = Path(directory) if directory else tmp_path
        folder.mkdir(parents=True, exist_ok=True)
        path = folder / name
        path.write_bytes(b"\x1a\x45\xdf\xa3" + b"\0" * max(size - 4, 0))
        return path
    return _create


@pytest.fixture
def progress_events():
    """Parent callback collecting (task_type, task_id, percentage, kwargs)."""
    events = []

    def callback(task_type, task_id, percentage, **kwargs):
        events.append((task_type, task_id, percentage, kwargs))

    return events, callback
