# tests/test_extractors.py
import threading

import pytest

from core.correction_engine import CorrectionLevel
from extractors.image import ImageSubtitleExtractor
from extractors.ocr import OcrAdapter, parse_progress_line
from extractors.text import TextSubtitleExtractor
from utils.error_handler import (
    ExtractionError,
    OcrError,
    OperationCancelledError,
    ToolError,
    ToolTimeoutError,
    UnsupportedCodecError,
)


@pytest.fixture
def sup_file(tmp_path):
    path = tmp_path / "work" / "movie.eng.sup"
    path.parent.mkdir()
    path.write_bytes(b"PG" + b"\0" * 1024)
    return path


# Text extraction

def test_matroska_subrip_uses_mkvextract(container, make_track, fake_runner, tmp_path):
    source = container("movie.mkv")
    output = tmp_path / "out" / "movie.eng.srt"

    result = TextSubtitleExtractor(fake_runner).extract(source, make_track(2), output)

    assert result == output
    assert fake_runner.calls == [("mkvextract", ["tracks", str(source), f"2:{output}"])]
    assert output.read_text(encoding="utf-8").startswith("1\n")


def test_matroska_ass_is_converted_and_side_file_removed(container, make_track, fake_runner, tmp_path):
    source = container("movie.mkv")
    output = tmp_path / "movie.eng.srt"

    TextSubtitleExtractor(fake_runner).extract(source, make_track(3, "S_TEXT/ASS"), output)

    assert fake_runner.tools_called() == ["mkvextract", "ffmpeg"]
    assert fake_runner.calls[0][1][-1] == f"3:{tmp_path / 'movie.eng.ass'}"
    assert output.exists()
    assert not (tmp_path / "movie.eng.ass").exists()


def test_other_containers_use_ffmpeg(container, make_track, fake_runner, tmp_path):
    source = container("clip.mp4")
    track = make_track(0, "S_TEXT/UTF8", extraction_id=2)
    output = tmp_path / "clip.eng.srt"

    TextSubtitleExtractor(fake_runner).extract(source, track, output)

    tool, arguments = fake_runner.calls[0]
    assert tool == "ffmpeg"
    assert arguments[arguments.index("-map") + 1] == "0:2"
    assert arguments[arguments.index("-c:s") + 1] == "srt"


def test_text_extractor_rejects_image_tracks(container, make_track, fake_runner, tmp_path):
    with pytest.raises(UnsupportedCodecError):
        TextSubtitleExtractor(fake_runner).extract(container(), make_track(1, "S_HDMV/PGS"), tmp_path / "x.srt")
    assert fake_runner.calls == []


def test_empty_output_is_an_error(container, make_track, runner_factory, tmp_path):
    runner = runner_factory(write_outputs=False)
    with pytest.raises(ExtractionError) as excinfo:
        TextSubtitleExtractor(runner).extract(container(), make_track(2), tmp_path / "movie.eng.srt")
    assert "No output produced" in excinfo.value.message


def test_missing_input_is_an_error(make_track, fake_runner, tmp_path):
    with pytest.raises(ExtractionError):
        TextSubtitleExtractor(fake_runner).extract(tmp_path / "gone.mkv", make_track(2), tmp_path / "gone.srt")
    assert fake_runner.calls == []


def test_tool_failure_is_wrapped(container, make_track, runner_factory, tmp_path):
    runner = runner_factory({"mkvextract": ToolError("mkvextract", "broken track", exit_code=2)})

    with pytest.raises(ExtractionError) as excinfo:
        TextSubtitleExtractor(runner).extract(container(), make_track(2), tmp_path / "movie.eng.srt")

    assert excinfo.value.track_id == 2
    assert isinstance(excinfo.value.__cause__, ToolError)


def test_cancelled_extraction_never_starts_a_tool(container, make_track, fake_runner, tmp_path):
    cancel = threading.Event()
    cancel.set()
    with pytest.raises(OperationCancelledError):
        TextSubtitleExtractor(fake_runner).extract(container(), make_track(2), tmp_path / "a.srt", cancel)
    assert fake_runner.calls == []


def test_extraction_reports_progress(container, make_track, fake_runner, tmp_path, progress_events):
    events, callback = progress_events
    TextSubtitleExtractor(fake_runner).extract(container(), make_track(2), tmp_path / "a.srt",
                                               progress_callback=callback)
    kinds = [event[0] for event in events]
    assert kinds == ["task_started", "task_completed"]
    assert events[-1][3]["success"] is True
    assert events[-1][3]["track_id"] == 2


# Image extraction

def test_image_extractor_copies_matroska_track(container, make_track, fake_runner, tmp_path):
    source = container("movie.mkv")
    sup = tmp_path / "movie.eng.sup"

    ImageSubtitleExtractor(fake_runner).extract(source, make_track(5, "S_HDMV/PGS"), sup)

    assert fake_runner.calls == [("mkvextract", ["tracks", str(source), f"5:{sup}"])]


def test_image_extractor_copies_stream_from_mp4(container, make_track, fake_runner, tmp_path):
    sup = tmp_path / "clip.eng.sup"
    ImageSubtitleExtractor(fake_runner).extract(container("clip.m4v"), make_track(1, "S_DVBSUB"), sup)

    tool, arguments = fake_runner.calls[0]
    assert tool == "ffmpeg"
    assert arguments[arguments.index("-c:s") + 1] == "copy"


def test_image_extractor_leaves_vobsub_alone(container, make_track, fake_runner, tmp_path):
    with pytest.raises(UnsupportedCodecError):
        ImageSubtitleExtractor(fake_runner).extract(container(), make_track(4, "S_VOBSUB"), tmp_path / "a.sup")


# OCR

@pytest.mark.parametrize("line, expected", [
    ("Processing 5/10", (5, 10)),
    ("12 / 40", (12, 40)),
    ("frame 40/40 done", (40, 40)),
    ("11/10", None),
    ("0/0", None),
    ("Loading OCR database", None),
])
def test_parse_progress_line(line, expected):
    assert parse_progress_line(line) == expected


def test_ocr_reports_frame_progress(sup_file, runner_factory, tmp_path):
    def seconv(arguments, line_callback):
        for line in ("Loading...", "Processing 5/10", "10/10"):
            line_callback(line)
        return 0, "", ""

    runner = runner_factory({"seconv": seconv})
    progress = []
    output = tmp_path / "movie.eng.srt"

    result = OcrAdapter(runner).convert(sup_file, output, progress_callback=lambda *args: progress.append(args))

    assert result.output_path == output
    assert result.corrections == 0
    assert (5, 10, "OCR") in progress
    assert (10, 10, "OCR") in progress
    assert progress[0] == (0, 0, "Starting OCR")
    assert progress[-1] == (1, 1, "Done")


def test_ocr_output_is_corrected(sup_file, fake_runner, tmp_path):
    output = tmp_path / "movie.eng.srt"

    result = OcrAdapter(fake_runner).convert(sup_file, output, correction_level=CorrectionLevel.STANDARD)

    assert result.corrections == 1
    assert "I'm not sure." in output.read_text(encoding="utf-8")
    assert fake_runner.calls[0][1][:2] == [str(sup_file), "subrip"]


def test_ocr_timeout(sup_file, runner_factory, tmp_path):
    runner = runner_factory({"seconv": ToolTimeoutError("seconv", 480)})
    with pytest.raises(OcrError) as excinfo:
        OcrAdapter(runner).convert(sup_file, tmp_path / "a.srt", track_id=3)
    assert "timed out" in excinfo.value.message
    assert excinfo.value.track_id == 3


def test_ocr_missing_input(tmp_path, fake_runner):
    with pytest.raises(OcrError):
        OcrAdapter(fake_runner).convert(tmp_path / "missing.sup", tmp_path / "a.srt")
    assert fake_runner.calls == []


def test_ocr_without_output(sup_file, runner_factory, tmp_path):
    with pytest.raises(OcrError) as excinfo:
        OcrAdapter(runner_factory(write_outputs=False)).convert(sup_file, tmp_path / "a.srt")
    assert "was not created" in excinfo.value.message


def test_ocr_cancelled(sup_file, fake_runner, tmp_path):
    cancel = threading.Event()
    cancel.set()
    with pytest.raises(OperationCancelledError):
        OcrAdapter(fake_runner).convert(sup_file, tmp_path / "a.srt", cancel_event=cancel)
