# tests/test_extraction_service.py
import json

import pytest

from core.track_prober import TrackProber
from extractors.image import ImageSubtitleExtractor
from extractors.ocr import OcrAdapter
from extractors.text import TextSubtitleExtractor
from services.batch_coordinator import RunState
from services.dispatcher import ExtractionDispatcher
from services.extraction_service import ExtractionService
from utils.error_handler import ConfigurationError, NoSuitableTrackError

REPORT = {
    "tracks": [
        {"id": 0, "type": "video", "properties": {}},
        {"id": 2, "type": "subtitles", "properties": {
            "codec_id": "S_TEXT/UTF8", "language": "eng", "track_name": "English"}},
        {"id": 3, "type": "subtitles", "properties": {
            "codec_id": "S_HDMV/PGS", "language": "ger", "track_name": "Deutsch"}},
        {"id": 4, "type": "subtitles", "properties": {
            "codec_id": "S_VOBSUB", "language": "fre"}},
    ]
}

EMPTY_REPORT = {"tracks": [{"id": 0, "type": "video", "properties": {}}]}


@pytest.fixture
def service_for(runner_factory, tmp_path):
    def _build(report=REPORT):
        runner = runner_factory({"mkvmerge": (0, json.dumps(report), "")})
        dispatcher = ExtractionDispatcher(
            text_extractor=TextSubtitleExtractor(runner),
            image_extractor=ImageSubtitleExtractor(runner),
            ocr_adapter=OcrAdapter(runner),
            temp_root=tmp_path,
        )
        return ExtractionService(prober=TrackProber(runner), dispatcher=dispatcher), runner
    return _build


def test_probe_file_previews_selection(service_for, container):
    service, _ = service_for()
    source = container("Movie.mkv")

    response = service.probe_file(source)

    assert response["track_count"] == 3
    assert response["selected_track"]["id"] == 2
    assert response["languages"] == {"deu": "German", "eng": "English", "fra": "French"}
    assert response["output_path"].endswith("Movie.eng.srt")


def test_probe_file_with_language_preference(service_for, container):
    service, _ = service_for()
    response = service.probe_file(container("Movie.mkv"), {"preferred_language": "de"})
    assert response["selected_track"]["id"] == 3
    assert response["output_path"].endswith("Movie.deu.srt")


def test_extract_file(service_for, container, tmp_path):
    service, runner = service_for()

    response = service.extract_file(container("Movie.mkv"))

    assert response["success"] is True
    assert response["manual_tool_required"] is False
    assert response["corrections"] == 1
    assert (tmp_path / "Movie.eng.srt").exists()
    assert runner.tools_called() == ["mkvmerge", "mkvextract"]


def test_extract_image_track_through_ocr(service_for, container, tmp_path):
    service, runner = service_for()

    response = service.extract_file(container("Movie.mkv"), {"preferred_language": "ger"})

    assert response["strategy"] == "image_ocr"
    assert runner.tools_called() == ["mkvmerge", "mkvextract", "seconv"]
    assert (tmp_path / "Movie.deu.srt").exists()
    assert not (tmp_path / "Movie.deu.sup").exists()


def test_extract_vobsub_needs_manual_tool(service_for, container):
    service, _ = service_for()

    response = service.extract_file(container("Movie.mkv"), {"preferred_language": "fre"})

    assert response["manual_tool_required"] is True
    assert response["success"] is False
    assert "Subtitle Edit" in response["guidance"]


def test_extract_file_without_tracks_raises(service_for, container):
    service, _ = service_for(EMPTY_REPORT)
    with pytest.raises(NoSuitableTrackError):
        service.extract_file(container("Empty.mkv"))


def test_invalid_settings_are_rejected(service_for, container):
    service, _ = service_for()
    with pytest.raises(ConfigurationError):
        service.extract_file(container("Movie.mkv"), {"output_pattern": "subtitle.srt"})


def test_batch_extract_folder(service_for, container, tmp_path):
    service, _ = service_for()
    library = tmp_path / "library"
    container("one.mkv", directory=library)
    container("two.mkv", directory=library / "extras")

    summary = service.batch_extract([library])

    assert summary.state is RunState.COMPLETED
    assert sorted(outcome.name for outcome in summary.successful) == ["one.mkv", "two.mkv"]
    assert (library / "extras" / "two.eng.srt").exists()


def test_cancelled_call_does_not_affect_the_next(service_for, container):
    service, _ = service_for()
    service.cancel()
    assert service.extract_file(container("Movie.mkv"))["success"] is True


def test_correct_srt_files(service_for, tmp_path):
    service, _ = service_for()
    good = tmp_path / "good.srt"
    good.write_text("1\n00:00:01,000 --> 00:00:02,000\nl'm here\n", encoding="utf-8")

    response = service.correct_srt_files([good, tmp_path / "missing.srt"], "thorough")

    assert response["success"] is False
    assert response["total_corrections"] == 1
    assert response["correction_level"] == "thorough"
    assert list(response["failed_files"]) == [str(tmp_path / "missing.srt")]
