# tests/test_tool_commands.py
import pytest

from utils.process_runner import calculate_extraction_timeout, calculate_ocr_timeout
from utils.tool_commands import (
    FFmpegCommandBuilder,
    create_ffmpeg_subtitle_command,
    create_ffprobe_subtitle_streams_command,
    create_mkvextract_command,
    create_mkvmerge_identify_command,
    create_seconv_command,
    create_subtitle_conversion_command,
)

GB = 1024 ** 3
MB = 1024 ** 2


def test_mkvmerge_identify():
    assert create_mkvmerge_identify_command("/v/movie.mkv") == ["-J", "/v/movie.mkv"]


def test_ffprobe_subtitle_streams():
    args = create_ffprobe_subtitle_streams_command("/v/clip.mp4")
    assert args[-1] == "/v/clip.mp4"
    assert args[args.index("-select_streams") + 1] == "s"
    assert args[args.index("-print_format") + 1] == "json"
    assert "-show_streams" in args


def test_mkvextract_track():
    assert create_mkvextract_command("/v/movie.mkv", 3, "/out/movie.eng.srt") == [
        "tracks", "/v/movie.mkv", "3:/out/movie.eng.srt"
    ]


def test_ffmpeg_subtitle_stream():
    args = create_ffmpeg_subtitle_command("/v/clip.mp4", 4, "/out/clip.sup", codec="copy")
    assert args[args.index("-i") + 1] == "/v/clip.mp4"
    assert args[args.index("-map") + 1] == "0:4"
    assert args[args.index("-c:s") + 1] == "copy"
    assert args[-1] == "/out/clip.sup"
    assert "-y" in args


def test_subtitle_conversion():
    args = create_subtitle_conversion_command("/tmp/a.ass", "/tmp/a.srt")
    assert args[args.index("-c:s") + 1] == "srt"
    assert "-map" not in args
    assert args[-1] == "/tmp/a.srt"


def test_builder_requires_output():
    with pytest.raises(ValueError):
        FFmpegCommandBuilder("in.mkv").add_mapping("0:1").build()


def test_builder_options():
    args = FFmpegCommandBuilder("in.mkv").add_option("-sn").add_option("-f", "srt").set_output("o.srt").build()
    assert args[-4:] == ["-sn", "-f", "srt", "o.srt"]


def test_seconv_command():
    assert create_seconv_command("/t/a.sup", "/o/a.srt") == [
        "/t/a.sup", "subrip", "/outputfilename:/o/a.srt", "/ocrdb:Latin"
    ]
    args = create_seconv_command("/t/a.sup", "/o/a.srt", ocr_database="Cyrillic", remove_hearing_impaired=True)
    assert "/ocrdb:Cyrillic" in args
    assert args[-1] == "/RemoveTextForHI"


@pytest.mark.parametrize("size, minutes", [
    (None, 5),
    (0, 5),
    (5 * GB, 10),        # 5 + 5 * 1
    (20 * GB, 45),       # 5 + 20 * 2
    (60 * GB, 185),      # 5 + 60 * 3
    (100 * GB, 240),     # capped
])
def test_extraction_timeout(size, minutes):
    assert calculate_extraction_timeout(size) == pytest.approx(minutes * 60)


@pytest.mark.parametrize("size, minutes", [
    (None, 30),
    (50 * MB, 8),        # 5 + 3
    (500 * MB, 35),      # 5 + 30
    (5 * GB, 120),       # capped
])
def test_ocr_timeout(size, minutes):
    assert calculate_ocr_timeout(size) == pytest.approx(minutes * 60)
