# tests/test_correction_engine.py
import threading

import pytest

from core.correction_engine import CorrectionEngine, CorrectionLevel
from core.correction_rules import DEFAULT_RULES, LITERAL, CorrectionRule, rules_by_category
from utils.error_handler import FileHandlingError, OperationCancelledError

SAMPLE_SRT = (
    "1\n"
    "00:00:01,000 --> 00:00:03,000\n"
    "l'm not sure.\n"
    "\n"
    "2\n"
    "00:00:04,000 --> 00:00:06,000\n"
    "Hello there.\n"
)


def srt(text):
    return f"1\n00:00:01,000 --> 00:00:03,000\n{text}\n"


@pytest.fixture
def engine():
    return CorrectionEngine()


def test_off_returns_identical_content(engine):
    result = engine.correct(SAMPLE_SRT, CorrectionLevel.OFF)
    assert result.content == SAMPLE_SRT
    assert result.total_corrections == 0
    assert result.passes_attempted == 0


def test_standard_runs_one_pass(engine):
    result = engine.correct(SAMPLE_SRT, CorrectionLevel.STANDARD)
    assert "I'm not sure." in result.content
    assert result.total_corrections == 1
    assert result.passes_attempted == 1


def test_structure_lines_are_never_changed(engine):
    document = "10\n00:01:02,000 --> 00:01:04,500\nl'm here\n\n11\n"
    corrected = engine.correct(document, CorrectionLevel.THOROUGH).content
    assert corrected == "10\n00:01:02,000 --> 00:01:04,500\nI'm here\n\n11\n"


def test_thorough_reaches_errors_exposed_by_earlier_fixes(engine):
    # The digit fix runs after the "Iittle" word rule, so the word only matches on pass 2
    result = engine.correct(srt("A Iitt1e more."), CorrectionLevel.THOROUGH)

    assert result.content == srt("A little more.")
    assert result.passes_completed == 2
    assert result.passes_attempted == 3
    assert result.converged
    assert result.total_corrections == 2
    assert result.warnings == []


def test_standard_stops_after_first_pass(engine):
    result = engine.correct(srt("A Iitt1e more."), CorrectionLevel.STANDARD)
    assert result.content == srt("A Iittle more.")


OCR_LINES = [
    "l’m here.",
    "l’ll go.",
    "Yes,l’ve seen it.",
    "l 'm not sure.",
    "lt's  rnore than a Iittle thing .",
    "Don't worry, we'II be fine",
    "# Singing in the rain #",
    "One ofthe best .",
    "dont go , l said",
    "wh  at happened?",
]


@pytest.mark.parametrize("line", OCR_LINES)
@pytest.mark.parametrize("level", [CorrectionLevel.STANDARD, CorrectionLevel.THOROUGH])
def test_corrected_text_is_stable(engine, line, level):
    once = engine.correct(srt(line), level).content
    again = engine.correct(once, level)
    assert again.content == once
    assert again.total_corrections == 0


def test_standard_fixes_typographic_apostrophes_in_one_pass(engine):
    result = engine.correct(srt("l’m here. Yes,l’ve seen it."), CorrectionLevel.STANDARD)
    assert result.content == srt("I'm here. Yes, I've seen it.")


def test_thorough_is_idempotent(engine):
    once = engine.correct(SAMPLE_SRT + srt("Iook atthe tbings,ok ?"), CorrectionLevel.THOROUGH).content
    twice = engine.correct(once, CorrectionLevel.THOROUGH)
    assert twice.content == once
    assert twice.total_corrections == 0


def test_thorough_stops_at_pass_limit():
    engine = CorrectionEngine(rules=[CorrectionRule("a", "aa", LITERAL)], max_passes=3)

    result = engine.correct("a\n", CorrectionLevel.THOROUGH)

    assert result.content == "aaaaaaaa\n"
    assert result.passes_attempted == 3
    assert result.passes_completed == 3
    assert not result.converged
    assert result.warnings


def test_invalid_pass_limit():
    with pytest.raises(ValueError):
        CorrectionEngine(max_passes=0)


def test_cancellation_between_passes(engine):
    cancel = threading.Event()
    cancel.set()
    with pytest.raises(OperationCancelledError):
        engine.correct(SAMPLE_SRT, CorrectionLevel.THOROUGH, cancel)


def test_word_rules_do_not_touch_longer_words(engine):
    line, count = engine.correct_line("Ideas are important.")
    assert line == "Ideas are important."
    assert count == 0


def test_crlf_line_endings_survive(engine, tmp_path):
    path = tmp_path / "crlf.srt"
    path.write_bytes(b"1\r\n00:00:01,000 --> 00:00:02,000\r\nl'm here\r\n")

    assert engine.correct_file(path, CorrectionLevel.STANDARD) == 1
    assert path.read_bytes() == b"1\r\n00:00:01,000 --> 00:00:02,000\r\nI'm here\r\n"


def test_correct_file_with_backup(engine, tmp_path):
    path = tmp_path / "movie.eng.srt"
    path.write_text(SAMPLE_SRT, encoding="utf-8")

    corrections = engine.correct_file(path, "standard", create_backup=True)

    assert corrections == 1
    assert (tmp_path / "movie.eng.backup.srt").read_text(encoding="utf-8") == SAMPLE_SRT
    assert "I'm not sure." in path.read_text(encoding="utf-8")


def test_correct_file_without_changes_leaves_file_alone(engine, tmp_path):
    path = tmp_path / "clean.srt"
    path.write_text(srt("Hello there."), encoding="utf-8")
    assert engine.correct_file(path, CorrectionLevel.THOROUGH, create_backup=True) == 0
    assert not (tmp_path / "clean.backup.srt").exists()


def test_correct_missing_file(engine, tmp_path):
    with pytest.raises(FileHandlingError):
        engine.correct_file(tmp_path / "missing.srt")


def test_correct_files_reports_each_file(engine, tmp_path):
    good = tmp_path / "good.srt"
    good.write_text(SAMPLE_SRT, encoding="utf-8")
    missing = tmp_path / "missing.srt"

    results = engine.correct_files([good, missing], CorrectionLevel.STANDARD)

    assert results[str(good)] == 1
    assert "SRT file not found" in results[str(missing)]


@pytest.mark.parametrize("value, expected", [
    ("off", CorrectionLevel.OFF),
    ("Standard", CorrectionLevel.STANDARD),
    ("THOROUGH", CorrectionLevel.THOROUGH),
    (None, CorrectionLevel.STANDARD),
    (CorrectionLevel.OFF, CorrectionLevel.OFF),
])
def test_level_from_value(value, expected):
    assert CorrectionLevel.from_value(value) is expected


def test_level_from_unknown_value():
    with pytest.raises(ValueError):
        CorrectionLevel.from_value("aggressive")


def test_legacy_flags_round_trip():
    for level in CorrectionLevel:
        assert CorrectionLevel.from_legacy_flags(*level.to_legacy_flags()) is level


def test_rule_table_categories_in_order():
    categories = list(rules_by_category(DEFAULT_RULES))
    assert categories[0] == "normalization"
    assert categories.index("character_confusion") < categories.index("split_words")
    assert categories.index("split_words") < categories.index("punctuation")
