# tests/test_error_handler.py
import logging

import pytest

from utils.error_handler import (
    ExtractionError,
    FileHandlingError,
    NoSuitableTrackError,
    OcrError,
    OperationCancelledError,
    ProbeError,
    SubForgeError,
    ToolTimeoutError,
    create_error_response,
    format_error_details,
    handle_error,
    is_critical_error,
    safe_execute,
)


def test_messages_carry_context():
    assert ProbeError("bad header", "/v/a.mkv").message == "Probe failed for file: /v/a.mkv. bad header"
    assert ExtractionError("exit 2", 3).message == "Track extraction failed for subtitle track 3. exit 2"
    assert OcrError("timed out").message == "OCR failed. timed out"
    assert NoSuitableTrackError("/v/a.mkv").message == "No suitable track found for extraction"
    assert ToolTimeoutError("seconv", 1800).message == "seconv: Process timed out after 30 minutes"


def test_full_message_includes_module():
    error = ExtractionError("exit 2", 3, module="text")
    assert error.full_message == "[text] Track extraction failed for subtitle track 3. exit 2"
    assert str(error) == error.full_message


def test_safe_execute_returns_value():
    assert safe_execute(lambda a, b: a + b, 1, 2, module_name="test") == 3


def test_safe_execute_maps_errors():
    def read():
        raise OSError("permission denied")

    with pytest.raises(FileHandlingError) as excinfo:
        safe_execute(
            read,
            module_name="test",
            error_map={OSError: lambda msg, **kwargs: FileHandlingError(msg, "a.srt", "test")},
        )

    assert isinstance(excinfo.value.__cause__, OSError)
    assert "permission denied" in excinfo.value.message


def test_safe_execute_passes_subforge_errors_through():
    original = ProbeError("unreadable")

    def probe():
        raise original

    with pytest.raises(ProbeError) as excinfo:
        safe_execute(probe, error_map={Exception: lambda msg, **kwargs: SubForgeError(msg)})
    assert excinfo.value is original


def test_safe_execute_default_return(caplog):
    def explode():
        raise ValueError("nope")

    with caplog.at_level(logging.WARNING):
        result = safe_execute(explode, module_name="test", raise_error=False, default_return=[],
                              log_level=logging.WARNING)

    assert result == []
    assert "Error in test: nope" in caplog.text


def test_handle_error_wraps_unknown_errors():
    with pytest.raises(SubForgeError) as excinfo:
        handle_error(KeyError("track"), module_name="selector")
    assert excinfo.value.module == "selector"


def test_error_response():
    response = create_error_response(OperationCancelledError(module="batch"), log_error=False)
    assert response == {
        "success": False,
        "error": "[batch] Operation cancelled by user",
        "error_type": "OperationCancelledError",
        "cancelled": True,
    }
    assert create_error_response(RuntimeError("x"), log_error=False)["error"] == "x"


def test_format_error_details():
    error = OcrError("empty output", 2, "ocr")
    assert format_error_details(error) == "[ocr] OCR failed for subtitle track 2. empty output"
    assert format_error_details(error, include_module=False) == "OCR failed for subtitle track 2. empty output"


@pytest.mark.parametrize("error, critical", [
    (KeyboardInterrupt(), True),
    (SystemExit(1), True),
    (MemoryError(), True),
    (RuntimeError(), False),
    (SubForgeError(), False),
])
def test_is_critical_error(error, critical):
    assert is_critical_error(error) is critical
