"""
OCR Adapter.

Converts a binary image-subtitle file (``.sup``) into SubRip text with the
Subtitle Edit command line (``seconv``), then runs the correction engine over
the result at the requested level.

Progress is reported at frame granularity: every ``N/M`` line the tool prints
becomes a ``(processed, total, phase)`` update.
"""

import logging
import re
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional, Union

from config import EXTRACTION_CONFIG
from core.correction_engine import CorrectionEngine, CorrectionLevel
from utils.error_handler import (
    OcrError,
    OperationCancelledError,
    SubForgeError,
    ToolTimeoutError,
    format_error_details,
    log_exception,
)
from utils.file_utils import ensure_directory, get_file_size
from utils.language import get_language_name
from utils.process_runner import ToolRunner, calculate_ocr_timeout
from utils.tool_commands import create_seconv_command

logger = logging.getLogger(__name__)

MODULE_NAME = "ocr"

_PROGRESS_PATTERN = re.compile(r"(\d+)\s*/\s*(\d+)")

OcrProgressCallback = Callable[[int, int, str], None]


def parse_progress_line(line: str):
    """
    Read an ``N/M`` progress marker from one line of tool output.

    Returns:
        Tuple (processed, total), or None when the line holds no marker
    """
    match = _PROGRESS_PATTERN.search(line)
    if not match:
        return None
    processed, total = int(match.group(1)), int(match.group(2))
    if total <= 0 or processed > total:
        return None
    return processed, total


@dataclass
class OcrResult:
    output_path: Path
    corrections: int = 0
    correction_level: CorrectionLevel = CorrectionLevel.OFF


class OcrAdapter:
    """
    Runs OCR on image subtitles and corrects the text it produces.

    Example:
        adapter = OcrAdapter()
        result = adapter.convert("movie.sup", "movie.eng.srt", "eng",
                                 correction_level=CorrectionLevel.THOROUGH)
    """

    def __init__(self, runner=ToolRunner, correction_engine: Optional[CorrectionEngine] = None):
        self.runner = runner
        self.correction_engine = correction_engine or CorrectionEngine()

    def convert(
        self,
        sup_path: Union[str, Path],
        output_path: Union[str, Path],
        language: str = "eng",
        correction_level: Union[CorrectionLevel, str] = CorrectionLevel.OFF,
        remove_hearing_impaired: bool = False,
        cancel_event: Optional[threading.Event] = None,
        progress_callback: Optional[OcrProgressCallback] = None,
        track_id: Optional[int] = None,
    ) -> OcrResult:
        """
        OCR an image-subtitle file into SubRip and correct the text.

        Args:
            sup_path: Image subtitles written by the image extractor
            output_path: Destination SubRip file
            language: Language of the subtitles
            correction_level: Correction applied after OCR
            remove_hearing_impaired: Ask the OCR tool to drop hearing-impaired text
            cancel_event: Aborts OCR when set
            progress_callback: Receives (processed, total, phase)
            track_id: Track being converted, for error context

        Returns:
            OcrResult with the output path and number of corrections

        Raises:
            OcrError: If OCR fails, times out or writes nothing
            OperationCancelledError: If cancel_event was set
        """
        sup_path = Path(sup_path)
        output_path = Path(output_path)
        level = CorrectionLevel.from_value(correction_level)

        if cancel_event is not None and cancel_event.is_set():
            raise OperationCancelledError("OCR cancelled before start", MODULE_NAME)
        if not sup_path.is_file():
            raise OcrError(f"Image subtitle file not found: {sup_path}", track_id, MODULE_NAME)

        timeout = calculate_ocr_timeout(get_file_size(sup_path))
        logger.info(
            f"Starting OCR ({get_language_name(language)}): {sup_path.name} -> {output_path.name}, "
            f"timeout {timeout / 60:.0f} min"
        )
        self._report(progress_callback, 0, 0, "Starting OCR")

        def on_line(line: str) -> None:
            progress = parse_progress_line(line)
            if progress is not None:
                self._report(progress_callback, progress[0], progress[1], "OCR")

        try:
            ensure_directory(output_path.parent)
            self.runner.run_command(
                "seconv",
                create_seconv_command(
                    sup_path,
                    output_path,
                    EXTRACTION_CONFIG["ocr_database"],
                    remove_hearing_impaired,
                ),
                timeout=timeout,
                cancel_event=cancel_event,
                line_callback=on_line,
                module=MODULE_NAME,
            )
        except (OperationCancelledError, OcrError):
            raise
        except ToolTimeoutError as e:
            raise OcrError(f"OCR timed out after {timeout / 60:.0f} minutes", track_id, MODULE_NAME) from e
        except Exception as e:
            log_exception(e, module_name=MODULE_NAME)
            raise OcrError(format_error_details(e, include_module=False), track_id, MODULE_NAME) from e

        if get_file_size(output_path) == 0:
            raise OcrError(f"Output SRT file was not created: {output_path}", track_id, MODULE_NAME)

        result = OcrResult(output_path=output_path, correction_level=level)
        if level is not CorrectionLevel.OFF:
            self._report(progress_callback, 0, 0, "Correcting")
            result.corrections = self._apply_correction(output_path, level, cancel_event)

        self._report(progress_callback, 1, 1, "Done")
        logger.info(f"OCR complete: {output_path} ({result.corrections} corrections)")
        return result

    def _apply_correction(
        self, output_path: Path, level: CorrectionLevel, cancel_event: Optional[threading.Event]
    ) -> int:
        """Correct the OCR output; a correction failure keeps the raw text."""
        try:
            return self.correction_engine.correct_file(output_path, level, cancel_event=cancel_event)
        except OperationCancelledError:
            raise
        except SubForgeError as e:
            log_exception(e, module_name=MODULE_NAME, level=logging.WARNING, include_traceback=False)
            logger.warning("Keeping uncorrected OCR output")
            return 0

    @staticmethod
    def _report(callback: Optional[OcrProgressCallback], processed: int, total: int, phase: str) -> None:
        if callback is None:
            return
        try:
            callback(processed, total, phase)
        except Exception as e:
            logger.error(f"Error in OCR progress callback: {e}", exc_info=True)
