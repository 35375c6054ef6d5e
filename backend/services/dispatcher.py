"""
Extraction Strategy Dispatcher.

Routes a selected track to the extraction path its encoding needs:

- Text encodings are written straight to SubRip, then corrected if enabled
- PGS and DVB are dumped to a temporary ``.sup`` file, OCR'd into SubRip and
  corrected; the temporary file is removed afterwards whatever the outcome
- VobSub is not automated; the caller receives instructions for doing the
  conversion by hand
- Unknown encodings fail with UnsupportedCodecError

Every codec classification has an entry in STRATEGY_BY_CODEC, so adding a
classification means deciding its strategy here. Failures come back as a
single DispatchResult instead of an exception; only cancellation propagates.
"""

import logging
import tempfile
import threading
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Collection, Dict, Optional, Union

from core.correction_engine import CorrectionEngine, CorrectionLevel
from core.settings import ExtractionSettings
from core.track import CodecType, SubtitleTrack
from extractors.image import ImageSubtitleExtractor
from extractors.ocr import OcrAdapter
from extractors.text import TextSubtitleExtractor
from services.cleanup import delete_with_retry
from utils.error_handler import (
    ExtractionError,
    OperationCancelledError,
    SubForgeError,
    UnsupportedCodecError,
    log_exception,
)
from utils.path_utils import get_output_path, get_temp_sup_path
from utils.progress import ProgressReporter

logger = logging.getLogger(__name__)

MODULE_NAME = "dispatcher"

VOBSUB_GUIDANCE = (
    "VobSub subtitles cannot be converted automatically. To convert them:\n"
    "1. Open Subtitle Edit\n"
    "2. Choose Tools -> Batch Convert\n"
    "3. Add the container files\n"
    "4. Choose SubRip (.srt) as the output format\n"
    "5. Configure OCR settings\n"
    "6. Click Convert"
)


class ExtractionStrategy(Enum):
    TEXT_COPY = "text_copy"
    IMAGE_OCR = "image_ocr"
    MANUAL_TOOL = "manual_tool"
    UNSUPPORTED = "unsupported"


STRATEGY_BY_CODEC = {
    CodecType.TEXT_SRT: ExtractionStrategy.TEXT_COPY,
    CodecType.TEXT_ASS: ExtractionStrategy.TEXT_COPY,
    CodecType.TEXT_WEBVTT: ExtractionStrategy.TEXT_COPY,
    CodecType.TEXT_GENERIC: ExtractionStrategy.TEXT_COPY,
    CodecType.IMAGE_PGS: ExtractionStrategy.IMAGE_OCR,
    CodecType.IMAGE_DVB: ExtractionStrategy.IMAGE_OCR,
    CodecType.IMAGE_VOBSUB: ExtractionStrategy.MANUAL_TOOL,
    CodecType.UNKNOWN: ExtractionStrategy.UNSUPPORTED,
}


def strategy_for(codec_type: CodecType) -> ExtractionStrategy:
    return STRATEGY_BY_CODEC[codec_type]


class DispatchOutcome(Enum):
    EXTRACTED = "extracted"
    MANUAL_TOOL_REQUIRED = "manual_tool_required"
    FAILED = "failed"


@dataclass
class DispatchResult:
    """Outcome of extracting one track."""

    outcome: DispatchOutcome
    track: SubtitleTrack
    strategy: ExtractionStrategy
    output_path: Optional[Path] = None
    error: Optional[SubForgeError] = None
    guidance: Optional[str] = None
    corrections: int = 0
    temp_file: Optional[Path] = None
    temp_file_removed: Optional[bool] = None

    @property
    def succeeded(self) -> bool:
        return self.outcome is DispatchOutcome.EXTRACTED

    @property
    def message(self) -> str:
        if self.outcome is DispatchOutcome.EXTRACTED:
            return f"Extracted to {self.output_path}"
        if self.outcome is DispatchOutcome.MANUAL_TOOL_REQUIRED:
            return "VobSub subtitles require manual conversion with Subtitle Edit"
        return self.error.message if self.error is not None else "Extraction failed"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "outcome": self.outcome.value,
            "strategy": self.strategy.value,
            "track": self.track.to_dict(),
            "output_path": str(self.output_path) if self.output_path else None,
            "error": self.error.full_message if self.error is not None else None,
            "error_type": self.error.__class__.__name__ if self.error is not None else None,
            "guidance": self.guidance,
            "corrections": self.corrections,
            "message": self.message,
        }


def resolve_output_path(
    source_file: Union[str, Path],
    track: SubtitleTrack,
    settings: ExtractionSettings,
    reserved: Optional[Collection[Union[str, Path]]] = None,
) -> Path:
    """Apply the settings' filename pattern to compute a track's destination."""
    return get_output_path(
        source_file,
        pattern=settings.output_pattern,
        language=track.language,
        forced=track.track_type.is_forced,
        output_dir=settings.output_dir,
        track_id=track.id,
        reserved=reserved,
    )


class ExtractionDispatcher:
    """
    Chooses and runs the extraction path for a track.

    Collaborators are injectable so tests can replace the external tools.
    """

    def __init__(
        self,
        text_extractor: Optional[TextSubtitleExtractor] = None,
        image_extractor: Optional[ImageSubtitleExtractor] = None,
        ocr_adapter: Optional[OcrAdapter] = None,
        correction_engine: Optional[CorrectionEngine] = None,
        cleanup: Callable[[Path], bool] = delete_with_retry,
        temp_root: Optional[Union[str, Path]] = None,
    ):
        self.correction_engine = correction_engine or CorrectionEngine()
        self.text_extractor = text_extractor or TextSubtitleExtractor()
        self.image_extractor = image_extractor or ImageSubtitleExtractor()
        self.ocr_adapter = ocr_adapter or OcrAdapter(correction_engine=self.correction_engine)
        self.cleanup = cleanup
        self.temp_root = temp_root

    def dispatch(
        self,
        input_file: Union[str, Path],
        track: SubtitleTrack,
        output_path: Union[str, Path],
        settings: Optional[ExtractionSettings] = None,
        cancel_event: Optional[threading.Event] = None,
        progress_reporter: Optional[ProgressReporter] = None,
    ) -> DispatchResult:
        """
        Extract ``track`` from ``input_file`` into ``output_path``.

        Returns:
            DispatchResult; extraction and OCR failures are reported through it

        Raises:
            OperationCancelledError: If cancel_event was set
        """
        settings = settings or ExtractionSettings()
        strategy = strategy_for(track.codec_type)
        input_path = Path(input_file)
        output_path = Path(output_path)
        logger.info(f"Dispatching {track.display_name} via {strategy.value}")

        try:
            if strategy is ExtractionStrategy.TEXT_COPY:
                return self._extract_text(input_path, track, output_path, settings, cancel_event, progress_reporter)
            if strategy is ExtractionStrategy.IMAGE_OCR:
                return self._extract_image(input_path, track, output_path, settings, cancel_event, progress_reporter)
            if strategy is ExtractionStrategy.MANUAL_TOOL:
                logger.warning(f"{track.display_name} is VobSub, manual conversion required")
                return DispatchResult(
                    DispatchOutcome.MANUAL_TOOL_REQUIRED, track, strategy, guidance=VOBSUB_GUIDANCE
                )
            raise UnsupportedCodecError(track.codec or "unknown", MODULE_NAME)

        except OperationCancelledError:
            raise
        except SubForgeError as e:
            log_exception(e, module_name=MODULE_NAME, include_traceback=False)
            return DispatchResult(DispatchOutcome.FAILED, track, strategy, error=e)
        except Exception as e:
            log_exception(e, module_name=MODULE_NAME)
            error = ExtractionError(str(e), track.id, MODULE_NAME)
            return DispatchResult(DispatchOutcome.FAILED, track, strategy, error=error)

    def _extract_text(
        self,
        input_path: Path,
        track: SubtitleTrack,
        output_path: Path,
        settings: ExtractionSettings,
        cancel_event: Optional[threading.Event],
        progress_reporter: Optional[ProgressReporter],
    ) -> DispatchResult:
        self.text_extractor.extract(input_path, track, output_path, cancel_event, progress_reporter)
        corrections = self._correct(output_path, settings, cancel_event)
        return DispatchResult(
            DispatchOutcome.EXTRACTED,
            track,
            ExtractionStrategy.TEXT_COPY,
            output_path=output_path,
            corrections=corrections,
        )

    def _extract_image(
        self,
        input_path: Path,
        track: SubtitleTrack,
        output_path: Path,
        settings: ExtractionSettings,
        cancel_event: Optional[threading.Event],
        progress_reporter: Optional[ProgressReporter],
    ) -> DispatchResult:
        if settings.preserve_sup_files:
            work_dir = None
            sup_path = get_temp_sup_path(output_path)
        else:
            work_dir = Path(tempfile.mkdtemp(prefix="subforge_", dir=self.temp_root))
            sup_path = get_temp_sup_path(output_path, work_dir)

        ocr_callback = progress_reporter.create_ocr_callback(track.id) if progress_reporter else None
        removed = None
        try:
            self.image_extractor.extract(input_path, track, sup_path, cancel_event, progress_reporter)
            ocr_result = self.ocr_adapter.convert(
                sup_path,
                output_path,
                language=settings.ocr_language or track.language,
                correction_level=settings.correction_level,
                remove_hearing_impaired=settings.remove_hearing_impaired,
                cancel_event=cancel_event,
                progress_callback=ocr_callback,
                track_id=track.id,
            )
        finally:
            if work_dir is not None:
                removed = self._remove_temp(sup_path, work_dir)

        return DispatchResult(
            DispatchOutcome.EXTRACTED,
            track,
            ExtractionStrategy.IMAGE_OCR,
            output_path=output_path,
            corrections=ocr_result.corrections,
            temp_file=sup_path,
            temp_file_removed=removed,
        )

    def _correct(
        self, output_path: Path, settings: ExtractionSettings, cancel_event: Optional[threading.Event]
    ) -> int:
        level = CorrectionLevel.from_value(settings.correction_level)
        if level is CorrectionLevel.OFF:
            return 0
        try:
            return self.correction_engine.correct_file(
                output_path, level, settings.create_correction_backup, cancel_event
            )
        except OperationCancelledError:
            raise
        except SubForgeError as e:
            log_exception(e, module_name=MODULE_NAME, level=logging.WARNING, include_traceback=False)
            logger.warning("Keeping uncorrected subtitle text")
            return 0

    def _remove_temp(self, sup_path: Path, work_dir: Path) -> bool:
        """Delete the temporary image file, then its working directory."""
        removed = self.cleanup(sup_path)
        if removed:
            try:
                work_dir.rmdir()
            except OSError as e:
                logger.debug(f"Working directory {work_dir} left behind: {e}")
        return removed
