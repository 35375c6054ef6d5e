"""
Extraction Service Module.

This module provides a unified service for subtitle extraction operations,
centralizing the wiring of prober, dispatcher, correction engine and batch
coordinator for both single-file and batch requests. Results are returned as
plain dictionaries ready for JSON serialization.

Key responsibilities:
- Probing a container and previewing which track would be chosen
- Extracting the best track of one file
- Running a batch over files and folders
- Correcting standalone SubRip files
"""

import logging
import threading
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional, Union

from core.correction_engine import CorrectionEngine, CorrectionLevel
from core.settings import ExtractionSettings
from core.track_prober import TrackProber
from core.track_selector import select_best_track_for_settings
from services.batch_coordinator import BatchCoordinator, BatchSummary
from services.batch_queue import BatchQueue
from services.dispatcher import ExtractionDispatcher, resolve_output_path
from utils.language import get_language_name

logger = logging.getLogger(__name__)

MODULE_NAME = "extraction_service"

SettingsInput = Optional[Union[ExtractionSettings, Dict[str, Any]]]


def _as_settings(settings: SettingsInput) -> ExtractionSettings:
    if isinstance(settings, ExtractionSettings):
        return settings
    return ExtractionSettings.from_dict(settings)


class ExtractionService:
    """
    Central service for subtitle extraction.

    One instance holds one set of collaborators; a fresh batch coordinator is
    created for every batch so runs never share queue state.
    """

    def __init__(
        self,
        prober: Optional[TrackProber] = None,
        dispatcher: Optional[ExtractionDispatcher] = None,
        correction_engine: Optional[CorrectionEngine] = None,
    ):
        self.correction_engine = correction_engine or CorrectionEngine()
        self.prober = prober or TrackProber()
        self.dispatcher = dispatcher or ExtractionDispatcher(correction_engine=self.correction_engine)
        self.cancel_event = threading.Event()
        self._coordinator: Optional[BatchCoordinator] = None

    def _begin_operation(self) -> threading.Event:
        """Start an operation with a fresh cancellation signal."""
        self.cancel_event = threading.Event()
        return self.cancel_event

    def _create_coordinator(
        self, settings: ExtractionSettings, queue: Optional[BatchQueue] = None, progress_callback=None
    ) -> BatchCoordinator:
        return BatchCoordinator(
            queue=queue,
            prober=self.prober,
            dispatcher=self.dispatcher,
            settings=settings,
            progress_callback=progress_callback,
        )

    def probe_file(self, file_path: Union[str, Path], settings: SettingsInput = None) -> Dict[str, Any]:
        """
        List a container's subtitle tracks and the one that would be extracted.

        Raises:
            ProbeError: If the container cannot be read
        """
        settings = _as_settings(settings)
        file_path = Path(file_path)
        tracks = self.prober.probe(file_path, self._begin_operation())
        selected = select_best_track_for_settings(tracks, settings)

        languages = sorted({track.language for track in tracks})
        return {
            "success": True,
            "file": str(file_path),
            "tracks": [track.to_dict() for track in tracks],
            "track_count": len(tracks),
            "languages": {code: get_language_name(code) for code in languages},
            "selected_track": selected.to_dict() if selected else None,
            "output_path": str(resolve_output_path(file_path, selected, settings)) if selected else None,
        }

    def extract_file(
        self,
        file_path: Union[str, Path],
        settings: SettingsInput = None,
        progress_callback: Optional[Callable] = None,
    ) -> Dict[str, Any]:
        """
        Extract the best subtitle track of one file.

        Failures are raised, not returned, so the caller sees the specific
        error type (ProbeError, NoSuitableTrackError, ExtractionError, ...).
        """
        settings = _as_settings(settings)
        coordinator = self._create_coordinator(settings, progress_callback=progress_callback)
        logger.info(f"Extracting subtitles from: {file_path}")

        result = coordinator.process_single_file(file_path, settings, self._begin_operation())
        response = result.to_dict()
        response["success"] = result.succeeded
        response["file"] = str(file_path)
        response["manual_tool_required"] = result.guidance is not None
        return response

    def batch_extract(
        self,
        input_paths: Iterable[Union[str, Path]],
        settings: SettingsInput = None,
        from_index: int = 0,
        recursive: bool = True,
        progress_callback: Optional[Callable] = None,
    ) -> BatchSummary:
        """
        Queue every container found under ``input_paths`` and process the queue.

        Args:
            input_paths: Files and folders to queue
            settings: Extraction settings for the whole run
            from_index: Queue position to start from
            recursive: Descend into sub-folders when scanning folders
            progress_callback: Receives progress updates

        Returns:
            BatchSummary of the run
        """
        settings = _as_settings(settings)
        queue = BatchQueue()
        for path in input_paths:
            if Path(path).is_dir():
                queue.add_folder(path, recursive)
            else:
                queue.add_files([path])

        logger.info(f"Batch queue built with {len(queue)} files")
        self._coordinator = self._create_coordinator(settings, queue, progress_callback)
        return self._coordinator.process_batch(from_index)

    def cancel(self) -> None:
        """Cancel the active single-file extraction or batch run."""
        self.cancel_event.set()
        if self._coordinator is not None:
            self._coordinator.cancel()

    def correct_srt_file(
        self,
        file_path: Union[str, Path],
        correction_level: Union[CorrectionLevel, str] = CorrectionLevel.STANDARD,
        create_backup: bool = False,
    ) -> Dict[str, Any]:
        """Correct an existing SubRip file in place."""
        level = CorrectionLevel.from_value(correction_level)
        corrections = self.correction_engine.correct_file(file_path, level, create_backup, self._begin_operation())
        return {
            "success": True,
            "file": str(file_path),
            "correction_level": level.value,
            "corrections": corrections,
        }

    def correct_srt_files(
        self,
        file_paths: List[Union[str, Path]],
        correction_level: Union[CorrectionLevel, str] = CorrectionLevel.STANDARD,
        create_backup: bool = False,
    ) -> Dict[str, Any]:
        """Correct several SubRip files; one failing file does not stop the rest."""
        level = CorrectionLevel.from_value(correction_level)
        results = self.correction_engine.correct_files(file_paths, level, create_backup, self._begin_operation())
        failed = {path: value for path, value in results.items() if isinstance(value, str)}
        return {
            "success": not failed,
            "correction_level": level.value,
            "results": results,
            "total_corrections": sum(value for value in results.values() if isinstance(value, int)),
            "failed_files": failed,
        }
