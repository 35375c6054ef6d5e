"""
Base Extractor Module.

This module defines the abstract base class shared by the subtitle stream
extractors, establishing one extraction workflow through the Template Method
pattern. Each extractor (text, image) inherits the workflow and supplies only
the tool invocation for its encoding family.

Key responsibilities:
- Define the common extraction workflow through a template method
- Provide standardized error handling across extractor types
- Manage progress reporting for user interface feedback
- Check the cancellation signal before any external tool starts
"""

import logging
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Callable, Optional, Type, Union

from core.track import SubtitleTrack
from utils.error_handler import (
    OperationCancelledError,
    SubForgeError,
    UnsupportedCodecError,
    format_error_details,
    log_exception,
)
from utils.file_utils import ensure_directory, get_file_size
from utils.process_runner import ToolRunner, calculate_extraction_timeout
from utils.progress import ProgressReporter, get_progress_reporter

logger = logging.getLogger(__name__)


class BaseExtractor(ABC):
    """
    Abstract base class for subtitle stream extractors.

    The extraction process follows these steps:
    1. Validate the track's encoding and the input file
    2. Check the cancellation signal
    3. Prepare the destination directory and progress reporting
    4. Run the encoding specific extraction
    5. Verify the output exists and is not empty
    6. Wrap any failure in the extractor's error class

    Subclasses implement ``supports``, ``error_class`` and
    ``_perform_extraction``.
    """

    def __init__(self, runner=ToolRunner):
        """
        Args:
            runner: Object exposing ``run_command``; ToolRunner unless a test
                    substitutes a fake
        """
        self.runner = runner
        self._module_name = self.__class__.__name__.lower()

    @property
    @abstractmethod
    def error_class(self) -> Type[SubForgeError]:
        """Exception type raised for failures of this extractor."""
        raise NotImplementedError("Subclasses must implement error_class")

    @abstractmethod
    def supports(self, track: SubtitleTrack) -> bool:
        """Return True when this extractor can handle the track's encoding."""
        raise NotImplementedError("Subclasses must implement supports")

    @abstractmethod
    def _perform_extraction(
        self,
        input_path: Path,
        track: SubtitleTrack,
        output_path: Path,
        timeout: float,
        cancel_event: Optional[threading.Event],
    ) -> None:
        """Run the external tool(s) that write ``output_path``."""
        raise NotImplementedError("Subclasses must implement _perform_extraction")

    def extract(
        self,
        input_file: Union[str, Path],
        track: SubtitleTrack,
        output_path: Union[str, Path],
        cancel_event: Optional[threading.Event] = None,
        progress_callback: Optional[Union[Callable, ProgressReporter, str]] = None,
    ) -> Path:
        """
        Extract one subtitle track to ``output_path``.

        This is the main entry point and implements the Template Method pattern.

        Args:
            input_file: Container holding the track
            track: Track to extract
            output_path: Destination file
            cancel_event: Aborts the extraction when set
            progress_callback: Function, ProgressReporter instance, or operation_id string

        Returns:
            Path to the written file

        Raises:
            UnsupportedCodecError: If the track's encoding is not handled here
            OperationCancelledError: If cancel_event was set
            SubForgeError: The extractor's error class for any other failure
        """
        input_path = Path(input_file)
        output_path = Path(output_path)

        if not self.supports(track):
            raise UnsupportedCodecError(track.codec, self._module_name)

        if cancel_event is not None and cancel_event.is_set():
            raise OperationCancelledError("Extraction cancelled before start", self._module_name)

        progress_reporter = self._get_progress_reporter(progress_callback, track)
        task_key = f"extract_{track.id}"
        progress_reporter.task_started(task_key, f"Extracting {track.display_name}")

        try:
            if not input_path.is_file():
                raise self.error_class(
                    f"Input file not found: {input_path}", track_id=track.id, module=self._module_name
                )

            ensure_directory(output_path.parent)
            timeout = calculate_extraction_timeout(get_file_size(input_path))
            logger.info(f"Extracting {track.display_name} to {output_path}")

            self._perform_extraction(input_path, track, output_path, timeout, cancel_event)

            if get_file_size(output_path) == 0:
                raise self.error_class(
                    f"No output produced at {output_path}", track_id=track.id, module=self._module_name
                )

        except OperationCancelledError:
            progress_reporter.task_completed(task_key, False, "Cancelled")
            raise
        except Exception as e:
            error_msg = f"Failed to extract track {track.id}: {e}"
            progress_reporter.error(error_msg, task_key)
            progress_reporter.task_completed(task_key, False, error_msg)
            if isinstance(e, self.error_class):
                raise
            log_exception(e, module_name=self._module_name)
            raise self.error_class(
                format_error_details(e, include_module=False), track_id=track.id, module=self._module_name
            ) from e

        progress_reporter.task_completed(task_key, True, f"Extracted to {output_path}")
        return output_path

    def _get_progress_reporter(
        self,
        progress_input: Optional[Union[Callable, ProgressReporter, str]],
        track: SubtitleTrack,
    ) -> ProgressReporter:
        """
        Convert various progress reporting inputs into a standardized ProgressReporter.

        None creates a silent reporter, a ProgressReporter is used as-is, a
        string is an operation id looked up in the registry and a callable is
        wrapped in a new reporter.
        """
        track_context = {
            "track_id": track.id,
            "language": track.language,
            "codec_type": track.codec_type.value,
        }

        if progress_input is None:
            return ProgressReporter(context=track_context)
        if isinstance(progress_input, ProgressReporter):
            return progress_input
        if isinstance(progress_input, str):
            return get_progress_reporter(progress_input, context=track_context)
        return ProgressReporter(progress_input, context=track_context)
