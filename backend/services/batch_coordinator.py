"""
Batch Coordinator Module.

Drives the batch queue one file at a time through probe, track selection,
extraction and cleanup. This is the only component that mutates the run
context (current file, its tracks, the selected track, the resume index and
the run statistics); everything else receives what it needs as arguments.

Guarantees:
- Items are processed strictly sequentially, in queue order
- A failing item is marked Error and the run moves on to the next one
- Cancellation is checked before each item and passed into every external
  tool call; the item that observes it becomes Cancelled and later items stay
  Pending
- ``resume_batch`` continues right after the last fully processed item, so
  a cancelled item is processed again
"""

import logging
import threading
import time
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from time import monotonic
from typing import Any, Callable, Dict, List, Optional, Set, Union

from config import EXTRACTION_CONFIG
from core.settings import ExtractionSettings
from core.track import SubtitleTrack
from core.track_prober import TrackProber
from core.track_selector import select_best_track_for_settings
from services.batch_queue import BatchQueue, QueueItem, QueueItemStatus
from services.dispatcher import DispatchOutcome, DispatchResult, ExtractionDispatcher, resolve_output_path
from utils.error_handler import (
    NoSuitableTrackError,
    OperationCancelledError,
    SubForgeError,
    format_error_details,
    is_critical_error,
    log_exception,
)
from utils.file_utils import format_file_size
from utils.progress import ProgressReporter

logger = logging.getLogger(__name__)

MODULE_NAME = "batch_coordinator"


class RunState(Enum):
    IDLE = "Idle"
    RUNNING = "Running"
    COMPLETED = "Completed"
    CANCELLED = "Cancelled"
    FAILED = "Failed"


@dataclass
class BatchStatistics:
    total_files: int = 0
    completed: int = 0
    errors: int = 0
    cancelled: int = 0
    bytes_processed: int = 0
    network_files: int = 0
    elapsed_seconds: float = 0.0

    @property
    def processed(self) -> int:
        return self.completed + self.errors + self.cancelled

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_files": self.total_files,
            "completed": self.completed,
            "errors": self.errors,
            "cancelled": self.cancelled,
            "processed": self.processed,
            "bytes_processed": self.bytes_processed,
            "formatted_bytes_processed": format_file_size(self.bytes_processed),
            "network_files": self.network_files,
            "elapsed_seconds": round(self.elapsed_seconds, 2),
        }


@dataclass
class ExtractionRun:
    """
    Mutable context of the run in progress.

    Owned by the coordinator; other components only ever see copies of the
    values they need.
    """

    state: RunState = RunState.IDLE
    busy: bool = False
    current_item: Optional[QueueItem] = None
    current_tracks: List[SubtitleTrack] = field(default_factory=list)
    selected_track: Optional[SubtitleTrack] = None
    last_processed_index: int = -1
    statistics: BatchStatistics = field(default_factory=BatchStatistics)
    reserved_outputs: Set[Path] = field(default_factory=set)

    def begin_item(self, item: QueueItem) -> None:
        self.current_item = item
        self.current_tracks = []
        self.selected_track = None

    def clear_current(self) -> None:
        self.current_item = None
        self.current_tracks = []
        self.selected_track = None


@dataclass
class FileOutcome:
    name: str
    path: str
    message: str = ""
    output_path: Optional[str] = None

    @classmethod
    def from_item(cls, item: QueueItem) -> "FileOutcome":
        return cls(
            name=item.display_name,
            path=str(item.path),
            message=item.status_message,
            output_path=str(item.output_path) if item.output_path else None,
        )


@dataclass
class BatchSummary:
    """What a run produced, per file and in total."""

    state: RunState = RunState.IDLE
    successful: List[FileOutcome] = field(default_factory=list)
    failed: List[FileOutcome] = field(default_factory=list)
    cancelled: List[FileOutcome] = field(default_factory=list)
    pending: List[FileOutcome] = field(default_factory=list)
    statistics: BatchStatistics = field(default_factory=BatchStatistics)
    fatal_error: Optional[str] = None

    @classmethod
    def from_queue(
        cls, queue: BatchQueue, state: RunState, statistics: BatchStatistics, fatal_error: Optional[str] = None
    ) -> "BatchSummary":
        summary = cls(state=state, statistics=statistics, fatal_error=fatal_error)
        buckets = {
            QueueItemStatus.COMPLETED: summary.successful,
            QueueItemStatus.ERROR: summary.failed,
            QueueItemStatus.CANCELLED: summary.cancelled,
            QueueItemStatus.PENDING: summary.pending,
        }
        for item in queue.items:
            bucket = buckets.get(item.status)
            if bucket is not None:
                bucket.append(FileOutcome.from_item(item))
        return summary

    @property
    def is_empty(self) -> bool:
        return not (self.successful or self.failed or self.cancelled or self.pending)

    def render_report(self) -> str:
        """Plain text report listing the outcome of every file."""
        if self.state is RunState.CANCELLED:
            title = "Batch processing cancelled"
        elif self.state is RunState.FAILED:
            title = "Batch processing failed"
        else:
            title = "Batch processing completed!"

        lines = [
            title,
            "",
            f"Total files: {len(self.successful) + len(self.failed) + len(self.cancelled) + len(self.pending)}",
            f"Successful: {len(self.successful)}",
            f"Errors: {len(self.failed)}",
            f"Cancelled: {len(self.cancelled)}",
        ]
        if self.pending:
            lines.append(f"Not processed: {len(self.pending)}")
        if self.fatal_error:
            lines.extend(["", f"Fatal error: {self.fatal_error}"])

        sections = (
            ("Successful files:", self.successful, False),
            ("Failed files:", self.failed, True),
            ("Cancelled files:", self.cancelled, False),
        )
        for heading, outcomes, with_message in sections:
            if not outcomes:
                continue
            lines.extend(["", heading])
            for outcome in outcomes:
                detail = f" - {outcome.message}" if with_message and outcome.message else ""
                lines.append(f"   • {outcome.name}{detail}")

        return "\n".join(lines)

    def to_dict(self) -> Dict[str, Any]:
        def outcomes(values):
            return [vars(outcome).copy() for outcome in values]

        return {
            "state": self.state.value,
            "successful": outcomes(self.successful),
            "failed": outcomes(self.failed),
            "cancelled": outcomes(self.cancelled),
            "pending": outcomes(self.pending),
            "completed_count": len(self.successful),
            "error_count": len(self.failed),
            "cancelled_count": len(self.cancelled),
            "statistics": self.statistics.to_dict(),
            "fatal_error": self.fatal_error,
            "report": self.render_report(),
        }


class BatchCoordinator:
    """
    Runs the batch queue and single-file extractions.

    Example:
        coordinator = BatchCoordinator(settings=ExtractionSettings())
        coordinator.queue.add_folder("/videos")
        summary = coordinator.process_batch()
        print(summary.render_report())
    """

    def __init__(
        self,
        queue: Optional[BatchQueue] = None,
        prober: Optional[TrackProber] = None,
        dispatcher: Optional[ExtractionDispatcher] = None,
        settings: Optional[ExtractionSettings] = None,
        progress_callback: Optional[Callable] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.queue = queue if queue is not None else BatchQueue()
        self.prober = prober or TrackProber()
        self.dispatcher = dispatcher or ExtractionDispatcher()
        self.settings = settings or ExtractionSettings()
        self.progress_callback = progress_callback
        self.run = ExtractionRun()
        self._sleep = sleep
        self._cancel_event = threading.Event()
        self._run_lock = threading.Lock()

    @property
    def cancel_event(self) -> threading.Event:
        return self._cancel_event

    @property
    def is_busy(self) -> bool:
        return self.run.busy

    def cancel(self) -> None:
        """Request cancellation of the active run."""
        if self.run.busy:
            logger.info("Cancellation requested for batch run")
        self._cancel_event.set()

    def process_batch(self, from_index: int = 0, settings: Optional[ExtractionSettings] = None) -> BatchSummary:
        """
        Process queue items starting at ``from_index``.

        Per-item failures never stop the run. A failure of the coordinator
        itself ends the run with state Failed and is reported in the summary.

        Args:
            from_index: First queue position to process
            settings: Settings for this run; the coordinator's settings when None

        Returns:
            BatchSummary over the whole queue; empty when nothing was left to process

        Raises:
            SubForgeError: If another run is already active
            ValueError: If from_index is negative
        """
        if from_index < 0:
            raise ValueError("from_index must not be negative")
        if not self._run_lock.acquire(blocking=False):
            raise SubForgeError("A batch run is already in progress", MODULE_NAME)

        settings = settings or self.settings
        run = ExtractionRun(state=RunState.RUNNING, busy=True, last_processed_index=from_index - 1)
        fatal_error = None
        started = monotonic()

        try:
            total = len(self.queue)
            if from_index >= total:
                logger.info("No remaining files to process in batch queue")
                self.run = ExtractionRun(last_processed_index=self.run.last_processed_index)
                return BatchSummary()

            self._cancel_event.clear()
            self.run = run
            run.statistics.total_files = total - from_index
            for item in self.queue.items[from_index:]:
                if item.status is not QueueItemStatus.PENDING:
                    item.reset()

            logger.info(f"Starting batch processing of {total} files from index {from_index}")
            reporter = ProgressReporter(self.progress_callback, operation_id="batch")
            self._drive(run, from_index, settings, reporter)

            if run.state is RunState.RUNNING:
                run.state = RunState.COMPLETED
            reporter.complete(run.state is RunState.COMPLETED, run.state.value)

        except Exception as e:
            if is_critical_error(e):
                raise
            log_exception(e, module_name=MODULE_NAME)
            run.state = RunState.FAILED
            fatal_error = format_error_details(e)

        finally:
            run.busy = False
            run.clear_current()
            run.statistics.elapsed_seconds = monotonic() - started
            self._run_lock.release()

        summary = BatchSummary.from_queue(self.queue, run.state, run.statistics, fatal_error)
        stats = run.statistics
        logger.info(
            f"Batch processing {run.state.value.lower()}. Success: {stats.completed}, "
            f"Errors: {stats.errors}, Cancelled: {stats.cancelled}"
        )
        return summary

    def resume_batch(self, settings: Optional[ExtractionSettings] = None) -> BatchSummary:
        """Continue after the last fully processed item; a cancelled item is retried."""
        start_index = self.run.last_processed_index + 1
        logger.info(f"Resuming batch processing from file {start_index + 1} of {len(self.queue)}")
        return self.process_batch(start_index, settings)

    def _drive(self, run: ExtractionRun, from_index: int, settings: ExtractionSettings, reporter: ProgressReporter) -> None:
        index = from_index
        delay = EXTRACTION_CONFIG["inter_item_delay"]

        while index < len(self.queue):
            item = self.queue[index]
            # Items processed earlier in this run can shift back under the cursor after a reorder
            if item.status is not QueueItemStatus.PENDING:
                index += 1
                continue

            if self._cancel_event.is_set():
                logger.info("Batch processing cancelled by user")
                run.state = RunState.CANCELLED
                return

            self._process_item(run, item, index, settings, reporter)

            # A cancelled item is not fully processed; resume starts from it again
            if item.status is QueueItemStatus.CANCELLED:
                run.state = RunState.CANCELLED
                return

            position = self.queue.index_of(item)
            run.last_processed_index = position if position >= 0 else index

            index = run.last_processed_index + 1
            if delay and index < len(self.queue):
                self._sleep(delay)

    def _process_item(
        self,
        run: ExtractionRun,
        item: QueueItem,
        index: int,
        settings: ExtractionSettings,
        reporter: ProgressReporter,
    ) -> None:
        stats = run.statistics
        task_key = f"file_{index}"
        item.mark_processing()
        run.begin_item(item)
        reporter.task_started(task_key, f"Processing {item.display_name}")
        reporter.update("file", index, 0, file_path=str(item.path), status=item.status.value)
        logger.info(f"Processing {item.display_name} ({item.formatted_size})")

        try:
            result = self._extract(item.path, settings, self._cancel_event, reporter, run)
        except OperationCancelledError:
            item.mark_cancelled()
            stats.cancelled += 1
            logger.info(f"Cancelled: {item.display_name}")
        except Exception as e:
            if is_critical_error(e):
                raise
            log_exception(e, module_name=MODULE_NAME, include_traceback=not isinstance(e, SubForgeError))
            item.mark_error(format_error_details(e, include_module=False))
            stats.errors += 1
        else:
            if result.succeeded:
                item.mark_completed(result.output_path)
                stats.completed += 1
                stats.bytes_processed += item.size_bytes
                if item.is_network:
                    stats.network_files += 1
                logger.info(f"Completed: {item.display_name}")
            else:
                item.mark_error(result.message)
                stats.errors += 1
                logger.warning(f"Failed: {item.display_name} - {result.message}")

        succeeded = item.status is QueueItemStatus.COMPLETED
        reporter.update("file", index, 100, file_path=str(item.path), status=item.status.value)
        reporter.task_completed(task_key, succeeded, item.status_message)

    def _extract(
        self,
        file_path: Path,
        settings: ExtractionSettings,
        cancel_event: threading.Event,
        reporter: Optional[ProgressReporter] = None,
        run: Optional[ExtractionRun] = None,
    ) -> DispatchResult:
        """Probe, select and dispatch one file."""
        tracks = self.prober.probe(file_path, cancel_event)
        track = select_best_track_for_settings(tracks, settings)
        if track is None:
            raise NoSuitableTrackError(str(file_path), MODULE_NAME)
        logger.info(f"Selected {track.display_name}")

        reserved = run.reserved_outputs if run is not None else None
        output_path = resolve_output_path(file_path, track, settings, reserved)
        if run is not None:
            run.current_tracks = list(tracks)
            run.selected_track = track
            run.reserved_outputs.add(output_path)

        return self.dispatcher.dispatch(file_path, track, output_path, settings, cancel_event, reporter)

    def process_single_file(
        self,
        file_path: Union[str, Path],
        settings: Optional[ExtractionSettings] = None,
        cancel_event: Optional[threading.Event] = None,
        progress_callback: Optional[Callable] = None,
    ) -> DispatchResult:
        """
        Extract the best track of one file outside the queue.

        Returns:
            DispatchResult, either extracted or requiring a manual tool

        Raises:
            ProbeError, NoSuitableTrackError, UnsupportedCodecError,
            ExtractionError, OcrError: The failure, directly
            OperationCancelledError: If cancel_event was set
        """
        settings = settings or self.settings
        cancel_event = cancel_event or threading.Event()
        reporter = ProgressReporter(progress_callback or self.progress_callback, operation_id="single")

        result = self._extract(Path(file_path), settings, cancel_event, reporter)
        if result.outcome is DispatchOutcome.FAILED:
            raise result.error
        reporter.complete(result.succeeded, result.message)
        return result
