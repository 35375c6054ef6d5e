"""
Progress Reporting Module.

Provides one reporting channel for everything that takes long enough to need
a progress bar: batch runs across many files, single extractions and OCR of
image subtitles.

The module implements an observer pattern where operations report progress
to a ProgressReporter, which keeps per-task state and forwards updates to an
optional parent callback (the bridge, a CLI printer or a test recorder).
Progress errors never interrupt the operation that reported them.
"""

import json
import logging
import threading
from time import time
from typing import Any, Callable, Dict, Optional

logger = logging.getLogger(__name__)


class ProgressReporter:
    """
    Thread-safe progress tracker.

    Every update is forwarded to ``parent_callback`` as
    ``callback(task_type, task_id, percentage, **kwargs)`` with the reporter's
    operation id and context merged into the keyword arguments.
    """

    def __init__(
        self,
        parent_callback: Optional[Callable] = None,
        operation_id: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        """
        Args:
            parent_callback: Function to receive progress updates
            operation_id: Unique ID for associating related progress updates
            context: Additional data included with all updates from this reporter
        """
        self.parent_callback = parent_callback
        self.operation_id = operation_id
        self.context = context or {}
        self.current_progress = 0.0
        self.tasks = {}
        self._lock = threading.Lock()

    def create_ocr_callback(self, track_id: int) -> Callable[[int, int, str], None]:
        """
        Create a callback for OCR progress reported in processed/total units.

        Returns:
            Function accepting (processed_units, total_units, phase_label)
        """
        task_key = f"ocr_{track_id}"
        with self._lock:
            self.tasks[task_key] = {"type": "ocr", "id": track_id, "progress": 0}

        def callback(processed: int, total: int, phase: str = "OCR") -> None:
            percentage = (processed * 100.0 / total) if total else 0
            self._safe_update(
                task_key,
                percentage,
                "ocr",
                track_id,
                {"processed": processed, "total": total, "phase": phase},
            )

        return callback

    def update(self, task_type: str, task_id: Any, percentage: float, **kwargs) -> None:
        """Update progress directly without creating a callback first."""
        task_key = f"{task_type}_{task_id}"
        with self._lock:
            self.tasks.setdefault(task_key, {"type": task_type, "id": task_id, "progress": 0})
        self._safe_update(task_key, percentage, task_type, task_id, kwargs)

    def _safe_update(
        self,
        task_key: str,
        percentage: float,
        task_type: Optional[str] = None,
        task_id: Any = None,
        kwargs: Optional[Dict[str, Any]] = None,
    ) -> None:
        try:
            normalized_percentage = min(100.0, max(0.0, float(percentage)))

            with self._lock:
                if task_key in self.tasks:
                    self.tasks[task_key]["progress"] = normalized_percentage
                if self.tasks:
                    self.current_progress = sum(
                        task["progress"] for task in self.tasks.values()
                    ) / len(self.tasks)

            self._notify(task_type, task_id, normalized_percentage, dict(kwargs or {}))

            if int(normalized_percentage) % 20 == 0:
                logger.debug(f"Progress update: {task_key} at {normalized_percentage}%")

        except Exception as e:
            logger.error(f"Error in progress update: {e}", exc_info=True)

    def _notify(self, task_type: Optional[str], task_id: Any, percentage: float, kwargs: Dict[str, Any]) -> None:
        if not self.parent_callback:
            return
        try:
            if self.operation_id:
                kwargs["operation_id"] = self.operation_id
            kwargs.update(self.context)
            self.parent_callback(task_type, task_id, percentage, **kwargs)
        except Exception as e:
            logger.error(f"Error calling parent callback: {e}", exc_info=True)

    def task_started(self, task_key: str, description: str = "") -> None:
        """Signal the beginning of a task before its first progress update."""
        logger.debug(f"Task started: {task_key} - {description}")
        with self._lock:
            self.tasks.setdefault(task_key, {"type": "task", "id": task_key, "progress": 0})
        self._notify("task_started", task_key, 0, {"description": description})

    def task_completed(self, task_key: str, success: bool = True, message: str = "") -> None:
        """Mark a task finished and forward its result."""
        logger.debug(f"Task completed: {task_key} - Success: {success} - {message}")
        with self._lock:
            if task_key in self.tasks:
                self.tasks[task_key]["progress"] = 100
                self.tasks[task_key]["success"] = success
                self.tasks[task_key]["message"] = message
        self._notify("task_completed", task_key, 100, {"success": success, "message": message})

    def error(self, error_message: str, task_key: Optional[str] = None) -> None:
        """Report a failure without changing progress state."""
        logger.error(f"Error in operation: {error_message}")
        self._notify("error", task_key, self.current_progress, {"error": error_message})

    def complete(self, success: bool = True, message: str = "") -> None:
        """Mark the whole operation finished and send the final update."""
        with self._lock:
            for task in self.tasks.values():
                task["progress"] = 100
            self.current_progress = 100.0
        self._notify("complete", None, 100, {"status": "complete", "success": success, "message": message})
        logger.info(f"Operation complete. Success: {success}, Message: {message}")


# Global registry for sharing ProgressReporter instances across components
_progress_reporters = {}
_registry_lock = threading.Lock()


def get_progress_reporter(
    operation_id: str,
    parent_callback: Optional[Callable] = None,
    context: Optional[Dict[str, Any]] = None,
) -> ProgressReporter:
    """
    Retrieve or create a progress reporter by operation ID.

    Args:
        operation_id: Unique operation identifier
        parent_callback: Replaces the existing callback when provided
        context: Merged into the existing context when provided
    """
    with _registry_lock:
        reporter = _progress_reporters.get(operation_id)
        if reporter is None:
            reporter = ProgressReporter(parent_callback, operation_id, context)
            _progress_reporters[operation_id] = reporter
            return reporter
        if parent_callback is not None:
            reporter.parent_callback = parent_callback
        if context is not None:
            reporter.context.update(context)
        return reporter


def remove_progress_reporter(operation_id: str) -> None:
    """Drop a finished operation's reporter from the registry."""
    with _registry_lock:
        _progress_reporters.pop(operation_id, None)


def create_progress_callback_factory(operation_id: str) -> Callable:
    """
    Create a callback that prints progress for the bridge's stdout protocol.

    Each update is written as ``PROGRESS:<json>``; identical updates within
    100 ms are dropped.
    """
    last_progress = None
    last_update_time = 0.0

    def progress_callback(task_type=None, task_id=None, percentage=0, **kwargs):
        nonlocal last_progress, last_update_time
        try:
            try:
                percentage = int(float(percentage)) if percentage is not None else 0
            except (ValueError, TypeError):
                percentage = 0

            progress_data = {
                "operationId": operation_id,
                "args": [task_type, task_id, percentage],
                "kwargs": kwargs,
            }

            current_time = time()
            if last_progress == progress_data and current_time - last_update_time < 0.1:
                return
            last_progress = progress_data
            last_update_time = current_time

            print(f"PROGRESS:{json.dumps(progress_data, default=str)}", flush=True)

        except Exception as e:
            logger.error(f"Error in progress callback: {e}", exc_info=True)

    return progress_callback
