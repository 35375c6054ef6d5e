"""
Batch Queue Module.

The ordered list of container files waiting for extraction.

Each QueueItem records one file and its progress through a run. Status
changes go through the ``mark_*`` methods, which only allow the forward
transitions of a run: Pending -> Processing -> Completed | Error | Cancelled.
Items that are never reached stay Pending. ``reset`` returns a finished item
to Pending when a new run starts at or before its position.
"""

import logging
import os
import threading
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Union

from config import CONTAINER_EXTENSIONS
from services.network import estimate_processing_minutes, format_duration_minutes, is_network_path
from utils.error_handler import QueueLockedError
from utils.file_utils import find_container_files, format_file_size, get_file_size

logger = logging.getLogger(__name__)

MODULE_NAME = "batch_queue"


class QueueItemStatus(Enum):
    PENDING = "Pending"
    PROCESSING = "Processing"
    COMPLETED = "Completed"
    ERROR = "Error"
    CANCELLED = "Cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (QueueItemStatus.COMPLETED, QueueItemStatus.ERROR, QueueItemStatus.CANCELLED)


_ALLOWED_TRANSITIONS = {
    QueueItemStatus.PENDING: {QueueItemStatus.PROCESSING, QueueItemStatus.CANCELLED},
    QueueItemStatus.PROCESSING: {
        QueueItemStatus.COMPLETED,
        QueueItemStatus.ERROR,
        QueueItemStatus.CANCELLED,
    },
    QueueItemStatus.COMPLETED: set(),
    QueueItemStatus.ERROR: set(),
    QueueItemStatus.CANCELLED: set(),
}


@dataclass(eq=False)
class QueueItem:
    """A container file in the batch queue."""

    path: Path
    size_bytes: int = 0
    is_network: bool = False
    estimated_minutes: float = 0.0
    status: QueueItemStatus = QueueItemStatus.PENDING
    status_message: str = ""
    output_path: Optional[Path] = None
    added_at: datetime = field(default_factory=datetime.now)

    @classmethod
    def from_path(cls, file_path) -> "QueueItem":
        """Create an item, reading size and storage type from the filesystem."""
        path = Path(file_path)
        size = get_file_size(path)
        network = is_network_path(path)
        return cls(
            path=path,
            size_bytes=size,
            is_network=network,
            estimated_minutes=estimate_processing_minutes(size, network),
        )

    @property
    def display_name(self) -> str:
        return self.path.name

    @property
    def formatted_size(self) -> str:
        return format_file_size(self.size_bytes)

    @property
    def formatted_estimate(self) -> str:
        return format_duration_minutes(self.estimated_minutes)

    @property
    def key(self) -> str:
        """Case-insensitive identity used to reject duplicate paths."""
        return os.path.normcase(str(self.path)).lower()

    def _transition(self, new_status: QueueItemStatus, message: str) -> None:
        if new_status not in _ALLOWED_TRANSITIONS[self.status]:
            raise ValueError(
                f"Invalid status change for {self.display_name}: {self.status.value} -> {new_status.value}"
            )
        logger.debug(f"{self.display_name}: {self.status.value} -> {new_status.value}")
        self.status = new_status
        self.status_message = message

    def mark_processing(self) -> None:
        self._transition(QueueItemStatus.PROCESSING, "Processing...")

    def mark_completed(self, output_path: Optional[Path], message: str = "Completed successfully") -> None:
        self._transition(QueueItemStatus.COMPLETED, message)
        self.output_path = Path(output_path) if output_path else None

    def mark_error(self, message: str) -> None:
        self._transition(QueueItemStatus.ERROR, f"Error: {message}")

    def mark_cancelled(self) -> None:
        self._transition(QueueItemStatus.CANCELLED, "Cancelled")

    def reset(self) -> None:
        """Return the item to Pending for a new run."""
        self.status = QueueItemStatus.PENDING
        self.status_message = ""
        self.output_path = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "path": str(self.path),
            "name": self.display_name,
            "size_bytes": self.size_bytes,
            "formatted_size": self.formatted_size,
            "is_network": self.is_network,
            "estimated_minutes": round(self.estimated_minutes, 2),
            "formatted_estimate": self.formatted_estimate,
            "status": self.status.value,
            "status_message": self.status_message,
            "output_path": str(self.output_path) if self.output_path else None,
            "added_at": self.added_at.isoformat(timespec="seconds"),
        }


class BatchQueue:
    """
    Ordered collection of QueueItems.

    Items may be added, removed and reordered while a run is active, except
    the item currently Processing: any operation that would move or remove
    it raises QueueLockedError. All operations are guarded by one lock so the
    coordinator's thread and the caller's thread see a consistent list.
    """

    def __init__(self):
        self._items: List[QueueItem] = []
        self._lock = threading.RLock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)

    def __iter__(self):
        return iter(self.items)

    def __getitem__(self, index: int) -> QueueItem:
        with self._lock:
            return self._items[index]

    @property
    def items(self) -> List[QueueItem]:
        """Snapshot of the queue in processing order."""
        with self._lock:
            return list(self._items)

    def add_files(self, paths: Iterable[Union[str, Path]]) -> int:
        """
        Append container files to the queue.

        Empty paths, files without a container extension and paths already
        queued (compared case-insensitively) are skipped.

        Returns:
            Number of items added
        """
        added = 0
        skipped = 0
        with self._lock:
            known = {item.key for item in self._items}
            for file_path in paths:
                if not file_path or not str(file_path).strip():
                    skipped += 1
                    continue
                if Path(file_path).suffix.lower() not in CONTAINER_EXTENSIONS:
                    logger.debug(f"Skipping non-container file: {file_path}")
                    skipped += 1
                    continue
                item = QueueItem.from_path(file_path)
                if item.key in known:
                    skipped += 1
                    continue
                known.add(item.key)
                self._items.append(item)
                added += 1

        if added:
            logger.info(f"Added {added} files to batch queue")
        if skipped:
            logger.debug(f"Skipped {skipped} paths (empty, unsupported or already queued)")
        return added

    def add_folder(self, folder: Union[str, Path], recursive: bool = True) -> int:
        """Queue every container file found in a folder."""
        return self.add_files(find_container_files(folder, recursive=recursive))

    def find(self, file_path: Union[str, Path]) -> Optional[QueueItem]:
        key = os.path.normcase(str(Path(file_path))).lower()
        with self._lock:
            return next((item for item in self._items if item.key == key), None)

    def index_of(self, item: QueueItem) -> int:
        with self._lock:
            for index, candidate in enumerate(self._items):
                if candidate is item:
                    return index
        return -1

    def _ensure_not_processing(self, item: QueueItem) -> None:
        if item.status is QueueItemStatus.PROCESSING:
            raise QueueLockedError(str(item.path), MODULE_NAME)

    def remove(self, item: QueueItem) -> bool:
        """
        Remove one item.

        Raises:
            QueueLockedError: If the item is being processed
        """
        with self._lock:
            index = self.index_of(item)
            if index < 0:
                return False
            self._ensure_not_processing(item)
            del self._items[index]
        logger.info(f"Removed from queue: {item.display_name}")
        return True

    def clear_all(self) -> int:
        """
        Empty the queue.

        Raises:
            QueueLockedError: If an item is being processed
        """
        with self._lock:
            for item in self._items:
                self._ensure_not_processing(item)
            count = len(self._items)
            self._items.clear()
        logger.info("Batch queue cleared")
        return count

    def clear_completed(self) -> int:
        """Drop every Completed item and return how many were removed."""
        with self._lock:
            remaining = [item for item in self._items if item.status is not QueueItemStatus.COMPLETED]
            count = len(self._items) - len(remaining)
            self._items[:] = remaining
        logger.info(f"Cleared {count} completed items from batch queue")
        return count

    def _move(self, item: QueueItem, new_index: int) -> bool:
        with self._lock:
            index = self.index_of(item)
            if index < 0:
                return False
            self._ensure_not_processing(item)
            del self._items[index]
            self._items.insert(new_index, item)
        return True

    def move_to_top(self, item: QueueItem) -> bool:
        return self._move(item, 0)

    def move_to_bottom(self, item: QueueItem) -> bool:
        with self._lock:
            return self._move(item, len(self._items) - 1)

    def reorder(self, dragged: QueueItem, target: QueueItem) -> bool:
        """
        Move ``dragged`` to the position of ``target``, as a drag-and-drop does.

        When the dragged item sits above the target, removing it shifts the
        target up by one, so the insertion index is adjusted.

        Returns:
            True if the queue changed
        """
        with self._lock:
            dragged_index = self.index_of(dragged)
            target_index = self.index_of(target)
            if dragged_index < 0 or target_index < 0 or dragged is target:
                return False
            self._ensure_not_processing(dragged)

            del self._items[dragged_index]
            if dragged_index < target_index:
                target_index -= 1
            self._items.insert(target_index, dragged)

        logger.info(f"Reordered queue: {dragged.display_name} moved to position {target_index + 1}")
        return True

    def counts_by_status(self) -> Dict[str, int]:
        with self._lock:
            counts = {status.value: 0 for status in QueueItemStatus}
            for item in self._items:
                counts[item.status.value] += 1
            return counts

    @property
    def total_size_bytes(self) -> int:
        with self._lock:
            return sum(item.size_bytes for item in self._items)

    @property
    def network_count(self) -> int:
        with self._lock:
            return sum(1 for item in self._items if item.is_network)

    @property
    def estimated_minutes(self) -> float:
        with self._lock:
            return sum(item.estimated_minutes for item in self._items)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "items": [item.to_dict() for item in self.items],
            "count": len(self),
            "total_size_bytes": self.total_size_bytes,
            "formatted_total_size": format_file_size(self.total_size_bytes),
            "network_count": self.network_count,
            "estimated_minutes": round(self.estimated_minutes, 2),
            "formatted_estimate": format_duration_minutes(self.estimated_minutes),
            "counts": self.counts_by_status(),
        }
