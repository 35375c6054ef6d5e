"""
Temporary File Cleanup Service.

Best-effort removal of intermediate files such as the ``.sup`` image data
written for OCR. An external process may hold a lock on a file briefly after
it exits, so deletion is retried on a fixed schedule of growing delays.

Cleanup never fails an extraction: when every attempt fails a CleanupError is
logged and the caller carries on.
"""

import logging
import shutil
import time
from pathlib import Path
from typing import Callable, Optional, Sequence, Union

from config import EXTRACTION_CONFIG
from utils.error_handler import CleanupError, FileHandlingError, log_exception
from utils.file_utils import safe_delete_file

logger = logging.getLogger(__name__)

MODULE_NAME = "cleanup"


def _remove_tree(directory: Path) -> bool:
    if not directory.exists():
        return False
    try:
        shutil.rmtree(directory)
    except OSError as e:
        raise FileHandlingError(f"Failed to remove directory: {e}", str(directory), MODULE_NAME) from e
    return True


def _with_retry(
    action: Callable[[Path], bool],
    path: Path,
    retry_delays_ms: Optional[Sequence[int]],
    sleep: Callable[[float], None],
) -> bool:
    delays = list(EXTRACTION_CONFIG["cleanup_retry_delays_ms"] if retry_delays_ms is None else retry_delays_ms)
    attempts = len(delays) + 1

    for attempt in range(1, attempts + 1):
        try:
            if action(path):
                logger.info(f"Removed temporary file: {path.name}")
            return True
        except FileHandlingError as e:
            if attempt == attempts:
                log_exception(
                    CleanupError(f"Gave up after {attempts} attempts: {e.message}", path, MODULE_NAME),
                    module_name=MODULE_NAME,
                    level=logging.WARNING,
                    include_traceback=False,
                )
                return False
            delay = delays[attempt - 1]
            logger.info(f"{path.name} still in use, retrying in {delay}ms (attempt {attempt}/{attempts})")
            sleep(delay / 1000)

    return False


def delete_with_retry(
    file_path: Union[str, Path],
    retry_delays_ms: Optional[Sequence[int]] = None,
    sleep: Callable[[float], None] = time.sleep,
    delete: Callable[[Path], bool] = safe_delete_file,
) -> bool:
    """
    Delete a file, retrying while it is locked.

    One attempt is made up front and one more after each delay, so the total
    wait is bounded by the sum of the delays.

    Args:
        file_path: File to delete; a missing file counts as deleted
        retry_delays_ms: Delays between attempts, in milliseconds
        sleep: Sleep function, replaceable in tests
        delete: Deletion function raising FileHandlingError on failure

    Returns:
        True when the file is gone, False when every attempt failed
    """
    return _with_retry(delete, Path(file_path), retry_delays_ms, sleep)


def remove_directory_with_retry(
    directory: Union[str, Path],
    retry_delays_ms: Optional[Sequence[int]] = None,
    sleep: Callable[[float], None] = time.sleep,
) -> bool:
    """Remove a working directory and its contents with the same retry policy."""
    return _with_retry(_remove_tree, Path(directory), retry_delays_ms, sleep)
