"""
File Utilities Module.

Provides functions for direct filesystem operations with robust error handling.
Unlike path_utils (which handles path string manipulation), these functions
actually interact with the filesystem to find containers, create directories,
copy and delete files.

All operations use consistent error handling with specific exception types,
making failures easy to diagnose and handle appropriately.
"""

import logging
import os
import shutil
from pathlib import Path
from typing import Iterable, List, Union

from config import CONTAINER_EXTENSIONS
from utils.error_handler import FileHandlingError, log_exception, safe_execute

logger = logging.getLogger(__name__)
MODULE_NAME = "file_utils"

_SIZE_UNITS = ["B", "KB", "MB", "GB", "TB"]


def is_container_file(file_path: Union[str, Path]) -> bool:
    return Path(file_path).suffix.lower() in CONTAINER_EXTENSIONS


def find_container_files(
    paths: Union[str, Path, Iterable[Union[str, Path]]],
    recursive: bool = True,
) -> List[Path]:
    """
    Find all container files in the given locations.

    Directories are searched (recursively by default); files are kept when
    their extension is a supported container. Unreadable locations are logged
    and skipped.

    Args:
        paths: File path(s) or directory path(s) to search
        recursive: Descend into subdirectories

    Returns:
        Sorted list of container paths, empty if none found
    """

    def _find_files():
        path_list = [paths] if isinstance(paths, (str, Path)) else list(paths)
        found = []

        for path in path_list:
            path = Path(path)
            try:
                if path.is_file():
                    if is_container_file(path):
                        found.append(path)
                elif path.is_dir():
                    candidates = path.rglob("*") if recursive else path.iterdir()
                    found.extend(p for p in candidates if p.is_file() and is_container_file(p))
                else:
                    logger.warning(f"Path not found: {path}")
            except OSError as e:
                log_exception(e, module_name=MODULE_NAME)
                logger.error(f"Error accessing path {path}: {e}")

        return sorted(set(found))

    return safe_execute(_find_files, module_name=MODULE_NAME, default_return=[], raise_error=False)


def ensure_directory(directory: Union[str, Path]) -> Path:
    """
    Create a directory and its parents if missing.

    Raises:
        FileHandlingError: If the directory cannot be created
    """

    def _ensure_dir():
        path = Path(directory)
        path.mkdir(parents=True, exist_ok=True)
        return path

    return safe_execute(
        _ensure_dir,
        module_name=MODULE_NAME,
        error_map={
            OSError: lambda msg, **kwargs: FileHandlingError(
                f"Failed to create directory: {msg}", str(directory), MODULE_NAME
            )
        },
    )


def safe_copy_file(source: Union[str, Path], destination: Union[str, Path]) -> Path:
    """
    Copy a file, creating the destination directory first.

    Raises:
        FileHandlingError: If the source is missing or the copy fails
    """

    def _copy_file():
        src = Path(source)
        if not src.is_file():
            raise FileHandlingError("Source file not found", str(src), MODULE_NAME)
        dest = Path(destination)
        dest.parent.mkdir(parents=True, exist_ok=True)
        shutil.copy2(src, dest)
        return dest

    return safe_execute(
        _copy_file,
        module_name=MODULE_NAME,
        error_map={
            OSError: lambda msg, **kwargs: FileHandlingError(
                f"Failed to copy to {destination}: {msg}", str(source), MODULE_NAME
            )
        },
    )


def safe_delete_file(file_path: Union[str, Path]) -> bool:
    """
    Delete a file.

    Returns:
        True if the file was deleted, False if it did not exist

    Raises:
        FileHandlingError: If deletion fails (permissions, file in use, etc.)
    """

    def _delete_file():
        path = Path(file_path)
        if not path.exists():
            return False
        path.unlink()
        return True

    return safe_execute(
        _delete_file,
        module_name=MODULE_NAME,
        log_level=logging.DEBUG,
        error_map={
            OSError: lambda msg, **kwargs: FileHandlingError(
                f"Failed to delete: {msg}", str(file_path), MODULE_NAME
            )
        },
    )


def get_file_size(file_path: Union[str, Path]) -> int:
    """Size in bytes, 0 when the file cannot be read."""
    try:
        return os.path.getsize(file_path)
    except OSError:
        return 0


def format_file_size(size_bytes: int) -> str:
    """Human readable size with one decimal, e.g. ``1.5 GB``."""
    size = float(max(size_bytes, 0))
    unit_index = 0
    while size >= 1024 and unit_index < len(_SIZE_UNITS) - 1:
        size /= 1024
        unit_index += 1
    if unit_index == 0:
        return f"{int(size)} B"
    return f"{size:.1f} {_SIZE_UNITS[unit_index]}"
