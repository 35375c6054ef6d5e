"""
Network Awareness Service.

Classifies source paths as local or remote storage and turns file sizes into
processing time estimates. Remote files are read far slower than local ones,
so the batch queue shows a longer estimate for them and the coordinator keeps
separate network statistics.
"""

import logging
import os
import platform
from pathlib import Path
from typing import Optional, Union

from config import EXTRACTION_CONFIG, NETWORK_MOUNT_ROOTS

logger = logging.getLogger(__name__)

MODULE_NAME = "network"

BYTES_PER_GB = 1024 ** 3

_REMOTE_URL_SCHEMES = ("smb://", "nfs://", "cifs://", "afp://")
_DRIVE_REMOTE = 4


def _is_remote_windows_drive(path: str) -> bool:
    """Ask Windows whether a drive letter is a mapped network drive."""
    if platform.system().lower() != "windows" or len(path) < 2 or path[1] != ":":
        return False
    import ctypes

    drive = f"{path[0].upper()}:\\"
    return ctypes.windll.kernel32.GetDriveTypeW(drive) == _DRIVE_REMOTE


def _is_under_mount_root(path: str) -> bool:
    for root in NETWORK_MOUNT_ROOTS:
        prefix = root.rstrip("/") + "/"
        if not path.startswith(prefix):
            continue
        volume = path[len(prefix):].split("/", 1)[0]
        if not volume:
            return False
        # On macOS the boot volume appears under /Volumes as a link to /
        if os.path.islink(prefix + volume) and os.path.realpath(prefix + volume) == "/":
            return False
        return True
    return False


def is_network_path(file_path: Union[str, Path, None]) -> bool:
    """
    Return True when the path points at remote storage.

    Remote means a UNC path (``\\\\server\\share`` or ``//server/share``), an
    ``smb://``/``nfs://`` style URL, a path below one of the configured network
    mount roots, or a mapped network drive on Windows.
    """
    if not file_path:
        return False
    path = str(file_path)

    if path.startswith("\\\\") or path.startswith("//"):
        return True
    if path.lower().startswith(_REMOTE_URL_SCHEMES):
        return True

    try:
        if _is_remote_windows_drive(path):
            return True
    except (AttributeError, OSError) as e:
        logger.debug(f"Drive type query failed for {path}: {e}")

    return _is_under_mount_root(path.replace("\\", "/"))


def estimate_processing_minutes(size_bytes: Optional[int], is_network: bool = False) -> float:
    """
    Expected processing time for a file of the given size.

    Network storage is assumed to deliver 1.2 GB per minute and local storage
    5 GB per minute.
    """
    if not size_bytes:
        return 0.0
    throughput = EXTRACTION_CONFIG["network_gb_per_minute" if is_network else "local_gb_per_minute"]
    return (size_bytes / BYTES_PER_GB) / throughput


def format_duration_minutes(minutes: Optional[float]) -> str:
    """Format minutes as ``< 1 min``, ``N min`` or ``H h M min``."""
    if not minutes or minutes < 1:
        return "< 1 min"
    total = int(round(minutes))
    if total < 60:
        return f"{total} min"
    hours, remainder = divmod(total, 60)
    return f"{hours} h {remainder} min"
