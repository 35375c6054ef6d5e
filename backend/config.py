"""
Configuration Module for SubForge.

This module centralizes all configuration settings for the application, serving as the
single source of truth for paths, container extensions, codec tables, external tool
locations and the timing policy of the extraction pipeline.

Key components:
- Path configurations (application, logs, output)
- Container file type definitions
- Codec classification tables for Matroska and FFprobe codec identifiers
- External tool resolution (MKVToolNix, FFmpeg, Subtitle Edit CLI)
- Extraction, OCR, cleanup and correction settings
"""

import logging
import os
import platform
import shutil
import sys
from pathlib import Path
from typing import Optional

# Determine the application directory based on execution environment
if getattr(sys, "frozen", False):
    # Running in a bundled application (PyInstaller, cx_Freeze, etc.)
    APP_DIR = Path(sys.executable).parent
else:
    # Running from source code
    APP_DIR = Path(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

# Logging configuration
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
LOG_LEVEL = logging.INFO
LOG_DIR = APP_DIR / "logs"
LOG_FILE = LOG_DIR / "subforge.log"

logger = logging.getLogger(__name__)

# Container formats accepted into the batch queue
CONTAINER_EXTENSIONS = {
    ".mkv",    # Matroska Video
    ".mka",    # Matroska Audio (may still carry subtitles)
    ".mks",    # Matroska Subtitles
    ".webm",   # WebM
    ".mp4",    # MPEG-4 Part 14
    ".m4v",    # MPEG-4 Video
    ".mov",    # QuickTime File Format
}

# Containers probed and extracted with MKVToolNix; the rest go through FFmpeg
MKVTOOLNIX_EXTENSIONS = {".mkv", ".mka", ".mks", ".webm"}

# Matroska codec ids mapped to the encoding classification names used by
# core.track.CodecType. Ids missing here fall back to a keyword scan of the codec name.
MATROSKA_CODEC_CLASSES = {
    "S_TEXT/UTF8": "srt",
    "S_TEXT/ASCII": "srt",
    "S_TEXT/ASS": "ass",
    "S_TEXT/SSA": "ass",
    "S_ASS": "ass",
    "S_SSA": "ass",
    "S_TEXT/WEBVTT": "webvtt",
    "S_TEXT/VTT": "webvtt",
    "S_TEXT/3GPP": "text",
    "S_TEXT/USF": "text",
    "S_HDMV/PGS": "pgs",
    "S_HDMV/TEXTST": "text",
    "S_VOBSUB": "vobsub",
    "S_DVBSUB": "dvb",
}

# FFprobe codec_name values mapped to Matroska codec ids
FFPROBE_CODEC_TO_MATROSKA = {
    "subrip": "S_TEXT/UTF8",
    "srt": "S_TEXT/UTF8",
    "ass": "S_TEXT/ASS",
    "ssa": "S_TEXT/SSA",
    "webvtt": "S_TEXT/WEBVTT",
    "vtt": "S_TEXT/WEBVTT",
    "mov_text": "S_TEXT/3GPP",
    "timed_text": "S_TEXT/3GPP",
    "3gpp": "S_TEXT/3GPP",
    "text": "S_TEXT/UTF8",
    "hdmv_pgs_subtitle": "S_HDMV/PGS",
    "dvd_subtitle": "S_VOBSUB",
    "dvb_subtitle": "S_DVBSUB",
}

# Text formats that mkvextract writes in their native syntax and that need a
# conversion pass to SubRip afterwards
TEXT_CLASSES_NEEDING_CONVERSION = {"ass", "webvtt"}

# Native side-file extension per text classification
TEXT_CLASS_TO_EXTENSION = {
    "srt": "srt",
    "ass": "ass",
    "webvtt": "vtt",
    "text": "txt",
}

# Default preferences applied when no settings are supplied
DEFAULT_LANGUAGE = "eng"
DEFAULT_OCR_LANGUAGE = "eng"
DEFAULT_OUTPUT_PATTERN = "{basename}.{lang}{forced}.srt"
FORCED_SUFFIX = ".forced"

DEFAULT_SETTINGS = {
    "correction_level": "standard",
    "preferred_language": DEFAULT_LANGUAGE,
    "prefer_forced": True,
    "prefer_closed_captions": False,
    "output_pattern": DEFAULT_OUTPUT_PATTERN,
    "output_dir": None,
    "preserve_sup_files": False,
    "ocr_language": DEFAULT_OCR_LANGUAGE,
    "remove_hearing_impaired": False,
    "create_correction_backup": False,
}

# Extraction process configuration
EXTRACTION_CONFIG = {
    # Probe budget in seconds
    "probe_timeout": 120,

    # Stream extraction budget: base plus minutes per GB, by size band
    "extraction_base_minutes": 5,
    "extraction_minutes_per_gb": ((10, 1), (50, 2), (None, 3)),
    "extraction_max_minutes": 240,

    # OCR budget: base plus minutes per 50 MB of image data
    "ocr_base_minutes": 5,
    "ocr_minutes_per_50mb": 3,
    "ocr_max_minutes": 120,
    "ocr_default_minutes": 30,
    "ocr_database": "Latin",

    # Subprocess supervision
    "process_poll_interval": 0.1,
    "terminate_grace_seconds": 5.0,

    # Best-effort deletion of temporary image-subtitle files
    "cleanup_retry_delays_ms": [100, 200, 500, 1000, 1500],

    # Upper bound on Thorough correction passes
    "max_correction_passes": 3,

    # Throughput used for time estimates, in GB per minute
    "network_gb_per_minute": 1.2,
    "local_gb_per_minute": 5.0,

    # Pause between batch items, in seconds
    "inter_item_delay": 0.0,
}

# Mount roots treated as remote storage on POSIX systems
NETWORK_MOUNT_ROOTS = ["/mnt", "/media", "/net", "/Volumes"]

# Executable names per tool key
TOOL_EXECUTABLES = {
    "mkvmerge": "mkvmerge",
    "mkvextract": "mkvextract",
    "ffmpeg": "ffmpeg",
    "ffprobe": "ffprobe",
    "seconv": "seconv",
}


def _platform_dir() -> str:
    system = platform.system().lower()
    if system == "windows":
        return "win"
    if system == "darwin":
        return "mac"
    return "linux"


def get_tool_path(tool: str) -> Optional[str]:
    """
    Locate an external tool executable using a priority-based search strategy.

    Searches in the following order:
    1. Environment override ``SUBFORGE_<TOOL>_PATH``
    2. Bundled ``tools/<platform>/`` directory next to the application
    3. System PATH (fallback)

    Args:
        tool: Tool key from TOOL_EXECUTABLES

    Returns:
        Full path to the executable or None if not found
    """
    if tool not in TOOL_EXECUTABLES:
        raise ValueError(f"Unknown tool: {tool}")

    override = os.environ.get(f"SUBFORGE_{tool.upper()}_PATH")
    if override:
        logger.debug(f"Using {tool} from environment override: {override}")
        return override

    executable = TOOL_EXECUTABLES[tool]
    if platform.system().lower() == "windows":
        executable += ".exe"

    bundled = APP_DIR / "tools" / _platform_dir() / executable
    if bundled.exists():
        logger.debug(f"Using bundled {tool} from: {bundled}")
        return str(bundled)

    system_path = shutil.which(TOOL_EXECUTABLES[tool])
    if system_path:
        logger.debug(f"Using system {tool} from: {system_path}")
    else:
        logger.warning(f"{tool} not found in system PATH")
    return system_path
