"""
Path Utilities Module.

String-level path handling for extraction outputs: applying the output
filename pattern, keeping names valid on every major filesystem and making
sure two tracks never write to the same destination.

Unlike file_utils, nothing here touches file contents; the only filesystem
access is the existence check used to pick a free name.
"""

import logging
import os
import re
from pathlib import Path
from typing import Collection, Optional, Union

from config import DEFAULT_OUTPUT_PATTERN, FORCED_SUFFIX
from utils.error_handler import ConfigurationError

logger = logging.getLogger(__name__)
MODULE_NAME = "path_utils"

_PLACEHOLDER_PATTERN = re.compile(r"\{(\w+)\}")
_KNOWN_PLACEHOLDERS = {"basename", "lang", "forced", "track"}


def sanitize_filename(filename: str) -> str:
    """
    Make filename safe for all major filesystems.

    Replaces illegal characters and truncates overly long filenames
    to ensure compatibility with Windows, macOS, and Linux.

    Args:
        filename: Original filename string

    Returns:
        Sanitized filename with illegal characters replaced
    """
    invalid_chars = r'[<>:"/\\|?*\x00-\x1f]'
    sanitized = re.sub(invalid_chars, "_", filename).strip().rstrip(".")

    # Most filesystems have a 255 character limit
    if len(sanitized) > 255:
        base, ext = os.path.splitext(sanitized)
        sanitized = base[: 255 - len(ext)] + ext

    return sanitized or "subtitle"


def format_output_filename(
    pattern: Optional[str],
    basename: str,
    language: Optional[str] = None,
    forced: bool = False,
    track_id: Optional[int] = None,
) -> str:
    """
    Apply the output filename pattern.

    Placeholders: ``{basename}`` source file name without extension,
    ``{lang}`` track language, ``{forced}`` ``.forced`` for forced tracks and
    empty otherwise, ``{track}`` track id.

    Example:
        "{basename}.{lang}{forced}.srt" -> "Movie.eng.forced.srt"

    Raises:
        ConfigurationError: If the pattern uses an unknown placeholder
    """
    pattern = pattern or DEFAULT_OUTPUT_PATTERN
    unknown = set(_PLACEHOLDER_PATTERN.findall(pattern)) - _KNOWN_PLACEHOLDERS
    if unknown:
        raise ConfigurationError(
            f"Unknown placeholder(s) in output pattern: {', '.join(sorted(unknown))}",
            "output_pattern",
            MODULE_NAME,
        )

    values = {
        "basename": basename,
        "lang": language or "und",
        "forced": FORCED_SUFFIX if forced else "",
        "track": "" if track_id is None else str(track_id),
    }
    filename = _PLACEHOLDER_PATTERN.sub(lambda match: values[match.group(1)], pattern)

    # An empty placeholder can leave doubled separators behind
    filename = re.sub(r"\.{2,}", ".", filename)
    return sanitize_filename(filename)


def generate_unique_path(
    file_path: Union[str, Path], reserved: Optional[Collection[Union[str, Path]]] = None
) -> Path:
    """
    Return ``file_path`` or the first free ``name_N.ext`` variant.

    A path is taken when it exists on disk or appears in ``reserved``
    (destinations already claimed in the current run).
    """
    file_path = Path(file_path)
    taken = {os.path.normcase(str(path)) for path in (reserved or ())}

    def is_taken(candidate: Path) -> bool:
        return candidate.exists() or os.path.normcase(str(candidate)) in taken

    if not is_taken(file_path):
        return file_path

    name, ext = os.path.splitext(file_path.name)
    counter = 1
    while True:
        candidate = file_path.parent / f"{name}_{counter}{ext}"
        if not is_taken(candidate):
            logger.debug(f"Output {file_path.name} exists, using {candidate.name}")
            return candidate
        counter += 1


def get_output_path(
    source_file: Union[str, Path],
    pattern: Optional[str] = None,
    language: Optional[str] = None,
    forced: bool = False,
    output_dir: Optional[Union[str, Path]] = None,
    track_id: Optional[int] = None,
    reserved: Optional[Collection[Union[str, Path]]] = None,
    overwrite: bool = False,
) -> Path:
    """
    Compute the destination SubRip path for a track of ``source_file``.

    Args:
        source_file: Container being extracted
        pattern: Output filename pattern
        language: Track language code
        forced: Whether the track is forced
        output_dir: Destination directory; the source's directory when None
        track_id: Track id for the ``{track}`` placeholder
        reserved: Paths already claimed by other tracks in this run
        overwrite: Reuse an existing file's name instead of picking a free one

    Returns:
        Destination path
    """
    source = Path(source_file)
    directory = Path(output_dir) if output_dir else source.parent
    filename = format_output_filename(pattern, source.stem, language, forced, track_id)
    destination = directory / filename
    if overwrite:
        return destination
    return generate_unique_path(destination, reserved)


def get_temp_sup_path(output_path: Union[str, Path], work_dir: Optional[Union[str, Path]] = None) -> Path:
    """Temporary image-subtitle path for an output: same name with ``.sup``."""
    output = Path(output_path)
    directory = Path(work_dir) if work_dir else output.parent
    return directory / output.with_suffix(".sup").name
