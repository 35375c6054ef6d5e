"""
Track Prober Module.

Identifies the subtitle streams inside a container file. Matroska-family files
are read with ``mkvmerge -J``; every other container goes through
``ffprobe``. Both JSON reports are turned into immutable SubtitleTrack records.

The parsing functions are pure and operate on the decoded JSON document, so
they can be exercised without any external tool installed. The prober never
mutates pipeline state; the caller decides what to do with the track list.
"""

import json
import logging
import re
import threading
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from config import EXTRACTION_CONFIG, FFPROBE_CODEC_TO_MATROSKA, MKVTOOLNIX_EXTENSIONS
from core.track import SubtitleTrack
from utils.error_handler import ProbeError, ToolError, safe_execute
from utils.language import resolve_track_language
from utils.process_runner import ToolRunner
from utils.tool_commands import (
    create_ffprobe_subtitle_streams_command,
    create_mkvmerge_identify_command,
)

logger = logging.getLogger(__name__)

MODULE_NAME = "track_prober"

_DURATION_PATTERN = re.compile(r"^(\d+):(\d{1,2}):(\d{1,2}(?:\.\d+)?)$")


def _to_int(value: Any) -> Optional[int]:
    if value is None or value == "":
        return None
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return None


def parse_duration(value: Any) -> Optional[float]:
    """
    Convert a duration to seconds.

    Accepts plain seconds (``"5025.3"``) and the ``HH:MM:SS.fffffffff`` form
    used by Matroska statistics tags.
    """
    if value is None or value == "":
        return None
    text = str(value).strip()
    match = _DURATION_PATTERN.match(text)
    if match:
        hours, minutes, seconds = match.groups()
        return int(hours) * 3600 + int(minutes) * 60 + float(seconds)
    try:
        return float(text)
    except ValueError:
        return None


def _tag(tags: Dict[str, Any], name: str) -> Any:
    """Statistics tag lookup tolerant of the ``-eng`` suffix mkvmerge writes."""
    if name in tags:
        return tags[name]
    prefix = f"{name}-"
    for key, value in tags.items():
        if key.upper().startswith(prefix):
            return value
    return None


def parse_mkvmerge_tracks(identification: Dict[str, Any]) -> List[SubtitleTrack]:
    """
    Build tracks from an ``mkvmerge -J`` report.

    Args:
        identification: Decoded JSON document

    Returns:
        Subtitle tracks in container order
    """
    tracks = []
    for entry in identification.get("tracks", []):
        if entry.get("type") != "subtitles":
            continue

        properties = entry.get("properties", {})
        name = properties.get("track_name") or None
        codec = properties.get("codec_id") or entry.get("codec") or ""

        tracks.append(
            SubtitleTrack(
                id=int(entry["id"]),
                codec=codec,
                language=resolve_track_language(
                    properties.get("language_ietf") or properties.get("language"), name
                ),
                forced=bool(properties.get("forced_track", False)),
                default=bool(properties.get("default_track", False)),
                name=name,
                bitrate=_to_int(properties.get("tag_bps")),
                frame_count=_to_int(properties.get("tag_number_of_frames")),
                duration=parse_duration(properties.get("tag_duration")),
            )
        )
    return tracks


def parse_ffprobe_tracks(report: Dict[str, Any]) -> List[SubtitleTrack]:
    """
    Build tracks from an ``ffprobe -show_streams -select_streams s`` report.

    The display id is the position among subtitle streams; the extraction id is
    the absolute stream index FFmpeg's ``-map 0:<index>`` expects.
    """
    tracks = []
    position = 0
    for stream in report.get("streams", []):
        if stream.get("codec_type", "subtitle") != "subtitle":
            continue

        tags = stream.get("tags", {}) or {}
        disposition = stream.get("disposition", {}) or {}
        codec_name = (stream.get("codec_name") or "").lower()
        name = tags.get("title") or tags.get("handler_name") or None
        if name and name.lower() == "subtitlehandler":
            name = None

        bitrate = _to_int(stream.get("bit_rate"))
        if bitrate is None:
            bitrate = _to_int(_tag(tags, "BPS"))
        frame_count = _to_int(stream.get("nb_frames"))
        if frame_count is None:
            frame_count = _to_int(_tag(tags, "NUMBER_OF_FRAMES"))
        duration = parse_duration(stream.get("duration"))
        if duration is None:
            duration = parse_duration(_tag(tags, "DURATION"))

        tracks.append(
            SubtitleTrack(
                id=position,
                codec=FFPROBE_CODEC_TO_MATROSKA.get(codec_name, codec_name),
                language=resolve_track_language(tags.get("language"), name),
                forced=disposition.get("forced", 0) == 1,
                default=disposition.get("default", 0) == 1,
                name=name,
                bitrate=bitrate,
                frame_count=frame_count,
                duration=duration,
                extraction_id=int(stream.get("index", position)),
            )
        )
        position += 1
    return tracks


def uses_mkvtoolnix(file_path: Union[str, Path]) -> bool:
    return Path(file_path).suffix.lower() in MKVTOOLNIX_EXTENSIONS


class TrackProber:
    """
    Lists the subtitle tracks of a container by running the matching tool.

    Example:
        prober = TrackProber()
        for track in prober.probe("movie.mkv"):
            print(track.display_name)
    """

    def __init__(self, runner=ToolRunner):
        self.runner = runner

    def probe(
        self, file_path: Union[str, Path], cancel_event: Optional[threading.Event] = None
    ) -> List[SubtitleTrack]:
        """
        Probe a container for subtitle tracks.

        A readable container without subtitle streams yields an empty list;
        choosing what that means is left to the caller.

        Args:
            file_path: Container to inspect
            cancel_event: Aborts the probe when set

        Returns:
            Subtitle tracks in container order

        Raises:
            ProbeError: If the file is missing or the tool output is unusable
            OperationCancelledError: If cancel_event was set
            DependencyError: If the probing tool is not installed
        """
        file_path = Path(file_path)
        if not file_path.is_file():
            raise ProbeError("File does not exist", file_path, MODULE_NAME)

        logger.info(f"Probing subtitle tracks: {file_path}")

        if uses_mkvtoolnix(file_path):
            tool = "mkvmerge"
            arguments = create_mkvmerge_identify_command(file_path)
            parser = parse_mkvmerge_tracks
        else:
            tool = "ffprobe"
            arguments = create_ffprobe_subtitle_streams_command(file_path)
            parser = parse_ffprobe_tracks

        try:
            exit_code, stdout, stderr = self.runner.run_command(
                tool,
                arguments,
                timeout=EXTRACTION_CONFIG["probe_timeout"],
                cancel_event=cancel_event,
                check=False,
                module=MODULE_NAME,
            )
        except ToolError as e:
            raise ProbeError(e.message, file_path, MODULE_NAME) from e

        # mkvmerge exits with 1 for warnings and still prints a usable report
        accepted_codes = (0, 1) if tool == "mkvmerge" else (0,)
        if exit_code not in accepted_codes or not stdout.strip():
            detail = (stderr or stdout).strip() or "no output"
            raise ProbeError(f"{tool} exited with code {exit_code}: {detail}", file_path, MODULE_NAME)

        tracks = safe_execute(
            lambda: parser(json.loads(stdout)),
            module_name=MODULE_NAME,
            error_map={
                Exception: lambda msg, **kwargs: ProbeError(
                    f"Unreadable {tool} output: {msg}", file_path, MODULE_NAME
                )
            },
        )

        self._log_track_info(file_path, tracks)
        return tracks

    def _log_track_info(self, file_path: Path, tracks: List[SubtitleTrack]) -> None:
        logger.info(f"Found {len(tracks)} subtitle tracks in {file_path.name}")
        for track in tracks:
            logger.debug(f"  {track.display_name}")
