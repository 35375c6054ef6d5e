"""
Text Subtitle Extractor.

Extracts text-based subtitle tracks (SubRip, ASS/SSA, WebVTT and other text
formats) straight into a SubRip file.

Matroska containers use mkvextract, which writes the track in its native
syntax; ASS and WebVTT side files are then converted to SubRip with FFmpeg.
Other containers, and text formats mkvextract cannot write as SubRip, are
converted by FFmpeg in one step.
"""

import logging
import threading
from pathlib import Path
from typing import Optional

from config import TEXT_CLASS_TO_EXTENSION, TEXT_CLASSES_NEEDING_CONVERSION
from core.track import CodecType, SubtitleTrack
from core.track_prober import uses_mkvtoolnix
from extractors.base import BaseExtractor
from utils.error_handler import ExtractionError, FileHandlingError
from utils.file_utils import safe_delete_file
from utils.tool_commands import (
    create_ffmpeg_subtitle_command,
    create_mkvextract_command,
    create_subtitle_conversion_command,
)

logger = logging.getLogger(__name__)


class TextSubtitleExtractor(BaseExtractor):
    """
    Extractor for text-based subtitle tracks.

    Typical usage:
        extractor = TextSubtitleExtractor()
        extractor.extract("movie.mkv", track, "movie.eng.srt")
    """

    @property
    def error_class(self):
        return ExtractionError

    def supports(self, track: SubtitleTrack) -> bool:
        return track.is_text_based

    def _perform_extraction(
        self,
        input_path: Path,
        track: SubtitleTrack,
        output_path: Path,
        timeout: float,
        cancel_event: Optional[threading.Event],
    ) -> None:
        codec_class = track.codec_type.value

        if not uses_mkvtoolnix(input_path) or track.codec_type is CodecType.TEXT_GENERIC:
            self.runner.run_command(
                "ffmpeg",
                create_ffmpeg_subtitle_command(input_path, track.stream_id, output_path, codec="srt"),
                timeout=timeout,
                cancel_event=cancel_event,
                module=self._module_name,
            )
            return

        if codec_class not in TEXT_CLASSES_NEEDING_CONVERSION:
            self.runner.run_command(
                "mkvextract",
                create_mkvextract_command(input_path, track.stream_id, output_path),
                timeout=timeout,
                cancel_event=cancel_event,
                module=self._module_name,
            )
            return

        side_file = output_path.with_suffix(f".{TEXT_CLASS_TO_EXTENSION[codec_class]}")
        try:
            self.runner.run_command(
                "mkvextract",
                create_mkvextract_command(input_path, track.stream_id, side_file),
                timeout=timeout,
                cancel_event=cancel_event,
                module=self._module_name,
            )
            logger.info(f"Converting {track.codec_type.label} to SubRip: {side_file.name}")
            self.runner.run_command(
                "ffmpeg",
                create_subtitle_conversion_command(side_file, output_path),
                timeout=timeout,
                cancel_event=cancel_event,
                module=self._module_name,
            )
        finally:
            self._remove_side_file(side_file)

    def _remove_side_file(self, side_file: Path) -> None:
        try:
            safe_delete_file(side_file)
        except FileHandlingError as e:
            logger.warning(f"Could not remove intermediate file {side_file}: {e}")
