"""
Image Subtitle Extractor.

Dumps image-based subtitle tracks (HDMV PGS, DVB) into a binary ``.sup`` file
that the OCR adapter turns into text. The image data is copied as-is; nothing
here decodes bitmaps.
"""

import logging
import threading
from pathlib import Path
from typing import Optional

from core.track import CodecType, SubtitleTrack
from core.track_prober import uses_mkvtoolnix
from extractors.base import BaseExtractor
from utils.error_handler import ExtractionError
from utils.tool_commands import create_ffmpeg_subtitle_command, create_mkvextract_command

logger = logging.getLogger(__name__)

# VobSub is image-based too, but needs an interactive tool and is never dumped here
SUPPORTED_IMAGE_CODECS = frozenset({CodecType.IMAGE_PGS, CodecType.IMAGE_DVB})


class ImageSubtitleExtractor(BaseExtractor):
    """Extractor writing image subtitle tracks to a temporary binary file."""

    @property
    def error_class(self):
        return ExtractionError

    def supports(self, track: SubtitleTrack) -> bool:
        return track.codec_type in SUPPORTED_IMAGE_CODECS

    def _perform_extraction(
        self,
        input_path: Path,
        track: SubtitleTrack,
        output_path: Path,
        timeout: float,
        cancel_event: Optional[threading.Event],
    ) -> None:
        if uses_mkvtoolnix(input_path):
            tool = "mkvextract"
            arguments = create_mkvextract_command(input_path, track.stream_id, output_path)
        else:
            tool = "ffmpeg"
            arguments = create_ffmpeg_subtitle_command(input_path, track.stream_id, output_path, codec="copy")

        logger.debug(f"Dumping {track.codec_type.label} track {track.id} with {tool}")
        self.runner.run_command(
            tool, arguments, timeout=timeout, cancel_event=cancel_event, module=self._module_name
        )
