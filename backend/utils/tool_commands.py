"""
Tool Command Builder Module.

Builds the argument lists for every external tool invocation. Keeping command
construction separate from execution means the exact command line contract of
each tool is visible in one place and can be tested without running anything.

The module consists of two main components:
1. FFmpegCommandBuilder - chainable builder for FFmpeg invocations
2. Factory functions - argument lists for MKVToolNix, FFprobe and Subtitle Edit
"""

import logging
from pathlib import Path
from typing import List, Optional, Union

from config import EXTRACTION_CONFIG

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


class FFmpegCommandBuilder:
    """
    Builder for FFmpeg argument lists.

    Example:
        FFmpegCommandBuilder("movie.mp4").add_mapping("0:2").add_codec("s", "srt") \\
            .set_output("movie.eng.srt").build()
    """

    def __init__(self, input_file: PathLike):
        self.arguments = ["-hide_banner", "-nostdin", "-y", "-i", str(input_file)]
        self.output_file = None

    def add_mapping(self, stream_specifier: str) -> "FFmpegCommandBuilder":
        self.arguments.extend(["-map", stream_specifier])
        return self

    def add_codec(self, stream_type: str, codec: str) -> "FFmpegCommandBuilder":
        self.arguments.extend([f"-c:{stream_type}", codec])
        return self

    def add_option(self, option: str, value: Optional[str] = None) -> "FFmpegCommandBuilder":
        self.arguments.append(option)
        if value is not None:
            self.arguments.append(value)
        return self

    def set_output(self, output_file: PathLike) -> "FFmpegCommandBuilder":
        self.output_file = str(output_file)
        return self

    def build(self) -> List[str]:
        """
        Return the finished argument list (without the executable).

        Raises:
            ValueError: If no output file was set
        """
        if not self.output_file:
            raise ValueError("Output file must be set before building the command")
        return list(self.arguments) + [self.output_file]


def create_mkvmerge_identify_command(input_file: PathLike) -> List[str]:
    """mkvmerge JSON identification of every track in a Matroska file."""
    return ["-J", str(input_file)]


def create_ffprobe_subtitle_streams_command(input_file: PathLike) -> List[str]:
    """FFprobe JSON description of the subtitle streams in any container."""
    return [
        "-v", "error",
        "-print_format", "json",
        "-show_streams",
        "-select_streams", "s",
        str(input_file),
    ]


def create_mkvextract_command(input_file: PathLike, track_id: int, output_file: PathLike) -> List[str]:
    """Extract one track of a Matroska file in its native format."""
    return ["tracks", str(input_file), f"{track_id}:{output_file}"]


def create_ffmpeg_subtitle_command(
    input_file: PathLike, stream_index: int, output_file: PathLike, codec: str = "srt"
) -> List[str]:
    """
    Extract one subtitle stream with FFmpeg.

    Args:
        input_file: Source container
        stream_index: Absolute stream index in the container
        output_file: Destination file
        codec: ``srt`` to convert text to SubRip, ``copy`` to keep image data as-is
    """
    return (
        FFmpegCommandBuilder(input_file)
        .add_mapping(f"0:{stream_index}")
        .add_codec("s", codec)
        .set_output(output_file)
        .build()
    )


def create_subtitle_conversion_command(input_file: PathLike, output_file: PathLike) -> List[str]:
    """Convert a standalone ASS/SSA/WebVTT file to SubRip."""
    return FFmpegCommandBuilder(input_file).add_codec("s", "srt").set_output(output_file).build()


def create_seconv_command(
    sup_file: PathLike,
    output_file: PathLike,
    ocr_database: Optional[str] = None,
    remove_hearing_impaired: bool = False,
) -> List[str]:
    """
    Subtitle Edit command line OCR of an image-subtitle file into SubRip.

    Args:
        sup_file: Extracted image subtitles
        output_file: Destination SubRip file
        ocr_database: OCR character database name, ``Latin`` by default
        remove_hearing_impaired: Strip hearing-impaired text while converting
    """
    arguments = [
        str(sup_file),
        "subrip",
        f"/outputfilename:{output_file}",
        f"/ocrdb:{ocr_database or EXTRACTION_CONFIG['ocr_database']}",
    ]
    if remove_hearing_impaired:
        arguments.append("/RemoveTextForHI")
    return arguments
