"""
Subtitle Track Model.

Describes a single subtitle stream found inside a container. A track is created
from prober output, never changes afterwards, and carries everything the selector
and the dispatcher need: the encoding classification, the derived track type and
the extraction priority.

Core responsibilities:
- Classify raw codec identifiers into an encoding family once, at construction
- Derive the Full / Forced / CC / CC Forced track type from flags and statistics
- Detect closed-caption and commentary tracks from their names
- Provide a readable display name for logs and API responses
"""

import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional

from config import MATROSKA_CODEC_CLASSES
from utils.language import get_language_name

logger = logging.getLogger(__name__)

MODULE_NAME = "track"


class CodecType(Enum):
    """Encoding classification of a subtitle stream."""

    TEXT_SRT = "srt"
    TEXT_ASS = "ass"
    TEXT_WEBVTT = "webvtt"
    TEXT_GENERIC = "text"
    IMAGE_PGS = "pgs"
    IMAGE_VOBSUB = "vobsub"
    IMAGE_DVB = "dvb"
    UNKNOWN = "unknown"

    @property
    def is_text_based(self) -> bool:
        return self in _TEXT_TYPES

    @property
    def is_image_based(self) -> bool:
        return self in _IMAGE_TYPES

    @property
    def priority(self) -> int:
        """Extraction preference rank; lower ranks are preferred."""
        return _CODEC_PRIORITY[self]

    @property
    def label(self) -> str:
        return _CODEC_LABELS[self]


_TEXT_TYPES = frozenset(
    {CodecType.TEXT_SRT, CodecType.TEXT_ASS, CodecType.TEXT_WEBVTT, CodecType.TEXT_GENERIC}
)
_IMAGE_TYPES = frozenset({CodecType.IMAGE_PGS, CodecType.IMAGE_VOBSUB, CodecType.IMAGE_DVB})

_CODEC_PRIORITY = {
    CodecType.TEXT_SRT: 1,
    CodecType.TEXT_ASS: 2,
    CodecType.TEXT_WEBVTT: 3,
    CodecType.TEXT_GENERIC: 4,
    CodecType.IMAGE_PGS: 5,
    CodecType.IMAGE_DVB: 6,
    CodecType.IMAGE_VOBSUB: 7,
    CodecType.UNKNOWN: 99,
}

_CODEC_LABELS = {
    CodecType.TEXT_SRT: "SubRip/SRT",
    CodecType.TEXT_ASS: "ASS/SSA",
    CodecType.TEXT_WEBVTT: "WebVTT",
    CodecType.TEXT_GENERIC: "Text",
    CodecType.IMAGE_PGS: "HDMV PGS",
    CodecType.IMAGE_VOBSUB: "VobSub",
    CodecType.IMAGE_DVB: "DVB",
    CodecType.UNKNOWN: "Unknown",
}

_CC_PATTERN = re.compile(r"\bcc\b")

# Loose keyword fallbacks for codec strings that are not Matroska ids
_CODEC_KEYWORDS = [
    ("subrip", CodecType.TEXT_SRT),
    ("srt", CodecType.TEXT_SRT),
    ("pgs", CodecType.IMAGE_PGS),
    ("vobsub", CodecType.IMAGE_VOBSUB),
    ("dvbsub", CodecType.IMAGE_DVB),
    ("dvb", CodecType.IMAGE_DVB),
    ("ssa", CodecType.TEXT_ASS),
    ("ass", CodecType.TEXT_ASS),
    ("webvtt", CodecType.TEXT_WEBVTT),
    ("vtt", CodecType.TEXT_WEBVTT),
    ("text", CodecType.TEXT_GENERIC),
]


class TrackType(Enum):
    FULL = "Full"
    FORCED = "Forced"
    CLOSED_CAPTION = "CC"
    CLOSED_CAPTION_FORCED = "CC Forced"

    @property
    def is_forced(self) -> bool:
        return self in (TrackType.FORCED, TrackType.CLOSED_CAPTION_FORCED)

    @property
    def is_closed_caption(self) -> bool:
        return self in (TrackType.CLOSED_CAPTION, TrackType.CLOSED_CAPTION_FORCED)


def classify_codec(raw_codec: Optional[str]) -> CodecType:
    """
    Map a raw codec string to its encoding classification.

    Accepts Matroska codec ids (``S_HDMV/PGS``), the human readable names that
    mkvmerge reports (``SubRip/SRT``) and FFprobe codec names.

    Args:
        raw_codec: Codec string as reported by the prober

    Returns:
        The matching CodecType, or CodecType.UNKNOWN
    """
    if not raw_codec:
        return CodecType.UNKNOWN

    codec = raw_codec.strip().upper()
    if codec in MATROSKA_CODEC_CLASSES:
        return CodecType(MATROSKA_CODEC_CLASSES[codec])

    lowered = codec.lower()
    for keyword, codec_type in _CODEC_KEYWORDS:
        if keyword in lowered:
            return codec_type

    logger.debug(f"Unrecognized subtitle codec: {raw_codec}")
    return CodecType.UNKNOWN


def is_closed_caption_name(name: Optional[str]) -> bool:
    """Return True when a track name marks it as closed captions or SDH."""
    if not name:
        return False
    lowered = name.lower()
    if "caption" in lowered or "sdh" in lowered:
        return True
    return bool(_CC_PATTERN.search(lowered))


def is_commentary_name(name: Optional[str]) -> bool:
    return bool(name) and "commentary" in name.lower()


def detect_track_type(
    forced: bool,
    closed_caption: bool,
    bitrate: Optional[int] = None,
    frame_count: Optional[int] = None,
) -> TrackType:
    """
    Derive the track type from flags and stream statistics.

    Forced tracks are sometimes not flagged; a very sparse stream (low bitrate
    and few frames) is treated as forced as well.
    """
    if closed_caption:
        return TrackType.CLOSED_CAPTION_FORCED if forced else TrackType.CLOSED_CAPTION

    if forced:
        return TrackType.FORCED

    if bitrate is not None and frame_count is not None:
        if bitrate < 1000 and frame_count < 50:
            return TrackType.FORCED
        if bitrate < 10000 and frame_count < 200:
            return TrackType.FORCED

    return TrackType.FULL


@dataclass(frozen=True)
class SubtitleTrack:
    """
    One subtitle stream inside a container file.

    ``codec_type``, ``is_closed_caption`` and ``track_type`` are computed in
    ``__post_init__`` from the raw values and stored as plain fields.
    """

    id: int                         # Track id shown to the user (mkvmerge id or stream index)
    codec: str                      # Raw codec identifier from the prober
    language: str = "und"           # ISO 639-2 language tag
    forced: bool = False            # Container forced flag
    default: bool = False           # Container default flag
    name: Optional[str] = None      # Track name / title
    bitrate: Optional[int] = None   # Bits per second when the container reports it
    frame_count: Optional[int] = None
    duration: Optional[float] = None  # Seconds
    extraction_id: Optional[int] = None  # Id the extractor expects, when it differs from id
    codec_type: CodecType = field(init=False)
    is_closed_caption: bool = field(init=False)
    track_type: TrackType = field(init=False)

    def __post_init__(self):
        object.__setattr__(self, "codec_type", classify_codec(self.codec))
        closed_caption = is_closed_caption_name(self.name)
        object.__setattr__(self, "is_closed_caption", closed_caption)
        object.__setattr__(
            self,
            "track_type",
            detect_track_type(self.forced, closed_caption, self.bitrate, self.frame_count),
        )

    @property
    def stream_id(self) -> int:
        """Identifier handed to the extractor."""
        return self.extraction_id if self.extraction_id is not None else self.id

    @property
    def codec_priority(self) -> int:
        return self.codec_type.priority

    @property
    def is_text_based(self) -> bool:
        return self.codec_type.is_text_based

    @property
    def is_image_based(self) -> bool:
        return self.codec_type.is_image_based

    @property
    def is_commentary(self) -> bool:
        return is_commentary_name(self.name)

    @property
    def display_name(self) -> str:
        """
        Human readable description, e.g.
        ``Track 3 [English]: SDH - HDMV PGS (CC, default)``.
        """
        lang_display = f"[{get_language_name(self.language)}]" if self.language else ""
        name_display = f": {self.name}" if self.name else ""

        flags = [] if self.track_type is TrackType.FULL else [self.track_type.value]
        if self.default:
            flags.append("default")
        flags_display = f" ({', '.join(flags)})" if flags else ""

        return f"Track {self.id} {lang_display}{name_display} - {self.codec_type.label}{flags_display}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "extraction_id": self.stream_id,
            "codec": self.codec,
            "codec_type": self.codec_type.value,
            "language": self.language,
            "forced": self.forced,
            "default": self.default,
            "name": self.name,
            "bitrate": self.bitrate,
            "frame_count": self.frame_count,
            "duration": self.duration,
            "closed_caption": self.is_closed_caption,
            "track_type": self.track_type.value,
            "priority": self.codec_priority,
            "display_name": self.display_name,
        }
