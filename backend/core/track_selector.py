"""
Track Selector Module.

Picks the one subtitle track to extract from a probed container. The choice is
a pure function of the track list and the user's preferences, so the same
input always yields the same track.

Preference cascade, first match wins:
1. Closed-caption tracks when closed captions are preferred
2. Otherwise, forced tracks when forced subtitles are preferred
3. Any track, best encoding first

The cascade runs on tracks in the preferred language, then on every track
when no track matches the language.
"""

from typing import Callable, List, Optional, Sequence

from core.track import SubtitleTrack, TrackType
from utils.language import languages_match

MODULE_NAME = "track_selector"


def _rank(track: SubtitleTrack):
    """
    Ordering key inside a preference group.

    Commentary tracks go last, then the encoding priority decides (SubRip,
    other text, image), then complete tracks before partial ones, then the
    lowest track id.
    """
    return (
        track.is_commentary,
        track.codec_priority,
        track.track_type is not TrackType.FULL,
        track.id,
    )


def best_of(tracks: Sequence[SubtitleTrack]) -> Optional[SubtitleTrack]:
    """Best-ranked track of a group, or None for an empty group."""
    return min(tracks, key=_rank) if tracks else None


def filter_by_language(
    tracks: Sequence[SubtitleTrack], language: Optional[str]
) -> List[SubtitleTrack]:
    """Tracks whose language matches ``language``; every track when no language is given."""
    if not language:
        return list(tracks)
    return [track for track in tracks if languages_match(track.language, language)]


def _cascade(
    candidates: Sequence[SubtitleTrack], prefer_forced: bool, prefer_closed_captions: bool
) -> Optional[SubtitleTrack]:
    groups: List[Callable[[SubtitleTrack], bool]] = []
    if prefer_closed_captions:
        groups.append(lambda t: t.track_type is TrackType.CLOSED_CAPTION_FORCED)
        groups.append(lambda t: t.track_type is TrackType.CLOSED_CAPTION)
    elif prefer_forced:
        groups.append(lambda t: t.track_type.is_forced)

    for belongs in groups:
        choice = best_of([track for track in candidates if belongs(track)])
        if choice is not None:
            return choice

    return best_of(candidates)


def select_best_track(
    tracks: Sequence[SubtitleTrack],
    preferred_language: Optional[str] = None,
    prefer_forced: bool = False,
    prefer_closed_captions: bool = False,
) -> Optional[SubtitleTrack]:
    """
    Choose the best track for extraction.

    Args:
        tracks: Probed tracks in container order
        preferred_language: Language code, any form ``normalize_language_code`` accepts
        prefer_forced: Favor Forced and CC Forced tracks
        prefer_closed_captions: Favor CC and CC Forced tracks

    Returns:
        The selected track, or None when ``tracks`` is empty
    """
    if not tracks:
        return None

    in_language = filter_by_language(tracks, preferred_language)
    selected = None
    if in_language:
        selected = _cascade(in_language, prefer_forced, prefer_closed_captions)

    if selected is None:
        selected = _cascade(tracks, prefer_forced, prefer_closed_captions)

    if selected is None:
        selected = tracks[0]

    return selected


def select_best_track_for_settings(tracks: Sequence[SubtitleTrack], settings) -> Optional[SubtitleTrack]:
    """Apply ``select_best_track`` with the preferences of an ExtractionSettings."""
    return select_best_track(
        tracks,
        preferred_language=settings.preferred_language,
        prefer_forced=settings.prefer_forced,
        prefer_closed_captions=settings.prefer_closed_captions,
    )
