"""
Language Utilities Module.

Normalizes the language tags reported by container probers so that track
selection can compare them against the user's preferred language reliably.

All functions use ISO 639-2 (3-letter codes) as the standardized format internally.
Containers report a mix of ISO 639-1 codes, bibliographic ISO 639-2 codes,
IETF tags (``en-US``) and sometimes nothing at all, in which case the track
name is used as a hint.
"""

import logging
import re
from typing import Optional

logger = logging.getLogger(__name__)
MODULE_NAME = "language_utils"

UNDEFINED_LANGUAGE = "und"

# ISO 639-1 (2-letter) to ISO 639-2 (3-letter) mapping for common languages
ISO_639_1_TO_639_2 = {
    "ar": "ara",  # Arabic
    "bg": "bul",  # Bulgarian
    "cs": "ces",  # Czech
    "da": "dan",  # Danish
    "de": "deu",  # German
    "el": "ell",  # Greek
    "en": "eng",  # English
    "es": "spa",  # Spanish
    "fa": "fas",  # Persian
    "fi": "fin",  # Finnish
    "fr": "fra",  # French
    "he": "heb",  # Hebrew
    "hi": "hin",  # Hindi
    "hr": "hrv",  # Croatian
    "hu": "hun",  # Hungarian
    "id": "ind",  # Indonesian
    "is": "isl",  # Icelandic
    "it": "ita",  # Italian
    "ja": "jpn",  # Japanese
    "ko": "kor",  # Korean
    "ms": "msa",  # Malay
    "nb": "nob",  # Norwegian Bokmal
    "nl": "nld",  # Dutch
    "no": "nor",  # Norwegian
    "pl": "pol",  # Polish
    "pt": "por",  # Portuguese
    "ro": "ron",  # Romanian
    "ru": "rus",  # Russian
    "sk": "slk",  # Slovak
    "sl": "slv",  # Slovenian
    "sr": "srp",  # Serbian
    "sv": "swe",  # Swedish
    "th": "tha",  # Thai
    "tr": "tur",  # Turkish
    "uk": "ukr",  # Ukrainian
    "vi": "vie",  # Vietnamese
    "zh": "zho",  # Chinese
}

# Bibliographic ISO 639-2 codes (used by Matroska) to terminological codes
ALTERNATIVE_ISO_639_2 = {
    "chi": "zho",
    "cze": "ces",
    "dut": "nld",
    "fre": "fra",
    "ger": "deu",
    "gre": "ell",
    "ice": "isl",
    "may": "msa",
    "per": "fas",
    "rum": "ron",
    "slo": "slk",
}

LANGUAGE_NAMES = {
    "ara": "Arabic",
    "bul": "Bulgarian",
    "ces": "Czech",
    "dan": "Danish",
    "deu": "German",
    "ell": "Greek",
    "eng": "English",
    "fas": "Persian",
    "fin": "Finnish",
    "fra": "French",
    "heb": "Hebrew",
    "hin": "Hindi",
    "hrv": "Croatian",
    "hun": "Hungarian",
    "ind": "Indonesian",
    "isl": "Icelandic",
    "ita": "Italian",
    "jpn": "Japanese",
    "kor": "Korean",
    "msa": "Malay",
    "nld": "Dutch",
    "nob": "Norwegian Bokmal",
    "nor": "Norwegian",
    "pol": "Polish",
    "por": "Portuguese",
    "ron": "Romanian",
    "rus": "Russian",
    "slk": "Slovak",
    "slv": "Slovenian",
    "spa": "Spanish",
    "srp": "Serbian",
    "swe": "Swedish",
    "tha": "Thai",
    "tur": "Turkish",
    "ukr": "Ukrainian",
    "vie": "Vietnamese",
    "zho": "Chinese",
    "und": "Unknown",
}

VALID_ISO_639_2_CODES = set(LANGUAGE_NAMES)

# English language names (lowercase) to codes, for track-name hints
_NAME_TO_CODE = {name.lower(): code for code, name in LANGUAGE_NAMES.items() if code != "und"}
_NAME_PATTERN = re.compile(r"\b(" + "|".join(sorted(_NAME_TO_CODE, key=len, reverse=True)) + r")\b")


def normalize_language_code(code: Optional[str]) -> Optional[str]:
    """
    Convert a language identifier to standard ISO 639-2 format.

    Handles 2-letter ISO 639-1 codes, bibliographic 3-letter codes, English
    language names and regional variants such as ``en-US`` or ``pt_BR``.

    Args:
        code: Language identifier to normalize

    Returns:
        Standard 3-letter ISO 639-2 code, or None if unrecognized
    """
    if not code:
        return None

    clean_code = code.lower().strip()

    if clean_code in VALID_ISO_639_2_CODES:
        return clean_code

    if clean_code in ALTERNATIVE_ISO_639_2:
        return ALTERNATIVE_ISO_639_2[clean_code]

    if clean_code in ISO_639_1_TO_639_2:
        return ISO_639_1_TO_639_2[clean_code]

    if clean_code in _NAME_TO_CODE:
        return _NAME_TO_CODE[clean_code]

    if "-" in clean_code or "_" in clean_code:
        base_code = re.split(r"[-_]", clean_code)[0]
        return normalize_language_code(base_code)

    # Unknown but well-formed 3-letter tags are kept as-is
    if len(clean_code) == 3 and clean_code.isalpha():
        return clean_code

    logger.debug(f"Could not normalize language code: {code}")
    return None


def detect_language_from_title(title: Optional[str]) -> Optional[str]:
    """Find an English language name such as "English SDH" inside a track title."""
    if not title:
        return None
    match = _NAME_PATTERN.search(title.lower())
    return _NAME_TO_CODE[match.group(1)] if match else None


def resolve_track_language(code: Optional[str], title: Optional[str] = None) -> str:
    """
    Determine the language of a track from its tag, falling back to its title.

    Returns:
        ISO 639-2 code, ``und`` when nothing is known
    """
    normalized = normalize_language_code(code)
    if normalized and normalized != UNDEFINED_LANGUAGE:
        return normalized
    return detect_language_from_title(title) or UNDEFINED_LANGUAGE


def languages_match(first: Optional[str], second: Optional[str]) -> bool:
    """Compare two language identifiers after normalization."""
    first_code = normalize_language_code(first)
    return first_code is not None and first_code == normalize_language_code(second)


def get_language_name(code: str) -> str:
    """
    Get human-readable language name from language code.

    Returns:
        Language name, or the original code if unrecognized
    """
    normalized = normalize_language_code(code)
    if not normalized:
        return code
    return LANGUAGE_NAMES.get(normalized, code)
