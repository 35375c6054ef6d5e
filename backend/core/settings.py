"""
Extraction settings.

Read-only preferences handed to the pipeline when a run starts. How settings
are stored between sessions is up to the caller; this module only validates
and converts them.
"""

import logging
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Dict, Optional

from config import DEFAULT_SETTINGS
from core.correction_engine import CorrectionLevel
from utils.error_handler import ConfigurationError
from utils.language import normalize_language_code

logger = logging.getLogger(__name__)

MODULE_NAME = "settings"

_PLACEHOLDERS = ("{basename}",)


@dataclass(frozen=True)
class ExtractionSettings:
    correction_level: CorrectionLevel = CorrectionLevel.STANDARD
    preferred_language: str = DEFAULT_SETTINGS["preferred_language"]
    prefer_forced: bool = DEFAULT_SETTINGS["prefer_forced"]
    prefer_closed_captions: bool = DEFAULT_SETTINGS["prefer_closed_captions"]
    output_pattern: str = DEFAULT_SETTINGS["output_pattern"]
    output_dir: Optional[Path] = None  # None writes next to the source file
    preserve_sup_files: bool = DEFAULT_SETTINGS["preserve_sup_files"]
    ocr_language: str = DEFAULT_SETTINGS["ocr_language"]
    remove_hearing_impaired: bool = DEFAULT_SETTINGS["remove_hearing_impaired"]
    create_correction_backup: bool = DEFAULT_SETTINGS["create_correction_backup"]

    def __post_init__(self):
        if not any(placeholder in self.output_pattern for placeholder in _PLACEHOLDERS):
            raise ConfigurationError(
                "Output pattern must contain {basename}", "output_pattern", MODULE_NAME
            )
        if normalize_language_code(self.preferred_language) is None:
            raise ConfigurationError(
                f"Unrecognized language: {self.preferred_language}", "preferred_language", MODULE_NAME
            )

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "ExtractionSettings":
        """
        Build settings from a plain dictionary such as a JSON request.

        Unknown keys are ignored with a debug log; missing keys take defaults.

        Raises:
            ConfigurationError: If a value cannot be converted
        """
        data = dict(data or {})
        legacy_flags = (data.get("enable_correction"), data.get("enable_multi_pass"))
        known = {f.name for f in fields(cls)}
        for key in set(data) - known:
            logger.debug(f"Ignoring unknown setting: {key}")
            data.pop(key)

        try:
            if "correction_level" in data:
                data["correction_level"] = CorrectionLevel.from_value(data["correction_level"])
            elif legacy_flags[0] is not None:
                data["correction_level"] = CorrectionLevel.from_legacy_flags(
                    bool(legacy_flags[0]), bool(legacy_flags[1])
                )
        except ValueError as e:
            raise ConfigurationError(str(e), "correction_level", MODULE_NAME) from e

        if data.get("output_dir"):
            data["output_dir"] = Path(data["output_dir"])
        else:
            data["output_dir"] = None

        return cls(**data)

    def to_dict(self) -> Dict[str, Any]:
        result = {f.name: getattr(self, f.name) for f in fields(self)}
        result["correction_level"] = self.correction_level.value
        result["output_dir"] = str(self.output_dir) if self.output_dir else None
        return result
