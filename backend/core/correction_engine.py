"""
OCR Correction Engine.

Cleans OCR output by applying the ordered rule table from ``core.correction_rules``
to the text lines of a SubRip document, in one or more passes depending on the
selected correction level.

Core responsibilities:
- Leave sequence numbers, timestamps and blank lines untouched
- Run a single pass (Standard) or repeat passes until the text stops changing
  or the pass budget is spent (Thorough)
- Report how many substitutions each pass made
- Correct files in place, optionally keeping a backup of the original

Correction is an enhancement: when applying the rules fails for any reason the
original content is returned unchanged.
"""

import logging
import shutil
import threading
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from time import monotonic
from typing import Dict, Iterable, List, Optional, Sequence, Tuple, Union

from config import EXTRACTION_CONFIG
from core.correction_rules import DEFAULT_RULES, CorrectionRule
from utils.error_handler import FileHandlingError, OperationCancelledError, log_exception

logger = logging.getLogger(__name__)

MODULE_NAME = "correction_engine"

TIMESTAMP_SEPARATOR = " --> "
BACKUP_SUFFIX = ".backup"


class CorrectionLevel(Enum):
    """How much correction is applied to OCR output."""

    OFF = "off"
    STANDARD = "standard"
    THOROUGH = "thorough"

    @property
    def display_name(self) -> str:
        return {
            CorrectionLevel.OFF: "Off (Raw OCR)",
            CorrectionLevel.STANDARD: "Standard (Recommended)",
            CorrectionLevel.THOROUGH: "Thorough (Best Quality)",
        }[self]

    @property
    def description(self) -> str:
        return {
            CorrectionLevel.OFF: "No corrections applied. Use the raw OCR output as-is.",
            CorrectionLevel.STANDARD: "Single correction pass over the full rule table. "
            "Fast and fixes the vast majority of OCR errors.",
            CorrectionLevel.THOROUGH: "Multiple correction passes until the text stops changing. "
            "Catches errors that only appear after earlier fixes.",
        }[self]

    @classmethod
    def from_value(cls, value: Union[str, "CorrectionLevel", None]) -> "CorrectionLevel":
        """Parse a level from its value or name, case-insensitively."""
        if isinstance(value, cls):
            return value
        if value is None:
            return cls.STANDARD
        text = str(value).strip().lower()
        for level in cls:
            if text in (level.value, level.name.lower()):
                return level
        raise ValueError(f"Unknown correction level: {value}")

    @classmethod
    def from_legacy_flags(cls, enable_correction: bool, enable_multi_pass: bool) -> "CorrectionLevel":
        """Convert the older on/off plus multi-pass flags into a level."""
        if not enable_correction:
            return cls.OFF
        return cls.THOROUGH if enable_multi_pass else cls.STANDARD

    def to_legacy_flags(self) -> Tuple[bool, bool]:
        """Return ``(enable_correction, enable_multi_pass)`` for this level."""
        return self is not CorrectionLevel.OFF, self is CorrectionLevel.THOROUGH


@dataclass
class PassStatistics:
    pass_number: int
    corrections: int
    changed: bool
    elapsed_ms: float


@dataclass
class CorrectionResult:
    """Outcome of correcting one document at a given level."""

    content: str
    level: CorrectionLevel
    total_corrections: int = 0
    passes_completed: int = 0   # passes that changed the text
    passes_attempted: int = 0   # passes run, including the final no-change pass
    converged: bool = False
    pass_statistics: List[PassStatistics] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict:
        return {
            "level": self.level.value,
            "total_corrections": self.total_corrections,
            "passes_completed": self.passes_completed,
            "passes_attempted": self.passes_attempted,
            "converged": self.converged,
            "warnings": list(self.warnings),
        }


def is_sequence_number(line: str) -> bool:
    stripped = line.strip()
    return bool(stripped) and stripped.isdigit()


def is_protected_line(line: str) -> bool:
    """Lines that are SubRip structure rather than subtitle text."""
    return not line.strip() or is_sequence_number(line) or TIMESTAMP_SEPARATOR in line


def _split_line_ending(line: str) -> Tuple[str, str]:
    body = line.rstrip("\r\n")
    return body, line[len(body):]


class CorrectionEngine:
    """
    Applies the correction rule table at a selected correction level.

    The engine holds no per-document state; one instance can be shared
    by every extraction in a batch.
    """

    def __init__(
        self,
        rules: Optional[Sequence[CorrectionRule]] = None,
        max_passes: Optional[int] = None,
    ):
        """
        Args:
            rules: Ordered rule table. Defaults to the built-in table.
            max_passes: Pass cap for Thorough correction. Defaults to
                EXTRACTION_CONFIG["max_correction_passes"].
        """
        self.rules = tuple(rules) if rules is not None else DEFAULT_RULES
        self.max_passes = max_passes or EXTRACTION_CONFIG["max_correction_passes"]
        if self.max_passes < 1:
            raise ValueError("max_passes must be at least 1")

    def correct_line(self, line: str) -> Tuple[str, int]:
        """Apply every rule once, in table order, to one text line."""
        corrections = 0
        for rule in self.rules:
            line, count = rule.apply(line)
            corrections += count
        return line, corrections

    def correct_content_with_count(self, content: str) -> Tuple[str, int]:
        """
        Run one pass of the rule table over a SubRip document.

        Returns:
            Tuple of (corrected content, number of substitutions). On any
            failure the original content is returned with a count of 0.
        """
        try:
            corrected_lines = []
            total = 0
            for raw_line in content.splitlines(keepends=True):
                body, ending = _split_line_ending(raw_line)
                if is_protected_line(body):
                    corrected_lines.append(raw_line)
                    continue
                fixed, count = self.correct_line(body)
                corrected_lines.append(fixed + ending)
                total += count
            return "".join(corrected_lines), total
        except Exception as e:
            log_exception(e, module_name=MODULE_NAME)
            logger.error("Error during OCR correction, keeping original content")
            return content, 0

    def correct(
        self,
        content: str,
        level: Union[CorrectionLevel, str] = CorrectionLevel.STANDARD,
        cancel_event: Optional[threading.Event] = None,
    ) -> CorrectionResult:
        """
        Correct a SubRip document at the given level.

        Off returns the content untouched. Standard runs exactly one pass.
        Thorough repeats passes until a pass makes no change or ``max_passes``
        passes have run.

        Args:
            content: SubRip document text
            level: Correction level
            cancel_event: Checked before every pass

        Returns:
            CorrectionResult with the corrected content and pass statistics

        Raises:
            OperationCancelledError: If cancel_event is set between passes
        """
        level = CorrectionLevel.from_value(level)
        result = CorrectionResult(content=content, level=level)

        if level is CorrectionLevel.OFF:
            logger.info("Correction level is Off, leaving OCR output unchanged")
            return result

        max_passes = 1 if level is CorrectionLevel.STANDARD else self.max_passes
        current = content

        for pass_number in range(1, max_passes + 1):
            if cancel_event is not None and cancel_event.is_set():
                raise OperationCancelledError("Correction cancelled", MODULE_NAME)

            started = monotonic()
            corrected, count = self.correct_content_with_count(current)
            changed = corrected != current
            elapsed_ms = (monotonic() - started) * 1000

            result.pass_statistics.append(PassStatistics(pass_number, count, changed, elapsed_ms))
            result.passes_attempted = pass_number
            logger.info(f"Correction pass {pass_number}/{max_passes}: {count} corrections")

            if not changed:
                result.converged = True
                logger.info(f"Convergence reached after {pass_number} passes")
                break

            result.total_corrections += count
            result.passes_completed += 1
            current = corrected

        if level is CorrectionLevel.THOROUGH and not result.converged:
            result.warnings.append(f"Pass limit of {max_passes} reached before convergence")
            logger.warning(f"Correction stopped at the pass limit ({max_passes}) without converging")

        result.content = current
        return result

    def correct_file(
        self,
        srt_path: Union[str, Path],
        level: Union[CorrectionLevel, str] = CorrectionLevel.STANDARD,
        create_backup: bool = False,
        cancel_event: Optional[threading.Event] = None,
    ) -> int:
        """
        Correct a SubRip file in place.

        Args:
            srt_path: File to correct
            level: Correction level
            create_backup: Copy the original to ``<name>.backup.srt`` before writing
            cancel_event: Checked before every pass

        Returns:
            Number of substitutions applied

        Raises:
            FileHandlingError: If the file is missing or cannot be read or written
        """
        path = Path(srt_path)
        if not path.is_file():
            raise FileHandlingError("SRT file not found", str(path), MODULE_NAME)

        logger.info(f"Correcting OCR errors in SRT file: {path}")
        try:
            # newline="" keeps CRLF endings intact on every platform
            with open(path, "r", encoding="utf-8-sig", newline="") as handle:
                content = handle.read()
        except (OSError, UnicodeDecodeError) as e:
            raise FileHandlingError(f"Could not read file: {e}", str(path), MODULE_NAME) from e

        result = self.correct(content, level, cancel_event)

        if result.content == content:
            logger.info("No corrections needed in SRT file")
            return 0

        try:
            if create_backup:
                backup_path = path.with_name(f"{path.stem}{BACKUP_SUFFIX}{path.suffix}")
                shutil.copy2(path, backup_path)
                logger.info(f"Backup of original written to: {backup_path}")
            with open(path, "w", encoding="utf-8", newline="") as handle:
                handle.write(result.content)
        except OSError as e:
            raise FileHandlingError(f"Could not write corrected file: {e}", str(path), MODULE_NAME) from e

        logger.info(f"SRT file corrected: {result.total_corrections} corrections applied")
        return result.total_corrections

    def correct_files(
        self,
        paths: Iterable[Union[str, Path]],
        level: Union[CorrectionLevel, str] = CorrectionLevel.STANDARD,
        create_backup: bool = False,
        cancel_event: Optional[threading.Event] = None,
    ) -> Dict[str, Union[int, str]]:
        """
        Correct several standalone SubRip files.

        A failing file does not stop the others; its entry holds the error
        message instead of a correction count.
        """
        results = {}
        for srt_path in paths:
            if cancel_event is not None and cancel_event.is_set():
                raise OperationCancelledError("Batch correction cancelled", MODULE_NAME)
            try:
                results[str(srt_path)] = self.correct_file(srt_path, level, create_backup, cancel_event)
            except FileHandlingError as e:
                log_exception(e, module_name=MODULE_NAME, include_traceback=False)
                results[str(srt_path)] = e.full_message
        return results
