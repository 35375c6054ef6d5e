"""
External Tool Runner Module.

This module is the single place where SubForge starts external processes
(mkvmerge, mkvextract, ffprobe, ffmpeg, seconv). It hides path resolution,
output capture, cancellation and time limits behind one call.

Key capabilities:
- Command execution with an argument list, never through a shell
- Cooperative cancellation through a ``threading.Event``
- Timeout-then-terminate policy: terminate, wait a grace period, then kill
- Line-by-line output callbacks for progress parsing
- Timeout budgets derived from input size
"""

import logging
import subprocess
import threading
from time import monotonic, sleep
from typing import Callable, Dict, List, Optional, Tuple

from config import EXTRACTION_CONFIG, TOOL_EXECUTABLES, get_tool_path
from utils.error_handler import (
    DependencyError,
    OperationCancelledError,
    ToolError,
    ToolTimeoutError,
)

logger = logging.getLogger(__name__)
MODULE_NAME = "process_runner"

BYTES_PER_GB = 1024 ** 3
BYTES_PER_MB = 1024 ** 2

# Output beyond this many characters per stream is dropped
MAX_CAPTURED_OUTPUT = 10 * 1024 * 1024


def calculate_extraction_timeout(file_size_bytes: Optional[int]) -> float:
    """
    Time budget in seconds for extracting one stream from a container.

    5 minutes base plus 1, 2 or 3 minutes per GB depending on the size band,
    capped at 4 hours.
    """
    config = EXTRACTION_CONFIG
    base = config["extraction_base_minutes"]
    if not file_size_bytes:
        return base * 60

    size_gb = file_size_bytes / BYTES_PER_GB
    per_gb = config["extraction_minutes_per_gb"][-1][1]
    for limit_gb, minutes in config["extraction_minutes_per_gb"]:
        if limit_gb is not None and size_gb < limit_gb:
            per_gb = minutes
            break

    minutes = min(base + size_gb * per_gb, config["extraction_max_minutes"])
    return minutes * 60


def calculate_ocr_timeout(sup_size_bytes: Optional[int]) -> float:
    """
    Time budget in seconds for OCR of one image-subtitle file.

    5 minutes plus 3 minutes per 50 MB, capped at 120 minutes; 30 minutes
    when the size is unknown.
    """
    config = EXTRACTION_CONFIG
    if not sup_size_bytes:
        return config["ocr_default_minutes"] * 60

    size_mb = sup_size_bytes / BYTES_PER_MB
    minutes = config["ocr_base_minutes"] + (size_mb / 50) * config["ocr_minutes_per_50mb"]
    return min(minutes, config["ocr_max_minutes"]) * 60


class ToolRunner:
    """
    Runs external command line tools with cancellation and time limits.

    Static methods only; the class groups the process handling logic the way
    a module would, while remaining easy to patch in tests.
    """

    @staticmethod
    def check_availability(tool: str) -> bool:
        """Return True when the tool's executable can be located."""
        path = get_tool_path(tool)
        if not path:
            logger.warning(f"{tool} is not available")
            return False
        return True

    @staticmethod
    def ensure_available(tool: str, module: Optional[str] = None) -> str:
        """
        Resolve a tool's executable or fail fast.

        Returns:
            Absolute path to the executable

        Raises:
            DependencyError: If the tool cannot be found
        """
        path = get_tool_path(tool)
        if not path:
            raise DependencyError(
                tool,
                f"{tool} not found. Install it or set SUBFORGE_{tool.upper()}_PATH.",
                module,
            )
        return path

    @staticmethod
    def run_command(
        tool: str,
        arguments: List[str],
        timeout: Optional[float] = None,
        cancel_event: Optional[threading.Event] = None,
        line_callback: Optional[Callable[[str], None]] = None,
        check: bool = True,
        module: Optional[str] = None,
    ) -> Tuple[int, str, str]:
        """
        Execute an external tool and wait for it.

        Args:
            tool: Tool key from TOOL_EXECUTABLES
            arguments: Arguments after the executable
            timeout: Seconds before the process is terminated; None waits forever
            cancel_event: Set by the caller to abort the process
            line_callback: Receives every stdout line as it is produced
            check: Raise ToolError when the exit code is non-zero
            module: Calling module name for error context

        Returns:
            Tuple containing (exit_code, stdout_content, stderr_content)

        Raises:
            DependencyError: If the tool cannot be found or started
            OperationCancelledError: If cancel_event was set
            ToolTimeoutError: If the timeout elapsed
            ToolError: If check=True and the exit code is non-zero
        """
        if cancel_event is not None and cancel_event.is_set():
            raise OperationCancelledError(f"{tool} not started, operation cancelled", module)

        executable = ToolRunner.ensure_available(tool, module)
        command = [executable] + [str(arg) for arg in arguments]
        logger.debug(f"Running command: {' '.join(command)}")

        try:
            process = subprocess.Popen(
                command,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                stdin=subprocess.DEVNULL,
                text=True,
                encoding="utf-8",
                errors="replace",
                bufsize=1,
            )
        except OSError as e:
            raise DependencyError(tool, f"Could not start {tool}: {e}", module) from e

        stdout_lines: List[str] = []
        stderr_lines: List[str] = []
        readers = [
            threading.Thread(
                target=ToolRunner._drain, args=(process.stdout, stdout_lines, line_callback), daemon=True
            ),
            threading.Thread(target=ToolRunner._drain, args=(process.stderr, stderr_lines, None), daemon=True),
        ]
        for reader in readers:
            reader.start()

        poll_interval = EXTRACTION_CONFIG["process_poll_interval"]
        started = monotonic()
        try:
            while process.poll() is None:
                if cancel_event is not None and cancel_event.is_set():
                    logger.warning(f"Cancellation requested, stopping {tool}")
                    ToolRunner._terminate(process)
                    raise OperationCancelledError(f"{tool} cancelled", module)

                if timeout is not None and monotonic() - started > timeout:
                    logger.warning(f"{tool} exceeded {timeout:.0f}s, stopping it")
                    ToolRunner._terminate(process)
                    raise ToolTimeoutError(tool, timeout, module)

                if cancel_event is not None:
                    cancel_event.wait(poll_interval)
                else:
                    sleep(poll_interval)
        finally:
            for reader in readers:
                reader.join(timeout=EXTRACTION_CONFIG["terminate_grace_seconds"])

        exit_code = process.returncode
        stdout, stderr = "".join(stdout_lines), "".join(stderr_lines)
        logger.debug(f"{tool} exited with code {exit_code}")

        if check and exit_code != 0:
            raise ToolError(
                tool,
                f"Command failed with exit code {exit_code}",
                exit_code=exit_code,
                output=stderr or stdout,
                module=module,
            )

        return exit_code, stdout, stderr

    @staticmethod
    def _drain(stream, sink: List[str], line_callback: Optional[Callable[[str], None]]) -> None:
        captured = 0
        for line in iter(stream.readline, ""):
            if captured < MAX_CAPTURED_OUTPUT:
                sink.append(line)
                captured += len(line)
            if line_callback is not None:
                try:
                    line_callback(line.rstrip("\r\n"))
                except Exception as e:
                    logger.error(f"Error in output callback: {e}", exc_info=True)
        stream.close()

    @staticmethod
    def _terminate(process: subprocess.Popen) -> None:
        """Terminate politely, then kill once the grace period runs out."""
        if process.poll() is not None:
            return
        process.terminate()
        try:
            process.wait(timeout=EXTRACTION_CONFIG["terminate_grace_seconds"])
        except subprocess.TimeoutExpired:
            logger.warning(f"Process {process.pid} ignored terminate, killing it")
            process.kill()
            process.wait()


def check_tools() -> Dict[str, bool]:
    """Report which external tools can be located."""
    return {tool: ToolRunner.check_availability(tool) for tool in TOOL_EXECUTABLES}
