"""
API Module for SubForge.

This module serves as the interface layer between a frontend (desktop shell,
CLI or bridge process) and the Python backend services. It provides
standardized endpoints that convert between request dictionaries and the
objects of the extraction pipeline.

Key responsibilities:
- Exposing API endpoints for probing, extraction, batch runs and correction
- Converting settings dictionaries into ExtractionSettings
- Centralizing error handling and response formatting
- Ensuring every response is JSON serializable
"""

import logging
from typing import Any, Callable, Dict, List, Optional

from config import LOG_DATE_FORMAT, LOG_DIR, LOG_FILE, LOG_FORMAT, LOG_LEVEL
from services.extraction_service import ExtractionService
from utils.error_handler import (
    ExtractionError,
    FileHandlingError,
    ProbeError,
    SubForgeError,
    create_error_response,
    log_exception,
    safe_execute,
)
from utils.file_utils import find_container_files
from utils.process_runner import check_tools


def setup_logging():
    """
    Configure the logging system for the API module.

    Writes to the application log file so failed requests can be diagnosed
    after the fact.

    Returns:
        Logger: Configured logger instance for the API module
    """
    LOG_DIR.mkdir(parents=True, exist_ok=True)

    logging.basicConfig(
        level=LOG_LEVEL,
        format=LOG_FORMAT,
        datefmt=LOG_DATE_FORMAT,
        filename=str(LOG_FILE),
        filemode="a",
    )
    return logging.getLogger("subforge.api")


logger = setup_logging()

# Module-level singleton so collaborators are built once per process
extraction_service = ExtractionService()


class APIHandler:
    """
    Handler for all frontend API requests.

    Each static method is one endpoint. Endpoints never raise: failures are
    logged and returned as ``{"success": False, "error": ...}`` dictionaries
    built by create_error_response.
    """

    @staticmethod
    def probe_file(file_path: str, settings: Optional[Dict[str, Any]] = None) -> Dict:
        """
        List the subtitle tracks of a container.

        Args:
            file_path: Container to probe
            settings: Extraction settings used to preview the selected track

        Returns:
            Dictionary with "tracks", "track_count", "languages",
            "selected_track" and "output_path"
        """
        MODULE_NAME = "api_handler.probe_file"
        logger.info(f"Probing file: {file_path}")

        try:
            return safe_execute(
                extraction_service.probe_file,
                file_path,
                settings,
                module_name=MODULE_NAME,
                error_map={
                    Exception: lambda msg, **kwargs: ProbeError(msg, file_path, MODULE_NAME)
                },
                raise_error=True,
            )
        except Exception as e:
            log_exception(e, module_name=MODULE_NAME, include_traceback=False)
            return create_error_response(e, module_name=MODULE_NAME)

    @staticmethod
    def extract_file(
        file_path: str,
        settings: Optional[Dict[str, Any]] = None,
        progress_callback: Optional[Callable] = None,
    ) -> Dict:
        """
        Extract the best subtitle track of one container to SubRip.

        Args:
            file_path: Source container
            settings: Extraction settings dictionary
            progress_callback: Optional callback for real-time progress updates

        Returns:
            Dictionary with "outcome", "output_path", "track", "corrections"
            and, for VobSub tracks, "manual_tool_required" with "guidance"
        """
        MODULE_NAME = "api_handler.extract_file"
        logger.info(f"Extracting subtitles from: {file_path}")

        try:
            return safe_execute(
                extraction_service.extract_file,
                file_path,
                settings,
                progress_callback,
                module_name=MODULE_NAME,
                error_map={
                    Exception: lambda msg, **kwargs: ExtractionError(msg, module=MODULE_NAME)
                },
                raise_error=True,
            )
        except Exception as e:
            log_exception(e, module_name=MODULE_NAME, include_traceback=False)
            return create_error_response(e, module_name=MODULE_NAME)

    @staticmethod
    def batch_extract(
        input_paths: List[str],
        settings: Optional[Dict[str, Any]] = None,
        from_index: int = 0,
        recursive: bool = True,
        progress_callback: Optional[Callable] = None,
    ) -> Dict:
        """
        Process every container found under the given files and folders.

        Files are handled one at a time; a failing file is reported and the
        batch carries on.

        Args:
            input_paths: Files and folders to queue
            settings: Extraction settings dictionary
            from_index: Queue position to start from
            recursive: Descend into sub-folders
            progress_callback: Optional callback for real-time progress updates

        Returns:
            Dictionary with the batch summary: per-file outcomes, counts,
            statistics and a plain text "report"
        """
        MODULE_NAME = "api_handler.batch_extract"
        logger.info(f"Batch extracting from {len(input_paths)} paths")

        def _batch_extract():
            summary = extraction_service.batch_extract(
                input_paths, settings, from_index, recursive, progress_callback
            )
            response = summary.to_dict()
            response["success"] = summary.fatal_error is None
            return response

        try:
            return safe_execute(
                _batch_extract,
                module_name=MODULE_NAME,
                error_map={
                    Exception: lambda msg, **kwargs: SubForgeError(msg, MODULE_NAME)
                },
                raise_error=True,
            )
        except Exception as e:
            log_exception(e, module_name=MODULE_NAME)
            return create_error_response(e, module_name=MODULE_NAME)

    @staticmethod
    def correct_srt_file(file_path: str, correction_level: str = "standard", create_backup: bool = False) -> Dict:
        """Apply OCR correction to an existing SubRip file."""
        MODULE_NAME = "api_handler.correct_srt_file"
        logger.info(f"Correcting SRT file: {file_path} ({correction_level})")

        try:
            return safe_execute(
                extraction_service.correct_srt_file,
                file_path,
                correction_level,
                create_backup,
                module_name=MODULE_NAME,
                error_map={
                    ValueError: lambda msg, **kwargs: SubForgeError(msg, MODULE_NAME),
                    Exception: lambda msg, **kwargs: FileHandlingError(msg, file_path, MODULE_NAME),
                },
                raise_error=True,
            )
        except Exception as e:
            log_exception(e, module_name=MODULE_NAME, include_traceback=False)
            return create_error_response(e, module_name=MODULE_NAME)

    @staticmethod
    def correct_srt_files(
        file_paths: List[str], correction_level: str = "standard", create_backup: bool = False
    ) -> Dict:
        """Apply OCR correction to several SubRip files."""
        MODULE_NAME = "api_handler.correct_srt_files"
        logger.info(f"Correcting {len(file_paths)} SRT files ({correction_level})")

        try:
            return safe_execute(
                extraction_service.correct_srt_files,
                file_paths,
                correction_level,
                create_backup,
                module_name=MODULE_NAME,
                raise_error=True,
            )
        except Exception as e:
            log_exception(e, module_name=MODULE_NAME, include_traceback=False)
            return create_error_response(e, module_name=MODULE_NAME)

    @staticmethod
    def find_container_files_in_paths(paths: List[str], recursive: bool = True) -> Dict:
        """
        Find all supported containers within the specified files or folders.

        Returns:
            Dictionary with "files" (paths as strings) and "count"
        """
        MODULE_NAME = "api_handler.find_container_files"

        def _find_files():
            files = find_container_files(paths, recursive)
            return {
                "success": True,
                "files": [str(file) for file in files],
                "count": len(files),
            }

        return safe_execute(
            _find_files,
            module_name=MODULE_NAME,
            raise_error=False,
            default_return={"success": False, "error": "Failed to find container files", "files": [], "count": 0},
        )

    @staticmethod
    def check_tools() -> Dict:
        """Report which external tools are installed."""
        tools = check_tools()
        missing = [tool for tool, available in tools.items() if not available]
        if missing:
            logger.warning(f"Missing external tools: {', '.join(missing)}")
        return {"success": not missing, "tools": tools, "missing": missing}


# Expose API methods as module-level functions for discovery by the bridge module
probe_file = APIHandler.probe_file
extract_file = APIHandler.extract_file
batch_extract = APIHandler.batch_extract
correct_srt_file = APIHandler.correct_srt_file
correct_srt_files = APIHandler.correct_srt_files
find_container_files_in_paths = APIHandler.find_container_files_in_paths
check_external_tools = APIHandler.check_tools
