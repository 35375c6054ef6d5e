"""
Error Handler Module for SubForge.

This module provides the centralized error handling helpers used throughout the
pipeline. The exception classes themselves live in ``exceptions`` and are
re-exported here so callers can import everything error related from one place.

Key features:
- Consistent error wrapping, logging, and propagation
- Standardized error response formatting for API endpoints
- Flexible error transformation through mapping capabilities
"""

import logging
import traceback
from typing import Any, Callable, Dict, Optional, Type, TypeVar

from exceptions import (
    CleanupError,
    ConfigurationError,
    DependencyError,
    ExtractionError,
    FileHandlingError,
    NoSuitableTrackError,
    OcrError,
    OperationCancelledError,
    ProbeError,
    QueueLockedError,
    SubForgeError,
    ToolError,
    ToolTimeoutError,
    UnsupportedCodecError,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

__all__ = [
    "CleanupError",
    "ConfigurationError",
    "DependencyError",
    "ExtractionError",
    "FileHandlingError",
    "NoSuitableTrackError",
    "OcrError",
    "OperationCancelledError",
    "ProbeError",
    "QueueLockedError",
    "SubForgeError",
    "ToolError",
    "ToolTimeoutError",
    "UnsupportedCodecError",
    "create_error_response",
    "format_error_details",
    "handle_error",
    "is_critical_error",
    "log_exception",
    "safe_execute",
]


def _lookup_error_class(
    error: Exception, error_map: Dict[Type[Exception], Callable[..., SubForgeError]]
) -> Optional[Callable[..., SubForgeError]]:
    error_type = type(error)
    if error_type in error_map:
        return error_map[error_type]
    for source_type, target in error_map.items():
        if isinstance(error, source_type):
            return target
    return None


def handle_error(
    error: Exception,
    module_name: str = None,
    log_level: int = logging.ERROR,
    raise_error: bool = True,
    default_return: Any = None,
    error_map: Dict[Type[Exception], Callable[..., SubForgeError]] = None,
) -> Any:
    """
    Central error processing function with flexible response options.

    SubForge errors pass through untouched. Anything else is logged with its
    traceback and wrapped in the mapped SubForge error type (exact type match
    first, then the first ``isinstance`` match), or in the base SubForgeError.

    Args:
        error: The caught exception
        module_name: Source module for context
        log_level: Severity level for logging
        raise_error: Whether to raise the processed error
        default_return: Value to return if not raising
        error_map: Mapping of exception types to SubForgeError factories

    Returns:
        default_return value if raise_error is False

    Raises:
        SubForgeError: The processed exception if raise_error is True
    """
    if error_map is None:
        error_map = {}

    if isinstance(error, SubForgeError):
        logger.log(log_level, f"{error.full_message}")
        if raise_error:
            raise error
        return default_return

    tb_info = traceback.format_exc()
    logger.log(log_level, f"Error in {module_name or 'unknown module'}: {str(error)}\n{tb_info}")

    error_class = _lookup_error_class(error, error_map)
    if error_class is not None:
        wrapped = error_class(str(error), module=module_name)
    else:
        wrapped = SubForgeError(str(error), module=module_name)

    if raise_error:
        raise wrapped from error

    return default_return


def safe_execute(
    func: Callable[..., T],
    *args,
    module_name: str = None,
    error_map: Dict[Type[Exception], Callable[..., SubForgeError]] = None,
    default_return: T = None,
    log_level: int = logging.ERROR,
    raise_error: bool = True,
    **kwargs,
) -> T:
    """
    Safely execute a function with centralized error handling.

    Args:
        func: The function to execute
        *args: Positional arguments for the function
        module_name: Source module for error context
        error_map: Custom mapping of exception types to SubForgeError types
        default_return: Value to return on error if not raising
        log_level: Severity level for error logging
        raise_error: Whether to raise processed errors
        **kwargs: Keyword arguments for the function

    Returns:
        Function's return value or default_return on error
    """
    try:
        return func(*args, **kwargs)
    except Exception as e:
        return handle_error(
            e,
            module_name=module_name,
            log_level=log_level,
            raise_error=raise_error,
            default_return=default_return,
            error_map=error_map,
        )


def create_error_response(
    error: Exception,
    include_traceback: bool = False,
    module_name: str = None,
    log_error: bool = True,
) -> Dict[str, Any]:
    """
    Create a standardized error response for API endpoints.

    Returns:
        Dict suitable for JSON serialization:
        {
            "success": False,
            "error": "error message",
            "error_type": "ExceptionClassName",
            "cancelled": bool,
            "traceback": "..." (optional)
        }
    """
    if log_error:
        logger.error(f"Error in {module_name or 'unknown module'}: {str(error)}")

    error_message = str(error)
    if isinstance(error, SubForgeError):
        error_message = error.full_message

    response = {
        "success": False,
        "error": error_message,
        "error_type": error.__class__.__name__,
        "cancelled": isinstance(error, OperationCancelledError),
    }

    if include_traceback:
        response["traceback"] = traceback.format_exc()

    return response


def is_critical_error(error: Exception) -> bool:
    """Return True for errors that must abort processing instead of being absorbed."""
    return isinstance(error, (SystemExit, KeyboardInterrupt, MemoryError))


def format_error_details(
    error: Exception,
    include_traceback: bool = False,
    include_module: bool = True,
) -> str:
    """
    Format error details for display or logging.

    Args:
        error: The exception to format
        include_traceback: Whether to include stack trace
        include_module: Whether to include module info for SubForge errors

    Returns:
        Formatted error message string
    """
    if isinstance(error, SubForgeError):
        message = error.full_message if include_module else error.message
    else:
        message = str(error)

    if include_traceback:
        message += f"\n{traceback.format_exc()}"

    return message


def log_exception(
    error: Exception,
    module_name: str = None,
    level: int = logging.ERROR,
    include_traceback: bool = True,
) -> None:
    """
    Log an exception with consistent formatting.

    Args:
        error: The exception to log
        module_name: Source module for context
        level: Logging severity level
        include_traceback: Whether to include stack trace
    """
    error_message = format_error_details(
        error, include_traceback=include_traceback, include_module=True
    )

    if module_name:
        logger.log(level, f"[{module_name}] {error_message}")
    else:
        logger.log(level, error_message)
