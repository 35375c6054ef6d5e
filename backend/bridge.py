#!/usr/bin/env python3
"""
Python Bridge Script for SubForge.

Lets a frontend process call backend API functions by spawning this script
as a child process. One invocation executes one function call:

  bridge.py <function_name> <arguments_json> [operation_id]

Arguments:
  function_name:   Name of the API function to execute (e.g., "probe_file")
  arguments_json:  JSON list (positional) or object (keyword, camelCase allowed)
  operation_id:    Optional id; when given, progress is streamed on stdout as
                   ``PROGRESS:<json>`` lines before the final JSON result
"""

import json
import logging
import sys
from typing import Any, Callable, Dict, List, Optional

from api import (
    batch_extract,
    check_external_tools,
    correct_srt_file,
    correct_srt_files,
    extract_file,
    find_container_files_in_paths,
    probe_file,
)
from config import LOG_DATE_FORMAT, LOG_DIR, LOG_FORMAT, LOG_LEVEL
from utils.argument_handler import ArgumentHandler, convert_js_to_python_params
from utils.error_handler import (
    SubForgeError,
    create_error_response,
    handle_error,
    is_critical_error,
    log_exception,
    safe_execute,
)
from utils.progress import get_progress_reporter, remove_progress_reporter

API_FUNCTIONS = {
    "probe_file": probe_file,
    "extract_file": extract_file,
    "batch_extract": batch_extract,
    "correct_srt_file": correct_srt_file,
    "correct_srt_files": correct_srt_files,
    "find_container_files": find_container_files_in_paths,
    "check_tools": check_external_tools,
}


def setup_logging() -> logging.Logger:
    """Log bridge activity to its own file next to the application log."""
    LOG_DIR.mkdir(parents=True, exist_ok=True)

    logging.basicConfig(
        level=LOG_LEVEL,
        format=LOG_FORMAT,
        datefmt=LOG_DATE_FORMAT,
        filename=str(LOG_DIR / "subforge_bridge.log"),
        filemode="a",
    )
    return logging.getLogger("subforge.bridge")


logger = setup_logging()


def report_bridge_error(error: Exception) -> None:
    """
    Report a failed bridge request.

    Critical errors terminate the process with exit code 1; everything else is
    printed as a JSON error response so the caller can parse it.
    """
    log_exception(error, module_name="bridge_run")
    sys.stderr.write(f"Error: {error}\n")

    if is_critical_error(error):
        logger.critical(f"Critical error: {error}. Terminating process.")
        sys.exit(1)

    print(json.dumps(create_error_response(error, log_error=False)), flush=True)


class FunctionExecutor:
    """Validates, prepares and runs one registered API function."""

    def __init__(self, api_functions: Dict[str, Callable], module_name: str = "function_executor"):
        self.api_functions = api_functions
        self.module_name = module_name

    def validate_function_name(self, function_name: str) -> None:
        """
        Raises:
            SubForgeError: If the function is not registered
        """
        if function_name not in self.api_functions:
            handle_error(ValueError(f"Unknown function: {function_name}"), module_name=self.module_name)

    @staticmethod
    def call_function(function: Callable, arguments: Any) -> Any:
        if isinstance(arguments, list):
            return function(*arguments)
        return function(**(arguments or {}))

    def execute_function(self, function_name: str, arguments: Any, operation_id: Optional[str] = None) -> Any:
        """
        Execute an API function with argument conversion and progress wiring.

        Raises:
            SubForgeError: If the function is unknown or its call fails
        """
        self.validate_function_name(function_name)
        function = self.api_functions[function_name]

        if isinstance(arguments, dict):
            arguments = convert_js_to_python_params(arguments)
            logger.debug(f"Converted arguments to snake_case: {arguments}")

        prepared_arguments = ArgumentHandler.prepare_arguments(function, arguments, operation_id)

        try:
            return safe_execute(
                self.call_function,
                function,
                prepared_arguments,
                module_name=self.module_name,
                error_map={
                    Exception: lambda msg, **kwargs: SubForgeError(
                        f"Error executing function {function_name}: {msg}", self.module_name
                    )
                },
                raise_error=True,
            )
        except Exception as e:
            if operation_id:
                get_progress_reporter(operation_id).error(str(e))
            raise
        finally:
            if operation_id:
                remove_progress_reporter(operation_id)


class PythonBridge:
    """Processes a single function call request from the command line."""

    def __init__(self, api_functions: Optional[Dict[str, Callable]] = None):
        self.module_name = "python_bridge"
        self.api_functions = api_functions if api_functions is not None else API_FUNCTIONS
        self.function_executor = FunctionExecutor(self.api_functions, self.module_name)
        logger.info(f"Bridge initialized with {len(self.api_functions)} API functions")

    def execute_function(self, function_name: str, arguments: Any, operation_id: Optional[str] = None) -> Any:
        return self.function_executor.execute_function(function_name, arguments, operation_id)

    def run(self, args: List[str]) -> None:
        """
        Parse ``args`` (as in sys.argv), run the requested function and
        print its result as JSON on stdout.
        """
        try:
            function_name, arguments_json, operation_id = ArgumentHandler.parse_command_line_args(args)
            logger.info(f"Function called: {function_name}, Operation ID: {operation_id or 'None'}")

            arguments = ArgumentHandler.parse_arguments_json(arguments_json)
            result = self.execute_function(function_name, arguments, operation_id)

            print(json.dumps(result, default=str), flush=True)
            logger.info(f"Function {function_name} completed successfully")

        except Exception as e:
            report_bridge_error(e)


def main() -> None:
    PythonBridge().run(sys.argv)


if __name__ == "__main__":
    main()
