"""
Argument Handling Utilities for SubForge.

Turns a bridge invocation into a Python call: splits the command line, parses
the JSON arguments, converts camelCase keys to snake_case and injects a
progress callback into functions that accept one.
"""

import json
import logging
import sys
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

from utils.error_handler import log_exception
from utils.progress import create_progress_callback_factory

logger = logging.getLogger(__name__)
MODULE_NAME = "argument_handler"

USAGE = "Usage: bridge.py <function_name> <arguments_json> [operation_id]\n"


class ArgumentHandler:
    """Static helpers used by the bridge to prepare a function call."""

    @staticmethod
    def parse_command_line_args(args: List[str]) -> Tuple[str, str, Optional[str]]:
        """
        Split ``sys.argv`` style arguments.

        Returns:
            Tuple of (function_name, arguments_json, operation_id or None)

        Raises:
            SystemExit: If the function name or arguments are missing
        """
        if len(args) < 3:
            logger.error("Insufficient arguments provided")
            sys.stderr.write(USAGE)
            sys.exit(1)

        function_name = args[1]
        arguments_json = args[2]
        operation_id = args[3] if len(args) > 3 else None

        logger.debug(f"Parsed arguments: function={function_name}, op_id={operation_id}")
        return function_name, arguments_json, operation_id

    @staticmethod
    def parse_arguments_json(arguments_json: str) -> Union[Dict, List, Any]:
        """
        Raises:
            SystemExit: On invalid JSON
        """
        try:
            arguments = json.loads(arguments_json)
        except json.JSONDecodeError as e:
            log_exception(e, module_name=MODULE_NAME, include_traceback=False)
            sys.stderr.write(f"Error: Failed to parse arguments JSON: {e}\n")
            sys.exit(1)

        logger.debug(f"Parsed JSON arguments: {type(arguments).__name__}")
        return arguments

    @staticmethod
    def accepts_progress_callback(function: Callable) -> bool:
        code = function.__code__
        return "progress_callback" in code.co_varnames[: code.co_argcount + code.co_kwonlyargcount]

    @staticmethod
    def prepare_arguments(function: Callable, arguments: Any, operation_id: Optional[str] = None) -> Any:
        """
        Add a ``PROGRESS:`` printing callback when an operation id was given
        and the function has a ``progress_callback`` parameter.
        """
        if not operation_id or not ArgumentHandler.accepts_progress_callback(function):
            return arguments

        progress_callback = create_progress_callback_factory(operation_id)
        logger.debug(f"Created progress callback for operation {operation_id}")

        if isinstance(arguments, list):
            arg_names = function.__code__.co_varnames[: function.__code__.co_argcount]
            callback_pos = arg_names.index("progress_callback")
            args_copy = list(arguments)
            while len(args_copy) <= callback_pos:
                args_copy.append(None)
            args_copy[callback_pos] = progress_callback
            return args_copy

        arguments = dict(arguments or {})
        arguments["progress_callback"] = progress_callback
        return arguments


def convert_js_to_python_params(params: Dict) -> Dict:
    """
    Convert camelCase keys to snake_case, recursing into nested dictionaries
    and lists of dictionaries.

    Examples:
        >>> convert_js_to_python_params({"filePath": "a.mkv", "settings": {"preferForced": True}})
        {'file_path': 'a.mkv', 'settings': {'prefer_forced': True}}
    """
    if not params or not isinstance(params, dict):
        return params

    result = {}
    for key, value in params.items():
        snake_key = "".join("_" + c.lower() if c.isupper() else c for c in key).lstrip("_")

        if isinstance(value, dict):
            result[snake_key] = convert_js_to_python_params(value)
        elif isinstance(value, list):
            result[snake_key] = [
                convert_js_to_python_params(item) if isinstance(item, dict) else item for item in value
            ]
        else:
            result[snake_key] = value

    return result
