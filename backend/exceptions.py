"""
Custom exceptions for SubForge.

This module defines every exception raised by the extraction pipeline.
Keeping the taxonomy in one place lets the coordinator, the dispatcher and
the API layer decide how to react to a failure purely by its type.
"""


class SubForgeError(Exception):
    """Base exception for all SubForge errors."""

    def __init__(self, message="An error occurred in SubForge", module=None):
        self.module = module
        self.message = message
        self.full_message = f"[{module or 'Unknown'}] {message}" if module else message
        super().__init__(self.full_message)


class DependencyError(SubForgeError):
    """Raised when a required external tool is missing or unusable."""

    def __init__(self, dependency, message=None, module=None):
        self.dependency = dependency
        msg = message or f"Error with dependency: {dependency}"
        super().__init__(msg, module)


class ToolError(DependencyError):
    """Raised when an external tool exits with a non-zero status."""

    def __init__(self, tool, message, exit_code=None, output=None, module=None):
        self.exit_code = exit_code
        self.output = output
        super().__init__(tool, f"{tool}: {message}", module)


class ToolTimeoutError(ToolError):
    """Raised when an external tool exceeds its time budget and is killed."""

    def __init__(self, tool, timeout_seconds, module=None):
        self.timeout_seconds = timeout_seconds
        super().__init__(
            tool, f"Process timed out after {timeout_seconds / 60:.0f} minutes", module=module
        )


class OperationCancelledError(SubForgeError):
    """Raised when the user cancels a running operation. Not a failure."""

    def __init__(self, message="Operation cancelled by user", module=None):
        super().__init__(message, module)


class ProbeError(SubForgeError):
    """Raised when a container cannot be read or has no subtitle streams."""

    def __init__(self, message, file_path=None, module=None):
        self.file_path = file_path
        file_info = f" for file: {file_path}" if file_path else ""
        super().__init__(f"Probe failed{file_info}. {message}", module)


class NoSuitableTrackError(SubForgeError):
    """Raised when a container has no track that can be selected."""

    def __init__(self, file_path=None, module=None):
        self.file_path = file_path
        super().__init__("No suitable track found for extraction", module)


class UnsupportedCodecError(SubForgeError):
    """Raised when a track's encoding has no extraction path."""

    def __init__(self, codec, module=None):
        self.codec = codec
        super().__init__(f"Unsupported subtitle codec: {codec}", module)


class ExtractionError(SubForgeError):
    """Raised when the external extractor fails for a subtitle track."""

    def __init__(self, message, track_id=None, module=None):
        self.track_id = track_id
        track_info = f" for subtitle track {track_id}" if track_id is not None else ""
        super().__init__(f"Track extraction failed{track_info}. {message}", module)


class OcrError(SubForgeError):
    """Raised when OCR of an image-based subtitle fails or times out."""

    def __init__(self, message, track_id=None, module=None):
        self.track_id = track_id
        track_info = f" for subtitle track {track_id}" if track_id is not None else ""
        super().__init__(f"OCR failed{track_info}. {message}", module)


class CleanupError(SubForgeError):
    """Raised internally when a temporary file survives every delete attempt."""

    def __init__(self, message, file_path=None, module=None):
        self.file_path = file_path
        file_info = f" for file: {file_path}" if file_path else ""
        super().__init__(f"Cleanup failed{file_info}. {message}", module)


class FileHandlingError(SubForgeError):
    """Raised for file system operation errors."""

    def __init__(self, message, file_path=None, module=None):
        self.file_path = file_path
        file_info = f" for file: {file_path}" if file_path else ""
        super().__init__(f"File operation failed{file_info}. {message}", module)


class QueueLockedError(SubForgeError):
    """Raised when the queue item currently being processed is mutated."""

    def __init__(self, file_path=None, module=None):
        self.file_path = file_path
        super().__init__(f"Cannot modify item while it is being processed: {file_path}", module)


class ConfigurationError(SubForgeError):
    """Raised when there's an issue with user configuration."""

    def __init__(self, message, config_key=None, module=None):
        self.config_key = config_key
        key_info = f" for setting: {config_key}" if config_key else ""
        super().__init__(f"Configuration error{key_info}. {message}", module)
