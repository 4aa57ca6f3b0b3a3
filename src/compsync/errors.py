"""Error types and formatting utilities for compsync.

Every failure the synchronizer can report derives from ComponentSyncError.
Per-artifact errors (writer rejections, generator failures) are caught by the
orchestrator and folded into a SyncRecord; run-level errors (cancellation,
invalid configuration, schema introspection failures) propagate to the caller.
"""

from pathlib import Path

import yaml
from pydantic import ValidationError

from compsync import cli_logger, exit_codes


class ComponentSyncError(Exception):
    """Base class for all compsync errors."""


class ManifestParseError(ComponentSyncError):
    """Raised when a manifest file cannot be parsed or fails validation."""

    def __init__(self, path: Path, reason: str) -> None:
        """Initialize with the offending manifest path and reason."""
        self.path = path
        self.reason = reason
        super().__init__(f"Invalid manifest '{path}': {reason}")


class ManifestWriteError(ComponentSyncError):
    """Raised when a manifest cannot be written back to disk."""

    def __init__(self, path: Path, reason: str) -> None:
        """Initialize with the target path and reason."""
        self.path = path
        self.reason = reason
        super().__init__(f"Cannot write manifest '{path}': {reason}")


class TypeMappingError(ComponentSyncError):
    """Raised when a type descriptor has no entry in the mapping table."""

    def __init__(self, type_name: str, direction: str) -> None:
        """Initialize with the unmapped type and the mapping direction."""
        self.type_name = type_name
        self.direction = direction
        super().__init__(f"No {direction} mapping for type '{type_name}'")


class WriterError(ComponentSyncError):
    """Base class for Safe File Writer rejections.

    A writer error is fatal to one artifact and never to the whole run.
    """

    def __init__(self, path: Path, message: str) -> None:
        """Initialize with the target path and message."""
        self.path = path
        super().__init__(message)


class PathNotAllowedError(WriterError):
    """Raised when a write targets a path outside the allowed roots."""

    def __init__(self, path: Path, reason: str = "outside allowed roots") -> None:
        """Initialize with the rejected path and reason."""
        self.reason = reason
        super().__init__(path, f"Path not allowed: {path} ({reason})")


class ArtifactExistsError(WriterError, FileExistsError):
    """Raised when the target exists and overwrite is disabled."""

    def __init__(self, path: Path) -> None:
        """Initialize with the existing path."""
        super().__init__(path, f"{path} already exists")


class ContentTooLargeError(WriterError):
    """Raised when content exceeds the configured size limit."""

    def __init__(self, path: Path, size: int, limit: int) -> None:
        """Initialize with the content size and the limit."""
        self.size = size
        self.limit = limit
        super().__init__(path, f"Content for {path} is {size} bytes, limit is {limit}")


class ContentRejectedError(WriterError):
    """Raised when content fails the pre-write content check."""

    def __init__(self, path: Path, reason: str) -> None:
        """Initialize with the target path and the reason the content was refused."""
        self.reason = reason
        super().__init__(path, f"Content for {path} rejected: {reason}")


class BackupFailedError(WriterError):
    """Raised when the pre-overwrite backup could not be created.

    The overwrite is aborted; the original file is left untouched.
    """

    def __init__(self, path: Path, reason: str) -> None:
        """Initialize with the file that could not be backed up."""
        self.reason = reason
        super().__init__(path, f"Backup of {path} failed: {reason}")


class SyncCancelledError(ComponentSyncError):
    """Raised when a pre-sync listener vetoes a run."""

    def __init__(self, bundle_id: str, reason: str | None = None) -> None:
        """Initialize with the bundle whose sync was cancelled."""
        self.bundle_id = bundle_id
        self.reason = reason
        message = f"Sync of '{bundle_id}' cancelled"
        if reason:
            message += f": {reason}"
        super().__init__(message)


class InvalidConfigurationError(ComponentSyncError):
    """Raised when project configuration or generation options are invalid."""


class SchemaIntrospectionError(ComponentSyncError):
    """Raised when the schema store cannot describe or mutate a bundle."""

    def __init__(self, bundle_id: str, reason: str) -> None:
        """Initialize with the bundle id and reason."""
        self.bundle_id = bundle_id
        self.reason = reason
        super().__init__(f"Schema store error for '{bundle_id}': {reason}")


class BundleNotFoundError(SchemaIntrospectionError):
    """Raised when a bundle does not exist in the schema store."""

    def __init__(self, bundle_id: str) -> None:
        """Initialize with the missing bundle id."""
        super().__init__(bundle_id, "bundle not found")


def format_validation_errors(error: ValidationError) -> str:
    """Format Pydantic ValidationError into clean, user-friendly message.

    Removes Pydantic-specific URLs and technical jargon, producing a message
    suitable for CLI output and for ManifestParseError reasons.

    Args:
        error: The Pydantic ValidationError to format.

    Returns:
        A clean, human-readable error message.
    """
    messages = []

    for err in error.errors():
        # e.g. "props.title.type" or just "name"
        loc = ".".join(str(part) for part in err["loc"])

        error_type = err["type"]
        msg = err["msg"]

        if error_type == "missing":
            messages.append(f"'{loc}': field is required")
        elif error_type == "extra_forbidden":
            messages.append(f"'{loc}': unknown key")
        elif error_type == "enum":
            messages.append(f"'{loc}': {msg.lower()}")
        elif error_type == "string_type":
            messages.append(f"'{loc}': expected string")
        elif error_type == "dict_type":
            messages.append(f"'{loc}': expected mapping")
        elif error_type == "list_type":
            messages.append(f"'{loc}': expected list")
        elif error_type in ("int_type", "int_parsing"):
            messages.append(f"'{loc}': expected integer")
        elif error_type in ("bool_type", "bool_parsing"):
            messages.append(f"'{loc}': expected boolean")
        else:
            clean_msg = msg.lower().removeprefix("value error, ")
            if loc:
                messages.append(f"'{loc}': {clean_msg}")
            else:
                messages.append(clean_msg)

    if len(messages) == 1:
        return messages[0]

    return "; ".join(messages)


def handle_cli_error(error: Exception) -> int:
    """Handle an unhandled exception at the CLI boundary.

    Formats the error into a clean user-friendly message and returns
    an appropriate exit code, so raw tracebacks never reach the user.

    Args:
        error: The exception to handle.

    Returns:
        An exit code from exit_codes.
    """
    if isinstance(error, ValidationError):
        cli_logger.error(f"Invalid configuration: {format_validation_errors(error)}")
        return exit_codes.INVALID_CONFIG

    if isinstance(error, InvalidConfigurationError):
        cli_logger.error(f"Invalid configuration: {error}")
        return exit_codes.INVALID_CONFIG

    if isinstance(error, BundleNotFoundError):
        cli_logger.error(f"Bundle '{error.bundle_id}' not found")
        return exit_codes.BUNDLE_NOT_FOUND

    if isinstance(error, SyncCancelledError):
        cli_logger.warning(str(error))
        return exit_codes.SYNC_CANCELLED

    if isinstance(error, ComponentSyncError):
        cli_logger.error(str(error))
        return exit_codes.GENERAL_ERROR

    if isinstance(error, OSError):
        if error.filename:
            cli_logger.error(f"{error.strerror}: {error.filename}")
        else:
            cli_logger.error(str(error))
        return exit_codes.GENERAL_ERROR

    if isinstance(error, yaml.YAMLError):
        cli_logger.error(f"Invalid YAML: {error}")
        return exit_codes.GENERAL_ERROR

    cli_logger.error(f"Unexpected error: {error}")
    return exit_codes.GENERAL_ERROR
