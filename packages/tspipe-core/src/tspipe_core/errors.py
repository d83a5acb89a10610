"""Custom exception hierarchy for tspipe-core.

This module defines the exception classes used throughout tspipe:
- TspipeError: Base exception for all tspipe-related errors
- ConfigurationError: Raised when tspipe.yaml cannot be loaded
- ResolutionError: Raised when the compiler host cannot read a required file
- ToolchainError: Raised when the compiler executable cannot be run
- TypeScriptError: Error object handed to the error callback for diagnostics

Compile diagnostics are data, not exceptions: TypeScriptError instances are
passed to the caller's error callback and never raised by the build. Only
environment failures (ResolutionError, ToolchainError) abort a build cycle.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

if TYPE_CHECKING:
    from tspipe_core.models import Diagnostic

logger = structlog.get_logger(__name__)


class TspipeError(Exception):
    """Base exception for tspipe.

    All tspipe exceptions inherit from this class. User-facing messages
    are safe to display; technical details are logged internally.

    Args:
        user_message: Message to display to the user.
        internal_details: Optional technical details for logging.

    Example:
        >>> raise TspipeError(
        ...     "Build failed",
        ...     internal_details="tsc exited with status 134",
        ... )
    """

    def __init__(
        self,
        user_message: str,
        *,
        internal_details: str | None = None,
    ) -> None:
        """Initialize TspipeError with user message and optional internal details.

        Args:
            user_message: Message to display to the user.
            internal_details: Technical details for internal logging only.
        """
        super().__init__(user_message)
        self.user_message = user_message

        if internal_details:
            logger.error(
                "tspipe_error",
                error_type=self.__class__.__name__,
                user_message=user_message,
                internal_details=internal_details,
            )


class ConfigurationError(TspipeError):
    """Raised when configuration file parsing or validation fails.

    Attributes:
        file_path: Path to the configuration file (if known).
        field_path: Dot-separated path to the invalid field.
        line_number: Line number in the file where the error occurred.

    Example:
        >>> raise ConfigurationError(
        ...     "Invalid YAML",
        ...     file_path="tspipe.yaml",
        ...     line_number=3,
        ... )
    """

    def __init__(
        self,
        user_message: str,
        *,
        file_path: str | None = None,
        field_path: str | None = None,
        line_number: int | None = None,
        internal_details: str | None = None,
    ) -> None:
        """Initialize ConfigurationError with context.

        Args:
            user_message: Message to display to the user.
            file_path: Path to the configuration file (optional).
            field_path: Dot-separated path to the field (optional).
            line_number: Line number in the file (optional).
            internal_details: Technical details for internal logging only.
        """
        context_parts: list[str] = []
        if file_path:
            context_parts.append(f"in {file_path}")
        if line_number:
            context_parts.append(f"line {line_number}")
        if field_path:
            context_parts.append(f"field '{field_path}'")

        if context_parts:
            full_message = f"{user_message} ({', '.join(context_parts)})"
        else:
            full_message = user_message

        super().__init__(full_message, internal_details=internal_details)

        self.file_path = file_path
        self.field_path = field_path
        self.line_number = line_number


class ResolutionError(TspipeError):
    """Raised when the compiler host cannot read a required file.

    This happens when external resolution is disabled and the file is not
    part of the input set, or when the file system lookup itself fails.

    Attributes:
        path: Normalized path that could not be read.
    """

    def __init__(self, path: str, *, internal_details: str | None = None) -> None:
        super().__init__(f"File not found: {path}", internal_details=internal_details)
        self.path = path


class ToolchainError(TspipeError):
    """Raised when the compiler toolchain cannot be run.

    Attributes:
        executable: The executable that was invoked (if any).
        returncode: Process exit status (if the process ran).
    """

    def __init__(
        self,
        user_message: str,
        *,
        executable: str | None = None,
        returncode: int | None = None,
        internal_details: str | None = None,
    ) -> None:
        super().__init__(user_message, internal_details=internal_details)
        self.executable = executable
        self.returncode = returncode


class TypeScriptError(TspipeError):
    """Error object reported for a single compiler diagnostic.

    Carries the fixed ``name`` tag expected by pipeline error callbacks and
    the formatted ``path(line,col): code message`` text as its message.

    Attributes:
        name: Always ``"TypeScript error"``.
        message: Formatted diagnostic text.
        diagnostic: The originating Diagnostic, if any.
    """

    name = "TypeScript error"

    def __init__(self, message: str, *, diagnostic: Diagnostic | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.diagnostic = diagnostic
