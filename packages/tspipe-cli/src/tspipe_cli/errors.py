"""CLI error handling for tspipe-cli.

This module provides CLI-specific error handling that wraps
tspipe-core exceptions and provides user-friendly messages
with appropriate exit codes.
"""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING, NoReturn

import click
from pydantic import ValidationError as PydanticValidationError

from tspipe_cli.output import error

if TYPE_CHECKING:
    from pydantic_core import ErrorDetails

    from tspipe_core.config import BuildConfig


# Exit codes following sysexits.h convention
EXIT_SUCCESS = 0
EXIT_USER_ERROR = 1  # User error (compile errors, invalid configuration)
EXIT_SYSTEM_ERROR = 2  # System error (missing file, compiler not runnable, write failure)


class CLIError(click.ClickException):
    """CLI-specific exception with exit code support.

    Attributes:
        message: User-facing error message.
        exit_code: Exit code for the CLI (default: 1).
    """

    def __init__(self, message: str, exit_code: int = EXIT_USER_ERROR) -> None:
        super().__init__(message)
        self.exit_code = exit_code

    def show(self, file: object = None) -> None:
        """Display the error message using Rich formatting.

        Args:
            file: Output file (unused, for Click compatibility).
        """
        error(self.format_message())


def format_pydantic_error(err: PydanticValidationError) -> str:
    """Format Pydantic validation error into user-friendly message.

    Args:
        err: Pydantic ValidationError instance.

    Returns:
        Formatted error message with field paths and issues.

    Example:
        >>> format_pydantic_error(err)
        "Validation failed:\\n  - project.sortOutput: Input should be a valid boolean"
    """
    errors: list[ErrorDetails] = err.errors()
    lines = ["Validation failed:"]

    for e in errors:
        loc = ".".join(str(x) for x in e["loc"])
        lines.append(f"  - {loc}: {e['msg']}")

    return "\n".join(lines)


def handle_file_not_found(file_path: str) -> NoReturn:
    """Raise the error shown when tspipe.yaml is missing.

    Raises:
        CLIError: Always, with exit code EXIT_SYSTEM_ERROR.
    """
    raise CLIError(
        f"File not found: {file_path}\n\nUse --file to specify the path to tspipe.yaml.",
        exit_code=EXIT_SYSTEM_ERROR,
    )


def handle_permission_error(path: str, operation: str = "access") -> NoReturn:
    """Raise the error shown when an output location is not writable.

    Raises:
        CLIError: Always, with exit code EXIT_SYSTEM_ERROR.
    """
    raise CLIError(
        f"Permission denied: Cannot {operation} {path}",
        exit_code=EXIT_SYSTEM_ERROR,
    )


def load_config(file_path: str) -> BuildConfig:
    """Load tspipe.yaml, turning every failure into a CLIError.

    Args:
        file_path: Path to the configuration file.

    Returns:
        Validated BuildConfig.

    Raises:
        CLIError: If the file is missing, is not valid YAML, or fails validation.
    """
    # Import here to avoid heavy imports at CLI startup
    from tspipe_core.config import BuildConfig
    from tspipe_core.errors import ConfigurationError

    try:
        return BuildConfig.from_yaml(Path(file_path))
    except FileNotFoundError:
        handle_file_not_found(file_path)
    except ConfigurationError as e:
        raise CLIError(str(e)) from None
    except PydanticValidationError as e:
        formatted = format_pydantic_error(e)
        raise CLIError(f"Invalid configuration in {file_path}:\n{formatted}") from None
