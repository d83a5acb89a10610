"""Turning compiler diagnostics into error objects for the pipeline.

Diagnostics are forwarded one at a time to the caller's error callback as
TypeScriptError objects. The message follows the compiler's own layout,
``path(line,col): code message``, with the path made relative to the
pipeline working directory when the file is one of the inputs.
"""

from __future__ import annotations

from collections.abc import Callable

from tspipe_core.errors import TspipeError, TypeScriptError
from tspipe_core.models import Diagnostic
from tspipe_core.paths import original_name, relative_to
from tspipe_core.store import VirtualFileStore

ErrorCallback = Callable[[TspipeError], None]


def format_diagnostic(diagnostic: Diagnostic, store: VirtualFileStore | None = None) -> str:
    """Format a diagnostic as ``path(line,col): code message``.

    Example:
        >>> format_diagnostic(Diagnostic(file="a.ts", line=1, column=5, code=2322, message="x"))
        'a.ts(1,5): 2322 x'
    """
    if diagnostic.file is None:
        return f"{diagnostic.code} {diagnostic.message}"

    path = diagnostic.file
    entry = store.get_input(original_name(path)) if store is not None else None
    if entry is not None and entry.file.cwd:
        path = relative_to(diagnostic.file, entry.file.cwd)

    if diagnostic.line is None:
        return f"{path}: {diagnostic.code} {diagnostic.message}"
    position = f"({diagnostic.line},{diagnostic.column or 1})"
    return f"{path}{position}: {diagnostic.code} {diagnostic.message}"


def to_error(diagnostic: Diagnostic, store: VirtualFileStore | None = None) -> TypeScriptError:
    """Wrap a diagnostic in the error object handed to error callbacks."""
    return TypeScriptError(format_diagnostic(diagnostic, store), diagnostic=diagnostic)


def report(
    diagnostics: list[Diagnostic] | tuple[Diagnostic, ...],
    error_callback: ErrorCallback,
    store: VirtualFileStore | None = None,
) -> int:
    """Forward diagnostics one by one; returns how many were errors."""
    errors = 0
    for diagnostic in diagnostics:
        error_callback(to_error(diagnostic, store))
        if diagnostic.is_error:
            errors += 1
    return errors
