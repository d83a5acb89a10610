"""Compilation cache and replay.

Every compilation leaves behind a CachedBuildResult: its diagnostics and the
exact output it wrote, per source path, in emission order. When the next
cycle's inputs are unchanged, replaying that result reproduces the previous
output byte for byte without touching the compiler, so an unchanged build
costs time proportional to its output size rather than its project size.
"""

from __future__ import annotations

from collections.abc import Iterable

import structlog

from tspipe_core.diagnostics import ErrorCallback, report
from tspipe_core.emission import Emitter
from tspipe_core.models import CachedBuildResult, CachedFileOutput, Diagnostic

logger = structlog.get_logger(__name__)


class CacheBuilder:
    """Accumulates the outcome of one compilation.

    Example:
        >>> builder = CacheBuilder()
        >>> builder.add_diagnostics(program.get_diagnostics())
        >>> builder.add_outputs(emitter.written)
        >>> cache = builder.build()
    """

    def __init__(self) -> None:
        self._diagnostics: list[Diagnostic] = []
        self._files: dict[str, CachedFileOutput] = {}

    def add_diagnostics(self, diagnostics: Iterable[Diagnostic]) -> None:
        self._diagnostics.extend(diagnostics)

    def add_outputs(self, outputs: dict[str, CachedFileOutput]) -> None:
        self._files.update(outputs)

    def build(self) -> CachedBuildResult:
        return CachedBuildResult(diagnostics=tuple(self._diagnostics), files=dict(self._files))


def replay(
    cache: CachedBuildResult,
    emitter: Emitter,
    error_callback: ErrorCallback,
) -> int:
    """Re-emit a cached build.

    Diagnostics are forwarded again verbatim, then every cached output is
    rewritten unmodified, in the order it was first written.

    Args:
        cache: Result of the previous compilation.
        emitter: Emitter bound to the current sinks and input files.
        error_callback: Receives one error object per cached diagnostic.

    Returns:
        Number of error diagnostics replayed.
    """
    errors = report(cache.diagnostics, error_callback, emitter.store)
    for original, output in cache.files.items():
        emitter.write_output(original, output)

    logger.info(
        "build_replayed",
        diagnostics=len(cache.diagnostics),
        files=len(cache.files),
    )
    return errors
