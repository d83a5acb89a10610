"""Contract of the external compiler toolchain.

The toolchain is a black box: it is given the root file list, the
pass-through compiler options and a CompilerHost, and returns a Program
exposing diagnostics, emitted artifacts and the reference directives of each
source file. TscToolchain (tspipe_core.tsc) drives the real ``tsc``; tests use
an in-memory implementation.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable

from tspipe_core.host import CompilerHost
from tspipe_core.models import Diagnostic, EmittedArtifact


@dataclass(frozen=True)
class SourceFile:
    """A source file as seen by the compiler.

    Attributes:
        path: Normalized path.
        text: File content.
        referenced_files: Resolved, normalized targets of its reference directives.
    """

    path: str
    text: str
    referenced_files: tuple[str, ...] = field(default=())


@runtime_checkable
class Program(Protocol):
    """A compiled program over a fixed set of root files."""

    def get_diagnostics(self) -> list[Diagnostic]:
        """Syntactic, semantic and emit diagnostics, in compiler order."""
        ...

    def emit(self) -> list[EmittedArtifact]:
        """All files emitted for the program."""
        ...

    def get_source_file(self, path: str) -> SourceFile | None:
        """The source file at ``path`` if it is part of the program."""
        ...


@runtime_checkable
class Toolchain(Protocol):
    """Factory of programs."""

    def create_program(
        self,
        root_paths: Sequence[str],
        options: Mapping[str, Any],
        host: CompilerHost,
    ) -> Program: ...
