"""Compiler invocation for one build cycle.

Builds the root file list, creates a program through the toolchain against
the compiler host, and collects diagnostics, artifacts and (for sorted
output) the reference graph of the emitted sources.

Compile errors are never raised: they come back as diagnostics. Only
environment failures (a required file the host cannot read, a toolchain that
cannot run) propagate and abort the cycle.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

import structlog

from tspipe_core.config import ProjectSettings
from tspipe_core.filter import Filter
from tspipe_core.host import Host
from tspipe_core.models import Diagnostic, EmittedArtifact, OutputKind
from tspipe_core.references import ReferenceGraph
from tspipe_core.store import VirtualFileStore
from tspipe_core.toolchain import Program, Toolchain

logger = structlog.get_logger(__name__)


@dataclass
class BuildContext:
    """State of one build cycle, discarded when the cycle ends.

    Attributes:
        store: Input and external files.
        settings: Project settings.
        host: Compiler host for this cycle.
        program: Program created for this cycle (set by invoke()).
    """

    store: VirtualFileStore
    settings: ProjectSettings
    host: Host
    program: Program | None = None
    root_paths: list[str] = field(default_factory=list)

    @property
    def options(self) -> dict[str, Any]:
        return dict(self.settings.compiler_options)


@dataclass(frozen=True)
class Invocation:
    """What the compiler produced for one cycle."""

    diagnostics: list[Diagnostic]
    artifacts: list[EmittedArtifact]
    graph: ReferenceGraph | None = None

    @property
    def errors(self) -> int:
        return sum(1 for diagnostic in self.diagnostics if diagnostic.is_error)


def root_file_names(store: VirtualFileStore, settings: ProjectSettings) -> list[str]:
    """All input paths, narrowed by the configured filter."""
    names = store.file_names()
    if settings.filter is None or settings.filter.is_empty:
        return names
    _filter = Filter(store, settings.filter)
    return [name for name in names if _filter.match(name)]


def reference_graph(program: Program, artifacts: list[EmittedArtifact]) -> ReferenceGraph:
    """Reference adjacency of every source that produced JavaScript."""
    graph = ReferenceGraph()
    for artifact in artifacts:
        if artifact.kind is not OutputKind.JAVASCRIPT:
            continue
        original = artifact.original_path
        source = program.get_source_file(original)
        if source is None:
            continue
        for target in source.referenced_files:
            graph.add_edge(original, target)
    return graph


def invoke(context: BuildContext, toolchain: Toolchain) -> Invocation:
    """Run the compiler for the current cycle.

    Args:
        context: Cycle state; its ``program`` and ``root_paths`` are set here.
        toolchain: Compiler toolchain.

    Returns:
        Diagnostics, emitted artifacts and, with sort_output, the reference graph.

    Raises:
        ResolutionError: If the host cannot read a file the compiler requires.
        ToolchainError: If the toolchain cannot be run.
    """
    context.root_paths = root_file_names(context.store, context.settings)
    log = logger.bind(roots=len(context.root_paths))
    log.debug("program_creating")

    context.program = toolchain.create_program(context.root_paths, context.options, context.host)
    diagnostics = list(context.program.get_diagnostics())
    artifacts = list(context.program.emit())

    graph = None
    if context.settings.sort_output:
        graph = reference_graph(context.program, artifacts)

    invocation = Invocation(diagnostics=diagnostics, artifacts=artifacts, graph=graph)
    log.info(
        "program_compiled",
        diagnostics=len(diagnostics),
        errors=invocation.errors,
        artifacts=len(artifacts),
        externals=len(context.store.externals),
    )
    return invocation
