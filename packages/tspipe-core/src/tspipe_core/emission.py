"""Emission pipeline: from compiler artifacts to pipeline output files.

Artifacts are split by kind:
- JavaScript: the trailing ``sourceMappingURL`` comment is stripped, since the
  map is attached to the output file instead of referenced from it
- Source maps: held until their JavaScript is written, then applied onto the
  output file (composed with the input file's own map, if any)
- Declarations: written to the declaration sink when declarations were
  requested

Artifacts whose source is not an input file are dropped. JavaScript is
written in natural order, or in reference-directive order when a
ReferenceGraph is supplied.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Protocol, runtime_checkable

import structlog

from tspipe_core.models import (
    CachedFileOutput,
    EmittedArtifact,
    InputFile,
    OutputKind,
    PipelineFile,
)
from tspipe_core.paths import strip_source_map_comment
from tspipe_core.references import ReferenceGraph, order_by_references
from tspipe_core.sourcemaps import apply_source_map, parse_source_map
from tspipe_core.store import VirtualFileStore

logger = structlog.get_logger(__name__)

SOURCE_MAP_COMMENT_PREFIXES = ("//# sourceMappingURL=", "//@ sourceMappingURL=")


@runtime_checkable
class OutputSink(Protocol):
    """Destination of output files."""

    def write(self, file: PipelineFile) -> None: ...

    def finish(self) -> None: ...


@dataclass
class ListSink:
    """OutputSink collecting files in memory.

    Example:
        >>> sink = ListSink()
        >>> sink.write(PipelineFile(path="a.js"))
        >>> [f.path for f in sink.files]
        ['a.js']
    """

    files: list[PipelineFile] = field(default_factory=list)
    finished: int = 0

    def write(self, file: PipelineFile) -> None:
        self.files.append(file)

    def finish(self) -> None:
        self.finished += 1

    @property
    def paths(self) -> list[str]:
        return [file.path for file in self.files]


def has_source_map_comment(content: str) -> bool:
    """True if the last line of ``content`` is a source map reference.

    Looks at the same line strip_source_map_comment() removes.
    """
    index = content.rfind("\n", 0, max(len(content) - 1, 0))
    last_line = content[index + 1 :].strip()
    return last_line.startswith(SOURCE_MAP_COMMENT_PREFIXES)


def remove_source_map_comment(artifact: EmittedArtifact) -> EmittedArtifact:
    if not has_source_map_comment(artifact.content):
        return artifact
    return artifact.model_copy(update={"content": strip_source_map_comment(artifact.content)})


@dataclass
class SplitArtifacts:
    """Artifacts of the current build grouped by kind, keyed by source path."""

    javascript: dict[str, EmittedArtifact] = field(default_factory=dict)
    source_maps: dict[str, EmittedArtifact] = field(default_factory=dict)
    declarations: dict[str, EmittedArtifact] = field(default_factory=dict)
    dropped: list[str] = field(default_factory=list)


def split_artifacts(
    artifacts: Iterable[EmittedArtifact],
    store: VirtualFileStore,
) -> SplitArtifacts:
    """Group artifacts by kind, discarding those without an input file."""
    split = SplitArtifacts()
    for artifact in artifacts:
        original = artifact.original_path
        if not store.is_input(original):
            split.dropped.append(artifact.path)
            continue

        if artifact.kind is OutputKind.JAVASCRIPT:
            split.javascript[original] = remove_source_map_comment(artifact)
        elif artifact.kind is OutputKind.SOURCE_MAP:
            split.source_maps[original] = artifact
        elif artifact.kind is OutputKind.DECLARATION:
            split.declarations[original] = remove_source_map_comment(artifact)

    if split.dropped:
        logger.debug("artifacts_without_input_dropped", paths=split.dropped)
    return split


class Emitter:
    """Writes artifacts to the output sinks.

    Args:
        store: Input files of the current build.
        js_sink: Sink for JavaScript (with attached source maps).
        declaration_sink: Sink for declaration files.
        declaration: Whether declaration output was requested.

    Attributes:
        written: What was written per source path, in emission order.
    """

    def __init__(
        self,
        store: VirtualFileStore,
        js_sink: OutputSink,
        declaration_sink: OutputSink,
        *,
        declaration: bool,
    ) -> None:
        self.store = store
        self.js_sink = js_sink
        self.declaration_sink = declaration_sink
        self.declaration = declaration
        self.written: dict[str, CachedFileOutput] = {}
        self.javascript_files = 0
        self.declaration_files = 0

    def emit(
        self,
        artifacts: Iterable[EmittedArtifact],
        graph: ReferenceGraph | None = None,
    ) -> None:
        """Split, order and write a fresh set of artifacts.

        Args:
            artifacts: Everything the compiler emitted.
            graph: Reference adjacency; when given, JavaScript is written in
                dependency order.
        """
        split = split_artifacts(artifacts, self.store)

        order = list(split.javascript)
        if graph is not None:
            order = order_by_references(order, graph)

        for original in order:
            self.write_output(
                original,
                CachedFileOutput(
                    javascript=split.javascript[original],
                    source_map=split.source_maps.get(original),
                    declaration=split.declarations.get(original),
                ),
            )

        for original, declaration in split.declarations.items():
            if original not in split.javascript:
                self.write_output(original, CachedFileOutput(declaration=declaration))

    def write_output(self, original: str, output: CachedFileOutput) -> None:
        """Write the output of one source file.

        Also used for replay: ``output`` is written exactly as given.
        """
        entry = self.store.get_input(original)
        if entry is None:
            logger.debug("output_without_input_dropped", original=original)
            return

        if output.javascript is not None:
            self.js_sink.write(self._javascript_file(entry, output))
            self.javascript_files += 1

        declaration = output.declaration if self.declaration else None
        if declaration is not None:
            self.declaration_sink.write(self._make_file(entry, declaration))
            self.declaration_files += 1

        self.written[original] = output.model_copy(update={"declaration": declaration})

    def _javascript_file(self, entry: InputFile, output: CachedFileOutput) -> PipelineFile:
        assert output.javascript is not None
        file = self._make_file(entry, output.javascript)
        if entry.file.source_map is not None:
            file.source_map = parse_source_map(entry.file.source_map)
        if output.source_map is not None:
            apply_source_map(file, output.source_map.content)
        return file

    @staticmethod
    def _make_file(entry: InputFile, artifact: EmittedArtifact) -> PipelineFile:
        return PipelineFile(
            path=artifact.path,
            contents=artifact.content.encode("utf-8"),
            cwd=entry.file.cwd,
            base=entry.file.base,
        )
