"""Project: the incremental build orchestrator.

A Project is reused serially across build cycles (for example by a watcher):

    >>> project = Project(ProjectSettings(sort_output=True), toolchain=TscToolchain())
    >>> project.reset()
    >>> for file in files:
    ...     project.add_file(file)
    >>> report = project.compile(js_sink, declaration_sink, errors.append)

Each cycle takes exactly one of four paths:
- empty: no input files; nothing is compiled or written
- replayed: inputs identical to the last compilation; its output is replayed
- compiled: the compiler runs and its output is emitted and cached
- aborted: an environment failure stopped the compiler; nothing is written

The sinks are finished at the end of every cycle. A Project is not safe for
concurrent builds; allocate one Project per build.
"""

from __future__ import annotations

import structlog

from tspipe_core.cache import CacheBuilder, replay
from tspipe_core.changes import ChangeDetector
from tspipe_core.compiler import BuildContext, invoke
from tspipe_core.config import ProjectSettings
from tspipe_core.diagnostics import ErrorCallback, report
from tspipe_core.emission import Emitter, ListSink, OutputSink
from tspipe_core.errors import ResolutionError, ToolchainError, TspipeError, TypeScriptError
from tspipe_core.host import FileSystem, Host, LocalFileSystem
from tspipe_core.models import BuildReport, CachedBuildResult, InputFile, PipelineFile
from tspipe_core.observability import span
from tspipe_core.store import VirtualFileStore
from tspipe_core.toolchain import Toolchain

logger = structlog.get_logger(__name__)


def _log_error(error: TspipeError) -> None:
    logger.warning("typescript_error", message=str(error))


class Project:
    """Aggregate root of incremental compilation.

    Args:
        settings: Project settings (compiler options, sorting, resolution).
        toolchain: Compiler toolchain used when inputs changed.
        file_system: Capability used to resolve files outside the input set.

    Attributes:
        store: Input and external files of the current cycle.
        previous_output: Result of the last compilation, used for replay.
    """

    def __init__(
        self,
        settings: ProjectSettings | None = None,
        *,
        toolchain: Toolchain,
        file_system: FileSystem | None = None,
    ) -> None:
        self.settings = settings or ProjectSettings()
        self.toolchain = toolchain
        self.file_system: FileSystem = file_system or LocalFileSystem()
        self.store = VirtualFileStore()
        self.detector = ChangeDetector()
        self.previous_output: CachedBuildResult | None = None

    def reset(self) -> None:
        """Start a new cycle: forget input and external files.

        The cached result of the previous compilation is kept for replay.
        """
        self.store.reset()

    def add_file(self, file: PipelineFile) -> InputFile:
        """Add a pipeline file to the current cycle."""
        return self.store.add(file)

    def is_changed(self) -> bool:
        """Whether the current inputs differ from the last compiled ones."""
        return self.previous_output is None or self.detector.is_changed(self.store)

    def compile(
        self,
        js_sink: OutputSink,
        declaration_sink: OutputSink | None = None,
        error_callback: ErrorCallback | None = None,
    ) -> BuildReport:
        """Run one build cycle over the files added since the last reset().

        Args:
            js_sink: Receives JavaScript files with source maps attached.
            declaration_sink: Receives declaration files (when requested).
            error_callback: Receives one error object per diagnostic or
                environment failure. Defaults to logging them.

        Returns:
            BuildReport describing the cycle.
        """
        declaration_sink = declaration_sink if declaration_sink is not None else ListSink()
        error_callback = error_callback or _log_error
        try:
            return self._run(js_sink, declaration_sink, error_callback)
        finally:
            js_sink.finish()
            declaration_sink.finish()

    def _run(
        self,
        js_sink: OutputSink,
        declaration_sink: OutputSink,
        error_callback: ErrorCallback,
    ) -> BuildReport:
        first = self.store.first_source_file
        if first is None:
            logger.info("build_skipped_no_input")
            return BuildReport(mode="empty")

        emitter = Emitter(
            self.store,
            js_sink,
            declaration_sink,
            declaration=self.settings.declaration,
        )

        if self.previous_output is not None and not self.is_changed():
            with span("tspipe.replay", attributes={"files": len(self.store)}):
                errors = replay(self.previous_output, emitter, error_callback)
            return BuildReport(
                mode="replayed",
                diagnostics=len(self.previous_output.diagnostics),
                errors=errors,
                javascript_files=emitter.javascript_files,
                declaration_files=emitter.declaration_files,
            )

        context = BuildContext(
            store=self.store,
            settings=self.settings,
            host=Host(
                self.store,
                self.file_system,
                first.file.cwd,
                external_resolve=not self.settings.no_external_resolve,
            ),
        )

        try:
            with span("tspipe.compile", attributes={"files": len(self.store)}):
                invocation = invoke(context, self.toolchain)
        except (ResolutionError, ToolchainError) as exc:
            self._abort(exc, error_callback)
            return BuildReport(mode="aborted", errors=1)

        errors = report(invocation.diagnostics, error_callback, self.store)

        builder = CacheBuilder()
        builder.add_diagnostics(invocation.diagnostics)

        if self.settings.emit_on_error or errors == 0:
            with span("tspipe.emit", attributes={"artifacts": len(invocation.artifacts)}):
                emitter.emit(invocation.artifacts, invocation.graph)
        else:
            logger.info("emission_withheld", errors=errors)

        builder.add_outputs(emitter.written)
        self.previous_output = builder.build()
        self.detector.commit(self.store)

        logger.info(
            "build_compiled",
            errors=errors,
            javascript_files=emitter.javascript_files,
            declaration_files=emitter.declaration_files,
        )
        return BuildReport(
            mode="compiled",
            diagnostics=len(invocation.diagnostics),
            errors=errors,
            javascript_files=emitter.javascript_files,
            declaration_files=emitter.declaration_files,
        )

    def _abort(self, exc: TspipeError, error_callback: ErrorCallback) -> None:
        """Report an environment failure and invalidate the cache."""
        logger.error("build_aborted", error_type=type(exc).__name__, error=str(exc))
        self.previous_output = None
        self.detector.forget()

        error = TypeScriptError(exc.user_message)
        error.__cause__ = exc
        error_callback(error)
