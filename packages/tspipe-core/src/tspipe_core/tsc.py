"""Toolchain implementation driving the ``tsc`` executable.

``tsc`` cannot call back into a Python host, so the program stages its
inputs instead: the root files and everything they reach through reference
directives and relative imports are read through the CompilerHost (which
honours ``noExternalResolve``) and written to a temporary directory that
mirrors their common root. ``tsc`` compiles the staged tree into an output
directory, and every emitted file is mapped back next to its original
source, which is where the compiler would have put it without ``outDir``.

Diagnostics are read from ``--pretty false`` output::

    src/app.ts(3,7): error TS2322: Type 'string' is not assignable to type 'number'.
"""

from __future__ import annotations

import json
import os
import posixpath
import re
import shutil
import subprocess
import tempfile
from collections.abc import Mapping, Sequence
from pathlib import Path
from typing import Any

import structlog

from tspipe_core.errors import ToolchainError
from tspipe_core.host import CompilerHost
from tspipe_core.models import Diagnostic, EmittedArtifact, OutputKind
from tspipe_core.paths import is_declaration_file, normalize_path, original_name, output_kind
from tspipe_core.references import (
    module_candidates,
    parse_reference_directives,
    parse_relative_imports,
    resolve_reference,
)
from tspipe_core.toolchain import SourceFile

logger = structlog.get_logger(__name__)

DEFAULT_EXECUTABLE = "tsc"

# Exit statuses of tsc: success, errors without output, errors with output
TSC_EXIT_CODES = (0, 1, 2)

FILE_NOT_FOUND_CODE = 6053

# Options the program sets itself
MANAGED_OPTIONS = frozenset(
    {
        "outDir",
        "rootDir",
        "sourceMap",
        "inlineSourceMap",
        "inlineSources",
        "pretty",
        "noEmit",
        "out",
        "outFile",
        "listEmittedFiles",
        "project",
        "watch",
    }
)

STAGE_SOURCE_DIR = "src"
STAGE_OUTPUT_DIR = "out"

_DIAGNOSTIC_RE = re.compile(
    r"^(?P<file>.+?)\((?P<line>\d+),(?P<column>\d+)\): "
    r"(?P<category>error|warning|suggestion|message) TS(?P<code>\d+): (?P<message>.*)$"
)
_GLOBAL_DIAGNOSTIC_RE = re.compile(
    r"^(?P<category>error|warning|suggestion|message) TS(?P<code>\d+): (?P<message>.*)$"
)

_KIND_ORDER = {OutputKind.JAVASCRIPT: 0, OutputKind.SOURCE_MAP: 1, OutputKind.DECLARATION: 2}


def options_to_arguments(options: Mapping[str, Any]) -> list[str]:
    """Translate pass-through compiler options into ``tsc`` flags.

    Example:
        >>> options_to_arguments({"target": "ES2019", "strict": True, "lib": ["es2019", "dom"]})
        ['--target', 'ES2019', '--strict', 'true', '--lib', 'es2019,dom']
    """
    arguments: list[str] = []
    for key, value in options.items():
        if key in MANAGED_OPTIONS or value is None:
            continue
        if isinstance(value, bool):
            arguments += [f"--{key}", "true" if value else "false"]
        elif isinstance(value, (list, tuple)):
            arguments += [f"--{key}", ",".join(str(item) for item in value)]
        else:
            arguments += [f"--{key}", str(value)]
    return arguments


def parse_diagnostics(output: str) -> list[Diagnostic]:
    """Parse ``tsc --pretty false`` output; indented lines continue a message."""
    diagnostics: list[Diagnostic] = []
    for line in output.splitlines():
        if not line.strip():
            continue
        match = _DIAGNOSTIC_RE.match(line)
        if match:
            diagnostics.append(
                Diagnostic(
                    file=normalize_path(match.group("file")),
                    line=int(match.group("line")),
                    column=int(match.group("column")),
                    code=int(match.group("code")),
                    category=match.group("category"),  # type: ignore[arg-type]
                    message=match.group("message"),
                )
            )
            continue
        match = _GLOBAL_DIAGNOSTIC_RE.match(line)
        if match:
            diagnostics.append(
                Diagnostic(
                    code=int(match.group("code")),
                    category=match.group("category"),  # type: ignore[arg-type]
                    message=match.group("message"),
                )
            )
            continue
        if diagnostics and line[:1].isspace():
            last = diagnostics[-1]
            diagnostics[-1] = last.model_copy(update={"message": f"{last.message}\n{line.strip()}"})
    return diagnostics


def _find_line(text: str, target: str) -> int | None:
    for number, line in enumerate(text.splitlines(), start=1):
        if target in line:
            return number
    return None


class TscProgram:
    """Program compiled by a single ``tsc`` run.

    The compilation happens on first access to diagnostics, artifacts or
    source files.
    """

    def __init__(
        self,
        root_paths: Sequence[str],
        options: Mapping[str, Any],
        host: CompilerHost,
        executable: str,
    ) -> None:
        self.root_paths = [normalize_path(path) for path in root_paths]
        self.options = dict(options)
        self.host = host
        self.executable = executable
        self._sources: dict[str, SourceFile] = {}
        self._diagnostics: list[Diagnostic] = []
        self._artifacts: list[EmittedArtifact] = []
        self._compiled = False
        self._log = logger.bind(executable=executable)

    def get_diagnostics(self) -> list[Diagnostic]:
        self._compile()
        return list(self._diagnostics)

    def emit(self) -> list[EmittedArtifact]:
        self._compile()
        return list(self._artifacts)

    def get_source_file(self, path: str) -> SourceFile | None:
        self._compile()
        return self._sources.get(normalize_path(path))

    def _compile(self) -> None:
        if self._compiled:
            return
        self._compiled = True
        if not self.root_paths:
            return

        self._collect_sources()
        root = self._common_root()

        with tempfile.TemporaryDirectory(prefix="tspipe-") as stage_dir:
            stage = Path(stage_dir)
            self._stage_sources(stage, root)
            self._link_node_modules(stage, root)
            completed = self._run_tsc(stage, root)
            self._diagnostics.extend(self._map_diagnostics(completed.stdout, root))
            self._artifacts = self._collect_outputs(stage / STAGE_OUTPUT_DIR, root)

        self._log.debug(
            "tsc_completed",
            returncode=completed.returncode,
            sources=len(self._sources),
            artifacts=len(self._artifacts),
        )

    def _collect_sources(self) -> None:
        """Read roots and the files they reach through the host."""
        pending = list(self.root_paths)
        while pending:
            path = pending.pop(0)
            if path in self._sources:
                continue
            text = self.host.read_file(path)

            referenced: list[str] = []
            for target in parse_reference_directives(text):
                resolved = resolve_reference(path, target)
                referenced.append(resolved)
                if self.host.file_exists(resolved):
                    pending.append(resolved)
                else:
                    line = _find_line(text, target)
                    self._diagnostics.append(
                        Diagnostic(
                            file=path,
                            line=line,
                            column=1 if line else None,
                            code=FILE_NOT_FOUND_CODE,
                            message=f"File '{resolved}' not found.",
                        )
                    )

            for specifier in parse_relative_imports(text):
                for candidate in module_candidates(path, specifier):
                    if self.host.file_exists(candidate):
                        pending.append(candidate)
                        break

            self._sources[path] = SourceFile(
                path=path,
                text=text,
                referenced_files=tuple(referenced),
            )

    def _common_root(self) -> str:
        directories = [posixpath.dirname(path) for path in self._sources]
        try:
            return posixpath.commonpath(directories)
        except ValueError as exc:
            raise ToolchainError(
                "Cannot mix absolute and relative source paths",
                executable=self.executable,
                internal_details=str(exc),
            ) from exc

    def _stage_sources(self, stage: Path, root: str) -> None:
        source_dir = stage / STAGE_SOURCE_DIR
        for path, source in self._sources.items():
            target = source_dir / posixpath.relpath(path, root)
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(source.text, encoding="utf-8")

    def _link_node_modules(self, stage: Path, root: str) -> None:
        """Expose the nearest node_modules above the sources to tsc."""
        current = root
        while True:
            candidate = posixpath.join(current, "node_modules")
            if self.host.directory_exists(candidate) and os.path.isdir(candidate):
                try:
                    os.symlink(candidate, stage / "node_modules", target_is_directory=True)
                except OSError as exc:
                    raise ToolchainError(
                        f"Cannot link {candidate} for the TypeScript compiler",
                        executable=self.executable,
                        internal_details=str(exc),
                    ) from exc
                self._log.debug("node_modules_linked", path=candidate)
                return
            parent = posixpath.dirname(current)
            if parent == current or not parent:
                return
            current = parent

    def _run_tsc(self, stage: Path, root: str) -> subprocess.CompletedProcess[str]:
        source_dir = stage / STAGE_SOURCE_DIR
        roots = [
            str(source_dir / posixpath.relpath(path, root))
            for path in self.root_paths
            if path in self._sources
        ]
        command = [
            self.executable,
            *options_to_arguments(self.options),
            "--pretty",
            "false",
            "--sourceMap",
            "--outDir",
            str(stage / STAGE_OUTPUT_DIR),
            "--rootDir",
            str(source_dir),
            *roots,
        ]
        self._log.debug("tsc_invoked", roots=len(roots))

        try:
            completed = subprocess.run(
                command,
                cwd=stage,
                capture_output=True,
                text=True,
                check=False,
            )
        except FileNotFoundError as exc:
            raise ToolchainError(
                f"TypeScript compiler not found: {self.executable}",
                executable=self.executable,
                internal_details=str(exc),
            ) from exc

        if completed.returncode not in TSC_EXIT_CODES:
            raise ToolchainError(
                f"TypeScript compiler failed with exit status {completed.returncode}",
                executable=self.executable,
                returncode=completed.returncode,
                internal_details=completed.stderr or completed.stdout,
            )
        return completed

    def _map_diagnostics(self, output: str, root: str) -> list[Diagnostic]:
        prefix = STAGE_SOURCE_DIR + "/"
        mapped: list[Diagnostic] = []
        for diagnostic in parse_diagnostics(output):
            path = diagnostic.file
            if path is not None:
                if posixpath.isabs(path):
                    path = posixpath.relpath(path, "/")
                    index = path.find(prefix)
                    path = path[index:] if index >= 0 else diagnostic.file
                if path is not None and path.startswith(prefix):
                    path = posixpath.join(root, path[len(prefix) :])
                diagnostic = diagnostic.model_copy(update={"file": path})
            mapped.append(diagnostic)
        return mapped

    def _collect_outputs(self, out_dir: Path, root: str) -> list[EmittedArtifact]:
        artifacts: list[EmittedArtifact] = []
        if not out_dir.is_dir():
            return artifacts

        for emitted in sorted(out_dir.rglob("*")):
            if not emitted.is_file():
                continue
            relative = emitted.relative_to(out_dir).as_posix()
            kind = output_kind(relative)
            if kind is None:
                continue
            path = posixpath.join(root, relative)
            try:
                content = emitted.read_text(encoding="utf-8")
                if kind is OutputKind.SOURCE_MAP:
                    content = self._rebase_source_map(content, path)
            except (OSError, ValueError) as exc:
                raise ToolchainError(
                    f"Cannot read compiler output {relative}",
                    executable=self.executable,
                    internal_details=str(exc),
                ) from exc
            artifacts.append(EmittedArtifact(path=path, content=content, kind=kind))

        order = {path: index for index, path in enumerate(self._sources)}
        artifacts.sort(
            key=lambda a: (order.get(a.original_path, len(order)), _KIND_ORDER[a.kind], a.path)
        )
        return artifacts

    @staticmethod
    def _rebase_source_map(content: str, map_path: str) -> str:
        """Point ``sources`` at the original file, relative to the JavaScript."""
        source_map = json.loads(content)
        javascript = map_path[: -len(".map")]
        directory = posixpath.dirname(javascript)
        source_map["file"] = posixpath.basename(javascript)
        source_map["sources"] = [posixpath.relpath(original_name(javascript), directory)]
        source_map.pop("sourceRoot", None)
        return json.dumps(source_map)


class TscToolchain:
    """Toolchain creating TscProgram instances.

    Args:
        executable: Name or path of the ``tsc`` executable.

    Example:
        >>> toolchain = TscToolchain()
        >>> program = toolchain.create_program(["/p/src/app.ts"], {"target": "ES2019"}, host)
        >>> program.get_diagnostics()
        []
    """

    def __init__(self, executable: str = DEFAULT_EXECUTABLE) -> None:
        self.executable = executable

    def resolve_executable(self) -> str:
        """Locate the executable on PATH.

        Raises:
            ToolchainError: If the executable cannot be found.
        """
        found = shutil.which(self.executable)
        if found is None:
            raise ToolchainError(
                f"TypeScript compiler not found: {self.executable}",
                executable=self.executable,
            )
        return found

    def create_program(
        self,
        root_paths: Sequence[str],
        options: Mapping[str, Any],
        host: CompilerHost,
    ) -> TscProgram:
        roots = [path for path in root_paths if not is_declaration_file(path)]
        declarations = [path for path in root_paths if is_declaration_file(path)]
        return TscProgram([*roots, *declarations], options, host, self.resolve_executable())


__all__ = [
    "DEFAULT_EXECUTABLE",
    "TscProgram",
    "TscToolchain",
    "options_to_arguments",
    "parse_diagnostics",
]
