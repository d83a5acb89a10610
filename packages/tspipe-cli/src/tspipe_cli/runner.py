"""Build cycles for the command line: files on disk in, files on disk out.

A BuildSession owns one Project for the lifetime of a command, so repeated
builds (``tspipe watch``) replay the previous output when the sources did not
change. Output is written by DirectorySink: JavaScript with an external
``.map`` file and a ``sourceMappingURL`` comment, declarations as they are.
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import structlog

from tspipe_cli.output import diagnostic, error, info, success, warning
from tspipe_core.config import BuildConfig
from tspipe_core.errors import TspipeError, TypeScriptError
from tspipe_core.models import BuildReport, PipelineFile
from tspipe_core.project import Project
from tspipe_core.toolchain import Toolchain
from tspipe_core.tsc import TscToolchain

logger = structlog.get_logger(__name__)

EXCLUDED_DIRECTORIES = frozenset({"node_modules"})


def create_toolchain(config: BuildConfig) -> Toolchain:
    """Toolchain used by the CLI."""
    return TscToolchain(config.tsc)


def collect_sources(config: BuildConfig, root: Path) -> list[Path]:
    """Files matching the configured source patterns, in pattern order.

    Args:
        config: Build configuration.
        root: Directory the patterns are relative to.

    Returns:
        Unique ``.ts`` files, skipping anything under node_modules.
    """
    found: dict[Path, None] = {}
    for pattern in config.sources:
        for path in sorted(root.glob(pattern)):
            if not path.is_file() or path.suffix != ".ts":
                continue
            if EXCLUDED_DIRECTORIES.intersection(path.relative_to(root).parts):
                continue
            found.setdefault(path, None)
    return list(found)


def read_sources(paths: list[Path], root: Path, base: Path) -> list[PipelineFile]:
    return [
        PipelineFile(
            path=path.as_posix(),
            contents=path.read_bytes(),
            cwd=root.as_posix(),
            base=base.as_posix(),
        )
        for path in paths
    ]


class DirectorySink:
    """OutputSink writing files below a directory.

    Files keep their path relative to the pipeline base. A file with a source
    map gets a sibling ``.map`` file and a trailing ``sourceMappingURL``
    comment; the map's ``sources`` are rewritten relative to the written file.

    Example:
        >>> sink = DirectorySink(Path("build"))
        >>> sink.write(file)  # src/app/main.js -> build/app/main.js + main.js.map
    """

    def __init__(self, out_dir: Path) -> None:
        self.out_dir = out_dir
        self.written: list[Path] = []

    def write(self, file: PipelineFile) -> None:
        target = self.out_dir / file.relative
        target.parent.mkdir(parents=True, exist_ok=True)

        contents = file.contents
        if file.source_map is not None:
            map_target = target.with_name(target.name + ".map")
            map_target.write_text(json.dumps(self._rebase(file, target)), encoding="utf-8")
            contents += f"//# sourceMappingURL={map_target.name}\n".encode()
            self.written.append(map_target)

        target.write_bytes(contents)
        self.written.append(target)

    @staticmethod
    def _rebase(file: PipelineFile, target: Path) -> dict[str, Any]:
        source_map = dict(file.source_map or {})
        source_dir = (Path(file.base) / file.relative).parent
        source_map["file"] = target.name
        source_map["sources"] = [
            Path(os.path.relpath(source_dir / source, target.parent)).as_posix()
            for source in source_map.get("sources", [])
        ]
        return source_map

    def finish(self) -> None:
        logger.debug("output_written", out_dir=str(self.out_dir), files=len(self.written))


@dataclass
class BuildResult:
    """Outcome of one CLI build."""

    report: BuildReport
    errors: list[TspipeError] = field(default_factory=list)
    written: list[Path] = field(default_factory=list)

    @property
    def exit_code(self) -> int:
        if self.report.mode == "aborted":
            return 2
        if self.report.errors:
            return 1
        return 0


class BuildSession:
    """One Project reused for every build of a configuration.

    Args:
        config: Build configuration.
        root: Directory containing tspipe.yaml.
        out_dir: Overrides ``config.out_dir``.
        toolchain: Overrides the toolchain from create_toolchain().
    """

    def __init__(
        self,
        config: BuildConfig,
        root: Path,
        *,
        out_dir: str | None = None,
        toolchain: Toolchain | None = None,
    ) -> None:
        self.config = config
        self.root = root
        self.base = root / config.base
        self.out_dir = root / (out_dir or config.out_dir)
        self.declaration_dir = (
            root / config.declaration_dir if config.declaration_dir else self.out_dir
        )
        self.project = Project(config.project, toolchain=toolchain or create_toolchain(config))
        self._log = logger.bind(project=config.name)

    def build(self) -> BuildResult:
        """Collect the sources, run one build cycle and write its output."""
        sources = collect_sources(self.config, self.root)

        self.project.reset()
        for file in read_sources(sources, self.root, self.base):
            self.project.add_file(file)

        errors: list[TspipeError] = []
        js_sink = DirectorySink(self.out_dir)
        declaration_sink = DirectorySink(self.declaration_dir)
        report = self.project.compile(js_sink, declaration_sink, errors.append)

        self._log.info("cli_build_finished", mode=report.mode, errors=report.errors)
        return BuildResult(
            report=report,
            errors=errors,
            written=js_sink.written + declaration_sink.written,
        )


def report_result(result: BuildResult) -> None:
    """Print diagnostics and a one-line summary of a build."""
    for e in result.errors:
        is_error = True
        if isinstance(e, TypeScriptError) and e.diagnostic is not None:
            is_error = e.diagnostic.is_error
        diagnostic(str(e), is_error=is_error)

    report = result.report
    if report.mode == "empty":
        warning("No source files matched")
    elif report.mode == "aborted":
        error("Build aborted")
    elif report.errors:
        error(f"Build finished with {report.errors} error(s)")
    else:
        files = report.javascript_files + report.declaration_files
        verb = "Replayed" if report.mode == "replayed" else "Built"
        success(f"{verb} {files} file(s)")

    if result.written:
        info(f"Wrote {len(result.written)} file(s)")
