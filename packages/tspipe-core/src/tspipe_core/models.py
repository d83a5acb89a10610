"""Data models for tspipe-core.

This module defines the records that flow through a build cycle:
- PipelineFile: File handle exchanged with the build pipeline (input and output)
- InputFile / ExternalFile: Entries of the virtual file store
- Diagnostic: A compiler message, forwarded verbatim
- EmittedArtifact: One file produced by the compiler
- CachedFileOutput / CachedBuildResult: Output retained for replay
- BuildReport: Summary of a finished build cycle

Everything except PipelineFile is immutable once created.
"""

from __future__ import annotations

import posixpath
from collections.abc import Mapping
from enum import Enum
from types import MappingProxyType
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator


class OutputKind(str, Enum):
    """Kind of an emitted artifact."""

    JAVASCRIPT = "javascript"
    SOURCE_MAP = "source_map"
    DECLARATION = "declaration"


class PipelineFile(BaseModel):
    """File object exchanged with the build pipeline.

    Mirrors the shape pipelines pass around: an absolute ``path``, raw
    ``contents``, the working directory and base path used to reconstruct
    output locations, and an optional source map carried from earlier
    pipeline steps.

    Attributes:
        path: File path (any slash style).
        contents: Raw file contents.
        cwd: Working directory of the pipeline.
        base: Base directory; ``relative`` is computed against it.
        source_map: Optional source map (version 3 JSON object).

    Example:
        >>> f = PipelineFile(path="/p/src/a.ts", contents=b"let a = 1;", cwd="/p", base="/p/src")
        >>> f.relative
        'a.ts'
    """

    model_config = ConfigDict(extra="forbid")

    path: str = Field(..., min_length=1, description="File path")
    contents: bytes = Field(default=b"", description="Raw file contents")
    cwd: str = Field(default="", description="Pipeline working directory")
    base: str = Field(default="", description="Base directory for relative paths")
    source_map: dict[str, Any] | None = Field(
        default=None,
        description="Source map attached to this file",
    )

    @property
    def relative(self) -> str:
        """Path relative to ``base``, with forward slashes."""
        path = self.path.replace("\\", "/")
        base = self.base.replace("\\", "/")
        if not base:
            return path
        return posixpath.relpath(path, base)

    @property
    def text(self) -> str:
        return self.contents.decode("utf-8")


class InputFile(BaseModel):
    """A file supplied by the pipeline for the current build."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    path: str = Field(..., min_length=1, description="Normalized path")
    content: str = Field(..., description="Text content")
    file: PipelineFile = Field(..., description="Originating pipeline file")


class ExternalFile(BaseModel):
    """A file resolved by the compiler outside the input set."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    path: str = Field(..., min_length=1, description="Normalized path")
    content: str = Field(..., description="Text content")


class Diagnostic(BaseModel):
    """A compiler diagnostic.

    Attributes:
        file: Originating file path, or None for global diagnostics.
        line: 1-based line number (None for global diagnostics).
        column: 1-based column number (None for global diagnostics).
        code: Numeric diagnostic code (e.g. 2322 for TS2322).
        category: Severity category.
        message: Message text.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    file: str | None = Field(default=None, description="Originating file path")
    line: int | None = Field(default=None, ge=1, description="1-based line")
    column: int | None = Field(default=None, ge=1, description="1-based column")
    code: int = Field(..., ge=0, description="Diagnostic code")
    category: Literal["error", "warning", "suggestion", "message"] = Field(
        default="error",
        description="Diagnostic severity",
    )
    message: str = Field(..., description="Message text")

    @property
    def is_error(self) -> bool:
        return self.category == "error"


class EmittedArtifact(BaseModel):
    """One file emitted by the compiler.

    Example:
        >>> EmittedArtifact(path="src/a.js", content="", kind=OutputKind.JAVASCRIPT).original_path
        'src/a.ts'
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    path: str = Field(..., min_length=1, description="Output path")
    content: str = Field(..., description="Output content")
    kind: OutputKind = Field(..., description="Artifact kind")

    @property
    def original_path(self) -> str:
        """Source path this artifact was emitted for."""
        from tspipe_core.paths import original_name

        return original_name(self.path)


class CachedFileOutput(BaseModel):
    """Output of one source file, as it was written to the sinks."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    javascript: EmittedArtifact | None = None
    source_map: EmittedArtifact | None = None
    declaration: EmittedArtifact | None = None


class CachedBuildResult(BaseModel):
    """Diagnostics and output of one compilation, retained for replay.

    ``files`` preserves emission order, so a replay writes files in the
    same order as the build that produced them. It is a read-only view.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    diagnostics: tuple[Diagnostic, ...] = Field(default=())
    files: Mapping[str, CachedFileOutput] = Field(default_factory=dict, validate_default=True)

    @field_validator("files", mode="after")
    @classmethod
    def freeze_files(cls, v: Mapping[str, CachedFileOutput]) -> Mapping[str, CachedFileOutput]:
        return MappingProxyType(dict(v))


class BuildReport(BaseModel):
    """Summary of one build cycle."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    mode: Literal["empty", "replayed", "compiled", "aborted"]
    diagnostics: int = 0
    errors: int = 0
    javascript_files: int = 0
    declaration_files: int = 0

    @property
    def succeeded(self) -> bool:
        return self.mode != "aborted" and self.errors == 0
