"""tspipe-core: Incremental TypeScript compilation for build pipelines.

This package provides:
- Project: Reusable build orchestrator (replay, change detection, emission)
- ProjectSettings / BuildConfig: Pydantic configuration models
- VirtualFileStore / Host: In-memory file store and compiler host
- TscToolchain: Toolchain driving the ``tsc`` executable
- Source map attachment and reference-directive ordering
"""

from __future__ import annotations

__version__ = "0.1.0"

# Orchestration
from tspipe_core.cache import CacheBuilder, replay
from tspipe_core.changes import ChangeDetector
from tspipe_core.compiler import BuildContext, invoke

# Configuration
from tspipe_core.config import (
    CONFIG_FILE_NAME,
    BuildConfig,
    FilterSettings,
    ProjectSettings,
)
from tspipe_core.diagnostics import ErrorCallback, format_diagnostic
from tspipe_core.emission import Emitter, ListSink, OutputSink

# Error types
from tspipe_core.errors import (
    ConfigurationError,
    ResolutionError,
    ToolchainError,
    TspipeError,
    TypeScriptError,
)
from tspipe_core.host import CompilerHost, FileSystem, Host, LocalFileSystem, MemoryFileSystem

# Data models
from tspipe_core.models import (
    BuildReport,
    CachedBuildResult,
    CachedFileOutput,
    Diagnostic,
    EmittedArtifact,
    OutputKind,
    PipelineFile,
)
from tspipe_core.observability import configure_logging
from tspipe_core.project import Project
from tspipe_core.references import ReferenceGraph, order_by_references
from tspipe_core.sourcemaps import apply_source_map
from tspipe_core.store import VirtualFileStore
from tspipe_core.toolchain import Program, SourceFile, Toolchain
from tspipe_core.tsc import TscToolchain

__all__ = [
    "__version__",
    # Orchestration
    "Project",
    "BuildContext",
    "invoke",
    "CacheBuilder",
    "replay",
    "ChangeDetector",
    "Emitter",
    "OutputSink",
    "ListSink",
    "ErrorCallback",
    "format_diagnostic",
    "ReferenceGraph",
    "order_by_references",
    "apply_source_map",
    # Files
    "VirtualFileStore",
    "CompilerHost",
    "FileSystem",
    "Host",
    "LocalFileSystem",
    "MemoryFileSystem",
    # Toolchain
    "Toolchain",
    "Program",
    "SourceFile",
    "TscToolchain",
    # Configuration
    "CONFIG_FILE_NAME",
    "BuildConfig",
    "FilterSettings",
    "ProjectSettings",
    "configure_logging",
    # Errors
    "TspipeError",
    "ConfigurationError",
    "ResolutionError",
    "ToolchainError",
    "TypeScriptError",
    # Models
    "PipelineFile",
    "Diagnostic",
    "EmittedArtifact",
    "OutputKind",
    "CachedFileOutput",
    "CachedBuildResult",
    "BuildReport",
]
