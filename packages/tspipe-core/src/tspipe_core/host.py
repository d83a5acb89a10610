"""Compiler host: the file resolution capability handed to the toolchain.

The compiler asks the host whether files and directories exist and for file
contents, for every path referenced transitively from the root files. The
host answers from the virtual file store first and, when external resolution
is enabled, falls back to a FileSystem capability, memoizing what it reads as
external files.

Architecture:
- CompilerHost protocol: the contract a toolchain relies on
- FileSystem protocol: read-only access to files outside the input set
- LocalFileSystem: production FileSystem backed by pathlib
- MemoryFileSystem: fully in-memory FileSystem for tests and closed file sets
- Host: CompilerHost implementation over a VirtualFileStore
"""

from __future__ import annotations

from collections.abc import Mapping
from pathlib import Path
from typing import Protocol, runtime_checkable

import structlog

from tspipe_core.errors import ResolutionError
from tspipe_core.paths import normalize_path
from tspipe_core.store import VirtualFileStore

logger = structlog.get_logger(__name__)


@runtime_checkable
class CompilerHost(Protocol):
    """File resolution contract required by a compiler toolchain."""

    def file_exists(self, path: str) -> bool:
        """Return True if ``path`` names a readable file."""
        ...

    def read_file(self, path: str) -> str:
        """Return the text of ``path``.

        Raises:
            ResolutionError: If the file cannot be read.
        """
        ...

    def directory_exists(self, path: str) -> bool:
        """Return True if ``path`` names a directory."""
        ...

    def get_current_directory(self) -> str:
        """Return the directory relative paths are resolved against."""
        ...


@runtime_checkable
class FileSystem(Protocol):
    """Read-only file system access for externally resolved files."""

    def is_file(self, path: str) -> bool: ...

    def is_dir(self, path: str) -> bool: ...

    def read_text(self, path: str) -> str: ...


class LocalFileSystem:
    """FileSystem backed by the real file system."""

    def is_file(self, path: str) -> bool:
        return Path(path).is_file()

    def is_dir(self, path: str) -> bool:
        return Path(path).is_dir()

    def read_text(self, path: str) -> str:
        return Path(path).read_text(encoding="utf-8")


class MemoryFileSystem:
    """FileSystem over a fixed mapping of path to content.

    Directories are implied by the file paths.

    Example:
        >>> fs = MemoryFileSystem({"/lib/util.d.ts": "declare const x: number;"})
        >>> fs.is_dir("/lib")
        True
    """

    def __init__(self, files: Mapping[str, str] | None = None) -> None:
        self.files: dict[str, str] = {
            normalize_path(path): content for path, content in (files or {}).items()
        }
        self.reads: list[str] = []

    def is_file(self, path: str) -> bool:
        return normalize_path(path) in self.files

    def is_dir(self, path: str) -> bool:
        prefix = normalize_path(path).rstrip("/") + "/"
        return any(name.startswith(prefix) for name in self.files)

    def read_text(self, path: str) -> str:
        path = normalize_path(path)
        self.reads.append(path)
        try:
            return self.files[path]
        except KeyError:
            raise FileNotFoundError(path) from None


class Host:
    """CompilerHost backed by a VirtualFileStore.

    Args:
        store: Input and external files of the current build.
        file_system: Capability used for external resolution.
        current_directory: Directory used to resolve relative paths.
        external_resolve: If False, never probe the file system; every file
            the compiler needs must be in the store.

    Example:
        >>> host = Host(store, MemoryFileSystem(), "/project", external_resolve=False)
        >>> host.file_exists("/project/src/app.ts")
        True
    """

    def __init__(
        self,
        store: VirtualFileStore,
        file_system: FileSystem,
        current_directory: str = "",
        *,
        external_resolve: bool = True,
    ) -> None:
        self.store = store
        self.file_system = file_system
        self.current_directory = normalize_path(current_directory)
        self.external_resolve = external_resolve
        self._log = logger.bind(external_resolve=external_resolve)

    def get_current_directory(self) -> str:
        return self.current_directory

    def file_exists(self, path: str) -> bool:
        path = normalize_path(path)
        if path in self.store:
            return True
        if not self.external_resolve:
            return False
        return self.file_system.is_file(path)

    def read_file(self, path: str) -> str:
        path = normalize_path(path)
        entry = self.store.get(path)
        if entry is not None:
            return entry.content

        if not self.external_resolve:
            raise ResolutionError(path)

        try:
            content = self.file_system.read_text(path)
        except (OSError, UnicodeDecodeError) as exc:
            raise ResolutionError(path, internal_details=str(exc)) from exc

        self._log.debug("external_file_resolved", path=path)
        return self.store.add_external(path, content).content

    def directory_exists(self, path: str) -> bool:
        prefix = normalize_path(path)
        if not prefix.endswith("/"):
            prefix += "/"

        for name in self.store.known_paths():
            if len(name) > len(prefix) and name.startswith(prefix):
                return True

        if not self.external_resolve:
            return False
        return self.file_system.is_dir(path)
