"""Virtual file store backing the compiler host.

Holds two disjoint maps keyed by normalized path:
- input files: supplied by the pipeline for the current build
- external files: resolved by the compiler outside the input set

A path is never present in both maps.
"""

from __future__ import annotations

from collections.abc import Iterator

import structlog

from tspipe_core.models import ExternalFile, InputFile, PipelineFile
from tspipe_core.paths import normalize_path

logger = structlog.get_logger(__name__)


class VirtualFileStore:
    """In-memory mapping from normalized path to file content.

    Example:
        >>> store = VirtualFileStore()
        >>> store.add(PipelineFile(path="src\\\\a.ts", contents=b"let a = 1;"))
        >>> store.get("src/a.ts").content
        'let a = 1;'
    """

    def __init__(self) -> None:
        self._input: dict[str, InputFile] = {}
        self._external: dict[str, ExternalFile] = {}

    def add(self, file: PipelineFile) -> InputFile:
        """Register or overwrite an input file.

        Args:
            file: Pipeline file; its path is normalized first.

        Returns:
            The stored InputFile.
        """
        path = normalize_path(file.path)
        # Undecodable bytes become U+FFFD
        content = file.contents.decode("utf-8", errors="replace")
        entry = InputFile(path=path, content=content, file=file)
        self._input[path] = entry
        self._external.pop(path, None)
        return entry

    def add_external(self, path: str, content: str) -> ExternalFile:
        """Memoize a file resolved outside the input set."""
        path = normalize_path(path)
        if path in self._input:
            raise ValueError(f"{path} is an input file")
        entry = ExternalFile(path=path, content=content)
        self._external[path] = entry
        return entry

    def reset(self) -> None:
        """Forget all input and external files."""
        logger.debug("file_store_reset", inputs=len(self._input), externals=len(self._external))
        self._input.clear()
        self._external.clear()

    def get(self, path: str) -> InputFile | ExternalFile | None:
        path = normalize_path(path)
        return self._input.get(path) or self._external.get(path)

    def get_input(self, path: str) -> InputFile | None:
        return self._input.get(normalize_path(path))

    def is_input(self, path: str) -> bool:
        return normalize_path(path) in self._input

    def file_names(self) -> list[str]:
        """Normalized paths of all input files, in insertion order."""
        return list(self._input)

    @property
    def inputs(self) -> dict[str, InputFile]:
        return dict(self._input)

    @property
    def externals(self) -> dict[str, ExternalFile]:
        return dict(self._external)

    @property
    def first_source_file(self) -> InputFile | None:
        return next(iter(self._input.values()), None)

    def known_paths(self) -> Iterator[str]:
        yield from self._input
        yield from self._external

    def __len__(self) -> int:
        return len(self._input)

    def __contains__(self, path: object) -> bool:
        return isinstance(path, str) and self.get(path) is not None
