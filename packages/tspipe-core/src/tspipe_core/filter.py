"""Root file filter applied before the compiler is invoked."""

from __future__ import annotations

from fnmatch import fnmatch

import structlog

from tspipe_core.config import FilterSettings
from tspipe_core.paths import normalize_path, relative_to
from tspipe_core.references import parse_reference_directives, resolve_reference
from tspipe_core.store import VirtualFileStore

logger = structlog.get_logger(__name__)


class Filter:
    """Decides which input files are compiler roots.

    A file passes when it matches every configured criterion:
    - ``include``: one of the glob patterns matches its normalized path or
      its path relative to the pipeline base
    - ``referenced_from``: a reference directive of one of the named files
      points at it

    Example:
        >>> _filter = Filter(store, FilterSettings(include=["*/lib/*.ts"]))
        >>> [name for name in store.file_names() if _filter.match(name)]
        ['/p/lib/util.ts']
    """

    def __init__(self, store: VirtualFileStore, settings: FilterSettings) -> None:
        self.store = store
        self.settings = settings
        self._referenced: set[str] | None = None
        if settings.referenced_from:
            self._referenced = self._collect_referenced(settings.referenced_from)

    def _collect_referenced(self, names: list[str]) -> set[str]:
        wanted = [normalize_path(name) for name in names]
        referenced: set[str] = set()
        for path, entry in self.store.inputs.items():
            aliases = (path, entry.file.relative)
            if not any(
                name in aliases or path.endswith("/" + name) for name in wanted
            ):
                continue
            for target in parse_reference_directives(entry.content):
                referenced.add(resolve_reference(path, target))
        logger.debug("filter_referenced_files", sources=wanted, referenced=sorted(referenced))
        return referenced

    def match(self, path: str) -> bool:
        path = normalize_path(path)
        if self.settings.include and not self._matches_include(path):
            return False
        if self._referenced is not None and path not in self._referenced:
            return False
        return True

    def _matches_include(self, path: str) -> bool:
        candidates = [path]
        entry = self.store.get_input(path)
        if entry is not None:
            if entry.file.base:
                candidates.append(entry.file.relative)
            if entry.file.cwd:
                candidates.append(relative_to(path, entry.file.cwd))
        return any(
            fnmatch(candidate, pattern)
            for candidate in candidates
            for pattern in self.settings.include
        )
