"""Reference directives and dependency-ordered emission.

Source files can declare dependencies with triple-slash directives::

    /// <reference path="../lib/util.ts" />

When output is bundled into a single file, every file has to be emitted after
the files it references. This module parses the directives, builds the
adjacency of original paths, and computes the emission order with a
depth-first traversal that tolerates cycles.
"""

from __future__ import annotations

import posixpath
import re
from collections.abc import Iterable, Iterator, Mapping, Sequence

from tspipe_core.paths import normalize_path

_REFERENCE_RE = re.compile(r"""^///\s*<reference\s+path\s*=\s*(['"])(?P<path>.+?)\1""")

# Relative module specifiers only; bare specifiers are left to the toolchain
_IMPORT_RES = (
    re.compile(r"""\bfrom\s*(['"])(?P<specifier>\.{1,2}/[^'"]+)\1"""),
    re.compile(r"""\bimport\s*(['"])(?P<specifier>\.{1,2}/[^'"]+)\1"""),
    re.compile(r"""\brequire\(\s*(['"])(?P<specifier>\.{1,2}/[^'"]+)\1\s*\)"""),
)


def parse_reference_directives(text: str) -> list[str]:
    """Return the targets of reference directives in a file header.

    Directives only count before the first line of code, like the compiler
    treats them.

    Example:
        >>> parse_reference_directives('/// <reference path="b.ts" />\\nlet a;')
        ['b.ts']
    """
    targets: list[str] = []
    in_block_comment = False
    for raw in text.splitlines():
        line = raw.strip()
        if in_block_comment:
            if "*/" in line:
                in_block_comment = False
            continue
        if not line:
            continue
        if line.startswith("///"):
            match = _REFERENCE_RE.match(line)
            if match:
                targets.append(match.group("path"))
            continue
        if line.startswith("//"):
            continue
        if line.startswith("/*"):
            in_block_comment = "*/" not in line[2:]
            continue
        break
    return targets


def parse_relative_imports(text: str) -> list[str]:
    """Return relative module specifiers (``./x``, ``../y``) used by a file."""
    specifiers: list[str] = []
    for pattern in _IMPORT_RES:
        for match in pattern.finditer(text):
            specifier = match.group("specifier")
            if specifier not in specifiers:
                specifiers.append(specifier)
    return specifiers


def resolve_reference(from_path: str, target: str) -> str:
    """Resolve a directive target against the referencing file's directory."""
    target = normalize_path(target)
    if posixpath.isabs(target) or re.match(r"^[A-Za-z]:/", target):
        return posixpath.normpath(target)
    directory = posixpath.dirname(normalize_path(from_path))
    return posixpath.normpath(posixpath.join(directory, target))


def module_candidates(from_path: str, specifier: str) -> list[str]:
    """Candidate files for a relative module specifier, in lookup order."""
    base = resolve_reference(from_path, specifier)
    if base.endswith((".ts", ".tsx")):
        return [base]
    if base.endswith(".js"):
        base = base[:-3]
    return [base + ".ts", base + ".tsx", base + ".d.ts", base + "/index.ts", base + "/index.d.ts"]


class ReferenceGraph:
    """Adjacency of original path to the original paths it references.

    Example:
        >>> graph = ReferenceGraph({"a.ts": ["b.ts"], "b.ts": []})
        >>> graph.references("a.ts")
        ['b.ts']
    """

    def __init__(self, edges: Mapping[str, Sequence[str]] | None = None) -> None:
        self._edges: dict[str, list[str]] = {}
        for source, targets in (edges or {}).items():
            for target in targets:
                self.add_edge(source, target)
            self._edges.setdefault(normalize_path(source), [])

    def add_edge(self, source: str, target: str) -> None:
        targets = self._edges.setdefault(normalize_path(source), [])
        target = normalize_path(target)
        if target not in targets:
            targets.append(target)

    def references(self, path: str) -> list[str]:
        return list(self._edges.get(normalize_path(path), ()))

    def __contains__(self, path: object) -> bool:
        return isinstance(path, str) and normalize_path(path) in self._edges

    def __iter__(self) -> Iterator[str]:
        return iter(self._edges)

    @classmethod
    def from_sources(cls, sources: Mapping[str, str]) -> ReferenceGraph:
        """Build the graph from file contents keyed by path."""
        graph = cls()
        for path, text in sources.items():
            graph._edges.setdefault(normalize_path(path), [])
            for target in parse_reference_directives(text):
                graph.add_edge(path, resolve_reference(path, target))
        return graph


def order_by_references(
    paths: Iterable[str],
    graph: ReferenceGraph,
    done: set[str] | None = None,
) -> list[str]:
    """Order ``paths`` so that referenced files precede the files referencing them.

    Depth-first: a file is marked done when the traversal enters it, its
    references are visited in directive order, and it is emitted once they
    are. A reference to a file that is already done, including one still in
    progress further up the traversal, is not followed again, which is what
    makes cyclic references terminate. References to paths outside ``paths``
    are skipped.

    Args:
        paths: Files to emit, in their natural order.
        graph: Reference adjacency.
        done: Paths already emitted; updated in place.

    Returns:
        Each of ``paths`` (not already in ``done``) exactly once.

    Example:
        >>> graph = ReferenceGraph({"a.ts": ["b.ts"], "b.ts": ["c.ts"]})
        >>> order_by_references(["a.ts", "b.ts", "c.ts"], graph)
        ['c.ts', 'b.ts', 'a.ts']
    """
    candidates = [normalize_path(path) for path in paths]
    emittable = set(candidates)
    done = set() if done is None else done
    ordered: list[str] = []

    for root in candidates:
        if root in done:
            continue
        done.add(root)
        stack: list[tuple[str, Iterator[str]]] = [(root, iter(graph.references(root)))]
        while stack:
            current, pending = stack[-1]
            for target in pending:
                if target in emittable and target not in done:
                    done.add(target)
                    stack.append((target, iter(graph.references(target))))
                    break
            else:
                stack.pop()
                ordered.append(current)

    return ordered
