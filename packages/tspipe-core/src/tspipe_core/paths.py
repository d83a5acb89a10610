"""Path helpers shared by the file store, host and emission stages."""

from __future__ import annotations

import posixpath
import re

from tspipe_core.models import OutputKind

SOURCE_EXTENSION = ".ts"

# Longest suffix first so ".js.map" wins over ".js"
OUTPUT_SUFFIXES: tuple[tuple[str, OutputKind], ...] = (
    (".js.map", OutputKind.SOURCE_MAP),
    (".d.ts", OutputKind.DECLARATION),
    (".js", OutputKind.JAVASCRIPT),
)

_OUTPUT_SUFFIX_RE = re.compile(r"(\.d\.ts|\.js\.map|\.js)$")


def normalize_path(path: str) -> str:
    """Switch a path to forward slashes, preserving case.

    ``a\\b\\c.ts`` and ``a/b/c.ts`` name the same file.
    """
    return path.replace("\\", "/")


def original_name(path: str) -> str:
    """Map an emitted file path back to the source path it was produced from.

    Example:
        >>> original_name("src/app.js.map")
        'src/app.ts'
    """
    return _OUTPUT_SUFFIX_RE.sub(SOURCE_EXTENSION, normalize_path(path))


def output_kind(path: str) -> OutputKind | None:
    """Classify an emitted file by suffix, or None for unknown outputs."""
    for suffix, kind in OUTPUT_SUFFIXES:
        if path.endswith(suffix):
            return kind
    return None


def output_path(original: str, kind: OutputKind) -> str:
    """Build the emitted path of ``kind`` for a source path."""
    stem = original[: -len(SOURCE_EXTENSION)] if original.endswith(SOURCE_EXTENSION) else original
    for suffix, suffix_kind in OUTPUT_SUFFIXES:
        if suffix_kind is kind:
            return stem + suffix
    raise ValueError(f"Unknown output kind: {kind}")


def is_declaration_file(path: str) -> bool:
    return path.endswith(".d.ts")


def strip_source_map_comment(content: str) -> str:
    """Remove the source map comment the compiler appends to emitted code.

    The comment is always the last line, and that line itself ends with a
    newline, so the cut point is the newline before the final one.

    Example:
        >>> strip_source_map_comment("var a;\\n//# sourceMappingURL=a.js.map\\n")
        'var a;\\n'
    """
    index = content.rfind("\n", 0, max(len(content) - 1, 0))
    if index < 0:
        return "\n"
    return content[:index] + "\n"


def relative_to(path: str, start: str) -> str:
    """POSIX relative path, falling back to ``path`` when ``start`` is empty."""
    if not start:
        return path
    return posixpath.relpath(normalize_path(path), normalize_path(start))
