"""Source map attachment for emitted JavaScript.

The compiler writes a source map per file. Instead of keeping the
``//# sourceMappingURL`` comment it appends, the map object is attached to the
output PipelineFile so later pipeline steps (and the final writer) own the
reference. If the input file already carried a map from an earlier step, the
compiler's map is composed through it so positions point at the true
originals.

Mappings use the Source Map v3 encoding: lines separated by ``;``, segments by
``,``, each segment a run of Base64 VLQ numbers relative to the previous one.
"""

from __future__ import annotations

import bisect
import json
import posixpath
from typing import Any

from tspipe_core.models import PipelineFile
from tspipe_core.paths import normalize_path

_BASE64 = "ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789+/"
_BASE64_VALUES = {char: index for index, char in enumerate(_BASE64)}

_VLQ_SHIFT = 5
_VLQ_CONTINUATION = 1 << _VLQ_SHIFT
_VLQ_MASK = _VLQ_CONTINUATION - 1

# A decoded segment: [generated column, source index, source line,
# source column, name index]; only the first field is mandatory.
Segment = list[int]


def encode_vlq(value: int) -> str:
    """Encode one signed integer as Base64 VLQ.

    Example:
        >>> encode_vlq(16)
        'gB'
    """
    vlq = (-value << 1) | 1 if value < 0 else value << 1
    encoded = ""
    while True:
        digit = vlq & _VLQ_MASK
        vlq >>= _VLQ_SHIFT
        if vlq:
            digit |= _VLQ_CONTINUATION
        encoded += _BASE64[digit]
        if not vlq:
            return encoded


def decode_vlq(segment: str) -> list[int]:
    """Decode a run of Base64 VLQ numbers.

    Raises:
        ValueError: On characters outside the Base64 alphabet or a truncated number.
    """
    values: list[int] = []
    shift = 0
    value = 0
    for char in segment:
        try:
            digit = _BASE64_VALUES[char]
        except KeyError:
            raise ValueError(f"Invalid VLQ character: {char!r}") from None
        value += (digit & _VLQ_MASK) << shift
        if digit & _VLQ_CONTINUATION:
            shift += _VLQ_SHIFT
            continue
        values.append(-(value >> 1) if value & 1 else value >> 1)
        shift = 0
        value = 0
    if shift:
        raise ValueError("Truncated VLQ sequence")
    return values


def decode_mappings(mappings: str) -> list[list[Segment]]:
    """Decode a ``mappings`` string into absolute segments per generated line."""
    lines: list[list[Segment]] = []
    source = source_line = source_column = name = 0
    for line_text in mappings.split(";"):
        column = 0
        line: list[Segment] = []
        for raw in line_text.split(","):
            if not raw:
                continue
            fields = decode_vlq(raw)
            column += fields[0]
            segment = [column]
            if len(fields) >= 4:
                source += fields[1]
                source_line += fields[2]
                source_column += fields[3]
                segment += [source, source_line, source_column]
                if len(fields) >= 5:
                    name += fields[4]
                    segment.append(name)
            line.append(segment)
        lines.append(line)
    return lines


def encode_mappings(lines: list[list[Segment]]) -> str:
    """Encode absolute segments back into a ``mappings`` string."""
    encoded_lines: list[str] = []
    source = source_line = source_column = name = 0
    for line in lines:
        column = 0
        encoded: list[str] = []
        for segment in line:
            parts = [encode_vlq(segment[0] - column)]
            column = segment[0]
            if len(segment) >= 4:
                parts += [
                    encode_vlq(segment[1] - source),
                    encode_vlq(segment[2] - source_line),
                    encode_vlq(segment[3] - source_column),
                ]
                source, source_line, source_column = segment[1], segment[2], segment[3]
                if len(segment) >= 5:
                    parts.append(encode_vlq(segment[4] - name))
                    name = segment[4]
            encoded.append("".join(parts))
        encoded_lines.append(",".join(encoded))
    return ";".join(encoded_lines)


def parse_source_map(source_map: str | dict[str, Any]) -> dict[str, Any]:
    """Return a copy of a source map given as JSON text or object."""
    if isinstance(source_map, str):
        return json.loads(source_map)
    return json.loads(json.dumps(source_map))


class _Lookup:
    """Greatest-lower-bound position lookup in a decoded source map."""

    def __init__(self, source_map: dict[str, Any]) -> None:
        self.sources: list[str] = list(source_map.get("sources", []))
        self.names: list[str] = list(source_map.get("names", []))
        self.contents: list[str | None] = list(source_map.get("sourcesContent") or [])
        root = source_map.get("sourceRoot") or ""
        if root:
            self.sources = [posixpath.join(root, source) for source in self.sources]
        self.lines = decode_mappings(source_map.get("mappings", ""))
        self.columns = [[segment[0] for segment in line] for line in self.lines]

    def find(self, line: int, column: int) -> Segment | None:
        if line >= len(self.lines):
            return None
        index = bisect.bisect_right(self.columns[line], column) - 1
        if index < 0:
            return None
        segment = self.lines[line][index]
        return segment if len(segment) >= 4 else None


def _same_source(a: str, b: str) -> bool:
    a, b = normalize_path(a), normalize_path(b)
    return a == b or posixpath.basename(a) == posixpath.basename(b)


def compose(source_map: dict[str, Any], inbound: dict[str, Any]) -> dict[str, Any]:
    """Compose ``source_map`` (output -> intermediate) with ``inbound``.

    Segments pointing at the intermediate file are rewritten to the positions
    ``inbound`` maps them to. Segments the inbound map has no mapping for keep
    pointing at the intermediate file.

    Args:
        source_map: Map produced by the compiler.
        inbound: Map carried by the input file (intermediate -> original).

    Returns:
        The composed source map.
    """
    lookup = _Lookup(inbound)
    intermediate = inbound.get("file")
    old_sources: list[str] = list(source_map.get("sources", []))
    old_names: list[str] = list(source_map.get("names", []))
    old_contents: list[str | None] = list(source_map.get("sourcesContent") or [])

    sources: list[str] = []
    contents: list[str | None] = []
    names: list[str] = []

    def source_index(path: str, content: str | None) -> int:
        if path not in sources:
            sources.append(path)
            contents.append(content)
        return sources.index(path)

    def name_index(name: str) -> int:
        if name not in names:
            names.append(name)
        return names.index(name)

    lines: list[list[Segment]] = []
    for line in decode_mappings(source_map.get("mappings", "")):
        composed: list[Segment] = []
        for segment in line:
            if len(segment) < 4:
                composed.append(list(segment))
                continue
            source = old_sources[segment[1]]
            original = None
            if intermediate is None or _same_source(source, intermediate):
                original = lookup.find(segment[2], segment[3])
            if original is None:
                content = old_contents[segment[1]] if segment[1] < len(old_contents) else None
                new = [segment[0], source_index(source, content), segment[2], segment[3]]
                if len(segment) >= 5:
                    new.append(name_index(old_names[segment[4]]))
            else:
                content = (
                    lookup.contents[original[1]] if original[1] < len(lookup.contents) else None
                )
                new = [
                    segment[0],
                    source_index(lookup.sources[original[1]], content),
                    original[2],
                    original[3],
                ]
                if len(original) >= 5:
                    new.append(name_index(lookup.names[original[4]]))
                elif len(segment) >= 5:
                    new.append(name_index(old_names[segment[4]]))
            composed.append(new)
        lines.append(composed)

    result: dict[str, Any] = {
        "version": 3,
        "file": source_map.get("file", ""),
        "sources": sources,
        "names": names,
        "mappings": encode_mappings(lines),
    }
    if any(content is not None for content in contents):
        result["sourcesContent"] = contents
    return result


def apply_source_map(file: PipelineFile, source_map: str | dict[str, Any]) -> None:
    """Attach ``source_map`` to ``file``, composing with any map it already has.

    Args:
        file: Output file; its ``source_map`` is replaced.
        source_map: Compiler-produced map, as JSON text or object.
    """
    new_map = parse_source_map(source_map)
    new_map["file"] = file.relative

    existing = file.source_map
    if existing and existing.get("mappings"):
        file.source_map = compose(new_map, parse_source_map(existing))
    else:
        file.source_map = new_map
