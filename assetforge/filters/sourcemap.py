"""Minimal source map v3 support for wrap and concat steps.

Only line-granular mappings are produced: every generated line maps to
column 0 of its original line.
"""

from __future__ import annotations

from typing import Any

_B64 = "ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789+/"


def vlq_encode(value: int) -> str:
    """Base64 VLQ encoding of one signed integer.

    >>> vlq_encode(0), vlq_encode(1), vlq_encode(-1), vlq_encode(16)
    ('A', 'C', 'D', 'gB')
    """
    v = ((-value) << 1) | 1 if value < 0 else value << 1
    out = []
    while True:
        digit = v & 0b11111
        v >>= 5
        if v:
            digit |= 0b100000
        out.append(_B64[digit])
        if not v:
            return "".join(out)


def line_count(text: str) -> int:
    return text.count("\n") + 1


def identity_map(
    source: str, text: str, *, generated: str | None = None, line_offset: int = 0, column: int = 0
) -> dict[str, Any]:
    """Map each line of *text* to itself, shifted down by *line_offset* lines.

    *column* is the generated column of the first original line.
    """
    lines = line_count(text)
    first = vlq_encode(column) + "AAA"
    mappings = ";" * line_offset + first + ";AACA" * (lines - 1)
    return {
        "version": 3,
        "file": generated or source,
        "sources": [source],
        "sourcesContent": [text],
        "names": [],
        "mappings": mappings,
    }


def shift_map(source_map: dict[str, Any], lines: int, *, generated: str | None = None) -> dict[str, Any]:
    """Shift an existing map down by *lines* whole lines."""
    if "sections" in source_map:
        sections = [
            {**s, "offset": {"line": s["offset"]["line"] + lines, "column": s["offset"]["column"]}}
            for s in source_map["sections"]
        ]
        shifted = {**source_map, "sections": sections}
    else:
        shifted = {**source_map, "mappings": ";" * lines + source_map.get("mappings", "")}
    if generated:
        shifted["file"] = generated
    return shifted


def index_map(generated: str, parts: list[tuple[int, dict[str, Any]]]) -> dict[str, Any]:
    """Index map (v3 ``sections``) from ``(line_offset, map)`` pairs.

    Nested index maps are flattened, since sections may not nest.
    """
    sections: list[dict[str, Any]] = []
    for offset, part in parts:
        if "sections" in part:
            for section in part["sections"]:
                sections.append({
                    "offset": {
                        "line": section["offset"]["line"] + offset,
                        "column": section["offset"]["column"],
                    },
                    "map": section["map"],
                })
        else:
            sections.append({"offset": {"line": offset, "column": 0}, "map": part})
    return {"version": 3, "file": generated, "sections": sections}
