"""
Line-level source maps (Source Map revision 3).

The built-in bundler keeps every source line on its own generated line, so
a map only needs one segment per line: generated column 0 maps to column 0
of the source line it came from.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field

_BASE64 = "ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789+/"


def encode_vlq(value: int) -> str:
    """
    Encode one integer as a base64 VLQ string.

    Example:
        >>> encode_vlq(0), encode_vlq(1), encode_vlq(-1), encode_vlq(16)
        ('A', 'C', 'D', 'gB')
    """
    vlq = (-value << 1) | 1 if value < 0 else value << 1
    out = ""
    while True:
        digit = vlq & 0b11111
        vlq >>= 5
        if vlq:
            digit |= 0b100000
        out += _BASE64[digit]
        if not vlq:
            return out


@dataclass
class LineMapBuilder:
    """
    Accumulates generated-line -> source-line mappings.

    Lines are 0-based. Generated lines without a mapping stay empty in the
    ``mappings`` string.
    """

    file: str
    sources: list[str] = field(default_factory=list)
    sources_content: list[str | None] = field(default_factory=list)
    _lines: dict[int, tuple[int, int]] = field(default_factory=dict)

    def add_source(self, name: str, content: str | None = None) -> int:
        """Register a source file and return its index."""
        self.sources.append(name)
        self.sources_content.append(content)
        return len(self.sources) - 1

    def map_line(self, generated_line: int, source_index: int, source_line: int) -> None:
        self._lines[generated_line] = (source_index, source_line)

    def mappings(self) -> str:
        if not self._lines:
            return ""
        last_line = max(self._lines)
        prev_source = 0
        prev_line = 0
        groups: list[str] = []
        for gen_line in range(last_line + 1):
            entry = self._lines.get(gen_line)
            if entry is None:
                groups.append("")
                continue
            source_index, source_line = entry
            segment = (
                encode_vlq(0)
                + encode_vlq(source_index - prev_source)
                + encode_vlq(source_line - prev_line)
                + encode_vlq(0)
            )
            prev_source, prev_line = source_index, source_line
            groups.append(segment)
        return ";".join(groups)

    def to_dict(self) -> dict[str, object]:
        return {
            "version": 3,
            "file": self.file,
            "sources": self.sources,
            "sourcesContent": self.sources_content,
            "names": [],
            "mappings": self.mappings(),
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict())
