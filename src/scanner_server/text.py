"""Offset/position arithmetic over a text snapshot.

Offsets are Python string indices. Positions follow the Language Server
Protocol: zero-based lines, columns counted in UTF-16 code units, and lines
broken by ``\\r\\n``, ``\\r`` or ``\\n``.
"""

from __future__ import annotations

import re
from bisect import bisect_right
from dataclasses import dataclass

_LINE_BREAK = re.compile(r"\r\n|\r|\n")


@dataclass(frozen=True)
class Position:
    line: int
    character: int


@dataclass(frozen=True)
class TextRange:
    start: Position
    end: Position


def line_starts(text: str) -> list[int]:
    starts = [0]
    starts.extend(match.end() for match in _LINE_BREAK.finditer(text))
    return starts


def _utf16_units(segment: str) -> int:
    return len(segment.encode("utf-16-le")) // 2


def _code_points_for_units(segment: str, units: int) -> int:
    consumed = 0
    for index, char in enumerate(segment):
        if consumed >= units:
            return index
        consumed += 2 if ord(char) > 0xFFFF else 1
    return len(segment)


def _line_end(text: str, starts: list[int], line: int) -> int:
    """Offset just past the line's content, before any line break."""
    end = starts[line + 1] if line + 1 < len(starts) else len(text)
    while end > starts[line] and text[end - 1] in "\r\n":
        end -= 1
    return end


def position_at(text: str, offset: int, starts: list[int] | None = None) -> Position:
    offset = max(0, min(offset, len(text)))
    starts = starts if starts is not None else line_starts(text)
    line = bisect_right(starts, offset) - 1
    offset = min(offset, _line_end(text, starts, line))
    return Position(line=line, character=_utf16_units(text[starts[line]:offset]))


def offset_at(text: str, position: Position, starts: list[int] | None = None) -> int:
    starts = starts if starts is not None else line_starts(text)
    if position.line >= len(starts):
        return len(text)
    if position.line < 0:
        return 0
    line_start = starts[position.line]
    segment = text[line_start:_line_end(text, starts, position.line)]
    return line_start + _code_points_for_units(segment, max(0, position.character))


def range_at(text: str, start: int, end: int) -> TextRange:
    starts = line_starts(text)
    return TextRange(
        start=position_at(text, start, starts),
        end=position_at(text, end, starts),
    )
