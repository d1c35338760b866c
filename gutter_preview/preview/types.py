"""Small dataclasses for positions, ranges and preview payloads."""

from __future__ import annotations

import re
from dataclasses import dataclass, field


@dataclass(frozen=True, order=True)
class TextPosition:
    line: int
    character: int


@dataclass(frozen=True)
class TextRange:
    start: TextPosition
    end: TextPosition

    def contains(self, position: TextPosition) -> bool:
        return self.start <= position <= self.end

    @classmethod
    def from_coords(cls, start_line: int, start_char: int, end_line: int, end_char: int) -> "TextRange":
        return cls(TextPosition(start_line, start_char), TextPosition(end_line, end_char))


@dataclass(frozen=True)
class ImageInfo:
    range: TextRange
    display_path: str
    original_path: str


@dataclass(frozen=True)
class ImageInfoResponse:
    images: tuple[ImageInfo, ...] = ()


@dataclass(frozen=True)
class ImageDimensions:
    width: int
    height: int


@dataclass(frozen=True)
class DocumentSnapshot:
    """Immutable copy of a document that is safe to hand to worker threads."""

    uri: str
    text: str
    file_path: str | None = None
    version: int = 0
    workspace_folders: tuple[str, ...] = ()
    source_folder: str = "src"


@dataclass(slots=True)
class HoverPayload:
    contents: list[str] = field(default_factory=list)
    range: TextRange | None = None


# Mirrors the default word pattern of most editors: anything that is not
# whitespace or a bracket/quote/separator character.
_WORD_PATTERN = re.compile(r"[^\s`~!@#$%^&*()=+\[{\]}\\|;:'\",<>?]+")


def word_range_at(text: str, position: TextPosition) -> TextRange | None:
    lines = str(text or "").split("\n")
    if position.line < 0 or position.line >= len(lines):
        return None
    line_text = lines[position.line].rstrip("\r")
    col = position.character
    for match in _WORD_PATTERN.finditer(line_text):
        if match.start() <= col <= match.end():
            return TextRange.from_coords(position.line, match.start(), position.line, match.end())
    return None


def utf16_code_units(text: str) -> int:
    if not text:
        return 0
    return len(text.encode("utf-16-le")) // 2


def utf16_units_for_prefix(text: str, codepoint_index: int) -> int:
    if not text:
        return 0
    idx = max(0, min(len(text), int(codepoint_index)))
    return utf16_code_units(text[:idx])


def codepoint_index_from_utf16_units(text: str, utf16_units: int) -> int:
    if not text:
        return 0
    remaining = max(0, int(utf16_units))
    idx = 0
    while idx < len(text):
        units = 1 if ord(text[idx]) <= 0xFFFF else 2
        if remaining < units:
            break
        remaining -= units
        idx += 1
    return idx
