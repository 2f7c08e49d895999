"""Terminal text utilities: width measurement, wrapping, ANSI styling.

Widths are measured per grapheme cluster so that emoji, CJK text and
combining marks line up with what the terminal actually draws.
"""

from __future__ import annotations

import re
import unicodedata
from dataclasses import dataclass

import grapheme
import wcwidth as _wcwidth

# CSI sequences, OSC 8 hyperlinks and APC payloads (cursor marker)
_STRIP_RE = re.compile(
    r"\x1b\[[0-9;]*[mGKHJ]"
    r"|\x1b\]8;;[^\x07]*\x07"
    r"|\x1b_[^\x07\x1b]*(?:\x07|\x1b\\)"
)

_PUNCTUATION_REGEX = re.compile(r"[(){}\[\]<>.,;:'\"!?\+\-=*/\\|&%\^$#@~`]")

_width_cache: dict[str, int] = {}
_WIDTH_CACHE_MAX = 512


def strip_ansi(text: str) -> str:
    """Remove ANSI escape sequences from *text*."""
    return _STRIP_RE.sub("", text)


def _grapheme_width(g: str) -> int:
    """Return the terminal display width of a single grapheme cluster."""
    if len(g) == 1:
        cp = ord(g)
        if cp < 0x20 or 0x7F <= cp <= 0x9F:
            return 0
        return max(_wcwidth.wcwidth(g), 0)

    for ch in g:
        cp = ord(ch)
        # VS16, ZWJ sequences, skin tones and flags render as wide emoji
        if cp in (0xFE0F, 0x200D) or 0x1F3FB <= cp <= 0x1F3FF or 0x1F1E6 <= cp <= 0x1F1FF:
            return 2

    first = g[0]
    if ord(first) >= 0x1F000:
        return 2
    if unicodedata.category(first) in ("Mn", "Me", "Mc", "Cf"):
        return 0
    return max(_wcwidth.wcwidth(first), 0)


def visible_width(text: str) -> int:
    """Calculate the visible terminal width of *text*.

    ANSI codes are ignored and tabs count as 3 columns.
    """
    if not text:
        return 0
    stripped = strip_ansi(text).replace("\t", "   ")
    if stripped.isascii() and stripped.isprintable():
        return len(stripped)

    cached = _width_cache.get(stripped)
    if cached is not None:
        return cached

    total = sum(_grapheme_width(g) for g in grapheme.graphemes(stripped))
    if len(_width_cache) >= _WIDTH_CACHE_MAX:
        _width_cache.clear()
    _width_cache[stripped] = total
    return total


def pad_to_width(text: str, width: int) -> str:
    """Right-pad *text* with spaces to *width* visible columns."""
    return text + " " * max(0, width - visible_width(text))


def is_whitespace_char(char: str) -> bool:
    """Return ``True`` if *char* is a whitespace character."""
    return char in (" ", "\t", "\n", "\r", "\f", "\v")


def is_punctuation_char(char: str) -> bool:
    """Return ``True`` if *char* is a punctuation character."""
    return bool(_PUNCTUATION_REGEX.match(char))


# ---------------------------------------------------------------------------
# Word wrap
# ---------------------------------------------------------------------------


@dataclass
class TextChunk:
    """A slice of a logical line produced by :func:`word_wrap_line`."""

    text: str
    start_index: int
    end_index: int


def word_wrap_line(line: str, max_width: int) -> list[TextChunk]:
    """Split a line into word-wrapped chunks.

    Wraps at word boundaries when possible, falling back to breaking inside
    words longer than the available width.  Chunks keep their trailing
    whitespace so that indices map back onto the original line.
    """
    if not line or max_width <= 0:
        return [TextChunk(text=line, start_index=0, end_index=len(line))]
    if visible_width(line) <= max_width:
        return [TextChunk(text=line, start_index=0, end_index=len(line))]

    segments: list[tuple[str, int]] = []
    idx = 0
    for g in grapheme.graphemes(line):
        segments.append((g, idx))
        idx += len(g)

    chunks: list[TextChunk] = []
    chunk_start = 0
    current_width = 0
    wrap_index = -1
    wrap_width = 0

    for i, (g, char_index) in enumerate(segments):
        g_width = _grapheme_width(g) if g != "\t" else 3
        if current_width + g_width > max_width:
            if wrap_index > chunk_start:
                chunks.append(TextChunk(line[chunk_start:wrap_index], chunk_start, wrap_index))
                chunk_start = wrap_index
                current_width -= wrap_width
            elif chunk_start < char_index:
                chunks.append(TextChunk(line[chunk_start:char_index], chunk_start, char_index))
                chunk_start = char_index
                current_width = 0
            wrap_index = -1

        current_width += g_width

        # A wrap opportunity sits after whitespace that precedes a word
        if is_whitespace_char(g) and i + 1 < len(segments):
            next_g, next_idx = segments[i + 1]
            if not is_whitespace_char(next_g):
                wrap_index = next_idx
                wrap_width = current_width

    chunks.append(TextChunk(line[chunk_start:], chunk_start, len(line)))
    return chunks


# ---------------------------------------------------------------------------
# Styling
# ---------------------------------------------------------------------------


def bold(text: str) -> str:
    return f"\x1b[1m{text}\x1b[22m"


def dim(text: str) -> str:
    return f"\x1b[2m{text}\x1b[22m"


def reverse(text: str) -> str:
    return f"\x1b[7m{text}\x1b[27m"


def fg(code: int, text: str) -> str:
    """Wrap *text* in a 256-colour foreground."""
    return f"\x1b[38;5;{code}m{text}\x1b[39m"
