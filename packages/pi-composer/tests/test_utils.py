"""Tests for pi.composer.utils."""

from __future__ import annotations

from pi.composer.tui import CURSOR_MARKER
from pi.composer.utils import (
    bold,
    dim,
    fg,
    is_punctuation_char,
    is_whitespace_char,
    pad_to_width,
    reverse,
    strip_ansi,
    visible_width,
    word_wrap_line,
)


class TestVisibleWidth:
    def test_ascii(self):
        assert visible_width("hello") == 5
        assert visible_width("") == 0

    def test_ansi_is_ignored(self):
        assert visible_width(bold(">")) == 1
        assert visible_width(fg(3, "warn") + dim("x")) == 5

    def test_cursor_marker_is_ignored(self):
        assert visible_width("ab" + CURSOR_MARKER + reverse("c")) == 3

    def test_wide_characters(self):
        assert visible_width("日本") == 4

    def test_combining_mark(self):
        assert visible_width("é") == 1

    def test_tab(self):
        assert visible_width("\t") == 3


class TestStripAnsi:
    def test_strips_styles(self):
        assert strip_ansi("\x1b[1mbold\x1b[22m") == "bold"


class TestPadToWidth:
    def test_pads(self):
        assert pad_to_width("ab", 5) == "ab   "

    def test_never_truncates(self):
        assert pad_to_width("abcdef", 3) == "abcdef"

    def test_counts_visible_columns(self):
        assert visible_width(pad_to_width(bold("ab"), 4)) == 4


class TestCharClasses:
    def test_whitespace(self):
        assert is_whitespace_char(" ")
        assert is_whitespace_char("\t")
        assert not is_whitespace_char("a")

    def test_punctuation(self):
        assert is_punctuation_char(".")
        assert is_punctuation_char("(")
        assert not is_punctuation_char("a")
        assert not is_punctuation_char(" ")


class TestWordWrapLine:
    def test_fits(self):
        chunks = word_wrap_line("hello", 10)
        assert [c.text for c in chunks] == ["hello"]

    def test_wraps_at_word_boundary(self):
        chunks = word_wrap_line("hello world", 8)
        assert [c.text for c in chunks] == ["hello ", "world"]
        assert (chunks[1].start_index, chunks[1].end_index) == (6, 11)

    def test_breaks_long_words(self):
        chunks = word_wrap_line("abcdefghij", 4)
        assert [c.text for c in chunks] == ["abcd", "efgh", "ij"]

    def test_chunks_cover_the_line(self):
        line = "the quick brown fox jumps over the lazy dog"
        chunks = word_wrap_line(line, 10)
        assert "".join(c.text for c in chunks) == line
        for chunk in chunks:
            assert visible_width(chunk.text.rstrip()) <= 10

    def test_empty_line(self):
        chunks = word_wrap_line("", 10)
        assert len(chunks) == 1
        assert chunks[0].text == ""
