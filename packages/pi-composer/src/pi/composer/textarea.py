"""Multi-line text area: the composer's in-process text buffer.

Owns the draft text, the cursor and the viewport (width, height, scroll).
Lines soft-wrap at word boundaries, the viewport follows the cursor, and
the cursor blinks while the area is focused.  Input is ignored while the
area is blurred.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Callable

import grapheme as _grapheme

from pi.composer.keybindings import TextAreaKeybindings
from pi.composer.keys import decode_printable
from pi.composer.tui import CURSOR_MARKER
from pi.composer.utils import (
    dim,
    is_punctuation_char,
    is_whitespace_char,
    pad_to_width,
    reverse,
    visible_width,
    word_wrap_line,
)

logger = logging.getLogger(__name__)

PASTE_START = "\x1b[200~"
PASTE_END = "\x1b[201~"

DEFAULT_BLINK_INTERVAL = 0.53


def _identity(text: str) -> str:
    return text


@dataclass
class TextAreaStyle:
    """Styling callables applied to a rendered row."""

    text: Callable[[str], str] = _identity
    placeholder: Callable[[str], str] = dim
    prompt: Callable[[str], str] = _identity


@dataclass
class TextAreaTheme:
    focused: TextAreaStyle = field(default_factory=TextAreaStyle)
    blurred: TextAreaStyle = field(default_factory=TextAreaStyle)


@dataclass
class EditorState:
    lines: list[str] = field(default_factory=lambda: [""])
    cursor_line: int = 0
    cursor_col: int = 0


@dataclass
class VisualLine:
    """One wrapped row: ``lines[line][start:end]``."""

    line: int
    start: int
    end: int
    last: bool  # last row of its logical line


class CursorBlink:
    """Toggles cursor visibility on the running event loop."""

    def __init__(self, interval: float, on_toggle: Callable[[], None] | None = None) -> None:
        self.interval = interval
        self.visible = True
        self._on_toggle = on_toggle
        self._timer_handle: asyncio.TimerHandle | None = None

    @property
    def running(self) -> bool:
        return self._timer_handle is not None

    def start(self) -> None:
        self.stop()
        self.visible = True
        self._schedule_next()

    def stop(self) -> None:
        if self._timer_handle is not None:
            self._timer_handle.cancel()
            self._timer_handle = None
        self.visible = True

    def reset(self) -> None:
        """Show the cursor and restart the interval (after a keypress)."""
        if self.running:
            self.start()

    def _schedule_next(self) -> None:
        if self.interval <= 0:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # Static cursor without a loop
            return
        self._timer_handle = loop.call_later(self.interval, self._tick)

    def _tick(self) -> None:
        self.visible = not self.visible
        self._schedule_next()
        if self._on_toggle is not None:
            self._on_toggle()


class TextArea:
    """Multi-line editor with soft wrap and a scrolling viewport."""

    def __init__(
        self,
        *,
        keybindings: TextAreaKeybindings | None = None,
        prompt: str = " ",
        placeholder: str = "",
        char_limit: int = -1,
        blink_interval: float = DEFAULT_BLINK_INTERVAL,
        theme: TextAreaTheme | None = None,
    ) -> None:
        self.keybindings = keybindings or TextAreaKeybindings()
        self.prompt = prompt
        self.placeholder = placeholder
        self.char_limit = char_limit
        self.theme = theme or TextAreaTheme()
        self.on_change: Callable[[str], None] | None = None
        self.request_render: Callable[[], None] | None = None

        self._state = EditorState()
        self._width = 40
        self._height = 1
        self._scroll_offset = 0
        self._focused = False
        self._paste_buffer: str | None = None
        self.cursor = CursorBlink(blink_interval, self._on_blink)

    # -- Focus -----------------------------------------------------------------

    @property
    def focused(self) -> bool:
        return self._focused

    def focus(self) -> None:
        self._focused = True
        self.cursor.start()

    def blur(self) -> None:
        self._focused = False
        self.cursor.stop()

    def _on_blink(self) -> None:
        if self.request_render is not None:
            self.request_render()

    # -- Geometry --------------------------------------------------------------

    @property
    def width(self) -> int:
        return self._width

    @property
    def height(self) -> int:
        return self._height

    def set_width(self, width: int) -> None:
        self._width = max(1, width)

    def set_height(self, height: int) -> None:
        self._height = max(1, height)

    @property
    def content_width(self) -> int:
        return max(1, self._width - visible_width(self.prompt))

    def _wrap_width(self) -> int:
        # One column is kept free for the cursor at end of line
        return max(1, self.content_width - 1)

    # -- Value -----------------------------------------------------------------

    @property
    def value(self) -> str:
        return "\n".join(self._state.lines)

    def set_value(self, text: str) -> None:
        """Replace the content and move the cursor to its end."""
        self._state = EditorState()
        self._scroll_offset = 0
        self._insert_text(text)

    def reset(self) -> None:
        """Clear the content, cursor and scroll position."""
        self._state = EditorState()
        self._scroll_offset = 0
        self._paste_buffer = None
        self._changed()

    def get_lines(self) -> list[str]:
        return list(self._state.lines)

    def get_cursor(self) -> tuple[int, int]:
        return self._state.cursor_line, self._state.cursor_col

    def length(self) -> int:
        return sum(len(line) for line in self._state.lines) + len(self._state.lines) - 1

    def _changed(self) -> None:
        if self.on_change is not None:
            self.on_change(self.value)

    # -- Input -----------------------------------------------------------------

    def handle_input(self, data: str) -> None:  # noqa: C901
        if not self._focused:
            return
        self.cursor.reset()

        # Bracketed paste can arrive split across several chunks
        if self._paste_buffer is None and PASTE_START in data:
            before, _, data = data.partition(PASTE_START)
            if before:
                self.handle_input(before)
            self._paste_buffer = ""
        if self._paste_buffer is not None:
            self._paste_buffer += data
            end = self._paste_buffer.find(PASTE_END)
            if end == -1:
                return
            pasted = self._paste_buffer[:end]
            remaining = self._paste_buffer[end + len(PASTE_END):]
            self._paste_buffer = None
            self._insert_text(pasted.replace("\r\n", "\n").replace("\r", "\n"))
            if remaining:
                self.handle_input(remaining)
            return

        kb = self.keybindings
        if kb.matches(data, "deleteToLineEnd"):
            self._delete_to_line_end()
        elif kb.matches(data, "deleteToLineStart"):
            self._delete_to_line_start()
        elif kb.matches(data, "deleteWordBackward"):
            self._delete_word_backward()
        elif kb.matches(data, "deleteWordForward"):
            self._delete_word_forward()
        elif kb.matches(data, "deleteCharBackward"):
            self._backspace()
        elif kb.matches(data, "deleteCharForward"):
            self._delete_forward()
        elif kb.matches(data, "cursorLineStart"):
            self._state.cursor_col = 0
        elif kb.matches(data, "cursorLineEnd"):
            self._state.cursor_col = len(self._current_line())
        elif kb.matches(data, "cursorWordLeft"):
            self._move_word_backward()
        elif kb.matches(data, "cursorWordRight"):
            self._move_word_forward()
        elif kb.matches(data, "cursorUp"):
            self._move_vertical(-1)
        elif kb.matches(data, "cursorDown"):
            self._move_vertical(1)
        elif kb.matches(data, "cursorLeft"):
            self._move_left()
        elif kb.matches(data, "cursorRight"):
            self._move_right()
        elif kb.matches(data, "newLine"):
            self._insert_text("\n")
        else:
            text = decode_printable(data)
            if text is not None:
                self._insert_text(text)
            else:
                logger.debug("Ignoring unbound key %r", data)

    # -- Editing ---------------------------------------------------------------

    def _current_line(self) -> str:
        return self._state.lines[self._state.cursor_line]

    def _insert_text(self, text: str) -> None:
        if self.char_limit >= 0:
            room = self.char_limit - self.length()
            if room <= 0:
                return
            text = text[:room]
        if not text:
            return

        state = self._state
        line = self._current_line()
        before, after = line[: state.cursor_col], line[state.cursor_col:]
        parts = text.split("\n")
        if len(parts) == 1:
            state.lines[state.cursor_line] = before + text + after
            state.cursor_col += len(text)
        else:
            new_lines = [before + parts[0], *parts[1:-1], parts[-1] + after]
            state.lines[state.cursor_line : state.cursor_line + 1] = new_lines
            state.cursor_line += len(parts) - 1
            state.cursor_col = len(parts[-1])
        self._changed()

    def _backspace(self) -> None:
        state = self._state
        if state.cursor_col > 0:
            line = self._current_line()
            graphemes = list(_grapheme.graphemes(line[: state.cursor_col]))
            size = len(graphemes[-1]) if graphemes else 1
            state.lines[state.cursor_line] = line[: state.cursor_col - size] + line[state.cursor_col:]
            state.cursor_col -= size
        elif state.cursor_line > 0:
            previous = state.lines[state.cursor_line - 1]
            state.lines[state.cursor_line - 1] = previous + state.lines.pop(state.cursor_line)
            state.cursor_line -= 1
            state.cursor_col = len(previous)
        else:
            return
        self._changed()

    def _delete_forward(self) -> None:
        state = self._state
        line = self._current_line()
        if state.cursor_col < len(line):
            graphemes = list(_grapheme.graphemes(line[state.cursor_col:]))
            size = len(graphemes[0]) if graphemes else 1
            state.lines[state.cursor_line] = line[: state.cursor_col] + line[state.cursor_col + size:]
        elif state.cursor_line < len(state.lines) - 1:
            state.lines[state.cursor_line] = line + state.lines.pop(state.cursor_line + 1)
        else:
            return
        self._changed()

    def _delete_to_line_start(self) -> None:
        state = self._state
        if state.cursor_col == 0:
            self._backspace()
            return
        state.lines[state.cursor_line] = self._current_line()[state.cursor_col:]
        state.cursor_col = 0
        self._changed()

    def _delete_to_line_end(self) -> None:
        state = self._state
        line = self._current_line()
        if state.cursor_col >= len(line):
            self._delete_forward()
            return
        state.lines[state.cursor_line] = line[: state.cursor_col]
        self._changed()

    def _delete_word_backward(self) -> None:
        state = self._state
        if state.cursor_col == 0:
            self._backspace()
            return
        end = state.cursor_col
        self._move_word_backward()
        line = self._current_line()
        state.lines[state.cursor_line] = line[: state.cursor_col] + line[end:]
        self._changed()

    def _delete_word_forward(self) -> None:
        state = self._state
        line = self._current_line()
        if state.cursor_col >= len(line):
            self._delete_forward()
            return
        start = state.cursor_col
        self._move_word_forward()
        state.lines[state.cursor_line] = line[:start] + line[state.cursor_col:]
        state.cursor_col = start
        self._changed()

    # -- Cursor movement -------------------------------------------------------

    def _move_left(self) -> None:
        state = self._state
        if state.cursor_col > 0:
            graphemes = list(_grapheme.graphemes(self._current_line()[: state.cursor_col]))
            state.cursor_col -= len(graphemes[-1]) if graphemes else 1
        elif state.cursor_line > 0:
            state.cursor_line -= 1
            state.cursor_col = len(self._current_line())

    def _move_right(self) -> None:
        state = self._state
        line = self._current_line()
        if state.cursor_col < len(line):
            graphemes = list(_grapheme.graphemes(line[state.cursor_col:]))
            state.cursor_col += len(graphemes[0]) if graphemes else 1
        elif state.cursor_line < len(state.lines) - 1:
            state.cursor_line += 1
            state.cursor_col = 0

    def _move_word_backward(self) -> None:
        state = self._state
        if state.cursor_col == 0:
            if state.cursor_line > 0:
                state.cursor_line -= 1
                state.cursor_col = len(self._current_line())
            return

        graphemes = list(_grapheme.graphemes(self._current_line()[: state.cursor_col]))
        col = state.cursor_col
        while graphemes and is_whitespace_char(graphemes[-1]):
            col -= len(graphemes.pop())
        if graphemes and is_punctuation_char(graphemes[-1]):
            while graphemes and is_punctuation_char(graphemes[-1]):
                col -= len(graphemes.pop())
        else:
            while graphemes and not is_whitespace_char(graphemes[-1]) and not is_punctuation_char(graphemes[-1]):
                col -= len(graphemes.pop())
        state.cursor_col = col

    def _move_word_forward(self) -> None:
        state = self._state
        line = self._current_line()
        if state.cursor_col >= len(line):
            if state.cursor_line < len(state.lines) - 1:
                state.cursor_line += 1
                state.cursor_col = 0
            return

        graphemes = list(_grapheme.graphemes(line[state.cursor_col:]))
        col = state.cursor_col
        i = 0
        while i < len(graphemes) and is_whitespace_char(graphemes[i]):
            col += len(graphemes[i])
            i += 1
        if i < len(graphemes) and is_punctuation_char(graphemes[i]):
            while i < len(graphemes) and is_punctuation_char(graphemes[i]):
                col += len(graphemes[i])
                i += 1
        else:
            while i < len(graphemes) and not is_whitespace_char(graphemes[i]) and not is_punctuation_char(graphemes[i]):
                col += len(graphemes[i])
                i += 1
        state.cursor_col = col

    def _move_vertical(self, delta: int) -> None:
        visual = self._visual_lines()
        current = self._current_visual_index(visual)
        target = current + delta
        if target < 0:
            self._state.cursor_col = 0
            return
        if target >= len(visual):
            self._state.cursor_col = len(self._current_line())
            return

        source, dest = visual[current], visual[target]
        line = self._state.lines[source.line]
        column = visible_width(line[source.start : self._state.cursor_col])

        dest_text = self._state.lines[dest.line][dest.start : dest.end]
        offset = 0
        width = 0
        for g in _grapheme.graphemes(dest_text):
            g_width = visible_width(g)
            if width + g_width > column:
                break
            width += g_width
            offset += len(g)
        # Stay on a wrapped row instead of jumping to the start of the next one
        if not dest.last and offset >= dest.end - dest.start:
            offset = max(0, dest.end - dest.start - 1)
        self._state.cursor_line = dest.line
        self._state.cursor_col = dest.start + offset

    # -- Layout ----------------------------------------------------------------

    def _visual_lines(self) -> list[VisualLine]:
        width = self._wrap_width()
        rows: list[VisualLine] = []
        for index, line in enumerate(self._state.lines):
            chunks = word_wrap_line(line, width)
            for n, chunk in enumerate(chunks):
                rows.append(VisualLine(index, chunk.start_index, chunk.end_index, n == len(chunks) - 1))
        return rows

    def _current_visual_index(self, rows: list[VisualLine]) -> int:
        state = self._state
        for i, row in enumerate(rows):
            if row.line != state.cursor_line:
                continue
            if row.start <= state.cursor_col < row.end or (row.last and state.cursor_col == row.end):
                return i
        return len(rows) - 1

    def cursor_row(self) -> int:
        """Index of the visual row holding the cursor."""
        return self._current_visual_index(self._visual_lines())

    # -- Rendering -------------------------------------------------------------

    def invalidate(self) -> None:
        """No cached state to invalidate."""

    def render(self, width: int | None = None) -> list[str]:
        """Render exactly ``height`` rows, each ``width`` columns wide."""
        if width is not None and width != self._width:
            self.set_width(width)

        style = self.theme.focused if self._focused else self.theme.blurred
        content_width = self.content_width
        prompt = style.prompt(self.prompt)

        if self.value == "" and self.placeholder:
            rows = [self._render_placeholder(style)]
            rows += [""] * (self._height - 1)
            return [prompt + style.text(pad_to_width(row, content_width)) for row in rows]

        visual = self._visual_lines()
        cursor_index = self._current_visual_index(visual)
        if cursor_index < self._scroll_offset:
            self._scroll_offset = cursor_index
        elif cursor_index >= self._scroll_offset + self._height:
            self._scroll_offset = cursor_index - self._height + 1
        self._scroll_offset = max(0, min(self._scroll_offset, max(0, len(visual) - self._height)))

        out: list[str] = []
        for i in range(self._scroll_offset, self._scroll_offset + self._height):
            if i >= len(visual):
                out.append(prompt + style.text(" " * content_width))
                continue
            row = visual[i]
            text = self._state.lines[row.line][row.start : row.end]
            if i == cursor_index and self._focused:
                text = self._with_cursor(text, self._state.cursor_col - row.start)
            out.append(prompt + style.text(pad_to_width(text, content_width)))
        return out

    def _render_placeholder(self, style: TextAreaStyle) -> str:
        text = self.placeholder
        if visible_width(text) > self.content_width - 1:
            text = text[: max(0, self.content_width - 1)]
        if self._focused and self.cursor.visible:
            first = next(iter(_grapheme.graphemes(text)), " ")
            return CURSOR_MARKER + reverse(first) + style.placeholder(text[len(first):])
        return style.placeholder(text)

    def _with_cursor(self, text: str, pos: int) -> str:
        before, after = text[:pos], text[pos:]
        if not self.cursor.visible:
            return before + CURSOR_MARKER + after
        if after:
            first = next(iter(_grapheme.graphemes(after)))
            return before + CURSOR_MARKER + reverse(first) + after[len(first):]
        return before + CURSOR_MARKER + reverse(" ")
