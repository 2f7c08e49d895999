"""Minimal TUI host with differential rendering.

Provides the ``Component`` and ``Focusable`` protocols, a ``Container`` for
stacking children, and the ``TUI`` class that drives rendering and input
dispatch against a ``Terminal``.  ``TUI.run_external`` is the host
capability the composer uses to hand the terminal to another program (an
editor) and take it back afterwards.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import os
from collections.abc import Sequence
from typing import TYPE_CHECKING, Callable, Protocol, runtime_checkable

from pi.composer.keys import is_key_release
from pi.composer.utils import visible_width

if TYPE_CHECKING:
    from pi.composer.terminal import Terminal

logger = logging.getLogger(__name__)

CURSOR_MARKER = "\x1b_pi:c\x07"


class Component(Protocol):
    """A renderable terminal component.

    ``handle_input`` is optional and looked up with ``getattr`` at the
    call site.
    """

    def render(self, width: int) -> list[str]: ...

    def invalidate(self) -> None: ...


@runtime_checkable
class Focusable(Protocol):
    """A component that can receive focus."""

    focused: bool


def is_focusable(component: object | None) -> bool:
    return component is not None and hasattr(component, "focused")


class Container:
    """Renders its children top to bottom."""

    def __init__(self) -> None:
        self.children: list[object] = []

    def add_child(self, component: object) -> None:
        self.children.append(component)

    def remove_child(self, component: object) -> None:
        try:
            self.children.remove(component)
        except ValueError:
            pass

    def clear(self) -> None:
        self.children.clear()

    def invalidate(self) -> None:
        for child in self.children:
            inv = getattr(child, "invalidate", None)
            if inv is not None:
                inv()

    def render(self, width: int) -> list[str]:
        lines: list[str] = []
        for child in self.children:
            lines.extend(child.render(width))  # type: ignore[attr-defined]
        return lines


class TUI(Container):
    """Render loop, focus and input dispatch for a set of components.

    Only lines that changed since the previous frame are rewritten.  A full
    redraw happens when the terminal width changes or after the terminal
    was handed to an external program.
    """

    def __init__(
        self,
        terminal: Terminal,
        show_hardware_cursor: bool | None = None,
    ) -> None:
        super().__init__()
        self.terminal = terminal

        self._previous_lines: list[str] = []
        self._previous_width = 0
        self._cursor_row = 0
        self._focused_component: object | None = None
        self._render_requested = False
        self._stopped = True
        self._suspended = False
        # Set when the host is stopped while an external program runs
        self._closing = False
        self._full_redraw_count = 0

        self._show_hardware_cursor = (
            show_hardware_cursor
            if show_hardware_cursor is not None
            else os.environ.get("PI_HARDWARE_CURSOR") == "1"
        )

        # Return True to consume a key before it reaches the focused component
        self.on_input: Callable[[str], bool] | None = None
        # Called with (columns, rows) after SIGWINCH
        self.on_resize: Callable[[int, int], None] | None = None

    @property
    def full_redraws(self) -> int:
        return self._full_redraw_count

    @property
    def suspended(self) -> bool:
        """True while an external program owns the terminal."""
        return self._suspended

    # -- Focus ---------------------------------------------------------------

    def set_focus(self, component: object | None) -> None:
        """Route input to *component*.

        Unlike a plain widget toolkit, focus here is input routing only: the
        composer tracks its own focused/blurred mode and keeps receiving
        keys while blurred.
        """
        self._focused_component = component

    @property
    def focused_component(self) -> object | None:
        return self._focused_component

    # -- Lifecycle -----------------------------------------------------------

    def start(self) -> None:
        """Take over the terminal and draw the first frame."""
        self._stopped = False
        self.terminal.start(self.handle_input, self._handle_resize)
        if not self._show_hardware_cursor:
            self.terminal.hide_cursor()
        self.request_render(force=True)

    def stop(self) -> None:
        """Leave the cursor below the content and release the terminal.

        Called while an external program runs, it also cancels the resume:
        the terminal stays released when that program exits.
        """
        if self._suspended:
            self._closing = True
        if self._stopped:
            return
        self._stopped = True
        lines_below = len(self._previous_lines) - self._cursor_row - 1
        if lines_below > 0:
            self.terminal.write(f"\x1b[{lines_below}B")
        self.terminal.write("\r\n")
        self.terminal.show_cursor()
        self.terminal.stop()

    async def run_external(self, argv: Sequence[str]) -> int:
        """Run *argv* with exclusive use of the terminal, then resume.

        The child inherits stdin/stdout/stderr.  No input is read and no
        frames are drawn until it exits; the terminal is restored and
        repainted on every exit path, unless :meth:`stop` was called in the
        meantime.  Returns the exit code; spawn failures propagate as
        ``OSError``.  Cancelling the caller kills the program.
        """
        was_running = not self._stopped
        if was_running:
            self.stop()
        self._suspended = True
        self._closing = False
        logger.debug("Handing terminal to %s", argv[0] if argv else argv)
        try:
            proc = await asyncio.create_subprocess_exec(*argv)
            try:
                return await proc.wait()
            except asyncio.CancelledError:
                logger.debug("External program cancelled; killing pid %d", proc.pid)
                with contextlib.suppress(ProcessLookupError):
                    proc.kill()
                await proc.wait()
                raise
        finally:
            self._suspended = False
            if was_running and not self._closing:
                self.terminal.clear_screen()
                self._previous_lines = []
                self._cursor_row = 0
                self.start()

    # -- Render scheduling ---------------------------------------------------

    def invalidate(self) -> None:
        super().invalidate()
        self.request_render()

    def request_render(self, force: bool = False) -> None:
        """Schedule a render on the next loop iteration.

        Multiple calls coalesce into a single pass.
        """
        if force:
            self._previous_width = -1
        if self._render_requested:
            return
        self._render_requested = True
        try:
            asyncio.get_running_loop().call_soon(self._do_render_tick)
        except RuntimeError:
            self._do_render_tick()

    def _do_render_tick(self) -> None:
        self._render_requested = False
        if self._stopped or self._suspended:
            return
        self.do_render()

    def _handle_resize(self) -> None:
        if self.on_resize is not None:
            self.on_resize(self.terminal.columns, self.terminal.rows)
        self.request_render(force=True)

    # -- Input ---------------------------------------------------------------

    def handle_input(self, data: str) -> None:
        if self._stopped or self._suspended:
            return
        if is_key_release(data):
            return
        if self.on_input is not None and self.on_input(data):
            self.request_render()
            return
        handler = getattr(self._focused_component, "handle_input", None)
        if callable(handler):
            handler(data)
        self.request_render()

    # -- Rendering -----------------------------------------------------------

    @staticmethod
    def _extract_cursor_position(lines: list[str]) -> tuple[list[str], int, int]:
        """Find and remove ``CURSOR_MARKER``; return ``(lines, row, col)``."""
        for row, line in enumerate(lines):
            pos = line.find(CURSOR_MARKER)
            if pos != -1:
                lines = list(lines)
                lines[row] = line[:pos] + line[pos + len(CURSOR_MARKER):]
                return lines, row, visible_width(line[:pos])
        return lines, max(0, len(lines) - 1), 0

    def do_render(self) -> None:
        width = self.terminal.columns
        height = self.terminal.rows
        if width <= 0 or height <= 0:
            return

        lines = self.render(width)
        if len(lines) > height:
            lines = lines[-height:]
        lines, cursor_row, cursor_col = self._extract_cursor_position(lines)

        full = width != self._previous_width
        if full:
            self._full_redraw_count += 1

        out: list[str] = []
        if self._cursor_row > 0:
            out.append(f"\x1b[{self._cursor_row}A")
        out.append("\r")

        if full:
            out.append("\x1b[J")
            out.append("\r\n".join(line + "\x1b[0m\x1b[K" for line in lines))
            last_row = len(lines) - 1
        else:
            total = max(len(lines), len(self._previous_lines))
            for i in range(total):
                if i > 0:
                    out.append("\r\n" if i >= len(self._previous_lines) else "\x1b[1B\r")
                new = lines[i] if i < len(lines) else None
                old = self._previous_lines[i] if i < len(self._previous_lines) else None
                if new is None:
                    out.append("\x1b[2K")
                elif new != old:
                    out.append("\r" + new + "\x1b[0m\x1b[K")
            last_row = total - 1

        self._previous_lines = lines
        self._previous_width = width
        self._cursor_row = cursor_row

        delta = max(0, last_row) - cursor_row
        if delta > 0:
            out.append(f"\x1b[{delta}A")
        elif delta < 0:
            out.append(f"\x1b[{-delta}B")
        out.append("\r")
        if cursor_col > 0:
            out.append(f"\x1b[{cursor_col}C")
        if self._show_hardware_cursor:
            out.append("\x1b[?25h")

        self.terminal.write("".join(out))
