"""The process terminal the composer's host draws on.

``Terminal`` is the small surface the TUI needs.  ``ProcessTerminal`` puts
the controlling terminal in raw mode with bracketed paste and, when the
terminal answers the query, the Kitty keyboard protocol.

A terminal is taken and released many times over a run: the host releases
it before an external editor starts and takes it back when the editor
exits.  Every ``start`` records what it changed in a ``_Claim`` and the
matching ``stop`` undoes exactly that.
"""

from __future__ import annotations

import asyncio
import logging
import os
import re
import signal
import sys
import termios
import tty
from dataclasses import dataclass
from typing import Any, Callable, Protocol

from pi.composer.stdin_buffer import StdinBuffer

logger = logging.getLogger(__name__)

PASTE_MODE_ON = "\x1b[?2004h"
PASTE_MODE_OFF = "\x1b[?2004l"
PASTE_START = "\x1b[200~"
PASTE_END = "\x1b[201~"

# Progressive enhancement flag 1: disambiguate escape codes
KITTY_QUERY = "\x1b[?u"
KITTY_PUSH = "\x1b[>1u"
KITTY_POP = "\x1b[<u"
KITTY_REPLY = re.compile(r"\x1b\[\?\d+u")

CURSOR_HIDE = "\x1b[?25l"
CURSOR_SHOW = "\x1b[?25h"
SCREEN_CLEAR = "\x1b[2J\x1b[H"

FALLBACK_SIZE = os.terminal_size((80, 24))


class Terminal(Protocol):
    """What the TUI needs from a terminal."""

    def start(self, on_input: Callable[[str], None], on_resize: Callable[[], None]) -> None: ...

    def stop(self) -> None: ...

    def write(self, data: str) -> None: ...

    @property
    def columns(self) -> int: ...

    @property
    def rows(self) -> int: ...

    def hide_cursor(self) -> None: ...

    def show_cursor(self) -> None: ...

    def clear_screen(self) -> None: ...


@dataclass
class _Claim:
    """Terminal state changed by one ``start`` call."""

    fd: int
    saved_attrs: list[Any] | None
    saved_sigwinch: Any
    keys: StdinBuffer
    reading: bool = False
    kitty: bool = False


class ProcessTerminal:
    """Terminal on the process's own stdin/stdout."""

    def __init__(self, stdin=None, stdout=None) -> None:
        self._stdin = stdin or sys.stdin
        self._stdout = stdout or sys.stdout
        self._claim: _Claim | None = None
        self._on_input: Callable[[str], None] | None = None
        self._on_resize: Callable[[], None] | None = None

    @property
    def started(self) -> bool:
        return self._claim is not None

    @property
    def kitty_protocol_active(self) -> bool:
        return self._claim is not None and self._claim.kitty

    def _size(self) -> os.terminal_size:
        try:
            return os.get_terminal_size(self._stdout.fileno())
        except (OSError, ValueError):
            return FALLBACK_SIZE

    @property
    def columns(self) -> int:
        return self._size().columns

    @property
    def rows(self) -> int:
        return self._size().lines

    # -- Claim / release ---------------------------------------------------

    def start(self, on_input: Callable[[str], None], on_resize: Callable[[], None]) -> None:
        if self._claim is not None:
            logger.debug("Terminal already started")
            return
        self._on_input = on_input
        self._on_resize = on_resize

        fd = self._stdin.fileno()
        try:
            saved_attrs = termios.tcgetattr(fd)
        except termios.error:
            logger.warning("stdin is not a terminal; reading it cooked")
            saved_attrs = None
        else:
            tty.setraw(fd)

        keys = StdinBuffer(timeout=0.01)
        keys.on_data(self._deliver_key)
        keys.on_paste(lambda text: self._deliver(PASTE_START + text + PASTE_END))

        self._claim = _Claim(
            fd=fd,
            saved_attrs=saved_attrs,
            saved_sigwinch=signal.signal(signal.SIGWINCH, self._sigwinch),
            keys=keys,
        )
        self._claim.reading = self._add_reader(fd)
        self.write(PASTE_MODE_ON + KITTY_QUERY)

    def stop(self) -> None:
        """Undo everything the matching :meth:`start` changed."""
        claim, self._claim = self._claim, None
        if claim is None:
            return
        self.write(PASTE_MODE_OFF + (KITTY_POP if claim.kitty else ""))
        claim.keys.destroy()
        if claim.reading:
            self._remove_reader(claim.fd)
        # None: the previous handler was not installed from Python
        signal.signal(signal.SIGWINCH, claim.saved_sigwinch if claim.saved_sigwinch is not None else signal.SIG_DFL)
        if claim.saved_attrs is not None:
            termios.tcsetattr(claim.fd, termios.TCSADRAIN, claim.saved_attrs)
        self._on_input = None
        self._on_resize = None

    # -- Output ------------------------------------------------------------

    def write(self, data: str) -> None:
        try:
            self._stdout.write(data)
            self._stdout.flush()
        except OSError as e:
            logger.debug("Terminal write failed: %s", e)

    def hide_cursor(self) -> None:
        self.write(CURSOR_HIDE)

    def show_cursor(self) -> None:
        self.write(CURSOR_SHOW)

    def clear_screen(self) -> None:
        self.write(SCREEN_CLEAR)

    # -- Input -------------------------------------------------------------

    def _add_reader(self, fd: int) -> bool:
        try:
            asyncio.get_running_loop().add_reader(fd, self._readable)
        except RuntimeError:
            logger.warning("No running event loop; terminal input disabled")
            return False
        return True

    @staticmethod
    def _remove_reader(fd: int) -> None:
        try:
            asyncio.get_running_loop().remove_reader(fd)
        except RuntimeError:
            logger.debug("Loop gone before the stdin reader was removed")

    def _readable(self) -> None:
        claim = self._claim
        if claim is None:
            return
        try:
            raw = os.read(claim.fd, 4096)
        except OSError as e:
            logger.debug("stdin read failed: %s", e)
            return
        if raw:
            claim.keys.process(raw.decode("utf-8", errors="replace"))

    def _deliver_key(self, data: str) -> None:
        claim = self._claim
        if claim is not None and not claim.kitty and KITTY_REPLY.fullmatch(data):
            claim.kitty = True
            self.write(KITTY_PUSH)
            return
        self._deliver(data)

    def _deliver(self, data: str) -> None:
        if self._on_input is not None:
            self._on_input(data)

    def _sigwinch(self, signum: int, frame: object) -> None:
        if self._on_resize is not None:
            self._on_resize()
