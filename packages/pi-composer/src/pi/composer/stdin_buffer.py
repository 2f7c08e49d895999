"""StdinBuffer splits raw stdin chunks into individual key sequences.

A single ``read()`` from a terminal can hold several keys ("hi" typed
quickly), half an escape sequence, or a whole bracketed paste.  The composer
classifies one key at a time, so chunks are split here: complete sequences
go to ``on_data``, paste payloads to ``on_paste``, and a trailing partial
escape sequence is held back until more bytes arrive or a short timeout
expires (a lone ESC press).
"""

from __future__ import annotations

import asyncio
import re
from typing import Callable

ESC = "\x1b"
BRACKETED_PASTE_START = "\x1b[200~"
BRACKETED_PASTE_END = "\x1b[201~"

_SGR_MOUSE_RE = re.compile(r"^<\d+;\d+;\d+[Mm]$")


def sequence_status(data: str) -> str:
    """Classify *data* as ``"complete"``, ``"incomplete"`` or ``"not-escape"``."""
    if not data.startswith(ESC):
        return "not-escape"
    if len(data) == 1:
        return "incomplete"

    introducer = data[1]
    if introducer == "[":
        if data.startswith(ESC + "[M"):
            # X10 mouse report: ESC [ M b x y
            return "complete" if len(data) >= 6 else "incomplete"
        if len(data) < 3:
            return "incomplete"
        payload = data[2:]
        if not 0x40 <= ord(payload[-1]) <= 0x7E:
            return "incomplete"
        if payload.startswith("<") and not _SGR_MOUSE_RE.match(payload):
            return "incomplete"
        return "complete"

    if introducer == "]":
        return "complete" if data.endswith((ESC + "\\", "\x07")) else "incomplete"

    if introducer in ("P", "_"):
        return "complete" if data.endswith(ESC + "\\") else "incomplete"

    if introducer == "O":
        return "complete" if len(data) >= 3 else "incomplete"

    # ESC followed by one character: a meta/alt key
    return "complete"


def split_sequences(buffer: str) -> tuple[list[str], str]:
    """Split *buffer* into complete sequences plus an unfinished remainder."""
    sequences: list[str] = []
    pos = 0
    while pos < len(buffer):
        if buffer[pos] != ESC:
            sequences.append(buffer[pos])
            pos += 1
            continue

        # ESC ESC <seq> is alt+<seq>; keep the pair together
        start = pos
        if buffer.startswith(ESC + ESC, pos) and pos + 2 < len(buffer):
            pos += 1

        end = pos + 1
        while True:
            candidate = buffer[pos:end]
            if sequence_status(candidate) == "complete":
                sequences.append(buffer[start:end])
                pos = end
                break
            if end >= len(buffer):
                return sequences, buffer[start:]
            end += 1
    return sequences, ""


class StdinBuffer:
    """Buffers stdin input and emits complete sequences."""

    def __init__(self, *, timeout: float = 0.01) -> None:
        self._buffer = ""
        self._timeout = timeout
        self._timeout_handle: asyncio.TimerHandle | None = None
        self._paste_mode = False
        self._paste_buffer = ""
        self._on_data: Callable[[str], None] | None = None
        self._on_paste: Callable[[str], None] | None = None

    def on_data(self, callback: Callable[[str], None]) -> None:
        """Set the callback for complete key sequences."""
        self._on_data = callback

    def on_paste(self, callback: Callable[[str], None]) -> None:
        """Set the callback for bracketed-paste payloads."""
        self._on_paste = callback

    def _emit_data(self, data: str) -> None:
        if self._on_data is not None:
            self._on_data(data)

    def _emit_paste(self, data: str) -> None:
        if self._on_paste is not None:
            self._on_paste(data)

    def process(self, data: str) -> None:
        """Feed a raw chunk read from stdin."""
        self._cancel_timeout()

        if self._paste_mode:
            self._paste_buffer += data
            self._finish_paste_if_complete()
            return

        self._buffer += data
        start = self._buffer.find(BRACKETED_PASTE_START)
        if start != -1:
            before = self._buffer[:start]
            self._paste_buffer = self._buffer[start + len(BRACKETED_PASTE_START):]
            self._buffer = ""
            sequences, _ = split_sequences(before)
            for sequence in sequences:
                self._emit_data(sequence)
            self._paste_mode = True
            self._finish_paste_if_complete()
            return

        sequences, self._buffer = split_sequences(self._buffer)
        for sequence in sequences:
            self._emit_data(sequence)

        if self._buffer:
            try:
                loop = asyncio.get_running_loop()
                self._timeout_handle = loop.call_later(self._timeout, self._flush_timeout)
            except RuntimeError:
                # No loop to wait on: a partial sequence is all we will get
                for sequence in self.flush():
                    self._emit_data(sequence)

    def _finish_paste_if_complete(self) -> None:
        end = self._paste_buffer.find(BRACKETED_PASTE_END)
        if end == -1:
            return
        content = self._paste_buffer[:end]
        remaining = self._paste_buffer[end + len(BRACKETED_PASTE_END):]
        self._paste_mode = False
        self._paste_buffer = ""
        self._emit_paste(content)
        if remaining:
            self.process(remaining)

    def _cancel_timeout(self) -> None:
        if self._timeout_handle is not None:
            self._timeout_handle.cancel()
            self._timeout_handle = None

    def _flush_timeout(self) -> None:
        self._timeout_handle = None
        for sequence in self.flush():
            self._emit_data(sequence)

    def flush(self) -> list[str]:
        """Return and clear any held-back partial sequence."""
        self._cancel_timeout()
        if not self._buffer:
            return []
        pending, self._buffer = self._buffer, ""
        return [pending]

    def clear(self) -> None:
        self._cancel_timeout()
        self._buffer = ""
        self._paste_mode = False
        self._paste_buffer = ""

    def get_buffer(self) -> str:
        return self._buffer

    def destroy(self) -> None:
        self.clear()
