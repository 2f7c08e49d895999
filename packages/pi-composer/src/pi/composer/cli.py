"""CLI entry point for pi-composer. Uses Click for argument parsing.

Runs a small chat screen: a transcript, a status line, the composer and a
help line.  A simulated agent keeps the session busy for a few seconds after
every message so the busy gate can be tried out.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import os
import time
from collections.abc import Callable

import click

from pi.composer.composer import Composer
from pi.composer.config import ComposerSettings, load_settings
from pi.composer.events import (
    ComposerEvent,
    ErrorEvent,
    FocusChangedEvent,
    Session,
    SessionSelectedEvent,
    SubmitEvent,
    WarningEvent,
)
from pi.composer.keybindings import binding
from pi.composer.keys import matches_key
from pi.composer.layout import format_bindings
from pi.composer.terminal import ProcessTerminal, Terminal
from pi.composer.tui import TUI
from pi.composer.utils import bold, dim, fg, visible_width, word_wrap_line

logger = logging.getLogger(__name__)

DEMO_SESSION = Session(id="demo", title="Demo chat")
QUIT_BINDING = binding("ctrl+c", "quit")

_YELLOW = 3
_RED = 1
_CYAN = 6


def _run(coro):
    """Run an async function synchronously."""
    return asyncio.run(coro)


# ---------------------------------------------------------------------------
# Simulated agent
# ---------------------------------------------------------------------------


class SimulatedAgent:
    """Pretends to work on each message for a fixed number of seconds."""

    def __init__(self, busy_seconds: float, clock: Callable[[], float] = time.monotonic) -> None:
        self.busy_seconds = busy_seconds
        self._clock = clock
        self._busy_until: dict[str, float] = {}

    def is_session_busy(self, session_id: str) -> bool:
        return self._clock() < self._busy_until.get(session_id, 0.0)

    def start_turn(self, session_id: str) -> None:
        self._busy_until[session_id] = self._clock() + self.busy_seconds


# ---------------------------------------------------------------------------
# Components
# ---------------------------------------------------------------------------


class Transcript:
    """Submitted messages, replies and notifications, oldest first."""

    def __init__(self, max_entries: int = 200) -> None:
        self.max_entries = max_entries
        self.entries: list[tuple[str, str]] = []

    def add(self, label: str, text: str) -> None:
        self.entries.append((label, text))
        del self.entries[: -self.max_entries]

    def invalidate(self) -> None:
        pass

    def render(self, width: int) -> list[str]:
        lines: list[str] = []
        for label, text in self.entries:
            indent = " " * (visible_width(label) + 2)
            wrap_width = max(1, width - len(indent))
            first = True
            for logical in text.split("\n"):
                for chunk in word_wrap_line(logical, wrap_width):
                    prefix = f"{label}: " if first else indent
                    lines.append(prefix + chunk.text.rstrip())
                    first = False
        return lines


class StatusLine:
    def __init__(self, composer: Composer, agent: SimulatedAgent) -> None:
        self.composer = composer
        self.agent = agent

    def invalidate(self) -> None:
        pass

    def render(self, width: int) -> list[str]:
        session = self.composer.session
        parts = [session.title or session.id, self.composer.mode.value]
        if self.agent.is_session_busy(session.id):
            parts.append(fg(_YELLOW, "agent working"))
        return [dim("─" * width), " " + dim(" · ").join(parts)]


class HelpLine:
    """As many bindings for the composer's current mode as fit on one line."""

    def __init__(self, composer: Composer) -> None:
        self.composer = composer

    def invalidate(self) -> None:
        pass

    def render(self, width: int) -> list[str]:
        shown = []
        for b in [QUIT_BINDING, *self.composer.binding_keys()]:
            if visible_width(" " + format_bindings([*shown, b])) > width:
                break
            shown.append(b)
        return [" " + format_bindings(shown)]


# ---------------------------------------------------------------------------
# Application
# ---------------------------------------------------------------------------


class ComposerDemo:
    def __init__(
        self,
        settings: ComposerSettings,
        busy_seconds: float,
        terminal: Terminal | None = None,
    ) -> None:
        self.settings = settings
        self.terminal = terminal or ProcessTerminal()
        self.tui = TUI(self.terminal)
        self.agent = SimulatedAgent(busy_seconds)
        self.composer = Composer(self.agent, self.tui, settings=settings)
        self.transcript = Transcript()

        self.tui.add_child(self.transcript)
        self.tui.add_child(StatusLine(self.composer, self.agent))
        self.tui.add_child(self.composer)
        self.tui.add_child(HelpLine(self.composer))
        self.tui.set_focus(self.composer)
        self.tui.on_input = self._on_global_input
        self.tui.on_resize = self._on_resize

        self.composer.subscribe(self._on_composer_event)
        self.composer.set_request_render(self.tui.request_render)
        self.composer.handle_event(SessionSelectedEvent(DEMO_SESSION))

        self._done: asyncio.Future[None] | None = None

    async def run(self) -> None:
        loop = asyncio.get_running_loop()
        self._done = loop.create_future()
        self.composer.set_size(self.terminal.columns, self.settings.height)
        self.tui.start()
        self.composer.init()
        try:
            await self._done
        finally:
            task = self.composer.editor_task
            if task is not None and not task.done():
                task.cancel()
            self.tui.stop()
            if task is not None:
                # Reap the editor before the loop closes
                with contextlib.suppress(asyncio.CancelledError):
                    await task

    def quit(self) -> None:
        if self._done is not None and not self._done.done():
            self._done.set_result(None)

    def _on_global_input(self, data: str) -> bool:
        if matches_key(data, "ctrl+c"):
            self.quit()
            return True
        return False

    def _on_resize(self, columns: int, rows: int) -> None:
        self.composer.set_size(columns, self.settings.height)

    def _on_composer_event(self, event: ComposerEvent) -> None:
        if isinstance(event, SubmitEvent):
            self.transcript.add(bold("you"), event.text)
            self._start_agent_turn(event.text)
        elif isinstance(event, WarningEvent):
            self.transcript.add(fg(_YELLOW, "warning"), event.message)
        elif isinstance(event, ErrorEvent):
            self.transcript.add(fg(_RED, "error"), event.message)
        elif isinstance(event, FocusChangedEvent):
            logger.debug("Composer %s", "focused" if event.focused else "blurred")
        self.tui.request_render()

    def _start_agent_turn(self, text: str) -> None:
        session_id = self.composer.session.id
        self.agent.start_turn(session_id)
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return
        words = len(text.split())
        loop.call_later(self.agent.busy_seconds, self._finish_agent_turn, words)

    def _finish_agent_turn(self, words: int) -> None:
        self.transcript.add(fg(_CYAN, "agent"), f"Read your message ({words} words). Your turn.")
        self.tui.request_render()


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def configure_logging(log_file: str | None) -> None:
    """Log to *log_file* if given; the terminal belongs to the UI."""
    package_logger = logging.getLogger("pi.composer")
    if not log_file:
        package_logger.addHandler(logging.NullHandler())
        return
    logging.basicConfig(
        filename=log_file,
        level=logging.DEBUG,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )


@click.command()
@click.option("--editor", default=None, help="Editor command (default: $EDITOR, then nvim)")
@click.option("--busy-seconds", type=float, default=3.0, show_default=True,
              help="How long the simulated agent works on each message")
@click.option("--log-file", default=None, envvar="PI_COMPOSER_LOG", help="Write debug logs to this file")
@click.option("--config", "config_path", default=None, help="Settings JSON (default: ~/.pi/composer.json)")
def main(editor, busy_seconds, log_file, config_path):
    """Chat composer with an external editor hand-off."""
    configure_logging(log_file)
    settings = load_settings(config_path, overrides={"editor": editor})
    logger.debug("Starting composer demo (pid %d, editor %s)", os.getpid(), settings.editor_command())
    _run(ComposerDemo(settings, busy_seconds).run())


if __name__ == "__main__":
    main()
