"""Tests for pi.composer.tui -- rendering, input dispatch and the terminal hand-off.

Uses the VirtualTerminal to capture output; ``run_external`` is exercised
with real subprocesses of the running interpreter.
"""

from __future__ import annotations

import asyncio
import sys

import pytest

from pi.composer.tui import CURSOR_MARKER, TUI, Container, is_focusable

from .virtual_terminal import VirtualTerminal


# ---------------------------------------------------------------------------
# Minimal test components
# ---------------------------------------------------------------------------


class SimpleText:
    def __init__(self, text: str) -> None:
        self.text = text

    def render(self, width: int) -> list[str]:
        return [self.text]

    def invalidate(self) -> None:
        pass


class InputRecorder:
    """Focusable component that records the input it receives."""

    def __init__(self) -> None:
        self.focused = False
        self.received: list[str] = []

    def handle_input(self, data: str) -> None:
        self.received.append(data)

    def render(self, width: int) -> list[str]:
        return ["> " + "".join(self.received) + CURSOR_MARKER]

    def invalidate(self) -> None:
        pass


def started_tui(*children, rows: int = 10, columns: int = 40) -> tuple[TUI, VirtualTerminal]:
    terminal = VirtualTerminal(rows=rows, columns=columns)
    tui = TUI(terminal)
    for child in children:
        tui.add_child(child)
    tui.start()
    return tui, terminal


# ---------------------------------------------------------------------------
# Container
# ---------------------------------------------------------------------------


class TestContainer:
    def test_stacks_children(self):
        container = Container()
        container.add_child(SimpleText("a"))
        container.add_child(SimpleText("b"))
        assert container.render(10) == ["a", "b"]

    def test_remove_and_clear(self):
        container = Container()
        first = SimpleText("a")
        container.add_child(first)
        container.add_child(SimpleText("b"))
        container.remove_child(first)
        assert container.render(10) == ["b"]
        container.clear()
        assert container.render(10) == []

    def test_is_focusable(self):
        assert is_focusable(InputRecorder())
        assert not is_focusable(SimpleText("a"))
        assert not is_focusable(None)


# ---------------------------------------------------------------------------
# Rendering
# ---------------------------------------------------------------------------


class TestRender:
    def test_start_renders_without_loop(self):
        tui, terminal = started_tui(SimpleText("hello"), SimpleText("world"))
        assert "hello" in terminal.output
        assert "world" in terminal.output
        assert tui.full_redraws == 1

    def test_start_hides_cursor(self):
        _, terminal = started_tui(SimpleText("x"))
        assert not terminal.cursor_visible

    def test_unchanged_lines_are_not_rewritten(self):
        changing = SimpleText("one")
        tui, terminal = started_tui(SimpleText("static line"), changing)
        terminal.clear_buffer()
        changing.text = "two"
        tui.request_render()
        assert "two" in terminal.output
        assert "static line" not in terminal.output
        assert tui.full_redraws == 1

    def test_width_change_forces_full_redraw(self):
        tui, terminal = started_tui(SimpleText("x"))
        terminal.simulate_resize(columns=60)
        assert tui.full_redraws == 2

    def test_resize_callback(self):
        tui, terminal = started_tui(SimpleText("x"))
        sizes: list[tuple[int, int]] = []
        tui.on_resize = lambda cols, rows: sizes.append((cols, rows))
        terminal.simulate_resize(rows=5, columns=30)
        assert sizes == [(30, 5)]

    def test_cursor_marker_is_not_written(self):
        recorder = InputRecorder()
        _, terminal = started_tui(recorder)
        assert CURSOR_MARKER not in terminal.output

    def test_tall_frame_keeps_last_rows(self):
        tui, terminal = started_tui(*(SimpleText(f"line{i}") for i in range(8)), rows=3)
        assert "line7" in terminal.output
        assert "line0" not in terminal.output

    def test_stop_shows_cursor_and_releases_terminal(self):
        tui, terminal = started_tui(SimpleText("x"))
        tui.stop()
        assert terminal.cursor_visible
        assert not terminal.started
        tui.stop()
        assert terminal.stop_count == 1


# ---------------------------------------------------------------------------
# Input
# ---------------------------------------------------------------------------


class TestInput:
    def test_routes_to_focused_component(self):
        recorder = InputRecorder()
        tui, terminal = started_tui(recorder)
        tui.set_focus(recorder)
        terminal.simulate_input("a")
        assert recorder.received == ["a"]
        assert tui.focused_component is recorder

    def test_no_focus_drops_input(self):
        recorder = InputRecorder()
        _, terminal = started_tui(recorder)
        terminal.simulate_input("a")
        assert recorder.received == []

    def test_key_release_is_skipped(self):
        recorder = InputRecorder()
        tui, terminal = started_tui(recorder)
        tui.set_focus(recorder)
        terminal.simulate_input("\x1b[97;1:3u")
        assert recorder.received == []

    def test_on_input_can_consume(self):
        recorder = InputRecorder()
        tui, terminal = started_tui(recorder)
        tui.set_focus(recorder)
        tui.on_input = lambda data: data == "\x03"
        terminal.simulate_input("\x03")
        terminal.simulate_input("b")
        assert recorder.received == ["b"]

    def test_input_after_stop_is_ignored(self):
        recorder = InputRecorder()
        tui, _ = started_tui(recorder)
        tui.set_focus(recorder)
        tui.stop()
        tui.handle_input("a")
        assert recorder.received == []


# ---------------------------------------------------------------------------
# run_external
# ---------------------------------------------------------------------------


class TestRunExternal:
    @pytest.mark.asyncio
    async def test_exit_code_and_restart(self):
        tui, terminal = started_tui(SimpleText("before"))
        await asyncio.sleep(0)
        redraws = tui.full_redraws
        code = await tui.run_external([sys.executable, "-c", "pass"])
        await asyncio.sleep(0)
        assert code == 0
        assert terminal.stop_count == 1
        assert terminal.start_count == 2
        assert terminal.clear_count == 1
        assert terminal.started
        assert tui.full_redraws == redraws + 1

    @pytest.mark.asyncio
    async def test_nonzero_exit_code(self):
        tui, terminal = started_tui(SimpleText("x"))
        code = await tui.run_external([sys.executable, "-c", "import sys; sys.exit(3)"])
        assert code == 3
        assert terminal.started

    @pytest.mark.asyncio
    async def test_spawn_failure_propagates_and_restores(self):
        tui, terminal = started_tui(SimpleText("x"))
        with pytest.raises(OSError):
            await tui.run_external(["/nonexistent/editor-binary"])
        assert terminal.started
        assert terminal.start_count == 2
        assert not tui.suspended

    @pytest.mark.asyncio
    async def test_suspended_while_child_runs(self):
        recorder = InputRecorder()
        tui, terminal = started_tui(recorder)
        tui.set_focus(recorder)
        seen: list[bool] = []

        async def probe():
            await asyncio.sleep(0.05)
            seen.append(tui.suspended)
            seen.append(terminal.started)
            # Keys cannot reach the component while the child owns the terminal
            tui.handle_input("x")

        probe_task = asyncio.create_task(probe())
        await tui.run_external([sys.executable, "-c", "import time; time.sleep(0.3)"])
        await probe_task
        assert seen == [True, False]
        assert recorder.received == []
        assert not tui.suspended

    @pytest.mark.asyncio
    async def test_no_frames_drawn_while_suspended(self):
        text = SimpleText("before")
        tui, terminal = started_tui(text)
        await asyncio.sleep(0)

        async def change():
            await asyncio.sleep(0.05)
            terminal.clear_buffer()
            text.text = "during"
            tui.request_render()
            await asyncio.sleep(0)
            return terminal.output

        change_task = asyncio.create_task(change())
        await tui.run_external([sys.executable, "-c", "import time; time.sleep(0.3)"])
        assert "during" not in await change_task
        await asyncio.sleep(0)
        assert "during" in terminal.output

    @pytest.mark.asyncio
    async def test_stop_during_child_keeps_terminal_released(self):
        tui, terminal = started_tui(SimpleText("x"))
        task = asyncio.create_task(
            tui.run_external([sys.executable, "-c", "import time; time.sleep(0.3)"])
        )
        await asyncio.sleep(0.05)
        tui.stop()
        assert await task == 0
        assert not terminal.started
        assert terminal.start_count == 1
        assert not tui.suspended

    @pytest.mark.asyncio
    async def test_cancel_kills_child_and_keeps_terminal_released(self, tmp_path):
        marker = tmp_path / "finished"
        code = f"import time, pathlib; time.sleep(30); pathlib.Path({str(marker)!r}).touch()"
        tui, terminal = started_tui(SimpleText("x"))
        task = asyncio.create_task(tui.run_external([sys.executable, "-c", code]))
        await asyncio.sleep(0.1)
        task.cancel()
        tui.stop()
        with pytest.raises(asyncio.CancelledError):
            await task
        assert not terminal.started
        assert terminal.start_count == 1
        assert not marker.exists()

    @pytest.mark.asyncio
    async def test_cancel_while_running_resumes_terminal(self):
        tui, terminal = started_tui(SimpleText("x"))
        task = asyncio.create_task(
            tui.run_external([sys.executable, "-c", "import time; time.sleep(30)"])
        )
        await asyncio.sleep(0.1)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task
        assert terminal.started
        assert terminal.start_count == 2

    @pytest.mark.asyncio
    async def test_not_started_tui_stays_stopped(self):
        terminal = VirtualTerminal()
        tui = TUI(terminal)
        code = await tui.run_external([sys.executable, "-c", "pass"])
        assert code == 0
        assert terminal.start_count == 0
        assert terminal.stop_count == 0
