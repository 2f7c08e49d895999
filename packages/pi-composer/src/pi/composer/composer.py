"""The chat composer: a text area with focused and blurred modes.

Focused, keys edit the draft (``ctrl+s`` sends, ``esc`` hands focus back to
the surrounding UI).  Blurred, the composer still sees keys first: ``i``
takes focus back and ``enter``/``ctrl+s`` send the draft as-is.  ``ctrl+e``
opens the draft's replacement in ``$EDITOR`` in either mode.  Sending and
opening the editor are refused while the session's agent is busy.

The host talks to the composer through :meth:`Composer.handle_input`,
:meth:`Composer.handle_event` and :meth:`Composer.set_size`, and listens
through :meth:`Composer.subscribe`.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable

from pi.composer.config import ComposerSettings
from pi.composer.errors import ExternalEditorError, SessionBusyWarning
from pi.composer.events import (
    BusyChecker,
    ComposerEvent,
    ComposerListener,
    ErrorEvent,
    EventEmitter,
    FocusChangedEvent,
    FocusRequestEvent,
    InboundEvent,
    Session,
    SessionSelectedEvent,
    SubmitEvent,
    WarningEvent,
)
from pi.composer.external_editor import ExternalEditorLauncher, ExternalProcessRunner, LaunchOutcome
from pi.composer.keybindings import Binding, ComposerKeybindings, FocusMode, TextAreaKeybindings, binding
from pi.composer.layout import negotiate, prompt_margin, render_view
from pi.composer.textarea import TextArea

logger = logging.getLogger(__name__)


class Composer:
    """Dual-mode chat input component."""

    def __init__(
        self,
        busy: BusyChecker,
        runner: ExternalProcessRunner,
        *,
        settings: ComposerSettings | None = None,
        keybindings: ComposerKeybindings | None = None,
        textarea: TextArea | None = None,
    ) -> None:
        self.settings = settings or ComposerSettings()
        keymap = self.settings.keybindings
        self.keybindings = keybindings or ComposerKeybindings(
            {mode: keymap[mode] for mode in ("focused", "blurred") if mode in keymap}
        )
        self.textarea = textarea or TextArea(
            keybindings=TextAreaKeybindings(keymap.get("textarea")),
            blink_interval=self.settings.blink_interval,
        )
        self.launcher = ExternalEditorLauncher(runner, self.settings)
        self.session = Session(id="")
        self.editor_task: asyncio.Task[None] | None = None

        self._busy = busy
        self._events = EventEmitter()
        self._width = 0
        self._height = 1

        # Starts focused, as a freshly opened chat does
        self.textarea.focus()

    # -- Events ----------------------------------------------------------------

    def subscribe(self, fn: ComposerListener) -> Callable[[], None]:
        """Subscribe to outbound events. Returns an unsubscribe function."""
        return self._events.subscribe(fn)

    def _emit(self, event: ComposerEvent) -> None:
        logger.debug("Composer event: %s", event)
        self._events.emit(event)

    def set_request_render(self, fn: Callable[[], None] | None) -> None:
        """Let cursor blinks trigger host repaints."""
        self.textarea.request_render = fn

    # -- State -----------------------------------------------------------------

    @property
    def mode(self) -> FocusMode:
        return FocusMode.FOCUSED if self.textarea.focused else FocusMode.BLURRED

    @property
    def focused(self) -> bool:
        return self.textarea.focused

    @property
    def value(self) -> str:
        return self.textarea.value

    def init(self) -> None:
        """Start the cursor blink; call once the host loop is running."""
        if self.textarea.focused:
            self.textarea.cursor.start()

    # -- Focus transitions -----------------------------------------------------

    def focus(self) -> None:
        if self.textarea.focused:
            return
        self.textarea.focus()
        self._emit(FocusChangedEvent(True))

    def blur(self) -> None:
        if not self.textarea.focused:
            return
        self.textarea.blur()
        self._emit(FocusChangedEvent(False))

    # -- Inbound ---------------------------------------------------------------

    def handle_event(self, event: InboundEvent) -> None:
        if isinstance(event, SessionSelectedEvent):
            if event.session.id != self.session.id:
                logger.debug("Session changed: %r -> %r", self.session.id, event.session.id)
                self.session = event.session
        elif isinstance(event, FocusRequestEvent):
            if event.focused:
                self.focus()
            else:
                self.blur()

    def handle_input(self, data: str) -> None:
        action = self.keybindings.resolve(data, self.mode)
        if action == "openEditor":
            self.open_external_editor()
        elif action == "send":
            self.send()
        elif action == "blur":
            self.blur()
        elif action == "focus":
            self.focus()
        else:
            self.textarea.handle_input(data)

    # -- Submit ----------------------------------------------------------------

    def _check_busy(self) -> bool:
        if self._busy.is_session_busy(self.session.id):
            self._emit(WarningEvent(SessionBusyWarning(self.session.id).message))
            return True
        return False

    def send(self) -> None:
        """Submit the draft unless the session is busy or the draft is blank."""
        if self._check_busy():
            return
        text = self.textarea.value
        # Whitespace-only counts as empty; the draft stays as typed
        if not text.strip():
            return
        self._submit(text)

    def _submit(self, text: str) -> None:
        self.textarea.reset()
        self.blur()
        self._emit(SubmitEvent(text))

    # -- External editor -------------------------------------------------------

    def open_external_editor(self) -> None:
        """Start an external editing session unless busy or one is running."""
        if self._check_busy():
            return
        if self.editor_task is not None and not self.editor_task.done():
            logger.debug("External editor already open")
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            self._emit(ErrorEvent(ExternalEditorError(self.launcher.settings.editor_command(),
                                                      cause=RuntimeError("no running event loop"))))
            return
        self.editor_task = loop.create_task(self._run_external_editor())

    async def _run_external_editor(self) -> None:
        outcome = await self.launcher.launch()
        self._apply_outcome(outcome)

    def _apply_outcome(self, outcome: LaunchOutcome) -> None:
        if outcome.error is not None:
            self._emit(ErrorEvent(outcome.error))
            return

        # Editors end the file with a newline the user never typed
        text = (outcome.text or "").rstrip("\r\n")
        if not text.strip():
            return
        # The agent may have started while the editor was open; keep the text
        if self._busy.is_session_busy(self.session.id):
            self.textarea.set_value(text)
            self._emit(WarningEvent(SessionBusyWarning(self.session.id).message))
            return
        self._submit(text)

    # -- Geometry --------------------------------------------------------------

    def set_size(self, width: int, height: int) -> None:
        self._width = width
        self._height = height
        buffer_width, buffer_height = negotiate(width, height, prompt_margin(self.settings.prompt_glyph))
        self.textarea.set_width(buffer_width)
        self.textarea.set_height(buffer_height)

    def get_size(self) -> tuple[int, int]:
        return self.textarea.width, self.textarea.height

    # -- Help ------------------------------------------------------------------

    def binding_keys(self) -> list[Binding]:
        """Bindings for the current mode followed by the editing keymap.

        Editing chords the mode table claims never reach the text area, so
        they are left out of its entries.
        """
        own = self.keybindings.bindings(self.mode)
        taken = {key for b in own for key in b.keys}
        editing: list[Binding] = []
        for b in self.textarea.keybindings.bindings():
            keys = [key for key in b.keys if key not in taken]
            if len(keys) == len(b.keys):
                editing.append(b)
            elif keys:
                editing.append(binding(keys, b.help_desc))
        return own + editing

    # -- Component -------------------------------------------------------------

    def invalidate(self) -> None:
        self.textarea.invalidate()

    def render(self, width: int) -> list[str]:
        if width != self._width:
            self.set_size(width, self._height)
        return render_view(self.textarea.render(), self.settings.prompt_glyph)
