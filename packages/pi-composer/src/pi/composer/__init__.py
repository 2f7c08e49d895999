"""pi-composer: chat input component with focus modes and an external editor hand-off."""

from pi.composer.composer import Composer
from pi.composer.config import ComposerSettings, load_settings, resolve_editor
from pi.composer.errors import (
    ComposerError,
    ExternalEditorError,
    ScratchCreationError,
    ScratchReadError,
    SessionBusyWarning,
)
from pi.composer.events import (
    BusyChecker,
    ComposerEvent,
    ErrorEvent,
    FocusChangedEvent,
    FocusRequestEvent,
    Session,
    SessionSelectedEvent,
    SubmitEvent,
    WarningEvent,
)
from pi.composer.external_editor import ExternalEditorLauncher, ExternalProcessRunner, LaunchOutcome
from pi.composer.keybindings import (
    Binding,
    ComposerKeybindings,
    FocusMode,
    TextAreaKeybindings,
    get_composer_keybindings,
    set_composer_keybindings,
)
from pi.composer.keys import matches_key, parse_key
from pi.composer.layout import format_bindings, join_horizontal, negotiate, prompt_margin, render_view
from pi.composer.terminal import ProcessTerminal, Terminal
from pi.composer.textarea import TextArea
from pi.composer.tui import TUI, CURSOR_MARKER, Component, Container, Focusable

__all__ = [
    # Component
    "Composer",
    "TextArea",
    # Events
    "Session",
    "BusyChecker",
    "SessionSelectedEvent",
    "FocusRequestEvent",
    "SubmitEvent",
    "FocusChangedEvent",
    "WarningEvent",
    "ErrorEvent",
    "ComposerEvent",
    # Errors
    "ComposerError",
    "ScratchCreationError",
    "ExternalEditorError",
    "ScratchReadError",
    "SessionBusyWarning",
    # External editor
    "ExternalEditorLauncher",
    "ExternalProcessRunner",
    "LaunchOutcome",
    # Keybindings
    "Binding",
    "FocusMode",
    "ComposerKeybindings",
    "TextAreaKeybindings",
    "get_composer_keybindings",
    "set_composer_keybindings",
    "matches_key",
    "parse_key",
    # Layout
    "negotiate",
    "prompt_margin",
    "render_view",
    "join_horizontal",
    "format_bindings",
    # Config
    "ComposerSettings",
    "load_settings",
    "resolve_editor",
    # Host
    "TUI",
    "CURSOR_MARKER",
    "Component",
    "Container",
    "Focusable",
    "Terminal",
    "ProcessTerminal",
]
