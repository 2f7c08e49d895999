"""Composer keybindings: per-focus-mode action tables and the text area keymap."""

from __future__ import annotations

import enum
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Literal

from pi.composer.keys import KeyId, matches_key


class FocusMode(enum.Enum):
    """Whether the composer owns keystrokes or the surrounding UI does."""

    FOCUSED = "focused"
    BLURRED = "blurred"


@dataclass(frozen=True)
class Binding:
    """Key ids bound to one action, plus the text shown in help bars."""

    keys: tuple[KeyId, ...]
    help_key: str
    help_desc: str

    def matches(self, data: str) -> bool:
        return any(matches_key(data, key) for key in self.keys)


def binding(keys: KeyId | list[KeyId] | tuple[KeyId, ...], desc: str, help_key: str | None = None) -> Binding:
    key_tuple = (keys,) if isinstance(keys, str) else tuple(keys)
    return Binding(keys=key_tuple, help_key=help_key or "/".join(key_tuple), help_desc=desc)


# ---------------------------------------------------------------------------
# Composer actions
# ---------------------------------------------------------------------------

ComposerAction = Literal["send", "openEditor", "blur", "focus"]

# Declaration order is resolution order (after openEditor) and help order.
DEFAULT_COMPOSER_KEYBINDINGS: dict[FocusMode, dict[ComposerAction, Binding]] = {
    FocusMode.FOCUSED: {
        "send": binding("ctrl+s", "send message"),
        "openEditor": binding("ctrl+e", "open editor"),
        "blur": binding("esc", "focus messages"),
    },
    FocusMode.BLURRED: {
        "send": binding(["ctrl+s", "enter"], "send message"),
        "focus": binding("i", "focus editor"),
        "openEditor": binding("ctrl+e", "open editor"),
    },
}

# {"focused": {"send": ["ctrl+enter"]}, "blurred": {...}}
ComposerKeybindingsConfig = Mapping[str, Mapping[str, "KeyId | list[KeyId]"]]


class ComposerKeybindings:
    """Resolves raw key input to a composer action for a given focus mode."""

    def __init__(self, config: ComposerKeybindingsConfig | None = None) -> None:
        self._tables: dict[FocusMode, dict[ComposerAction, Binding]] = {}
        self._build_tables(config or {})

    def _build_tables(self, config: ComposerKeybindingsConfig) -> None:
        self._tables = {mode: dict(table) for mode, table in DEFAULT_COMPOSER_KEYBINDINGS.items()}
        for mode_name, overrides in config.items():
            mode = FocusMode(mode_name)
            table = self._tables[mode]
            for action, keys in overrides.items():
                if action not in table:
                    raise ValueError(f"Unknown {mode.value} composer action: {action!r}")
                table[action] = binding(keys, table[action].help_desc)  # type: ignore[index]

    def resolve(self, data: str, mode: FocusMode) -> ComposerAction | None:
        """Return the action *data* triggers in *mode*, or ``None``.

        ``openEditor`` is checked first so it wins over any other binding
        sharing its chord.
        """
        table = self._tables[mode]
        open_editor = table.get("openEditor")
        if open_editor is not None and open_editor.matches(data):
            return "openEditor"
        for action, entry in table.items():
            if action != "openEditor" and entry.matches(data):
                return action
        return None

    def bindings(self, mode: FocusMode) -> list[Binding]:
        return list(self._tables[mode].values())

    def get_keys(self, mode: FocusMode, action: ComposerAction) -> list[KeyId]:
        entry = self._tables[mode].get(action)
        return list(entry.keys) if entry is not None else []

    def set_config(self, config: ComposerKeybindingsConfig) -> None:
        self._build_tables(config)


_global_composer_keybindings: ComposerKeybindings | None = None


def get_composer_keybindings() -> ComposerKeybindings:
    global _global_composer_keybindings
    if _global_composer_keybindings is None:
        _global_composer_keybindings = ComposerKeybindings()
    return _global_composer_keybindings


def set_composer_keybindings(manager: ComposerKeybindings) -> None:
    global _global_composer_keybindings
    _global_composer_keybindings = manager


# ---------------------------------------------------------------------------
# Text area editing keymap
# ---------------------------------------------------------------------------

TextAreaAction = Literal[
    "cursorUp",
    "cursorDown",
    "cursorLeft",
    "cursorRight",
    "cursorWordLeft",
    "cursorWordRight",
    "cursorLineStart",
    "cursorLineEnd",
    "deleteCharBackward",
    "deleteCharForward",
    "deleteWordBackward",
    "deleteWordForward",
    "deleteToLineStart",
    "deleteToLineEnd",
    "newLine",
]

DEFAULT_TEXTAREA_KEYBINDINGS: dict[TextAreaAction, Binding] = {
    "cursorUp": binding(["up", "ctrl+p"], "previous line"),
    "cursorDown": binding(["down", "ctrl+n"], "next line"),
    "cursorLeft": binding(["left", "ctrl+b"], "character backward"),
    "cursorRight": binding(["right", "ctrl+f"], "character forward"),
    "cursorWordLeft": binding(["alt+left", "ctrl+left", "alt+b"], "word backward"),
    "cursorWordRight": binding(["alt+right", "ctrl+right", "alt+f"], "word forward"),
    "cursorLineStart": binding(["home", "ctrl+a"], "line start"),
    "cursorLineEnd": binding(["end", "ctrl+e"], "line end"),
    "deleteCharBackward": binding(["backspace", "ctrl+h"], "delete character backward"),
    "deleteCharForward": binding(["delete", "ctrl+d"], "delete character forward"),
    "deleteWordBackward": binding(["alt+backspace", "ctrl+w"], "delete word backward"),
    "deleteWordForward": binding(["alt+delete", "alt+d"], "delete word forward"),
    "deleteToLineStart": binding("ctrl+u", "delete before cursor"),
    "deleteToLineEnd": binding("ctrl+k", "delete after cursor"),
    "newLine": binding(["enter", "ctrl+m", "shift+enter"], "insert newline"),
}


class TextAreaKeybindings:
    """Editing keymap for :class:`pi.composer.textarea.TextArea`."""

    def __init__(self, config: Mapping[str, KeyId | list[KeyId]] | None = None) -> None:
        self._bindings: dict[TextAreaAction, Binding] = dict(DEFAULT_TEXTAREA_KEYBINDINGS)
        for action, keys in (config or {}).items():
            if action not in self._bindings:
                raise ValueError(f"Unknown text area action: {action!r}")
            current = self._bindings[action]  # type: ignore[index]
            self._bindings[action] = binding(keys, current.help_desc)  # type: ignore[index]

    def matches(self, data: str, action: TextAreaAction) -> bool:
        entry = self._bindings.get(action)
        return entry is not None and entry.matches(data)

    def bindings(self) -> list[Binding]:
        return list(self._bindings.values())
