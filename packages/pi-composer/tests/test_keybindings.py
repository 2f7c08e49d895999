"""Tests for pi.composer.keybindings -- focus-mode tables and the text area keymap."""

from __future__ import annotations

import pytest

from pi.composer.keybindings import (
    DEFAULT_COMPOSER_KEYBINDINGS,
    DEFAULT_TEXTAREA_KEYBINDINGS,
    Binding,
    ComposerKeybindings,
    FocusMode,
    TextAreaKeybindings,
    binding,
    get_composer_keybindings,
    set_composer_keybindings,
)

KEY_ENTER = "\r"
KEY_ESC = "\x1b"
KEY_CTRL_S = "\x13"
KEY_CTRL_E = "\x05"


# ---------------------------------------------------------------------------
# Binding
# ---------------------------------------------------------------------------


class TestBinding:
    def test_single_key(self):
        b = binding("ctrl+s", "send message")
        assert b == Binding(keys=("ctrl+s",), help_key="ctrl+s", help_desc="send message")

    def test_help_key_joins_keys(self):
        b = binding(["ctrl+s", "enter"], "send message")
        assert b.help_key == "ctrl+s/enter"

    def test_explicit_help_key(self):
        assert binding(["up", "ctrl+p"], "previous line", help_key="↑").help_key == "↑"

    def test_matches_any_key(self):
        b = binding(["ctrl+s", "enter"], "send message")
        assert b.matches(KEY_CTRL_S)
        assert b.matches(KEY_ENTER)
        assert not b.matches("s")


# ---------------------------------------------------------------------------
# Default tables
# ---------------------------------------------------------------------------


class TestDefaultComposerKeybindings:
    def test_focused_table(self):
        table = DEFAULT_COMPOSER_KEYBINDINGS[FocusMode.FOCUSED]
        assert list(table) == ["send", "openEditor", "blur"]
        assert table["send"].keys == ("ctrl+s",)
        assert table["openEditor"].keys == ("ctrl+e",)
        assert table["blur"].keys == ("esc",)
        assert table["blur"].help_desc == "focus messages"

    def test_blurred_table(self):
        table = DEFAULT_COMPOSER_KEYBINDINGS[FocusMode.BLURRED]
        assert list(table) == ["send", "focus", "openEditor"]
        assert table["send"].keys == ("ctrl+s", "enter")
        assert table["send"].help_key == "ctrl+s/enter"
        assert table["focus"].keys == ("i",)
        assert table["focus"].help_desc == "focus editor"

    def test_text_area_keymap_has_editing_actions(self):
        for action in [
            "cursorUp", "cursorDown", "cursorLeft", "cursorRight",
            "cursorWordLeft", "cursorWordRight",
            "cursorLineStart", "cursorLineEnd",
            "deleteCharBackward", "deleteCharForward",
            "deleteWordBackward", "deleteWordForward",
            "deleteToLineStart", "deleteToLineEnd",
            "newLine",
        ]:
            assert action in DEFAULT_TEXTAREA_KEYBINDINGS, f"Missing action: {action}"


# ---------------------------------------------------------------------------
# ComposerKeybindings.resolve
# ---------------------------------------------------------------------------


class TestResolve:
    """The table consulted is always the one for the mode passed in."""

    def setup_method(self):
        self.kb = ComposerKeybindings()

    def test_focused(self):
        assert self.kb.resolve(KEY_CTRL_S, FocusMode.FOCUSED) == "send"
        assert self.kb.resolve(KEY_CTRL_E, FocusMode.FOCUSED) == "openEditor"
        assert self.kb.resolve(KEY_ESC, FocusMode.FOCUSED) == "blur"

    def test_focused_leaves_typing_alone(self):
        assert self.kb.resolve("i", FocusMode.FOCUSED) is None
        assert self.kb.resolve(KEY_ENTER, FocusMode.FOCUSED) is None
        assert self.kb.resolve("a", FocusMode.FOCUSED) is None

    def test_blurred(self):
        assert self.kb.resolve(KEY_CTRL_S, FocusMode.BLURRED) == "send"
        assert self.kb.resolve(KEY_ENTER, FocusMode.BLURRED) == "send"
        assert self.kb.resolve("i", FocusMode.BLURRED) == "focus"
        assert self.kb.resolve(KEY_CTRL_E, FocusMode.BLURRED) == "openEditor"

    def test_blurred_has_no_blur(self):
        assert self.kb.resolve(KEY_ESC, FocusMode.BLURRED) is None

    def test_open_editor_wins_a_shared_chord(self):
        kb = ComposerKeybindings({"focused": {"send": ["ctrl+s", "ctrl+e"]}})
        assert kb.resolve(KEY_CTRL_E, FocusMode.FOCUSED) == "openEditor"
        assert kb.resolve(KEY_CTRL_S, FocusMode.FOCUSED) == "send"

    def test_kitty_encoding(self):
        assert self.kb.resolve("\x1b[115;5u", FocusMode.FOCUSED) == "send"
        assert self.kb.resolve("\x1b[27u", FocusMode.FOCUSED) == "blur"


class TestComposerKeybindingsConfig:
    def test_override_keeps_description(self):
        kb = ComposerKeybindings({"focused": {"send": ["ctrl+enter", "ctrl+s"]}})
        assert kb.get_keys(FocusMode.FOCUSED, "send") == ["ctrl+enter", "ctrl+s"]
        assert kb.bindings(FocusMode.FOCUSED)[0].help_desc == "send message"

    def test_override_single_key_string(self):
        kb = ComposerKeybindings({"blurred": {"focus": "a"}})
        assert kb.resolve("a", FocusMode.BLURRED) == "focus"
        assert kb.resolve("i", FocusMode.BLURRED) is None

    def test_other_mode_untouched(self):
        kb = ComposerKeybindings({"blurred": {"focus": "a"}})
        assert kb.get_keys(FocusMode.FOCUSED, "blur") == ["esc"]

    def test_unknown_action(self):
        with pytest.raises(ValueError):
            ComposerKeybindings({"focused": {"focus": "i"}})

    def test_unknown_mode(self):
        with pytest.raises(ValueError):
            ComposerKeybindings({"sideways": {"send": "x"}})

    def test_set_config_resets_to_defaults_first(self):
        kb = ComposerKeybindings({"blurred": {"focus": "a"}})
        kb.set_config({})
        assert kb.get_keys(FocusMode.BLURRED, "focus") == ["i"]

    def test_missing_action_has_no_keys(self):
        assert ComposerKeybindings().get_keys(FocusMode.BLURRED, "blur") == []

    def test_bindings_in_declaration_order(self):
        descs = [b.help_desc for b in ComposerKeybindings().bindings(FocusMode.BLURRED)]
        assert descs == ["send message", "focus editor", "open editor"]

    def test_defaults_are_not_mutated(self):
        ComposerKeybindings({"focused": {"send": "ctrl+x"}})
        assert DEFAULT_COMPOSER_KEYBINDINGS[FocusMode.FOCUSED]["send"].keys == ("ctrl+s",)


class TestGlobalComposerKeybindings:
    def test_get_returns_singleton(self):
        assert get_composer_keybindings() is get_composer_keybindings()

    def test_set_replaces(self):
        original = get_composer_keybindings()
        custom = ComposerKeybindings({"blurred": {"focus": "a"}})
        try:
            set_composer_keybindings(custom)
            assert get_composer_keybindings() is custom
        finally:
            set_composer_keybindings(original)


# ---------------------------------------------------------------------------
# TextAreaKeybindings
# ---------------------------------------------------------------------------


class TestTextAreaKeybindings:
    def test_defaults(self):
        kb = TextAreaKeybindings()
        assert kb.matches("\x1b[A", "cursorUp")
        assert kb.matches("\x10", "cursorUp")  # ctrl+p
        assert kb.matches(KEY_ENTER, "newLine")
        assert kb.matches("\x17", "deleteWordBackward")  # ctrl+w

    def test_override(self):
        kb = TextAreaKeybindings({"newLine": "shift+enter"})
        assert not kb.matches(KEY_ENTER, "newLine")
        assert kb.matches("\x1b[13;2u", "newLine")

    def test_unknown_action(self):
        with pytest.raises(ValueError):
            TextAreaKeybindings({"teleport": "ctrl+t"})

    def test_bindings_for_help(self):
        bindings = TextAreaKeybindings().bindings()
        assert len(bindings) == len(DEFAULT_TEXTAREA_KEYBINDINGS)
        assert all(isinstance(b, Binding) for b in bindings)
