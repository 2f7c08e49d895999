"""Tests for pi.composer.config."""

from __future__ import annotations

import json

from pi.composer.composer import Composer
from pi.composer.config import (
    DEFAULT_EDITOR,
    ComposerSettings,
    deep_merge_settings,
    default_config_path,
    load_settings,
    resolve_editor,
    settings_from_dict,
)
from pi.composer.keybindings import FocusMode

from .fakes import FakeBusy, FakeRunner


class TestResolveEditor:
    def test_editor_env(self):
        assert resolve_editor({"EDITOR": "hx"}) == "hx"

    def test_blank_falls_back(self):
        assert resolve_editor({"EDITOR": "  "}) == DEFAULT_EDITOR
        assert resolve_editor({}) == "nvim"

    def test_reads_process_env_by_default(self, monkeypatch):
        monkeypatch.setenv("EDITOR", "micro")
        assert resolve_editor() == "micro"


class TestComposerSettings:
    def test_defaults(self):
        settings = ComposerSettings()
        assert settings.editor is None
        assert settings.scratch_prefix == "msg_"
        assert settings.scratch_suffix == ".md"
        assert settings.prompt_glyph == ">"
        assert settings.height == 3
        assert settings.keybindings == {}

    def test_explicit_editor_wins(self):
        assert ComposerSettings(editor="hx").editor_command({"EDITOR": "vim"}) == "hx"

    def test_env_used_when_unset(self):
        assert ComposerSettings().editor_command({"EDITOR": "vim"}) == "vim"
        assert ComposerSettings(editor="  ").editor_command({}) == "nvim"


class TestDeepMerge:
    def test_nested(self):
        base = {"keybindings": {"focused": {"send": "ctrl+s"}}, "height": 3}
        merged = deep_merge_settings(base, {"keybindings": {"blurred": {"focus": "a"}}, "height": 5})
        assert merged == {
            "keybindings": {"focused": {"send": "ctrl+s"}, "blurred": {"focus": "a"}},
            "height": 5,
        }

    def test_none_does_not_override(self):
        assert deep_merge_settings({"editor": "hx"}, {"editor": None}) == {"editor": "hx"}

    def test_base_not_mutated(self):
        base = {"keybindings": {"focused": {}}}
        deep_merge_settings(base, {"keybindings": {"focused": {"send": "x"}}})
        assert base == {"keybindings": {"focused": {}}}


class TestLoadSettings:
    def test_missing_file_gives_defaults(self, tmp_path):
        settings = load_settings(tmp_path / "nope.json")
        assert settings == ComposerSettings()

    def test_camel_case_keys(self, tmp_path):
        path = tmp_path / "composer.json"
        path.write_text(json.dumps({
            "editor": "hx",
            "scratchDir": str(tmp_path),
            "promptGlyph": "❯",
            "blinkInterval": 0.25,
            "height": 4,
            "keybindings": {"focused": {"send": ["ctrl+enter"]}},
        }))
        settings = load_settings(path)
        assert settings.editor == "hx"
        assert settings.scratch_dir == str(tmp_path)
        assert settings.prompt_glyph == "❯"
        assert settings.blink_interval == 0.25
        assert settings.height == 4
        assert settings.keybindings == {"focused": {"send": ["ctrl+enter"]}}

    def test_overrides_win(self, tmp_path):
        path = tmp_path / "composer.json"
        path.write_text(json.dumps({"editor": "hx", "height": 4}))
        settings = load_settings(path, overrides={"editor": "vim"})
        assert settings.editor == "vim"
        assert settings.height == 4

    def test_invalid_json_is_ignored(self, tmp_path, caplog):
        path = tmp_path / "composer.json"
        path.write_text("{not json")
        assert load_settings(path) == ComposerSettings()
        assert "Ignoring" in caplog.text

    def test_non_object_is_ignored(self, tmp_path):
        path = tmp_path / "composer.json"
        path.write_text("[1, 2]")
        assert load_settings(path) == ComposerSettings()

    def test_unknown_keys_are_skipped(self):
        assert settings_from_dict({"colour": "blue"}) == ComposerSettings()

    def test_env_config_path(self, tmp_path):
        path = tmp_path / "custom.json"
        path.write_text(json.dumps({"promptGlyph": "$"}))
        env = {"PI_COMPOSER_CONFIG": str(path)}
        assert default_config_path(env) == path
        assert load_settings(env=env).prompt_glyph == "$"

    def test_default_path(self):
        assert default_config_path({}).parts[-2:] == (".pi", "composer.json")


class TestInvalidValues:
    def test_wrong_types_are_dropped(self, caplog):
        settings = settings_from_dict({
            "blinkInterval": "fast",
            "height": 0,
            "promptGlyph": "",
            "editor": 42,
            "scratchDir": ["tmp"],
        })
        assert settings == ComposerSettings()
        assert "blinkInterval" in caplog.text

    def test_booleans_are_not_numbers(self):
        settings = settings_from_dict({"height": True, "blinkInterval": False})
        assert settings.height == 3
        assert settings.blink_interval == 0.53

    def test_good_values_survive_next_to_bad_ones(self):
        settings = settings_from_dict({"height": 5, "blinkInterval": "fast"})
        assert settings.height == 5
        assert settings.blink_interval == 0.53

    def test_unknown_action_is_dropped(self, caplog):
        settings = settings_from_dict({
            "keybindings": {"focused": {"sned": ["ctrl+s"], "send": "ctrl+enter"}},
        })
        assert settings.keybindings == {"focused": {"send": "ctrl+enter"}}
        assert "'sned'" in caplog.text

    def test_unknown_table_and_bad_keys_are_dropped(self):
        settings = settings_from_dict({
            "keybindings": {
                "sideways": {"send": "x"},
                "blurred": {"focus": [1, 2]},
                "textarea": {"newLine": ["shift+enter"], "cursorUp": []},
            },
        })
        assert settings.keybindings == {"blurred": {}, "textarea": {"newLine": ["shift+enter"]}}

    def test_keybindings_must_be_an_object(self):
        assert settings_from_dict({"keybindings": ["ctrl+s"]}).keybindings == {}

    def test_bad_file_still_builds_a_composer(self, tmp_path):
        path = tmp_path / "composer.json"
        path.write_text(json.dumps({
            "blinkInterval": "fast",
            "keybindings": {"focused": {"sned": ["ctrl+s"]}, "textarea": {"jump": "ctrl+j"}},
        }))
        composer = Composer(FakeBusy(), FakeRunner(), settings=load_settings(path))
        assert composer.keybindings.get_keys(FocusMode.FOCUSED, "send") == ["ctrl+s"]
        assert composer.textarea.cursor.interval == 0.53
