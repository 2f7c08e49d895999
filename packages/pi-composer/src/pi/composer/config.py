"""Composer settings: environment plus an optional JSON file.

The file lives at ``~/.pi/composer.json`` (override with
``PI_COMPOSER_CONFIG``) and uses camelCase keys::

    {
      "editor": "hx",
      "scratchDir": "/tmp/pi",
      "promptGlyph": "❯",
      "blinkInterval": 0.5,
      "height": 4,
      "keybindings": {
        "focused": {"send": ["ctrl+s", "ctrl+enter"]},
        "textarea": {"newLine": ["enter", "shift+enter"]}
      }
    }

An explicit ``editor`` in the file wins over ``$EDITOR``.
"""

from __future__ import annotations

import json
import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from pi.composer.keybindings import DEFAULT_COMPOSER_KEYBINDINGS, DEFAULT_TEXTAREA_KEYBINDINGS, FocusMode

logger = logging.getLogger(__name__)

CONFIG_DIR_NAME = ".pi"
CONFIG_FILE_NAME = "composer.json"
DEFAULT_EDITOR = "nvim"


def resolve_editor(env: Mapping[str, str] | None = None) -> str:
    """``$EDITOR`` if set and non-blank, else ``nvim``."""
    env = os.environ if env is None else env
    return env.get("EDITOR", "").strip() or DEFAULT_EDITOR


@dataclass
class ComposerSettings:
    """Resolved composer settings."""

    # None means "read $EDITOR when the editor is launched"
    editor: str | None = None
    scratch_dir: str | None = None
    scratch_prefix: str = "msg_"
    scratch_suffix: str = ".md"
    prompt_glyph: str = ">"
    blink_interval: float = 0.53
    height: int = 3
    keybindings: dict[str, dict[str, Any]] = field(default_factory=dict)

    def editor_command(self, env: Mapping[str, str] | None = None) -> str:
        return (self.editor or "").strip() or resolve_editor(env)


def deep_merge_settings(base: dict[str, Any], overrides: dict[str, Any]) -> dict[str, Any]:
    """Recursively merge *overrides* into *base*; non-dict values replace."""
    result = dict(base)
    for key, value in overrides.items():
        if value is None:
            continue
        if isinstance(result.get(key), dict) and isinstance(value, dict):
            result[key] = deep_merge_settings(result[key], value)
        else:
            result[key] = value
    return result


def default_config_path(env: Mapping[str, str] | None = None) -> Path:
    env = os.environ if env is None else env
    override = env.get("PI_COMPOSER_CONFIG")
    if override:
        return Path(override).expanduser()
    return Path.home() / CONFIG_DIR_NAME / CONFIG_FILE_NAME


def _load_from_file(path: Path) -> dict[str, Any]:
    if not path.exists():
        return {}
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        logger.warning("Ignoring unreadable composer settings %s: %s", path, e)
        return {}
    if not isinstance(data, dict):
        logger.warning("Ignoring composer settings %s: expected a JSON object", path)
        return {}
    return data


_FIELD_NAMES = {
    "editor": "editor",
    "scratchDir": "scratch_dir",
    "scratchPrefix": "scratch_prefix",
    "scratchSuffix": "scratch_suffix",
    "promptGlyph": "prompt_glyph",
    "blinkInterval": "blink_interval",
    "height": "height",
    "keybindings": "keybindings",
}


def _is_string(value: Any) -> bool:
    return isinstance(value, str)


def _is_seconds(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and value >= 0


def _is_rows(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value >= 1


def _is_glyph(value: Any) -> bool:
    return isinstance(value, str) and value != "" and "\n" not in value


_FIELD_CHECKS = {
    "editor": _is_string,
    "scratch_dir": _is_string,
    "scratch_prefix": _is_string,
    "scratch_suffix": _is_string,
    "prompt_glyph": _is_glyph,
    "blink_interval": _is_seconds,
    "height": _is_rows,
}


def _is_key_list(value: Any) -> bool:
    if isinstance(value, str):
        return value != ""
    return isinstance(value, list) and bool(value) and all(isinstance(k, str) and k for k in value)


def _keybinding_tables() -> dict[str, set[str]]:
    return {
        FocusMode.FOCUSED.value: set(DEFAULT_COMPOSER_KEYBINDINGS[FocusMode.FOCUSED]),
        FocusMode.BLURRED.value: set(DEFAULT_COMPOSER_KEYBINDINGS[FocusMode.BLURRED]),
        "textarea": set(DEFAULT_TEXTAREA_KEYBINDINGS),
    }


def validate_keybindings(value: Any) -> dict[str, dict[str, Any]]:
    """Keep the overrides that name a known table and action with key ids."""
    if not isinstance(value, dict):
        logger.warning("Ignoring composer keybindings: expected an object, got %r", value)
        return {}
    tables = _keybinding_tables()
    result: dict[str, dict[str, Any]] = {}
    for table_name, overrides in value.items():
        actions = tables.get(table_name)
        if actions is None:
            logger.warning("Ignoring keybindings for unknown table %r", table_name)
            continue
        if not isinstance(overrides, dict):
            logger.warning("Ignoring %s keybindings: expected an object", table_name)
            continue
        kept: dict[str, Any] = {}
        for action, keys in overrides.items():
            if action not in actions:
                logger.warning("Ignoring unknown %s action %r", table_name, action)
            elif not _is_key_list(keys):
                logger.warning("Ignoring %s.%s: expected a key id or a list of key ids", table_name, action)
            else:
                kept[action] = keys
        result[table_name] = kept
    return result


def settings_from_dict(data: Mapping[str, Any]) -> ComposerSettings:
    """Build settings from camelCase *data*; bad values are logged and dropped."""
    kwargs: dict[str, Any] = {}
    for key, value in data.items():
        name = _FIELD_NAMES.get(key)
        if name is None:
            logger.debug("Unknown composer setting %r", key)
            continue
        if name == "keybindings":
            kwargs[name] = validate_keybindings(value)
        elif _FIELD_CHECKS[name](value):
            kwargs[name] = value
        else:
            logger.warning("Ignoring composer setting %s=%r", key, value)
    return ComposerSettings(**kwargs)


def load_settings(
    path: str | Path | None = None,
    overrides: dict[str, Any] | None = None,
    env: Mapping[str, str] | None = None,
) -> ComposerSettings:
    """Load settings from *path* (or the default location), then *overrides*."""
    config_path = Path(path) if path is not None else default_config_path(env)
    data = deep_merge_settings(_load_from_file(config_path), overrides or {})
    return settings_from_dict(data)
