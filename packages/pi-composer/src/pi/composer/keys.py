"""Keyboard input parsing and matching for the composer.

Classifies raw terminal input against named key identifiers such as
``"ctrl+s"``, ``"esc"`` or ``"alt+left"``.  Both legacy terminal encodings
and the Kitty keyboard protocol (``CSI <codepoint> ; <modifier> u``) are
understood, so bindings work the same whichever mode the terminal is in.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

KeyId = str

# ---------------------------------------------------------------------------
# Modifiers and codepoints
# ---------------------------------------------------------------------------

MODIFIERS: dict[str, int] = {
    "shift": 1,
    "alt": 2,
    "ctrl": 4,
}

# Caps lock / num lock bits reported by Kitty; never significant for matching.
LOCK_MASK = 64 + 128

CODEPOINTS: dict[str, int] = {
    "escape": 27,
    "tab": 9,
    "enter": 13,
    "space": 32,
    "backspace": 127,
    "kp_enter": 57414,
}

_KEY_ALIASES: dict[str, str] = {
    "esc": "escape",
    "return": "enter",
}

# Legacy CSI / SS3 final bytes and "~" numbers for navigation keys.
_NAV_LETTERS: dict[str, str] = {
    "A": "up",
    "B": "down",
    "C": "right",
    "D": "left",
    "H": "home",
    "F": "end",
}

_NAV_TILDE: dict[int, str] = {
    1: "home",
    2: "insert",
    3: "delete",
    4: "end",
    5: "pageUp",
    6: "pageDown",
    7: "home",
    8: "end",
}

_NAV_KEYS = frozenset(_NAV_LETTERS.values()) | frozenset(_NAV_TILDE.values())

_LEGACY_NAV_RE = re.compile(r"^\x1b(?:\[|O)([ABCDHF])$")
_MODIFIED_NAV_RE = re.compile(r"^\x1b\[1;(\d+)(?::\d+)?([ABCDHF])$")
_TILDE_RE = re.compile(r"^\x1b\[(\d+)(?:;(\d+))?(?::\d+)?~$")
_KITTY_CSI_U_RE = re.compile(
    r"^\x1b\[(\d+)(?::(\d*))?(?::(\d+))?(?:;(\d+))?(?::(\d+))?u$"
)
_MODIFY_OTHER_KEYS_RE = re.compile(r"^\x1b\[27;(\d+);(\d+)~$")


# ---------------------------------------------------------------------------
# Key id parsing
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ParsedKeyId:
    key: str
    modifiers: int = 0

    @property
    def ctrl(self) -> bool:
        return bool(self.modifiers & MODIFIERS["ctrl"])

    @property
    def shift(self) -> bool:
        return bool(self.modifiers & MODIFIERS["shift"])

    @property
    def alt(self) -> bool:
        return bool(self.modifiers & MODIFIERS["alt"])


def parse_key_id(key_id: KeyId) -> ParsedKeyId | None:
    """Split a key identifier like ``"ctrl+shift+a"`` into key and modifiers.

    Returns ``None`` for an empty identifier or one with no base key.
    """
    if not key_id:
        return None
    # "ctrl++" style ids name the plus key itself
    if key_id.endswith("++"):
        parts = key_id[:-2].split("+") + ["+"]
    else:
        parts = key_id.split("+")

    modifiers = 0
    base: list[str] = []
    for part in parts:
        lower = part.lower()
        if lower in MODIFIERS:
            modifiers |= MODIFIERS[lower]
        elif part:
            base.append(part)

    if len(base) != 1:
        return None
    key = base[0]
    if len(key) > 1:
        key = _KEY_ALIASES.get(key.lower(), key)
    return ParsedKeyId(key=key, modifiers=modifiers)


def raw_ctrl_char(key: str) -> str | None:
    """Return the control character a terminal sends for ``ctrl+<key>``.

    For example, ``raw_ctrl_char("s")`` returns ``"\\x13"``.
    """
    if len(key) != 1:
        return None
    code = ord(key.lower())
    if ord("a") <= code <= ord("z"):
        return chr(code & 0x1F)
    return {
        "[": "\x1b",
        "\\": "\x1c",
        "]": "\x1d",
        "^": "\x1e",
        "_": "\x1f",
        "@": "\x00",
    }.get(key)


# ---------------------------------------------------------------------------
# Kitty protocol
# ---------------------------------------------------------------------------


@dataclass
class KittyKey:
    codepoint: int
    shifted_key: int | None
    base_layout_key: int | None
    modifiers: int
    event_type: int  # 1 = press, 2 = repeat, 3 = release


def parse_kitty_sequence(data: str) -> KittyKey | None:
    """Parse a Kitty ``CSI u`` key report, or return ``None``."""
    m = _KITTY_CSI_U_RE.match(data)
    if m is None:
        return None
    raw_mod = int(m.group(4)) if m.group(4) else 1
    return KittyKey(
        codepoint=int(m.group(1)),
        shifted_key=int(m.group(2)) if m.group(2) else None,
        base_layout_key=int(m.group(3)) if m.group(3) else None,
        modifiers=(raw_mod - 1) & ~LOCK_MASK,
        event_type=int(m.group(5)) if m.group(5) else 1,
    )


def is_key_release(data: str) -> bool:
    """Return ``True`` for Kitty key-release reports."""
    parsed = parse_kitty_sequence(data)
    return parsed is not None and parsed.event_type == 3


def _matches_codepoint(data: str, codepoint: int, modifiers: int) -> bool:
    parsed = parse_kitty_sequence(data)
    if parsed is not None:
        if parsed.modifiers != modifiers:
            return False
        return parsed.codepoint == codepoint or parsed.base_layout_key == codepoint

    m = _MODIFY_OTHER_KEYS_RE.match(data)
    if m is not None:
        mods = (int(m.group(1)) - 1) & ~LOCK_MASK
        return int(m.group(2)) == codepoint and mods == modifiers
    return False


# ---------------------------------------------------------------------------
# Navigation keys (arrows, home/end, delete, page up/down)
# ---------------------------------------------------------------------------


def _parse_nav(data: str) -> tuple[str, int] | None:
    """Return ``(key, modifiers)`` for a navigation key sequence."""
    m = _LEGACY_NAV_RE.match(data)
    if m:
        return _NAV_LETTERS[m.group(1)], 0

    m = _MODIFIED_NAV_RE.match(data)
    if m:
        return _NAV_LETTERS[m.group(2)], (int(m.group(1)) - 1) & ~LOCK_MASK

    m = _TILDE_RE.match(data)
    if m:
        name = _NAV_TILDE.get(int(m.group(1)))
        if name is None:
            return None
        mods = (int(m.group(2)) - 1) & ~LOCK_MASK if m.group(2) else 0
        return name, mods

    # Meta-prefixed arrows, as sent by some terminals for alt+arrow
    if data.startswith("\x1b\x1b"):
        inner = _parse_nav(data[1:])
        if inner is not None and inner[1] == 0:
            return inner[0], MODIFIERS["alt"]
    return None


# ---------------------------------------------------------------------------
# matches_key
# ---------------------------------------------------------------------------


def matches_key(data: str, key_id: KeyId) -> bool:
    """Return ``True`` if *data* (raw terminal input) is the key *key_id*.

    *key_id* examples: ``"i"``, ``"ctrl+s"``, ``"esc"``, ``"alt+backspace"``.
    """
    parsed = parse_key_id(key_id)
    if parsed is None or not data:
        return False

    key = parsed.key
    mods = parsed.modifiers
    plain = mods == 0
    alt_only = mods == MODIFIERS["alt"]
    ctrl_only = mods == MODIFIERS["ctrl"]

    if key in _NAV_KEYS:
        nav = _parse_nav(data)
        return nav is not None and nav == (key, mods)

    if key == "escape":
        if _matches_codepoint(data, CODEPOINTS["escape"], mods):
            return True
        if plain:
            return data == "\x1b"
        return alt_only and data == "\x1b\x1b"

    if key == "enter":
        if _matches_codepoint(data, CODEPOINTS["enter"], mods):
            return True
        if _matches_codepoint(data, CODEPOINTS["kp_enter"], mods):
            return True
        if plain:
            return data in ("\r", "\n")
        return alt_only and data in ("\x1b\r", "\x1b\n")

    if key == "tab":
        if _matches_codepoint(data, CODEPOINTS["tab"], mods):
            return True
        if plain:
            return data == "\t"
        if mods == MODIFIERS["shift"]:
            return data == "\x1b[Z"
        return alt_only and data == "\x1b\t"

    if key == "space":
        if _matches_codepoint(data, CODEPOINTS["space"], mods):
            return True
        if plain:
            return data == " "
        if ctrl_only:
            return data == "\x00"
        return alt_only and data == "\x1b "

    if key == "backspace":
        if _matches_codepoint(data, CODEPOINTS["backspace"], mods):
            return True
        if plain:
            return data in ("\x7f", "\x08")
        if ctrl_only:
            return data == "\x08"
        return alt_only and data in ("\x1b\x7f", "\x1b\x08")

    if len(key) != 1:
        return False
    return _match_char_key(data, key, parsed)


def _match_char_key(data: str, key: str, parsed: ParsedKeyId) -> bool:
    codepoint = ord(key.lower())
    if _matches_codepoint(data, codepoint, parsed.modifiers):
        return True

    if parsed.modifiers == 0:
        return data == key

    if parsed.ctrl and not parsed.alt:
        # Terminals cannot distinguish ctrl+shift+<letter> from ctrl+<letter>
        ctrl = raw_ctrl_char(key)
        return ctrl is not None and data == ctrl

    if parsed.ctrl and parsed.alt:
        ctrl = raw_ctrl_char(key)
        return ctrl is not None and data == "\x1b" + ctrl

    if parsed.alt and parsed.shift:
        return data == "\x1b" + key.upper()

    if parsed.alt:
        return data == "\x1b" + key

    # shift only
    return key.isalpha() and data == key.upper()


# ---------------------------------------------------------------------------
# parse_key
# ---------------------------------------------------------------------------


def _prefix(mods: int) -> str:
    out = ""
    if mods & MODIFIERS["ctrl"]:
        out += "ctrl+"
    if mods & MODIFIERS["shift"]:
        out += "shift+"
    if mods & MODIFIERS["alt"]:
        out += "alt+"
    return out


_CODEPOINT_NAMES: dict[int, str] = {
    27: "escape",
    9: "tab",
    13: "enter",
    32: "space",
    127: "backspace",
    57414: "enter",
}


def parse_key(data: str) -> KeyId | None:
    """Return the key identifier for raw terminal input, or ``None``.

    The result uses the same format :func:`matches_key` accepts.
    """
    if not data:
        return None

    kitty = parse_kitty_sequence(data)
    if kitty is not None:
        name = _CODEPOINT_NAMES.get(kitty.codepoint)
        if name is None:
            ch = chr(kitty.codepoint)
            if not ch.isprintable():
                return None
            name = ch.lower()
        return _prefix(kitty.modifiers) + name

    nav = _parse_nav(data)
    if nav is not None:
        return _prefix(nav[1]) + nav[0]

    simple = {
        "\x1b": "escape",
        "\r": "enter",
        "\n": "enter",
        "\t": "tab",
        " ": "space",
        "\x7f": "backspace",
        "\x08": "backspace",
        "\x00": "ctrl+space",
        "\x1b[Z": "shift+tab",
    }.get(data)
    if simple is not None:
        return simple

    if len(data) == 1 and 1 <= ord(data) <= 26:
        return "ctrl+" + chr(ord(data) + ord("a") - 1)

    if len(data) == 2 and data[0] == "\x1b":
        inner = parse_key(data[1])
        if inner is None:
            return None
        if data[1].isalpha() and data[1].isupper():
            return "shift+alt+" + data[1].lower()
        if inner.startswith("ctrl+"):
            return "ctrl+alt+" + inner[len("ctrl+"):]
        return "alt+" + inner

    if len(data) == 1 and data.isprintable():
        return data

    return None


def decode_printable(data: str) -> str | None:
    """Return the text a key press should insert, or ``None``.

    Plain printable input (including multi-character chunks) is returned
    as-is; Kitty reports without ctrl/alt decode to their shifted character.
    """
    kitty = parse_kitty_sequence(data)
    if kitty is not None:
        if kitty.modifiers & (MODIFIERS["ctrl"] | MODIFIERS["alt"]):
            return None
        codepoint = kitty.codepoint
        if kitty.modifiers & MODIFIERS["shift"] and kitty.shifted_key is not None:
            codepoint = kitty.shifted_key
        if codepoint < 32 or codepoint in _CODEPOINT_NAMES and codepoint != 32:
            return None
        try:
            return chr(codepoint)
        except (ValueError, OverflowError):
            return None

    if data.startswith("\x1b"):
        return None
    if all(ch.isprintable() or ch == "\t" for ch in data):
        return data
    return None
