"""Size negotiation and view composition for the composer.

Both helpers are pure: they never touch component state, so the host can
call them as often as it likes within a frame.
"""

from __future__ import annotations

from collections.abc import Iterable

from pi.composer.keybindings import Binding
from pi.composer.utils import bold, dim, pad_to_width, visible_width

# Columns the default prompt takes from the region: padding and glyph, plus
# one column left free at the right edge.
PROMPT_MARGIN = 3
MIN_BUFFER_WIDTH = 1

PROMPT_GLYPH = ">"


def negotiate(total_width: int, total_height: int, margin: int = PROMPT_MARGIN) -> tuple[int, int]:
    """Translate the region the host grants into text area geometry.

    ``margin`` columns are reserved for the prompt glyph and padding; the
    width never drops below ``MIN_BUFFER_WIDTH``.  Height passes through.

    >>> negotiate(100, 5)
    (97, 5)
    """
    return max(MIN_BUFFER_WIDTH, total_width - margin), total_height


def render_prompt(glyph: str = PROMPT_GLYPH) -> str:
    """The emphasised prompt glyph with one column of left padding."""
    return " " + bold(glyph)


def prompt_margin(glyph: str = PROMPT_GLYPH) -> int:
    """Margin to pass to :func:`negotiate` for *glyph*; never below ``PROMPT_MARGIN``."""
    return max(PROMPT_MARGIN, visible_width(render_prompt(glyph)) + 1)


def join_horizontal(left: list[str], right: list[str]) -> list[str]:
    """Place two blocks side by side, aligned to the top.

    The shorter block is padded with blank rows; every row of ``left`` is
    padded to the widest ``left`` row so ``right`` starts in one column.
    """
    left_width = max((visible_width(line) for line in left), default=0)
    rows = max(len(left), len(right))
    out: list[str] = []
    for i in range(rows):
        lhs = left[i] if i < len(left) else ""
        rhs = right[i] if i < len(right) else ""
        out.append(pad_to_width(lhs, left_width) + rhs)
    return out


def render_view(buffer_lines: list[str], glyph: str = PROMPT_GLYPH) -> list[str]:
    """Compose the prompt glyph next to the text area's rendered rows."""
    return join_horizontal([render_prompt(glyph)], buffer_lines)


def format_bindings(bindings: Iterable[Binding], separator: str = " • ") -> str:
    """One-line help text: ``ctrl+s send message • esc focus messages``."""
    return separator.join(f"{b.help_key} {dim(b.help_desc)}" for b in bindings)
