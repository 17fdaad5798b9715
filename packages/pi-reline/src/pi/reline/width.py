"""East Asian ambiguous-width detection and column width helpers.

Glyphs such as U+25BD occupy one column on most Western terminals and two
on CJK-configured ones. The probe measures it once per process by printing
such a glyph and asking the terminal where the cursor ended up.
"""

from __future__ import annotations

import logging
import unicodedata

import grapheme
import wcwidth as _wcwidth

from pi.reline.terminal import Terminal

logger = logging.getLogger(__name__)

PROBE_GLYPH = "\u25bd"
DEFAULT_AMBIGUOUS_WIDTH = 2

_cached_ambiguous_width: int | None = None


def get_ambiguous_width() -> int | None:
    return _cached_ambiguous_width


def set_ambiguous_width(width: int) -> None:
    global _cached_ambiguous_width
    if width not in (1, 2):
        raise ValueError(f"Ambiguous width must be 1 or 2, got {width}")
    _cached_ambiguous_width = width


def reset_ambiguous_width_cache() -> None:
    global _cached_ambiguous_width
    _cached_ambiguous_width = None


class AmbiguousWidthProbe:
    """Measures the ambiguous glyph width on *terminal*, at most once."""

    def __init__(self, terminal: Terminal) -> None:
        self._terminal = terminal

    def measure(self) -> int:
        cached = get_ambiguous_width()
        if cached is not None:
            return cached

        terminal = self._terminal
        if terminal.is_general_io or not terminal.output_is_tty():
            width = DEFAULT_AMBIGUOUS_WIDTH
        else:
            terminal.move_cursor_column(0)
            terminal.write(PROBE_GLYPH)
            width = terminal.cursor_pos().x
            terminal.move_cursor_column(0)
            terminal.erase_to_end_of_screen()
            if width not in (1, 2):
                logger.debug("probe reported column %d, assuming width %d", width, DEFAULT_AMBIGUOUS_WIDTH)
                width = DEFAULT_AMBIGUOUS_WIDTH

        logger.debug("ambiguous character width is %d", width)
        set_ambiguous_width(width)
        return width


# ---------------------------------------------------------------------------
# Width helpers
# ---------------------------------------------------------------------------


def char_width(g: str, ambiguous_width: int = 1) -> int:
    """Columns taken by the grapheme cluster *g*."""
    if not g:
        return 0
    cp = ord(g[0])
    if cp < 0x20 or 0x7F <= cp < 0xA0:
        return 0
    if unicodedata.east_asian_width(g[0]) == "A":
        return ambiguous_width
    if "\ufe0f" in g:
        return 2
    w = _wcwidth.wcwidth(g[0])
    return w if w > 0 else 0


def text_width(text: str, ambiguous_width: int = 1) -> int:
    """Columns taken by *text*, counting ambiguous glyphs as *ambiguous_width*."""
    if text.isascii() and text.isprintable():
        return len(text)
    return sum(char_width(g, ambiguous_width) for g in grapheme.graphemes(text))
