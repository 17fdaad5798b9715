"""Tests for pi.reline.width -- ambiguous-width probe and width helpers."""

from __future__ import annotations

import io

import pytest

from pi.reline.terminal import GeneralIO
from pi.reline.width import (
    PROBE_GLYPH,
    AmbiguousWidthProbe,
    char_width,
    get_ambiguous_width,
    reset_ambiguous_width_cache,
    set_ambiguous_width,
    text_width,
)

from .virtual_terminal import VirtualTerminal


class TestAmbiguousWidthProbe:
    @pytest.mark.parametrize("glyph_width", [1, 2])
    def test_reports_measured_column(self, glyph_width: int) -> None:
        term = VirtualTerminal(glyph_width=glyph_width)
        assert AmbiguousWidthProbe(term).measure() == glyph_width
        assert get_ambiguous_width() == glyph_width

    def test_probe_draws_and_erases_glyph(self) -> None:
        term = VirtualTerminal(glyph_width=2)
        AmbiguousWidthProbe(term).measure()
        assert term.output == f"\x1b[1G{PROBE_GLYPH}\x1b[1G\x1b[J"
        assert term.cursor_queries == 1

    def test_non_tty_output_defaults_to_two(self) -> None:
        term = VirtualTerminal(tty=False, glyph_width=1)
        assert AmbiguousWidthProbe(term).measure() == 2
        assert term.output == ""
        assert term.cursor_queries == 0

    def test_general_io_defaults_to_two(self) -> None:
        term = GeneralIO(io.BytesIO(), io.StringIO())
        assert AmbiguousWidthProbe(term).measure() == 2

    def test_result_is_cached(self) -> None:
        AmbiguousWidthProbe(VirtualTerminal(glyph_width=1)).measure()
        second = VirtualTerminal(glyph_width=2)
        assert AmbiguousWidthProbe(second).measure() == 1
        assert second.cursor_queries == 0

    def test_reset_cache(self) -> None:
        set_ambiguous_width(1)
        reset_ambiguous_width_cache()
        assert get_ambiguous_width() is None

    def test_implausible_column_falls_back(self) -> None:
        term = VirtualTerminal(glyph_width=0)
        assert AmbiguousWidthProbe(term).measure() == 2

    def test_set_rejects_other_widths(self) -> None:
        with pytest.raises(ValueError):
            set_ambiguous_width(3)


class TestWidthHelpers:
    def test_ascii(self) -> None:
        assert text_width("hello") == 5

    def test_wide_cjk(self) -> None:
        assert text_width("日本") == 4

    @pytest.mark.parametrize("width", [1, 2])
    def test_ambiguous_glyph_uses_probed_width(self, width: int) -> None:
        assert text_width(PROBE_GLYPH, width) == width
        assert text_width("a" + PROBE_GLYPH, width) == 1 + width

    def test_control_characters_are_zero_width(self) -> None:
        assert char_width("\x07") == 0
        assert char_width("") == 0

    def test_combining_sequence_is_one_column(self) -> None:
        assert text_width("e\u0301") == 1
