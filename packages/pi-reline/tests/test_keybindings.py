"""Tests for pi.reline.keybindings and key identifier parsing."""

from __future__ import annotations

import pytest

from pi.reline.config import Config
from pi.reline.keybindings import (
    DEFAULT_EMACS_KEYBINDINGS,
    DEFAULT_VI_COMMAND_KEYBINDINGS,
    KeyBindingTable,
    build_tables,
)
from pi.reline.keys import Key, format_bytes, key_id_to_bytes


# ---------------------------------------------------------------------------
# key_id_to_bytes
# ---------------------------------------------------------------------------


class TestKeyIdToBytes:
    @pytest.mark.parametrize(
        "key_id, expected",
        [
            ("a", b"a"),
            ("A", b"A"),
            ("shift+a", b"A"),
            ("ctrl+a", b"\x01"),
            ("ctrl+z", b"\x1a"),
            ("ctrl+]", b"\x1d"),
            ("ctrl+-", b"\x1f"),
            ("ctrl+space", b"\x00"),
            ("alt+b", b"\x1bb"),
            ("ctrl+alt+a", b"\x1b\x01"),
            ("escape", b"\x1b"),
            ("enter", b"\r"),
            ("tab", b"\t"),
            ("backspace", b"\x7f"),
            ("alt+backspace", b"\x1b\x7f"),
            ("up", b"\x1b[A"),
            ("delete", b"\x1b[3~"),
            ("f5", b"\x1b[15~"),
            ("ctrl+left", b"\x1b[1;5D"),
            ("shift+up", b"\x1b[1;2A"),
            ("alt+delete", b"\x1b[3;3~"),
            ("plus", b"+"),
        ],
    )
    def test_conversion(self, key_id: str, expected: bytes) -> None:
        assert key_id_to_bytes(key_id) == expected

    def test_bytes_pass_through(self) -> None:
        assert key_id_to_bytes(b"\x18\x18") == b"\x18\x18"

    @pytest.mark.parametrize("key_id", ["", b"", "hyper+a", "ctrl+f1", "nosuchkey", "shift+tab"])
    def test_invalid(self, key_id: str | bytes) -> None:
        with pytest.raises(ValueError):
            key_id_to_bytes(key_id)

    def test_non_ascii_with_alt(self) -> None:
        assert key_id_to_bytes("alt+\u00e9") == b"\x1b" + "\u00e9".encode("utf-8")


class TestFormatBytes:
    def test_control_and_escape(self) -> None:
        assert format_bytes(b"\x1b[A") == "^[[A"
        assert format_bytes(b"\x01\x7f") == "^A^?"
        assert format_bytes(b"\xc3") == "\\xc3"


class TestKey:
    def test_meta_sets_high_bit(self) -> None:
        key = Key.meta(0x61)
        assert key.char == 0x61
        assert key.combined_char == 0xE1
        assert key.with_meta

    def test_plain_key_combined_equals_char(self) -> None:
        assert Key(0x61).combined_char == 0x61
        assert Key.from_byte(0x1B) == Key(0x1B, 0x1B, False)

    def test_action_key(self) -> None:
        key = Key.action("accept_line")
        assert key.is_action
        assert not Key.from_byte(13).is_action

    def test_immutable(self) -> None:
        key = Key.from_byte(1)
        with pytest.raises(AttributeError):
            key.char = 2  # type: ignore[misc]


# ---------------------------------------------------------------------------
# KeyBindingTable
# ---------------------------------------------------------------------------


class TestKeyBindingTable:
    def test_defaults_are_converted_to_bytes(self) -> None:
        table = KeyBindingTable.build("emacs")
        assert table.get(b"\x01") == DEFAULT_EMACS_KEYBINDINGS["ctrl+a"]
        assert table.get(b"\r") == "accept_line"
        assert len(table) == len(DEFAULT_EMACS_KEYBINDINGS)

    def test_raw_keystrokes_then_overrides(self) -> None:
        table = KeyBindingTable.build(
            "emacs",
            overrides={"up": "custom_up", "ctrl+t": b"macro"},
            raw_keystrokes={"up": "ed_prev_history", "down": "ed_next_history"},
        )
        assert table.get(b"\x1b[A") == "custom_up"
        assert table.get(b"\x1b[B") == "ed_next_history"
        assert table.get(b"\x14") == b"macro"

    def test_override_replaces_default(self) -> None:
        table = KeyBindingTable.build("emacs", overrides={"ctrl+a": "end_of_line"})
        assert table.get(b"\x01") == "end_of_line"

    def test_unknown_key_id_rejected_at_build(self) -> None:
        with pytest.raises(ValueError):
            KeyBindingTable.build("emacs", overrides={"meta+q": "x"})

    def test_bad_target_rejected_at_build(self) -> None:
        with pytest.raises(TypeError):
            KeyBindingTable.build("emacs", overrides={"ctrl+t": 42})  # type: ignore[dict-item]

    def test_unknown_mode(self) -> None:
        with pytest.raises(ValueError):
            KeyBindingTable.build("ed")  # type: ignore[arg-type]

    def test_mapping_is_read_only(self) -> None:
        table = KeyBindingTable({b"a": "x"})
        with pytest.raises(TypeError):
            table.mapping[b"b"] = "y"  # type: ignore[index]

    def test_prefix_queries(self) -> None:
        table = KeyBindingTable({b"\x1b[A": "up", b"\x18": "s", b"\x18\x18": "l"})
        assert table.is_proper_prefix(b"\x1b")
        assert table.is_proper_prefix(b"\x1b[")
        assert not table.is_proper_prefix(b"\x1b[A")
        assert table.is_proper_prefix(b"\x18")
        assert table.longest_bound_prefix(b"\x18\x18x") == b"\x18\x18"
        assert table.longest_bound_prefix(b"zz") is None
        assert b"\x18" in table
        assert "x" not in table
        assert table.max_sequence_length == 3

    def test_empty_table(self) -> None:
        table = KeyBindingTable({})
        assert len(table) == 0
        assert table.longest_bound_prefix(b"a") is None


class TestBuildTables:
    def test_one_table_per_mode(self) -> None:
        tables = build_tables(Config())
        assert set(tables) == {"emacs", "vi_insert", "vi_command"}
        assert tables["vi_command"].get(b"h") == DEFAULT_VI_COMMAND_KEYBINDINGS["h"]

    def test_config_overrides_apply_to_their_mode_only(self) -> None:
        config = Config(key_bindings={"vi_insert": {"ctrl+t": "kill_line"}})
        tables = build_tables(config)
        assert tables["vi_insert"].get(b"\x14") == "kill_line"
        assert tables["emacs"].get(b"\x14") is None
